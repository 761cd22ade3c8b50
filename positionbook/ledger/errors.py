from __future__ import annotations

from typing import Optional


class LedgerError(ValueError):
    """Base class for errors that halt one instrument's ledger."""

    kind = "ledger_error"
    instrument: str = ""
    record_id: Optional[str] = None


class InvalidInput(LedgerError):
    """A malformed record (non-positive quantity/price, bad timestamp, ...)."""

    kind = "invalid_input"

    def __init__(self, record_id: Optional[str], reason: str, *, instrument: str = "") -> None:
        self.record_id = record_id
        self.reason = reason
        self.instrument = instrument
        super().__init__(f"invalid record {record_id!r}: {reason}")


class OverDisposal(LedgerError):
    """A disposal asked for more than the open quantity at that point in the sequence."""

    kind = "over_disposal"

    def __init__(
        self,
        instrument: str,
        requested: int,
        available: int,
        *,
        record_id: Optional[str] = None,
    ) -> None:
        self.instrument = instrument
        self.requested = int(requested)
        self.available = int(available)
        self.record_id = record_id
        super().__init__(
            f"{instrument}: disposal {record_id!r} requests {self.requested} but only {self.available} open"
        )

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


def describe(err: LedgerError) -> dict[str, object]:
    """Flat, JSON-friendly view of an error (used by logs and contracts)."""

    out: dict[str, object] = {"kind": err.kind, "instrument": err.instrument, "record_id": err.record_id}
    if isinstance(err, InvalidInput):
        out["reason"] = err.reason
    if isinstance(err, OverDisposal):
        out["requested"] = err.requested
        out["available"] = err.available
        out["shortfall"] = err.shortfall
    return out


__all__ = ["LedgerError", "InvalidInput", "OverDisposal", "describe"]
