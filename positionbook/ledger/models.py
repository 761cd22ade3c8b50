from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from positionbook.time.utc import to_utc


Kind = Literal["acquire", "dispose"]

ACQUIRE: Kind = "acquire"
DISPOSE: Kind = "dispose"

ZERO = Decimal("0")

# Largest and smallest magnitudes (as adjusted exponents) a quantity, price or
# amount may carry. Keeps every product and ratio inside the default context.
MAX_ADJUSTED_EXPONENT = 15
MIN_ADJUSTED_EXPONENT = -12


def to_decimal(v: Any) -> Decimal:
    """
    Convert a numeric-ish value to Decimal safely.

    IMPORTANT:
    - Never call Decimal(float) directly (binary float artifacts).
    - Use Decimal(str(x)) for int/float inputs.
    """
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        return v
    if isinstance(v, (int, float)):
        return Decimal(str(v))
    if isinstance(v, str):
        s = v.strip()
        return Decimal(s) if s else ZERO
    return Decimal(str(v))


def within_magnitude(d: Decimal) -> bool:
    if not d.is_finite():
        return False
    if d.is_zero():
        return True
    return MIN_ADJUSTED_EXPONENT <= d.adjusted() <= MAX_ADJUSTED_EXPONENT


def normalize_instrument(code: Any) -> str:
    return str(code or "").strip().upper()


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable acquisition/disposal record, as supplied by the record store.

    Notes:
    - `quantity` and `unit_price` are validated by the normalizer, not here, so a
      malformed row surfaces as `InvalidInput` for its instrument only.
    - `total_value` is always derived; a stored total is never trusted.
    """

    instrument: str
    kind: Kind
    quantity: int
    unit_price: Decimal
    timestamp: datetime
    notes: Optional[str] = None
    record_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "instrument", normalize_instrument(self.instrument))
        if isinstance(self.timestamp, datetime):
            object.__setattr__(self, "timestamp", to_utc(self.timestamp))

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.quantity) * to_decimal(self.unit_price)


@dataclass(frozen=True, slots=True)
class Distribution:
    """Cash payout for an instrument (per instrument, not per share)."""

    instrument: str
    amount: Decimal
    timestamp: datetime
    record_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "instrument", normalize_instrument(self.instrument))
        if isinstance(self.timestamp, datetime):
            object.__setattr__(self, "timestamp", to_utc(self.timestamp))


@dataclass(slots=True)
class Lot:
    """
    Open acquisition batch. Owned by exactly one LotQueue.

    Only `quantity_remaining` ever changes (down, on disposal match).
    """

    instrument: str
    quantity_remaining: int
    unit_cost: Decimal
    acquired_at: datetime
    record_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OpenLot:
    """Read-only copy of a Lot, safe to hand to callers."""

    quantity_remaining: int
    unit_cost: Decimal
    acquired_at: datetime
    record_id: Optional[str] = None

    @property
    def cost_basis(self) -> Decimal:
        return Decimal(self.quantity_remaining) * self.unit_cost


@dataclass(frozen=True, slots=True)
class ClosedDraft:
    """One disposal-to-lot match, before distributions and returns are attached."""

    instrument: str
    quantity: int
    unit_cost: Decimal
    disposal_price: Decimal
    acquired_at: datetime
    disposed_at: datetime
    acquisition_value: Decimal
    disposal_value: Decimal
    holding_days: int
    acquisition_record_id: Optional[str] = None
    disposal_record_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ClosedPosition:
    """
    Realized closure of one lot (or lot fragment).

    A single disposal produces one ClosedPosition per lot it drains.
    """

    instrument: str
    quantity: int
    unit_cost: Decimal
    disposal_price: Decimal
    acquired_at: datetime
    disposed_at: datetime
    acquisition_value: Decimal
    disposal_value: Decimal
    attributed_distributions: Decimal
    holding_days: int
    realized_return_value: Decimal
    realized_return_percent: Decimal
    monthly_return_percent: Decimal
    acquisition_record_id: Optional[str] = None
    disposal_record_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OpenSummary:
    """
    Per-instrument view of what is still held.

    Conventions:
    - total_invested: cost basis of the still-open lots (sum remaining * unit_cost)
    - weighted_average_cost: total_invested / quantity_open, recomputed from lots
    - first_acquisition_at: earliest acquisition ever, kept after those lots close
    - lifetime_acquired_value: every acquisition's quantity * unit_price (reference only)
    """

    instrument: str
    quantity_open: int
    weighted_average_cost: Decimal
    total_invested: Decimal
    total_distributions_received: Decimal
    first_acquisition_at: Optional[datetime]
    lifetime_acquired_value: Decimal = ZERO
    lots: tuple[OpenLot, ...] = ()


__all__ = [
    "ACQUIRE",
    "DISPOSE",
    "Kind",
    "ZERO",
    "ClosedDraft",
    "ClosedPosition",
    "Distribution",
    "Lot",
    "OpenLot",
    "OpenSummary",
    "Transaction",
    "normalize_instrument",
    "to_decimal",
]
