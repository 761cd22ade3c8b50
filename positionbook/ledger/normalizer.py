"""
Record intake + chronological ordering for instrument-scoped ledgers.

Records arrive either as `Transaction` / `Distribution` objects or as plain
mappings shaped like record-store rows. Each record is routed to its
instrument first, then validated, so one malformed row only halts its own
instrument.

Ordering rule: timestamp ascending; ties keep the order the records were
supplied in (stable sort). No other key ever reorders same-instant events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from positionbook.ledger.errors import InvalidInput
from positionbook.ledger.models import (
    ACQUIRE,
    DISPOSE,
    Distribution,
    Kind,
    Transaction,
    normalize_instrument,
    to_decimal,
    within_magnitude,
)
from positionbook.time.utc import parse_ts


_MISSING = object()

_INSTRUMENT_KEYS = ("instrument", "stock_code", "symbol")
_KIND_KEYS = ("kind", "transaction_type", "side")
_QUANTITY_KEYS = ("quantity", "qty")
_PRICE_KEYS = ("unit_price", "price_per_share", "price")
_TX_TS_KEYS = ("timestamp", "transaction_date", "ts")
_DIST_TS_KEYS = ("timestamp", "dividend_date", "ts")
_ID_KEYS = ("record_id", "id")

_KIND_ALIASES: dict[str, Kind] = {
    "acquire": ACQUIRE,
    "buy": ACQUIRE,
    "dispose": DISPOSE,
    "sell": DISPOSE,
}


def _get(record: Any, *names: str) -> Any:
    """First present field among `names`, from a mapping or an object."""

    for name in names:
        if isinstance(record, Mapping):
            if name in record and record[name] is not None:
                return record[name]
        else:
            v = getattr(record, name, _MISSING)
            if v is not _MISSING and v is not None:
                return v
    return _MISSING


def _record_id(record: Any, fallback: str) -> str:
    rid = _get(record, *_ID_KEYS)
    if rid is _MISSING:
        return fallback
    s = str(rid).strip()
    return s or fallback


def _req_quantity(record: Any, rid: str, instrument: str) -> int:
    v = _get(record, *_QUANTITY_KEYS)
    if v is _MISSING:
        raise InvalidInput(rid, "quantity is required", instrument=instrument)
    if isinstance(v, bool):
        raise InvalidInput(rid, "quantity must be a positive integer", instrument=instrument)
    try:
        d = to_decimal(v)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput(rid, f"quantity is not a number: {v!r}", instrument=instrument) from None
    if not d.is_finite() or d != d.to_integral_value():
        raise InvalidInput(rid, "quantity must be a positive integer", instrument=instrument)
    if d <= 0:
        raise InvalidInput(rid, "quantity must be a positive integer", instrument=instrument)
    if not within_magnitude(d):
        raise InvalidInput(rid, "quantity out of range", instrument=instrument)
    return int(d)


def _req_decimal(
    record: Any,
    names: tuple[str, ...],
    rid: str,
    instrument: str,
    *,
    label: str,
    allow_zero: bool,
) -> Decimal:
    v = _get(record, *names)
    if v is _MISSING:
        raise InvalidInput(rid, f"{label} is required", instrument=instrument)
    if isinstance(v, bool):
        raise InvalidInput(rid, f"{label} must be a number", instrument=instrument)
    try:
        d = to_decimal(v)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput(rid, f"{label} is not a number: {v!r}", instrument=instrument) from None
    if not d.is_finite():
        raise InvalidInput(rid, f"{label} must be finite", instrument=instrument)
    if d < 0 or (d == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise InvalidInput(rid, f"{label} must be {bound}", instrument=instrument)
    if not within_magnitude(d):
        raise InvalidInput(rid, f"{label} out of range", instrument=instrument)
    return d


def _req_ts(record: Any, names: tuple[str, ...], rid: str, instrument: str) -> datetime:
    v = _get(record, *names)
    if v is _MISSING:
        raise InvalidInput(rid, "timestamp is required", instrument=instrument)
    try:
        return parse_ts(v)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidInput(rid, f"bad timestamp: {e}", instrument=instrument) from None


def _req_kind(record: Any, rid: str, instrument: str) -> Kind:
    v = _get(record, *_KIND_KEYS)
    kind = _KIND_ALIASES.get(str(v).strip().lower()) if v is not _MISSING else None
    if kind is None:
        raise InvalidInput(rid, "kind must be 'acquire'/'buy' or 'dispose'/'sell'", instrument=instrument)
    return kind


def coerce_transaction(record: Any, *, fallback_id: str) -> Transaction:
    """Validate one transaction-shaped record. Raises InvalidInput."""

    rid = _record_id(record, fallback_id)
    raw_instrument = _get(record, *_INSTRUMENT_KEYS)
    instrument = normalize_instrument(None if raw_instrument is _MISSING else raw_instrument)
    if not instrument:
        raise InvalidInput(rid, "instrument is required", instrument="")

    kind = _req_kind(record, rid, instrument)
    quantity = _req_quantity(record, rid, instrument)
    unit_price = _req_decimal(record, _PRICE_KEYS, rid, instrument, label="unit_price", allow_zero=False)
    ts = _req_ts(record, _TX_TS_KEYS, rid, instrument)

    notes = _get(record, "notes")
    return Transaction(
        instrument=instrument,
        kind=kind,
        quantity=quantity,
        unit_price=unit_price,
        timestamp=ts,
        notes=None if notes is _MISSING else str(notes),
        record_id=rid,
    )


def coerce_distribution(record: Any, *, fallback_id: str) -> Distribution:
    """Validate one distribution-shaped record. Raises InvalidInput."""

    rid = _record_id(record, fallback_id)
    raw_instrument = _get(record, *_INSTRUMENT_KEYS)
    instrument = normalize_instrument(None if raw_instrument is _MISSING else raw_instrument)
    if not instrument:
        raise InvalidInput(rid, "instrument is required", instrument="")

    amount = _req_decimal(record, ("amount",), rid, instrument, label="amount", allow_zero=True)
    ts = _req_ts(record, _DIST_TS_KEYS, rid, instrument)
    return Distribution(instrument=instrument, amount=amount, timestamp=ts, record_id=rid)


@dataclass(slots=True)
class InstrumentBatch:
    """Raw records routed to one instrument, still in supplied order."""

    instrument: str
    transactions: list[tuple[str, Any]] = field(default_factory=list)
    distributions: list[tuple[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class NormalizedLedger:
    instrument: str
    events: tuple[Transaction, ...]
    distributions: tuple[Distribution, ...]


def _instrument_of(record: Any) -> str:
    v = _get(record, *_INSTRUMENT_KEYS)
    return normalize_instrument(None if v is _MISSING else v)


def partition_records(
    transactions: Iterable[Any],
    distributions: Iterable[Any] = (),
) -> tuple[dict[str, InstrumentBatch], list[InvalidInput]]:
    """
    Route raw records to their instrument without validating them yet.

    Records with no instrument code cannot belong to any ledger; they come back
    as InvalidInput (instrument "") and are otherwise ignored.
    """

    batches: dict[str, InstrumentBatch] = {}
    unroutable: list[InvalidInput] = []

    for i, t in enumerate(transactions):
        fallback = f"tx_{i}"
        code = _instrument_of(t)
        if not code:
            unroutable.append(InvalidInput(_record_id(t, fallback), "instrument is required"))
            continue
        batches.setdefault(code, InstrumentBatch(instrument=code)).transactions.append((fallback, t))

    for i, d in enumerate(distributions):
        fallback = f"dist_{i}"
        code = _instrument_of(d)
        if not code:
            unroutable.append(InvalidInput(_record_id(d, fallback), "instrument is required"))
            continue
        batches.setdefault(code, InstrumentBatch(instrument=code)).distributions.append((fallback, d))

    return batches, unroutable


def normalize_ledger(batch: InstrumentBatch) -> NormalizedLedger:
    """
    Validate and chronologically order one instrument's records.

    Pure function. Raises InvalidInput on the first malformed record.
    """

    events = [coerce_transaction(rec, fallback_id=fid) for fid, rec in batch.transactions]
    dists = [coerce_distribution(rec, fallback_id=fid) for fid, rec in batch.distributions]

    # sorted() is stable: same-instant records keep their supplied order.
    events.sort(key=lambda t: t.timestamp)
    dists.sort(key=lambda d: d.timestamp)
    return NormalizedLedger(instrument=batch.instrument, events=tuple(events), distributions=tuple(dists))


def normalize_events(records: Iterable[Any], *, instrument: Optional[str] = None) -> tuple[Transaction, ...]:
    """
    Convenience wrapper: validate + order transactions for a single instrument.

    When `instrument` is given, records for other instruments are rejected.
    """

    batch = InstrumentBatch(instrument=normalize_instrument(instrument))
    for i, rec in enumerate(records):
        batch.transactions.append((f"tx_{i}", rec))
    ledger = normalize_ledger(batch)
    if instrument is not None:
        for t in ledger.events:
            if t.instrument != batch.instrument:
                raise InvalidInput(
                    t.record_id,
                    f"record belongs to {t.instrument}, not {batch.instrument}",
                    instrument=batch.instrument,
                )
    return ledger.events


__all__ = [
    "InstrumentBatch",
    "NormalizedLedger",
    "coerce_distribution",
    "coerce_transaction",
    "normalize_events",
    "normalize_ledger",
    "partition_records",
]
