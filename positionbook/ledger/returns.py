"""
Return metrics for closed positions and open holdings.

Formulas:
- return_value   = (current_or_disposal_value + distributions) - acquisition_value
- return_percent = return_value / acquisition_value * 100   (0 when acquisition_value == 0)
- monthly        = return_percent / (days / days_per_month)  (0 when days == 0)

Open holdings use "elapsed days" = ceil(|now - first_acquisition_at|), so
their monthly figure moves with the clock. A missing price yields PENDING
instead of numbers; PENDING is never zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Literal, Optional, Union

from positionbook.common.config import DEFAULT_DAYS_PER_MONTH
from positionbook.ledger.models import ZERO, ClosedDraft, ClosedPosition, OpenSummary, to_decimal, within_magnitude
from positionbook.time.utc import elapsed_days

HUNDRED = Decimal("100")


class QuotePending:
    """Marker for "no usable price yet". Use the PENDING singleton."""

    _instance: Optional["QuotePending"] = None

    def __new__(cls) -> "QuotePending":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"

    def __reduce__(self) -> str:
        return "PENDING"


PENDING = QuotePending()

PriceStatus = Literal["priced", "pending"]
MaybeDecimal = Union[Decimal, QuotePending]


def is_pending(v: Any) -> bool:
    return v is PENDING


def resolve_price(v: Any) -> MaybeDecimal:
    """
    Turn a Price Source answer into a usable price or PENDING.

    None, non-numeric, non-finite, non-positive and out-of-range answers are
    all "unavailable".
    """
    if v is None or v is PENDING or isinstance(v, bool):
        return PENDING
    try:
        d = to_decimal(v)
    except (InvalidOperation, ValueError, TypeError):
        return PENDING
    if not within_magnitude(d) or d <= 0:
        return PENDING
    return d


def return_value(current_value: Decimal, distributions: Decimal, acquisition_value: Decimal) -> Decimal:
    return (current_value + distributions) - acquisition_value


def return_percent(value: Decimal, acquisition_value: Decimal) -> Decimal:
    if acquisition_value == 0:
        return ZERO
    return value / acquisition_value * HUNDRED


def monthly_return_percent(pct: Decimal, days: int, *, days_per_month: int = DEFAULT_DAYS_PER_MONTH) -> Decimal:
    months = Decimal(days) / Decimal(days_per_month)
    if months > 0:
        return pct / months
    return ZERO


def finalize_closed(
    draft: ClosedDraft,
    distributions: Decimal,
    *,
    days_per_month: int = DEFAULT_DAYS_PER_MONTH,
) -> ClosedPosition:
    rv = return_value(draft.disposal_value, distributions, draft.acquisition_value)
    pct = return_percent(rv, draft.acquisition_value)
    return ClosedPosition(
        instrument=draft.instrument,
        quantity=draft.quantity,
        unit_cost=draft.unit_cost,
        disposal_price=draft.disposal_price,
        acquired_at=draft.acquired_at,
        disposed_at=draft.disposed_at,
        acquisition_value=draft.acquisition_value,
        disposal_value=draft.disposal_value,
        attributed_distributions=distributions,
        holding_days=draft.holding_days,
        realized_return_value=rv,
        realized_return_percent=pct,
        monthly_return_percent=monthly_return_percent(pct, draft.holding_days, days_per_month=days_per_month),
        acquisition_record_id=draft.acquisition_record_id,
        disposal_record_id=draft.disposal_record_id,
    )


@dataclass(frozen=True, slots=True)
class OpenValuation:
    """Mark-to-market of one open holding at an evaluation instant."""

    instrument: str
    quantity_open: int
    acquisition_value: Decimal
    distributions: Decimal
    elapsed_days: int
    current_price: MaybeDecimal
    current_value: MaybeDecimal
    return_value: MaybeDecimal
    return_percent: MaybeDecimal
    monthly_return_percent: MaybeDecimal

    @property
    def price_status(self) -> PriceStatus:
        return "pending" if is_pending(self.current_price) else "priced"


def value_open(
    summary: OpenSummary,
    price: Any,
    *,
    now: datetime,
    days_per_month: int = DEFAULT_DAYS_PER_MONTH,
) -> OpenValuation:
    days = elapsed_days(summary.first_acquisition_at, now) if summary.first_acquisition_at is not None else 0
    px = resolve_price(price)
    base = dict(
        instrument=summary.instrument,
        quantity_open=summary.quantity_open,
        acquisition_value=summary.total_invested,
        distributions=summary.total_distributions_received,
        elapsed_days=days,
    )
    pending = OpenValuation(
        **base,
        current_price=PENDING,
        current_value=PENDING,
        return_value=PENDING,
        return_percent=PENDING,
        monthly_return_percent=PENDING,
    )
    if is_pending(px):
        return pending

    try:
        current = Decimal(summary.quantity_open) * px  # type: ignore[operator]
        rv = return_value(current, summary.total_distributions_received, summary.total_invested)
        pct = return_percent(rv, summary.total_invested)
        monthly = monthly_return_percent(pct, days, days_per_month=days_per_month)
    except DecimalException:
        # A quote that cannot be valued is treated like a missing one.
        return pending
    return OpenValuation(
        **base,
        current_price=px,
        current_value=current,
        return_value=rv,
        return_percent=pct,
        monthly_return_percent=monthly,
    )


__all__ = [
    "PENDING",
    "MaybeDecimal",
    "OpenValuation",
    "PriceStatus",
    "QuotePending",
    "finalize_closed",
    "is_pending",
    "monthly_return_percent",
    "resolve_price",
    "return_percent",
    "return_value",
    "value_open",
]
