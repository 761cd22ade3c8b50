from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from positionbook.ledger.models import ZERO, ClosedPosition
from positionbook.ledger.returns import OpenValuation, is_pending, return_percent


@dataclass(frozen=True, slots=True)
class PortfolioTotals:
    """
    Portfolio dashboard figures.

    Conventions:
    - total_invested: open cost basis across every open holding, priced or not
    - priced_invested / total_current_value / return_*: priced holdings only;
      pending holdings are left out rather than counted at zero
    - total_current_value includes open distributions
    - realized_return_value: sum over closed positions
    """

    total_invested: Decimal
    priced_invested: Decimal
    total_current_value: Decimal
    return_value: Decimal
    return_percent: Decimal
    realized_return_value: Decimal
    pending_instruments: tuple[str, ...]

    @property
    def all_priced(self) -> bool:
        return not self.pending_instruments


def aggregate_totals(
    valuations: Iterable[OpenValuation],
    closed_positions: Iterable[ClosedPosition] = (),
) -> PortfolioTotals:
    total_invested = ZERO
    priced_invested = ZERO
    current = ZERO
    pending: list[str] = []

    for v in valuations:
        total_invested += v.acquisition_value
        if is_pending(v.current_value):
            pending.append(v.instrument)
            continue
        priced_invested += v.acquisition_value
        current += v.current_value + v.distributions  # type: ignore[operator]

    rv = current - priced_invested
    realized = sum((c.realized_return_value for c in closed_positions), ZERO)
    return PortfolioTotals(
        total_invested=total_invested,
        priced_invested=priced_invested,
        total_current_value=current,
        return_value=rv,
        return_percent=return_percent(rv, priced_invested),
        realized_return_value=realized,
        pending_instruments=tuple(sorted(pending)),
    )


def sort_history(closed_positions: Sequence[ClosedPosition]) -> list[ClosedPosition]:
    """Most recent disposal first; same-instant closures keep emission order."""

    return sorted(closed_positions, key=lambda c: c.disposed_at, reverse=True)


__all__ = ["PortfolioTotals", "aggregate_totals", "sort_history"]
