"""
Attach cash distributions to closed positions and open holdings.

Closed positions: every distribution of the instrument dated inside the
inclusive window [acquired_at, disposed_at] counts in full. Two closures whose
windows overlap the same date both see that distribution (no share-count
split).

Open holdings, by policy:
- "unattributed": distributions dated on/after the oldest still-open lot that
  fall outside every closed window of the instrument.
- "all": every distribution of the instrument, whatever its date.

Distributions that match neither side are dropped and reported back so the
caller can log them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from positionbook.common.config import OpenDistributionPolicy
from positionbook.ledger.models import ZERO, ClosedDraft, Distribution


@dataclass(frozen=True, slots=True)
class Attribution:
    closed: tuple[Decimal, ...]  # aligned with the drafts passed in
    open_total: Decimal
    dropped: tuple[Distribution, ...]


def _in_window(d: Distribution, start: datetime, end: datetime) -> bool:
    return start <= d.timestamp <= end


def sum_in_window(distributions: Iterable[Distribution], start: datetime, end: datetime) -> Decimal:
    return sum((d.amount for d in distributions if _in_window(d, start, end)), ZERO)


def attribute(
    instrument: str,
    drafts: Sequence[ClosedDraft],
    distributions: Iterable[Distribution],
    *,
    oldest_open_at: Optional[datetime],
    quantity_open: int,
    policy: OpenDistributionPolicy = "unattributed",
) -> Attribution:
    dists = [d for d in distributions if d.instrument == instrument]
    windows = [(c.acquired_at, c.disposed_at) for c in drafts]

    closed = tuple(sum_in_window(dists, start, end) for start, end in windows)

    claimed = [any(_in_window(d, s, e) for s, e in windows) for d in dists]

    open_total = ZERO
    open_claimed = [False] * len(dists)
    if quantity_open > 0:
        for i, d in enumerate(dists):
            if policy == "all":
                take = True
            else:
                take = (
                    oldest_open_at is not None
                    and d.timestamp >= oldest_open_at
                    and not claimed[i]
                )
            if take:
                open_total += d.amount
                open_claimed[i] = True

    dropped = tuple(d for i, d in enumerate(dists) if not claimed[i] and not open_claimed[i])
    return Attribution(closed=closed, open_total=open_total, dropped=dropped)


__all__ = ["Attribution", "attribute", "sum_in_window"]
