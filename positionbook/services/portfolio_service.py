"""
Per-owner portfolio computation.

Concurrency model:
- One ledger computation at a time per owner (same-owner calls serialize).
- Different owners never wait on each other.
- Nothing computed is cached; every call rebuilds from the full history.

Price Source failures never fail the computation: the affected instruments are
rendered as pending and the failure is logged.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

from positionbook.common.config import LedgerSettings
from positionbook.common.logging import bind_request_id, log_event
from positionbook.contracts.portfolio import OWNER_ID_MAX_LENGTH, PortfolioReport
from positionbook.ledger.portfolio import PortfolioResult, build_positions, value_positions
from positionbook.services.interfaces import PriceSource, RecordStore
from positionbook.time.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def _owner_key(owner_id: Any) -> str:
    owner = str(owner_id or "").strip()
    if not owner:
        raise ValueError("owner_id is required")
    if len(owner) > OWNER_ID_MAX_LENGTH:
        raise ValueError(f"owner_id longer than {OWNER_ID_MAX_LENGTH} characters")
    return owner


class _OwnerLocks:
    """Per-owner locks, kept only while some caller holds or waits on them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, list] = {}  # owner -> [lock, users]

    @contextmanager
    def hold(self, owner_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(owner_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._entries[owner_id] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[owner_id]

    def busy(self, owner_id: str) -> bool:
        with self._guard:
            entry = self._entries.get(owner_id)
            return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class PortfolioService:
    def __init__(
        self,
        record_store: RecordStore,
        price_source: PriceSource,
        *,
        clock: Optional[Clock] = None,
        settings: Optional[LedgerSettings] = None,
    ) -> None:
        self._records = record_store
        self._prices = price_source
        self._clock = clock or SystemClock()
        self._settings = settings
        self._owner_locks = _OwnerLocks()

    def owner_busy(self, owner_id: str) -> bool:
        """True while a computation for this owner is running."""
        return self._owner_locks.busy(_owner_key(owner_id))

    @property
    def tracked_owners(self) -> int:
        return len(self._owner_locks)

    def _fetch_prices(self, codes: Sequence[str]) -> Mapping[str, Any]:
        if not codes:
            return {}
        try:
            return dict(self._prices.get_prices(list(codes)))
        except Exception as e:
            log_event(
                logger,
                "prices.fetch_failed",
                severity="ERROR",
                message=f"price source failed: {type(e).__name__}: {e}",
                instruments=list(codes),
            )
            return {}

    def portfolio_for(self, owner_id: str) -> PortfolioResult:
        owner = _owner_key(owner_id)
        with bind_request_id(), self._owner_locks.hold(owner):
            records = self._records.load_records(owner)
            positions = build_positions(records.transactions, records.distributions, settings=self._settings)
            prices = self._fetch_prices(positions.open_instruments)
            return value_positions(positions, prices, clock=self._clock)

    def report_for(self, owner_id: str) -> PortfolioReport:
        owner = _owner_key(owner_id)
        return PortfolioReport.from_result(self.portfolio_for(owner), owner_id=owner)


__all__ = ["PortfolioService"]
