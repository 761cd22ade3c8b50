from __future__ import annotations

import threading
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from positionbook.ledger.models import normalize_instrument, to_decimal
from positionbook.services.interfaces import OwnerRecords, PriceSource, RecordStore


class InMemoryRecordStore(RecordStore):
    """
    Append-only, process-local record store.

    Intended for tests and demos; records keep their insertion order, which is
    the tie-break order for same-instant events.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._transactions: Dict[str, List[Any]] = {}
        self._distributions: Dict[str, List[Any]] = {}

    def add_transaction(self, owner_id: str, record: Any) -> None:
        with self._lock:
            self._transactions.setdefault(owner_id, []).append(record)

    def add_distribution(self, owner_id: str, record: Any) -> None:
        with self._lock:
            self._distributions.setdefault(owner_id, []).append(record)

    def load_records(self, owner_id: str) -> OwnerRecords:
        with self._lock:
            return OwnerRecords(
                transactions=tuple(self._transactions.get(owner_id, ())),
                distributions=tuple(self._distributions.get(owner_id, ())),
            )


class StaticPriceSource(PriceSource):
    """Fixed quotes, e.g. {"PETR4": "38.50"}. Unknown codes come back as None."""

    def __init__(self, prices: Optional[Mapping[str, Any]] = None) -> None:
        self._prices: Dict[str, Decimal] = {}
        for code, px in (prices or {}).items():
            self.set_price(code, px)

    def set_price(self, code: str, price: Any) -> None:
        self._prices[normalize_instrument(code)] = to_decimal(price)

    def clear_price(self, code: str) -> None:
        self._prices.pop(normalize_instrument(code), None)

    def get_prices(self, codes: Iterable[str]) -> Dict[str, Optional[Decimal]]:
        return {c: self._prices.get(normalize_instrument(c)) for c in codes}


__all__ = ["InMemoryRecordStore", "StaticPriceSource"]
