from __future__ import annotations

"""
Collaborator boundaries for the ledger.

The engine needs the *complete* record history per owner (FIFO depends on
every acquisition) and a current unit price per open instrument. Where those
come from (database, broker export, quote API) is the implementer's concern.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional


@dataclass(frozen=True, slots=True)
class OwnerRecords:
    """Full history for one owner: transaction and distribution records (objects or row mappings)."""

    transactions: tuple[Any, ...] = field(default_factory=tuple)
    distributions: tuple[Any, ...] = field(default_factory=tuple)


class RecordStore(ABC):
    """
    Storage boundary for ledger records.

    No pagination contract: `load_records` must return everything for the owner.
    """

    @abstractmethod
    def load_records(self, owner_id: str) -> OwnerRecords: ...


class PriceSource(ABC):
    """
    Quote boundary.

    `get_prices` returns one entry per requested code; None means "unavailable"
    (the ledger renders that instrument as pending). No retry/caching is implied.
    """

    @abstractmethod
    def get_prices(self, codes: Iterable[str]) -> Mapping[str, Optional[Decimal]]: ...


__all__ = ["OwnerRecords", "PriceSource", "RecordStore"]
