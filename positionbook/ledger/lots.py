from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Deque, Optional

from positionbook.ledger.errors import OverDisposal
from positionbook.ledger.models import ZERO, Lot, OpenLot


@dataclass(frozen=True, slots=True)
class LotMatch:
    """
    One slice of a disposal matched against one lot.

    `lot` is a read-only copy taken at match time; its quantity_remaining is the
    lot's quantity *before* this match.
    """

    lot: OpenLot
    matched_quantity: int


@dataclass(frozen=True, slots=True)
class QueueSnapshot:
    instrument: str
    quantity_open: int
    weighted_average_cost: Decimal
    total_invested: Decimal
    first_acquisition_at: Optional[datetime]
    oldest_open_at: Optional[datetime]
    lots: tuple[OpenLot, ...]


def _freeze(lot: Lot) -> OpenLot:
    return OpenLot(
        quantity_remaining=lot.quantity_remaining,
        unit_cost=lot.unit_cost,
        acquired_at=lot.acquired_at,
        record_id=lot.record_id,
    )


class LotQueue:
    """
    FIFO inventory of open lots for one instrument.

    - push: newest lot goes to the tail
    - consume: drains from the head (oldest first); all-or-nothing
    - first_acquisition_at survives after the lots that set it are closed
    """

    def __init__(self, instrument: str) -> None:
        self.instrument = instrument
        self._lots: Deque[Lot] = deque()
        self._first_acquisition_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._lots)

    @property
    def quantity_open(self) -> int:
        return sum(lot.quantity_remaining for lot in self._lots)

    @property
    def first_acquisition_at(self) -> Optional[datetime]:
        return self._first_acquisition_at

    def push(self, lot: Lot) -> None:
        if lot.instrument != self.instrument:
            raise ValueError(f"lot for {lot.instrument} pushed onto {self.instrument} queue")
        if lot.quantity_remaining <= 0:
            raise ValueError("lot quantity must be > 0")
        self._lots.append(lot)
        if self._first_acquisition_at is None or lot.acquired_at < self._first_acquisition_at:
            self._first_acquisition_at = lot.acquired_at

    def consume(self, quantity: int, *, record_id: Optional[str] = None) -> list[LotMatch]:
        """
        Take `quantity` units from the oldest lots.

        Raises OverDisposal (queue untouched) if fewer than `quantity` units are open.
        """
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        available = self.quantity_open
        if quantity > available:
            raise OverDisposal(self.instrument, quantity, available, record_id=record_id)

        matches: list[LotMatch] = []
        remaining = quantity
        while remaining > 0:
            head = self._lots[0]
            take = min(remaining, head.quantity_remaining)
            matches.append(LotMatch(lot=_freeze(head), matched_quantity=take))
            head.quantity_remaining -= take
            remaining -= take
            if head.quantity_remaining == 0:
                self._lots.popleft()
        return matches

    def open_lots(self) -> tuple[OpenLot, ...]:
        return tuple(_freeze(lot) for lot in self._lots)

    def snapshot(self) -> QueueSnapshot:
        lots = self.open_lots()
        qty = sum(lot.quantity_remaining for lot in lots)
        invested = sum((lot.cost_basis for lot in lots), ZERO)
        wac = (invested / Decimal(qty)) if qty > 0 else ZERO
        return QueueSnapshot(
            instrument=self.instrument,
            quantity_open=qty,
            weighted_average_cost=wac,
            total_invested=invested,
            first_acquisition_at=self._first_acquisition_at,
            oldest_open_at=lots[0].acquired_at if lots else None,
            lots=lots,
        )


__all__ = ["LotMatch", "LotQueue", "QueueSnapshot"]
