"""
FIFO matching of disposals against open lots.

Choice: FIFO (first-in-first-out), long-only.

- Acquire -> new lot at the tail, unit_cost = unit_price.
- Dispose -> drain lots from the head; one ClosedDraft per lot touched.
- Single pass, no look-ahead: an acquisition recorded after a disposal can
  never satisfy it. A disposal larger than the open quantity raises
  OverDisposal and leaves the queue as it was before that event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from positionbook.ledger.lots import LotQueue
from positionbook.ledger.models import ACQUIRE, ZERO, ClosedDraft, Lot, Transaction
from positionbook.time.utc import ceil_days


@dataclass(slots=True)
class InstrumentState:
    queue: LotQueue
    drafts: list[ClosedDraft] = field(default_factory=list)
    acquired_quantity: int = 0
    lifetime_acquired_value: Decimal = ZERO


class Ledger:
    """
    Per-computation matching state, indexed by instrument code.

    Built fresh for each computation and never shared across calls.
    """

    def __init__(self) -> None:
        self._states: dict[str, InstrumentState] = {}

    def __contains__(self, instrument: str) -> bool:
        return instrument in self._states

    def instruments(self) -> list[str]:
        return sorted(self._states)

    def state(self, instrument: str) -> InstrumentState:
        st = self._states.get(instrument)
        if st is None:
            st = InstrumentState(queue=LotQueue(instrument))
            self._states[instrument] = st
        return st

    def discard(self, instrument: str) -> None:
        self._states.pop(instrument, None)

    def apply(self, event: Transaction) -> list[ClosedDraft]:
        """Apply one already-validated event. Returns the drafts it produced."""

        st = self.state(event.instrument)
        if event.kind == ACQUIRE:
            st.queue.push(
                Lot(
                    instrument=event.instrument,
                    quantity_remaining=event.quantity,
                    unit_cost=event.unit_price,
                    acquired_at=event.timestamp,
                    record_id=event.record_id,
                )
            )
            st.acquired_quantity += event.quantity
            st.lifetime_acquired_value += event.total_value
            return []

        matches = st.queue.consume(event.quantity, record_id=event.record_id)
        out: list[ClosedDraft] = []
        for m in matches:
            qty = Decimal(m.matched_quantity)
            out.append(
                ClosedDraft(
                    instrument=event.instrument,
                    quantity=m.matched_quantity,
                    unit_cost=m.lot.unit_cost,
                    disposal_price=event.unit_price,
                    acquired_at=m.lot.acquired_at,
                    disposed_at=event.timestamp,
                    acquisition_value=qty * m.lot.unit_cost,
                    disposal_value=qty * event.unit_price,
                    holding_days=max(0, ceil_days(event.timestamp - m.lot.acquired_at)),
                    acquisition_record_id=m.lot.record_id,
                    disposal_record_id=event.record_id,
                )
            )
        st.drafts.extend(out)
        return out

    def apply_all(self, events: Iterable[Transaction]) -> None:
        for e in events:
            self.apply(e)


def match_events(instrument: str, events: Iterable[Transaction]) -> InstrumentState:
    """
    Run one instrument's ordered events through a fresh ledger.

    Raises OverDisposal on the first disposal that cannot be covered.
    """

    ledger = Ledger()
    st = ledger.state(instrument)
    for e in events:
        if e.instrument != instrument:
            raise ValueError(f"event {e.record_id!r} is for {e.instrument}, not {instrument}")
        ledger.apply(e)
    return st


__all__ = ["InstrumentState", "Ledger", "match_events"]
