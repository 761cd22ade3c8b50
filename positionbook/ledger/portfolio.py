"""
Single entry point: raw records + prices -> open summaries, closed history, totals.

Pure with respect to its inputs: no I/O besides logging, no state kept between
calls. Given identical records, prices and evaluation instant, the result is
identical.

Per-instrument isolation: an InvalidInput or OverDisposal halts only the
instrument it belongs to (arithmetic the decimal context rejects surfaces as
InvalidInput); it is returned in `errors` and that instrument contributes
nothing else to the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import DecimalException
from typing import Any, Iterable, Mapping, Optional

from positionbook.common.config import LedgerSettings, load_settings
from positionbook.common.logging import log_event
from positionbook.ledger.aggregate import PortfolioTotals, aggregate_totals, sort_history
from positionbook.ledger.distributions import attribute
from positionbook.ledger.errors import InvalidInput, LedgerError, describe
from positionbook.ledger.matching import Ledger
from positionbook.ledger.models import ClosedPosition, Distribution, OpenSummary, normalize_instrument
from positionbook.ledger.normalizer import normalize_ledger, partition_records
from positionbook.ledger.returns import OpenValuation, finalize_closed, value_open
from positionbook.time.clock import Clock, SystemClock
from positionbook.time.utc import to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PortfolioResult:
    as_of: datetime
    open_summaries: tuple[OpenSummary, ...]
    valuations: tuple[OpenValuation, ...]  # aligned with open_summaries
    closed_positions: tuple[ClosedPosition, ...]  # most recent disposal first
    totals: PortfolioTotals
    errors: tuple[LedgerError, ...]
    unattributed_distributions: tuple[Distribution, ...] = ()

    def valuation_for(self, instrument: str) -> Optional[OpenValuation]:
        code = normalize_instrument(instrument)
        for v in self.valuations:
            if v.instrument == code:
                return v
        return None

    def summary_for(self, instrument: str) -> Optional[OpenSummary]:
        code = normalize_instrument(instrument)
        for s in self.open_summaries:
            if s.instrument == code:
                return s
        return None

    @property
    def ok(self) -> bool:
        return not self.errors


def _normalize_prices(prices: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in (prices or {}).items():
        code = normalize_instrument(k)
        if code:
            out[code] = v
    return out


def _resolve_now(clock: Optional[Clock], as_of: Optional[datetime]) -> datetime:
    if as_of is not None and clock is not None:
        raise ValueError("pass either clock or as_of, not both")
    if as_of is not None:
        return to_utc(as_of)
    return to_utc((clock or SystemClock()).now())


@dataclass(frozen=True, slots=True)
class Positions:
    """
    Price-independent stage: matched lots, closed history and open summaries.

    `open_instruments` is what a caller needs to ask a Price Source for.
    """

    open_summaries: tuple[OpenSummary, ...]
    closed_positions: tuple[ClosedPosition, ...]  # most recent disposal first
    errors: tuple[LedgerError, ...]
    unattributed_distributions: tuple[Distribution, ...]
    instrument_count: int
    settings: LedgerSettings

    @property
    def open_instruments(self) -> tuple[str, ...]:
        return tuple(s.instrument for s in self.open_summaries)


def _fail_instrument(ledger: Ledger, code: str, e: LedgerError, errors: list[LedgerError]) -> None:
    ledger.discard(code)
    errors.append(e)
    log_event(logger, "ledger.instrument_failed", severity="WARNING", message=str(e), **describe(e))


def build_positions(
    transactions: Iterable[Any],
    distributions: Iterable[Any] = (),
    *,
    settings: Optional[LedgerSettings] = None,
) -> Positions:
    """Normalize, FIFO-match and attribute distributions for every instrument."""

    cfg = settings or load_settings()

    batches, errors_list = partition_records(transactions, distributions)
    errors: list[LedgerError] = list(errors_list)
    for e in errors_list:
        log_event(logger, "ledger.instrument_failed", severity="WARNING", message=str(e), **describe(e))

    ledger = Ledger()
    summaries: list[OpenSummary] = []
    closed: list[ClosedPosition] = []
    dropped: list[Distribution] = []

    for code in sorted(batches):
        try:
            normalized = normalize_ledger(batches[code])
            state = ledger.state(code)
            ledger.apply_all(normalized.events)

            snap = state.queue.snapshot()
            attribution = attribute(
                code,
                state.drafts,
                normalized.distributions,
                oldest_open_at=snap.oldest_open_at,
                quantity_open=snap.quantity_open,
                policy=cfg.open_distribution_policy,
            )
            finished = [
                finalize_closed(draft, amount, days_per_month=cfg.days_per_month)
                for draft, amount in zip(state.drafts, attribution.closed)
            ]
        except DecimalException as exc:
            e = InvalidInput(None, f"arithmetic error: {type(exc).__name__}", instrument=code)
            _fail_instrument(ledger, code, e, errors)
            continue
        except LedgerError as e:
            _fail_instrument(ledger, code, e, errors)
            continue

        dropped.extend(attribution.dropped)
        closed.extend(finished)
        if snap.quantity_open > 0:
            summaries.append(
                OpenSummary(
                    instrument=code,
                    quantity_open=snap.quantity_open,
                    weighted_average_cost=snap.weighted_average_cost,
                    total_invested=snap.total_invested,
                    total_distributions_received=attribution.open_total,
                    first_acquisition_at=snap.first_acquisition_at,
                    lifetime_acquired_value=state.lifetime_acquired_value,
                    lots=snap.lots,
                )
            )

    if dropped:
        log_event(
            logger,
            "ledger.distributions_unattributed",
            severity="INFO",
            count=len(dropped),
            record_ids=[d.record_id for d in dropped],
        )

    return Positions(
        open_summaries=tuple(summaries),
        closed_positions=tuple(sort_history(closed)),
        errors=tuple(errors),
        unattributed_distributions=tuple(dropped),
        instrument_count=len(batches),
        settings=cfg,
    )


def value_positions(
    positions: Positions,
    prices_by_instrument: Optional[Mapping[str, Any]] = None,
    *,
    clock: Optional[Clock] = None,
    as_of: Optional[datetime] = None,
) -> PortfolioResult:
    """Mark open summaries to the supplied prices at the evaluation instant and total up."""

    cfg = positions.settings
    now = _resolve_now(clock, as_of)
    prices = _normalize_prices(prices_by_instrument)

    valuations = tuple(
        value_open(s, prices.get(s.instrument), now=now, days_per_month=cfg.days_per_month)
        for s in positions.open_summaries
    )
    totals = aggregate_totals(valuations, positions.closed_positions)

    if totals.pending_instruments:
        log_event(
            logger,
            "prices.unavailable",
            severity="WARNING",
            instruments=list(totals.pending_instruments),
        )
    if cfg.log_computations:
        log_event(
            logger,
            "ledger.computed",
            severity="INFO",
            instruments=positions.instrument_count,
            open_holdings=len(positions.open_summaries),
            closed_positions=len(positions.closed_positions),
            errors=len(positions.errors),
        )

    return PortfolioResult(
        as_of=now,
        open_summaries=positions.open_summaries,
        valuations=valuations,
        closed_positions=positions.closed_positions,
        totals=totals,
        errors=positions.errors,
        unattributed_distributions=positions.unattributed_distributions,
    )


def compute_portfolio(
    transactions: Iterable[Any],
    distributions: Iterable[Any] = (),
    prices_by_instrument: Optional[Mapping[str, Any]] = None,
    *,
    clock: Optional[Clock] = None,
    as_of: Optional[datetime] = None,
    settings: Optional[LedgerSettings] = None,
) -> PortfolioResult:
    """
    Compute the portfolio view from the full record history.

    Inputs:
    - transactions: Transaction objects or record-store mappings (any order)
    - distributions: Distribution objects or mappings (any order)
    - prices_by_instrument: {CODE -> unit price}; absent / None / non-positive = pending
    - clock / as_of: evaluation instant for open-holding elapsed days (default: wall clock)
    - settings: explicit LedgerSettings (default: read from env)
    """
    positions = build_positions(transactions, distributions, settings=settings)
    return value_positions(positions, prices_by_instrument, clock=clock, as_of=as_of)


__all__ = ["PortfolioResult", "Positions", "build_positions", "compute_portfolio", "value_positions"]
