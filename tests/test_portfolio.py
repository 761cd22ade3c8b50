from __future__ import annotations

import decimal
import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from positionbook.common.config import LedgerSettings
from positionbook.contracts.portfolio import PortfolioReport
from positionbook.ledger.errors import InvalidInput, OverDisposal
from positionbook.ledger.portfolio import build_positions, compute_portfolio, value_positions
from positionbook.ledger.returns import PENDING
from positionbook.ledger.sample_dataset import (
    EXPECTED_CLOSED,
    EXPECTED_OPEN,
    EXPECTED_TOTALS,
    SAMPLE_AS_OF,
    SAMPLE_DISTRIBUTIONS,
    SAMPLE_PRICES,
    SAMPLE_TRANSACTIONS,
)
from positionbook.time.clock import FixedClock


def _dt(y: int, m: int, d: int, hh: int = 12, mm: int = 0, ss: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=timezone.utc)


def _buy(code: str, qty, price, ts, rid: str | None = None) -> dict:
    row = {"instrument": code, "kind": "acquire", "quantity": qty, "unit_price": price, "timestamp": ts}
    if rid is not None:
        row["record_id"] = rid
    return row


def _dividend(code: str, amount, ts, rid: str | None = None) -> dict:
    row = {"instrument": code, "amount": amount, "timestamp": ts}
    if rid is not None:
        row["record_id"] = rid
    return row


def _sell(code: str, qty, price, ts, rid: str | None = None) -> dict:
    row = {"instrument": code, "kind": "dispose", "quantity": qty, "unit_price": price, "timestamp": ts}
    if rid is not None:
        row["record_id"] = rid
    return row


def _sample():
    return compute_portfolio(
        SAMPLE_TRANSACTIONS,
        SAMPLE_DISTRIBUTIONS,
        SAMPLE_PRICES,
        clock=FixedClock(SAMPLE_AS_OF),
    )


def test_sample_dataset_closed_history_matches_expected() -> None:
    res = _sample()
    assert len(res.closed_positions) == len(EXPECTED_CLOSED)
    for got, exp in zip(res.closed_positions, EXPECTED_CLOSED):
        assert got.instrument == exp["instrument"]
        assert got.quantity == exp["quantity"]
        assert got.holding_days == exp["holding_days"]
        assert got.realized_return_value == Decimal(exp["realized_return_value"])
        assert got.realized_return_percent == Decimal(exp["realized_return_percent"])
        assert got.monthly_return_percent == Decimal(exp["monthly_return_percent"])


def test_sample_dataset_open_holdings_match_expected() -> None:
    res = _sample()
    assert [s.instrument for s in res.open_summaries] == ["PETR4", "VALE3"]

    for code, exp in EXPECTED_OPEN.items():
        s = res.summary_for(code)
        v = res.valuation_for(code)
        assert s is not None and v is not None
        assert s.quantity_open == exp["quantity_open"]
        assert s.weighted_average_cost == Decimal(exp["weighted_average_cost"])
        assert s.total_invested == Decimal(exp["total_invested"])
        assert s.total_distributions_received == Decimal(exp["total_distributions_received"])
        assert s.lifetime_acquired_value == Decimal(exp["lifetime_acquired_value"])
        assert v.elapsed_days == exp["elapsed_days"]
        if "current_value" in exp:
            assert v.current_value == Decimal(exp["current_value"])
            assert v.return_value == Decimal(exp["return_value"])
            assert v.return_percent == Decimal(exp["return_percent"])
            assert v.monthly_return_percent == Decimal(exp["monthly_return_percent"])
        else:
            assert v.current_value is PENDING


def test_sample_dataset_totals_match_expected() -> None:
    t = _sample().totals
    assert t.total_invested == Decimal(EXPECTED_TOTALS["total_invested"])
    assert t.priced_invested == Decimal(EXPECTED_TOTALS["priced_invested"])
    assert t.total_current_value == Decimal(EXPECTED_TOTALS["total_current_value"])
    assert t.return_value == Decimal(EXPECTED_TOTALS["return_value"])
    assert t.return_percent == Decimal(EXPECTED_TOTALS["return_percent"])
    assert t.realized_return_value == Decimal(EXPECTED_TOTALS["realized_return_value"])
    assert list(t.pending_instruments) == EXPECTED_TOTALS["pending_instruments"]


def test_fully_closed_instrument_has_no_open_summary() -> None:
    res = _sample()
    assert res.summary_for("ITSA4") is None
    assert any(c.instrument == "ITSA4" for c in res.closed_positions)


def test_over_disposal_halts_only_that_instrument(caplog) -> None:
    caplog.set_level(logging.WARNING)
    res = compute_portfolio(
        [
            _buy("AAA", 10, "10", _dt(2024, 1, 1)),
            _sell("AAA", 4, "12", _dt(2024, 1, 5)),
            _buy("BAD", 5, "10", _dt(2024, 1, 1)),
            _sell("BAD", 6, "12", _dt(2024, 1, 2), rid="too-many"),
        ],
        [_dividend("BAD", "1", _dt(2024, 1, 1))],
        {"AAA": "11", "BAD": "11"},
        as_of=_dt(2024, 2, 1),
    )
    assert [s.instrument for s in res.open_summaries] == ["AAA"]
    assert all(c.instrument == "AAA" for c in res.closed_positions)
    assert not res.ok
    [err] = res.errors
    assert isinstance(err, OverDisposal)
    assert (err.instrument, err.record_id, err.requested, err.available) == ("BAD", "too-many", 6, 5)

    failed = [r for r in caplog.records if getattr(r, "event_type", None) == "ledger.instrument_failed"]
    assert len(failed) == 1
    assert failed[0].kind == "over_disposal"
    assert failed[0].record_id == "too-many"


def test_invalid_record_halts_only_that_instrument() -> None:
    res = compute_portfolio(
        [
            _buy("AAA", 1, "10", _dt(2024, 1, 1)),
            _buy("BAD", 1, "0", _dt(2024, 1, 1), rid="free"),
            _buy("", 1, "10", _dt(2024, 1, 1), rid="nameless"),
        ],
        as_of=_dt(2024, 2, 1),
    )
    assert [s.instrument for s in res.open_summaries] == ["AAA"]
    kinds = sorted((type(e).__name__, e.record_id) for e in res.errors)
    assert kinds == [("InvalidInput", "free"), ("InvalidInput", "nameless")]
    assert all(isinstance(e, InvalidInput) for e in res.errors)


def test_unvaluable_record_halts_only_that_instrument() -> None:
    res = compute_portfolio(
        [
            _buy("AAA", 10, "1e999999", _dt(2024, 1, 1), rid="huge"),
            _buy("BBB", 2, "10", _dt(2024, 1, 1)),
        ],
        prices_by_instrument={"AAA": "10", "BBB": "12"},
        as_of=_dt(2024, 2, 1),
    )
    assert [s.instrument for s in res.open_summaries] == ["BBB"]
    [err] = res.errors
    assert isinstance(err, InvalidInput)
    assert (err.instrument, err.record_id) == ("AAA", "huge")
    assert "out of range" in err.reason
    assert res.totals.total_current_value == Decimal("24")


def test_unvaluable_quote_is_pending_and_other_instruments_still_priced() -> None:
    recs = [_buy("AAA", 10, "10", _dt(2024, 1, 1)), _buy("BBB", 2, "10", _dt(2024, 1, 1))]
    res = compute_portfolio(recs, prices_by_instrument={"AAA": "1e999999", "BBB": "12"}, as_of=_dt(2024, 2, 1))
    assert res.ok
    assert res.valuation_for("AAA").price_status == "pending"
    assert res.valuation_for("BBB").current_value == Decimal("24")
    assert res.totals.pending_instruments == ("AAA",)
    PortfolioReport.from_result(res).to_json()


def test_arithmetic_failure_halts_only_that_instrument(monkeypatch, caplog) -> None:
    import positionbook.ledger.portfolio as portfolio_mod

    real = portfolio_mod.finalize_closed

    def _overflowing(draft, amount, **kw):
        if draft.instrument == "AAA":
            raise decimal.Overflow("result too large")
        return real(draft, amount, **kw)

    monkeypatch.setattr(portfolio_mod, "finalize_closed", _overflowing)
    caplog.set_level(logging.WARNING)
    res = compute_portfolio(
        [
            _buy("AAA", 1, "10", _dt(2024, 1, 1)),
            _sell("AAA", 1, "11", _dt(2024, 1, 2)),
            _buy("BBB", 1, "10", _dt(2024, 1, 1)),
            _sell("BBB", 1, "12", _dt(2024, 1, 2)),
        ],
        as_of=_dt(2024, 2, 1),
    )
    assert [c.instrument for c in res.closed_positions] == ["BBB"]
    [err] = res.errors
    assert isinstance(err, InvalidInput)
    assert err.instrument == "AAA"
    assert "Overflow" in err.reason

    failed = [r for r in caplog.records if getattr(r, "event_type", None) == "ledger.instrument_failed"]
    assert [r.kind for r in failed] == ["invalid_input"]


def test_supplied_order_breaks_timestamp_ties() -> None:
    ts = _dt(2024, 1, 1)
    ok = compute_portfolio([_buy("X", 1, "10", ts), _sell("X", 1, "11", ts)], as_of=ts)
    assert ok.ok
    assert len(ok.closed_positions) == 1

    bad = compute_portfolio([_sell("X", 1, "11", ts), _buy("X", 1, "10", ts)], as_of=ts)
    assert isinstance(bad.errors[0], OverDisposal)


def test_input_order_across_different_instants_does_not_matter() -> None:
    recs = [
        _buy("X", 10, "10", _dt(2024, 1, 1), rid="b1"),
        _buy("X", 5, "12", _dt(2024, 1, 2), rid="b2"),
        _sell("X", 12, "13", _dt(2024, 1, 3), rid="s1"),
    ]
    a = compute_portfolio(recs, as_of=_dt(2024, 2, 1))
    b = compute_portfolio(list(reversed(recs)), as_of=_dt(2024, 2, 1))
    assert a.closed_positions == b.closed_positions
    assert a.open_summaries == b.open_summaries


def test_identical_inputs_give_byte_identical_reports() -> None:
    a = PortfolioReport.from_result(_sample(), owner_id="o1").to_json()
    b = PortfolioReport.from_result(_sample(), owner_id="o1").to_json()
    assert a == b


def test_open_holding_monthly_return_moves_with_clock() -> None:
    recs = [_buy("X", 10, "10", _dt(2024, 1, 1))]
    early = compute_portfolio(recs, prices_by_instrument={"X": "13"}, as_of=_dt(2024, 1, 31))
    late = compute_portfolio(recs, prices_by_instrument={"X": "13"}, as_of=_dt(2024, 3, 1))
    assert early.valuations[0].monthly_return_percent == Decimal("30")
    assert late.valuations[0].monthly_return_percent == Decimal("15")


def test_price_keys_are_normalized_and_non_positive_is_pending() -> None:
    recs = [_buy("AAA", 1, "10", _dt(2024, 1, 1)), _buy("BBB", 1, "10", _dt(2024, 1, 1))]
    res = compute_portfolio(recs, prices_by_instrument={" aaa ": "12", "BBB": 0}, as_of=_dt(2024, 1, 2))
    assert res.valuation_for("AAA").current_value == Decimal("12")
    assert res.valuation_for("bbb").price_status == "pending"
    assert res.totals.pending_instruments == ("BBB",)


def test_clock_and_as_of_are_mutually_exclusive() -> None:
    with pytest.raises(ValueError):
        compute_portfolio([], clock=FixedClock(_dt(2024, 1, 1)), as_of=_dt(2024, 1, 1))


def test_open_distribution_policy_all_via_settings() -> None:
    recs = [_buy("X", 10, "10", _dt(2024, 1, 1)), _sell("X", 5, "10", _dt(2024, 2, 1))]
    dists = [_dividend("X", "3", _dt(2024, 1, 15))]

    default = compute_portfolio(recs, dists, as_of=_dt(2024, 3, 1))
    assert default.summary_for("X").total_distributions_received == Decimal("0")

    all_policy = compute_portfolio(
        recs, dists, as_of=_dt(2024, 3, 1), settings=LedgerSettings(open_distribution_policy="all")
    )
    assert all_policy.summary_for("X").total_distributions_received == Decimal("3")
    assert all_policy.closed_positions[0].attributed_distributions == Decimal("3")


def test_open_distribution_policy_from_env(monkeypatch) -> None:
    monkeypatch.setenv("POSITIONBOOK_OPEN_DISTRIBUTION_POLICY", "all")
    recs = [_buy("X", 10, "10", _dt(2024, 1, 1)), _sell("X", 5, "10", _dt(2024, 2, 1))]
    res = compute_portfolio(recs, [_dividend("X", "3", _dt(2024, 1, 15))], as_of=_dt(2024, 3, 1))
    assert res.summary_for("X").total_distributions_received == Decimal("3")


def test_unattributed_distributions_are_reported_and_logged(caplog) -> None:
    caplog.set_level(logging.INFO)
    res = compute_portfolio(
        [_buy("X", 1, "10", _dt(2024, 1, 10)), _sell("X", 1, "10", _dt(2024, 1, 20))],
        [_dividend("X", "2", _dt(2024, 3, 1), rid="orphan")],
        as_of=_dt(2024, 4, 1),
    )
    assert [d.record_id for d in res.unattributed_distributions] == ["orphan"]
    events = [r for r in caplog.records if getattr(r, "event_type", None) == "ledger.distributions_unattributed"]
    assert events and events[0].record_ids == ["orphan"]


def test_build_then_value_matches_compute(settings) -> None:
    positions = build_positions(SAMPLE_TRANSACTIONS, SAMPLE_DISTRIBUTIONS, settings=settings)
    assert positions.open_instruments == ("PETR4", "VALE3")
    staged = value_positions(positions, SAMPLE_PRICES, as_of=SAMPLE_AS_OF)
    direct = compute_portfolio(
        SAMPLE_TRANSACTIONS, SAMPLE_DISTRIBUTIONS, SAMPLE_PRICES, as_of=SAMPLE_AS_OF, settings=settings
    )
    assert staged == direct


def test_computed_event_can_be_disabled(caplog) -> None:
    caplog.set_level(logging.INFO)
    compute_portfolio([], as_of=_dt(2024, 1, 1), settings=LedgerSettings(log_computations=False))
    assert not [r for r in caplog.records if getattr(r, "event_type", None) == "ledger.computed"]

    compute_portfolio([], as_of=_dt(2024, 1, 1))
    assert [r for r in caplog.records if getattr(r, "event_type", None) == "ledger.computed"]
