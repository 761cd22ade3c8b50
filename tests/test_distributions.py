from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from positionbook.ledger.distributions import attribute, sum_in_window
from positionbook.ledger.matching import match_events
from positionbook.ledger.models import Distribution
from positionbook.ledger.normalizer import normalize_events


def _dt(y: int, m: int, d: int, hh: int = 12, mm: int = 0, ss: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=timezone.utc)


def _buy(code: str, qty, price, ts, rid: str | None = None) -> dict:
    row = {"instrument": code, "kind": "acquire", "quantity": qty, "unit_price": price, "timestamp": ts}
    if rid is not None:
        row["record_id"] = rid
    return row


def _sell(code: str, qty, price, ts, rid: str | None = None) -> dict:
    row = {"instrument": code, "kind": "dispose", "quantity": qty, "unit_price": price, "timestamp": ts}
    if rid is not None:
        row["record_id"] = rid
    return row


def _dist(amount: str, ts, rid: str, code: str = "X") -> Distribution:
    return Distribution(instrument=code, amount=Decimal(amount), timestamp=ts, record_id=rid)


def _state(records):
    return match_events("X", normalize_events(records))


def test_window_is_inclusive_at_both_ends() -> None:
    start, end = _dt(2024, 1, 1), _dt(2024, 2, 1)
    dists = [
        _dist("1", _dt(2023, 12, 31), "before"),
        _dist("2", start, "at-start"),
        _dist("4", _dt(2024, 1, 15), "inside"),
        _dist("8", end, "at-end"),
        _dist("16", _dt(2024, 2, 2), "after"),
    ]
    assert sum_in_window(dists, start, end) == Decimal("14")


def test_closed_positions_each_see_full_overlapping_distribution() -> None:
    st = _state(
        [
            _buy("X", 10, "10", _dt(2024, 1, 1)),
            _buy("X", 10, "10", _dt(2024, 1, 10)),
            _sell("X", 20, "11", _dt(2024, 2, 1)),
        ]
    )
    dists = [_dist("5", _dt(2024, 1, 15), "d1"), _dist("3", _dt(2024, 1, 5), "d2")]
    snap = st.queue.snapshot()
    att = attribute(
        "X",
        st.drafts,
        dists,
        oldest_open_at=snap.oldest_open_at,
        quantity_open=snap.quantity_open,
    )
    # d1 falls in both windows; d2 only in the first lot's window.
    assert att.closed == (Decimal("8"), Decimal("5"))
    assert att.open_total == Decimal("0")
    assert att.dropped == ()


def test_unattributed_policy_gives_open_holding_only_unclaimed_later_distributions() -> None:
    st = _state(
        [
            _buy("X", 10, "10", _dt(2024, 1, 1)),
            _buy("X", 10, "10", _dt(2024, 3, 1)),
            _sell("X", 10, "11", _dt(2024, 2, 1)),
        ]
    )
    dists = [
        _dist("1", _dt(2023, 12, 1), "pre-history"),
        _dist("2", _dt(2024, 1, 20), "closed-window"),
        _dist("4", _dt(2024, 2, 15), "gap"),
        _dist("8", _dt(2024, 4, 1), "open"),
    ]
    snap = st.queue.snapshot()
    att = attribute(
        "X",
        st.drafts,
        dists,
        oldest_open_at=snap.oldest_open_at,
        quantity_open=snap.quantity_open,
        policy="unattributed",
    )
    assert att.closed == (Decimal("2"),)
    assert att.open_total == Decimal("8")
    assert [d.record_id for d in att.dropped] == ["pre-history", "gap"]


def test_all_policy_gives_open_holding_every_distribution() -> None:
    st = _state(
        [
            _buy("X", 10, "10", _dt(2024, 1, 1)),
            _sell("X", 5, "11", _dt(2024, 2, 1)),
        ]
    )
    dists = [_dist("2", _dt(2024, 1, 20), "a"), _dist("4", _dt(2024, 3, 1), "b")]
    snap = st.queue.snapshot()
    att = attribute(
        "X",
        st.drafts,
        dists,
        oldest_open_at=snap.oldest_open_at,
        quantity_open=snap.quantity_open,
        policy="all",
    )
    assert att.closed == (Decimal("2"),)
    assert att.open_total == Decimal("6")
    assert att.dropped == ()


def test_fully_closed_instrument_drops_later_distributions() -> None:
    st = _state([_buy("X", 1, "10", _dt(2024, 1, 1)), _sell("X", 1, "10", _dt(2024, 1, 2))])
    att = attribute(
        "X",
        st.drafts,
        [_dist("9", _dt(2024, 5, 1), "late")],
        oldest_open_at=None,
        quantity_open=0,
        policy="all",
    )
    assert att.closed == (Decimal("0"),)
    assert att.open_total == Decimal("0")
    assert [d.record_id for d in att.dropped] == ["late"]


def test_other_instruments_distributions_are_ignored() -> None:
    st = _state([_buy("X", 1, "10", _dt(2024, 1, 1)), _sell("X", 1, "10", _dt(2024, 2, 1))])
    att = attribute(
        "X",
        st.drafts,
        [_dist("9", _dt(2024, 1, 15), "y", code="Y")],
        oldest_open_at=None,
        quantity_open=0,
    )
    assert att.closed == (Decimal("0"),)
    assert att.dropped == ()


def test_distribution_attributed_only_to_windows_covering_its_date() -> None:
    st = _state(
        [
            _buy("X", 1, "10", _dt(2024, 1, 1)),
            _buy("X", 1, "10", _dt(2024, 1, 1)),
            _sell("X", 1, "10", _dt(2024, 1, 4)),
            _sell("X", 1, "10", _dt(2024, 1, 10)),
        ]
    )
    att = attribute(
        "X",
        st.drafts,
        [_dist("100", _dt(2024, 1, 5), "d")],
        oldest_open_at=None,
        quantity_open=0,
    )
    assert att.closed == (Decimal("0"), Decimal("100"))
