"""
Timestamp handling for ledger records.

Every instant the ledger compares or subtracts is a tz-aware UTC datetime.
Record stores hand us many shapes; they are all funnelled through `parse_ts`:
- aware datetimes are converted, naive ones are taken to already be UTC
- ISO-8601 strings, including a trailing "Z", and basic "YYYYMMDD" dates
- epoch numbers (or other numeric strings); magnitudes >= 1e12 are milliseconds
- objects exposing `to_pydatetime()` / `to_datetime()` (dataframe / driver types)
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")

_BASIC_DATE = re.compile(r"^\d{8}$")
_EPOCH_TEXT = re.compile(r"^[+-]?\d+(\.\d+)?$")
_EPOCH_MS_THRESHOLD = 1e12

_SECONDS_PER_DAY = 86400


def _converted(value: Any) -> Optional[datetime]:
    for name in ("to_pydatetime", "to_datetime"):
        conv: Optional[Callable[[], Any]] = getattr(value, name, None)
        if conv is None or not callable(conv):
            continue
        out = conv()
        return out if isinstance(out, datetime) else None
    return None


def _from_epoch(value: float) -> datetime:
    if abs(value) >= _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    return datetime.fromtimestamp(value, tz=UTC)


def _from_text(text: str) -> datetime:
    s = text.strip()
    if not s:
        raise ValueError("empty timestamp")
    if _BASIC_DATE.match(s):
        # YYYYMMDD reads as a calendar date, never as epoch seconds.
        try:
            return datetime.strptime(s, "%Y%m%d").replace(tzinfo=UTC)
        except ValueError:
            raise ValueError(f"not a YYYYMMDD date: {text!r}") from None
    if _EPOCH_TEXT.match(s):
        return _from_epoch(float(s))
    if s[-1] in "Zz":
        s = f"{s[:-1]}+00:00"
    try:
        return to_utc(datetime.fromisoformat(s))
    except ValueError:
        raise ValueError(f"not an ISO-8601 timestamp: {text!r}") from None


def parse_ts(x: Any) -> datetime:
    """Parse one record timestamp into an aware UTC datetime. Raises TypeError/ValueError."""

    if x is None:
        raise TypeError("missing timestamp")
    if isinstance(x, datetime):
        return to_utc(x)
    if isinstance(x, bool):
        raise TypeError("a bool is not a timestamp")
    if isinstance(x, (int, float)):
        return _from_epoch(float(x))
    if isinstance(x, str):
        return _from_text(x)

    converted = _converted(x)
    if converted is None:
        raise TypeError(f"cannot read a timestamp from {type(x).__name__}")
    return to_utc(converted)


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to tz-aware UTC. Naive datetimes are assumed UTC."""

    if not isinstance(dt, datetime):
        raise TypeError("to_utc expects a datetime")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Return current tz-aware UTC time."""

    return datetime.now(tz=UTC)


def ceil_days(delta: timedelta) -> int:
    """
    Whole days spanned by `delta`, rounding any partial day up.

    Integer arithmetic on the timedelta parts, so 36h -> 2 and exactly 48h -> 2.
    Negative spans round toward +inf like `math.ceil`.
    """

    total_us = (delta.days * _SECONDS_PER_DAY + delta.seconds) * 1_000_000 + delta.microseconds
    return -((-total_us) // (_SECONDS_PER_DAY * 1_000_000))


def elapsed_days(start: datetime, end: datetime) -> int:
    """Absolute whole-day distance between two instants, partial days rounded up."""

    return ceil_days(abs(to_utc(end) - to_utc(start)))


__all__ = ["UTC", "parse_ts", "to_utc", "utc_now", "ceil_days", "elapsed_days"]
