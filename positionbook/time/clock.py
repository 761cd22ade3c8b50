"""
Injectable evaluation clock.

Open-position monthly returns depend on "now". Computations take a `Clock`
so callers (and tests) decide which instant "now" is.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from positionbook.time.utc import to_utc, utc_now


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock, tz-aware UTC."""

    def now(self) -> datetime:
        return utc_now()


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Always returns the same instant."""

    at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "at", to_utc(self.at))

    def now(self) -> datetime:
        return self.at


__all__ = ["Clock", "SystemClock", "FixedClock"]
