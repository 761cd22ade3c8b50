"""
Environment-driven ledger settings.

Read at call time (never at import time) so tests can monkeypatch the env.
Invalid values fall back to defaults rather than failing the computation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

OpenDistributionPolicy = Literal["unattributed", "all"]

DEFAULT_DAYS_PER_MONTH = 30
DEFAULT_OPEN_DISTRIBUTION_POLICY: OpenDistributionPolicy = "unattributed"

_OPEN_DISTRIBUTION_POLICIES: frozenset[str] = frozenset({"unattributed", "all"})


def _parse_bool_env(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _parse_int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except Exception:
        return int(default)


def _parse_choice_env(name: str, default: str, choices: frozenset[str]) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    """
    Knobs for the position accounting engine.

    - days_per_month: divisor turning holding days into "months" for monthly returns.
    - open_distribution_policy:
      - "unattributed": open holdings get distributions dated on/after their oldest
        open lot that no closed position already claimed.
      - "all": open holdings get every distribution of the instrument.
    - log_computations: emit a `ledger.computed` event per run.
    """

    days_per_month: int = DEFAULT_DAYS_PER_MONTH
    open_distribution_policy: OpenDistributionPolicy = DEFAULT_OPEN_DISTRIBUTION_POLICY
    log_computations: bool = True

    def __post_init__(self) -> None:
        if int(self.days_per_month) <= 0:
            raise ValueError("days_per_month must be > 0")
        if self.open_distribution_policy not in _OPEN_DISTRIBUTION_POLICIES:
            raise ValueError("open_distribution_policy must be 'unattributed' or 'all'")


def load_settings() -> LedgerSettings:
    days = _parse_int_env("POSITIONBOOK_DAYS_PER_MONTH", DEFAULT_DAYS_PER_MONTH)
    if days <= 0:
        days = DEFAULT_DAYS_PER_MONTH
    policy = _parse_choice_env(
        "POSITIONBOOK_OPEN_DISTRIBUTION_POLICY",
        DEFAULT_OPEN_DISTRIBUTION_POLICY,
        _OPEN_DISTRIBUTION_POLICIES,
    )
    return LedgerSettings(
        days_per_month=days,
        open_distribution_policy=policy,  # type: ignore[arg-type]
        log_computations=_parse_bool_env("POSITIONBOOK_LOG_COMPUTATIONS", True),
    )


__all__ = ["LedgerSettings", "OpenDistributionPolicy", "load_settings"]
