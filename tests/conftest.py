from __future__ import annotations

import logging

import pytest

from positionbook.common.config import LedgerSettings


@pytest.fixture(autouse=True)
def _clean_ledger_env(monkeypatch) -> None:
    for name in (
        "POSITIONBOOK_DAYS_PER_MONTH",
        "POSITIONBOOK_OPEN_DISTRIBUTION_POLICY",
        "POSITIONBOOK_LOG_COMPUTATIONS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings()


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
