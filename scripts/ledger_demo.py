from __future__ import annotations

import json
import os
import sys

# Allow running as: `python3 scripts/ledger_demo.py` from repo root.
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from positionbook.common.logging import init_structured_logging
from positionbook.ledger.sample_dataset import (
    EXPECTED_TOTALS,
    OWNER_ID,
    SAMPLE_AS_OF,
    SAMPLE_DISTRIBUTIONS,
    SAMPLE_PRICES,
    SAMPLE_TRANSACTIONS,
)
from positionbook.services.memory import InMemoryRecordStore, StaticPriceSource
from positionbook.services.portfolio_service import PortfolioService
from positionbook.time.clock import FixedClock


def main() -> None:
    init_structured_logging(service="positionbook-demo")

    store = InMemoryRecordStore()
    for row in SAMPLE_TRANSACTIONS:
        store.add_transaction(OWNER_ID, row)
    for row in SAMPLE_DISTRIBUTIONS:
        store.add_distribution(OWNER_ID, row)

    svc = PortfolioService(store, StaticPriceSource(SAMPLE_PRICES), clock=FixedClock(SAMPLE_AS_OF))
    report = svc.report_for(OWNER_ID)

    print("Portfolio report:")
    print(json.dumps(json.loads(report.to_json()), indent=2, sort_keys=True))
    print("\nExpected totals:")
    print(json.dumps(EXPECTED_TOTALS, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
