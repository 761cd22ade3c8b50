from __future__ import annotations

from datetime import datetime, timezone

"""
Sample record-store rows + expected portfolio figures (FIFO).

Rows use the record-store column names:
  transactions:  id, stock_code, transaction_type, quantity, price_per_share, transaction_date
  dividends:     id, stock_code, amount, dividend_date
"""

OWNER_ID = "owner_demo"


def _ts(y: int, m: int, d: int, hh: int = 13, mm: int = 0, ss: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=timezone.utc)


SAMPLE_TRANSACTIONS: list[dict] = [
    {
        "id": "p1_buy_100_20",
        "stock_code": "PETR4",
        "transaction_type": "buy",
        "quantity": 100,
        "price_per_share": "20.00",
        "transaction_date": _ts(2024, 1, 10),
    },
    {
        "id": "p2_buy_50_25",
        "stock_code": "petr4",
        "transaction_type": "buy",
        "quantity": 50,
        "price_per_share": "25.00",
        "transaction_date": _ts(2024, 2, 15),
        # Stored totals are never trusted; quantity * price wins.
        "total_value": "9999.99",
    },
    # Close 120 shares (FIFO): 100@20 + 20@25 at 26
    {
        "id": "p3_sell_120_26",
        "stock_code": "PETR4",
        "transaction_type": "sell",
        "quantity": 120,
        "price_per_share": "26.00",
        "transaction_date": _ts(2024, 3, 10),
    },
    {
        "id": "v1_buy_10_60",
        "stock_code": "VALE3",
        "transaction_type": "buy",
        "quantity": 10,
        "price_per_share": "60.00",
        "transaction_date": _ts(2024, 5, 1),
    },
    # Same instant: supplied order decides (buy first, then sell).
    {
        "id": "i1_buy_200_10",
        "stock_code": "ITSA4",
        "transaction_type": "buy",
        "quantity": 200,
        "price_per_share": "10.00",
        "transaction_date": _ts(2024, 6, 3),
    },
    {
        "id": "i2_sell_200_9",
        "stock_code": "ITSA4",
        "transaction_type": "sell",
        "quantity": 200,
        "price_per_share": "9.00",
        "transaction_date": _ts(2024, 6, 3),
    },
]

SAMPLE_DISTRIBUTIONS: list[dict] = [
    # Inside both PETR4 closure windows -> counted in full by each.
    {"id": "d1_petr4_30", "stock_code": "PETR4", "amount": "30.00", "dividend_date": _ts(2024, 3, 1)},
    # After the last closure, on/after the oldest open lot -> open holding.
    {"id": "d2_petr4_15", "stock_code": "PETR4", "amount": "15.00", "dividend_date": _ts(2024, 4, 5)},
]

# VALE3 has no quote: it stays pending.
SAMPLE_PRICES: dict[str, str] = {"PETR4": "29.00"}

# Evaluation instant: 180 days after the first PETR4 acquisition.
SAMPLE_AS_OF = _ts(2024, 7, 8)


# Expected figures:
# - PETR4 closures (disposed 2024-03-10):
#   100@20 -> 26: acq 2000, disp 2600, dist 30, rv 630, 31.5%, 60 days -> 15.75%/month
#   20@25  -> 26: acq 500,  disp 520,  dist 30, rv 50,  10%,   24 days -> 12.5%/month
# - ITSA4 closure (disposed 2024-06-03): 200@10 -> 9, rv -200, -10%, 0 days -> 0%/month
# - PETR4 open: 30@25, invested 750, dist 15, value 30*29 = 870
#   rv = 870 + 15 - 750 = 135, 18%, 180 days -> 3%/month
# - VALE3 open: 10@60, invested 600, pending
# - Totals: invested 1350 (750 priced), current 885, rv 135 (18%), realized 480
EXPECTED_CLOSED: list[dict] = [
    {
        "instrument": "ITSA4",
        "quantity": 200,
        "holding_days": 0,
        "realized_return_value": "-200",
        "realized_return_percent": "-10",
        "monthly_return_percent": "0",
    },
    {
        "instrument": "PETR4",
        "quantity": 100,
        "holding_days": 60,
        "realized_return_value": "630",
        "realized_return_percent": "31.5",
        "monthly_return_percent": "15.75",
    },
    {
        "instrument": "PETR4",
        "quantity": 20,
        "holding_days": 24,
        "realized_return_value": "50",
        "realized_return_percent": "10",
        "monthly_return_percent": "12.5",
    },
]

EXPECTED_OPEN = {
    "PETR4": {
        "quantity_open": 30,
        "weighted_average_cost": "25",
        "total_invested": "750",
        "total_distributions_received": "15",
        "lifetime_acquired_value": "3250",
        "elapsed_days": 180,
        "current_value": "870",
        "return_value": "135",
        "return_percent": "18",
        "monthly_return_percent": "3",
    },
    "VALE3": {
        "quantity_open": 10,
        "weighted_average_cost": "60",
        "total_invested": "600",
        "total_distributions_received": "0",
        "lifetime_acquired_value": "600",
        "elapsed_days": 68,
    },
}

EXPECTED_TOTALS = {
    "total_invested": "1350",
    "priced_invested": "750",
    "total_current_value": "885",
    "return_value": "135",
    "return_percent": "18",
    "realized_return_value": "480",
    "pending_instruments": ["VALE3"],
}
