"""
Position ledger: FIFO lots, realized closures and return metrics.

This package is intentionally split into:
- models: record shapes (transactions, distributions) and lot/closure/summary shapes
- normalizer: intake validation + stable chronological ordering per instrument
- lots / matching: the FIFO lot queue and the single-pass matching engine
- distributions: cash distribution attribution to closed and open holdings
- returns / aggregate: valuation, return ratios and portfolio totals
- portfolio: `compute_portfolio`, the one entry point callers need

Everything here is pure (no persistence, no network) for deterministic testing.
"""
