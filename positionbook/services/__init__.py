"""
Service layer around the ledger: record/price collaborator ports, in-memory
implementations and the per-owner `PortfolioService`.
"""
