"""
positionbook package

Position accounting for an individual equity portfolio: FIFO lot matching,
distribution attribution and holding-period-normalized returns.

The engine lives in `positionbook.ledger`; `positionbook.services` wires it to
record stores and price sources.
"""

__version__ = "0.1.0"
