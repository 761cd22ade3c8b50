"""
Serialized shapes of ledger outputs.

Rule of thumb:
- The ledger OWNS behavior.
- Contracts OWN payload shapes handed to presentation layers.
"""
