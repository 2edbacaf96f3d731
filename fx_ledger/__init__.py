"""
FX Ledger

Cross-currency money transfers with exact Decimal arithmetic, a fixed
base-currency conversion table, percentage fees and optimistic concurrency
on every account write.
"""

__version__ = "1.0.0"
