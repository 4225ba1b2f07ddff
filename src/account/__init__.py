"""
Account bookkeeping: one aggregate position and the cash/margin ledger.

The ledger is the only writer of balance state; the executor reaches it
through apply_execution.
"""

from account.ledger import AccountLedger, TradeStats
from account.position import FillEffect, PositionTracker

__all__ = ["AccountLedger", "FillEffect", "PositionTracker", "TradeStats"]
