"""
Simulated order execution: validation, routing, resting limits, latency.
Fills are priced by holodeck_core and booked by the account ledger.
"""

from execution.executor import OrderExecutor, day_expiry, is_marketable
from execution.validation import PositionLimits, validate_order

__all__ = ["day_expiry", "is_marketable", "OrderExecutor", "PositionLimits", "validate_order"]
