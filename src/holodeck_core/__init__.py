"""
holodeck-core: pure pricing and data contracts for the simulated exchange.

No I/O, no clock, no side effects. Instruments, ticks, orders and
executions plus the commission, slippage and partial-fill models that
price a fill.
"""

from holodeck_core.commission import CommissionLedger, commission_for
from holodeck_core.contracts import (
    AccountStatus,
    AssetClass,
    BalanceSnapshot,
    BalanceUpdate,
    DepthLevel,
    Execution,
    Instrument,
    Order,
    OrderKind,
    OrderStatus,
    PositionSide,
    PositionSnapshot,
    RejectReason,
    Side,
    SimulatorStatus,
    Tick,
    TimeInForce,
)
from holodeck_core.errors import ErrorKind, HolodeckError
from holodeck_core.instruments import make_instrument
from holodeck_core.partial_fill import PartialFillPolicy
from holodeck_core.slippage import slippage_model_for

__all__ = [
    "AccountStatus",
    "AssetClass",
    "BalanceSnapshot",
    "BalanceUpdate",
    "commission_for",
    "CommissionLedger",
    "DepthLevel",
    "ErrorKind",
    "Execution",
    "HolodeckError",
    "Instrument",
    "make_instrument",
    "Order",
    "OrderKind",
    "OrderStatus",
    "PartialFillPolicy",
    "PositionSide",
    "PositionSnapshot",
    "RejectReason",
    "Side",
    "SimulatorStatus",
    "slippage_model_for",
    "Tick",
    "TimeInForce",
]
