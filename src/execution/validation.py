"""
Order validation: Order + tick + account view -> accept, or OrderRejectedError.

Checks run in a fixed order and the first failure wins:
    side, order kind, size, instrument volume range, limit price,
    margin on the exposure increase, position limits.

Rejections never leave the executor as exceptions; the executor turns them
into REJECTED executions.
"""

from __future__ import annotations

from dataclasses import dataclass

from holodeck_core.contracts import (
    EPSILON,
    AccountStatus,
    Instrument,
    Order,
    OrderKind,
    RejectReason,
    Side,
    Tick,
)
from holodeck_core.errors import OrderRejectedError


@dataclass(frozen=True)
class PositionLimits:
    """Caps on the aggregate position. max_position_size is in lots."""

    max_position_size: float
    max_open_positions: int = 1


def side_sign(side: Side) -> int:
    return 1 if side == Side.BUY else -1


def exposure_increase(current: float, side: Side, size: float) -> float:
    """Lots by which |position| grows if *size* lots fill on *side*.

    *current* is the signed position (+long, -short).
    """
    after = current + side_sign(side) * size
    return max(0.0, abs(after) - abs(current))


def reference_price(order: Order, tick: Tick) -> float:
    """Price at which margin is checked: the limit for LIMITs, else the touch."""
    if order.kind == OrderKind.LIMIT and order.limit_price:
        return float(order.limit_price)
    return tick.price_for(order.side)


def check_margin(
    order: Order,
    size: float,
    price: float,
    *,
    instrument: Instrument,
    signed_position: float,
    available_margin: float,
    status: AccountStatus,
) -> None:
    """Raise INSUFFICIENT_MARGIN if filling *size* lots at *price* is not covered."""
    increase = exposure_increase(signed_position, order.side, size)
    if increase <= EPSILON:
        return
    if status == AccountStatus.AT_LIMIT:
        raise OrderRejectedError(
            RejectReason.INSUFFICIENT_MARGIN,
            "account at limit: only exposure-reducing orders are accepted",
        )
    required = instrument.required_margin(price, increase)
    if required > available_margin + EPSILON:
        raise OrderRejectedError(
            RejectReason.INSUFFICIENT_MARGIN,
            f"required margin {required:.2f} exceeds available {available_margin:.2f}",
        )


def validate_order(
    order: Order,
    tick: Tick,
    *,
    instrument: Instrument,
    limits: PositionLimits,
    signed_position: float,
    available_margin: float,
    status: AccountStatus,
) -> None:
    """Validate a non-HOLD order against the instrument and the account.

    Parameters
    ----------
    order:
        Agent order. Its side and kind may still be raw strings if the agent
        passed values outside the enums.
    tick:
        Tick the order would be routed against; its touch prices the margin
        check of MARKET orders.
    instrument:
        Volume range and margin rate.
    limits:
        Position size and open-position caps.
    signed_position, available_margin, status:
        Read-only account view at validation time.

    Raises
    ------
    OrderRejectedError
        With the RejectReason of the first failed check.
    """
    # --- Shape ---

    if not isinstance(order.side, Side) or order.side == Side.HOLD:
        raise OrderRejectedError(RejectReason.UNSUPPORTED_SIDE, f"unsupported side {order.side!r}")

    if not isinstance(order.kind, OrderKind):
        raise OrderRejectedError(RejectReason.UNSUPPORTED_ORDER_TYPE, f"unsupported order type {order.kind!r}")

    size = order.size
    if size is None or size <= 0:
        raise OrderRejectedError(RejectReason.SIZE_OUT_OF_RANGE, f"size must be > 0, got {size}")

    if not instrument.is_valid_volume(size):
        raise OrderRejectedError(
            RejectReason.SIZE_OUT_OF_RANGE,
            f"size {size} outside [{instrument.min_volume}, {instrument.max_volume}]",
        )

    if order.kind == OrderKind.LIMIT and (order.limit_price is None or order.limit_price <= 0):
        raise OrderRejectedError(RejectReason.PRICE_INVALID, f"limit price must be > 0, got {order.limit_price}")

    # --- Account ---

    check_margin(
        order,
        size,
        reference_price(order, tick),
        instrument=instrument,
        signed_position=signed_position,
        available_margin=available_margin,
        status=status,
    )

    check_position_limits(order, size, signed_position=signed_position, limits=limits)


def check_position_limits(
    order: Order,
    size: float,
    *,
    signed_position: float,
    limits: PositionLimits,
) -> None:
    """Raise POSITION_LIMIT if filling *size* lots breaks the size cap or the open-position count."""
    after = signed_position + side_sign(order.side) * size
    if abs(after) > limits.max_position_size + EPSILON and abs(after) > abs(signed_position) + EPSILON:
        raise OrderRejectedError(
            RejectReason.POSITION_LIMIT,
            f"position {abs(after)} lots would exceed max position size {limits.max_position_size}",
        )

    open_after = 0 if abs(after) <= EPSILON else 1
    open_before = 0 if abs(signed_position) <= EPSILON else 1
    if open_after > open_before and open_after > limits.max_open_positions:
        raise OrderRejectedError(
            RejectReason.POSITION_LIMIT,
            f"open positions would exceed maximum ({limits.max_open_positions})",
        )
