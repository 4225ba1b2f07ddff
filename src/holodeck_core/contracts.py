"""
Data contracts for holodeck-core: Instrument, Tick, Order, Execution and the
read-only snapshots the driver hands out.

No I/O; these are plain dataclasses and str enums so they serialise
directly into the journal.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple, Sequence

# Float comparisons on prices and money use this tolerance.
EPSILON = 1e-9


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AssetClass(str, Enum):
    FOREX = "FOREX"
    STOCKS = "STOCKS"
    COMMODITIES = "COMMODITIES"
    CRYPTO = "CRYPTO"


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class OrderKind(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class TimeInForce(str, Enum):
    """Lifetime policy of a LIMIT order."""

    GTC = "GTC"
    DAY = "DAY"


class OrderStatus(str, Enum):
    NEW = "NEW"
    PENDING = "PENDING"
    FILLED = "FILLED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"
    HOLD = "HOLD"


class RejectReason(str, Enum):
    """Sub-reason of an ORDER_REJECTED outcome."""

    SIZE_OUT_OF_RANGE = "SIZE_OUT_OF_RANGE"
    PRICE_INVALID = "PRICE_INVALID"
    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    POSITION_LIMIT = "POSITION_LIMIT"
    UNSUPPORTED_SIDE = "UNSUPPORTED_SIDE"
    UNSUPPORTED_ORDER_TYPE = "UNSUPPORTED_ORDER_TYPE"
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    AT_LIMIT = "AT_LIMIT"
    BLOWN = "BLOWN"
    CLOSED = "CLOSED"


class SimulatorStatus(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"
    BLOWN = "BLOWN"


# ---------------------------------------------------------------------------
# Instrument
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instrument:
    """Static market parameters for the single simulated symbol."""

    symbol: str
    asset_class: AssetClass
    decimal_places: int
    pip_value: float
    tick_size: float
    contract_size: float
    min_lot: float
    min_volume: float
    max_volume: float
    typical_spread: float
    volatility: float
    margin_rate: float
    open_hour: int = 0
    close_hour: int = 24
    average_volume: float = 1_000_000
    description: str = ""

    def round_price(self, price: float) -> float:
        if self.tick_size <= 0:
            return price
        return round(round(price / self.tick_size) * self.tick_size, self.decimal_places)

    def format_price(self, price: float) -> str:
        return f"{price:.{self.decimal_places}f}"

    def normalize_lot(self, size: float) -> float:
        """Floor *size* to a whole multiple of the lot step."""
        if size <= 0 or self.min_lot <= 0:
            return max(size, 0.0)
        steps = math.floor(size / self.min_lot + EPSILON)
        return round(steps * self.min_lot, 8)

    def is_valid_volume(self, size: float) -> bool:
        return self.min_volume - EPSILON <= size <= self.max_volume + EPSILON

    def notional(self, price: float, size: float) -> float:
        """Economic exposure: price × size × contract size."""
        return price * size * self.contract_size

    def required_margin(self, price: float, size: float) -> float:
        return self.notional(price, size) * self.margin_rate

    def session_close(self, ts: datetime) -> datetime:
        """First session close (close_hour UTC) strictly after *ts*."""
        midnight = ts.replace(hour=0, minute=0, second=0, microsecond=0)
        close = midnight + timedelta(hours=self.close_hour)
        if ts >= close:
            close += timedelta(days=1)
        return close

    @property
    def volatility_category(self) -> str:
        if self.volatility < 0.10:
            return "LOW"
        if self.volatility < 0.20:
            return "MEDIUM"
        if self.volatility < 0.40:
            return "HIGH"
        return "VERY_HIGH"

    @property
    def liquidity_category(self) -> str:
        if self.average_volume > 5_000_000:
            return "VERY_HIGH"
        if self.average_volume > 1_000_000:
            return "HIGH"
        if self.average_volume > 100_000:
            return "MEDIUM"
        return "LOW"


# ---------------------------------------------------------------------------
# Tick
# ---------------------------------------------------------------------------


class DepthLevel(NamedTuple):
    price: float
    volume: float


def as_utc(value: datetime | int | float) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    # Numeric timestamps are epoch seconds.
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _as_levels(levels: Sequence) -> tuple[DepthLevel, ...]:
    return tuple(DepthLevel(float(p), float(v)) for p, v in levels)


@dataclass(frozen=True)
class Tick:
    """One market observation. ask >= bid; depth levels are ordered best first."""

    timestamp: datetime
    bid: float
    ask: float
    volume: float = 0.0
    bid_depth: tuple[DepthLevel, ...] = ()
    ask_depth: tuple[DepthLevel, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))
        object.__setattr__(self, "bid_depth", _as_levels(self.bid_depth))
        object.__setattr__(self, "ask_depth", _as_levels(self.ask_depth))
        if self.ask < self.bid - EPSILON:
            raise ValueError(f"ask {self.ask} below bid {self.bid} at {self.timestamp.isoformat()}")

    @property
    def spread(self) -> float:
        return self.ask - self.bid

    @property
    def mid(self) -> float:
        return (self.ask + self.bid) / 2

    def price_for(self, side: Side) -> float:
        """Ideal fill price: ask for BUY, bid for SELL."""
        return self.ask if side == Side.BUY else self.bid

    def depth_for(self, side: Side) -> tuple[DepthLevel, ...]:
        """Liquidity an order on *side* consumes: asks for BUY, bids for SELL."""
        return self.ask_depth if side == Side.BUY else self.bid_depth


# ---------------------------------------------------------------------------
# Order / Execution
# ---------------------------------------------------------------------------


def _coerce(enum_cls, value):
    """Map strings onto *enum_cls*; unknown values are kept for the validator to reject."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return value


@dataclass
class Order:
    """Agent order. The executor updates status and filled_size in place."""

    side: Side
    size: float = 0.0
    kind: OrderKind = OrderKind.MARKET
    limit_price: float | None = None
    time_in_force: TimeInForce = TimeInForce.GTC
    id: str = ""
    timestamp: datetime | None = None
    status: OrderStatus = OrderStatus.NEW
    filled_size: float = 0.0

    def __post_init__(self) -> None:
        self.side = _coerce(Side, self.side)
        self.kind = _coerce(OrderKind, self.kind)
        self.time_in_force = _coerce(TimeInForce, self.time_in_force)
        if self.timestamp is not None:
            self.timestamp = as_utc(self.timestamp)

    @classmethod
    def market(cls, side: Side | str, size: float, **kwargs) -> Order:
        return cls(side=side, size=size, kind=OrderKind.MARKET, **kwargs)

    @classmethod
    def limit(
        cls,
        side: Side | str,
        size: float,
        limit_price: float,
        time_in_force: TimeInForce | str = TimeInForce.GTC,
        **kwargs,
    ) -> Order:
        return cls(
            side=side,
            size=size,
            kind=OrderKind.LIMIT,
            limit_price=limit_price,
            time_in_force=time_in_force,
            **kwargs,
        )

    @classmethod
    def hold(cls, **kwargs) -> Order:
        return cls(side=Side.HOLD, size=0.0, **kwargs)

    @property
    def remaining(self) -> float:
        return max(self.size - self.filled_size, 0.0)

    @property
    def is_limit(self) -> bool:
        return self.kind == OrderKind.LIMIT

    @property
    def is_active(self) -> bool:
        return self.status in (OrderStatus.NEW, OrderStatus.PENDING)


@dataclass(frozen=True)
class Execution:
    """One fill event (or the rejection / acknowledgement of an order)."""

    order_id: str
    side: Side
    kind: OrderKind
    status: OrderStatus
    requested_size: float
    filled_size: float
    fill_price: float
    timestamp: datetime
    slippage: float = 0.0
    commission: float = 0.0
    latency_ms: int = 0
    remaining_size: float = 0.0
    reject_reason: RejectReason | None = None
    message: str = ""

    @property
    def is_rejected(self) -> bool:
        return self.status == OrderStatus.REJECTED

    @property
    def is_fill(self) -> bool:
        return self.filled_size > 0 and self.status in (OrderStatus.FILLED, OrderStatus.PARTIALLY_FILLED)

    @property
    def notional(self) -> float:
        return self.fill_price * self.filled_size


# ---------------------------------------------------------------------------
# Account-facing records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceUpdate:
    """Audit record appended for every cash-changing event."""

    timestamp: datetime
    balance_before: float
    balance_after: float
    delta: float
    reason: str
    order_id: str = ""


@dataclass(frozen=True)
class PositionSnapshot:
    side: PositionSide
    size: float
    avg_entry_price: float
    realized_pnl: float
    unrealized_pnl: float
    opened_at: datetime | None = None

    @property
    def is_flat(self) -> bool:
        return self.side == PositionSide.FLAT


@dataclass(frozen=True)
class BalanceSnapshot:
    initial_balance: float
    current_balance: float
    currency: str
    equity: float
    realized_pnl: float
    unrealized_pnl: float
    commission_paid: float
    used_margin: float
    available_margin: float
    buying_power: float
    leverage: float
    high_water_mark: float
    low_water_mark: float
    drawdown_pct: float
    max_drawdown_pct: float
    max_drawdown_amount: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    breakeven_trades: int
    consecutive_wins: int
    consecutive_losses: int
    status: AccountStatus


@dataclass
class ExecutorStats:
    """Running totals kept by the order executor."""

    executed: int = 0
    rejected: int = 0
    canceled: int = 0
    partial_fills: int = 0
    total_commission: float = 0.0
    total_slippage: float = 0.0
    max_slippage: float = 0.0
    by_kind: dict[str, int] = field(default_factory=dict)
    rejections_by_reason: dict[str, int] = field(default_factory=dict)
