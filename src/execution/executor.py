"""
Order executor: validate, route, price, charge and hand fills to the ledger.

MARKET  fills at the touch (ask for BUY, bid for SELL) plus slippage.
LIMIT   fills at the limit price when the tick is marketable
        (ask <= limit for BUY, bid >= limit for SELL); otherwise rests.
HOLD    yields a zero-size execution and touches nothing.

Resting LIMITs are swept in insertion order on every tick. With latency
enabled an order is acknowledged PENDING and routed against the first tick
at or after submission + latency_ms.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from holodeck_core.commission import CommissionCalculator, CommissionLedger
from holodeck_core.contracts import (
    EPSILON,
    AccountStatus,
    Execution,
    ExecutorStats,
    Instrument,
    Order,
    OrderKind,
    OrderStatus,
    RejectReason,
    Side,
    Tick,
    TimeInForce,
)
from holodeck_core.errors import OrderRejectedError
from holodeck_core.partial_fill import PartialFillPolicy
from holodeck_core.slippage import NoSlippage, SlippageModel, SlippageStats

from execution.validation import PositionLimits, check_margin, check_position_limits, validate_order

logger = logging.getLogger("holodeck.executor")


class LedgerView(Protocol):
    """The narrow slice of the account the executor reads and mutates."""

    @property
    def status(self) -> AccountStatus: ...

    @property
    def available_margin(self) -> float: ...

    @property
    def signed_position(self) -> float: ...

    def apply_execution(self, execution: Execution, tick: Tick | None = None): ...


def is_marketable(order: Order, tick: Tick) -> bool:
    """BUY limit P triggers on ask <= P; SELL limit P on bid >= P."""
    if order.limit_price is None:
        return False
    if order.side == Side.BUY:
        return tick.ask <= order.limit_price + EPSILON
    return tick.bid >= order.limit_price - EPSILON


def day_expiry(instrument: Instrument, submitted: datetime) -> datetime:
    """Session close (close_hour UTC) of the submission day, or the next day's if already past."""
    return instrument.session_close(submitted)


@dataclass
class _InFlight:
    order: Order
    due: datetime


class OrderExecutor:
    """
    Turn orders into executions against the current tick.

    Owns the order store, the resting-limit book and the in-flight (latency)
    queue. Mutates the account only through LedgerView.apply_execution.
    """

    def __init__(
        self,
        instrument: Instrument,
        ledger: LedgerView,
        *,
        commission: CommissionCalculator,
        slippage: SlippageModel | None = None,
        partial_fills: PartialFillPolicy | None = None,
        limits: PositionLimits,
        latency_ms: int = 0,
        commission_ledger: CommissionLedger | None = None,
    ) -> None:
        self._instrument = instrument
        self._ledger = ledger
        self._commission = commission
        self._slippage = slippage or NoSlippage()
        self._partial = partial_fills or PartialFillPolicy()
        self._limits = limits
        self._latency_ms = max(int(latency_ms), 0)
        self._orders: dict[str, Order] = {}
        self._book: list[Order] = []
        self._in_flight: list[_InFlight] = []
        self._expiry: dict[str, datetime] = {}
        self.stats = ExecutorStats()
        self.slippage_stats = SlippageStats()
        self.commission_ledger = commission_ledger or CommissionLedger()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def latency_ms(self) -> int:
        return self._latency_ms

    def pending_orders(self) -> list[Order]:
        """Resting LIMITs in insertion order, followed by in-flight orders."""
        return list(self._book) + [f.order for f in self._in_flight]

    def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, order: Order, tick: Tick) -> Execution:
        """Validate and route *order* at *tick*. Never raises for validation failures."""
        self._orders[order.id] = order
        kind_key = order.kind.value if isinstance(order.kind, OrderKind) else str(order.kind)
        if order.side == Side.HOLD:
            kind_key = Side.HOLD.value
        self.stats.by_kind[kind_key] = self.stats.by_kind.get(kind_key, 0) + 1

        if order.side == Side.HOLD:
            order.status = OrderStatus.HOLD
            return Execution(
                order_id=order.id,
                side=Side.HOLD,
                kind=order.kind,
                status=OrderStatus.HOLD,
                requested_size=0.0,
                filled_size=0.0,
                fill_price=0.0,
                timestamp=tick.timestamp,
            )

        try:
            self._validate(order, tick)
        except OrderRejectedError as exc:
            return self._reject(order, tick.timestamp, exc.reason, str(exc))

        if order.time_in_force == TimeInForce.DAY and order.kind == OrderKind.LIMIT:
            self._expiry[order.id] = day_expiry(self._instrument, order.timestamp or tick.timestamp)

        if self._latency_ms > 0:
            submitted = order.timestamp or tick.timestamp
            due = submitted + timedelta(milliseconds=self._latency_ms)
            order.status = OrderStatus.PENDING
            self._in_flight.append(_InFlight(order=order, due=due))
            logger.debug("Order %s in flight until %s", order.id, due.isoformat())
            return self._ack(order, tick.timestamp, f"in flight until {due.isoformat()}")

        return self._route(order, tick, latency_ms=0)

    def release_due(self, tick: Tick) -> list[Execution]:
        """Route in-flight orders whose latency has elapsed at *tick*."""
        due = [f for f in self._in_flight if f.due <= tick.timestamp]
        if not due:
            return []
        self._in_flight = [f for f in self._in_flight if f.due > tick.timestamp]
        out: list[Execution] = []
        for flight in due:
            order = flight.order
            if self._ledger.status == AccountStatus.BLOWN:
                out.append(self._cancel(order, tick.timestamp, "account blown"))
                continue
            try:
                self._validate(order, tick)
            except OrderRejectedError as exc:
                out.append(self._reject(order, tick.timestamp, exc.reason, str(exc)))
                continue
            execution = self._route(order, tick, latency_ms=self._latency_ms)
            if execution.status != OrderStatus.PENDING:
                out.append(execution)
        return out

    def _validate(self, order: Order, tick: Tick) -> None:
        validate_order(
            order,
            tick,
            instrument=self._instrument,
            limits=self._limits,
            signed_position=self._ledger.signed_position,
            available_margin=self._ledger.available_margin,
            status=self._ledger.status,
        )

    def _route(self, order: Order, tick: Tick, *, latency_ms: int) -> Execution:
        if order.kind == OrderKind.MARKET:
            return self._fill_market(order, tick, latency_ms)

        if is_marketable(order, tick):
            execution = self._fill_limit(order, tick, latency_ms)
            if execution is not None:
                if order.status == OrderStatus.PENDING:
                    self._book.append(order)
                return execution

        order.status = OrderStatus.PENDING
        self._book.append(order)
        logger.debug("Limit %s resting: %s %s @ %s", order.id, order.side.value, order.size, order.limit_price)
        return self._ack(order, tick.timestamp, "resting")

    # ------------------------------------------------------------------
    # Per-tick maintenance
    # ------------------------------------------------------------------

    def sweep(self, tick: Tick) -> list[Execution]:
        """Fill resting LIMITs marketable at *tick*, in insertion order."""
        out: list[Execution] = []
        for order in list(self._book):
            if self._ledger.status == AccountStatus.BLOWN:
                break
            if not is_marketable(order, tick):
                continue
            try:
                check_margin(
                    order,
                    order.remaining,
                    float(order.limit_price),
                    instrument=self._instrument,
                    signed_position=self._ledger.signed_position,
                    available_margin=self._ledger.available_margin,
                    status=self._ledger.status,
                )
                check_position_limits(
                    order,
                    order.remaining,
                    signed_position=self._ledger.signed_position,
                    limits=self._limits,
                )
            except OrderRejectedError as exc:
                self._book.remove(order)
                out.append(self._reject(order, tick.timestamp, exc.reason, str(exc)))
                continue
            execution = self._fill_limit(order, tick, latency_ms=0)
            if execution is None:
                continue
            if order.status != OrderStatus.PENDING:
                self._book.remove(order)
            out.append(execution)
        return out

    def expire_day_orders(self, tick: Tick) -> list[Execution]:
        """Cancel resting or in-flight DAY orders whose session closed at or before *tick*."""
        out: list[Execution] = []
        for order in self.pending_orders():
            expiry = self._expiry.get(order.id)
            if expiry is None or tick.timestamp < expiry:
                continue
            if order in self._book:
                self._book.remove(order)
            else:
                self._in_flight = [f for f in self._in_flight if f.order is not order]
            logger.warning("DAY order %s expired at session close %s", order.id, expiry.isoformat())
            out.append(self._cancel(order, tick.timestamp, "DAY order expired at session close"))
        return out

    def cancel(self, order_id: str, ts: datetime) -> Execution | None:
        """Cancel a resting or in-flight order. Returns None if nothing was active under *order_id*."""
        for order in self._book:
            if order.id == order_id:
                self._book.remove(order)
                return self._cancel(order, ts, "canceled by agent")
        for flight in self._in_flight:
            if flight.order.id == order_id:
                self._in_flight.remove(flight)
                return self._cancel(flight.order, ts, "canceled by agent")
        return None

    def cancel_all(self, ts: datetime, message: str) -> list[Execution]:
        orders = list(self._book) + [f.order for f in self._in_flight]
        self._book.clear()
        self._in_flight.clear()
        return [self._cancel(order, ts, message) for order in orders]

    # ------------------------------------------------------------------
    # Fills
    # ------------------------------------------------------------------

    def _fill_market(self, order: Order, tick: Tick, latency_ms: int) -> Execution:
        ideal = tick.price_for(order.side)
        slip = self._slippage.apply(order.side, ideal, order.remaining, tick)
        decision = self._partial.decide(order.remaining, order.side, tick, self._instrument, slip.unfilled)
        if decision.filled <= EPSILON or self._partial.below_minimum(decision, self._instrument):
            return self._reject(
                order,
                tick.timestamp,
                RejectReason.INSUFFICIENT_LIQUIDITY,
                f"fillable size {decision.filled} below minimum volume {self._instrument.min_volume}",
            )
        self.slippage_stats.record(slip.offset)
        return self._record_fill(order, tick, decision.filled, slip.price, slip.offset, latency_ms, resting=False)

    def _fill_limit(self, order: Order, tick: Tick, latency_ms: int) -> Execution | None:
        decision = self._partial.decide(order.remaining, order.side, tick, self._instrument)
        if decision.filled <= EPSILON or self._partial.below_minimum(decision, self._instrument):
            return None
        return self._record_fill(
            order, tick, decision.filled, float(order.limit_price), 0.0, latency_ms, resting=True
        )

    def _record_fill(
        self,
        order: Order,
        tick: Tick,
        filled: float,
        price: float,
        slippage: float,
        latency_ms: int,
        *,
        resting: bool,
    ) -> Execution:
        commission = self._commission.compute(price, filled)
        order.filled_size += filled
        complete = order.remaining <= EPSILON
        if complete:
            order.filled_size = order.size
            order.status = OrderStatus.FILLED
            status = OrderStatus.FILLED
            self._expiry.pop(order.id, None)
        else:
            status = OrderStatus.PARTIALLY_FILLED
            # A partially filled LIMIT keeps resting; a MARKET remainder is dropped.
            order.status = OrderStatus.PENDING if resting else OrderStatus.PARTIALLY_FILLED

        execution = Execution(
            order_id=order.id,
            side=order.side,
            kind=order.kind,
            status=status,
            requested_size=order.size,
            filled_size=filled,
            fill_price=price,
            timestamp=tick.timestamp,
            slippage=slippage,
            commission=commission,
            latency_ms=latency_ms,
            remaining_size=order.remaining,
        )

        self.stats.executed += 1
        if status == OrderStatus.PARTIALLY_FILLED:
            self.stats.partial_fills += 1
        self.stats.total_commission += commission
        self.stats.total_slippage += slippage
        self.stats.max_slippage = max(self.stats.max_slippage, slippage)
        self.commission_ledger.record(
            self._instrument.asset_class, commission, self._commission.basis(price, filled)
        )
        logger.debug(
            "Fill %s %s %s @ %s (slippage %.6f, commission %.4f)",
            order.id, order.side.value, filled, self._instrument.format_price(price), slippage, commission,
        )
        self._ledger.apply_execution(execution, tick)
        return execution

    # ------------------------------------------------------------------
    # Non-fill outcomes
    # ------------------------------------------------------------------

    def _ack(self, order: Order, ts: datetime, message: str) -> Execution:
        return Execution(
            order_id=order.id,
            side=order.side,
            kind=order.kind,
            status=OrderStatus.PENDING,
            requested_size=order.size,
            filled_size=0.0,
            fill_price=0.0,
            timestamp=ts,
            remaining_size=order.remaining,
            message=message,
        )

    def _reject(self, order: Order, ts: datetime, reason: RejectReason, message: str) -> Execution:
        order.status = OrderStatus.REJECTED
        self.stats.rejected += 1
        self._expiry.pop(order.id, None)
        self.stats.rejections_by_reason[reason.value] = self.stats.rejections_by_reason.get(reason.value, 0) + 1
        logger.debug("Order %s rejected: %s", order.id, message)
        return Execution(
            order_id=order.id,
            side=order.side,
            kind=order.kind,
            status=OrderStatus.REJECTED,
            requested_size=order.size if isinstance(order.size, (int, float)) else 0.0,
            filled_size=0.0,
            fill_price=0.0,
            timestamp=ts,
            remaining_size=order.remaining if isinstance(order.size, (int, float)) else 0.0,
            reject_reason=reason,
            message=message,
        )

    def _cancel(self, order: Order, ts: datetime, message: str) -> Execution:
        order.status = OrderStatus.CANCELED
        self.stats.canceled += 1
        self._expiry.pop(order.id, None)
        return Execution(
            order_id=order.id,
            side=order.side,
            kind=order.kind,
            status=OrderStatus.CANCELED,
            requested_size=order.size,
            filled_size=0.0,
            fill_price=0.0,
            timestamp=ts,
            remaining_size=order.remaining,
            message=message,
        )
