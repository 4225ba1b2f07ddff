"""
Simulation driver: owns the tick clock, the executor and the ledger.

Per tick, in this order:
    DAY expiry -> resting-limit sweep -> latency arrivals -> mark-to-market
then control returns to the caller, whose submitted orders are routed
against that tick in submission order.

Status: IDLE -> RUNNING <-> PAUSED -> STOPPED, or -> BLOWN when the
account blows. STOPPED and BLOWN are terminal.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator

from account.ledger import AccountLedger
from config.loader import HolodeckConfig, InstrumentConfig
from execution.executor import OrderExecutor
from execution.validation import PositionLimits
from holodeck_core.commission import commission_for
from holodeck_core.contracts import (
    AccountStatus,
    BalanceSnapshot,
    BalanceUpdate,
    Execution,
    Instrument,
    Order,
    OrderStatus,
    PositionSide,
    PositionSnapshot,
    Side,
    SimulatorStatus,
    Tick,
)
from holodeck_core.errors import (
    AccountBlownError,
    InvalidStateError,
    StreamExhaustedError,
    TickOrderViolationError,
)
from holodeck_core.instruments import make_instrument
from holodeck_core.partial_fill import PartialFillPolicy
from holodeck_core.slippage import slippage_model_for
from simulator.clock import SpeedController
from simulator.metrics import Metrics, collect_metrics

logger = logging.getLogger("holodeck.driver")

EventCallback = Callable[[str, dict], None]

_TERMINAL = (SimulatorStatus.STOPPED, SimulatorStatus.BLOWN)


def build_instrument(cfg: InstrumentConfig) -> Instrument:
    return make_instrument(
        cfg.type,
        cfg.symbol,
        description=cfg.description,
        margin_rate=cfg.margin_rate,
    )


@dataclass(frozen=True)
class DriverSnapshot:
    """Copy of the driver state, safe to hand to another thread."""

    status: SimulatorStatus
    tick: Tick | None
    ticks_processed: int
    balance: BalanceSnapshot
    position: PositionSnapshot
    pending_orders: tuple[Order, ...]
    metrics: Metrics


class SimulationDriver:
    """
    Agent-facing API of the simulated exchange.

    Parameters
    ----------
    config:
        Simulation config tree.
    ticks:
        Finite, forward-only iterable of ticks in non-decreasing time order.
    on_event:
        Optional ``(event_type, payload)`` callback. Event types:
        ``execution``, ``rejection``, ``balance_update``, ``status``, ``blown``,
        ``session_end``.
    speed:
        Override of ``config.speed.multiplier``.
    clock, sleep:
        Wall-clock source and sleeper for the throttle (tests inject fakes).
    """

    def __init__(
        self,
        config: HolodeckConfig,
        ticks: Iterable[Tick],
        *,
        on_event: EventCallback | None = None,
        speed: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.instrument = build_instrument(config.instrument)

        acct = config.account
        self.ledger = AccountLedger(
            self.instrument,
            initial_balance=acct.initial_balance,
            currency=acct.currency,
            leverage=acct.leverage,
            max_drawdown_pct=acct.max_drawdown_percent,
            drawdown_action=acct.drawdown_action,
        )

        ex = config.execution
        self.executor = OrderExecutor(
            self.instrument,
            self.ledger,
            commission=commission_for(
                self.instrument,
                enabled=ex.commission,
                commission_type=ex.commission_type,
                commission_value=ex.commission_value,
            ),
            slippage=slippage_model_for(
                self.instrument,
                enabled=ex.slippage,
                model=ex.slippage_model,
                pips_per_lot=ex.slippage_pips,
            ),
            partial_fills=PartialFillPolicy(
                mode=ex.effective_partial_fill_mode,
                depth_levels=ex.depth_levels,
                volume_alpha=ex.volume_alpha,
            ),
            limits=PositionLimits(
                max_position_size=acct.position_size_cap,
                max_open_positions=acct.max_open_positions,
            ),
            latency_ms=ex.effective_latency_ms,
        )

        self._speed = SpeedController(
            speed if speed is not None else config.speed.multiplier, clock=clock, sleep=sleep
        )
        self._ticks: Iterator[Tick] = iter(ticks)
        self._on_event = on_event
        self._status = SimulatorStatus.IDLE
        self._account_status = self.ledger.status
        self._tick: Tick | None = None
        self._tick_count = 0
        self._order_seq = 0
        self._executions: list[Execution] = []
        self._updates_published = 0
        self._ended = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def status(self) -> SimulatorStatus:
        return self._status

    @property
    def current_tick(self) -> Tick | None:
        return self._tick

    def start(self) -> None:
        if self._status != SimulatorStatus.IDLE:
            raise InvalidStateError(f"start() requires IDLE, driver is {self._status.value}")
        self._speed.start()
        self._set_status(SimulatorStatus.RUNNING)
        logger.info(
            "Simulation started: %s %s, balance %.2f %s, speed %sx",
            self.instrument.asset_class.value,
            self.instrument.symbol,
            self.ledger.balance,
            self.ledger.currency,
            self._speed.multiplier,
        )

    def stop(self, reason: str = "stopped") -> None:
        """Move to STOPPED and publish final metrics. Idempotent from terminal states."""
        if self._status not in _TERMINAL:
            self._set_status(SimulatorStatus.STOPPED)
        self._end_session(reason)

    def pause(self) -> None:
        if self._status != SimulatorStatus.RUNNING:
            raise InvalidStateError(f"pause() requires RUNNING, driver is {self._status.value}")
        self._speed.pause()
        self._set_status(SimulatorStatus.PAUSED)

    def resume(self) -> None:
        if self._status != SimulatorStatus.PAUSED:
            raise InvalidStateError(f"resume() requires PAUSED, driver is {self._status.value}")
        self._speed.resume()
        self._set_status(SimulatorStatus.RUNNING)

    def set_speed(self, multiplier: float) -> None:
        self._speed.set_speed(multiplier)
        logger.info("Speed set to %sx", self._speed.multiplier)

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------

    def next_tick(self) -> Tick:
        """Advance one tick and return it.

        Raises
        ------
        InvalidStateError
            If the driver is not RUNNING.
        StreamExhaustedError
            When the source is drained; the driver is STOPPED afterwards.
        TickOrderViolationError
            When the source goes back in time; the driver is STOPPED.
        """
        if self._status != SimulatorStatus.RUNNING:
            raise InvalidStateError(f"next_tick() requires RUNNING, driver is {self._status.value}")

        try:
            tick = next(self._ticks)
        except StopIteration:
            self._set_status(SimulatorStatus.STOPPED)
            self._end_session("stream_exhausted")
            raise StreamExhaustedError(f"tick stream exhausted after {self._tick_count} ticks") from None
        except Exception:
            self._set_status(SimulatorStatus.STOPPED)
            raise

        if self._tick is not None and tick.timestamp < self._tick.timestamp:
            self._set_status(SimulatorStatus.STOPPED)
            raise TickOrderViolationError(
                f"tick {tick.timestamp.isoformat()} is older than previous {self._tick.timestamp.isoformat()}"
            )

        self._speed.wait_until(tick.timestamp)
        self._tick = tick
        self._tick_count += 1

        self._publish(self.executor.expire_day_orders(tick))
        self._publish(self.executor.sweep(tick))
        self._check_account()
        if self._status == SimulatorStatus.RUNNING:
            self._publish(self.executor.release_due(tick))
            self.ledger.mark_to_market(tick)
            self._check_account()

        logger.debug("Tick %d %s bid=%s ask=%s", self._tick_count, tick.timestamp.isoformat(), tick.bid, tick.ask)
        return tick

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def submit_order(self, order: Order) -> Execution:
        """Route *order* against the most recent tick.

        Validation failures come back as a REJECTED execution; a LIMIT that
        does not cross comes back as a PENDING acknowledgement.
        """
        tick = self._require_tick("submit_order")
        if not order.id:
            self._order_seq += 1
            order.id = f"ORD-{self._order_seq:06d}"
        if order.timestamp is None:
            order.timestamp = tick.timestamp

        execution = self.executor.submit(order, tick)
        self._publish([execution])
        self._check_account()
        return execution

    def cancel_order(self, order_id: str) -> Execution | None:
        """Cancel a resting or in-flight order; None if it is no longer active."""
        tick = self._require_tick("cancel_order")
        execution = self.executor.cancel(order_id, tick.timestamp)
        if execution is not None:
            self._publish([execution])
        return execution

    def close_account(self) -> BalanceSnapshot:
        """Flatten any open position at market, close the ledger and stop."""
        if self.ledger.is_blown:
            raise AccountBlownError("account is blown")
        if self._status == SimulatorStatus.STOPPED and self.ledger.status == AccountStatus.CLOSED:
            return self.ledger.snapshot()

        if self._tick is not None:
            self._publish(self.executor.cancel_all(self._tick.timestamp, "account closed"))

        pos = self.ledger.position
        if not pos.is_flat:
            tick = self._tick
            if tick is None:
                raise InvalidStateError("close_account() with an open position before the first tick")
            side = Side.SELL if pos.side == PositionSide.LONG else Side.BUY
            self._order_seq += 1
            order = Order.market(side, pos.size, id=f"ORD-{self._order_seq:06d}", timestamp=tick.timestamp)
            self._publish([self.executor.submit(order, tick)])
            if not self.ledger.position.is_flat:
                raise InvalidStateError("could not flatten the open position")

        self.ledger.close()
        self._check_account()
        self.stop("account_closed")
        return self.ledger.snapshot()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def balance(self) -> BalanceSnapshot:
        return self.ledger.snapshot()

    def position(self) -> PositionSnapshot:
        return self.ledger.position.snapshot()

    def metrics(self) -> Metrics:
        return collect_metrics(
            ticks_processed=self._tick_count,
            executor=self.executor,
            ledger=self.ledger,
            speed=self._speed.stats(),
        )

    def is_running(self) -> bool:
        return self._status == SimulatorStatus.RUNNING

    def is_blown(self) -> bool:
        return self._status == SimulatorStatus.BLOWN

    def executions(self) -> list[Execution]:
        return list(self._executions)

    def balance_history(self) -> list[BalanceUpdate]:
        return list(self.ledger.history)

    def pending_orders(self) -> list[Order]:
        return [replace(o) for o in self.executor.pending_orders()]

    def snapshot(self) -> DriverSnapshot:
        return DriverSnapshot(
            status=self._status,
            tick=self._tick,
            ticks_processed=self._tick_count,
            balance=self.balance(),
            position=self.position(),
            pending_orders=tuple(self.pending_orders()),
            metrics=self.metrics(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_tick(self, op: str) -> Tick:
        if self._status == SimulatorStatus.BLOWN or self.ledger.is_blown:
            raise AccountBlownError(f"{op}: account is blown")
        if self._status not in (SimulatorStatus.RUNNING, SimulatorStatus.PAUSED):
            raise InvalidStateError(f"{op}() requires RUNNING, driver is {self._status.value}")
        if self._tick is None:
            raise InvalidStateError(f"{op}() before the first tick")
        return self._tick

    def _publish(self, executions: list[Execution]) -> None:
        for execution in executions:
            self._executions.append(execution)
            event = "rejection" if execution.is_rejected else "execution"
            self._emit(event, {"execution": execution})
            # Each booked fill appends exactly one audit record to the ledger.
            for update in self.ledger.history[self._updates_published:]:
                self._emit("balance_update", {"update": update})
            self._updates_published = len(self.ledger.history)

    def _check_account(self) -> None:
        status = self.ledger.status
        if status != self._account_status:
            self._emit("status", {"component": "account", "old": self._account_status, "new": status})
            self._account_status = status
        if status == AccountStatus.BLOWN and self._status != SimulatorStatus.BLOWN:
            ts = self._tick.timestamp if self._tick is not None else None
            self._set_status(SimulatorStatus.BLOWN)
            if ts is not None:
                self._publish(self.executor.cancel_all(ts, "account blown"))
            logger.warning(
                "Account blown: balance %.2f, equity %.2f, drawdown %.2f%%",
                self.ledger.balance, self.ledger.equity, self.ledger.drawdown_pct,
            )
            self._emit("blown", {"timestamp": ts, "balance": self.ledger.snapshot()})

    def _set_status(self, new: SimulatorStatus) -> None:
        if new == self._status:
            return
        old, self._status = self._status, new
        logger.info("Simulator %s -> %s", old.value, new.value)
        self._emit("status", {"component": "simulator", "old": old, "new": new})

    def _end_session(self, reason: str) -> None:
        if self._ended:
            return
        self._ended = True
        metrics = self.metrics()
        logger.info(
            "Session ended (%s): %d ticks, %d fills, balance %.2f",
            reason, metrics.ticks_processed, metrics.trades, metrics.final_balance,
        )
        self._emit("session_end", {"reason": reason, "metrics": metrics})

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._on_event is not None:
            self._on_event(event_type, payload)
