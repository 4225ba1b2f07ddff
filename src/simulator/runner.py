"""
Run a whole simulation: start -> (next_tick, agent) loop -> stop.

The loop ends when the stream is exhausted or the account blows.
Tick-source and tick-order errors propagate to the caller.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from config.loader import HolodeckConfig
from holodeck_core.contracts import (
    BalanceSnapshot,
    BalanceUpdate,
    Execution,
    Order,
    PositionSnapshot,
    SimulatorStatus,
    Tick,
)
from holodeck_core.errors import StreamExhaustedError
from simulator.agents import Agent
from simulator.driver import EventCallback, SimulationDriver
from simulator.metrics import Metrics


@dataclass
class SimulationResult:
    """Final state of a run."""

    status: SimulatorStatus
    metrics: Metrics
    balance: BalanceSnapshot
    position: PositionSnapshot
    executions: list[Execution] = field(default_factory=list)
    pending_orders: list[Order] = field(default_factory=list)
    balance_history: list[BalanceUpdate] = field(default_factory=list)

    @property
    def blown(self) -> bool:
        return self.status == SimulatorStatus.BLOWN

    @property
    def fills(self) -> list[Execution]:
        return [e for e in self.executions if e.is_fill]


def run_simulation(
    config: HolodeckConfig,
    ticks: Iterable[Tick],
    agent: Agent | None = None,
    *,
    on_event: EventCallback | None = None,
    speed: float | None = None,
    max_ticks: int | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> SimulationResult:
    """Replay *ticks* through a fresh driver.

    Parameters
    ----------
    config:
        Simulation config tree.
    ticks:
        Tick source (e.g. a CSVTickReader).
    agent:
        Optional agent called once per tick after the tick is processed.
    on_event:
        Forwarded to the driver.
    speed:
        Override of ``config.speed.multiplier``.
    max_ticks:
        Stop after this many ticks even if the source has more.
    clock, sleep:
        Throttle time sources (tests inject fakes).
    """
    driver = SimulationDriver(config, ticks, on_event=on_event, speed=speed, clock=clock, sleep=sleep)
    driver.start()

    index = 0
    reason = "stopped"
    while max_ticks is None or index < max_ticks:
        try:
            tick = driver.next_tick()
        except StreamExhaustedError:
            reason = "stream_exhausted"
            break
        if agent is not None and not driver.is_blown():
            agent.on_tick(driver, tick, index)
        index += 1
        if driver.is_blown():
            reason = "account_blown"
            break

    driver.stop(reason)
    return SimulationResult(
        status=driver.status,
        metrics=driver.metrics(),
        balance=driver.balance(),
        position=driver.position(),
        executions=driver.executions(),
        pending_orders=driver.pending_orders(),
        balance_history=driver.balance_history(),
    )
