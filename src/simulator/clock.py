"""
Speed controller: throttles simulated time against the wall clock.

Wall-clock elapsed since the anchor must reach (simulated elapsed /
multiplier) before a tick is released. Multipliers above
UNTHROTTLED_ABOVE (or infinite) never sleep. Sleeps are whole
milliseconds; shorter gaps coalesce to zero.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from holodeck_core.errors import ConfigError

UNTHROTTLED_ABOVE = 10_000.0


@dataclass(frozen=True)
class SpeedStats:
    configured_speed: float
    actual_speed: float
    ticks: int
    total_wait_s: float
    skipped_sleeps: int
    elapsed_s: float
    simulated_s: float
    paused: bool

    def to_dict(self) -> dict:
        return {
            "configured_speed": self.configured_speed,
            "actual_speed": self.actual_speed,
            "ticks": self.ticks,
            "total_wait_s": self.total_wait_s,
            "skipped_sleeps": self.skipped_sleeps,
            "elapsed_s": self.elapsed_s,
            "simulated_s": self.simulated_s,
            "paused": self.paused,
        }


def validate_multiplier(multiplier: float) -> float:
    try:
        value = float(multiplier)
    except (TypeError, ValueError):
        raise ConfigError("speed.multiplier", f"not a number: {multiplier!r}") from None
    if math.isnan(value) or value <= 0:
        raise ConfigError("speed.multiplier", f"must be > 0, got {multiplier!r}")
    return value


class SpeedController:
    """
    Anchor-based throttle. ``clock`` returns monotonic seconds and ``sleep``
    blocks for seconds; both are injectable so tests never sleep for real.
    """

    def __init__(
        self,
        multiplier: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._multiplier = validate_multiplier(multiplier)
        self._clock = clock
        self._sleep = sleep
        self._anchor_wall: float | None = None
        self._anchor_sim: datetime | None = None
        self._first_sim: datetime | None = None
        self._last_sim: datetime | None = None
        self._started_wall: float | None = None
        self._paused_wall: float | None = None
        self._paused_total = 0.0
        self.ticks = 0
        self.total_wait = 0.0
        self.skipped_sleeps = 0

    @property
    def multiplier(self) -> float:
        return self._multiplier

    @property
    def unthrottled(self) -> bool:
        return math.isinf(self._multiplier) or self._multiplier > UNTHROTTLED_ABOVE

    @property
    def paused(self) -> bool:
        return self._paused_wall is not None

    def start(self) -> None:
        self._started_wall = self._clock()

    def set_speed(self, multiplier: float) -> None:
        self._multiplier = validate_multiplier(multiplier)
        self._reanchor()

    def pause(self) -> None:
        if self._paused_wall is None:
            self._paused_wall = self._clock()

    def resume(self) -> None:
        if self._paused_wall is None:
            return
        self._paused_total += self._clock() - self._paused_wall
        self._paused_wall = None
        self._reanchor()

    def _reanchor(self) -> None:
        if self._last_sim is not None:
            self._anchor_wall = self._clock()
            self._anchor_sim = self._last_sim

    def wait_until(self, sim_ts: datetime) -> float:
        """Block until *sim_ts* is due. Returns the seconds slept."""
        self.ticks += 1
        if self._first_sim is None:
            self._first_sim = sim_ts
        self._last_sim = sim_ts

        if self._anchor_wall is None or self._anchor_sim is None:
            self._anchor_wall = self._clock()
            self._anchor_sim = sim_ts
            return 0.0
        if self.unthrottled:
            self.skipped_sleeps += 1
            return 0.0

        sim_elapsed = (sim_ts - self._anchor_sim).total_seconds()
        target = self._anchor_wall + sim_elapsed / self._multiplier
        delay_ms = math.floor((target - self._clock()) * 1000)
        if delay_ms <= 0:
            self.skipped_sleeps += 1
            return 0.0
        delay = delay_ms / 1000.0
        self._sleep(delay)
        self.total_wait += delay
        return delay

    def stats(self) -> SpeedStats:
        now = self._clock()
        elapsed = 0.0
        if self._started_wall is not None:
            elapsed = now - self._started_wall - self._paused_total
            if self._paused_wall is not None:
                elapsed -= now - self._paused_wall
        simulated = 0.0
        if self._first_sim is not None and self._last_sim is not None:
            simulated = (self._last_sim - self._first_sim).total_seconds()
        return SpeedStats(
            configured_speed=self._multiplier,
            actual_speed=simulated / elapsed if elapsed > 0 else 0.0,
            ticks=self.ticks,
            total_wait_s=self.total_wait,
            skipped_sleeps=self.skipped_sleeps,
            elapsed_s=max(elapsed, 0.0),
            simulated_s=simulated,
            paused=self.paused,
        )
