"""
Partial-fill policy: how much of an order the current tick can absorb.

Modes
-----
none            : the whole requested size fills.
depth_based     : min(requested, same-side depth volume within N levels).
volume_adjusted : min(requested, alpha × tick volume).

A tick that carries no depth (depth_based) or no volume (volume_adjusted)
gives no information, so the order fills in full. Filled sizes are floored
to the instrument lot step.
"""

from __future__ import annotations

from dataclasses import dataclass

from holodeck_core.contracts import EPSILON, Instrument, Side, Tick
from holodeck_core.errors import ConfigError

PARTIAL_FILL_MODES = ("none", "depth_based", "volume_adjusted")


@dataclass(frozen=True)
class FillDecision:
    requested: float
    filled: float

    @property
    def remaining(self) -> float:
        return max(self.requested - self.filled, 0.0)

    @property
    def is_partial(self) -> bool:
        return self.remaining > EPSILON


@dataclass(frozen=True)
class PartialFillPolicy:
    mode: str = "none"
    depth_levels: int = 1
    volume_alpha: float = 0.1

    def __post_init__(self) -> None:
        if self.mode not in PARTIAL_FILL_MODES:
            raise ConfigError("execution.partial_fill_mode", f"unknown partial fill mode {self.mode!r}")
        if self.depth_levels < 1:
            raise ConfigError("execution.depth_levels", "must be >= 1")
        if self.volume_alpha <= 0:
            raise ConfigError("execution.volume_alpha", "must be > 0")

    def capacity(self, side: Side, tick: Tick) -> float | None:
        """Size the tick can absorb on *side*, or None when unlimited."""
        if self.mode == "depth_based":
            levels = tick.depth_for(side)[: self.depth_levels]
            if not levels:
                return None
            return sum(level.volume for level in levels)
        if self.mode == "volume_adjusted":
            if tick.volume <= 0:
                return None
            return self.volume_alpha * tick.volume
        return None

    def decide(
        self,
        requested: float,
        side: Side,
        tick: Tick,
        instrument: Instrument,
        unfilled_hint: float = 0.0,
    ) -> FillDecision:
        """Return the fill for *requested* lots on *tick*.

        *unfilled_hint* is the size the slippage model could not price from
        visible depth; it only narrows the fill outside mode ``none``.
        """
        if self.mode == "none":
            return FillDecision(requested=requested, filled=requested)

        limit = self.capacity(side, tick)
        filled = requested if limit is None else min(requested, limit)
        if unfilled_hint > EPSILON:
            filled = min(filled, requested - unfilled_hint)
        if filled < requested - EPSILON:
            filled = instrument.normalize_lot(filled)
        else:
            filled = requested
        return FillDecision(requested=requested, filled=max(filled, 0.0))

    @staticmethod
    def below_minimum(decision: FillDecision, instrument: Instrument) -> bool:
        """True for a micro-fill: smaller than both min volume and the remaining size."""
        return decision.is_partial and decision.filled < instrument.min_volume - EPSILON
