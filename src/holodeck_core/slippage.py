"""
Slippage models: an adverse price offset applied to the ideal fill price.

- ``fixed``       : offset = pips_per_lot × size × pip_value
- ``depth_based`` : walk the same-side depth best first; the fill price is the
                    size-weighted average of the consumed levels. Empty depth
                    falls back to the fixed model.

Offsets are never negative: BUY fills move up, SELL fills move down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from holodeck_core.contracts import EPSILON, Instrument, Side, Tick
from holodeck_core.errors import ConfigError

SLIPPAGE_MODELS = ("fixed", "depth_based")


@dataclass(frozen=True)
class SlippageResult:
    price: float
    offset: float
    # Portion of the requested size that visible depth could not cover.
    unfilled: float = 0.0


@dataclass
class SlippageStats:
    total: float = 0.0
    count: int = 0
    max: float = 0.0
    min: float = 0.0

    def record(self, offset: float) -> None:
        if self.count == 0:
            self.min = offset
        self.total += offset
        self.count += 1
        self.max = max(self.max, offset)
        self.min = min(self.min, offset)

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "total_slippage": self.total,
            "slippage_count": self.count,
            "average_slippage": self.average,
            "max_slippage": self.max,
            "min_slippage": self.min,
        }


class SlippageModel(Protocol):
    name: str

    def apply(self, side: Side, ideal_price: float, size: float, tick: Tick) -> SlippageResult: ...


def _adverse(side: Side, ideal_price: float, offset: float) -> float:
    return ideal_price + offset if side == Side.BUY else ideal_price - offset


@dataclass(frozen=True)
class NoSlippage:
    name: str = "none"

    def apply(self, side: Side, ideal_price: float, size: float, tick: Tick) -> SlippageResult:
        return SlippageResult(price=ideal_price, offset=0.0)


@dataclass(frozen=True)
class FixedSlippage:
    """Constant pip offset per lot."""

    pip_value: float
    pips_per_lot: float = 0.5
    name: str = "fixed"

    def apply(self, side: Side, ideal_price: float, size: float, tick: Tick) -> SlippageResult:
        offset = max(0.0, self.pips_per_lot * abs(size) * self.pip_value)
        return SlippageResult(price=_adverse(side, ideal_price, offset), offset=offset)


@dataclass(frozen=True)
class DepthBasedSlippage:
    """Consume depth levels until the size is covered."""

    fallback: FixedSlippage
    name: str = "depth_based"

    def apply(self, side: Side, ideal_price: float, size: float, tick: Tick) -> SlippageResult:
        levels = tick.depth_for(side)
        if not levels or size <= 0:
            return self.fallback.apply(side, ideal_price, size, tick)

        left = size
        cost = 0.0
        for level in levels:
            if left <= EPSILON:
                break
            take = min(left, level.volume)
            if take <= 0:
                continue
            cost += take * level.price
            left -= take

        if left > EPSILON:
            # Depth exhausted: price the filled portion at the worst level seen.
            price = levels[-1].price
            unfilled = left
        else:
            price = cost / size
            unfilled = 0.0

        if side == Side.BUY:
            offset = max(0.0, price - ideal_price)
        else:
            offset = max(0.0, ideal_price - price)
        return SlippageResult(price=_adverse(side, ideal_price, offset), offset=offset, unfilled=unfilled)


def slippage_model_for(
    instrument: Instrument,
    *,
    enabled: bool = True,
    model: str = "fixed",
    pips_per_lot: float = 0.5,
) -> SlippageModel:
    """Build the configured slippage model; disabled slippage yields NoSlippage."""
    if not enabled:
        return NoSlippage()
    fixed = FixedSlippage(pip_value=instrument.pip_value, pips_per_lot=pips_per_lot)
    if model == "fixed":
        return fixed
    if model == "depth_based":
        return DepthBasedSlippage(fallback=fixed)
    raise ConfigError("execution.slippage_model", f"unknown slippage model {model!r}")
