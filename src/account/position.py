"""
Aggregate position for the single simulated instrument.

LONG, SHORT or FLAT; never both sides at once. Adds re-weight the average
entry, reducing fills realize P&L, and an over-sized opposite fill closes
the position and opens the residual on the other side at the fill price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from holodeck_core.contracts import EPSILON, Instrument, PositionSide, PositionSnapshot, Side, Tick


@dataclass(frozen=True)
class FillEffect:
    """What one fill did to the position."""

    realized_pnl: float = 0.0
    closed_size: float = 0.0
    opened_size: float = 0.0

    @property
    def is_closing(self) -> bool:
        return self.closed_size > EPSILON


class PositionTracker:
    def __init__(self, instrument: Instrument) -> None:
        self._instrument = instrument
        self.side = PositionSide.FLAT
        self.size = 0.0
        self.avg_entry_price = 0.0
        self.realized_pnl = 0.0
        self.unrealized_pnl = 0.0
        self.opened_at: datetime | None = None

    @property
    def is_flat(self) -> bool:
        return self.side == PositionSide.FLAT

    @property
    def signed_size(self) -> float:
        if self.side == PositionSide.LONG:
            return self.size
        if self.side == PositionSide.SHORT:
            return -self.size
        return 0.0

    @property
    def notional(self) -> float:
        """Open exposure valued at the average entry price."""
        return self._instrument.notional(self.avg_entry_price, self.size)

    def apply_fill(self, side: Side, size: float, price: float, ts: datetime) -> FillEffect:
        """Apply *size* lots filled at *price* on *side*."""
        incoming = PositionSide.LONG if side == Side.BUY else PositionSide.SHORT

        if self.is_flat:
            self._open(incoming, size, price, ts)
            return FillEffect(opened_size=size)

        if incoming == self.side:
            total = self.size + size
            self.avg_entry_price = (self.avg_entry_price * self.size + price * size) / total
            self.size = total
            return FillEffect(opened_size=size)

        closed = min(self.size, size)
        sign = 1.0 if self.side == PositionSide.LONG else -1.0
        realized = sign * (price - self.avg_entry_price) * closed * self._instrument.contract_size
        self.realized_pnl += realized
        self.size -= closed
        residual = size - closed

        if self.size <= EPSILON:
            self._flatten()
        if residual > EPSILON:
            self._open(incoming, residual, price, ts)
        return FillEffect(realized_pnl=realized, closed_size=closed, opened_size=max(residual, 0.0))

    def mark(self, tick: Tick) -> float:
        """Revalue at the price a close would get: bid for LONG, ask for SHORT."""
        contract = self._instrument.contract_size
        if self.side == PositionSide.LONG:
            self.unrealized_pnl = (tick.bid - self.avg_entry_price) * self.size * contract
        elif self.side == PositionSide.SHORT:
            self.unrealized_pnl = (self.avg_entry_price - tick.ask) * self.size * contract
        else:
            self.unrealized_pnl = 0.0
        return self.unrealized_pnl

    def snapshot(self) -> PositionSnapshot:
        return PositionSnapshot(
            side=self.side,
            size=self.size,
            avg_entry_price=self.avg_entry_price,
            realized_pnl=self.realized_pnl,
            unrealized_pnl=self.unrealized_pnl,
            opened_at=self.opened_at,
        )

    def _open(self, side: PositionSide, size: float, price: float, ts: datetime) -> None:
        self.side = side
        self.size = size
        self.avg_entry_price = price
        self.opened_at = ts

    def _flatten(self) -> None:
        self.side = PositionSide.FLAT
        self.size = 0.0
        self.avg_entry_price = 0.0
        self.unrealized_pnl = 0.0
        self.opened_at = None
