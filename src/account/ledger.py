"""
Account ledger: cash, P&L attribution, margin, drawdown and trade statistics.

Status machine:

    ACTIVE  -- balance <= 0 or drawdown breach -->  BLOWN   (terminal)
    ACTIVE <--  available margin <= 0 / > 0   -->  AT_LIMIT
    ACTIVE  -- close() ------------------------->  CLOSED  (terminal)

With drawdown_action="block" a drawdown breach moves the account to
AT_LIMIT instead of BLOWN; it returns to ACTIVE once equity recovers.

Margin: used = open notional × instrument.margin_rate; buying power =
balance × leverage; available = buying power − used. Drawdown and the
water marks are tracked on equity (cash + unrealized).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from holodeck_core.contracts import (
    EPSILON,
    AccountStatus,
    BalanceSnapshot,
    BalanceUpdate,
    Execution,
    Instrument,
    Tick,
)
from holodeck_core.errors import ConfigError, InvalidStateError

from account.position import FillEffect, PositionTracker

logger = logging.getLogger("holodeck.ledger")

DRAWDOWN_ACTIONS = ("blow", "block")


@dataclass
class TradeStats:
    """Closed-trade statistics. A trade is any fill that closes or reduces the position."""

    total: int = 0
    winning: int = 0
    losing: int = 0
    breakeven: int = 0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    def record(self, pnl: float) -> None:
        self.total += 1
        if pnl > EPSILON:
            self.winning += 1
            self.gross_profit += pnl
            self.largest_win = max(self.largest_win, pnl)
            self.consecutive_wins += 1
            self.consecutive_losses = 0
            self.max_consecutive_wins = max(self.max_consecutive_wins, self.consecutive_wins)
        elif pnl < -EPSILON:
            self.losing += 1
            self.gross_loss += pnl
            self.largest_loss = min(self.largest_loss, pnl)
            self.consecutive_losses += 1
            self.consecutive_wins = 0
            self.max_consecutive_losses = max(self.max_consecutive_losses, self.consecutive_losses)
        else:
            self.breakeven += 1
            self.consecutive_wins = 0
            self.consecutive_losses = 0

    @property
    def win_rate(self) -> float:
        return self.winning / self.total * 100 if self.total else 0.0

    @property
    def net_pnl(self) -> float:
        return self.gross_profit + self.gross_loss

    @property
    def average_pnl(self) -> float:
        return self.net_pnl / self.total if self.total else 0.0

    @property
    def profit_factor(self) -> float | None:
        """Gross wins / |gross losses|; None while there are no losing trades."""
        if self.gross_loss >= 0:
            return None
        return self.gross_profit / abs(self.gross_loss)


class AccountLedger:
    """
    Single-account ledger. Mutated only through apply_execution,
    mark_to_market and close; everything else is a read.
    """

    def __init__(
        self,
        instrument: Instrument,
        *,
        initial_balance: float,
        currency: str = "USD",
        leverage: float = 1.0,
        max_drawdown_pct: float = 20.0,
        drawdown_action: str = "blow",
    ) -> None:
        if initial_balance <= 0:
            raise ConfigError("account.initial_balance", "must be > 0")
        if leverage < 1:
            raise ConfigError("account.leverage", "must be >= 1")
        if max_drawdown_pct <= 0:
            raise ConfigError("account.max_drawdown_percent", "must be > 0")
        if drawdown_action not in DRAWDOWN_ACTIONS:
            raise ConfigError("account.drawdown_action", f"must be one of {DRAWDOWN_ACTIONS}")

        self._instrument = instrument
        self.initial_balance = float(initial_balance)
        self.currency = currency
        self.leverage = float(leverage)
        self.max_drawdown_pct = float(max_drawdown_pct)
        self.drawdown_action = drawdown_action

        self.position = PositionTracker(instrument)
        self.balance = self.initial_balance
        self.realized_pnl = 0.0
        self.commission_paid = 0.0
        self.used_margin = 0.0
        self.high_water_mark = self.initial_balance
        self.low_water_mark = self.initial_balance
        self.drawdown_pct = 0.0
        self.max_drawdown_pct_seen = 0.0
        self.max_drawdown_amount = 0.0
        self.status = AccountStatus.ACTIVE
        self.trades = TradeStats()
        self.history: list[BalanceUpdate] = []

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def unrealized_pnl(self) -> float:
        return self.position.unrealized_pnl

    @property
    def equity(self) -> float:
        return self.balance + self.position.unrealized_pnl

    @property
    def buying_power(self) -> float:
        return self.balance * self.leverage

    @property
    def available_margin(self) -> float:
        return self.buying_power - self.used_margin

    @property
    def signed_position(self) -> float:
        return self.position.signed_size

    @property
    def is_blown(self) -> bool:
        return self.status == AccountStatus.BLOWN

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def apply_execution(self, execution: Execution, tick: Tick | None = None) -> BalanceUpdate | None:
        """Book one fill. Non-fill executions (rejections, acks, HOLD) are ignored.

        Parameters
        ----------
        execution:
            Fill produced by the executor.
        tick:
            Tick the fill happened on; used to re-mark the remaining position.

        Returns
        -------
        BalanceUpdate or None
            The audit record appended for this fill.
        """
        if not execution.is_fill:
            return None
        if self.status in (AccountStatus.BLOWN, AccountStatus.CLOSED):
            raise InvalidStateError(f"cannot book fills on a {self.status.value} account")

        before = self.balance

        # 1-2. position and realized P&L on the reducing portion
        effect = self.position.apply_fill(
            execution.side, execution.filled_size, execution.fill_price, execution.timestamp
        )
        # 3-4. cash
        self.balance -= execution.commission
        self.balance += effect.realized_pnl
        self.commission_paid += execution.commission
        self.realized_pnl += effect.realized_pnl
        # 5-6. margin
        self._update_margin()
        if tick is not None:
            self.position.mark(tick)
        # 7-8. water marks and drawdown
        self._update_drawdown()
        # 9. status
        self._update_status()
        # 10. audit
        update = BalanceUpdate(
            timestamp=execution.timestamp,
            balance_before=before,
            balance_after=self.balance,
            delta=self.balance - before,
            reason=self._reason(effect),
            order_id=execution.order_id,
        )
        self.history.append(update)
        # 11. trade counters
        if effect.is_closing:
            self.trades.record(effect.realized_pnl)

        logger.debug(
            "Booked %s: balance %.2f -> %.2f (realized %.2f, commission %.4f)",
            execution.order_id, before, self.balance, effect.realized_pnl, execution.commission,
        )
        return update

    def mark_to_market(self, tick: Tick) -> AccountStatus:
        """Revalue the open position. Cash is untouched; drawdown uses equity."""
        if self.status == AccountStatus.CLOSED:
            return self.status
        self.position.mark(tick)
        self._update_drawdown()
        self._update_status()
        return self.status

    def close(self) -> None:
        """Move to CLOSED. The caller flattens any open position first."""
        if self.status == AccountStatus.CLOSED:
            return
        if self.status == AccountStatus.BLOWN:
            raise InvalidStateError("account is blown")
        if not self.position.is_flat:
            raise InvalidStateError("cannot close an account with an open position")
        self._set_status(AccountStatus.CLOSED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_margin(self) -> None:
        self.used_margin = self.position.notional * self._instrument.margin_rate

    def _update_drawdown(self) -> None:
        equity = self.equity
        if equity > self.high_water_mark:
            self.high_water_mark = equity
        if equity < self.low_water_mark:
            self.low_water_mark = equity
        if self.high_water_mark <= 0:
            self.drawdown_pct = 0.0
            return
        amount = self.high_water_mark - equity
        self.drawdown_pct = amount * 100 / self.high_water_mark
        if self.drawdown_pct > self.max_drawdown_pct_seen:
            self.max_drawdown_pct_seen = self.drawdown_pct
            self.max_drawdown_amount = amount

    def _update_status(self) -> None:
        if self.status in (AccountStatus.BLOWN, AccountStatus.CLOSED):
            return
        if self.balance <= 0:
            new = AccountStatus.BLOWN
        elif self.drawdown_pct > self.max_drawdown_pct + EPSILON:
            new = AccountStatus.BLOWN if self.drawdown_action == "blow" else AccountStatus.AT_LIMIT
        elif self.available_margin <= 0:
            new = AccountStatus.AT_LIMIT
        else:
            new = AccountStatus.ACTIVE
        self._set_status(new)

    def _set_status(self, new: AccountStatus) -> None:
        if new == self.status:
            return
        old, self.status = self.status, new
        log = logger.warning if new == AccountStatus.BLOWN else logger.info
        log(
            "Account %s -> %s (balance %.2f, equity %.2f, drawdown %.2f%%)",
            old.value, new.value, self.balance, self.equity, self.drawdown_pct,
        )

    def _reason(self, effect: FillEffect) -> str:
        if effect.is_closing and effect.opened_size > EPSILON:
            return "flip"
        if effect.is_closing:
            return "close" if self.position.is_flat else "reduce"
        return "open" if abs(self.position.size - effect.opened_size) <= EPSILON else "add"

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> BalanceSnapshot:
        return BalanceSnapshot(
            initial_balance=self.initial_balance,
            current_balance=self.balance,
            currency=self.currency,
            equity=self.equity,
            realized_pnl=self.realized_pnl,
            unrealized_pnl=self.unrealized_pnl,
            commission_paid=self.commission_paid,
            used_margin=self.used_margin,
            available_margin=self.available_margin,
            buying_power=self.buying_power,
            leverage=self.leverage,
            high_water_mark=self.high_water_mark,
            low_water_mark=self.low_water_mark,
            drawdown_pct=self.drawdown_pct,
            max_drawdown_pct=self.max_drawdown_pct_seen,
            max_drawdown_amount=self.max_drawdown_amount,
            total_trades=self.trades.total,
            winning_trades=self.trades.winning,
            losing_trades=self.trades.losing,
            breakeven_trades=self.trades.breakeven,
            consecutive_wins=self.trades.consecutive_wins,
            consecutive_losses=self.trades.consecutive_losses,
            status=self.status,
        )
