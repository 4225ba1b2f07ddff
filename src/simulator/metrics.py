"""
Session metrics: one flat record aggregated from the executor, the ledger
and the speed controller.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from account.ledger import AccountLedger
from execution.executor import OrderExecutor
from simulator.clock import SpeedStats


@dataclass(frozen=True)
class Metrics:
    ticks_processed: int
    trades: int                 # fill executions
    closed_trades: int
    rejected_orders: int
    canceled_orders: int
    partial_fills: int
    winning_trades: int
    losing_trades: int
    breakeven_trades: int
    win_rate: float             # percent of closed trades
    initial_balance: float
    final_balance: float
    equity: float
    realized_pnl: float
    unrealized_pnl: float
    return_pct: float
    drawdown_pct: float
    max_drawdown_pct: float
    max_drawdown_amount: float
    average_trade_pnl: float
    largest_win: float
    largest_loss: float
    profit_factor: float | None
    max_consecutive_wins: int
    max_consecutive_losses: int
    total_commission: float
    total_slippage: float
    average_slippage: float
    commission_by_asset_class: dict[str, float] = field(default_factory=dict)
    session_duration_s: float = 0.0
    simulated_duration_s: float = 0.0
    speed: dict = field(default_factory=dict)
    account_status: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def collect_metrics(
    *,
    ticks_processed: int,
    executor: OrderExecutor,
    ledger: AccountLedger,
    speed: SpeedStats,
) -> Metrics:
    trades = ledger.trades
    initial = ledger.initial_balance
    return Metrics(
        ticks_processed=ticks_processed,
        trades=executor.stats.executed,
        closed_trades=trades.total,
        rejected_orders=executor.stats.rejected,
        canceled_orders=executor.stats.canceled,
        partial_fills=executor.stats.partial_fills,
        winning_trades=trades.winning,
        losing_trades=trades.losing,
        breakeven_trades=trades.breakeven,
        win_rate=trades.win_rate,
        initial_balance=initial,
        final_balance=ledger.balance,
        equity=ledger.equity,
        realized_pnl=ledger.realized_pnl,
        unrealized_pnl=ledger.unrealized_pnl,
        return_pct=(ledger.balance - initial) / initial * 100,
        drawdown_pct=ledger.drawdown_pct,
        max_drawdown_pct=ledger.max_drawdown_pct_seen,
        max_drawdown_amount=ledger.max_drawdown_amount,
        average_trade_pnl=trades.average_pnl,
        largest_win=trades.largest_win,
        largest_loss=trades.largest_loss,
        profit_factor=trades.profit_factor,
        max_consecutive_wins=trades.max_consecutive_wins,
        max_consecutive_losses=trades.max_consecutive_losses,
        total_commission=ledger.commission_paid,
        total_slippage=executor.slippage_stats.total,
        average_slippage=executor.slippage_stats.average,
        commission_by_asset_class=executor.commission_ledger.totals(),
        session_duration_s=speed.elapsed_s,
        simulated_duration_s=speed.simulated_s,
        speed=speed.to_dict(),
        account_status=ledger.status.value,
    )
