"""
Human-readable simulation output for the terminal.

Every CLI command prints through these formatters. The journal receives the
same data as JSON lines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from holodeck_core.contracts import BalanceSnapshot, Execution, Instrument

if TYPE_CHECKING:
    from config.loader import HolodeckConfig
    from simulator.runner import SimulationResult

_RULE = "=" * 63


def _money(value: float) -> str:
    return f"${value:,.2f}"


def format_execution(execution: Execution, instrument: Instrument) -> str:
    """One line per execution event."""
    side = execution.side.value if hasattr(execution.side, "value") else str(execution.side)
    head = f"  [{execution.timestamp.isoformat()}] {execution.order_id} {side} {execution.kind.value if hasattr(execution.kind, 'value') else execution.kind}"
    if execution.is_rejected:
        reason = execution.reject_reason.value if execution.reject_reason else "?"
        return f"{head} REJECTED {reason}: {execution.message}"
    if execution.is_fill:
        line = (
            f"{head} {execution.status.value} {execution.filled_size:g}/{execution.requested_size:g}"
            f" @ {instrument.format_price(execution.fill_price)}"
            f"  commission {_money(execution.commission)}"
        )
        if execution.slippage:
            line += f"  slippage {execution.slippage:.{instrument.decimal_places}f}"
        if execution.remaining_size:
            line += f"  remaining {execution.remaining_size:g}"
        return line
    suffix = f" ({execution.message})" if execution.message else ""
    return f"{head} {execution.status.value}{suffix}"


def format_simulation_summary(result: SimulationResult, instrument: Instrument) -> str:
    """Final results in sections: market data, trades, account, performance, position."""
    m = result.metrics
    bal = result.balance
    pos = result.position
    pf = "n/a" if m.profit_factor is None else f"{m.profit_factor:.2f}"

    lines = [
        "",
        _RULE,
        " " * 15 + "SIMULATION RESULTS",
        _RULE,
        "",
        "MARKET DATA:",
        f"  Instrument:                {instrument.symbol} ({instrument.asset_class.value})",
        f"  Ticks Processed:           {m.ticks_processed}",
        f"  Simulated Duration:        {m.simulated_duration_s:.1f}s",
        "",
        "TRADES:",
        f"  Fills:                     {m.trades} ({m.partial_fills} partial)",
        f"  Closed Trades:             {m.closed_trades} (W:{m.winning_trades} / L:{m.losing_trades} / BE:{m.breakeven_trades})",
        f"  Rejected Orders:           {m.rejected_orders}",
        f"  Canceled Orders:           {m.canceled_orders}",
        f"  Pending Orders:            {len(result.pending_orders)}",
        "",
        "ACCOUNT:",
        f"  Status:                    {bal.status.value}",
        f"  Initial Balance:           {_money(bal.initial_balance)}",
        f"  Final Balance:             {_money(bal.current_balance)}",
        f"  Equity:                    {_money(bal.equity)}",
        f"  Net P&L:                   {_money(bal.current_balance - bal.initial_balance)}",
        f"  Commission Paid:           {_money(bal.commission_paid)}",
        f"  Used Margin:               {_money(bal.used_margin)}",
        "",
        "PERFORMANCE:",
        f"  Return %:                  {m.return_pct:.2f}%",
        f"  Max Drawdown %:            {m.max_drawdown_pct:.2f}% ({_money(m.max_drawdown_amount)})",
        f"  Win Rate:                  {m.win_rate:.2f}%",
        f"  Profit Factor:             {pf}",
        f"  Average Trade:             {_money(m.average_trade_pnl)}",
        f"  Largest Win / Loss:        {_money(m.largest_win)} / {_money(m.largest_loss)}",
        f"  Max Consecutive W / L:     {m.max_consecutive_wins} / {m.max_consecutive_losses}",
        f"  Total Slippage:            {m.total_slippage:.{instrument.decimal_places}f}",
        "",
        "POSITION:",
    ]
    if pos.is_flat:
        lines.append("  Flat")
    else:
        lines.extend([
            f"  Side:                      {pos.side.value}",
            f"  Size:                      {pos.size:.2f}",
            f"  Entry Price:               {instrument.format_price(pos.avg_entry_price)}",
            f"  Unrealized P&L:            {_money(pos.unrealized_pnl)}",
        ])
    lines.append(f"  Realized P&L:              {_money(bal.realized_pnl)}")
    lines.extend([
        "",
        f"Session Duration:            {m.session_duration_s:.2f}s",
        _RULE,
    ])
    return "\n".join(lines)


def format_instrument(instrument: Instrument) -> str:
    lines = [
        f"=== Instrument: {instrument.symbol} ===",
        f"Description  : {instrument.description}",
        f"Asset class  : {instrument.asset_class.value}",
        f"Decimals     : {instrument.decimal_places}",
        f"Pip / tick   : {instrument.pip_value:g} / {instrument.tick_size:g}",
        f"Contract     : {instrument.contract_size:g} units per lot",
        f"Volume       : {instrument.min_volume:g} - {instrument.max_volume:g} (step {instrument.min_lot:g})",
        f"Margin rate  : {instrument.margin_rate:.2%}",
        f"Spread       : {instrument.typical_spread:g} typical",
        f"Volatility   : {instrument.volatility:.0%} ({instrument.volatility_category})",
        f"Liquidity    : {instrument.liquidity_category}",
        f"Session (UTC): {instrument.open_hour:02d}:00 - {instrument.close_hour:02d}:00",
        "===",
    ]
    return "\n".join(lines)


def format_config_summary(cfg: HolodeckConfig) -> str:
    ex = cfg.execution
    acct = cfg.account
    commission = "off" if not ex.commission else (ex.commission_type or "asset-class default")
    lines = [
        f"Instrument   : {cfg.instrument.type} {cfg.instrument.symbol}",
        f"Account      : {_money(acct.initial_balance)} {acct.currency}, leverage {acct.leverage:g}x, "
        f"max drawdown {acct.max_drawdown_percent:g}% ({acct.drawdown_action})",
        f"Commission   : {commission}",
        f"Slippage     : {ex.slippage_model if ex.slippage else 'off'}",
        f"Partial fills: {ex.effective_partial_fill_mode}",
        f"Latency      : {ex.effective_latency_ms} ms",
        f"Speed        : {cfg.speed.multiplier:g}x",
        f"Ticks        : {cfg.csv.filepath if cfg.csv else '(none)'}",
    ]
    return "\n".join(lines)


def format_blown_reason(balance: BalanceSnapshot) -> str:
    """Why the account was blown: cash exhausted or drawdown limit breached."""
    if balance.current_balance <= 0:
        return f"cash balance exhausted ({_money(balance.current_balance)})"
    return f"maximum drawdown exceeded ({balance.drawdown_pct:.2f}% of high-water mark)"
