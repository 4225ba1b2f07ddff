"""
CLI entry point: holodeck run | validate | info.

Every command loads config from --config (default config.yaml, or
$HOLODECK_CONFIG). Exit codes: 0 ok, 1 config error, 2 tick-stream error,
3 account blown.
"""

import logging
import sys

import click
from dotenv import load_dotenv

from config import load_config
from holodeck_core.errors import (
    ConfigError,
    TickOrderViolationError,
    TickSourceError,
    UnsupportedInstrumentError,
)

load_dotenv()

logger = logging.getLogger("holodeck")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_TICK_STREAM = 2
EXIT_BLOWN = 3

PROGRESS_EVERY = 1000


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load_or_exit(config_path: str):
    try:
        return load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG)


@click.group()
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    envvar="HOLODECK_CONFIG",
    show_default=True,
    help="Path to config file (.json / .yaml).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """holodeck: replay market ticks through a simulated exchange."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- holodeck run ----------


class _ProgressAgent:
    """Forwards ticks to the wrapped agent and reports progress periodically."""

    def __init__(self, inner, events, every: int = PROGRESS_EVERY) -> None:
        self._inner = inner
        self._events = events
        self._every = every

    def on_tick(self, driver, tick, index: int) -> None:
        if self._inner is not None:
            self._inner.on_tick(driver, tick, index)
        if self._every and (index + 1) % self._every == 0:
            self._events.progress(index + 1, driver.balance().current_balance)


@cli.command()
@click.option("--speed", type=float, default=None, envvar="HOLODECK_SPEED", help="Replay speed multiplier (default: config speed.multiplier).")
@click.option("--orders", "orders_path", default=None, help="Order schedule file (.json / .yaml) submitted during the replay.")
@click.option("--journal", "journal_path", default=None, help="Append JSON-lines journal here (default: config output.journal_path).")
@click.option("--max-ticks", type=int, default=None, help="Stop after this many ticks.")
@click.option("--structured-logs", is_flag=True, default=False, help="Emit JSON events to stderr.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Print every execution and enable debug logging.")
@click.pass_context
def run(
    ctx: click.Context,
    speed: float | None,
    orders_path: str | None,
    journal_path: str | None,
    max_ticks: int | None,
    structured_logs: bool,
    verbose: bool,
) -> None:
    """Replay the configured CSV ticks and print the session results."""
    cfg = _load_or_exit(ctx.obj["config_path"])
    from cli.output import format_blown_reason, format_execution, format_simulation_summary
    from cli.structured_log import StructuredEventLogger
    from data import CSVTickReader
    from journal import JournalWriter
    from simulator import ScheduledOrderAgent, load_order_schedule, run_simulation
    from simulator.driver import build_instrument

    if verbose:
        logging.getLogger("holodeck").setLevel(logging.DEBUG)

    if cfg.csv is None:
        click.echo("Config error: csv.filepath is required for 'holodeck run'", err=True)
        raise SystemExit(EXIT_CONFIG)

    try:
        instrument = build_instrument(cfg.instrument)
        schedule = load_order_schedule(orders_path) if orders_path else None
    except (ConfigError, UnsupportedInstrumentError) as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG)

    scheduled = ScheduledOrderAgent(schedule) if schedule else None
    events = StructuredEventLogger(
        instrument.symbol,
        enabled=structured_logs or cfg.output.structured_logs,
        webhook_url=cfg.output.webhook_url,
    )
    journal_target = journal_path or cfg.output.journal_path
    journal = JournalWriter(journal_target) if journal_target else None
    journal_callback = journal.on_event(instrument.symbol) if journal else None

    def on_event(event_type: str, payload: dict) -> None:
        if journal_callback is not None:
            journal_callback(event_type, payload)
        if event_type == "execution":
            execution = payload["execution"]
            events.execution(execution)
            if verbose:
                click.echo(format_execution(execution, instrument))
        elif event_type == "rejection":
            execution = payload["execution"]
            reason = execution.reject_reason.value if execution.reject_reason else ""
            events.order_rejected(execution.order_id, reason, execution.message)
            if verbose:
                click.echo(format_execution(execution, instrument))
        elif event_type == "blown":
            snap = payload["balance"]
            events.account_blown(snap.current_balance, snap.equity, snap.drawdown_pct)
        elif event_type == "session_end":
            m = payload["metrics"]
            events.session_end(payload["reason"], m.ticks_processed, m.trades, m.final_balance, m.return_pct)

    multiplier = speed if speed is not None else cfg.speed.multiplier
    events.session_start(instrument.asset_class.value, cfg.account.initial_balance, multiplier)
    click.echo(f"Replaying {cfg.csv.filepath}: {instrument.symbol} at {multiplier:g}x ...")

    reader = CSVTickReader(cfg.csv.filepath, timestamp_format=cfg.csv.timestamp_format)
    try:
        result = run_simulation(
            cfg,
            reader,
            _ProgressAgent(scheduled, events),
            on_event=on_event,
            speed=speed,
            max_ticks=max_ticks,
        )
    except ConfigError as exc:
        events.error("config error", str(exc))
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG)
    except (TickSourceError, TickOrderViolationError) as exc:
        events.error("tick stream error", str(exc))
        click.echo(f"Tick stream error: {exc}", err=True)
        raise SystemExit(EXIT_TICK_STREAM)

    click.echo(format_simulation_summary(result, instrument))
    if journal is not None:
        click.echo(f"Journal: {journal.path}")
    if scheduled is not None and scheduled.remaining:
        click.echo(f"{scheduled.remaining} scheduled order(s) were never reached.")

    if result.blown:
        click.echo(f"Account BLOWN: {format_blown_reason(result.balance)}.", err=True)
        raise SystemExit(EXIT_BLOWN)


# ---------- holodeck validate ----------


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the config file against the schema and the instrument catalog."""
    cfg = _load_or_exit(ctx.obj["config_path"])
    from cli.output import format_config_summary
    from simulator.driver import build_instrument

    try:
        build_instrument(cfg.instrument)
    except UnsupportedInstrumentError as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG)

    click.echo(f"Config OK: {ctx.obj['config_path']}")
    click.echo(format_config_summary(cfg))


# ---------- holodeck info ----------


@cli.command()
@click.option("--type", "asset_class", default=None, help="Asset class (FOREX, STOCKS, COMMODITIES, CRYPTO). Default: from config.")
@click.option("--symbol", default=None, help="Symbol to describe. Default: from config.")
@click.pass_context
def info(ctx: click.Context, asset_class: str | None, symbol: str | None) -> None:
    """Show the trading parameters of an instrument."""
    from cli.output import format_instrument
    from holodeck_core.instruments import make_instrument
    from simulator.driver import build_instrument

    try:
        if asset_class:
            instrument = make_instrument(asset_class, symbol or asset_class.upper())
        else:
            cfg = _load_or_exit(ctx.obj["config_path"])
            instrument = build_instrument(cfg.instrument)
            if symbol:
                instrument = make_instrument(instrument.asset_class, symbol, margin_rate=cfg.instrument.margin_rate)
    except UnsupportedInstrumentError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG)

    click.echo(format_instrument(instrument))


if __name__ == "__main__":
    cli()
