"""Tests for the position tracker and the account ledger."""

from datetime import datetime, timedelta, timezone

import pytest

from account.ledger import AccountLedger, TradeStats
from account.position import PositionTracker
from holodeck_core.contracts import (
    AccountStatus,
    Execution,
    OrderKind,
    OrderStatus,
    PositionSide,
    Side,
    Tick,
)
from holodeck_core.errors import ConfigError, InvalidStateError
from holodeck_core.instruments import make_instrument

TS = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
FOREX = make_instrument("FOREX", "EUR/USD")


def _tick(seconds: float = 0, bid: float = 1.1000, ask: float = 1.1000) -> Tick:
    return Tick(timestamp=TS + timedelta(seconds=seconds), bid=bid, ask=ask)


def _fill(side: Side, size: float, price: float, *, commission: float = 0.0, seconds: float = 0, oid: str = "O1") -> Execution:
    return Execution(
        order_id=oid,
        side=side,
        kind=OrderKind.MARKET,
        status=OrderStatus.FILLED,
        requested_size=size,
        filled_size=size,
        fill_price=price,
        timestamp=TS + timedelta(seconds=seconds),
        commission=commission,
    )


def _assert_invariants(ledger: AccountLedger) -> None:
    assert ledger.available_margin == pytest.approx(ledger.leverage * ledger.balance - ledger.used_margin)
    assert sum(u.delta for u in ledger.history) == pytest.approx(ledger.balance - ledger.initial_balance)
    assert ledger.position.is_flat == (ledger.position.size == 0)


# ---------------------------------------------------------------------------
# Position
# ---------------------------------------------------------------------------


class TestPositionTracker:
    def test_open_and_add_reweights_entry(self) -> None:
        pos = PositionTracker(FOREX)
        pos.apply_fill(Side.BUY, 1.0, 1.1000, TS)
        pos.apply_fill(Side.BUY, 1.0, 1.1010, TS)
        assert pos.side == PositionSide.LONG
        assert pos.size == 2.0
        assert pos.avg_entry_price == pytest.approx(1.1005)
        assert pos.opened_at == TS

    def test_round_trip_at_same_price_is_flat_and_zero(self) -> None:
        pos = PositionTracker(FOREX)
        pos.apply_fill(Side.BUY, 3.0, 1.1000, TS)
        effect = pos.apply_fill(Side.SELL, 3.0, 1.1000, TS)
        assert effect.realized_pnl == 0.0
        assert pos.is_flat
        assert pos.size == 0.0

    def test_flip_long_to_short(self) -> None:
        pos = PositionTracker(FOREX)
        pos.apply_fill(Side.BUY, 1.0, 1.1000, TS)
        effect = pos.apply_fill(Side.SELL, 2.0, 1.1010, TS)
        assert effect.realized_pnl == pytest.approx(100.0)
        assert effect.closed_size == 1.0
        assert effect.opened_size == 1.0
        assert pos.side == PositionSide.SHORT
        assert pos.size == 1.0
        assert pos.avg_entry_price == 1.1010

    def test_reduce_short(self) -> None:
        pos = PositionTracker(FOREX)
        pos.apply_fill(Side.SELL, 2.0, 1.1010, TS)
        effect = pos.apply_fill(Side.BUY, 1.0, 1.1000, TS)
        assert effect.realized_pnl == pytest.approx(100.0)
        assert pos.side == PositionSide.SHORT
        assert pos.size == 1.0

    def test_mark_uses_close_side(self) -> None:
        pos = PositionTracker(FOREX)
        pos.apply_fill(Side.BUY, 1.0, 1.1000, TS)
        assert pos.mark(_tick(bid=1.0990, ask=1.0992)) == pytest.approx(-100.0)
        short = PositionTracker(FOREX)
        short.apply_fill(Side.SELL, 1.0, 1.1000, TS)
        assert short.mark(_tick(bid=1.0990, ask=1.0992)) == pytest.approx(80.0)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class TestLedger:
    def test_rejects_bad_settings(self) -> None:
        with pytest.raises(ConfigError):
            AccountLedger(FOREX, initial_balance=0)
        with pytest.raises(ConfigError):
            AccountLedger(FOREX, initial_balance=1_000, leverage=0.5)
        with pytest.raises(ConfigError):
            AccountLedger(FOREX, initial_balance=1_000, drawdown_action="ignore")

    def test_round_trip_with_commission(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000)
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1000, commission=2.75), _tick())
        update = ledger.apply_execution(_fill(Side.SELL, 1.0, 1.1010, commission=2.7525, seconds=1))
        assert update.reason == "close"
        assert ledger.balance == pytest.approx(10_094.4975)
        assert ledger.realized_pnl == pytest.approx(100.0)
        assert ledger.commission_paid == pytest.approx(5.5025)
        assert ledger.used_margin == 0.0
        assert ledger.trades.total == 1
        assert ledger.trades.winning == 1
        _assert_invariants(ledger)

    def test_margin_tracks_open_notional(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000, leverage=2)
        ledger.apply_execution(_fill(Side.BUY, 2.0, 1.1000), _tick())
        assert ledger.used_margin == pytest.approx(2_200)
        assert ledger.buying_power == pytest.approx(20_000)
        assert ledger.available_margin == pytest.approx(17_800)
        _assert_invariants(ledger)

    def test_balance_update_reasons(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000)
        reasons = [
            ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1)).reason,
            ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1)).reason,
            ledger.apply_execution(_fill(Side.SELL, 1.0, 1.1)).reason,
            ledger.apply_execution(_fill(Side.SELL, 2.0, 1.1)).reason,
            ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1)).reason,
        ]
        assert reasons == ["open", "add", "reduce", "flip", "close"]
        _assert_invariants(ledger)

    def test_non_fill_executions_ignored(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000)
        rejected = Execution(
            order_id="R1", side=Side.BUY, kind=OrderKind.MARKET, status=OrderStatus.REJECTED,
            requested_size=1.0, filled_size=0.0, fill_price=0.0, timestamp=TS,
        )
        assert ledger.apply_execution(rejected) is None
        assert ledger.history == []

    def test_drawdown_breach_blows_account(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000, max_drawdown_pct=20)
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1000), _tick())
        status = ledger.mark_to_market(_tick(1, bid=1.0700, ask=1.0702))
        assert ledger.unrealized_pnl == pytest.approx(-3_000)
        assert ledger.drawdown_pct == pytest.approx(30.0)
        assert status == AccountStatus.BLOWN
        assert ledger.balance == 10_000
        with pytest.raises(InvalidStateError):
            ledger.apply_execution(_fill(Side.SELL, 1.0, 1.07))

    def test_drawdown_exactly_at_threshold_is_not_breach(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000, max_drawdown_pct=20)
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1000), _tick())
        status = ledger.mark_to_market(_tick(1, bid=1.0800, ask=1.0802))
        assert ledger.drawdown_pct == pytest.approx(20.0)
        assert status == AccountStatus.ACTIVE

    def test_block_action_limits_then_recovers(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000, max_drawdown_pct=20, drawdown_action="block")
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1000), _tick())
        assert ledger.mark_to_market(_tick(1, bid=1.0700, ask=1.0702)) == AccountStatus.AT_LIMIT
        assert ledger.mark_to_market(_tick(2, bid=1.0990, ask=1.0992)) == AccountStatus.ACTIVE

    def test_water_marks_on_equity(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000)
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1000), _tick())
        marks = []
        for i, bid in enumerate((1.1010, 1.0990, 1.1020, 1.1000)):
            ledger.mark_to_market(_tick(i + 1, bid=bid, ask=bid))
            marks.append(ledger.high_water_mark)
        assert marks == sorted(marks)
        assert ledger.high_water_mark == pytest.approx(10_200)
        assert ledger.low_water_mark == pytest.approx(9_900)
        assert ledger.max_drawdown_amount == pytest.approx(200)

    def test_close_requires_flat(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000)
        ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1))
        with pytest.raises(InvalidStateError):
            ledger.close()
        ledger.apply_execution(_fill(Side.SELL, 1.0, 1.1))
        ledger.close()
        assert ledger.status == AccountStatus.CLOSED
        with pytest.raises(InvalidStateError):
            ledger.apply_execution(_fill(Side.BUY, 1.0, 1.1))

    def test_snapshot(self) -> None:
        ledger = AccountLedger(FOREX, initial_balance=10_000, currency="EUR")
        snap = ledger.snapshot()
        assert snap.current_balance == 10_000
        assert snap.currency == "EUR"
        assert snap.status == AccountStatus.ACTIVE
        assert snap.available_margin == 10_000


class TestTradeStats:
    def test_streaks_and_profit_factor(self) -> None:
        stats = TradeStats()
        for pnl in (100.0, 50.0, -30.0, -20.0, -10.0, 0.0, 40.0):
            stats.record(pnl)
        assert stats.total == 7
        assert (stats.winning, stats.losing, stats.breakeven) == (3, 3, 1)
        assert stats.max_consecutive_wins == 2
        assert stats.max_consecutive_losses == 3
        assert stats.consecutive_wins == 1
        assert stats.largest_win == 100.0
        assert stats.largest_loss == -30.0
        assert stats.profit_factor == pytest.approx(190.0 / 60.0)
        assert stats.net_pnl == pytest.approx(130.0)
        assert stats.win_rate == pytest.approx(300 / 7)

    def test_profit_factor_undefined_without_losses(self) -> None:
        stats = TradeStats()
        stats.record(10.0)
        assert stats.profit_factor is None

    def test_breakeven_resets_streaks(self) -> None:
        stats = TradeStats()
        stats.record(5.0)
        stats.record(0.0)
        assert stats.consecutive_wins == 0
        assert stats.consecutive_losses == 0
