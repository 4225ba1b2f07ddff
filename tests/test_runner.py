"""Tests for the order-schedule agent, run_simulation and session metrics."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from holodeck_core.contracts import OrderKind, OrderStatus, Side, SimulatorStatus, Tick
from holodeck_core.errors import ConfigError
from simulator.agents import ScheduledOrderAgent, load_order_schedule, parse_order_schedule
from simulator.runner import run_simulation

T0 = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def _tick(seconds: float, bid: float, ask: float) -> Tick:
    return Tick(timestamp=T0 + timedelta(seconds=seconds), bid=bid, ask=ask)


def _ramp(n: int, start: float = 1.1000, step: float = 0.0005) -> list[Tick]:
    return [_tick(i, start + i * step, start + i * step + 0.0001) for i in range(n)]


class TestOrderSchedule:
    def test_parse_tick_and_time_entries(self) -> None:
        schedule = parse_order_schedule([
            {"tick": 0, "side": "BUY", "size": 1.0},
            {"at": "2024-01-02T10:00:05Z", "side": "SELL", "size": 1.0, "type": "LIMIT", "limit_price": 1.11},
            {"tick": 3, "cancel": "ORD-000002"},
        ])
        assert schedule[0].tick == 0
        assert schedule[0].order.side == Side.BUY
        assert schedule[1].at == T0 + timedelta(seconds=5)
        assert schedule[1].order.kind == OrderKind.LIMIT
        assert schedule[2].cancel == "ORD-000002"
        assert schedule[2].order is None

    @pytest.mark.parametrize(
        "entry, field",
        [
            ({"side": "BUY", "size": 1}, "orders[0]"),
            ({"tick": 0, "side": "BUY", "size": 1, "qty": 2}, "orders[0]"),
            ({"tick": 0, "side": "LONG", "size": 1}, "orders[0].side"),
        ],
    )
    def test_invalid_entries(self, entry: dict, field: str) -> None:
        with pytest.raises(ConfigError) as info:
            parse_order_schedule([entry])
        assert info.value.field == field

    def test_bad_timestamp(self) -> None:
        with pytest.raises(ConfigError) as info:
            parse_order_schedule([{"at": "yesterday", "side": "BUY", "size": 1}])
        assert info.value.field == "orders[0].at"

    def test_load_yaml_with_native_timestamps(self, tmp_path: Path) -> None:
        path = tmp_path / "orders.yaml"
        path.write_text(
            "- {tick: 1, side: BUY, size: 0.5}\n"
            "- {at: 2024-01-02 10:00:03, side: SELL, size: 0.5}\n"
        )
        schedule = load_order_schedule(path)
        assert len(schedule) == 2
        assert schedule[1].at == T0 + timedelta(seconds=3)

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_order_schedule(tmp_path / "nope.json")


class TestRunSimulation:
    def test_exhausts_stream(self, make_config, fake_clock) -> None:
        result = run_simulation(make_config(), _ramp(5), clock=fake_clock, sleep=fake_clock.sleep)
        assert result.status == SimulatorStatus.STOPPED
        assert result.metrics.ticks_processed == 5
        assert result.balance.current_balance == 10_000
        assert not result.blown

    def test_scheduled_round_trip(self, make_config, fake_clock) -> None:
        agent = ScheduledOrderAgent(parse_order_schedule([
            {"tick": 0, "side": "BUY", "size": 1.0},
            {"tick": 4, "side": "SELL", "size": 1.0},
        ]))
        result = run_simulation(make_config(), _ramp(6), agent, clock=fake_clock, sleep=fake_clock.sleep)
        assert [e.status for e in result.fills] == [OrderStatus.FILLED, OrderStatus.FILLED]
        assert result.balance.realized_pnl == pytest.approx((1.1020 - 1.1001) * 100_000)
        assert result.metrics.closed_trades == 1
        assert result.metrics.winning_trades == 1
        assert result.metrics.profit_factor is None
        assert agent.remaining == 0
        assert len(agent.results) == 2

    def test_timestamp_schedule_and_cancel(self, make_config, fake_clock) -> None:
        agent = ScheduledOrderAgent(parse_order_schedule([
            {"at": "2024-01-02T10:00:01Z", "side": "BUY", "size": 1.0, "type": "LIMIT", "limit_price": 1.0},
            {"tick": 3, "cancel": "ORD-000001"},
        ]))
        result = run_simulation(make_config(), _ramp(5), agent, clock=fake_clock, sleep=fake_clock.sleep)
        assert [r.status for r in agent.results] == [OrderStatus.PENDING, OrderStatus.CANCELED]
        assert result.pending_orders == []
        assert result.metrics.canceled_orders == 1

    def test_stops_when_blown(self, make_config, fake_clock) -> None:
        ticks = [_tick(0, 1.1, 1.1), _tick(1, 1.07, 1.0702), _tick(2, 1.07, 1.0702)]
        agent = ScheduledOrderAgent(parse_order_schedule([{"tick": 0, "side": "BUY", "size": 1.0}]))
        events: list[str] = []
        result = run_simulation(
            make_config(), ticks, agent,
            on_event=lambda kind, payload: events.append(kind),
            clock=fake_clock, sleep=fake_clock.sleep,
        )
        assert result.blown
        assert result.metrics.ticks_processed == 2
        assert result.metrics.account_status == "BLOWN"
        assert events[-1] == "session_end"

    def test_max_ticks(self, make_config, fake_clock) -> None:
        result = run_simulation(make_config(), _ramp(10), max_ticks=3, clock=fake_clock, sleep=fake_clock.sleep)
        assert result.metrics.ticks_processed == 3
        assert result.status == SimulatorStatus.STOPPED

    def test_metrics_record(self, make_config, fake_clock) -> None:
        cfg = make_config(execution={"commission": True})
        agent = ScheduledOrderAgent(parse_order_schedule([
            {"tick": 0, "side": "BUY", "size": 1.0},
            {"tick": 1, "side": "SELL", "size": 1.0},
            {"tick": 2, "side": "BUY", "size": 50000},
        ]))
        result = run_simulation(cfg, _ramp(3), agent, clock=fake_clock, sleep=fake_clock.sleep)
        m = result.metrics
        assert m.trades == 2
        assert m.rejected_orders == 1
        assert m.total_commission == pytest.approx(result.balance.commission_paid)
        assert m.commission_by_asset_class["FOREX"] == pytest.approx(m.total_commission)
        assert m.simulated_duration_s == 2.0
        assert m.return_pct == pytest.approx((m.final_balance - 10_000) / 10_000 * 100)
        assert m.to_dict()["initial_balance"] == 10_000
