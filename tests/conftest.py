"""Pytest fixtures: config factory and a fake wall clock."""

import pytest

from config.loader import HolodeckConfig, config_from_dict


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def _merge(base: dict, overrides: dict) -> dict:
    out = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = {**out[key], **value}
        else:
            out[key] = value
    return out


@pytest.fixture
def forex_data() -> dict:
    """EUR/USD, $10 000, leverage 1, no costs. Tests switch costs on as needed."""
    return {
        "instrument": {"type": "FOREX", "symbol": "EUR/USD"},
        "account": {"initial_balance": 10_000, "leverage": 1, "max_drawdown_percent": 20},
        "execution": {"commission": False, "slippage": False},
        "speed": {"multiplier": 100},
    }


@pytest.fixture
def make_config(forex_data: dict):
    def _make(**overrides) -> HolodeckConfig:
        return config_from_dict(_merge(forex_data, overrides))

    return _make
