"""
Order schedule agent: replays a fixed list of orders against the driver.

Schedule file (YAML or JSON), a list of entries keyed by tick index or time:

    - {tick: 0, side: BUY, size: 1.0}
    - {at: "2024-01-02T10:00:05Z", side: SELL, size: 1.0, type: LIMIT, limit_price: 1.1010}
    - {tick: 3, cancel: ORD-000002}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import jsonschema
import yaml

from holodeck_core.contracts import Execution, Order, OrderKind, Tick, TimeInForce, as_utc
from holodeck_core.errors import ConfigError

logger = logging.getLogger("holodeck.agent")

_ENTRY_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "tick": {"type": "integer", "minimum": 0},
            "at": {"type": ["string", "number"]},
            "id": {"type": "string", "minLength": 1},
            "side": {"enum": ["BUY", "SELL", "HOLD"]},
            "size": {"type": "number"},
            "type": {"enum": ["MARKET", "LIMIT"]},
            "limit_price": {"type": "number"},
            "time_in_force": {"enum": ["GTC", "DAY"]},
            "cancel": {"type": "string", "minLength": 1},
        },
        "oneOf": [{"required": ["tick"]}, {"required": ["at"]}],
        "anyOf": [{"required": ["side"]}, {"required": ["cancel"]}],
    },
}


class Agent(Protocol):
    """Anything the runner can call once per tick."""

    def on_tick(self, driver, tick: Tick, index: int) -> None: ...


@dataclass
class ScheduledOrder:
    tick: int | None = None
    at: datetime | None = None
    order: Order | None = None
    cancel: str | None = None
    done: bool = False

    def is_due(self, tick: Tick, index: int) -> bool:
        if self.tick is not None:
            return index >= self.tick
        return self.at is not None and tick.timestamp >= self.at


def _parse_at(value: Any, i: int) -> datetime:
    if isinstance(value, (int, float)):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise ConfigError(f"orders[{i}].at", f"not an ISO timestamp: {value!r}") from None


def parse_order_schedule(data: Any) -> list[ScheduledOrder]:
    """Validate raw schedule entries and build ScheduledOrder records."""
    if isinstance(data, list):
        # YAML parses unquoted timestamps into datetimes.
        data = [
            {**raw, "at": raw["at"].isoformat()}
            if isinstance(raw, dict) and isinstance(raw.get("at"), datetime)
            else raw
            for raw in data
        ]
    try:
        jsonschema.validate(instance=data, schema=_ENTRY_SCHEMA)
    except jsonschema.ValidationError as exc:
        path = "".join(f"[{p}]" if isinstance(p, int) else f".{p}" for p in exc.absolute_path)
        raise ConfigError(f"orders{path}", exc.message) from exc

    schedule: list[ScheduledOrder] = []
    for i, raw in enumerate(data):
        entry = ScheduledOrder(
            tick=raw.get("tick"),
            at=_parse_at(raw["at"], i) if "at" in raw else None,
            cancel=raw.get("cancel"),
        )
        if "side" in raw:
            entry.order = Order(
                side=raw["side"],
                size=float(raw.get("size", 0.0)),
                kind=raw.get("type", OrderKind.MARKET),
                limit_price=raw.get("limit_price"),
                time_in_force=raw.get("time_in_force", TimeInForce.GTC),
                id=raw.get("id", ""),
            )
        schedule.append(entry)
    return schedule


def load_order_schedule(path: str | Path) -> list[ScheduledOrder]:
    """Read a ``.json`` / ``.yaml`` / ``.yml`` order schedule."""
    p = Path(path)
    if not p.exists():
        raise ConfigError("orders", f"Order schedule not found: {p}")
    with open(p) as f:
        try:
            data = yaml.safe_load(f) if p.suffix.lower() in (".yaml", ".yml") else json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError("orders", f"Order schedule is not parseable: {exc}") from exc
    return parse_order_schedule(data or [])


class ScheduledOrderAgent:
    """Submits each scheduled order at the first tick where it is due."""

    def __init__(self, schedule: list[ScheduledOrder]) -> None:
        self._schedule = schedule
        self.results: list[Execution] = []

    @property
    def remaining(self) -> int:
        return sum(1 for e in self._schedule if not e.done)

    def on_tick(self, driver, tick: Tick, index: int) -> None:
        for entry in self._schedule:
            if entry.done or not entry.is_due(tick, index):
                continue
            if driver.is_blown():
                return
            entry.done = True
            if entry.cancel:
                result = driver.cancel_order(entry.cancel)
                if result is None:
                    logger.info("Cancel of %s ignored: order not active", entry.cancel)
                else:
                    self.results.append(result)
            if entry.order is not None:
                self.results.append(driver.submit_order(entry.order))
