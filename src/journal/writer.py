"""
Simulation journal: append-only JSON lines, one object per event.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from holodeck_core.contracts import BalanceUpdate, Execution


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, float) and obj != obj:
        return None
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def fill(self, execution: Execution, symbol: str, **extra: Any) -> None:
        self._write("fill", {"symbol": symbol, "execution": execution, **extra})

    def rejection(self, execution: Execution, symbol: str, **extra: Any) -> None:
        self._write(
            "rejection",
            {"symbol": symbol, "order_id": execution.order_id, "reason": execution.reject_reason, "message": execution.message, **extra},
        )

    def order_event(self, execution: Execution, symbol: str, **extra: Any) -> None:
        """Non-fill order outcomes: PENDING acknowledgements, CANCELED, HOLD."""
        self._write("order", {"symbol": symbol, "execution": execution, **extra})

    def balance_update(self, update: BalanceUpdate, **extra: Any) -> None:
        self._write("balance_update", {"update": update, **extra})

    def status(self, component: str, old: Any, new: Any, **extra: Any) -> None:
        self._write("status", {"component": component, "old": old, "new": new, **extra})

    def metrics(self, metrics: Any, reason: str = "", **extra: Any) -> None:
        self._write("metrics", {"reason": reason, "metrics": metrics, **extra})

    def on_event(self, symbol: str):
        """Return a driver ``on_event`` callback that journals every event."""

        def _callback(event_type: str, payload: dict) -> None:
            if event_type == "execution":
                execution = payload["execution"]
                if execution.is_fill:
                    self.fill(execution, symbol)
                else:
                    self.order_event(execution, symbol)
            elif event_type == "rejection":
                self.rejection(payload["execution"], symbol)
            elif event_type == "balance_update":
                self.balance_update(payload["update"])
            elif event_type == "status":
                self.status(payload["component"], payload["old"], payload["new"])
            elif event_type == "blown":
                self._write("blown", {"symbol": symbol, **payload})
            elif event_type == "session_end":
                self.metrics(payload["metrics"], reason=payload.get("reason", ""))

        return _callback
