"""
Structured JSON event logger for simulation runs.

Emits one JSON object per line to stderr so runs can be parsed by log
aggregators. When a webhook URL is configured, alert events
(order_rejected, account_blown, session_end, error) are also POSTed.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

from holodeck_core.contracts import Execution

logger = logging.getLogger("holodeck.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        symbol: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._symbol = symbol
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._ALERT_EVENTS = {
            "order_rejected",
            "account_blown",
            "session_end",
            "error",
        }

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "symbol": self._symbol,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=str).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def session_start(self, asset_class: str, initial_balance: float, speed: float) -> dict:
        return self._emit(
            "session_start",
            asset_class=asset_class,
            initial_balance=initial_balance,
            speed=speed,
        )

    def execution(self, execution: Execution) -> dict:
        return self._emit(
            "execution",
            order_id=execution.order_id,
            side=execution.side.value if hasattr(execution.side, "value") else str(execution.side),
            status=execution.status.value,
            filled=execution.filled_size,
            price=execution.fill_price,
            commission=round(execution.commission, 6),
            slippage=execution.slippage,
        )

    def order_rejected(self, order_id: str, reason: str, message: str = "") -> dict:
        return self._emit("order_rejected", order_id=order_id, reason=reason, message=message)

    def account_blown(self, balance: float, equity: float, drawdown_pct: float) -> dict:
        return self._emit(
            "account_blown",
            balance=round(balance, 2),
            equity=round(equity, 2),
            drawdown_pct=round(drawdown_pct, 2),
        )

    def progress(self, ticks: int, balance: float) -> dict:
        return self._emit("progress", ticks=ticks, balance=round(balance, 2))

    def session_end(self, reason: str, ticks: int, trades: int, final_balance: float, return_pct: float) -> dict:
        return self._emit(
            "session_end",
            reason=reason,
            ticks=ticks,
            trades=trades,
            final_balance=round(final_balance, 2),
            return_pct=round(return_pct, 4),
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
