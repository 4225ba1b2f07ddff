"""Tests for the journal writer. Append-only JSON lines."""

import json
from datetime import datetime, timezone
from pathlib import Path

from holodeck_core.contracts import (
    BalanceUpdate,
    Execution,
    OrderKind,
    OrderStatus,
    RejectReason,
    Side,
)
from journal import JournalWriter

TS = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def _execution(status: OrderStatus = OrderStatus.FILLED, **kwargs) -> Execution:
    fields = dict(
        order_id="ORD-000001",
        side=Side.BUY,
        kind=OrderKind.MARKET,
        status=status,
        requested_size=1.0,
        filled_size=1.0 if status == OrderStatus.FILLED else 0.0,
        fill_price=1.1 if status == OrderStatus.FILLED else 0.0,
        timestamp=TS,
        commission=2.75,
    )
    fields.update(kwargs)
    return Execution(**fields)


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_journal_writer_append_only(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "journal.jsonl"
    j = JournalWriter(path)
    j.fill(_execution(), "EUR/USD")
    j.balance_update(BalanceUpdate(TS, 10_000.0, 9_997.25, -2.75, "open", "ORD-000001"))
    records = _lines(path)
    assert [r["event"] for r in records] == ["fill", "balance_update"]
    assert records[0]["symbol"] == "EUR/USD"
    assert records[0]["execution"]["side"] == "BUY"
    assert records[0]["execution"]["timestamp"] == "2024-01-02T10:00:00+00:00"
    assert records[1]["update"]["delta"] == -2.75
    assert "ts_utc" in records[0]

    JournalWriter(path).status("simulator", "RUNNING", "STOPPED")
    assert len(_lines(path)) == 3


def test_rejection_record(tmp_path: Path) -> None:
    j = JournalWriter(tmp_path / "j.jsonl")
    j.rejection(
        _execution(OrderStatus.REJECTED, reject_reason=RejectReason.INSUFFICIENT_MARGIN, message="required margin 1100.00"),
        "EUR/USD",
    )
    record = _lines(j.path)[0]
    assert record["event"] == "rejection"
    assert record["reason"] == "INSUFFICIENT_MARGIN"
    assert record["message"].startswith("required margin")


def test_on_event_dispatch(tmp_path: Path) -> None:
    j = JournalWriter(tmp_path / "j.jsonl")
    callback = j.on_event("EUR/USD")
    callback("execution", {"execution": _execution()})
    callback("execution", {"execution": _execution(OrderStatus.PENDING)})
    callback("rejection", {"execution": _execution(OrderStatus.REJECTED, reject_reason=RejectReason.SIZE_OUT_OF_RANGE)})
    callback("balance_update", {"update": BalanceUpdate(TS, 10_000.0, 9_997.25, -2.75, "open", "ORD-000001")})
    callback("status", {"component": "account", "old": "ACTIVE", "new": "BLOWN"})
    callback("session_end", {"reason": "stream_exhausted", "metrics": {"ticks_processed": 2}})
    events = [r["event"] for r in _lines(j.path)]
    assert events == ["fill", "order", "rejection", "balance_update", "status", "metrics"]
    assert _lines(j.path)[-1]["metrics"] == {"ticks_processed": 2}


def test_echo_stdout(tmp_path: Path, capsys) -> None:
    j = JournalWriter(tmp_path / "j.jsonl", echo_stdout=True)
    j.metrics({"trades": 0}, reason="stopped")
    assert '"event": "metrics"' in capsys.readouterr().out
