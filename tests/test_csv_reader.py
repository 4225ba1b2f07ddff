"""Tests for the CSV tick reader."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from data import CSVTickReader, detect_columns, parse_depth, parse_timestamp
from holodeck_core.contracts import DepthLevel
from holodeck_core.errors import ErrorKind, TickSourceError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "ticks.csv"
    path.write_text(text.lstrip())
    return path


class TestColumns:
    def test_aliases_case_insensitive(self) -> None:
        mapping = detect_columns(["Time", "Bid_Price", "ASK", "bid_size", "ask_size", "Vol"])
        assert mapping == {
            "timestamp": "Time",
            "bid": "Bid_Price",
            "ask": "ASK",
            "bid_qty": "bid_size",
            "ask_qty": "ask_size",
            "volume": "Vol",
        }

    def test_parse_depth(self) -> None:
        assert parse_depth("1.1000:2|1.1002:5") == (DepthLevel(1.1, 2.0), DepthLevel(1.1002, 5.0))
        assert parse_depth("") == ()


class TestTimestamps:
    @pytest.mark.parametrize(
        "raw",
        [
            "2024-01-02T10:00:00Z",
            "2024-01-02 10:00:00",
            "2024-01-02T12:00:00+02:00",
            "01/02/2024 10:00:00",
            "1704189600",
        ],
    )
    def test_auto_detect(self, raw: str) -> None:
        assert parse_timestamp(raw) == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)

    def test_fractional_seconds(self) -> None:
        ts = parse_timestamp("2024-01-02 10:00:00.250")
        assert ts.microsecond == 250_000

    def test_explicit_format(self) -> None:
        ts = parse_timestamp("02.01.2024 10:00", "%d.%m.%Y %H:%M")
        assert ts == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)

    def test_unrecognised(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("soon")


class TestReader:
    def test_reads_ticks_with_level_one_depth(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """
timestamp,bid,ask,bid_qty,ask_qty,volume
2024-01-02T10:00:00Z,1.0999,1.1000,3,2,100
2024-01-02T10:00:01Z,1.1000,1.1001,0,4,50
""")
        reader = CSVTickReader(path)
        ticks = reader.read_all()
        assert len(ticks) == 2
        assert reader.ticks_read == 2
        assert ticks[0].bid == 1.0999
        assert ticks[0].bid_depth == (DepthLevel(1.0999, 3.0),)
        assert ticks[0].ask_depth == (DepthLevel(1.1, 2.0),)
        assert ticks[1].bid_depth == ()
        assert ticks[1].volume == 50.0

    def test_depth_columns(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """
time,bid,ask,bid_depth,ask_depth
2024-01-02 10:00:00,1.0999,1.1000,1.0999:1|1.0998:3,1.1000:2|1.1001:6
""")
        tick = next(iter(CSVTickReader(path)))
        assert tick.ask_depth[1] == DepthLevel(1.1001, 6.0)
        assert len(tick.bid_depth) == 2

    def test_reader_is_replayable(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "timestamp,bid,ask\n1704189600,1.1,1.1\n")
        reader = CSVTickReader(path)
        assert len(list(reader)) == len(list(reader)) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TickSourceError) as info:
            list(CSVTickReader(tmp_path / "none.csv"))
        assert info.value.line == 0
        assert info.value.kind == ErrorKind.TICK_SOURCE_IO

    def test_missing_required_column(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "timestamp,bid\n2024-01-02T10:00:00Z,1.1\n")
        with pytest.raises(TickSourceError, match="ask") as info:
            list(CSVTickReader(path))
        assert info.value.line == 1

    def test_bad_row_reports_line(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """
timestamp,bid,ask
2024-01-02T10:00:00Z,1.0999,1.1000
2024-01-02T10:00:01Z,abc,1.1001
""")
        reader = iter(CSVTickReader(path))
        next(reader)
        with pytest.raises(TickSourceError) as info:
            next(reader)
        assert info.value.line == 3
        assert "ticks.csv:3" in str(info.value)

    def test_crossed_quote_is_row_error(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "timestamp,bid,ask\n2024-01-02T10:00:00Z,1.1002,1.1000\n")
        with pytest.raises(TickSourceError, match="below bid"):
            list(CSVTickReader(path))
