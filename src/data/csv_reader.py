"""
CSV tick reader: one row per tick, yielded lazily in file order.

Columns are matched case-insensitively against these aliases:

    timestamp : timestamp | time | date | datetime
    bid       : bid | bid_price
    ask       : ask | ask_price
    bid_qty   : bid_qty | bid_quantity | bid_size
    ask_qty   : ask_qty | ask_quantity | ask_size
    volume    : volume | vol | qty | size
    bid_depth : bid_depth   ("price:volume|price:volume", best first)
    ask_depth : ask_depth

Only timestamp, bid and ask are required. Without depth columns the
bid/ask quantities become level-1 depth. Timestamps without a zone are UTC.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from holodeck_core.contracts import DepthLevel, Tick
from holodeck_core.errors import TickSourceError

logger = logging.getLogger("holodeck.data")

_ALIASES: dict[str, tuple[str, ...]] = {
    "timestamp": ("timestamp", "time", "date", "datetime"),
    "bid": ("bid", "bid_price"),
    "ask": ("ask", "ask_price"),
    "bid_qty": ("bid_qty", "bid_quantity", "bid_size"),
    "ask_qty": ("ask_qty", "ask_quantity", "ask_size"),
    "volume": ("volume", "vol", "qty", "size"),
    "bid_depth": ("bid_depth",),
    "ask_depth": ("ask_depth",),
}

_REQUIRED = ("timestamp", "bid", "ask")

_FALLBACK_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S",
)


def detect_columns(header: list[str]) -> dict[str, str]:
    """Map canonical column names onto the header's actual names."""
    normalized = {h.strip().lower(): h for h in header if h is not None}
    mapping: dict[str, str] = {}
    for canonical, aliases in _ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                mapping[canonical] = normalized[alias]
                break
    return mapping


def parse_timestamp(raw: str, fmt: str | None = None) -> datetime:
    """Parse a tick timestamp; raise ValueError if no known format matches."""
    value = raw.strip()
    if fmt:
        ts = datetime.strptime(value, fmt)
    else:
        ts = _autodetect(value)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _autodetect(value: str) -> datetime:
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"unrecognised timestamp {value!r}")


def parse_depth(raw: str) -> tuple[DepthLevel, ...]:
    """Parse ``price:volume|price:volume`` into depth levels."""
    levels = []
    for part in raw.split("|"):
        part = part.strip()
        if not part:
            continue
        price, _, volume = part.partition(":")
        levels.append(DepthLevel(float(price), float(volume)))
    return tuple(levels)


def _float(row: dict, column: str | None, default: float = 0.0) -> float:
    if column is None:
        return default
    raw = (row.get(column) or "").strip()
    return float(raw) if raw else default


class CSVTickReader:
    """
    Iterable tick source over a CSV file.

    Each iteration re-opens the file, so a reader can be replayed. Row-level
    problems raise TickSourceError with the file and 1-based line number.
    """

    def __init__(self, path: str | Path, *, timestamp_format: str | None = None) -> None:
        self.path = Path(path)
        self.timestamp_format = timestamp_format
        self.ticks_read = 0

    def __iter__(self) -> Iterator[Tick]:
        if not self.path.exists():
            raise TickSourceError(str(self.path), 0, "tick file not found")
        self.ticks_read = 0
        try:
            with open(self.path, newline="") as f:
                reader = csv.DictReader(f)
                columns = detect_columns(reader.fieldnames or [])
                missing = [c for c in _REQUIRED if c not in columns]
                if missing:
                    raise TickSourceError(str(self.path), 1, f"missing required column(s): {', '.join(missing)}")
                logger.debug("CSV %s columns: %s", self.path.name, columns)

                for row in reader:
                    tick = self._parse_row(row, columns, reader.line_num)
                    self.ticks_read += 1
                    yield tick
        except OSError as exc:
            raise TickSourceError(str(self.path), 0, f"cannot read tick file: {exc}") from exc

        logger.info("Read %d ticks from %s", self.ticks_read, self.path.name)

    def read_all(self) -> list[Tick]:
        return list(self)

    def _parse_row(self, row: dict, columns: dict[str, str], line: int) -> Tick:
        try:
            ts = parse_timestamp(row[columns["timestamp"]] or "", self.timestamp_format)
            bid = float(row[columns["bid"]])
            ask = float(row[columns["ask"]])
            volume = _float(row, columns.get("volume"))

            if "bid_depth" in columns or "ask_depth" in columns:
                bid_depth = parse_depth(row.get(columns.get("bid_depth", ""), "") or "")
                ask_depth = parse_depth(row.get(columns.get("ask_depth", ""), "") or "")
            else:
                bid_qty = _float(row, columns.get("bid_qty"))
                ask_qty = _float(row, columns.get("ask_qty"))
                bid_depth = (DepthLevel(bid, bid_qty),) if bid_qty > 0 else ()
                ask_depth = (DepthLevel(ask, ask_qty),) if ask_qty > 0 else ()

            return Tick(
                timestamp=ts,
                bid=bid,
                ask=ask,
                volume=volume,
                bid_depth=bid_depth,
                ask_depth=ask_depth,
            )
        except (TypeError, ValueError) as exc:
            raise TickSourceError(str(self.path), line, str(exc)) from exc
