"""
Tick sources: anything iterable over holodeck_core Ticks in time order.

The CSV reader is the file-backed implementation; tests and agents may pass
plain lists of Ticks.
"""

from typing import Iterable

from holodeck_core.contracts import Tick

from data.csv_reader import CSVTickReader, detect_columns, parse_depth, parse_timestamp

TickSource = Iterable[Tick]

__all__ = [
    "CSVTickReader",
    "detect_columns",
    "parse_depth",
    "parse_timestamp",
    "TickSource",
]
