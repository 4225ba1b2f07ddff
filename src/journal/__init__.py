"""Append-only JSON-lines journal of simulation events."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]
