"""
Error taxonomy for the simulated exchange.

Every exception the core raises derives from HolodeckError and carries an
ErrorKind. Per-order validation failures are NOT raised: they come back as
a rejected Execution with a RejectReason (see contracts.py).
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CONFIG_INVALID = "CONFIG_INVALID"
    TICK_ORDER_VIOLATION = "TICK_ORDER_VIOLATION"
    TICK_SOURCE_IO = "TICK_SOURCE_IO"
    INVALID_STATE = "INVALID_STATE"
    ORDER_REJECTED = "ORDER_REJECTED"
    ACCOUNT_BLOWN = "ACCOUNT_BLOWN"
    STREAM_EXHAUSTED = "STREAM_EXHAUSTED"
    UNSUPPORTED_INSTRUMENT = "UNSUPPORTED_INSTRUMENT"


class HolodeckError(Exception):
    """Base class for all simulator errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE


class ConfigError(HolodeckError):
    """Raised when a configuration field violates its contract."""

    kind = ErrorKind.CONFIG_INVALID

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


class TickOrderViolationError(HolodeckError):
    """Raised when the tick source yields a timestamp older than the previous one."""

    kind = ErrorKind.TICK_ORDER_VIOLATION


class TickSourceError(HolodeckError):
    """Raised by tick readers for unreadable files or malformed rows."""

    kind = ErrorKind.TICK_SOURCE_IO

    def __init__(self, path: str, line: int, message: str) -> None:
        self.path = path
        self.line = line
        super().__init__(f"{path}:{line}: {message}")


class InvalidStateError(HolodeckError):
    kind = ErrorKind.INVALID_STATE


class OrderRejectedError(HolodeckError):
    """Validation failure carried as an exception inside the executor only."""

    kind = ErrorKind.ORDER_REJECTED

    def __init__(self, reason, message: str) -> None:
        self.reason = reason
        super().__init__(f"{reason.value}: {message}")


class AccountBlownError(HolodeckError):
    kind = ErrorKind.ACCOUNT_BLOWN


class StreamExhaustedError(HolodeckError):
    """Tick source drained. A graceful stop signal, not an anomaly."""

    kind = ErrorKind.STREAM_EXHAUSTED


class UnsupportedInstrumentError(HolodeckError):
    kind = ErrorKind.UNSUPPORTED_INSTRUMENT
