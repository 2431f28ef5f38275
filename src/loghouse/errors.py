"""Exception types raised by the ClickHouse log sink."""

from __future__ import annotations

from typing import Optional


class LoghouseError(Exception):
    """Base class for loghouse errors."""


class ConfigurationError(LoghouseError, ValueError):
    """Raised when the sink configuration cannot be used to start the sink."""


class ClickHouseError(LoghouseError):
    """Raised when the ClickHouse HTTP interface rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


# Process-level failures that must never be turned into completion callbacks.
FATAL_RUNTIME_ERRORS = (MemoryError, RecursionError, SystemError)


def is_fatal_runtime_error(exc: BaseException) -> bool:
    """Return True when ``exc`` signals corrupted process state."""
    return isinstance(exc, FATAL_RUNTIME_ERRORS)


def must_be_rethrown(exc: BaseException, throw_exceptions: bool = False) -> bool:
    """Return True when ``exc`` must surface to the caller after callbacks ran."""
    if is_fatal_runtime_error(exc):
        return True
    if isinstance(exc, ConfigurationError):
        return True
    return throw_exceptions
