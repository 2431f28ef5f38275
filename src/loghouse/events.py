"""Log event view consumed by the ClickHouse sink."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional

# Attributes every LogRecord carries; anything else arrived through ``extra``.
RESERVED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "taskName",
})


@dataclass(frozen=True)
class LogEvent:
    """Read-only view of one log event."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    level: Optional[str] = None
    logger_name: Optional[str] = None
    message: Optional[str] = None
    exception: Optional[BaseException] = None
    properties: Mapping[Any, Any] = field(default_factory=dict)

    @property
    def has_properties(self) -> bool:
        return bool(self.properties)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "LogEvent":
        """Build an event from a stdlib log record.

        Properties are the record attributes that were passed through
        ``extra=``; the message is the fully formatted ``getMessage()`` text.
        """
        exception = None
        if record.exc_info and record.exc_info[1] is not None:
            exception = record.exc_info[1]

        properties: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in RESERVED_RECORD_ATTRS or key.startswith("_"):
                continue
            properties[key] = value

        return cls(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            exception=exception,
            properties=properties,
        )


Continuation = Callable[[Optional[BaseException]], None]


class AsyncLogEvent(NamedTuple):
    """A log event paired with the callback that reports its outcome."""

    event: LogEvent
    continuation: Continuation
