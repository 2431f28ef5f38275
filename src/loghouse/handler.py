"""Stdlib logging handler feeding the ClickHouse target."""

from __future__ import annotations

import logging
import logging.handlers
import threading
from typing import Optional

from .events import AsyncLogEvent, LogEvent
from .target import ClickHouseTarget

INTERNAL_LOGGER_PREFIX = "loghouse"


class ClickHouseHandler(logging.handlers.BufferingHandler):
    """Buffer log records and ship them to ClickHouse in batches.

    Records from the ``loghouse`` logger namespace are dropped so the sink's
    own diagnostics never loop back into it.
    """

    def __init__(self, target: ClickHouseTarget, capacity: int = 1000, level: int = logging.NOTSET):
        super().__init__(capacity)
        self.setLevel(level)
        self.target = target
        self.delivered_count = 0
        self.failed_count = 0
        self.last_error: Optional[BaseException] = None
        self._counter_lock = threading.Lock()
        target.initialize()

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == INTERNAL_LOGGER_PREFIX or record.name.startswith(INTERNAL_LOGGER_PREFIX + "."):
            return
        super().emit(record)

    def _continuation(self, error: Optional[BaseException]) -> None:
        with self._counter_lock:
            if error is None:
                self.delivered_count += 1
            else:
                self.failed_count += 1
                self.last_error = error

    def flush(self) -> None:
        self.acquire()
        try:
            records, self.buffer = self.buffer, []
        finally:
            self.release()
        if not records:
            return
        batch = []
        for record in records:
            try:
                batch.append(AsyncLogEvent(LogEvent.from_record(record), self._continuation))
            except Exception:
                self.handleError(record)
        if not batch:
            return
        try:
            self.target.write_batch(batch)
        except Exception:
            self.handleError(records[-1])
