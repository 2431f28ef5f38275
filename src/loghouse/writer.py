"""Bulk-write log rows to ClickHouse and report per-event outcomes."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from .connection import ClickHouseBulkCopy, ClickHouseConnection
from .errors import is_fatal_runtime_error, must_be_rethrown
from .events import AsyncLogEvent, LogEvent
from .rows import RowBuilder, RowSchema

LOGGER = logging.getLogger(__name__)


class BatchWriter:
    """Write batches of log events through a ClickHouse bulk-copy session.

    Each call opens its own connection and closes it before returning. All
    continuations of a batch fire together after the transfer has either
    fully succeeded or failed, in submission order.
    """

    def __init__(
        self,
        row_builder: RowBuilder,
        connection_string: str,
        table_name: str,
        batch_size: int = 100000,
        max_degree_of_parallelism: int = 15,
        throw_exceptions: bool = False,
        connection_factory: Callable[[str], ClickHouseConnection] = ClickHouseConnection,
    ):
        self.row_builder = row_builder
        self.connection_string = connection_string
        self.table_name = table_name
        self.batch_size = batch_size
        self.max_degree_of_parallelism = max_degree_of_parallelism
        self.throw_exceptions = throw_exceptions
        self.connection_factory = connection_factory

    def write_batch(self, batch: Sequence[AsyncLogEvent]) -> None:
        """Write ``batch`` and call every continuation exactly once.

        Write failures are logged and handed to the continuations rather than
        raised, except for fatal runtime errors (raised before any
        continuation runs) and errors that must surface to the caller
        (raised after the continuations ran).
        """
        if not batch:
            return

        try:
            rows = [self.row_builder.build(item.event) for item in batch]
            schema = RowSchema.from_rows(rows)
            if not schema.homogeneous:
                LOGGER.debug(
                    "Rows in batch have differing columns; aligning by name",
                    extra={"table": self.table_name, "columns": list(schema.columns)},
                )
            values = schema.align_all(rows)
            self._bulk_insert(
                list(schema.columns),
                values,
                max_degree_of_parallelism=self.max_degree_of_parallelism,
            )
        except Exception as exc:
            LOGGER.error(
                "Error when writing to ClickHouse: %s",
                exc,
                exc_info=exc,
                extra={"table": self.table_name, "batch_events": len(batch)},
            )
            if is_fatal_runtime_error(exc):
                raise
            self._notify(batch, exc)
            if must_be_rethrown(exc, self.throw_exceptions):
                raise
            return

        self._notify(batch, None)

    def _notify(self, batch: Sequence[AsyncLogEvent], error: Optional[BaseException]) -> None:
        for index, item in enumerate(batch):
            try:
                item.continuation(error)
            except Exception:
                LOGGER.exception(
                    "Completion callback failed",
                    extra={"table": self.table_name, "batch_index": index},
                )

    def write(self, event: LogEvent) -> None:
        """Write a single event; failures are logged and raised."""
        try:
            row = self.row_builder.build(event)
            self._bulk_insert(list(row.keys()), [list(row.values())], max_degree_of_parallelism=1)
        except Exception as exc:
            LOGGER.error(
                "Error when writing to ClickHouse: %s",
                exc,
                exc_info=exc,
                extra={"table": self.table_name, "batch_events": 1},
            )
            raise

    def _bulk_insert(
        self,
        columns: List[str],
        values: List[list],
        max_degree_of_parallelism: Optional[int] = None,
    ) -> None:
        with self.connection_factory(self.connection_string) as connection:
            with ClickHouseBulkCopy(
                connection,
                destination_table_name=self.table_name,
                batch_size=self.batch_size,
                max_degree_of_parallelism=max_degree_of_parallelism or 1,
            ) as bulk_copy:
                bulk_copy.write_to_server(values, columns)
