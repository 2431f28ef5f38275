"""Map log events to ClickHouse rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .events import LogEvent
from .exception_serializer import serialize_exception
from .fields import FieldDescriptor

LOGGER = logging.getLogger(__name__)

DEFAULT_COLUMNS = ("Date", "Level", "Logger", "Message", "Exception")
PROPERTIES_COLUMN = "Properties"

Row = Dict[str, Any]


class RowBuilder:
    """Build one ordered column mapping per log event.

    Columns are added in three passes: the default columns, the configured
    fields, then the nested ``Properties`` document. A later pass overwrites a
    column of the same name set by an earlier one.
    """

    def __init__(
        self,
        fields: Sequence[FieldDescriptor] = (),
        properties: Sequence[FieldDescriptor] = (),
        include_defaults: bool = True,
        include_event_properties: bool = True,
    ):
        self.fields = tuple(fields)
        self.properties = tuple(properties)
        self.include_defaults = include_defaults
        self.include_event_properties = include_event_properties

    def build(self, event: LogEvent) -> Row:
        row: Row = {}
        if self.include_defaults or not self.fields:
            self._add_defaults(row, event)

        for descriptor in self.fields:
            value = self._render(descriptor, event)
            if value is not None:
                row[descriptor.name] = value

        self._add_properties(row, event)
        return row

    __call__ = build

    def _add_defaults(self, row: Row, event: LogEvent) -> None:
        row["Date"] = event.timestamp
        if event.level is not None:
            row["Level"] = event.level
        if event.logger_name is not None:
            row["Logger"] = event.logger_name
        if event.message is not None:
            row["Message"] = event.message
        if event.exception is not None:
            row["Exception"] = serialize_exception(event.exception)
        else:
            row["Exception"] = None

    def _add_properties(self, row: Row, event: LogEvent) -> None:
        with_event_properties = self.include_event_properties and event.has_properties
        if not (with_event_properties or self.properties):
            return

        document: Row = {}
        for descriptor in self.properties:
            value = self._render(descriptor, event)
            if value is not None:
                document[descriptor.name] = value

        if with_event_properties:
            for key, value in event.properties.items():
                if key is None or value is None:
                    continue
                key_text = str(key)
                value_text = str(value)
                if not key_text or not value_text:
                    continue
                document[key_text.replace(".", "_")] = value_text

        if document:
            row[PROPERTIES_COLUMN] = document

    @staticmethod
    def _render(descriptor: FieldDescriptor, event: LogEvent) -> Any:
        try:
            return descriptor.render(event)
        except Exception as exc:
            LOGGER.debug(
                "Field render failed; column omitted",
                extra={"field": descriptor.name, "error": str(exc)},
            )
            return None


@dataclass(frozen=True)
class RowSchema:
    """Column order shared by every row written in one batch.

    The order is taken from the first row. Values are looked up by column
    name, so rows whose keys arrive in a different order still line up;
    columns first seen in a later row are appended, and rows without a column
    contribute ``None`` for it.
    """

    columns: Tuple[str, ...]
    homogeneous: bool = True

    @classmethod
    def from_rows(cls, rows: Sequence[Row]) -> "RowSchema":
        if not rows:
            return cls(columns=())
        first = list(rows[0].keys())
        columns: List[str] = list(first)
        known = set(columns)
        homogeneous = True
        for row in rows[1:]:
            if list(row.keys()) != first:
                homogeneous = False
            for key in row.keys():
                if key not in known:
                    known.add(key)
                    columns.append(key)
        return cls(columns=tuple(columns), homogeneous=homogeneous)

    def align(self, row: Row) -> List[Any]:
        return [row.get(column) for column in self.columns]

    def align_all(self, rows: Iterable[Row]) -> List[List[Any]]:
        return [self.align(row) for row in rows]
