"""Ship structured log events into ClickHouse tables."""

from __future__ import annotations

from .config import FieldSpec, SinkSettings
from .errors import ClickHouseError, ConfigurationError, LoghouseError
from .events import AsyncLogEvent, LogEvent
from .exception_serializer import serialize_exception
from .fields import ColumnType, FieldDescriptor, coerce
from .handler import ClickHouseHandler
from .layouts import Layout, guid_renderer, property_renderer
from .rows import RowBuilder, RowSchema
from .schema import SchemaInitializer, build_create_table_query, initialize_schema
from .target import ClickHouseTarget
from .writer import BatchWriter

__all__ = [
    "AsyncLogEvent",
    "BatchWriter",
    "ClickHouseError",
    "ClickHouseHandler",
    "ClickHouseTarget",
    "ColumnType",
    "ConfigurationError",
    "FieldDescriptor",
    "FieldSpec",
    "Layout",
    "LogEvent",
    "LoghouseError",
    "RowBuilder",
    "RowSchema",
    "SchemaInitializer",
    "SinkSettings",
    "build_create_table_query",
    "coerce",
    "guid_renderer",
    "initialize_schema",
    "property_renderer",
    "serialize_exception",
]
