"""ClickHouse log target: schema setup plus batch writing."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .config import SinkSettings
from .connection import ClickHouseConnection
from .events import AsyncLogEvent, LogEvent
from .fields import FieldDescriptor
from .rows import RowBuilder
from .schema import SchemaInitializer
from .writer import BatchWriter

LOGGER = logging.getLogger(__name__)


class ClickHouseTarget:
    """Log target that ships events to a ClickHouse table.

    ``fields`` and ``properties`` override the descriptors built from
    ``settings`` so callers can pass arbitrary renderer callables instead of
    layout templates.
    """

    def __init__(
        self,
        settings: SinkSettings,
        fields: Optional[Sequence[FieldDescriptor]] = None,
        properties: Optional[Sequence[FieldDescriptor]] = None,
        connection_factory: Callable[[str], ClickHouseConnection] = ClickHouseConnection,
    ):
        self.settings = settings
        self.fields = tuple(fields) if fields is not None else settings.field_descriptors()
        self.properties = tuple(properties) if properties is not None else settings.property_descriptors()
        self.connection_factory = connection_factory
        self.initialized = False

        self.row_builder = RowBuilder(
            fields=self.fields,
            properties=self.properties,
            include_defaults=settings.include_defaults,
            include_event_properties=settings.include_event_properties,
        )
        self.schema = SchemaInitializer(
            connection_string=settings.connection_string,
            table_name=settings.table_name,
            fields=self.fields,
            cluster=settings.cluster,
            connection_factory=connection_factory,
        )
        self.writer = BatchWriter(
            self.row_builder,
            connection_string=settings.connection_string,
            table_name=settings.table_name,
            batch_size=settings.batch_size,
            max_degree_of_parallelism=settings.max_degree_of_parallelism,
            throw_exceptions=settings.throw_exceptions,
            connection_factory=connection_factory,
        )

    def initialize(self) -> None:
        """Validate configuration and create the table; errors abort startup."""
        if self.initialized:
            return
        self.schema.initialize()
        self.initialized = True

    def write(self, event: LogEvent) -> None:
        self.writer.write(event)

    def write_batch(self, batch: Sequence[AsyncLogEvent]) -> None:
        self.writer.write_batch(batch)

    def build_row(self, event: LogEvent) -> dict:
        return self.row_builder.build(event)
