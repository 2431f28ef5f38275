"""Create the destination table for the ClickHouse log sink."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .connection import ClickHouseConnection, split_connection_string
from .errors import ConfigurationError
from .fields import FieldDescriptor

LOGGER = logging.getLogger(__name__)

PRIMARY_KEY = "Id"
ENGINE = "MergeTree"


@dataclass
class ColumnDefinitions:
    """Column fragments and primary keys for CREATE TABLE."""

    columns: List[str] = field(default_factory=list)
    primary_keys: List[str] = field(default_factory=list)


def build_column_definitions(fields: Sequence[FieldDescriptor]) -> ColumnDefinitions:
    """Derive column definitions from the configured fields.

    ``Id`` is always the primary key; it only becomes a column when a field of
    that name is configured.
    """
    definitions = ColumnDefinitions(primary_keys=[PRIMARY_KEY])
    for descriptor in fields:
        definitions.columns.append(descriptor.column_definition)
    return definitions


def build_create_table_query(
    database: str,
    table_name: str,
    cluster: Optional[str],
    definitions: ColumnDefinitions,
) -> str:
    """Compose the idempotent CREATE TABLE statement."""
    primary_key = ""
    if definitions.primary_keys:
        primary_key = f" PRIMARY KEY ({','.join(definitions.primary_keys)})"
    on_cluster = f" ON CLUSTER {cluster}" if cluster else ""
    return (
        f"CREATE TABLE IF NOT EXISTS {database}.`{table_name}`{on_cluster} "
        f"({', '.join(definitions.columns)}) "
        f"ENGINE = {ENGINE}{primary_key};"
    )


def resolve_database(connection_string: Optional[str]) -> str:
    """Return the ``Database`` entry of ``connection_string``."""
    parts = split_connection_string(connection_string)
    if "Database" not in parts:
        raise ConfigurationError("'Database' field not found in clickHouse connection string.")
    return parts["Database"]


class SchemaInitializer:
    """Validate the sink configuration and create its table when absent."""

    def __init__(
        self,
        connection_string: Optional[str],
        table_name: Optional[str],
        fields: Sequence[FieldDescriptor] = (),
        cluster: Optional[str] = None,
        connection_factory: Callable[[str], ClickHouseConnection] = ClickHouseConnection,
    ):
        self.connection_string = connection_string
        self.table_name = table_name
        self.fields = tuple(fields)
        self.cluster = cluster
        self.connection_factory = connection_factory

    @classmethod
    def from_settings(cls, settings, connection_factory=ClickHouseConnection) -> "SchemaInitializer":
        return cls(
            connection_string=settings.connection_string,
            table_name=settings.table_name,
            fields=settings.field_descriptors(),
            cluster=settings.cluster,
            connection_factory=connection_factory,
        )

    def create_table_query(self) -> str:
        """Validate the configuration and return the DDL without running it."""
        database = resolve_database(self.connection_string)
        if not self.table_name:
            raise ConfigurationError("'TableName' field not found in clickHouse connection string.")
        definitions = build_column_definitions(self.fields)
        return build_create_table_query(database, self.table_name, self.cluster, definitions)

    def initialize(self) -> str:
        """Run the DDL once; errors propagate and abort startup."""
        query = self.create_table_query()
        LOGGER.info("Ensuring ClickHouse log table exists", extra={"table": self.table_name, "ddl": query})
        with self.connection_factory(self.connection_string) as connection:
            connection.execute(query)
        return query


def initialize_schema(settings, connection_factory=ClickHouseConnection) -> str:
    """Create the table described by ``settings``; returns the DDL issued."""
    return SchemaInitializer.from_settings(settings, connection_factory).initialize()
