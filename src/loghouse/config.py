"""Sink configuration using pydantic-settings.

Values come from keyword arguments, then ``LOGHOUSE_*`` environment
variables, then a ``.env`` file. Settings are frozen once built; changing the
table schema or connection requires a new sink.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .fields import ColumnType, FieldDescriptor
from .layouts import Layout


class FieldSpec(BaseModel):
    """A configured column: name, layout template and column type."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name")
    layout: str = Field(default="", description="str.format template rendered per event")
    column_type: ColumnType = Field(default=ColumnType.STRING, description="Declared column type")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("field name must be non-empty")
        return value

    @field_validator("column_type", mode="before")
    @classmethod
    def _resolve_column_type(cls, value):
        return ColumnType.from_name(value)

    def to_descriptor(self) -> FieldDescriptor:
        return FieldDescriptor(
            name=self.name,
            renderer=Layout(self.layout),
            column_type=self.column_type,
        )


class SinkSettings(BaseSettings):
    """ClickHouse log sink settings."""

    model_config = SettingsConfigDict(
        env_prefix="LOGHOUSE_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    connection_string: str = Field(default="", description="ClickHouse connection string (key=value;...)")
    table_name: str = Field(default="", description="Destination table")
    cluster: Optional[str] = Field(default=None, description="Cluster for ON CLUSTER DDL")

    include_defaults: bool = Field(default=True, description="Add Date/Level/Logger/Message/Exception columns")
    include_event_properties: bool = Field(default=True, description="Copy event properties into Properties")

    fields: List[FieldSpec] = Field(default_factory=list, description="Extra columns")
    properties: List[FieldSpec] = Field(default_factory=list, description="Entries of the Properties document")

    batch_size: int = Field(default=100000, ge=1, description="Max rows per physical insert")
    max_degree_of_parallelism: int = Field(default=15, ge=1, description="Concurrent physical inserts")
    throw_exceptions: bool = Field(default=False, description="Re-raise write failures after callbacks")

    def field_descriptors(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(spec.to_descriptor() for spec in self.fields)

    def property_descriptors(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(spec.to_descriptor() for spec in self.properties)
