"""Tests for sink settings and the ClickHouse target."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from loghouse.config import FieldSpec, SinkSettings
from loghouse.errors import ConfigurationError
from loghouse.events import AsyncLogEvent, LogEvent
from loghouse.fields import ColumnType, FieldDescriptor
from loghouse.layouts import Layout, guid_renderer
from loghouse.target import ClickHouseTarget


class TestSinkSettings:
    def test_defaults(self) -> None:
        settings = SinkSettings()

        assert settings.connection_string == ""
        assert settings.table_name == ""
        assert settings.cluster is None
        assert settings.include_defaults is True
        assert settings.include_event_properties is True
        assert settings.fields == []
        assert settings.batch_size == 100000
        assert settings.max_degree_of_parallelism == 15
        assert settings.throw_exceptions is False

    def test_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LOGHOUSE_CONNECTION_STRING", "Database=logs")
        monkeypatch.setenv("LOGHOUSE_TABLE_NAME", "Events")
        monkeypatch.setenv("LOGHOUSE_INCLUDE_DEFAULTS", "false")
        monkeypatch.setenv("LOGHOUSE_FIELDS", '[{"name": "Id", "layout": "{guid}", "column_type": "uuid"}]')

        settings = SinkSettings()

        assert settings.connection_string == "Database=logs"
        assert settings.table_name == "Events"
        assert settings.include_defaults is False
        assert settings.fields[0].column_type is ColumnType.UUID

    def test_frozen(self) -> None:
        settings = SinkSettings(table_name="Events")

        with pytest.raises(ValidationError):
            settings.table_name = "Other"

    def test_batch_size_positive(self) -> None:
        with pytest.raises(ValidationError):
            SinkSettings(batch_size=0)

    def test_field_descriptors(self) -> None:
        settings = SinkSettings(
            fields=[FieldSpec(name="Count", layout="{count}", column_type="int")],
            properties=[FieldSpec(name="Region", layout="eu")],
        )

        (count,) = settings.field_descriptors()
        (region,) = settings.property_descriptors()
        assert count == FieldDescriptor("Count", Layout("{count}"), ColumnType.INT)
        assert region.column_type is ColumnType.STRING


class TestFieldSpec:
    def test_unknown_type_is_string(self) -> None:
        assert FieldSpec(name="X", column_type="Float64").column_type is ColumnType.STRING

    @pytest.mark.parametrize("name", ["", "   "])
    def test_name_required(self, name) -> None:
        with pytest.raises(ValidationError):
            FieldSpec(name=name)

    def test_name_trimmed(self) -> None:
        assert FieldSpec(name=" Host ").name == "Host"


class TestClickHouseTarget:
    def _settings(self, **kwargs) -> SinkSettings:
        values = dict(connection_string="Database=logs;Host=x", table_name="Events")
        values.update(kwargs)
        return SinkSettings(**values)

    def test_initialize_creates_table_once(self, recorder) -> None:
        target = ClickHouseTarget(
            self._settings(),
            fields=[FieldDescriptor("Id", guid_renderer, ColumnType.UUID)],
            connection_factory=recorder,
        )

        target.initialize()
        target.initialize()

        assert len(recorder.queries) == 1
        assert "Id UUID" in recorder.queries[0]
        assert target.initialized

    def test_initialize_rejects_bad_configuration(self, recorder) -> None:
        target = ClickHouseTarget(self._settings(table_name=""), connection_factory=recorder)

        with pytest.raises(ConfigurationError):
            target.initialize()

        assert not target.initialized

    def test_write_batch(self, recorder) -> None:
        target = ClickHouseTarget(self._settings(), connection_factory=recorder)
        outcomes = []
        event = LogEvent(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc), message="m")

        target.write_batch([AsyncLogEvent(event, outcomes.append)])

        assert outcomes == [None]
        assert recorder.inserts[0][0] == "Events"

    def test_settings_fields_used_without_overrides(self, recorder) -> None:
        target = ClickHouseTarget(
            self._settings(include_defaults=False, fields=[FieldSpec(name="Msg", layout="{message}")]),
            connection_factory=recorder,
        )

        assert target.build_row(LogEvent(message="hello")) == {"Msg": "hello"}

    def test_write_single(self, recorder) -> None:
        target = ClickHouseTarget(self._settings(), connection_factory=recorder)

        target.write(LogEvent(message="single"))

        assert len(recorder.inserts) == 1
