"""Tests for column types and value coercion."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from loghouse.events import LogEvent
from loghouse.fields import EPOCH, ZERO_UUID, ColumnType, FieldDescriptor, coerce


class TestColumnTypeNames:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("String", ColumnType.STRING),
            ("Datetime", ColumnType.DATETIME),
            ("DateTime", ColumnType.DATETIME),
            ("bool", ColumnType.BOOL),
            ("int", ColumnType.INT),
            ("Int32", ColumnType.INT),
            ("UUID", ColumnType.UUID),
            ("guid", ColumnType.UUID),
            ("Decimal(10,2)", ColumnType.STRING),
            ("", ColumnType.STRING),
            (None, ColumnType.STRING),
        ],
    )
    def test_from_name(self, name, expected) -> None:
        assert ColumnType.from_name(name) is expected

    def test_clickhouse_type_names(self) -> None:
        assert ColumnType.STRING.clickhouse_type == "String"
        assert ColumnType.DATETIME.clickhouse_type == "DateTime"
        assert ColumnType.BOOL.clickhouse_type == "Bool"
        assert ColumnType.INT.clickhouse_type == "Int32"
        assert ColumnType.UUID.clickhouse_type == "UUID"


class TestCoerce:
    @pytest.mark.parametrize("column_type", list(ColumnType))
    @pytest.mark.parametrize("rendered", ["", "   ", "\t\n", None])
    def test_empty_text_is_omitted(self, column_type, rendered) -> None:
        assert coerce(rendered, column_type) is None

    def test_string_is_trimmed(self) -> None:
        assert coerce("  hello world \n") == "hello world"

    def test_int_parses(self) -> None:
        assert coerce(" 42 ", ColumnType.INT) == 42
        assert coerce("-7", ColumnType.INT) == -7
        assert coerce("+3", ColumnType.INT) == 3

    def test_int_invalid_yields_zero(self) -> None:
        assert coerce("abc", ColumnType.INT) == 0
        assert coerce("1.5", ColumnType.INT) == 0
        assert coerce("99999999999", ColumnType.INT) == 0

    def test_int_overlong_digit_string_yields_zero(self) -> None:
        assert coerce("1" * 5000, ColumnType.INT) == 0
        assert coerce("-" + "9" * 20, ColumnType.INT) == 0

    def test_int_leading_zeros(self) -> None:
        assert coerce("0" * 5000 + "12", ColumnType.INT) == 12
        assert coerce("-0007", ColumnType.INT) == -7

    def test_int_rejects_non_ascii_digits(self) -> None:
        assert coerce("\u0661\u0662", ColumnType.INT) == 0

    def test_bool(self) -> None:
        assert coerce("true", ColumnType.BOOL) is True
        assert coerce("TRUE", ColumnType.BOOL) is True
        assert coerce("False", ColumnType.BOOL) is False
        assert coerce("yes", ColumnType.BOOL) is False
        assert coerce("1", ColumnType.BOOL) is False

    def test_uuid_canonical(self) -> None:
        value = coerce("{12345678-1234-5678-1234-567812345678}", ColumnType.UUID)
        assert value == "12345678-1234-5678-1234-567812345678"
        assert coerce("12345678123456781234567812345678", ColumnType.UUID) == value

    def test_uuid_invalid_yields_zero_uuid(self) -> None:
        value = coerce("not-a-uuid", ColumnType.UUID)
        assert value == str(ZERO_UUID)
        assert value == "00000000-0000-0000-0000-000000000000"

    def test_datetime_iso(self) -> None:
        value = coerce("2024-01-15T10:30:00+00:00", ColumnType.DATETIME)
        assert value == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_datetime_common_formats(self) -> None:
        assert coerce("01/15/2024 10:30:00", ColumnType.DATETIME) == datetime(2024, 1, 15, 10, 30)
        assert coerce("15.01.2024", ColumnType.DATETIME) == datetime(2024, 1, 15)

    def test_datetime_invalid_yields_epoch(self) -> None:
        assert coerce("yesterday-ish", ColumnType.DATETIME) == EPOCH

    @pytest.mark.parametrize("column_type", list(ColumnType))
    @pytest.mark.parametrize("rendered", ["garbage", "{}", "%%%", "\x00"])
    def test_never_raises(self, column_type, rendered) -> None:
        value = coerce(rendered, column_type)
        if column_type is not ColumnType.STRING:
            assert value == column_type.default

    def test_non_string_input_is_rendered(self) -> None:
        assert coerce(12, ColumnType.INT) == 12
        assert coerce(True, ColumnType.BOOL) is True


class TestFieldDescriptor:
    def test_requires_name(self) -> None:
        with pytest.raises(ValueError):
            FieldDescriptor(name="", renderer=lambda event: "x")
        with pytest.raises(ValueError):
            FieldDescriptor(name="   ", renderer=lambda event: "x")

    def test_column_type_name_is_resolved(self) -> None:
        descriptor = FieldDescriptor(name="Count", renderer=lambda event: "1", column_type="int")
        assert descriptor.column_type is ColumnType.INT
        assert descriptor.column_definition == "Count Int32"

    def test_render_coerces(self) -> None:
        descriptor = FieldDescriptor("Count", lambda event: "abc", ColumnType.INT)
        assert descriptor.render(LogEvent()) == 0

    def test_render_without_renderer_is_omitted(self) -> None:
        descriptor = FieldDescriptor("Empty", None)
        assert descriptor.render(LogEvent()) is None
