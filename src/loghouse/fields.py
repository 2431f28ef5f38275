"""Column types and field descriptors for the ClickHouse log sink.

Every configured column carries a :class:`ColumnType`. The type owns the
conversion from rendered text to the value sent to ClickHouse, and that
conversion is total: text that does not parse yields the type's default value
instead of an error, so one malformed field never drops a log row.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from .events import LogEvent

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ZERO_UUID = uuid.UUID(int=0)

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1
_INT_PATTERN = re.compile(r"^[+-]?[0-9]+$")
_INT32_MAX_DIGITS = 10

# Non-ISO layouts accepted for Datetime columns, tried in order.
_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
)


class ColumnType(str, Enum):
    """Declared type of a ClickHouse column."""
    STRING = "String"
    DATETIME = "Datetime"
    BOOL = "Bool"
    INT = "Int"
    UUID = "UUID"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "ColumnType":
        """Resolve a configured type name; unknown or empty names mean String."""
        if isinstance(name, ColumnType):
            return name
        if not name:
            return cls.STRING
        return _ALIASES.get(str(name).strip().lower(), cls.STRING)

    @property
    def clickhouse_type(self) -> str:
        """Type name used in the CREATE TABLE statement."""
        return _CLICKHOUSE_TYPES[self]

    @property
    def default(self) -> Any:
        """Value used when rendered text does not parse."""
        return _DEFAULTS[self]

    def coerce(self, rendered: Any) -> Any:
        """Convert rendered text to this column's value.

        Returns None when the trimmed text is empty, so the column is left out
        of the row. Any other input yields a value; unparsable input gives
        :attr:`default`.
        """
        if rendered is None:
            return None
        text = str(rendered).strip()
        if not text:
            return None
        return _PARSERS[self](text)


def _parse_datetime(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return EPOCH


def _parse_bool(text: str) -> bool:
    return text.lower() == "true"


def _parse_int(text: str) -> int:
    if not _INT_PATTERN.match(text):
        return 0
    digits = text.lstrip("+-").lstrip("0") or "0"
    if len(digits) > _INT32_MAX_DIGITS:
        return 0
    value = -int(digits) if text.startswith("-") else int(digits)
    if value < _INT32_MIN or value > _INT32_MAX:
        return 0
    return value


def _parse_uuid(text: str) -> str:
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return str(ZERO_UUID)


_PARSERS: dict[ColumnType, Callable[[str], Any]] = {
    ColumnType.STRING: lambda text: text,
    ColumnType.DATETIME: _parse_datetime,
    ColumnType.BOOL: _parse_bool,
    ColumnType.INT: _parse_int,
    ColumnType.UUID: _parse_uuid,
}

_DEFAULTS: dict[ColumnType, Any] = {
    ColumnType.STRING: "",
    ColumnType.DATETIME: EPOCH,
    ColumnType.BOOL: False,
    ColumnType.INT: 0,
    ColumnType.UUID: str(ZERO_UUID),
}

_CLICKHOUSE_TYPES: dict[ColumnType, str] = {
    ColumnType.STRING: "String",
    ColumnType.DATETIME: "DateTime",
    ColumnType.BOOL: "Bool",
    ColumnType.INT: "Int32",
    ColumnType.UUID: "UUID",
}

_ALIASES: dict[str, ColumnType] = {
    "string": ColumnType.STRING,
    "datetime": ColumnType.DATETIME,
    "bool": ColumnType.BOOL,
    "boolean": ColumnType.BOOL,
    "int": ColumnType.INT,
    "int32": ColumnType.INT,
    "uuid": ColumnType.UUID,
    "guid": ColumnType.UUID,
}

_missing = [member for member in ColumnType if member not in _PARSERS or member not in _DEFAULTS]
if _missing:  # pragma: no cover - guards additions to ColumnType
    raise RuntimeError(f"ColumnType members without coercion rules: {_missing}")


def coerce(rendered: Any, column_type: ColumnType = ColumnType.STRING) -> Any:
    """Coerce ``rendered`` to ``column_type``; see :meth:`ColumnType.coerce`."""
    return ColumnType.from_name(column_type).coerce(rendered)


@dataclass(frozen=True)
class FieldDescriptor:
    """A named column whose value is rendered from each log event."""

    name: str
    renderer: Optional[Callable[["LogEvent"], Any]]
    column_type: ColumnType = ColumnType.STRING

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("FieldDescriptor name must be non-empty")
        object.__setattr__(self, "column_type", ColumnType.from_name(self.column_type))

    @property
    def column_definition(self) -> str:
        """``"<name> <type>"`` fragment for CREATE TABLE."""
        return f"{self.name} {self.column_type.clickhouse_type}"

    def render(self, event: "LogEvent") -> Any:
        """Render and coerce this field for ``event``.

        Renderer exceptions propagate; callers decide whether a failed field
        drops the row or only the column.
        """
        rendered = self.renderer(event) if self.renderer is not None else ""
        return self.column_type.coerce(rendered)
