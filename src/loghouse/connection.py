"""ClickHouse HTTP connection and bulk-copy session."""

from __future__ import annotations

import json
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import requests

from .errors import ClickHouseError, ConfigurationError

LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8123
DEFAULT_PROTOCOL = "http"
DEFAULT_USER = "default"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Connection string keys consumed by the connection itself (case-insensitive).
_DRIVER_KEYS = {"host", "port", "protocol", "database", "username", "user", "password", "timeout", "path"}


def split_connection_string(connection_string: Optional[str]) -> Dict[str, str]:
    """Split ``key=value;key=value`` into a dict.

    The first ``=`` separates key from value, empty segments are skipped and a
    repeated key keeps its last value. Keys keep their case.
    """
    if not connection_string or not connection_string.strip():
        raise ConfigurationError(
            "Can not resolve ClickHouse ConnectionString. Please make sure the ConnectionString property is set."
        )
    parts: Dict[str, str] = {}
    for segment in connection_string.split(";"):
        if not segment.strip():
            continue
        if "=" not in segment:
            raise ConfigurationError(f"Invalid ClickHouse connection string segment: {segment!r}")
        key, value = segment.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigurationError(f"Invalid ClickHouse connection string segment: {segment!r}")
        parts[key] = value.strip()
    return parts


@dataclass(frozen=True)
class ConnectionSettings:
    """Parsed ClickHouse connection string."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    database: Optional[str] = None
    user: str = DEFAULT_USER
    password: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    path: str = ""
    options: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, connection_string: Optional[str]) -> "ConnectionSettings":
        parts = split_connection_string(connection_string)
        lowered = {key.lower(): value for key, value in parts.items()}
        try:
            port = int(lowered.get("port", DEFAULT_PORT))
            timeout = float(lowered.get("timeout", DEFAULT_TIMEOUT_SECONDS))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid ClickHouse connection string: {exc}") from exc
        return cls(
            host=lowered.get("host") or DEFAULT_HOST,
            port=port,
            protocol=(lowered.get("protocol") or DEFAULT_PROTOCOL).lower(),
            database=lowered.get("database"),
            user=lowered.get("username") or lowered.get("user") or DEFAULT_USER,
            password=lowered.get("password", ""),
            timeout=timeout,
            path=lowered.get("path", "").strip("/"),
            options={key: value for key, value in parts.items() if key.lower() not in _DRIVER_KEYS},
        )

    @property
    def url(self) -> str:
        base = f"{self.protocol}://{self.host}:{self.port}"
        return f"{base}/{self.path}/" if self.path else f"{base}/"


def _to_clickhouse(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return value


def encode_rows(rows: Sequence[Sequence[Any]]) -> bytes:
    """Encode positional rows as ``JSONCompactEachRow`` lines."""
    lines = [
        json.dumps([_to_clickhouse(value) for value in row], default=str)
        for row in rows
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "\\`") + "`"


class ClickHouseConnection:
    """Synchronous connection to the ClickHouse HTTP interface."""

    def __init__(self, connection_string: str, session: Optional[requests.Session] = None):
        self.settings = ConnectionSettings.parse(connection_string)
        self._session = session or requests.Session()
        self._session.headers.update({
            "X-ClickHouse-User": self.settings.user,
            "X-ClickHouse-Key": self.settings.password,
        })
        self._closed = False

    def __enter__(self) -> "ClickHouseConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def database(self) -> Optional[str]:
        return self.settings.database

    def _params(self, query: Optional[str] = None) -> Dict[str, str]:
        params = dict(self.settings.options)
        if self.settings.database:
            params["database"] = self.settings.database
        if query is not None:
            params["query"] = query
        return params

    def _post(self, data: bytes, params: Dict[str, str]) -> requests.Response:
        if self._closed:
            raise ClickHouseError("Connection is closed")
        response = self._session.post(
            self.settings.url,
            params=params,
            data=data,
            headers={"Content-Type": "text/plain; charset=utf-8"},
            timeout=self.settings.timeout,
        )
        if response.status_code >= 400:
            message = response.text or response.reason
            raise ClickHouseError(
                f"HTTP {response.status_code}: {message}",
                status_code=response.status_code,
                body=response.text or "",
            )
        return response

    def execute(self, query: str) -> str:
        """Run a statement and return the raw response text."""
        response = self._post(query.encode("utf-8"), self._params())
        return response.text

    def insert(self, table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        """Insert positional ``rows`` into ``table`` in one HTTP request."""
        column_list = ", ".join(quote_identifier(column) for column in columns)
        query = f"INSERT INTO {quote_identifier(table)} ({column_list}) FORMAT JSONCompactEachRow"
        self._post(encode_rows(rows), self._params(query))

    def close(self) -> None:
        if not self._closed:
            self._session.close()
            self._closed = True


class ClickHouseBulkCopy:
    """Split rows into physical batches and insert them, optionally in parallel."""

    def __init__(
        self,
        connection: ClickHouseConnection,
        destination_table_name: str,
        batch_size: int = 100000,
        max_degree_of_parallelism: int = 1,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.connection = connection
        self.destination_table_name = destination_table_name
        self.batch_size = batch_size
        self.max_degree_of_parallelism = max(1, max_degree_of_parallelism)
        self.rows_written = 0

    def __enter__(self) -> "ClickHouseBulkCopy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def _chunks(self, rows: Sequence[Sequence[Any]]) -> List[Sequence[Sequence[Any]]]:
        return [rows[i:i + self.batch_size] for i in range(0, len(rows), self.batch_size)]

    def write_to_server(self, rows: Sequence[Sequence[Any]], columns: Sequence[str]) -> None:
        """Write every row; returns once all physical batches finished.

        When a batch fails the first error, in batch order, is raised after
        all submitted batches have completed.
        """
        chunks = self._chunks(rows)
        if not chunks:
            return

        workers = min(self.max_degree_of_parallelism, len(chunks))
        if workers == 1:
            for chunk in chunks:
                self.connection.insert(self.destination_table_name, columns, chunk)
                self.rows_written += len(chunk)
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="loghouse-bulk") as executor:
            futures = [
                executor.submit(self.connection.insert, self.destination_table_name, columns, chunk)
                for chunk in chunks
            ]
        errors = [future.exception() for future in futures]
        for chunk, error in zip(chunks, errors):
            if error is None:
                self.rows_written += len(chunk)
        for error in errors:
            if error is not None:
                raise error
