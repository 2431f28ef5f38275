import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

import pytest

from loghouse.connection import ConnectionSettings


class FakeConnection:
    """In-memory stand-in for ClickHouseConnection."""

    def __init__(self, recorder: "ConnectionRecorder", connection_string: str):
        self.recorder = recorder
        self.connection_string = connection_string
        self.settings = ConnectionSettings.parse(connection_string)
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def execute(self, query: str) -> str:
        self.recorder.queries.append(query)
        if self.recorder.execute_error is not None:
            raise self.recorder.execute_error
        return ""

    def insert(self, table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        if self.recorder.insert_error is not None:
            raise self.recorder.insert_error
        self.recorder.inserts.append((table, list(columns), [list(row) for row in rows]))

    def close(self) -> None:
        self.closed = True


class ConnectionRecorder:
    """Connection factory recording every connection, statement and insert."""

    def __init__(self):
        self.connections: List[FakeConnection] = []
        self.queries: List[str] = []
        self.inserts: List[tuple] = []
        self.execute_error: Optional[BaseException] = None
        self.insert_error: Optional[BaseException] = None

    def __call__(self, connection_string: str) -> FakeConnection:
        connection = FakeConnection(self, connection_string)
        self.connections.append(connection)
        return connection


@pytest.fixture
def recorder() -> ConnectionRecorder:
    return ConnectionRecorder()


@pytest.fixture(autouse=True)
def _isolate_loghouse_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.upper().startswith("LOGHOUSE_"):
            monkeypatch.delenv(key, raising=False)
