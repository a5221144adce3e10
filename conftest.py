"""
Shared fixtures: a scripted stand-in for psycopg connections and a
TestClient wired to it through the gateway's own dependencies.
"""

from collections import deque
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from db import Settings, get_registry, get_settings
from main import app


class FakeResult:
    """One statement's outcome: rows (a result set) or just a row count."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, columns: Optional[List[str]] = None, rowcount: int = -1):
        self.rows = rows
        if rows is not None and columns is None:
            columns = list(rows[0]) if rows else []
        self.columns = columns
        self.rowcount = len(rows) if rows is not None and rowcount == -1 else rowcount


class FakeCursor:
    def __init__(self, conn: "FakeConnection", results: Optional[List[FakeResult]] = None):
        self._conn = conn
        self._results = results or []
        self._index = 0

    @property
    def _current(self) -> FakeResult:
        return self._results[self._index] if self._results else FakeResult(rowcount=0)

    @property
    def description(self):
        current = self._current
        if current.rows is None:
            return None
        return [SimpleNamespace(name=column) for column in current.columns]

    @property
    def rowcount(self) -> int:
        return self._current.rowcount

    async def execute(self, query, params=None):
        self._results = self._conn._next_results(query, params)
        self._index = 0
        return self

    async def fetchall(self):
        return list(self._current.rows or [])

    async def fetchone(self):
        rows = self._current.rows or []
        return rows[0] if rows else None

    def nextset(self):
        if self._index + 1 < len(self._results):
            self._index += 1
            return True
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


class FakeConnection:
    """
    Records every statement and answers from a script.

    Each scripted item is a FakeResult, a list of FakeResults (one per
    statement of a multi-statement execution) or an exception to raise.
    An exhausted script answers with an empty result set.
    """

    def __init__(self):
        self.script: deque = deque()
        self.statements: List[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.autocommit = False
        # autocommit setting in effect for each recorded statement
        self.autocommit_log: List[bool] = []

    def answer(self, *items) -> "FakeConnection":
        self.script.extend(items)
        return self

    def _next_results(self, query, params) -> List[FakeResult]:
        self.statements.append((query, params))
        self.autocommit_log.append(self.autocommit)
        item = self.script.popleft() if self.script else FakeResult(rows=[])
        if isinstance(item, Exception):
            raise item
        return item if isinstance(item, list) else [item]

    async def execute(self, query, params=None):
        return FakeCursor(self, self._next_results(query, params))

    def cursor(self):
        return FakeCursor(self)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def set_autocommit(self, value: bool):
        self.autocommit = value


class FakeRegistry:
    def __init__(self, conn: FakeConnection):
        self.conn = conn
        self.databases: List[str] = []

    @asynccontextmanager
    async def connection(self, database: str):
        self.databases.append(database)
        yield self.conn


def statement_text(query) -> str:
    """Readable form of a plain or composed statement for assertions."""
    return query if isinstance(query, str) else repr(query)


@pytest.fixture
def fake_db() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_registry(fake_db) -> FakeRegistry:
    return FakeRegistry(fake_db)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, DB_NAME="shop", MAINTENANCE_DB="postgres")


@pytest.fixture
def client(fake_registry, settings):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_registry] = lambda: fake_registry
    yield TestClient(app)
    app.dependency_overrides.clear()
