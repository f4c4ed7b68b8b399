"""Fixtures simulating the database client boundary."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from safesql.config.models import ConnectionPolicy, DatabaseConfig, DatabaseType
from safesql.db.client import DatabaseClient, Handle, QueryResult
from safesql.template.escaper import Dialect

GONE_AWAY = 2006
LOST_DURING_QUERY = 2013


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> Mock:
    return Mock()


@pytest.fixture
def mysql_config() -> DatabaseConfig:
    return DatabaseConfig(
        type=DatabaseType.MYSQL,
        host="db.internal",
        username="app",
        password="secret",
        database="shop",
    )


@pytest.fixture
def policy() -> ConnectionPolicy:
    return ConnectionPolicy(idle_threshold=60, retry_attempts=2, retry_delay=0.15)


@pytest.fixture
def client() -> Mock:
    """Client whose connects, pings and statements succeed by default."""
    client = Mock(spec=DatabaseClient)
    client.dialect = Dialect.MYSQL
    client.connect.side_effect = lambda config, timeout=None: Handle(raw=Mock())
    client.ping.return_value = True
    client.set_charset.return_value = True
    client.error_code.return_value = None
    client.error_text.return_value = None
    client.is_connection_lost.side_effect = lambda code: code in (GONE_AWAY, LOST_DURING_QUERY)
    client.execute.return_value = QueryResult(rows=[{"id": 1}], columns=["id"], rows_affected=1)
    return client
