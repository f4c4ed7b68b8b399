"""Tests for the named database registry."""

from __future__ import annotations

import pytest

from safesql.config.models import ConnectionPolicy, DatabaseConfig, DatabaseType, SafeSQLConfig
from safesql.db.database import Database
from safesql.db.registry import DatabaseRegistry
from safesql.exceptions import DatabaseError


@pytest.fixture
def config(tmp_path) -> SafeSQLConfig:
    return SafeSQLConfig(
        databases={
            'main': DatabaseConfig(type=DatabaseType.SQLITE, path=str(tmp_path / 'main.db')),
            'reports': DatabaseConfig(
                type=DatabaseType.SQLITE, path=str(tmp_path / 'reports.db'), policy='fast'
            ),
            'remote': DatabaseConfig(
                type=DatabaseType.MYSQL, host='db.internal', username='app', password='secret'
            ),
        },
        connection_policies={'fast': ConnectionPolicy(idle_threshold=0, retry_attempts=1)},
        default_database='main',
    )


class TestDatabaseRegistry:
    """Lazy, cached lookup of configured databases."""

    def test_default_database(self, config: SafeSQLConfig) -> None:
        registry = DatabaseRegistry(config)
        db = registry.get()
        assert db is registry.get('main')
        assert db is registry['main']

    def test_policy_applied(self, config: SafeSQLConfig) -> None:
        registry = DatabaseRegistry(config)
        assert registry.get('reports').lifecycle.retry_attempts == 1
        assert registry.get('main').lifecycle.retry_attempts == 2

    def test_nothing_connects_on_lookup(self, config: SafeSQLConfig) -> None:
        registry = DatabaseRegistry(config)
        db = registry.get('remote')
        assert db.state.value == 'unconnected'

    def test_unknown_database(self, config: SafeSQLConfig) -> None:
        registry = DatabaseRegistry(config)
        with pytest.raises(DatabaseError, match="not found"):
            registry.get('missing')
        assert 'missing' not in registry
        assert 'remote' in registry

    def test_register_without_config(self, sqlite_config: DatabaseConfig) -> None:
        registry = DatabaseRegistry()
        db = registry.register('local', Database(sqlite_config))

        assert registry.get() is db
        assert registry.names() == ['local']
        with pytest.raises(DatabaseError, match="already registered"):
            registry.register('local', db)

    def test_no_default(self) -> None:
        with pytest.raises(DatabaseError, match="no default"):
            DatabaseRegistry().get()

    def test_status_masks_passwords(self, config: SafeSQLConfig) -> None:
        registry = DatabaseRegistry(config)
        registry.get('main').get_one('SELECT 1')

        status = registry.status()

        assert status['total_configured'] == 3
        assert status['total_created'] == 1
        assert status['connections']['main']['state'] == 'connected-fresh'
        assert status['connections']['main']['default'] is True
        assert status['connections']['remote']['state'] == 'not created'
        assert 'secret' not in status['connections']['remote']['url']
        registry.close_all()

    def test_close_all_on_exit(self, config: SafeSQLConfig) -> None:
        with DatabaseRegistry(config) as registry:
            db = registry.get('main')
            db.get_one('SELECT 1')
        assert db.state.value == 'unconnected'
