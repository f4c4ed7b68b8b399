from __future__ import annotations

from pathlib import Path

import pytest

from safesql.config.models import DatabaseConfig, DatabaseType


@pytest.fixture
def sqlite_config(tmp_path: Path) -> DatabaseConfig:
    """SQLite configuration pointing at a fresh database file."""
    return DatabaseConfig(type=DatabaseType.SQLITE, path=str(tmp_path / "safesql_test.db"))
