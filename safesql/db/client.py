"""Database client adapters.

A client is the thin boundary between SafeSQL and a real driver. It opens,
probes and closes handles and runs fully compiled SQL; it never decides when
to reconnect or retry.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Type

import pandas as pd
import pymysql
import pymysql.cursors
from pymysql.constants import CR

from safesql.config.models import DatabaseConfig, DatabaseType
from safesql.exceptions import ClientError, DatabaseError
from safesql.template.escaper import Dialect

logger = logging.getLogger(__name__)


class QueryResult:
    """Buffered result of a single statement."""

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        columns: Optional[List[str]] = None,
        rows_affected: Optional[int] = None,
        insert_id: Optional[int] = None,
        execution_time: Optional[float] = None,
    ) -> None:
        """Initialize query result.

        Args:
            rows: Result rows as dictionaries keyed by column name.
            columns: Column names for the result.
            rows_affected: Number of rows affected or returned by the statement.
            insert_id: Auto-increment id generated by the statement, if any.
            execution_time: Statement execution time in seconds.
        """
        self.rows = rows or []
        self.columns = columns or []
        self.rows_affected = rows_affected or 0
        self.insert_id = insert_id
        self.execution_time = execution_time or 0.0

    @property
    def is_empty(self) -> bool:
        """Check if result is empty."""
        return not self.rows

    @property
    def row_count(self) -> int:
        """Get number of rows in result."""
        return len(self.rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def to_dataframe(self) -> pd.DataFrame:
        """Convert result rows to a DataFrame."""
        return pd.DataFrame(self.rows, columns=self.columns or None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            'rows': self.rows,
            'columns': self.columns,
            'rows_affected': self.rows_affected,
            'insert_id': self.insert_id,
            'execution_time': self.execution_time,
            'row_count': self.row_count,
            'is_empty': self.is_empty,
        }


@dataclass
class Handle:
    """Driver connection plus the error state of its last operation."""
    raw: Any
    error_code: Optional[int] = None
    error_text: Optional[str] = None

    def clear_error(self) -> None:
        self.error_code = None
        self.error_text = None

    def set_error(self, error: ClientError) -> None:
        self.error_code = error.code
        self.error_text = error.message


class DatabaseClient(ABC):
    """Base class for database clients."""

    dialect: Dialect = Dialect.MYSQL

    @abstractmethod
    def get_driver_name(self) -> str:
        """Get the driver name for this client."""
        pass

    @abstractmethod
    def connect(self, config: DatabaseConfig, timeout: Optional[int] = None) -> Handle:
        """Open a new handle.

        Raises:
            ClientError: If the driver cannot connect.
        """
        pass

    @abstractmethod
    def ping(self, handle: Handle) -> bool:
        """Return True when the handle still talks to the server."""
        pass

    @abstractmethod
    def set_charset(self, handle: Handle, name: str) -> bool:
        """Apply the connection character set, returning False on failure."""
        pass

    @abstractmethod
    def execute(self, handle: Handle, sql: str) -> QueryResult:
        """Run a compiled statement and buffer its result.

        Raises:
            ClientError: If the statement fails.
        """
        pass

    @abstractmethod
    def close(self, handle: Handle) -> None:
        pass

    def error_code(self, handle: Optional[Handle]) -> Optional[int]:
        return handle.error_code if handle is not None else None

    def error_text(self, handle: Optional[Handle]) -> Optional[str]:
        return handle.error_text if handle is not None else None

    def is_connection_lost(self, code: Optional[int]) -> bool:
        """Whether ``code`` means the server dropped the connection mid-query."""
        return False

    def begin(self, handle: Handle) -> None:
        self.execute(handle, "BEGIN")

    def commit(self, handle: Handle) -> None:
        self.execute(handle, "COMMIT")

    def rollback(self, handle: Handle) -> None:
        self.execute(handle, "ROLLBACK")


class PyMySQLClient(DatabaseClient):
    """MySQL client backed by PyMySQL."""

    dialect = Dialect.MYSQL

    CONNECTION_LOST_CODES = frozenset({CR.CR_SERVER_GONE_ERROR, CR.CR_SERVER_LOST})

    def get_driver_name(self) -> str:
        return "pymysql"

    @staticmethod
    def _client_error(error: Exception) -> ClientError:
        code = error.args[0] if error.args and isinstance(error.args[0], int) else None
        text = error.args[1] if len(error.args) > 1 else str(error)
        return ClientError(str(text), code)

    def connect(self, config: DatabaseConfig, timeout: Optional[int] = None) -> Handle:
        kwargs: Dict[str, Any] = {
            'host': config.host or 'localhost',
            'user': config.username,
            'password': config.password or '',
            'database': config.database,
            'port': config.port or 3306,
            'unix_socket': config.socket,
            'connect_timeout': timeout or config.options.get('connect_timeout', 10),
            'autocommit': True,
        }
        kwargs.update({k: v for k, v in config.options.items() if k != 'connect_timeout'})
        try:
            return Handle(pymysql.connect(**kwargs))
        except pymysql.err.MySQLError as e:
            raise self._client_error(e) from e

    def ping(self, handle: Handle) -> bool:
        try:
            handle.raw.ping(reconnect=False)
        except pymysql.err.Error as e:
            handle.set_error(self._client_error(e))
            return False
        return True

    def set_charset(self, handle: Handle, name: str) -> bool:
        try:
            handle.raw.set_character_set(name)
        except pymysql.err.Error as e:
            handle.set_error(self._client_error(e))
            return False
        return True

    def execute(self, handle: Handle, sql: str) -> QueryResult:
        handle.clear_error()
        try:
            with handle.raw.cursor(pymysql.cursors.DictCursor) as cursor:
                cursor.execute(sql)
                columns = [d[0] for d in cursor.description] if cursor.description else []
                rows = list(cursor.fetchall()) if cursor.description else []
                return QueryResult(
                    rows=rows,
                    columns=columns,
                    rows_affected=cursor.rowcount if cursor.rowcount >= 0 else len(rows),
                    insert_id=cursor.lastrowid or None,
                )
        except pymysql.err.Error as e:
            error = self._client_error(e)
            handle.set_error(error)
            raise error from e

    def close(self, handle: Handle) -> None:
        try:
            handle.raw.close()
        except pymysql.err.Error as e:
            logger.debug(f"Ignoring error while closing MySQL handle: {e}")

    def is_connection_lost(self, code: Optional[int]) -> bool:
        return code in self.CONNECTION_LOST_CODES

    def _transaction_call(self, handle: Handle, action: str) -> None:
        handle.clear_error()
        try:
            getattr(handle.raw, action)()
        except pymysql.err.Error as e:
            error = self._client_error(e)
            handle.set_error(error)
            raise error from e

    def begin(self, handle: Handle) -> None:
        self._transaction_call(handle, 'begin')

    def commit(self, handle: Handle) -> None:
        self._transaction_call(handle, 'commit')

    def rollback(self, handle: Handle) -> None:
        self._transaction_call(handle, 'rollback')


class SQLiteClient(DatabaseClient):
    """SQLite client backed by the standard library driver."""

    dialect = Dialect.SQLITE

    CHARSETS = {
        'utf8': 'UTF-8',
        'utf8mb4': 'UTF-8',
        'utf-8': 'UTF-8',
        'utf16': 'UTF-16',
        'utf-16': 'UTF-16',
        'utf-16le': 'UTF-16le',
        'utf-16be': 'UTF-16be',
    }

    def get_driver_name(self) -> str:
        return "sqlite3"

    @staticmethod
    def _client_error(error: Exception) -> ClientError:
        return ClientError(str(error), getattr(error, 'sqlite_errorcode', None))

    def connect(self, config: DatabaseConfig, timeout: Optional[int] = None) -> Handle:
        try:
            connection = sqlite3.connect(
                config.path,
                timeout=timeout or config.options.get('timeout', 5.0),
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise self._client_error(e) from e
        connection.row_factory = sqlite3.Row
        return Handle(connection)

    def ping(self, handle: Handle) -> bool:
        try:
            handle.raw.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            handle.set_error(self._client_error(e))
            return False
        return True

    def set_charset(self, handle: Handle, name: str) -> bool:
        encoding = self.CHARSETS.get(name.lower())
        if encoding is None:
            handle.set_error(ClientError(f"Unknown SQLite encoding '{name}'"))
            return False
        try:
            handle.raw.execute(f'PRAGMA encoding = "{encoding}"')
        except sqlite3.Error as e:
            handle.set_error(self._client_error(e))
            return False
        return True

    def execute(self, handle: Handle, sql: str) -> QueryResult:
        handle.clear_error()
        try:
            cursor = handle.raw.execute(sql)
            try:
                columns = [d[0] for d in cursor.description] if cursor.description else []
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
                affected = len(rows) if cursor.description else cursor.rowcount
                return QueryResult(
                    rows=rows,
                    columns=columns,
                    rows_affected=max(affected, 0),
                    insert_id=cursor.lastrowid or None,
                )
            finally:
                cursor.close()
        except (sqlite3.Error, sqlite3.Warning) as e:
            error = self._client_error(e)
            handle.set_error(error)
            raise error from e

    def close(self, handle: Handle) -> None:
        try:
            handle.raw.close()
        except sqlite3.Error as e:
            logger.debug(f"Ignoring error while closing SQLite handle: {e}")


class ClientFactory:
    """Factory for creating database clients."""

    _clients: Dict[DatabaseType, Type[DatabaseClient]] = {
        DatabaseType.MYSQL: PyMySQLClient,
        DatabaseType.SQLITE: SQLiteClient,
    }

    @classmethod
    def create_client(cls, config: DatabaseConfig) -> DatabaseClient:
        """Create a client for the configured database type.

        Raises:
            DatabaseError: If database type is not supported.
        """
        client_class = cls._clients.get(config.type)
        if not client_class:
            raise DatabaseError(
                f"Unsupported database type: {config.type}. "
                f"Supported types: {list(cls._clients.keys())}"
            )
        return client_class()

    @classmethod
    def register_client(cls, db_type: DatabaseType, client_class: Type[DatabaseClient]) -> None:
        """Register a custom database client."""
        cls._clients[db_type] = client_class

    @classmethod
    def get_supported_types(cls) -> list[DatabaseType]:
        return list(cls._clients.keys())
