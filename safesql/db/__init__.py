"""Database connectivity and query execution."""

from safesql.db.client import (
    ClientFactory,
    DatabaseClient,
    Handle,
    PyMySQLClient,
    QueryResult,
    SQLiteClient,
)
from safesql.db.reporting import ErrorReporter, QueryJournal
from safesql.db.lifecycle import ConnectionLifecycle, ConnectionState
from safesql.db.executor import ExecutionRecord, QueryExecutor, StatsBuffer
from safesql.db.database import Database, PreparedQuery
from safesql.db.bulk import BulkInserter
from safesql.db.registry import DatabaseRegistry

__all__ = [
    # Clients
    "ClientFactory",
    "DatabaseClient",
    "Handle",
    "PyMySQLClient",
    "QueryResult",
    "SQLiteClient",
    # Lifecycle and execution
    "ConnectionLifecycle",
    "ConnectionState",
    "ErrorReporter",
    "ExecutionRecord",
    "QueryExecutor",
    "QueryJournal",
    "StatsBuffer",
    # Facade
    "BulkInserter",
    "Database",
    "DatabaseRegistry",
    "PreparedQuery",
]
