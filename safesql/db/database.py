"""Database facade: template compiler, connection lifecycle and executor for one connection."""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Generator,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import pandas as pd

from safesql.config.models import ConnectionPolicy, DatabaseConfig
from safesql.db.bulk import BulkInserter
from safesql.db.client import ClientFactory, DatabaseClient, QueryResult
from safesql.db.executor import ExecutionRecord, QueryExecutor
from safesql.db.lifecycle import ConnectionLifecycle, ConnectionState
from safesql.db.reporting import ErrorHandler, ErrorReporter, QueryJournal
from safesql.exceptions import (
    ClientError,
    DatabaseError,
    EmptyPayloadError,
    PlaceholderTypeError,
    QueryError,
)
from safesql.template.compiler import PreparedTemplate, TemplateCompiler
from safesql.template.escaper import Raw, escape_ident

logger = logging.getLogger(__name__)


class PreparedQuery:
    """A template split once and executed many times against one database."""

    def __init__(self, database: "Database", template: PreparedTemplate) -> None:
        self.database = database
        self.template = template

    def render(self, *args: Any) -> str:
        return self.template.render(args)

    def execute(self, *args: Any) -> QueryResult:
        return self.database.execute(self.template.render(args))


class Database:
    """One logical connection with placeholder queries and convenience helpers.

    Example::

        db = Database(DatabaseConfig(host="localhost", username="app", database="shop"))
        db.query("UPDATE ?n SET ?u WHERE id=?i", "users", {"name": "Ann"}, 5)
        rows = db.get_all("SELECT * FROM users WHERE id IN (?a)", [1, 2, 3])

    Instances are not thread safe.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        policy: Optional[ConnectionPolicy] = None,
        client: Optional[DatabaseClient] = None,
        error_handler: Optional[ErrorHandler] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.policy = policy or ConnectionPolicy()
        self.client = client or ClientFactory.create_client(config)
        self.reporter = ErrorReporter(error_handler)
        self.compiler = TemplateCompiler(self.client.dialect)
        self.lifecycle = ConnectionLifecycle(
            self.client, config, self.policy, self.reporter, clock=clock, sleep=sleep
        )
        self.executor = QueryExecutor(
            self.lifecycle,
            self.reporter,
            collect_stats=self.policy.collect_stats,
            stats_capacity=self.policy.stats_capacity,
        )
        self.fail_on_nodata = self.policy.fail_on_nodata
        if self.policy.log_sql or self.policy.error_log:
            self.executor.journal = QueryJournal(
                self.policy.log_sql, self.policy.error_log, self.policy.log_sql_debug
            )

    # Configuration

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> "Database":
        """Set the callable receiving fatal error messages."""
        self.reporter.set_handler(handler)
        return self

    def set_idle_threshold(self, seconds: float) -> "Database":
        self.lifecycle.set_idle_threshold(seconds)
        return self

    def set_retry(self, attempts: int, delay: Optional[float] = None) -> "Database":
        self.lifecycle.set_retry(attempts, delay)
        return self

    def set_stats_enabled(self, enabled: bool) -> "Database":
        self.executor.set_stats_enabled(enabled)
        return self

    def set_log_sql(self, file_name: Union[str, Path], add_debug: bool = False) -> "Database":
        """Append every executed statement to ``file_name``."""
        current = self.executor.journal
        error_log = current.error_log if current is not None else None
        self._replace_journal(QueryJournal(file_name, error_log, add_debug))
        return self

    def set_error_log(self, file_name: Union[str, Path]) -> "Database":
        """Append every failed statement to ``file_name``."""
        current = self.executor.journal
        if current is None:
            journal = QueryJournal(error_log=file_name)
        else:
            journal = QueryJournal(current.sql_log, file_name, current.debug)
        self._replace_journal(journal)
        return self

    def _replace_journal(self, journal: QueryJournal) -> None:
        if self.executor.journal is not None:
            self.executor.journal.close()
        self.executor.journal = journal

    # Connection

    @property
    def state(self) -> ConnectionState:
        return self.lifecycle.state

    def connect(self) -> "Database":
        """Connect eagerly instead of on first use."""
        self.lifecycle.acquire()
        return self

    def ping(self) -> bool:
        """Check the connection, reconnecting if it was lost."""
        handle = self.lifecycle.acquire()
        return self.client.ping(handle)

    def close(self) -> None:
        self.lifecycle.close()
        if self.executor.journal is not None:
            self.executor.journal.close()
            self.executor.journal = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Compilation and execution

    def parse(self, template: str, *args: Any) -> str:
        """Compile a template or template fragment without executing it.

        Fragments built this way can be embedded in a larger query through ``?p``.
        """
        return self.compiler.compile(template, args)

    def compile(self, template: str, args: Sequence[Any] = ()) -> str:
        return self.compiler.compile(template, args)

    def prepare(self, template: str) -> PreparedQuery:
        return PreparedQuery(self, self.compiler.prepare(template))

    def execute(self, sql: str) -> QueryResult:
        """Execute an already compiled statement."""
        return self.executor.execute(sql)

    def query(self, template: str, *args: Any) -> QueryResult:
        """Compile ``template`` with ``args`` and execute it."""
        return self.execute(self.compiler.compile(template, args))

    # Convenience helpers

    def _fetch(self, template: str, args: Sequence[Any], single: bool = False) -> QueryResult:
        sql = self.compiler.compile(template, args)
        result = self.execute(sql)
        if single and self.fail_on_nodata and result.is_empty:
            self.reporter.fail(QueryError("Query result empty", sql=sql))
        return result

    def get_one(self, template: str, *args: Any) -> Any:
        """Return the first column of the first row, or None when there are no rows."""
        row = self._fetch(template, args, single=True).first()
        if row is None:
            return None
        return next(iter(row.values()), None)

    def get_row(self, template: str, *args: Any) -> Optional[Dict[str, Any]]:
        """Return the first row as a dictionary, or None."""
        return self._fetch(template, args, single=True).first()

    def get_col(self, template: str, *args: Any) -> List[Any]:
        """Return the first column of every row."""
        return [next(iter(row.values()), None) for row in self._fetch(template, args)]

    def get_all(self, template: str, *args: Any) -> List[Dict[str, Any]]:
        """Return every row as a list of dictionaries."""
        return list(self._fetch(template, args).rows)

    def _fetch_indexed(self, index: str, template: str, args: Sequence[Any]) -> QueryResult:
        result = self._fetch(template, args)
        if result.rows and index not in result.rows[0]:
            self.reporter.fail(QueryError(
                f"Index column '{index}' not found in result columns {list(result.rows[0])}",
                sql=self.executor.last_sql,
                database_type=self.config.type.value,
            ))
        return result

    def get_ind(self, index: str, template: str, *args: Any) -> Dict[Any, Dict[str, Any]]:
        """Return rows keyed by the value of the ``index`` column."""
        return {row[index]: row for row in self._fetch_indexed(index, template, args)}

    def get_ind_col(self, index: str, template: str, *args: Any) -> Dict[Any, Any]:
        """Return ``{index value: first other column}`` pairs."""
        result = {}
        for row in self._fetch_indexed(index, template, args):
            values = {k: v for k, v in row.items() if k != index}
            result[row[index]] = next(iter(values.values()), None)
        return result

    def get_frame(self, template: str, *args: Any) -> pd.DataFrame:
        """Return the result as a pandas DataFrame."""
        return self._fetch(template, args).to_dataframe()

    def insert(self, table_name: str, data: Mapping[str, Any], db_name: str = '') -> QueryResult:
        """Insert one row; values may include ``Raw`` fragments such as ``Raw('NOW()')``.

        Renders ``INSERT INTO t (a,b) VALUES (1,'x')`` so it works on every dialect.
        """
        if not isinstance(data, Mapping):
            raise PlaceholderTypeError(
                f"insert() expects mapping, {type(data).__name__} given", placeholder='?u'
            )
        if not data:
            raise EmptyPayloadError('Empty mapping for insert()', placeholder='?u')
        dialect = self.compiler.dialect
        columns = Raw(','.join(escape_ident(key, dialect) for key in data))
        values = list(data.values())
        if db_name:
            return self.query('INSERT INTO ?n.?n (?p) VALUES (?a)', db_name, table_name, columns, values)
        return self.query('INSERT INTO ?n (?p) VALUES (?a)', table_name, columns, values)

    def update(
        self,
        table_name: str,
        data: Mapping[str, Any],
        where: str = '',
        db_name: str = '',
    ) -> QueryResult:
        """Update rows; ``where`` is a trusted fragment, build it with :meth:`parse`."""
        suffix = ' WHERE ?p' if where else ''
        args: List[Any] = [data, where] if where else [data]
        if db_name:
            return self.query('UPDATE ?n.?n SET ?u' + suffix, db_name, table_name, *args)
        return self.query('UPDATE ?n SET ?u' + suffix, table_name, *args)

    @staticmethod
    def white_list(value: Any, allowed: Iterable[Any], default: Any = None) -> Any:
        """Return ``value`` if it is one of ``allowed``, else ``default``.

        Use it for things placeholders cannot protect, such as sort directions.
        """
        for candidate in allowed:
            if candidate == value:
                return candidate
        return default

    @staticmethod
    def filter_array(data: Mapping[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
        """Keep only the keys listed in ``allowed``."""
        allowed = set(allowed)
        return {key: value for key, value in data.items() if key in allowed}

    # Diagnostics

    def last_query(self) -> Optional[str]:
        return self.executor.last_sql

    def last_error(self) -> Optional[str]:
        return self.reporter.last_error

    def get_stats(self) -> List[ExecutionRecord]:
        return self.executor.get_stats()

    def affected_rows(self) -> int:
        result = self.executor.last_result
        return result.rows_affected if result is not None else 0

    def insert_id(self) -> Optional[int]:
        result = self.executor.last_result
        return result.insert_id if result is not None else None

    # Transactions

    def _transaction_call(self, action: Callable[[Any], None], name: str) -> None:
        handle = self.lifecycle.acquire()
        try:
            action(handle)
        except ClientError as e:
            self.reporter.fail(QueryError(
                f"{name} failed: {e.message}",
                sql=name,
                database_type=self.config.type.value,
                code=e.code,
            ))
        self.lifecycle.touch()

    @property
    def in_transaction(self) -> bool:
        return self.lifecycle.in_transaction

    def begin(self) -> None:
        """Open a transaction; a lost connection is reported until it ends."""
        self._transaction_call(self.client.begin, "BEGIN")
        self.lifecycle.in_transaction = True

    def commit(self) -> None:
        try:
            self._transaction_call(self.client.commit, "COMMIT")
        finally:
            self.lifecycle.in_transaction = False

    def rollback(self) -> None:
        try:
            self._transaction_call(self.client.rollback, "ROLLBACK")
        finally:
            self.lifecycle.in_transaction = False

    @contextmanager
    def transaction(self) -> Generator["Database", None, None]:
        """Run the block in a transaction, rolling back if it raises.

        Raises:
            QueryError: If the connection was lost inside the block, even when
                the block itself swallowed the error.
        """
        self.begin()
        try:
            yield self
        except BaseException:
            if self.lifecycle.in_transaction:
                try:
                    self.rollback()
                except DatabaseError as e:
                    logger.warning(f"Rollback failed: {e}")
            raise
        if not self.lifecycle.in_transaction:
            self.reporter.fail(QueryError(
                "Transaction was lost with its connection, nothing was committed",
                sql="COMMIT",
                database_type=self.config.type.value,
            ))
        self.commit()

    def bulk_inserter(
        self,
        table_name: str,
        field_names: Sequence[str],
        insert_ignore: bool = False,
        query_size_limit: int = 250000,
    ) -> BulkInserter:
        """Create a :class:`~safesql.db.bulk.BulkInserter` writing through this database."""
        return BulkInserter(self, table_name, field_names, insert_ignore, query_size_limit)
