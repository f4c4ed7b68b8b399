"""Batched multi-row INSERT statements."""

import logging
from typing import Any, Sequence

from safesql.exceptions import PlaceholderTypeError
from safesql.template.escaper import Dialect, escape_ident, escape_param

logger = logging.getLogger(__name__)


class BulkInserter:
    """Accumulates rows into one ``INSERT ... VALUES (...), (...)`` statement.

    The statement is sent once it grows past ``query_size_limit`` characters,
    on :meth:`flush`, or when used as a context manager, on exit.
    """

    def __init__(
        self,
        database,
        table_name: str,
        field_names: Sequence[str],
        insert_ignore: bool = False,
        query_size_limit: int = 250000,
    ) -> None:
        if not field_names:
            raise ValueError("BulkInserter requires at least one field name")
        self.database = database
        self.table_name = table_name
        self.field_names = list(field_names)
        self.insert_ignore = insert_ignore
        self.query_size_limit = query_size_limit
        self.rows_pending = 0
        self.rows_flushed = 0
        self.statements_sent = 0
        self._sql = ''

    @property
    def pending_sql(self) -> str:
        return self._sql

    def _header(self) -> str:
        dialect = self.database.compiler.dialect
        fields = ','.join(escape_ident(name, dialect) for name in self.field_names)
        ignore = ''
        if self.insert_ignore:
            ignore = 'OR IGNORE ' if dialect is Dialect.SQLITE else 'IGNORE '
        return f"INSERT {ignore}INTO {escape_ident(self.table_name, dialect)} ({fields}) VALUES "

    def add(self, values: Sequence[Any]) -> None:
        """Queue one row; values are escaped according to their types."""
        if len(values) != len(self.field_names):
            raise PlaceholderTypeError(
                f"Row has {len(values)} values for {len(self.field_names)} fields"
            )
        if len(self._sql) >= self.query_size_limit:
            self.flush()

        dialect = self.database.compiler.dialect
        row = '(' + ','.join(escape_param(value, dialect) for value in values) + ')'
        if not self._sql:
            self._sql = self._header() + row
        else:
            self._sql += ', ' + row
        self.rows_pending += 1

    def flush(self) -> None:
        """Send the queued rows, if any."""
        if not self._sql:
            return
        sql, rows = self._sql, self.rows_pending
        self._sql = ''
        self.rows_pending = 0
        self.database.execute(sql)
        self.rows_flushed += rows
        self.statements_sent += 1
        logger.debug(f"Flushed {rows} row(s) into {self.table_name}")

    def __enter__(self) -> "BulkInserter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.flush()
