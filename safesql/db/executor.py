"""Statement execution with bounded retry and execution statistics."""

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional

from safesql.db.client import QueryResult
from safesql.db.lifecycle import ConnectionLifecycle
from safesql.db.reporting import ErrorReporter, QueryJournal
from safesql.exceptions import ClientError, QueryError

logger = logging.getLogger(__name__)

DEFAULT_STATS_CAPACITY = 100


@dataclass
class ExecutionRecord:
    """Statistics for one executed statement."""
    sql: str
    start: float
    duration: float = 0.0
    rows: int = 0
    error: Optional[str] = None
    retried: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StatsBuffer:
    """Bounded FIFO of execution records; the oldest record is evicted first."""

    def __init__(self, capacity: int = DEFAULT_STATS_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("stats capacity must be >= 1")
        self._records: Deque[ExecutionRecord] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._records.maxlen

    def append(self, record: ExecutionRecord) -> None:
        self._records.append(record)

    def last(self) -> Optional[ExecutionRecord]:
        return self._records[-1] if self._records else None

    def clear(self) -> None:
        self._records.clear()

    def snapshot(self) -> List[ExecutionRecord]:
        return list(self._records)

    def summary(self) -> Dict[str, Any]:
        records = self._records
        durations = [r.duration for r in records]
        return {
            'count': len(records),
            'errors': sum(1 for r in records if r.error is not None),
            'retried': sum(1 for r in records if r.retried),
            'total_time': sum(durations),
            'max_time': max(durations, default=0.0),
        }

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ExecutionRecord]:
        return iter(self._records)


class QueryExecutor:
    """Runs compiled SQL on the lifecycle's connection.

    A statement that fails because the server dropped the connection is
    retried exactly once on a fresh connection, unless a transaction is open
    on the lost connection. Every other failure, and a failed retry, is
    reported as :class:`QueryError`.
    """

    def __init__(
        self,
        lifecycle: ConnectionLifecycle,
        reporter: Optional[ErrorReporter] = None,
        collect_stats: bool = True,
        stats_capacity: int = DEFAULT_STATS_CAPACITY,
        journal: Optional[QueryJournal] = None,
        timer: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.lifecycle = lifecycle
        self.client = lifecycle.client
        self.reporter = reporter or lifecycle.reporter
        self.collect_stats = collect_stats
        self.stats = StatsBuffer(stats_capacity)
        self.journal = journal
        self.last_sql: Optional[str] = None
        self.last_result: Optional[QueryResult] = None
        self.retry_count = 0
        self._timer = timer
        self._wall_clock = wall_clock

    def set_stats_enabled(self, enabled: bool) -> None:
        self.collect_stats = enabled

    def get_stats(self) -> List[ExecutionRecord]:
        return self.stats.snapshot()

    def execute(self, sql: str) -> QueryResult:
        """Execute a compiled statement.

        Raises:
            QueryError: If the statement is empty or fails.
            ConnectError: If no connection could be established.
        """
        self.reporter.clear()
        if not sql or not sql.strip():
            self.reporter.fail(QueryError("Empty query", sql=sql))

        handle = self.lifecycle.acquire()
        self.last_sql = sql
        if self.journal is not None:
            self.journal.record_sql(sql)

        record = None
        if self.collect_stats:
            record = ExecutionRecord(sql=sql, start=self._wall_clock())
        started = self._timer()

        try:
            try:
                result = self.client.execute(handle, sql)
            except ClientError as first:
                if not self.client.is_connection_lost(first.code):
                    raise
                if self.lifecycle.in_transaction:
                    self.lifecycle.abandon_transaction()
                    raise ClientError(
                        f"{first.message} (connection lost inside an open transaction, not retried)",
                        first.code,
                    ) from first
                self.retry_count += 1
                if record is not None:
                    record.retried = True
                logger.warning(
                    f"Connection lost during query ({first.code}: {first.message}), "
                    f"reconnecting and retrying once"
                )
                handle = self.lifecycle.reconnect()
                result = self.client.execute(handle, sql)
        except ClientError as e:
            elapsed = self._timer() - started
            if record is not None:
                record.duration = elapsed
                record.error = e.message
                self.stats.append(record)
            if self.journal is not None:
                self.journal.record_error(e.message, sql)
            self.reporter.fail(QueryError(
                e.message or "Database query error",
                sql=sql,
                database_type=self.lifecycle.config.type.value,
                code=e.code,
            ))

        elapsed = self._timer() - started
        result.execution_time = elapsed
        self.lifecycle.touch()
        self.last_result = result
        if record is not None:
            record.duration = elapsed
            record.rows = result.rows_affected
            self.stats.append(record)
        return result
