"""Tests for statement execution, the single retry and statistics."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from safesql.db.client import QueryResult
from safesql.db.executor import ExecutionRecord, QueryExecutor, StatsBuffer
from safesql.db.lifecycle import ConnectionLifecycle
from safesql.db.reporting import ErrorReporter, QueryJournal
from safesql.exceptions import ClientError, QueryError

GONE_AWAY = 2006
LOST_DURING_QUERY = 2013


@pytest.fixture
def lifecycle(client, mysql_config, policy, clock, sleep) -> ConnectionLifecycle:
    return ConnectionLifecycle(client, mysql_config, policy, ErrorReporter(), clock=clock, sleep=sleep)


@pytest.fixture
def executor(lifecycle) -> QueryExecutor:
    return QueryExecutor(lifecycle, stats_capacity=5)


class TestExecute:
    """Successful statements and non-retryable failures."""

    @pytest.mark.parametrize('sql', ['', '   ', '\n\t'])
    def test_empty_sql_never_touches_the_connection(self, executor, client, sql: str) -> None:
        with pytest.raises(QueryError, match="Empty query"):
            executor.execute(sql)

        client.connect.assert_not_called()
        client.execute.assert_not_called()
        assert executor.get_stats() == []

    def test_success_returns_result_and_records_stats(self, executor, client) -> None:
        result = executor.execute("SELECT 1")

        assert isinstance(result, QueryResult)
        assert result.rows == [{"id": 1}]
        assert executor.last_sql == "SELECT 1"
        assert executor.last_result is result

        stats = executor.get_stats()
        assert len(stats) == 1
        assert stats[0].sql == "SELECT 1"
        assert stats[0].rows == 1
        assert stats[0].error is None
        assert stats[0].retried is False

    def test_non_connection_error_is_not_retried(self, executor, client) -> None:
        client.execute.side_effect = ClientError("You have an error in your SQL syntax", 1064)

        with pytest.raises(QueryError) as exc_info:
            executor.execute("SELEC 1")

        assert client.execute.call_count == 1
        assert client.connect.call_count == 1
        assert exc_info.value.code == 1064
        assert exc_info.value.sql == "SELEC 1"
        assert "SQL syntax" in exc_info.value.message
        assert executor.retry_count == 0

        record = executor.get_stats()[-1]
        assert record.error == "You have an error in your SQL syntax"

    def test_failure_goes_through_handler(self, executor, client, lifecycle) -> None:
        handler = Mock()
        lifecycle.reporter.set_handler(handler)
        client.execute.side_effect = ClientError("Table 'shop.nope' doesn't exist", 1146)

        with pytest.raises(QueryError):
            executor.execute("SELECT * FROM nope")

        handler.assert_called_once_with("Table 'shop.nope' doesn't exist")


class TestConnectionLostRetry:
    """Exactly one reconnect and retry when the server drops the connection."""

    @pytest.mark.parametrize('code', [GONE_AWAY, LOST_DURING_QUERY])
    def test_single_loss_is_retried_transparently(self, executor, client, lifecycle, code: int) -> None:
        ok = QueryResult(rows=[{"n": 2}], columns=["n"], rows_affected=1)
        client.execute.side_effect = [ClientError("MySQL server has gone away", code), ok]

        result = executor.execute("SELECT 2 AS n")

        assert result is ok
        assert client.execute.call_count == 2
        assert lifecycle.connect_count == 2
        assert executor.retry_count == 1
        record = executor.get_stats()[-1]
        assert record.retried is True
        assert record.error is None

    def test_second_loss_fails(self, executor, client) -> None:
        client.execute.side_effect = ClientError("MySQL server has gone away", GONE_AWAY)

        with pytest.raises(QueryError) as exc_info:
            executor.execute("SELECT 1")

        assert client.execute.call_count == 2
        assert exc_info.value.code == GONE_AWAY
        assert executor.retry_count == 1

    def test_retry_uses_the_new_handle(self, executor, client, lifecycle) -> None:
        client.execute.side_effect = [ClientError("gone", GONE_AWAY), QueryResult()]

        executor.execute("SELECT 1")

        first_handle = client.execute.call_args_list[0].args[0]
        second_handle = client.execute.call_args_list[1].args[0]
        assert first_handle is not second_handle
        assert lifecycle.handle is second_handle

    def test_loss_inside_transaction_is_not_retried(self, executor, client, lifecycle) -> None:
        client.execute.side_effect = [ClientError("gone", GONE_AWAY), QueryResult()]
        lifecycle.acquire()
        lifecycle.in_transaction = True

        with pytest.raises(QueryError, match="open transaction") as exc_info:
            executor.execute("UPDATE t SET n=1")

        assert exc_info.value.code == GONE_AWAY
        assert client.execute.call_count == 1
        assert lifecycle.connect_count == 1
        assert lifecycle.handle is None
        assert lifecycle.in_transaction is False
        assert executor.retry_count == 0
        assert executor.get_stats()[-1].retried is False


class TestStatistics:
    """Bounded FIFO statistics."""

    def test_capacity_evicts_oldest(self, executor) -> None:
        for i in range(8):
            executor.execute(f"SELECT {i}")

        stats = executor.get_stats()
        assert len(stats) == 5
        assert [r.sql for r in stats] == [f"SELECT {i}" for i in range(3, 8)]

    def test_disabled_stats_record_nothing(self, executor) -> None:
        executor.set_stats_enabled(False)
        executor.execute("SELECT 1")
        assert executor.get_stats() == []

    def test_duration_from_timer(self, lifecycle) -> None:
        ticks = iter([10.0, 10.25])
        executor = QueryExecutor(lifecycle, timer=lambda: next(ticks), wall_clock=lambda: 1700000000.0)

        result = executor.execute("SELECT 1")

        record = executor.get_stats()[0]
        assert record.start == 1700000000.0
        assert record.duration == pytest.approx(0.25)
        assert result.execution_time == pytest.approx(0.25)

    def test_summary(self) -> None:
        buffer = StatsBuffer(capacity=3)
        buffer.append(ExecutionRecord(sql="a", start=0, duration=0.5))
        buffer.append(ExecutionRecord(sql="b", start=0, duration=1.5, error="boom", retried=True))

        summary = buffer.summary()

        assert summary == {
            'count': 2,
            'errors': 1,
            'retried': 1,
            'total_time': 2.0,
            'max_time': 1.5,
        }
        assert buffer.last().sql == "b"

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            StatsBuffer(capacity=0)


def test_journal_receives_statements_and_errors(lifecycle, client, tmp_path) -> None:
    sql_log = tmp_path / "sql.log"
    error_log = tmp_path / "errors.log"
    journal = QueryJournal(sql_log, error_log)
    executor = QueryExecutor(lifecycle, journal=journal)
    client.execute.side_effect = [QueryResult(), ClientError("Unknown column 'x'", 1054)]

    executor.execute("SELECT 1")
    with pytest.raises(QueryError):
        executor.execute("SELECT x")
    journal.close()

    assert "SELECT 1" in sql_log.read_text()
    assert "SELECT x" in sql_log.read_text()
    errors = error_log.read_text()
    assert "Unknown column 'x'" in errors
    assert "Query: SELECT x" in errors
