"""Tests for StatementExecutor output and transaction shapes."""

import io
from unittest.mock import MagicMock, call

import pytest
from rich.console import Console
from sqlalchemy.exc import ProgrammingError

from pgsplit.core.errors import ExecutionError
from pgsplit.db.executor import StatementExecutor


class UndefinedTable(Exception):
    pass


def _console() -> Console:
    return Console(file=io.StringIO(), highlight=False, soft_wrap=True, width=200)


@pytest.fixture
def conn():
    conn = MagicMock()
    conn.in_transaction.return_value = False
    conn.get_isolation_level.return_value = "READ COMMITTED"
    return conn


@pytest.fixture
def live_executor(conn):
    database = MagicMock()
    database.connection = conn
    return StatementExecutor(database, console=_console())


class TestDryRun:
    def test_transaction_output(self):
        executor = StatementExecutor(None, console=_console(), dry_run=True)

        executor.run_transaction(["CREATE TABLE a ();", "CREATE TABLE b ();"])

        assert executor.console.file.getvalue() == (
            "BEGIN;\n\nCREATE TABLE a ();\n\nCREATE TABLE b ();\n\nCOMMIT;\n"
        )

    def test_batch_output(self):
        executor = StatementExecutor(None, console=_console(), dry_run=True)

        executor.run_batch("/* 1 of 1 */\nINSERT INTO a SELECT 1")

        assert executor.console.file.getvalue() == "/* 1 of 1 */\nINSERT INTO a SELECT 1\n\n"

    def test_autocommit_has_no_transaction_markers(self):
        executor = StatementExecutor(None, console=_console(), dry_run=True)

        executor.run_autocommit(["ANALYZE VERBOSE a;"])

        assert executor.console.file.getvalue() == "ANALYZE VERBOSE a;\n\n"

    def test_markup_is_printed_verbatim(self):
        executor = StatementExecutor(None, console=_console(), dry_run=True)

        executor.log_sql("SELECT '[red]x[/red]'")

        assert executor.console.file.getvalue() == "SELECT '[red]x[/red]'\n"


class TestExecution:
    def test_transaction_silences_notices_first(self, live_executor, conn):
        live_executor.run_transaction(["CREATE TABLE a ();"])

        assert conn.exec_driver_sql.call_args_list == [
            call("SET LOCAL client_min_messages TO warning"),
            call("CREATE TABLE a ();"),
        ]
        conn.begin.assert_called_once()
        assert "client_min_messages" not in live_executor.console.file.getvalue()

    def test_pending_read_transaction_is_committed(self, live_executor, conn):
        conn.in_transaction.return_value = True

        live_executor.run_batch("INSERT INTO a SELECT 1")

        conn.commit.assert_called_once()

    def test_failure_raises_execution_error(self, live_executor, conn):
        conn.exec_driver_sql.side_effect = [
            None,
            ProgrammingError("DROP TABLE b;", {}, UndefinedTable('table "b" does not exist\n')),
        ]

        with pytest.raises(ExecutionError) as exc_info:
            live_executor.run_transaction(["DROP TABLE b;", "DROP TABLE c;"])

        assert str(exc_info.value) == 'UndefinedTable: table "b" does not exist'
        assert exc_info.value.statement == "DROP TABLE b;"
        assert conn.exec_driver_sql.call_count == 2

    def test_autocommit_restores_isolation_level(self, live_executor, conn):
        live_executor.run_autocommit(["ANALYZE VERBOSE a;", "ANALYZE VERBOSE b;"])

        assert conn.execution_options.call_args_list == [
            call(isolation_level="AUTOCOMMIT"),
            call(isolation_level="READ COMMITTED"),
        ]
        assert conn.exec_driver_sql.call_count == 2
        conn.begin.assert_not_called()
