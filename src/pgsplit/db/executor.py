"""
Statement execution.

Every generated statement goes through ``StatementExecutor``, which prints it
to the SQL sink and, unless in dry-run mode, sends it to the server. Dry runs
take exactly the same path and only skip the final ``execute`` call.

Three execution shapes are supported:
- ``run_transaction``: all statements in one transaction (lifecycle commands)
- ``run_batch``: a single statement in its own transaction (fill batches)
- ``run_autocommit``: each statement on its own, outside any transaction (analyze)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from rich.console import Console
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError

from pgsplit.core.errors import ExecutionError
from pgsplit.db.connection import Database

logger = logging.getLogger(__name__)


class StatementExecutor:
    """Prints and executes generated SQL against one connection."""

    def __init__(
        self,
        database: Optional[Database],
        console: Optional[Console] = None,
        dry_run: bool = False,
    ):
        self.database = database
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.dry_run = dry_run

    # ========== OUTPUT ==========

    def log_sql(self, message: str = "") -> None:
        self.console.print(message, markup=False, emoji=False, highlight=False, soft_wrap=True)

    # ========== EXECUTION SHAPES ==========

    def run_transaction(self, statements: Sequence[str]) -> None:
        """Run statements atomically. Any failure rolls back all of them."""
        with self._transaction() as conn:
            if conn is not None:
                self._execute(conn, "SET LOCAL client_min_messages TO warning")
            self.log_sql("BEGIN;")
            self.log_sql()
            for statement in statements:
                self._run(conn, statement)
            self.log_sql("COMMIT;")

    def run_batch(self, statement: str) -> None:
        """Run one statement in its own transaction so it commits independently."""
        with self._transaction() as conn:
            self._run(conn, statement)

    def run_autocommit(self, statements: Sequence[str]) -> None:
        """Run statements one by one outside an explicit transaction."""
        with self._autocommit() as conn:
            for statement in statements:
                self._run(conn, statement)

    # ========== INTERNALS ==========

    def _run(self, conn: Optional[Connection], statement: str) -> None:
        self.log_sql(statement)
        if conn is not None:
            self._execute(conn, statement)
        self.log_sql()

    def _execute(self, conn: Connection, statement: str) -> None:
        try:
            conn.exec_driver_sql(statement)
        except DBAPIError as e:
            orig = e.orig if e.orig is not None else e
            message = f"{orig.__class__.__name__}: {str(orig).strip()}"
            logger.debug("Statement failed: %s", message)
            raise ExecutionError(message, statement=statement) from e

    @contextmanager
    def _transaction(self) -> Iterator[Optional[Connection]]:
        if self.dry_run:
            yield None
            return

        conn = self.database.connection
        if conn.in_transaction():
            conn.commit()
        with conn.begin():
            yield conn

    @contextmanager
    def _autocommit(self) -> Iterator[Optional[Connection]]:
        if self.dry_run:
            yield None
            return

        conn = self.database.connection
        if conn.in_transaction():
            conn.commit()
        previous = conn.get_isolation_level()
        conn.execution_options(isolation_level="AUTOCOMMIT")
        try:
            yield conn
        finally:
            conn.execution_options(isolation_level=previous)
