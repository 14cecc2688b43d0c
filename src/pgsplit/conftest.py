"""
Root pytest configuration for pgsplit.

Provides CLI testing helpers plus an in-memory schema catalog and a recording
statement executor, so commands can be exercised without a database.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import pytest
from click.testing import CliRunner
from rich.console import Console

from pgsplit.core.commands import ExecutionContext
from pgsplit.core.tables import TableRef
from pgsplit.db.base import SchemaCatalog, SequenceRef
from pgsplit.db.executor import StatementExecutor

# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner for testing."""
    return CliRunner()


def invoke_cli(runner: CliRunner, cmd, args: list[str], **kwargs):
    """
    Helper to invoke CLI command.

    Args:
        runner: Click test runner
        cmd: Click command or group
        args: Command arguments
        **kwargs: Additional arguments to runner.invoke()

    Returns:
        Click Result object
    """
    return runner.invoke(cmd, args, catch_exceptions=False, **kwargs)


def assert_cli_success(result, msg: str = None):
    """Assert CLI command succeeded (exit code 0)."""
    if result.exit_code != 0:
        error_msg = f"CLI failed (exit code {result.exit_code})"
        if msg:
            error_msg = f"{msg}: {error_msg}"
        if result.output:
            error_msg += f"\nOutput: {result.output}"
        raise AssertionError(error_msg)


def assert_cli_failure(result, expected_code: int = None, msg: str = None):
    """Assert CLI command failed."""
    if result.exit_code == 0:
        error_msg = "CLI succeeded but expected failure"
        if msg:
            error_msg = f"{msg}: {error_msg}"
        raise AssertionError(error_msg)

    if expected_code is not None and result.exit_code != expected_code:
        raise AssertionError(f"Expected exit code {expected_code}, got {result.exit_code}")


def assert_output_contains(result, text: str):
    """Assert CLI output contains text."""
    if text not in result.output:
        raise AssertionError(f"Expected output to contain '{text}'\nGot: {result.output}")


# ============================================================================
# In-memory catalog
# ============================================================================


@dataclass
class FakeTable:
    """Schema facts for one table in FakeCatalog."""

    columns: dict[str, str] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=list)
    foreign_keys: list[str] = field(default_factory=list)
    index_defs: list[str] = field(default_factory=list)
    sequences: list[SequenceRef] = field(default_factory=list)
    comment: Optional[str] = None
    triggers: dict[str, Optional[str]] = field(default_factory=dict)
    rows: list[tuple[int, Optional[date]]] = field(default_factory=list)


def events_table(**overrides) -> FakeTable:
    """A typical ``events`` table with a bigint id and timestamptz created_at."""
    values = dict(
        columns={"id": "bigint", "user_id": "integer", "created_at": "timestamp with time zone"},
        primary_key=["id"],
        foreign_keys=["FOREIGN KEY (user_id) REFERENCES users(id)"],
        index_defs=["CREATE INDEX events_user_id_idx ON public.events USING btree (user_id)"],
        sequences=[SequenceRef("events_id_seq", "id")],
    )
    values.update(overrides)
    return FakeTable(**values)


class FakeCatalog(SchemaCatalog):
    """SchemaCatalog backed by a dict of FakeTable keyed by ``schema.name``."""

    def __init__(self, version: int = 140005):
        self.version = version
        self.tables: dict[str, FakeTable] = {}
        self.functions: dict[str, str] = {}

    def add(self, name: str, table: Optional[FakeTable] = None) -> FakeTable:
        ref = TableRef.parse(name)
        self.tables[str(ref)] = table or FakeTable()
        return self.tables[str(ref)]

    def get(self, table: TableRef) -> FakeTable:
        return self.tables[str(table)]

    def rename(self, old: str, new: str) -> None:
        self.tables[str(TableRef.parse(new))] = self.tables.pop(str(TableRef.parse(old)))

    def server_version_num(self) -> int:
        return self.version

    def table_exists(self, table: TableRef) -> bool:
        return str(table) in self.tables

    def list_tables(self, schema: str, prefix: str) -> list[str]:
        names = []
        for key in self.tables:
            table_schema, name = key.split(".", 1)
            if table_schema == schema and name.startswith(prefix):
                names.append(name)
        return sorted(names)

    def columns(self, table: TableRef) -> list[str]:
        return list(self.get(table).columns)

    def column_type(self, table: TableRef, column: str) -> Optional[str]:
        return self.get(table).columns.get(column)

    def primary_key(self, table: TableRef) -> list[str]:
        return list(self.get(table).primary_key)

    def foreign_keys(self, table: TableRef) -> list[str]:
        return list(self.get(table).foreign_keys)

    def index_defs(self, table: TableRef) -> list[str]:
        return list(self.get(table).index_defs)

    def sequences(self, table: TableRef) -> list[SequenceRef]:
        return list(self.get(table).sequences)

    def table_comment(self, table: TableRef) -> Optional[str]:
        return self.get(table).comment

    def trigger_comment(self, trigger_name: str, table: TableRef) -> tuple[bool, Optional[str]]:
        triggers = self.get(table).triggers
        if trigger_name not in triggers:
            return False, None
        return True, triggers[trigger_name]

    def function_def(self, schema: str, function_name: str) -> Optional[str]:
        return self.functions.get(f"{schema}.{function_name}")

    def max_id(self, table, primary_key, where=None, below=None) -> int:
        ids = [row_id for row_id, _ in self.get(table).rows]
        if below is not None:
            ids = [i for i in ids if i <= below]
        return max(ids) if ids else 0

    def min_id(self, table, primary_key, column=None, cast=None, starting_time=None, where=None):
        rows = self.get(table).rows
        if starting_time is not None:
            rows = [(i, d) for i, d in rows if d is not None and d >= starting_time]
        return min(i for i, _ in rows) if rows else None


# ============================================================================
# Recording executor
# ============================================================================


class RecordingExecutor(StatementExecutor):
    """Dry-run executor that remembers how statements were grouped."""

    def __init__(self):
        super().__init__(
            None,
            console=Console(file=io.StringIO(), highlight=False, soft_wrap=True, width=200),
            dry_run=True,
        )
        self.calls: list[tuple[str, list[str]]] = []

    def run_transaction(self, statements):
        self.calls.append(("transaction", list(statements)))
        super().run_transaction(statements)

    def run_batch(self, statement):
        self.calls.append(("batch", [statement]))
        super().run_batch(statement)

    def run_autocommit(self, statements):
        self.calls.append(("autocommit", list(statements)))
        super().run_autocommit(statements)

    @property
    def statements(self) -> list[str]:
        return [s for _, group in self.calls for s in group]

    @property
    def output(self) -> str:
        return self.console.file.getvalue()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def context(catalog, executor, sleeps) -> ExecutionContext:
    """Execution context pinned to 2024-03-15."""
    return ExecutionContext(
        catalog=catalog,
        executor=executor,
        today=lambda: date(2024, 3, 15),
        sleep=sleeps.append,
    )
