"""
Lifecycle commands.

Each command is a plain function taking an ``ExecutionContext`` and a typed
argument object. Handlers check every precondition and gather schema facts
first, then generate statements, and only then hand them to the executor. A
``UsageError`` therefore never leaves partial changes behind.

Usage:
    ctx = ExecutionContext(catalog=catalog, executor=executor)
    run_command(Command.SWAP, ctx, SwapArgs(table="events"))
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional


from pgsplit.core import ddl
from pgsplit.core.backfill import BackfillCursor, PeriodWindow, starting_id
from pgsplit.core.errors import UsageError
from pgsplit.core.metadata import PartitionMetadata
from pgsplit.core.periods import advance_date, is_period, parse_suffix, round_date
from pgsplit.core.tables import DEFAULT_SCHEMA, TableRef, qualify
from pgsplit.core.triggers import PartitionRange
from pgsplit.db.base import SchemaCatalog
from pgsplit.db.executor import StatementExecutor

logger = logging.getLogger(__name__)


class Command(str, Enum):
    PREP = "prep"
    ADD_PARTITIONS = "add_partitions"
    FILL = "fill"
    SWAP = "swap"
    UNSWAP = "unswap"
    UNPREP = "unprep"
    ANALYZE = "analyze"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class ExecutionContext:
    """Collaborators shared by every command in one invocation."""

    catalog: SchemaCatalog
    executor: StatementExecutor
    schema: str = DEFAULT_SCHEMA
    today: Callable[[], date] = utc_today
    sleep: Callable[[float], None] = time.sleep

    def qualify(self, table: str) -> TableRef:
        return qualify(table, self.schema)

    def require_table(self, table: TableRef) -> None:
        if not self.catalog.table_exists(table):
            raise UsageError(f"Table not found: {table}")

    def require_absent(self, table: TableRef) -> None:
        if self.catalog.table_exists(table):
            raise UsageError(f"Table already exists: {table}")


# =============================================================================
# Arguments
# =============================================================================


@dataclass
class PrepArgs:
    table: str
    column: Optional[str] = None
    period: Optional[str] = None
    no_partition: bool = False
    trigger_based: bool = False


@dataclass
class AddPartitionsArgs:
    table: str
    intermediate: bool = False
    past: int = 0
    future: int = 0


@dataclass
class FillArgs:
    table: str
    swapped: bool = False
    source_table: Optional[str] = None
    dest_table: Optional[str] = None
    start: Optional[int] = None
    where: Optional[str] = None
    batch_size: int = 10000
    sleep: Optional[float] = None


@dataclass
class SwapArgs:
    table: str
    lock_timeout: str = "5s"


@dataclass
class TableArgs:
    table: str


@dataclass
class AnalyzeArgs:
    table: str
    swapped: bool = False


# =============================================================================
# prep / unprep
# =============================================================================


def prep(ctx: ExecutionContext, args: PrepArgs) -> None:
    """Create the intermediate table for ``args.table``."""
    table = ctx.qualify(args.table)
    intermediate = table.intermediate_table

    if args.no_partition:
        if args.column is not None or args.period is not None:
            raise UsageError("Usage: pgsplit prep <table> --no-partition")
        if args.trigger_based:
            raise UsageError("Can't use --trigger-based and --no-partition")
    elif args.column is None or args.period is None:
        raise UsageError("Usage: pgsplit prep <table> <column> <period>")

    ctx.require_table(table)
    ctx.require_absent(intermediate)

    cast = None
    if not args.no_partition:
        if args.column not in ctx.catalog.columns(table):
            raise UsageError(f"Column not found: {args.column}")
        if not is_period(args.period):
            raise UsageError(f"Invalid period: {args.period}")
        cast = ctx.catalog.column_cast(table, args.column)

    version = ctx.catalog.server_version_num()
    strategy = ddl.choose_strategy(version, args.trigger_based, args.no_partition)
    logger.debug("prep %s with strategy %s", table, strategy)

    statements = ddl.prep_statements(
        table,
        strategy=strategy,
        column=args.column,
        period=args.period,
        cast=cast,
        index_defs=ctx.catalog.index_defs(table) if strategy == ddl.DECLARATIVE else (),
        foreign_keys=ctx.catalog.foreign_keys(table) if strategy != ddl.DECLARATIVE else (),
        server_version_num=version,
    )
    ctx.executor.run_transaction(statements)


def unprep(ctx: ExecutionContext, args: TableArgs) -> None:
    """Drop the intermediate table and its routing function."""
    table = ctx.qualify(args.table)
    ctx.require_table(table.intermediate_table)
    ctx.executor.run_transaction(ddl.unprep_statements(table))


# =============================================================================
# add_partitions
# =============================================================================


def partition_ranges(
    ctx: ExecutionContext, original_table: TableRef, period: str
) -> list[PartitionRange]:
    """Existing partitions of ``original_table`` with their start dates."""
    ranges = []
    for partition in ctx.catalog.existing_partitions(original_table, period):
        suffix = partition.name.rsplit("_", 1)[-1]
        ranges.append(PartitionRange(partition, parse_suffix(suffix, period)))
    return ranges


def load_metadata(
    ctx: ExecutionContext, original_table: TableRef, table: TableRef, hint: bool = False
) -> PartitionMetadata:
    metadata = ctx.catalog.partition_metadata(original_table, table)
    if metadata is None:
        message = f"No settings found: {table}"
        if hint:
            message += "\nDid you mean to use --intermediate?"
        raise UsageError(message)
    return metadata


def add_partitions(ctx: ExecutionContext, args: AddPartitionsArgs) -> None:
    """Create missing partitions around today and refresh the routing function."""
    original_table = ctx.qualify(args.table)
    table = original_table.intermediate_table if args.intermediate else original_table

    ctx.require_table(table)
    if args.past < 0 or args.future < 0:
        raise UsageError("--past and --future must not be negative")

    metadata = load_metadata(ctx, original_table, table, hint=not args.intermediate)
    existing = partition_ranges(ctx, original_table, metadata.period)
    today = round_date(ctx.today(), metadata.period)

    if not metadata.declarative:
        schema_table = table
    elif args.intermediate:
        schema_table = original_table
    else:
        schema_table = existing[-1].table if existing else table

    # Indexes propagate from the partitioned parent on 11+
    version = ctx.catalog.server_version_num()
    if not metadata.declarative or version < ddl.PARTITIONED_INDEX_MIN_VERSION:
        index_defs = ctx.catalog.index_defs(schema_table)
    else:
        index_defs = []

    plan = ddl.add_partitions_plan(
        original_table,
        table,
        metadata,
        today=today,
        past=args.past,
        future=args.future,
        existing=existing,
        primary_key=ctx.catalog.primary_key(schema_table),
        index_defs=index_defs,
        foreign_keys=ctx.catalog.foreign_keys(schema_table),
    )

    if plan.statements:
        ctx.executor.run_transaction(plan.statements)
    logger.debug("Added %d partition(s) to %s", len(plan.added), table)


# =============================================================================
# fill
# =============================================================================


def fill(ctx: ExecutionContext, args: FillArgs) -> None:
    """Copy rows into the destination in primary key batches."""
    table = ctx.qualify(args.table)
    if args.batch_size < 1:
        raise UsageError("--batch-size must be positive")

    source = ctx.qualify(args.source_table) if args.source_table else None
    dest = ctx.qualify(args.dest_table) if args.dest_table else None
    if args.swapped:
        source = source or table.retired_table
        dest = dest or table
    else:
        source = source or table
        dest = dest or table.intermediate_table

    ctx.require_table(source)
    ctx.require_table(dest)

    metadata = ctx.catalog.partition_metadata(table, dest)
    window = None
    existing: list[PartitionRange] = []
    if metadata is not None:
        existing = partition_ranges(ctx, table, metadata.period)
        if existing:
            window = PeriodWindow(
                column=metadata.column,
                cast=metadata.cast,
                start=existing[0].start,
                end=advance_date(existing[-1].start, metadata.period, 1),
            )

    # Partitioned parents carry no primary key before 11, so read it from a partition
    if metadata is not None and metadata.declarative and existing:
        schema_table = existing[-1].table
    else:
        schema_table = table

    primary_keys = ctx.catalog.primary_key(schema_table)
    if not primary_keys:
        raise UsageError("No primary key")
    primary_key = primary_keys[0]
    if len(primary_keys) > 1 or not ctx.catalog.has_numeric_column(schema_table, primary_key):
        raise UsageError("Only numeric primary keys are supported")

    max_source_id = ctx.catalog.max_id(source, primary_key)

    if args.start is not None:
        max_dest_id = args.start
    elif args.swapped:
        max_dest_id = ctx.catalog.max_id(dest, primary_key, where=args.where, below=max_source_id)
    else:
        max_dest_id = ctx.catalog.max_id(dest, primary_key, where=args.where)

    min_source_id = None
    if args.start is None and max_dest_id == 0 and not args.swapped:
        min_source_id = ctx.catalog.min_id(
            source,
            primary_key,
            window.column if window else None,
            window.cast if window else None,
            window.start if window else None,
            args.where,
        )

    cursor = BackfillCursor(
        source=source,
        dest=dest,
        primary_key=primary_key,
        starting_id=starting_id(
            start=args.start,
            swapped=args.swapped,
            max_dest_id=max_dest_id,
            min_source_id=min_source_id,
        ),
        max_source_id=max_source_id,
        batch_size=args.batch_size,
        columns=ctx.catalog.columns(source),
        window=window,
        where=args.where,
    )
    logger.debug(
        "Filling %s from %s: ids (%s, %s] in %d batch(es)",
        dest,
        source,
        cursor.starting_id,
        cursor.max_source_id,
        cursor.batch_count,
    )

    if cursor.batch_count == 0:
        ctx.executor.log_sql("/* nothing to fill */")
        return

    for batch in cursor.batches():
        ctx.executor.run_batch(cursor.statement(batch))
        if args.sleep and batch.number < batch.count:
            ctx.sleep(args.sleep)


# =============================================================================
# swap / unswap / analyze
# =============================================================================


def swap(ctx: ExecutionContext, args: SwapArgs) -> None:
    """Move the intermediate table into place and retire the original."""
    table = ctx.qualify(args.table)
    ctx.require_table(table)
    ctx.require_table(table.intermediate_table)
    ctx.require_absent(table.retired_table)

    statements = ddl.swap_statements(
        table,
        ctx.catalog.sequences(table),
        lock_timeout=args.lock_timeout,
        server_version_num=ctx.catalog.server_version_num(),
    )
    ctx.executor.run_transaction(statements)


def unswap(ctx: ExecutionContext, args: TableArgs) -> None:
    """Reverse swap: bring the retired table back."""
    table = ctx.qualify(args.table)
    ctx.require_table(table)
    ctx.require_table(table.retired_table)
    ctx.require_absent(table.intermediate_table)

    statements = ddl.unswap_statements(table, ctx.catalog.sequences(table))
    ctx.executor.run_transaction(statements)


def analyze(ctx: ExecutionContext, args: AnalyzeArgs) -> None:
    """Refresh planner statistics on every partition and the parent."""
    table = ctx.qualify(args.table)
    parent = table if args.swapped else table.intermediate_table
    ctx.require_table(parent)

    tables = ctx.catalog.existing_partitions(table) + [parent]
    ctx.executor.run_autocommit(ddl.analyze_statements(tables))


HANDLERS: dict[Command, Callable[[ExecutionContext, Any], None]] = {
    Command.PREP: prep,
    Command.ADD_PARTITIONS: add_partitions,
    Command.FILL: fill,
    Command.SWAP: swap,
    Command.UNSWAP: unswap,
    Command.UNPREP: unprep,
    Command.ANALYZE: analyze,
}


def run_command(command: Command, ctx: ExecutionContext, args: Any) -> None:
    HANDLERS[Command(command)](ctx, args)
