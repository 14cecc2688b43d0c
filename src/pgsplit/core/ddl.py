"""
Statement generation for every lifecycle transition.

Functions here are pure: they take schema facts already gathered from the
catalog and return the ordered list of SQL statements to run. Nothing in this
module talks to the database.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from pgsplit.core.metadata import DECLARATIVE, TRIGGER_BASED, PartitionMetadata, format_comment
from pgsplit.core.periods import advance_date, sql_date
from pgsplit.core.tables import TableRef, quote_ident, quote_literal
from pgsplit.core.triggers import (
    PartitionRange,
    insert_trigger,
    placeholder_function,
    routing_function,
)

logger = logging.getLogger(__name__)

# server_version_num thresholds
DECLARATIVE_MIN_VERSION = 100000
PARTITIONED_INDEX_MIN_VERSION = 110000
LOCK_TIMEOUT_MIN_VERSION = 90300

_INDEX_TARGET_RE = re.compile(r" ON \S+ USING ")
_INDEX_NAME_RE = re.compile(r" INDEX .+ ON ")


def choose_strategy(
    server_version_num: int, trigger_based: bool = False, no_partition: bool = False
) -> Optional[str]:
    """Pick the partitioning strategy for prep.

    Returns None under ``no_partition``, where there is nothing to partition by.
    """
    if no_partition:
        return None
    if server_version_num >= DECLARATIVE_MIN_VERSION and not trigger_based:
        return DECLARATIVE
    return TRIGGER_BASED


def retarget_index(index_def: str, table: TableRef) -> str:
    """Point an index definition at another table and drop its name.

    ``CREATE INDEX events_user_id_idx ON public.events USING btree (user_id)``
    becomes ``CREATE INDEX ON "public"."events_20240101" USING btree (user_id);``
    so PostgreSQL picks a fresh, non-conflicting name.
    """
    statement = _INDEX_TARGET_RE.sub(lambda _: f" ON {table.quoted} USING ", index_def, count=1)
    statement = _INDEX_NAME_RE.sub(" INDEX ON ", statement, count=1)
    return statement + ";"


def add_foreign_key(table: TableRef, fk_def: str) -> str:
    return f"ALTER TABLE {table.quoted} ADD {fk_def};"


# =============================================================================
# prep / unprep
# =============================================================================


def prep_statements(
    table: TableRef,
    *,
    strategy: Optional[str],
    column: Optional[str] = None,
    period: Optional[str] = None,
    cast: Optional[str] = None,
    index_defs: Sequence[str] = (),
    foreign_keys: Sequence[str] = (),
    server_version_num: int = 0,
) -> list[str]:
    """Create the intermediate table and, if needed, its routing trigger.

    Args:
        table: Table being partitioned
        strategy: DECLARATIVE, TRIGGER_BASED, or None for --no-partition
        column/period/cast: Partitioning settings (unused when strategy is None)
        index_defs: Non-primary index definitions of ``table``
        foreign_keys: Foreign key definitions of ``table``
        server_version_num: Used to decide whether indexes go on the partitioned parent
    """
    intermediate = table.intermediate_table
    statements: list[str] = []

    if strategy == DECLARATIVE:
        statements.append(
            f"CREATE TABLE {intermediate.quoted} (LIKE {table.quoted} "
            "INCLUDING DEFAULTS INCLUDING CONSTRAINTS INCLUDING STORAGE INCLUDING COMMENTS) "
            f"PARTITION BY RANGE ({quote_ident(column)});"
        )

        # Older servers cannot index a partitioned table; add_partitions
        # indexes each partition instead
        if server_version_num >= PARTITIONED_INDEX_MIN_VERSION:
            statements.extend(retarget_index(d, intermediate) for d in index_defs)

        comment = quote_literal(format_comment(column, period, cast))
        statements.append(f"COMMENT ON TABLE {intermediate.quoted} is {comment};")
        return statements

    statements.append(f"CREATE TABLE {intermediate.quoted} (LIKE {table.quoted} INCLUDING ALL);")
    statements.extend(add_foreign_key(intermediate, fk) for fk in foreign_keys)

    if strategy == TRIGGER_BASED:
        comment = quote_literal(format_comment(column, period, cast))
        statements.append(placeholder_function(table))
        statements.append(insert_trigger(table, intermediate))
        statements.append(
            f"COMMENT ON TRIGGER {quote_ident(table.trigger_name)} ON {intermediate.quoted} is {comment};"
        )

    return statements


def unprep_statements(table: TableRef) -> list[str]:
    return [
        f"DROP TABLE {table.intermediate_table.quoted} CASCADE;",
        f"DROP FUNCTION IF EXISTS {table.trigger_function}();",
    ]


# =============================================================================
# add_partitions
# =============================================================================


@dataclass
class PartitionPlan:
    """Statements for add_partitions plus the partitions they create."""

    statements: list[str] = field(default_factory=list)
    added: list[PartitionRange] = field(default_factory=list)


def metadata_comment_statement(
    original_table: TableRef, table: TableRef, metadata: PartitionMetadata
) -> str:
    """Re-attach the metadata comment where ``recover`` expects to find it."""
    comment = quote_literal(metadata.to_comment())
    if metadata.declarative:
        return f"COMMENT ON TABLE {table.quoted} is {comment};"
    return f"COMMENT ON TRIGGER {quote_ident(original_table.trigger_name)} ON {table.quoted} is {comment};"


def partition_statements(
    partition: TableRef,
    parent: TableRef,
    start: date,
    metadata: PartitionMetadata,
    *,
    primary_key: Sequence[str] = (),
    index_defs: Sequence[str] = (),
    foreign_keys: Sequence[str] = (),
) -> list[str]:
    """Create one partition covering ``[start, start + 1 period)``."""
    end = advance_date(start, metadata.period, 1)
    cast = metadata.cast
    statements: list[str] = []

    if metadata.declarative:
        statements.append(
            f"CREATE TABLE {partition.quoted} PARTITION OF {parent.quoted} "
            f"FOR VALUES FROM ({sql_date(start, cast, False)}) TO ({sql_date(end, cast, False)});"
        )
    else:
        column = quote_ident(metadata.column)
        statements.append(
            f"CREATE TABLE {partition.quoted}\n"
            f"    (CHECK ({column} >= {sql_date(start, cast)} AND {column} < {sql_date(end, cast)}))\n"
            f"    INHERITS ({parent.quoted});"
        )

    if primary_key:
        keys = ", ".join(quote_ident(k) for k in primary_key)
        statements.append(f"ALTER TABLE {partition.quoted} ADD PRIMARY KEY ({keys});")

    statements.extend(retarget_index(d, partition) for d in index_defs)
    statements.extend(add_foreign_key(partition, fk) for fk in foreign_keys)
    return statements


def add_partitions_plan(
    original_table: TableRef,
    parent: TableRef,
    metadata: PartitionMetadata,
    *,
    today: date,
    past: int,
    future: int,
    existing: Sequence[PartitionRange],
    primary_key: Sequence[str] = (),
    index_defs: Sequence[str] = (),
    foreign_keys: Sequence[str] = (),
) -> PartitionPlan:
    """Plan partitions for the window ``today - past .. today + future``.

    Partitions that already exist are skipped. Under trigger-based
    partitioning the routing function is rebuilt from every partition,
    existing and new, so repeated runs converge on the same definition.

    Args:
        original_table: Table partitions are named after
        parent: Table partitions attach to (original or intermediate)
        metadata: Recovered partitioning settings
        today: Current UTC date rounded to the period
        past/future: Number of periods on either side of today
        existing: Partitions already present
    """
    plan = PartitionPlan()

    if metadata.needs_comment:
        plan.statements.append(metadata_comment_statement(original_table, parent, metadata))

    existing_names = {p.table.name for p in existing}

    for n in range(-past, future + 1):
        day = advance_date(today, metadata.period, n)
        partition = original_table.partition(day, metadata.period)
        if partition.name in existing_names:
            continue

        logger.debug("Planning partition %s", partition)
        plan.added.append(PartitionRange(partition, day))
        existing_names.add(partition.name)
        plan.statements.extend(
            partition_statements(
                partition,
                parent,
                day,
                metadata,
                primary_key=primary_key,
                index_defs=index_defs,
                foreign_keys=foreign_keys,
            )
        )

    if not metadata.declarative:
        ranges = {r.table.name: r for r in list(existing) + plan.added}
        function = routing_function(
            original_table,
            metadata.column,
            metadata.period,
            metadata.cast,
            list(ranges.values()),
            today,
        )
        if function:
            plan.statements.append(function)

    return plan


# =============================================================================
# swap / unswap / analyze
# =============================================================================


def _sequence_statements(table: TableRef, sequences) -> list[str]:
    statements = []
    for seq in sequences:
        sequence = f"{quote_ident(table.schema)}.{quote_ident(seq.name)}"
        column = f"{table.quoted}.{quote_ident(seq.column)}"
        statements.append(f"ALTER SEQUENCE {sequence} OWNED BY {column};")
    return statements


def swap_statements(
    table: TableRef,
    sequences=(),
    *,
    lock_timeout: Optional[str] = None,
    server_version_num: int = 0,
) -> list[str]:
    """Retire the live table and move the intermediate table into its place."""
    statements: list[str] = []
    if lock_timeout and server_version_num >= LOCK_TIMEOUT_MIN_VERSION:
        statements.append(f"SET LOCAL lock_timeout = {quote_literal(lock_timeout)};")

    statements.append(f"ALTER TABLE {table.quoted} RENAME TO {table.retired_table.quoted_name};")
    statements.append(f"ALTER TABLE {table.intermediate_table.quoted} RENAME TO {table.quoted_name};")
    statements.extend(_sequence_statements(table, sequences))
    return statements


def unswap_statements(table: TableRef, sequences=()) -> list[str]:
    """Undo swap: the live table goes back to intermediate, retired becomes live."""
    statements = [
        f"ALTER TABLE {table.quoted} RENAME TO {table.intermediate_table.quoted_name};",
        f"ALTER TABLE {table.retired_table.quoted} RENAME TO {table.quoted_name};",
    ]
    statements.extend(_sequence_statements(table, sequences))
    return statements


def analyze_statements(tables: Sequence[TableRef]) -> list[str]:
    return [f"ANALYZE VERBOSE {t.quoted};" for t in tables]
