"""Routing function for trigger-based partitioning.

Inserts into the parent table are redirected by a single PL/pgSQL function
with one ``IF``/``ELSIF`` branch per partition. Branches are checked in order,
so the hottest ranges come first: the current period, then future periods
ascending, then past periods newest first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from pgsplit.core.periods import advance_date, sql_date
from pgsplit.core.tables import TableRef, quote_ident

OUT_OF_RANGE_MESSAGE = "Date out of range. Ensure partitions are created."
NO_PARTITIONS_MESSAGE = "Create partitions first."


@dataclass(frozen=True)
class PartitionRange:
    """A partition and the first day it covers."""

    table: TableRef
    start: date


def order_ranges(ranges: Sequence[PartitionRange], today: date) -> list[PartitionRange]:
    """Current period first, then future ascending, then past descending."""
    ordered = sorted(ranges, key=lambda r: r.start)
    current = [r for r in ordered if r.start == today]
    future = [r for r in ordered if r.start > today]
    past = [r for r in ordered if r.start < today]
    return current + future + list(reversed(past))


def branch(partition: PartitionRange, column: str, period: str, cast: str) -> str:
    field = f"NEW.{quote_ident(column)}"
    lower = sql_date(partition.start, cast)
    upper = sql_date(advance_date(partition.start, period, 1), cast)
    return (
        f"({field} >= {lower} AND {field} < {upper}) THEN\n"
        f"            INSERT INTO {partition.table.quoted} VALUES (NEW.*);"
    )


def routing_function(
    original_table: TableRef,
    column: str,
    period: str,
    cast: str,
    ranges: Sequence[PartitionRange],
    today: date,
) -> Optional[str]:
    """Build ``CREATE OR REPLACE FUNCTION`` routing inserts into the given partitions.

    Returns None when there are no partitions to route to.
    """
    if not ranges:
        return None

    branches = [branch(r, column, period, cast) for r in order_ranges(ranges, today)]
    conditions = "\n        ELSIF ".join(branches)
    return f"""CREATE OR REPLACE FUNCTION {original_table.trigger_function}()
    RETURNS trigger AS $$
    BEGIN
        IF {conditions}
        ELSE
            RAISE EXCEPTION '{OUT_OF_RANGE_MESSAGE}';
        END IF;
        RETURN NULL;
    END;
    $$ LANGUAGE plpgsql;"""


def placeholder_function(original_table: TableRef) -> str:
    """Routing function installed by prep; rejects every insert until partitions exist."""
    return f"""CREATE FUNCTION {original_table.trigger_function}()
    RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION '{NO_PARTITIONS_MESSAGE}';
    END;
    $$ LANGUAGE plpgsql;"""


def insert_trigger(original_table: TableRef, table: TableRef) -> str:
    return f"""CREATE TRIGGER {quote_ident(original_table.trigger_name)}
    BEFORE INSERT ON {table.quoted}
    FOR EACH ROW EXECUTE PROCEDURE {original_table.trigger_function}();"""
