"""Batched backfill of historical rows.

Rows are copied in primary key windows ``(lower, upper]``. Each window is an
independent statement, so an interrupted fill keeps every committed batch and
the next run resumes from the destination's actual maximum id.

Ids are assumed to be assigned in increasing order (sequence or identity
columns). Rows inserted into the source with an id at or below the
destination's maximum after a fill started are not picked up.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Iterator, Optional, Sequence

from pgsplit.core.periods import sql_date
from pgsplit.core.tables import TableRef, quote_ident


@dataclass(frozen=True)
class Batch:
    """One primary key window, numbered from 1."""

    number: int
    count: int
    lower: int
    upper: int


@dataclass(frozen=True)
class PeriodWindow:
    """Restrict copied rows to ``[start, end)`` on the partitioning column."""

    column: str
    cast: str
    start: date
    end: date


@dataclass
class BackfillCursor:
    """Everything needed to copy rows from source to destination."""

    source: TableRef
    dest: TableRef
    primary_key: str
    starting_id: int
    max_source_id: int
    batch_size: int
    columns: Sequence[str] = ()
    window: Optional[PeriodWindow] = None
    where: Optional[str] = None

    @property
    def batch_count(self) -> int:
        return batch_count(self.starting_id, self.max_source_id, self.batch_size)

    def batches(self) -> Iterator[Batch]:
        return iter_batches(self.starting_id, self.max_source_id, self.batch_size)

    def predicate(self, batch: Batch) -> str:
        pk = quote_ident(self.primary_key)
        conditions = [f"{pk} > {batch.lower} AND {pk} <= {batch.upper}"]
        if self.window is not None:
            column = quote_ident(self.window.column)
            conditions.append(
                f"{column} >= {sql_date(self.window.start, self.window.cast)} "
                f"AND {column} < {sql_date(self.window.end, self.window.cast)}"
            )
        if self.where:
            conditions.append(f"({self.where})")
        return " AND ".join(conditions)

    def statement(self, batch: Batch) -> str:
        fields = ", ".join(quote_ident(c) for c in self.columns)
        return (
            f"/* {batch.number} of {batch.count} */\n"
            f"INSERT INTO {self.dest.quoted} ({fields})\n"
            f"    SELECT {fields} FROM {self.source.quoted}\n"
            f"    WHERE {self.predicate(batch)}"
        )


def starting_id(
    *,
    start: Optional[int],
    swapped: bool,
    max_dest_id: int,
    min_source_id: Optional[int] = None,
) -> int:
    """Resolve where the first batch begins (exclusive).

    Args:
        start: Explicit --start override
        swapped: Filling the live table from the retired one
        max_dest_id: Destination's current maximum id (0 if empty)
        min_source_id: Smallest source id inside the period window

    An empty destination outside swapped mode starts just below the smallest
    source id so the first batch is not spent on an empty id range.
    """
    if start is not None:
        return start
    if max_dest_id == 0 and not swapped and min_source_id is not None:
        return min_source_id - 1
    return max_dest_id


def batch_count(starting: int, max_source_id: int, batch_size: int) -> int:
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    if max_source_id <= starting:
        return 0
    return math.ceil((max_source_id - starting) / batch_size)


def iter_batches(starting: int, max_source_id: int, batch_size: int) -> Iterator[Batch]:
    """Yield windows of ``batch_size`` ids; the last one stops at ``max_source_id``."""
    count = batch_count(starting, max_source_id, batch_size)
    lower = starting
    number = 1
    while lower < max_source_id:
        upper = min(lower + batch_size, max_source_id)
        yield Batch(number=number, count=count, lower=lower, upper=upper)
        lower += batch_size
        number += 1
