"""Partition metadata stored in PostgreSQL object comments.

PostgreSQL has no slot for "this table is partitioned by column X per month",
so pgsplit writes a comment of the form::

    column:created_at,period:day,cast:timestamptz

on the intermediate table (declarative partitioning) or on the routing
trigger (trigger-based partitioning). ``PartitionMetadata.recover`` reads it
back, falling back to the source of a legacy routing function when neither
comment is present.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from pgsplit.core.periods import CASTS, SQL_FORMAT, is_period

logger = logging.getLogger(__name__)

DECLARATIVE = "declarative"
TRIGGER_BASED = "trigger"

# Installations predating timestamp support only ever partitioned dates
DEFAULT_CAST = "date"

_LEGACY_COLUMN_RE = re.compile(r"to_char\(NEW\.(\w+),")


@dataclass(frozen=True)
class PartitionMetadata:
    """How a managed table is partitioned.

    Attributes:
        period: "day" or "month"
        column: Partitioning column
        cast: SQL type used for boundary literals ("date", "timestamp", "timestamptz")
        strategy: DECLARATIVE or TRIGGER_BASED
        needs_comment: True when the record was recovered from a legacy
            install and the trigger comment should be rewritten
    """

    period: str
    column: str
    cast: str = DEFAULT_CAST
    strategy: str = DECLARATIVE
    needs_comment: bool = False

    @property
    def declarative(self) -> bool:
        return self.strategy == DECLARATIVE

    def to_comment(self) -> str:
        return format_comment(self.column, self.period, self.cast)

    @classmethod
    def recover(
        cls,
        *,
        trigger_found: bool,
        trigger_comment: Optional[str],
        table_comment: Optional[str],
        load_function_def: Callable[[], Optional[str]],
    ) -> Optional["PartitionMetadata"]:
        """Rebuild metadata from whatever the catalog holds.

        The trigger comment wins when a routing trigger exists; otherwise the
        table comment is used. When neither yields a period, the legacy
        routing function source is parsed instead.

        Returns:
            PartitionMetadata, or None when the table is not managed
        """
        strategy = TRIGGER_BASED if trigger_found else DECLARATIVE
        comment = trigger_comment if trigger_found else table_comment
        fields = parse_comment(comment)

        period = fields.get("period")
        column = fields.get("column")
        cast = fields.get("cast")
        needs_comment = False

        if not period or not column:
            function_def = load_function_def()
            legacy = parse_function_def(function_def) if function_def else None
            if legacy is None:
                return None
            period, column = legacy
            needs_comment = True
            logger.debug("Recovered %s/%s from legacy routing function", column, period)

        if not cast:
            cast = DEFAULT_CAST
            needs_comment = True

        return cls(
            period=period,
            column=column,
            cast=cast,
            strategy=strategy,
            needs_comment=needs_comment,
        )


def format_comment(column: str, period: str, cast: str) -> str:
    return f"column:{column},period:{period},cast:{cast}"


def parse_comment(comment: Optional[str]) -> dict[str, str]:
    """Parse ``key:value`` pairs out of a metadata comment.

    Unknown keys are ignored, and invalid periods or casts are dropped so the
    caller treats the comment as absent.
    """
    if not comment:
        return {}

    fields: dict[str, str] = {}
    for part in comment.split(","):
        key, sep, value = part.strip().partition(":")
        if not sep or not value:
            continue
        fields[key] = value

    if "period" in fields and not is_period(fields["period"]):
        del fields["period"]
    if "cast" in fields and fields["cast"] not in CASTS:
        del fields["cast"]
    return fields


def parse_function_def(function_def: str) -> Optional[tuple[str, str]]:
    """Extract (period, column) from a legacy to_char() based routing function."""
    period = None
    for candidate, sql_format in SQL_FORMAT.items():
        if f"'{sql_format}'" in function_def:
            period = candidate
            break
    if period is None:
        return None

    match = _LEGACY_COLUMN_RE.search(function_def)
    if not match:
        return None
    return period, match.group(1)
