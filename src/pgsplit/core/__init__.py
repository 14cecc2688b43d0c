"""
Partition lifecycle engine: period math, metadata, statement generation.
"""

from .errors import ConnectionFailed, ExecutionError, PgSplitError, UsageError
from .metadata import DECLARATIVE, TRIGGER_BASED, PartitionMetadata
from .periods import advance_date, round_date, sql_date
from .tables import TableRef, qualify, quote_ident

__all__ = [
    "ConnectionFailed",
    "ExecutionError",
    "PgSplitError",
    "UsageError",
    "DECLARATIVE",
    "TRIGGER_BASED",
    "PartitionMetadata",
    "advance_date",
    "round_date",
    "sql_date",
    "TableRef",
    "qualify",
    "quote_ident",
]
