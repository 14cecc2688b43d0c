"""
Schema catalog interface.

Commands never query the database directly. They ask a ``SchemaCatalog``
for typed facts about tables and build statements from the answers. The
PostgreSQL implementation lives in ``pgsplit.db.catalog``; tests use an
in-memory implementation.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

from pgsplit.core.metadata import PartitionMetadata
from pgsplit.core.tables import TableRef

NUMERIC_TYPES = frozenset({"smallint", "integer", "bigint", "numeric", "real", "double precision"})


@dataclass(frozen=True)
class SequenceRef:
    """A sequence owned by one column of a table."""

    name: str
    column: str


class SchemaCatalog(ABC):
    """
    Abstract source of schema facts.

    Subclasses answer the primitive questions; partition discovery, cast
    inference and metadata recovery are built on top of them here.
    """

    @abstractmethod
    def server_version_num(self) -> int:
        """Server version as reported by ``SHOW server_version_num`` (e.g. 110005)."""
        pass

    @abstractmethod
    def table_exists(self, table: TableRef) -> bool:
        pass

    @abstractmethod
    def list_tables(self, schema: str, prefix: str) -> list[str]:
        """Names of tables in ``schema`` starting with ``prefix``."""
        pass

    @abstractmethod
    def columns(self, table: TableRef) -> list[str]:
        """Column names in ordinal order."""
        pass

    @abstractmethod
    def column_type(self, table: TableRef, column: str) -> Optional[str]:
        """information_schema data_type of a column, or None if missing."""
        pass

    @abstractmethod
    def primary_key(self, table: TableRef) -> list[str]:
        pass

    @abstractmethod
    def foreign_keys(self, table: TableRef) -> list[str]:
        """Foreign key constraint definitions (``FOREIGN KEY (...) REFERENCES ...``)."""
        pass

    @abstractmethod
    def index_defs(self, table: TableRef) -> list[str]:
        """``CREATE INDEX`` statements for every non-primary index."""
        pass

    @abstractmethod
    def sequences(self, table: TableRef) -> list[SequenceRef]:
        pass

    @abstractmethod
    def table_comment(self, table: TableRef) -> Optional[str]:
        pass

    @abstractmethod
    def trigger_comment(self, trigger_name: str, table: TableRef) -> tuple[bool, Optional[str]]:
        """Return (trigger exists on table, its comment)."""
        pass

    @abstractmethod
    def function_def(self, schema: str, function_name: str) -> Optional[str]:
        pass

    @abstractmethod
    def max_id(
        self,
        table: TableRef,
        primary_key: str,
        where: Optional[str] = None,
        below: Optional[int] = None,
    ) -> int:
        """Largest primary key value, or 0 for an empty selection."""
        pass

    @abstractmethod
    def min_id(
        self,
        table: TableRef,
        primary_key: str,
        column: Optional[str] = None,
        cast: Optional[str] = None,
        starting_time: Optional[date] = None,
        where: Optional[str] = None,
    ) -> Optional[int]:
        """Smallest primary key value at or after ``starting_time``."""
        pass

    # ========== DERIVED FACTS ==========

    def existing_partitions(self, table: TableRef, period: Optional[str] = None) -> list[TableRef]:
        """Partitions named ``<table>_<digits>``, sorted by name (and therefore by date)."""
        if period == "day":
            digits = r"\d{8}"
        elif period == "month":
            digits = r"\d{6}"
        else:
            digits = r"(?:\d{6}|\d{8})"
        pattern = re.compile(rf"\A{re.escape(table.name)}_{digits}\Z")

        names = self.list_tables(table.schema, f"{table.name}_")
        return [TableRef(table.schema, name) for name in sorted(names) if pattern.match(name)]

    def column_cast(self, table: TableRef, column: str) -> str:
        data_type = self.column_type(table, column)
        if data_type == "timestamp with time zone":
            return "timestamptz"
        if data_type == "timestamp without time zone":
            return "timestamp"
        return "date"

    def has_numeric_column(self, table: TableRef, column: str) -> bool:
        return self.column_type(table, column) in NUMERIC_TYPES

    def partition_metadata(
        self, original_table: TableRef, table: TableRef
    ) -> Optional[PartitionMetadata]:
        """Recover partitioning metadata for ``original_table`` stored on ``table``."""
        trigger_name = original_table.trigger_name
        trigger_found, trigger_comment = self.trigger_comment(trigger_name, table)
        table_comment = None if trigger_found else self.table_comment(table)

        return PartitionMetadata.recover(
            trigger_found=trigger_found,
            trigger_comment=trigger_comment,
            table_comment=table_comment,
            load_function_def=lambda: self.function_def(original_table.schema, trigger_name),
        )
