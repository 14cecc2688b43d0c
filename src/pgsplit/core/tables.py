"""Table references and identifier quoting.

A ``TableRef`` is always schema-qualified once it leaves ``qualify``. The
intermediate, retired and partition tables as well as the routing trigger
name are derived from it on demand and never stored separately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy.dialects import postgresql

from pgsplit.core.periods import name_suffix

_preparer = postgresql.dialect().identifier_preparer

DEFAULT_SCHEMA = "public"


def quote_ident(value: str) -> str:
    """Quote an identifier the way PostgreSQL's quote_ident() always would."""
    return _preparer.quote_identifier(value)


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@dataclass(frozen=True)
class TableRef:
    """A schema-qualified table name."""

    schema: str
    name: str

    @classmethod
    def parse(cls, value: str, default_schema: str = DEFAULT_SCHEMA) -> "TableRef":
        """Build a reference from ``table`` or ``schema.table``."""
        if "." in value:
            schema, name = value.split(".", 1)
            return cls(schema, name)
        return cls(default_schema, value)

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def quoted(self) -> str:
        return f"{quote_ident(self.schema)}.{quote_ident(self.name)}"

    @property
    def quoted_name(self) -> str:
        """Quoted name without the schema, as required by RENAME TO."""
        return quote_ident(self.name)

    @property
    def intermediate_table(self) -> "TableRef":
        return TableRef(self.schema, f"{self.name}_intermediate")

    @property
    def retired_table(self) -> "TableRef":
        return TableRef(self.schema, f"{self.name}_retired")

    @property
    def trigger_name(self) -> str:
        return f"{self.name}_insert_trigger"

    @property
    def trigger_function(self) -> str:
        """Quoted, schema-qualified name of the routing function."""
        return f"{quote_ident(self.schema)}.{quote_ident(self.trigger_name)}"

    def partition(self, start: date, period: str) -> "TableRef":
        return TableRef(self.schema, f"{self.name}_{name_suffix(start, period)}")


def qualify(table: str, schema: str = DEFAULT_SCHEMA) -> TableRef:
    return TableRef.parse(table, default_schema=schema)
