"""Database module - schema catalog, connection and statement execution."""

from pgsplit.db.base import SchemaCatalog, SequenceRef
from pgsplit.db.catalog import PostgresCatalog
from pgsplit.db.connection import Database
from pgsplit.db.executor import StatementExecutor

__all__ = [
    "SchemaCatalog",
    "SequenceRef",
    "PostgresCatalog",
    "Database",
    "StatementExecutor",
]
