"""PostgreSQL implementation of the schema catalog."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from pgsplit.core.periods import sql_date
from pgsplit.core.tables import TableRef, quote_ident
from pgsplit.db.base import SchemaCatalog, SequenceRef
from pgsplit.db.connection import Database

logger = logging.getLogger(__name__)


class PostgresCatalog(SchemaCatalog):
    """Answers schema questions from pg_catalog and information_schema."""

    def __init__(self, database: Database):
        self.database = database
        self._server_version_num: Optional[int] = None

    def server_version_num(self) -> int:
        if self._server_version_num is None:
            rows = self.database.select("SHOW server_version_num")
            self._server_version_num = int(rows[0]["server_version_num"])
            logger.debug("Server version %s", self._server_version_num)
        return self._server_version_num

    def table_exists(self, table: TableRef) -> bool:
        rows = self.database.select(
            """
            SELECT COUNT(*) AS count FROM pg_catalog.pg_tables
            WHERE schemaname = :schema AND tablename = :name
            """,
            schema=table.schema,
            name=table.name,
        )
        return rows[0]["count"] > 0

    def list_tables(self, schema: str, prefix: str) -> list[str]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self.database.select(
            """
            SELECT tablename FROM pg_catalog.pg_tables
            WHERE schemaname = :schema AND tablename LIKE :pattern
            ORDER BY tablename
            """,
            schema=schema,
            pattern=f"{escaped}%",
        )
        return [row["tablename"] for row in rows]

    def columns(self, table: TableRef) -> list[str]:
        rows = self.database.select(
            """
            SELECT column_name FROM information_schema.columns
            WHERE table_schema = :schema AND table_name = :name
            ORDER BY ordinal_position
            """,
            schema=table.schema,
            name=table.name,
        )
        return [row["column_name"] for row in rows]

    def column_type(self, table: TableRef, column: str) -> Optional[str]:
        rows = self.database.select(
            """
            SELECT data_type FROM information_schema.columns
            WHERE table_schema = :schema AND table_name = :name AND column_name = :column
            """,
            schema=table.schema,
            name=table.name,
            column=column,
        )
        return rows[0]["data_type"] if rows else None

    def primary_key(self, table: TableRef) -> list[str]:
        rows = self.database.select(
            """
            SELECT a.attname AS column_name
            FROM pg_catalog.pg_index i
            JOIN pg_catalog.pg_attribute a
                ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
            WHERE i.indrelid = CAST(:table AS regclass) AND i.indisprimary
            ORDER BY array_position(CAST(i.indkey AS int2[]), a.attnum)
            """,
            table=table.quoted,
        )
        return [row["column_name"] for row in rows]

    def foreign_keys(self, table: TableRef) -> list[str]:
        rows = self.database.select(
            """
            SELECT pg_get_constraintdef(oid) AS definition FROM pg_catalog.pg_constraint
            WHERE conrelid = CAST(:table AS regclass) AND contype = 'f'
            ORDER BY conname
            """,
            table=table.quoted,
        )
        return [row["definition"] for row in rows]

    def index_defs(self, table: TableRef) -> list[str]:
        rows = self.database.select(
            """
            SELECT pg_get_indexdef(indexrelid) AS definition FROM pg_catalog.pg_index
            WHERE indrelid = CAST(:table AS regclass) AND indisprimary = 'f'
            ORDER BY indexrelid
            """,
            table=table.quoted,
        )
        return [row["definition"] for row in rows]

    def sequences(self, table: TableRef) -> list[SequenceRef]:
        rows = self.database.select(
            """
            SELECT a.attname AS related_column, s.relname AS sequence_name
            FROM pg_catalog.pg_class s
            JOIN pg_catalog.pg_depend d ON d.objid = s.oid
            JOIN pg_catalog.pg_class t ON d.refobjid = t.oid
            JOIN pg_catalog.pg_attribute a
                ON a.attrelid = d.refobjid AND a.attnum = d.refobjsubid
            JOIN pg_catalog.pg_namespace n ON n.oid = s.relnamespace
            WHERE s.relkind = 'S' AND n.nspname = :schema AND t.relname = :name
            ORDER BY s.relname
            """,
            schema=table.schema,
            name=table.name,
        )
        return [SequenceRef(row["sequence_name"], row["related_column"]) for row in rows]

    def table_comment(self, table: TableRef) -> Optional[str]:
        rows = self.database.select(
            "SELECT obj_description(CAST(:table AS regclass), 'pg_class') AS comment",
            table=table.quoted,
        )
        return rows[0]["comment"] if rows else None

    def trigger_comment(self, trigger_name: str, table: TableRef) -> tuple[bool, Optional[str]]:
        rows = self.database.select(
            """
            SELECT obj_description(oid, 'pg_trigger') AS comment FROM pg_catalog.pg_trigger
            WHERE tgname = :trigger_name AND tgrelid = CAST(:table AS regclass)
            """,
            trigger_name=trigger_name,
            table=table.quoted,
        )
        if not rows:
            return False, None
        return True, rows[0]["comment"]

    def function_def(self, schema: str, function_name: str) -> Optional[str]:
        rows = self.database.select(
            """
            SELECT pg_get_functiondef(p.oid) AS definition FROM pg_catalog.pg_proc p
            JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = :schema AND p.proname = :name
            LIMIT 1
            """,
            schema=schema,
            name=function_name,
        )
        return rows[0]["definition"] if rows else None

    def max_id(
        self,
        table: TableRef,
        primary_key: str,
        where: Optional[str] = None,
        below: Optional[int] = None,
    ) -> int:
        conditions = []
        if below is not None:
            conditions.append(f"{quote_ident(primary_key)} <= {int(below)}")
        if where:
            conditions.append(f"({where})")

        sql = f"SELECT MAX({quote_ident(primary_key)}) AS max_id FROM {table.quoted}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        value = self.database.select_sql(sql)[0]["max_id"]
        return int(value) if value is not None else 0

    def min_id(
        self,
        table: TableRef,
        primary_key: str,
        column: Optional[str] = None,
        cast: Optional[str] = None,
        starting_time: Optional[date] = None,
        where: Optional[str] = None,
    ) -> Optional[int]:
        conditions = []
        if starting_time is not None and column:
            conditions.append(f"{quote_ident(column)} >= {sql_date(starting_time, cast or 'date')}")
        if where:
            conditions.append(f"({where})")

        sql = f"SELECT MIN({quote_ident(primary_key)}) AS min_id FROM {table.quoted}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        value = self.database.select_sql(sql)[0]["min_id"]
        return int(value) if value is not None else None
