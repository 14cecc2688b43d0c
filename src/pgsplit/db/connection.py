"""
Database connection management.

One invocation uses one connection. The URL may carry a ``schema`` query
parameter; it is stripped before connecting and used to qualify bare table
names.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, DBAPIError
from sqlalchemy.pool import NullPool

from pgsplit.core.errors import ConnectionFailed
from pgsplit.core.tables import DEFAULT_SCHEMA

logger = logging.getLogger(__name__)


class Database:
    """Lazily connected PostgreSQL database.

    Example:
        with Database("postgresql://localhost/app?schema=billing") as db:
            db.select("SELECT 1 AS one")
    """

    def __init__(self, database_url: Optional[str], connect_timeout: int = 1):
        if not database_url:
            raise ConnectionFailed("Set PGSPLIT_URL or use the --url option")

        try:
            url = make_url(database_url)
        except ArgumentError as e:
            raise ConnectionFailed("Invalid url") from e

        # Pin the dialect to psycopg2, the driver pgsplit installs;
        # postgres:// is accepted by libpq but not by SQLAlchemy
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername="postgresql+psycopg2")

        schema = url.query.get("schema", DEFAULT_SCHEMA)
        if isinstance(schema, tuple):
            schema = schema[0]
        self.schema: str = schema
        self.url = url.difference_update_query(["schema"])
        self.connect_timeout = connect_timeout

        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(
                self.url,
                poolclass=NullPool,
                connect_args={"connect_timeout": self.connect_timeout},
            )
        return self._engine

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            try:
                self._connection = self.engine.connect()
            except DBAPIError as e:
                raise ConnectionFailed(str(e.orig).strip()) from e
            logger.debug("Connected to %s", self.url.render_as_string(hide_password=True))
        return self._connection

    def select(self, sql: str, **params: Any) -> list[dict[str, Any]]:
        """Run a read-only catalog query and return rows as dicts.

        The implicit transaction is committed straight away so that the
        statement executor can open its own transaction afterwards.
        """
        return self._fetch(lambda conn: conn.execute(text(sql), params))

    def select_sql(self, sql: str) -> list[dict[str, Any]]:
        """Like ``select`` but sends the SQL untouched, without bind parsing.

        Used for queries that embed operator-supplied predicates.
        """
        return self._fetch(lambda conn: conn.exec_driver_sql(sql))

    def _fetch(self, run) -> list[dict[str, Any]]:
        conn = self.connection
        try:
            rows = [dict(row) for row in run(conn).mappings()]
        except DBAPIError:
            conn.rollback()
            raise
        conn.commit()
        return rows

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
