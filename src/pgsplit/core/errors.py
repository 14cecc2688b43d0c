"""Error types raised by pgsplit commands.

Two kinds of failure are distinguished:

- ``UsageError``: bad arguments or an unmet precondition. Raised before any
  statement is generated, so nothing has changed in the database.
- ``ExecutionError``: the database rejected a generated statement. For
  transactional commands the whole transaction is rolled back; for ``fill``
  only the in-flight batch is lost.
"""

from __future__ import annotations


class PgSplitError(Exception):
    """Base exception for pgsplit operations."""

    pass


class UsageError(PgSplitError):
    """Raised for invalid arguments or failed preconditions."""

    pass


class ConnectionFailed(UsageError):
    """Raised when the database URL is missing, invalid or unreachable."""

    pass


class ExecutionError(PgSplitError):
    """Raised when the database rejects a generated statement."""

    def __init__(self, message: str, statement: str | None = None):
        self.statement = statement
        super().__init__(message)
