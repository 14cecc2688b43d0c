"""pgsplit - partition large PostgreSQL tables with minimal downtime.

This package provides:
- Config: settings from pgsplit.config, the environment and flags
- Core: period math, metadata, statement generation and lifecycle commands
- DB: schema catalog, connection handling and statement execution
- CLI: the ``pgsplit`` command
"""

__version__ = "0.4.0"

from pgsplit.core.commands import Command as Command
from pgsplit.core.commands import ExecutionContext as ExecutionContext
from pgsplit.core.commands import run_command as run_command
from pgsplit.core.errors import ExecutionError as ExecutionError
from pgsplit.core.errors import PgSplitError as PgSplitError
from pgsplit.core.errors import UsageError as UsageError
from pgsplit.core.metadata import PartitionMetadata as PartitionMetadata
from pgsplit.core.tables import TableRef as TableRef
