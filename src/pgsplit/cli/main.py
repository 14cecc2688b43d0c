"""pgsplit CLI - Main command-line interface.

Lifecycle of a partitioned migration:
- prep: create the intermediate table (and routing trigger if needed)
- add_partitions: create partitions around today
- fill: copy existing rows in batches
- analyze: refresh planner statistics
- swap: put the partitioned table in place of the original
- fill --swapped: copy rows written during the migration
- unswap / unprep: back out
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from sqlalchemy.exc import DBAPIError

from pgsplit import __version__
from pgsplit.cli.options import (
    add_connection_options,
    add_window_options,
    intermediate_option,
    swapped_option,
)
from pgsplit.cli.output import message_console, print_error, print_info, sql_console
from pgsplit.config import PgSplitConfig, load_config
from pgsplit.core.commands import (
    AddPartitionsArgs,
    AnalyzeArgs,
    Command,
    ExecutionContext,
    FillArgs,
    PrepArgs,
    SwapArgs,
    TableArgs,
    run_command,
)
from pgsplit.core.errors import PgSplitError
from pgsplit.db import Database, PostgresCatalog, StatementExecutor

load_dotenv()

logger = logging.getLogger(__name__)


@contextmanager
def build_context(config: PgSplitConfig, url: Optional[str], dry_run: bool) -> Iterator[ExecutionContext]:
    """Open the database and wire up catalog and executor for one invocation."""
    with Database(url or config.DATABASE_URL, connect_timeout=config.CONNECT_TIMEOUT) as database:
        yield ExecutionContext(
            catalog=PostgresCatalog(database),
            executor=StatementExecutor(database, console=sql_console(), dry_run=dry_run),
            schema=database.schema,
        )


def _run(command: Command, args: Any, url: Optional[str], dry_run: bool) -> None:
    """Run a command, turning pgsplit and driver errors into exit code 1."""
    console = message_console()
    try:
        config = load_config()
        if isinstance(args, FillArgs) and args.batch_size is None:
            args.batch_size = config.BATCH_SIZE
        if isinstance(args, SwapArgs) and args.lock_timeout is None:
            args.lock_timeout = config.LOCK_TIMEOUT

        with build_context(config, url, dry_run) as ctx:
            run_command(command, ctx, args)
    except PgSplitError as e:
        print_error(console, str(e))
        raise SystemExit(1)
    except DBAPIError as e:
        orig = e.orig if e.orig is not None else e
        print_error(console, f"{orig.__class__.__name__}: {str(orig).strip()}")
        raise SystemExit(1)
    except ValidationError as e:
        print_error(console, f"Invalid configuration: {e}")
        raise SystemExit(1)


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Log debug information to stderr")
@click.version_option(version=__version__, prog_name="pgsplit")
@click.pass_context
def main(ctx, verbose: bool):
    """
    pgsplit - Postgres partitioning as easy as pie.

    Convert a large table into a partitioned one with minimal downtime.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if ctx.invoked_subcommand is None:
        print_info(message_console(), f"Commands: {', '.join(sorted(c.value for c in Command))}")


@main.command("prep")
@click.argument("table")
@click.argument("column", required=False)
@click.argument("period", required=False)
@click.option("--no-partition", is_flag=True, help="Create the intermediate table without partitioning")
@click.option("--trigger-based", is_flag=True, help="Use inheritance and an insert trigger")
@add_connection_options()
def prep_cmd(table, column, period, no_partition, trigger_based, url, dry_run):
    """Create an intermediate table partitioned by COLUMN per PERIOD (day or month).

    Example:
        pgsplit prep events created_at month
    """
    args = PrepArgs(
        table=table,
        column=column,
        period=period,
        no_partition=no_partition,
        trigger_based=trigger_based,
    )
    _run(Command.PREP, args, url, dry_run)


@main.command("add_partitions")
@click.argument("table")
@intermediate_option
@add_window_options()
@add_connection_options()
def add_partitions_cmd(table, intermediate, future, past, url, dry_run):
    """Add partitions around the current period.

    Example:
        pgsplit add_partitions events --intermediate --past 3 --future 3
    """
    args = AddPartitionsArgs(table=table, intermediate=intermediate, past=past, future=future)
    _run(Command.ADD_PARTITIONS, args, url, dry_run)


@main.command("fill")
@click.argument("table")
@swapped_option
@click.option("--source-table", help="Table to copy from")
@click.option("--dest-table", help="Table to copy into")
@click.option("--start", type=int, help="Primary key to start after")
@click.option("--where", help="Extra SQL condition on copied rows")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Rows per batch [default: 10000]")
@click.option("--sleep", type=float, help="Seconds to sleep between batches")
@add_connection_options()
def fill_cmd(table, swapped, source_table, dest_table, start, where, batch_size, sleep, url, dry_run):
    """Copy rows into the partitioned table in batches.

    Safe to interrupt: rerunning resumes after the last copied id.
    """
    args = FillArgs(
        table=table,
        swapped=swapped,
        source_table=source_table,
        dest_table=dest_table,
        start=start,
        where=where,
        batch_size=batch_size,
        sleep=sleep,
    )
    _run(Command.FILL, args, url, dry_run)


@main.command("swap")
@click.argument("table")
@click.option("--lock-timeout", default=None, help="Give up if locks are not acquired in time [default: 5s]")
@add_connection_options()
def swap_cmd(table, lock_timeout, url, dry_run):
    """Swap the intermediate table with the original table."""
    _run(Command.SWAP, SwapArgs(table=table, lock_timeout=lock_timeout), url, dry_run)


@main.command("unswap")
@click.argument("table")
@add_connection_options()
def unswap_cmd(table, url, dry_run):
    """Undo swap."""
    _run(Command.UNSWAP, TableArgs(table=table), url, dry_run)


@main.command("unprep")
@click.argument("table")
@add_connection_options()
def unprep_cmd(table, url, dry_run):
    """Undo prep."""
    _run(Command.UNPREP, TableArgs(table=table), url, dry_run)


@main.command("analyze")
@click.argument("table")
@swapped_option
@add_connection_options()
def analyze_cmd(table, swapped, url, dry_run):
    """Analyze every partition and the parent table."""
    _run(Command.ANALYZE, AnalyzeArgs(table=table, swapped=swapped), url, dry_run)


if __name__ == "__main__":
    main()
