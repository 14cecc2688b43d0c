"""Shared CLI options for pgsplit commands.

Connection options are attached to every subcommand so they can follow the
command name, e.g. ``pgsplit swap events --dry-run``.
"""

import click

# =============================================================================
# Connection Options
# =============================================================================

url_option = click.option(
    "--url",
    help="PostgreSQL URL (default: $PGSPLIT_URL); append ?schema=name for a non-public schema",
)

dry_run_option = click.option(
    "--dry-run",
    is_flag=True,
    help="Print the SQL without executing it",
)

# =============================================================================
# Table Selection Options
# =============================================================================

intermediate_option = click.option(
    "--intermediate",
    is_flag=True,
    help="Add partitions to the intermediate table (before swap)",
)

swapped_option = click.option(
    "--swapped",
    is_flag=True,
    help="Operate on the live table after swap",
)

# =============================================================================
# Partition Window Options
# =============================================================================

future_option = click.option(
    "--future",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Number of future periods to create",
)

past_option = click.option(
    "--past",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Number of past periods to create",
)


# =============================================================================
# Composed Decorators
# =============================================================================


def add_connection_options():
    """Decorator to add --url and --dry-run options."""

    def decorator(f):
        f = dry_run_option(f)
        f = url_option(f)
        return f

    return decorator


def add_window_options():
    """Decorator to add --future and --past options."""

    def decorator(f):
        f = past_option(f)
        f = future_option(f)
        return f

    return decorator
