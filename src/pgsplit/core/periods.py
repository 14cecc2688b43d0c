"""Calendar arithmetic for partition periods.

All helpers are pure and work on ``datetime.date`` values.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from dateutil.relativedelta import relativedelta

Period = Literal["day", "month"]
Cast = Literal["date", "timestamp", "timestamptz"]

PERIODS: tuple[str, ...] = ("day", "month")
CASTS: tuple[str, ...] = ("date", "timestamp", "timestamptz")

# Patterns used by to_char() in legacy routing functions
SQL_FORMAT: dict[str, str] = {
    "day": "YYYYMMDD",
    "month": "YYYYMM",
}

NAME_FORMAT: dict[str, str] = {
    "day": "%Y%m%d",
    "month": "%Y%m",
}


def is_period(value: str | None) -> bool:
    return value in PERIODS


def round_date(value: date | datetime, period: str) -> date:
    """Round a date down to the start of its period."""
    if isinstance(value, datetime):
        value = value.date()
    if period == "day":
        return value
    return value.replace(day=1)


def advance_date(value: date, period: str, count: int = 1) -> date:
    """Move a date forward (or backward, for negative counts) by whole periods."""
    if isinstance(value, datetime):
        value = value.date()
    if period == "day":
        return value + relativedelta(days=count)
    return value + relativedelta(months=count)


def name_format(period: str) -> str:
    """strftime pattern for the partition name suffix."""
    return NAME_FORMAT.get(period, NAME_FORMAT["month"])


def name_suffix(value: date, period: str) -> str:
    return value.strftime(name_format(period))


def parse_suffix(suffix: str, period: str) -> date:
    """Parse a partition name suffix back into the partition's start date."""
    return datetime.strptime(suffix, name_format(period)).date()


def sql_date(value: date, cast: str, add_cast: bool = True) -> str:
    """Render a date as a quoted SQL literal for the given column cast.

    ``timestamptz`` literals carry an explicit midnight UTC time so the
    boundary does not depend on the session time zone.
    """
    if cast == "timestamptz":
        literal = f"'{value.strftime('%Y-%m-%d')} 00:00:00 UTC'"
    else:
        literal = f"'{value.strftime('%Y-%m-%d')}'"
    if add_cast:
        return f"{literal}::{cast}"
    return literal
