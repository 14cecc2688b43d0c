"""
pgsplit configuration management.

Settings come from, in increasing precedence:
1. Defaults on ``PgSplitConfig``
2. An optional ``pgsplit.config`` file in the current directory
3. Environment variables (``PGSPLIT_URL``; ``.env`` is loaded by the CLI)
4. Command-line flags, applied by the caller
"""

import os
from pathlib import Path
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field, field_validator

CONFIG_FILE_NAME = "pgsplit.config"
URL_ENV_VAR = "PGSPLIT_URL"


class PgSplitConfig(BaseModel):
    """pgsplit settings."""

    DEFAULT_LOCK_TIMEOUT: ClassVar[str] = "5s"
    DEFAULT_BATCH_SIZE: ClassVar[int] = 10000
    DEFAULT_CONNECT_TIMEOUT: ClassVar[int] = 1

    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="PostgreSQL URL; an optional ?schema= parameter sets the default schema",
    )
    LOCK_TIMEOUT: str = Field(
        default=DEFAULT_LOCK_TIMEOUT,
        description="lock_timeout applied while swapping tables (e.g. 5s, 500ms)",
    )
    BATCH_SIZE: int = Field(
        default=DEFAULT_BATCH_SIZE,
        description="Rows per fill batch",
        ge=1,
    )
    CONNECT_TIMEOUT: int = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        description="Seconds to wait for a connection",
        ge=1,
    )

    model_config = {"extra": "ignore"}

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def empty_url_is_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def get_config_file_path() -> Path:
    """Get the path to the pgsplit configuration file."""
    return Path.cwd() / CONFIG_FILE_NAME


def config_file_exists() -> bool:
    return get_config_file_path().exists()


def read_config_file(path: Path) -> dict[str, str]:
    """
    Parse ``KEY=value`` lines.

    Blank lines and ``#`` comments are skipped, surrounding quotes removed:

        DATABASE_URL="postgresql://localhost/app"
        BATCH_SIZE=5000
    """
    data = {}
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, value = line.split("=", 1)
                data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def load_config() -> PgSplitConfig:
    """
    Load configuration from the config file (if any) and the environment.

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range
    """
    data: dict[str, Any] = {}
    if config_file_exists():
        data.update(read_config_file(get_config_file_path()))

    url = os.environ.get(URL_ENV_VAR)
    if url:
        data["DATABASE_URL"] = url

    return PgSplitConfig(**data)
