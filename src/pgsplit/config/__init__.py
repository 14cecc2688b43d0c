"""pgsplit configuration module."""

from pgsplit.config.base import (
    CONFIG_FILE_NAME,
    URL_ENV_VAR,
    PgSplitConfig,
    config_file_exists,
    get_config_file_path,
    load_config,
    read_config_file,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "URL_ENV_VAR",
    "PgSplitConfig",
    "config_file_exists",
    "get_config_file_path",
    "load_config",
    "read_config_file",
]
