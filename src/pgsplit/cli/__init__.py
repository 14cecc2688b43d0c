"""pgsplit CLI - Command-line interface layer.

This module provides:
- main: Entry point and command registration
- options: Shared Click option decorators
- output: Consoles for SQL and status messages
"""
