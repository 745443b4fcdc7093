"""Config loading shared by CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from syncwatch.core.config import ConfigError, WatchConfig, load_config
from syncwatch.sync.types import EXIT_CONFIG


def load_config_or_exit(config_path: Path, concurrency: int | None = None) -> WatchConfig:
    """Load the config file, exiting with the config error code on failure.

    Args:
        config_path: JSON config file.
        concurrency: Command-line override for config.concurrency.

    Returns:
        Validated configuration.
    """
    try:
        config = load_config(config_path)
        if concurrency is not None:
            config.concurrency = concurrency
            config.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    if not config.source_dir.is_dir():
        click.echo(f"Error: source_dir is not a directory: {config.source_dir}", err=True)
        sys.exit(EXIT_CONFIG)
    return config
