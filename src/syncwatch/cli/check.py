"""Check command for syncwatch CLI.

Commands:
- check: Verify the connection and write permission, then exit
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from syncwatch.cli.config import load_config_or_exit
from syncwatch.cli.output import resolve_log_level, setup_logging
from syncwatch.core.auth import AUTH_METHODS
from syncwatch.core.config import DEFAULT_CONFIG_FILE, ConfigError
from syncwatch.sync.engine import StartupError, SyncEngine
from syncwatch.sync.types import EXIT_CONFIG, EXIT_OK


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="JSON config file.",
)
@click.option("--auth", "auth_flag", type=click.Choice(AUTH_METHODS), help="Force SSH auth method.")
@click.option("--verbose", "-v", is_flag=True, help="Debug output.")
def check(config_path: Path, auth_flag: str | None, verbose: bool) -> None:
    """Check the connection and write permission on the remote root."""
    config = load_config_or_exit(config_path)
    setup_logging(resolve_log_level(config.log_level, verbose=verbose))

    try:
        engine = SyncEngine(config, auth_flag=auth_flag)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    click.echo(f"Checking {config.server.display_target}...")
    try:
        engine.check_remote(probe_write=True)
    except StartupError as e:
        click.echo(click.style(f"Check failed: {e}", fg="red"), err=True)
        sys.exit(e.exit_code)
    finally:
        engine.connection.close()

    click.echo(click.style("Connection OK. Remote root is writable.", fg="green"))
    sys.exit(EXIT_OK)
