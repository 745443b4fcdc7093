"""Watch command for syncwatch CLI.

Commands:
- watch: Mirror changes of the source directory to the remote target
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from types import FrameType

import click

from syncwatch import __version__
from syncwatch.cli.config import load_config_or_exit
from syncwatch.cli.output import resolve_log_level, setup_logging
from syncwatch.core.auth import AUTH_METHODS
from syncwatch.core.config import DEFAULT_CONFIG_FILE, LOG_LEVELS, ConfigError, WatchConfig
from syncwatch.sync.engine import StartupError, SyncEngine
from syncwatch.sync.stats import StatsSnapshot
from syncwatch.sync.types import EXIT_CONFIG


def print_banner(config: WatchConfig, dry_run: bool) -> None:
    """Print the startup banner."""
    click.echo(click.style("\n S Y N C W A T C H\n", fg="cyan", bold=True))
    click.echo(f"Version: v{__version__}")
    if dry_run:
        click.echo(
            click.style(
                "[DRY RUN MODE] No files will be uploaded, deleted, or changed on the remote.",
                fg="yellow",
            )
        )
    click.echo(click.style(f"Source:      {config.source_dir.resolve()}", fg="green"))
    click.echo(click.style(f"Remote:      {config.server.display_target}", fg="magenta"))
    click.echo(click.style(f"Ignores:     {', '.join(config.ignore)}", fg="blue"))
    click.echo(f"Concurrency: {config.concurrency}")
    if config.max_file_size_bytes:
        click.echo(f"Max size:    {config.max_file_size_bytes} bytes")


def print_summary(snapshot: StatsSnapshot) -> None:
    """Print the shutdown summary."""
    click.echo(f"Runtime: {snapshot.elapsed_s:.1f}s")
    click.echo(
        f"Uploaded: {snapshot.uploaded}, Deleted: {snapshot.deleted}, "
        f"Dirs+: {snapshot.dirs_created}, Dirs-: {snapshot.dirs_removed}"
    )
    if snapshot.skipped_large:
        click.echo(click.style(f"Skipped large: {snapshot.skipped_large}", fg="yellow"))
    if snapshot.safety_violations:
        click.echo(click.style(f"Safety violations: {snapshot.safety_violations}", fg="red"))
    if snapshot.errors:
        click.echo(click.style(f"Errors: {snapshot.errors}", fg="red"))


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
@click.option("--dry-run", is_flag=True, help="Log remote actions without performing them.")
@click.option("--concurrency", type=click.IntRange(min=1), help="Maximum concurrent transfers.")
@click.option("--verbose", "-v", is_flag=True, help="Debug output.")
@click.option("--silent", "-s", is_flag=True, help="Errors only.")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), help="Override config log_level.")
@click.option(
    "--strict-delete",
    is_flag=True,
    help="Exit with code 2 when a delete would target a path outside the remote root.",
)
@click.option("--auth", "auth_flag", type=click.Choice(AUTH_METHODS), help="Force SSH auth method.")
def watch(
    config_path: Path,
    dry_run: bool,
    concurrency: int | None,
    verbose: bool,
    silent: bool,
    log_level: str | None,
    strict_delete: bool,
    auth_flag: str | None,
) -> None:
    """Watch the source directory and mirror changes to the remote.

    Runs until interrupted with Ctrl+C or SIGTERM.
    """
    config = load_config_or_exit(config_path, concurrency)
    setup_logging(resolve_log_level(config.log_level, log_level, verbose, silent))

    try:
        engine = SyncEngine(
            config, dry_run=dry_run, strict_delete=strict_delete, auth_flag=auth_flag
        )
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    print_banner(config, dry_run)

    try:
        engine.check_remote()
    except StartupError as e:
        click.echo(click.style(f"Connection or permission check failed: {e}", fg="red"), err=True)
        engine.stop()
        sys.exit(e.exit_code)
    click.echo(click.style("Connection OK.", fg="green"))

    engine.start()
    if config.initial_sync:
        engine.initial_sync()

    def request_stop(signum: int, frame: FrameType | None) -> None:
        engine.request_stop()

    previous = {
        sig: signal.signal(sig, request_stop) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    click.echo("Watching for changes... (Ctrl+C to stop)")
    try:
        engine.wait()
    except KeyboardInterrupt:
        pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    click.echo("\nShutting down...")
    snapshot = engine.stop()
    print_summary(snapshot)

    if engine.fatal_error is not None:
        click.echo(click.style(f"Strict mode violation: {engine.fatal_error}", fg="red"), err=True)
    sys.exit(engine.exit_code)
