"""Command-line interface for syncwatch.

This module provides the main CLI entry point and assembles all commands.

Commands:
- watch: Mirror changes of the source directory to the remote target
- check: Verify the connection and write permission
"""

from __future__ import annotations

import click

from syncwatch import __version__
from syncwatch.cli.check import check
from syncwatch.cli.watch import watch


@click.group()
@click.version_option(version=__version__, prog_name="syncwatch")
def cli() -> None:
    """syncwatch - Mirror a local directory to a remote target."""


cli.add_command(watch)
cli.add_command(check)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
