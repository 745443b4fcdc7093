"""Console logging for the CLI.

This module provides:
- ClickEchoHandler: Logging handler writing through click.echo
- resolve_log_level: Combine config and command-line verbosity options
- setup_logging: Install the handler on the package logger
"""

from __future__ import annotations

import logging

import click

LEVEL_NAMES = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_LEVEL_STYLES = {
    logging.ERROR: {"fg": "red", "bold": True},
    logging.WARNING: {"fg": "yellow"},
    logging.DEBUG: {"dim": True},
}


class ClickEchoHandler(logging.Handler):
    """Logging handler that writes records with click, colouring the level tag."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            style = _LEVEL_STYLES.get(record.levelno)
            tag = f"[{record.levelname.lower()}]"
            if style:
                tag = click.style(tag, **style)
            click.echo(f"{tag} {msg}", err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def resolve_log_level(
    config_level: str = "info",
    log_level: str | None = None,
    verbose: bool = False,
    silent: bool = False,
) -> int:
    """Resolve the effective level.

    Precedence, lowest first: config, --log-level, --verbose, --silent.
    """
    level = LEVEL_NAMES.get(config_level, logging.INFO)
    if log_level:
        level = LEVEL_NAMES[log_level]
    if verbose:
        level = logging.DEBUG
    if silent:
        level = logging.ERROR
    return level


def setup_logging(level: int) -> logging.Logger:
    """Install a single click handler on the syncwatch logger."""
    package_logger = logging.getLogger("syncwatch")
    for handler in list(package_logger.handlers):
        if isinstance(handler, ClickEchoHandler):
            package_logger.removeHandler(handler)
    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return package_logger
