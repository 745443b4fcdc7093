"""Transport adapters for remote targets.

This package provides:
- Transport: Abstract interface (see base.py)
- One adapter per BackendKind: local, sftp, ftp, ftps, s3, webdav
- create_transport: Factory resolving the configured kind to an adapter

Usage:
    from syncwatch.transports import create_transport

    transport = create_transport(config)
    transport.connect()
"""

from __future__ import annotations

from collections.abc import Callable

from syncwatch.core.config import BackendKind, ConfigError, WatchConfig
from syncwatch.transports.base import (
    AlreadyExistsError,
    AuthError,
    ErrorKind,
    NetworkError,
    NotFoundError,
    RemoteEntry,
    TransferError,
    Transport,
    TransportError,
)
from syncwatch.transports.ftp import FTPSTransport, FTPTransport
from syncwatch.transports.local import LocalTransport
from syncwatch.transports.s3 import S3Transport
from syncwatch.transports.sftp import SFTPTransport
from syncwatch.transports.webdav import WebDAVTransport

# Builder signature: (config, auth_flag) -> unconnected Transport
TransportBuilder = Callable[[WatchConfig, "str | None"], Transport]


def _build_local(config: WatchConfig, auth_flag: str | None) -> Transport:
    return LocalTransport.from_config(config.server)


def _build_sftp(config: WatchConfig, auth_flag: str | None) -> Transport:
    return SFTPTransport.from_config(config.server, auth_flag=auth_flag)


def _build_ftp(config: WatchConfig, auth_flag: str | None) -> Transport:
    return FTPTransport.from_config(config.server)


def _build_ftps(config: WatchConfig, auth_flag: str | None) -> Transport:
    return FTPSTransport.from_config(config.server)


def _build_s3(config: WatchConfig, auth_flag: str | None) -> Transport:
    return S3Transport.from_config(
        config.server,
        checkpoint_dir=config.checkpoint_dir,
        part_size=config.part_size_bytes,
        multipart_threshold=config.multipart_threshold_bytes,
    )


def _build_webdav(config: WatchConfig, auth_flag: str | None) -> Transport:
    return WebDAVTransport.from_config(config.server)


TRANSPORT_REGISTRY: dict[BackendKind, TransportBuilder] = {
    BackendKind.LOCAL: _build_local,
    BackendKind.SFTP: _build_sftp,
    BackendKind.FTP: _build_ftp,
    BackendKind.FTPS: _build_ftps,
    BackendKind.S3: _build_s3,
    BackendKind.WEBDAV: _build_webdav,
}


def create_transport(config: WatchConfig, auth_flag: str | None = None) -> Transport:
    """Factory function to create an unconnected transport from configuration.

    Args:
        config: Validated watch configuration.
        auth_flag: Optional forced auth method for SSH ("key" or "password").

    Returns:
        Transport adapter for config.server.kind.

    Raises:
        ConfigError: If the kind has no adapter or its settings are incomplete.
    """
    builder = TRANSPORT_REGISTRY.get(config.server.kind)
    if builder is None:
        raise ConfigError(f"No transport registered for {config.server.kind.value}")
    try:
        return builder(config, auth_flag)
    except ValueError as e:
        raise ConfigError(str(e)) from e


__all__ = [
    # Interface and errors
    "AlreadyExistsError",
    "AuthError",
    "ErrorKind",
    "NetworkError",
    "NotFoundError",
    "RemoteEntry",
    "TransferError",
    "Transport",
    "TransportError",
    # Adapters
    "FTPSTransport",
    "FTPTransport",
    "LocalTransport",
    "S3Transport",
    "SFTPTransport",
    "WebDAVTransport",
    # Factory
    "TRANSPORT_REGISTRY",
    "create_transport",
]
