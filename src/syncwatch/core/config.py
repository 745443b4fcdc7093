"""Configuration classes for syncwatch.

This module defines the watch configuration loaded from a JSON file and the
server section describing the remote target. Validation happens eagerly in
``from_dict`` so bad configuration fails before anything connects.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_FILE = "syncwatch.config.json"

DEFAULT_IGNORE = [".git", "node_modules", ".DS_Store", "**/*.log", "**/*.tmp"]
DEFAULT_CHECKPOINT_DIR = ".syncwatch/checkpoints"
DEFAULT_PART_SIZE = 5 * 1024 * 1024  # 5 MiB
DEFAULT_MULTIPART_THRESHOLD = 5 * 1024 * 1024  # 5 MiB

LOG_LEVELS = ("error", "warn", "info", "debug")


class ConfigError(Exception):
    """Invalid or incomplete configuration."""


class BackendKind(str, Enum):
    """Closed set of supported remote backends."""

    LOCAL = "local"
    SFTP = "sftp"
    FTP = "ftp"
    FTPS = "ftps"
    S3 = "s3"
    WEBDAV = "webdav"


def resolve_backend_kind(value: str | None) -> BackendKind:
    """Resolve a backend type discriminator.

    Args:
        value: Type string from configuration (case-insensitive). None means sftp.

    Returns:
        The matching BackendKind.

    Raises:
        ConfigError: If the type is not one of the supported kinds.
    """
    name = (value or BackendKind.SFTP.value).strip().lower()
    try:
        return BackendKind(name)
    except ValueError:
        allowed = ", ".join(k.value for k in BackendKind)
        raise ConfigError(
            f"Unsupported transport type: {name or '(none)'} - expected one of: {allowed}"
        ) from None


def _env_flag(value: str | None) -> bool:
    return str(value or "").strip().lower() == "true"


def _number(
    data: Mapping[str, Any],
    key: str,
    default: Any,
    convert: Callable[[Any], Any] = int,
    section: str = "",
) -> Any:
    """Read a numeric field, reporting bad values as ConfigError."""
    value = data.get(key, default)
    if value is None and default is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"Invalid {section}{key}: expected a number, got {value!r}")
    try:
        return convert(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {section}{key}: expected a number, got {value!r}") from None


@dataclass
class ServerConfig:
    """Remote target settings.

    Attributes:
        kind: Backend kind.
        remote_base_dir: Remote root every operation must stay within.
        host: Host name (sftp, ftp, ftps, webdav without url).
        port: Port, None for the protocol default.
        username: Login name.
        password: Password (config or environment).
        private_key: Private key path or key content (sftp).
        url: Base URL (webdav).
        bucket: Bucket name (s3).
        region: Region name (s3).
        endpoint_url: Custom endpoint (s3 compatible stores).
        force_path_style: Use path-style bucket addressing (s3).
        access_key: Access key id (s3), None to use the default chain.
        secret_key: Secret access key (s3).
        local_root: Directory remote paths are mapped under (local).
        verify_ssl: Verify TLS certificates (webdav).
        timeout: Connection timeout in seconds.
    """

    kind: BackendKind
    remote_base_dir: str
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    private_key: str | None = None
    url: str | None = None
    bucket: str | None = None
    region: str | None = None
    endpoint_url: str | None = None
    force_path_style: bool = False
    access_key: str | None = None
    secret_key: str | None = None
    local_root: str = "/"
    verify_ssl: bool = True
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Normalize the remote root to forward slashes."""
        self.remote_base_dir = self.remote_base_dir.replace("\\", "/")

    @property
    def display_target(self) -> str:
        """Human-readable description of the remote target."""
        if self.kind == BackendKind.S3:
            return f"s3://{self.bucket}{self.remote_base_dir}"
        if self.kind == BackendKind.WEBDAV:
            return f"{self.url or self.host}{self.remote_base_dir}"
        if self.kind == BackendKind.LOCAL:
            return f"{self.local_root}:{self.remote_base_dir}"
        return f"{self.username}@{self.host}:{self.remote_base_dir}"

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], env: Mapping[str, str] | None = None
    ) -> ServerConfig:
        """Create from the ``server`` section of the config file.

        Environment variables fill in values missing from the file.

        Raises:
            ConfigError: If required fields are missing for the backend kind.
        """
        env = os.environ if env is None else env
        kind = resolve_backend_kind(data.get("type"))

        remote_base_dir = data.get("remote_base_dir")
        if not remote_base_dir:
            raise ConfigError("Config is missing required field: server.remote_base_dir")

        config = cls(
            kind=kind,
            remote_base_dir=str(remote_base_dir),
            host=data.get("host"),
            port=_number(data, "port", None, section="server."),
            username=data.get("username"),
            password=data.get("password"),
            private_key=data.get("private_key"),
            url=data.get("url"),
            bucket=data.get("bucket") or env.get("SYNCWATCH_S3_BUCKET"),
            region=data.get("region") or env.get("AWS_REGION"),
            endpoint_url=data.get("endpoint_url") or env.get("SYNCWATCH_S3_ENDPOINT"),
            force_path_style=bool(data.get("force_path_style"))
            or _env_flag(env.get("SYNCWATCH_S3_FORCE_PATH_STYLE")),
            access_key=data.get("access_key"),
            secret_key=data.get("secret_key"),
            local_root=str(data.get("local_root") or "/"),
            verify_ssl=bool(data.get("verify_ssl", True)),
            timeout=_number(data, "timeout", 30.0, float, section="server."),
        )

        if kind == BackendKind.FTP or kind == BackendKind.FTPS:
            config.username = config.username or env.get("SYNCWATCH_FTP_USER")
            config.password = config.password or env.get("SYNCWATCH_FTP_PASSWORD")
        elif kind == BackendKind.WEBDAV:
            config.username = config.username or env.get("SYNCWATCH_WEBDAV_USER")
            config.password = config.password or env.get("SYNCWATCH_WEBDAV_PASSWORD")

        config.validate()
        return config

    def validate(self) -> None:
        """Check per-backend required fields.

        Raises:
            ConfigError: If a required field is missing.
        """
        if self.kind == BackendKind.SFTP:
            if not self.host or not self.username:
                raise ConfigError("SFTP requires server.host and server.username")
        elif self.kind in (BackendKind.FTP, BackendKind.FTPS):
            if not self.host or not self.username:
                raise ConfigError("FTP/FTPS requires server.host and server.username")
        elif self.kind == BackendKind.WEBDAV:
            if not self.url and not self.host:
                raise ConfigError("WebDAV requires server.url or server.host")
        elif self.kind == BackendKind.S3:
            if not self.bucket:
                raise ConfigError("S3 requires server.bucket or SYNCWATCH_S3_BUCKET")


@dataclass
class WatchConfig:
    """Top-level configuration for a watch session.

    Attributes:
        source_dir: Local directory to watch.
        server: Remote target settings.
        ignore: Ignore patterns relative to source_dir.
        debounce_ms: Quiet period before pending events are flushed.
        concurrency: Maximum concurrent workers.
        delete_on_remote: Propagate local deletions.
        initial_sync: Upload every file once at startup.
        max_file_size_bytes: Skip uploads larger than this (0 = no limit).
        log_level: One of error, warn, info, debug.
        checkpoint_dir: Directory for multipart upload checkpoints.
        multipart_threshold_bytes: Size from which uploads go multipart.
        part_size_bytes: Multipart part size.
    """

    source_dir: Path
    server: ServerConfig
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    debounce_ms: int = 500
    concurrency: int = 2
    delete_on_remote: bool = False
    initial_sync: bool = False
    max_file_size_bytes: int = 0
    log_level: str = "info"
    checkpoint_dir: Path = field(default_factory=lambda: Path(DEFAULT_CHECKPOINT_DIR))
    multipart_threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD
    part_size_bytes: int = DEFAULT_PART_SIZE

    @property
    def remote_root(self) -> str:
        """Shortcut for the configured remote root."""
        return self.server.remote_base_dir

    @property
    def debounce_s(self) -> float:
        """Debounce window in seconds."""
        return self.debounce_ms / 1000.0

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], env: Mapping[str, str] | None = None
    ) -> WatchConfig:
        """Create and validate from a parsed config file.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        source_dir = data.get("source_dir")
        server = data.get("server")
        if not source_dir or not isinstance(server, Mapping):
            raise ConfigError(
                "Config is missing required fields: source_dir, server.remote_base_dir"
            )

        log_level = str(data.get("log_level", "info")).lower()
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {log_level}")

        config = cls(
            source_dir=Path(source_dir).expanduser(),
            server=ServerConfig.from_dict(server, env),
            ignore=list(data.get("ignore", DEFAULT_IGNORE)),
            debounce_ms=_number(data, "debounce_ms", 500),
            concurrency=_number(data, "concurrency", 2),
            delete_on_remote=bool(data.get("delete_on_remote", False)),
            initial_sync=bool(data.get("initial_sync", False)),
            max_file_size_bytes=_number(data, "max_file_size_bytes", 0),
            log_level=log_level,
            checkpoint_dir=Path(data.get("checkpoint_dir", DEFAULT_CHECKPOINT_DIR)).expanduser(),
            multipart_threshold_bytes=_number(
                data, "multipart_threshold_bytes", DEFAULT_MULTIPART_THRESHOLD
            ),
            part_size_bytes=_number(data, "part_size_bytes", DEFAULT_PART_SIZE),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range.
        """
        if self.concurrency < 1:
            raise ConfigError("concurrency must be at least 1")
        if self.debounce_ms < 0:
            raise ConfigError("debounce_ms must not be negative")
        if self.part_size_bytes <= 0:
            raise ConfigError("part_size_bytes must be positive")
        if self.max_file_size_bytes < 0:
            raise ConfigError("max_file_size_bytes must not be negative")


def load_config(path: Path | str, env: Mapping[str, str] | None = None) -> WatchConfig:
    """Load and validate a JSON config file.

    Args:
        path: Config file path.
        env: Environment used for fallbacks (defaults to os.environ).

    Returns:
        Validated WatchConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a JSON object")
    return WatchConfig.from_dict(data, env)
