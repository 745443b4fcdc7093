"""Core module - Configuration, authentication and remote path safety."""

from syncwatch.core.auth import AuthSelection, select_auth
from syncwatch.core.config import (
    BackendKind,
    ConfigError,
    ServerConfig,
    WatchConfig,
    load_config,
    resolve_backend_kind,
)
from syncwatch.core.paths import (
    is_within_root,
    normalize_remote,
    remote_parent,
    to_relative,
    to_remote_path,
)

__all__ = [
    # Auth
    "AuthSelection",
    "select_auth",
    # Config
    "BackendKind",
    "ConfigError",
    "ServerConfig",
    "WatchConfig",
    "load_config",
    "resolve_backend_kind",
    # Paths
    "is_within_root",
    "normalize_remote",
    "remote_parent",
    "to_relative",
    "to_remote_path",
]
