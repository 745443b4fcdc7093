"""Authentication method selection for SSH-based backends."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from syncwatch.core.config import ConfigError, ServerConfig

AUTH_METHODS = ("key", "password")


@dataclass(frozen=True)
class AuthSelection:
    """Selected authentication method.

    Attributes:
        method: "key" or "password".
        private_key: Key material (PEM text) when method is "key".
        password: Password when method is "password".
    """

    method: str
    private_key: str | None = None
    password: str | None = None


def _read_key_material(value: str) -> str:
    """Interpret a key value as a path if it exists, else as key content."""
    candidate = Path(value).expanduser()
    try:
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8")
    except OSError:
        # Key content long enough to overflow a path lookup
        pass
    return value


def select_auth(
    server: ServerConfig,
    env: Mapping[str, str] | None = None,
    auth_flag: str | None = None,
) -> AuthSelection:
    """Choose between private key and password authentication.

    Without a flag a private key is preferred over a password.

    Args:
        server: Server configuration.
        env: Environment for SYNCWATCH_PRIVATE_KEY / SYNCWATCH_PASSWORD fallbacks.
        auth_flag: Optional forced method, "key" or "password".

    Returns:
        AuthSelection describing the credentials to use.

    Raises:
        ConfigError: If the flag is invalid or the requested material is missing.
    """
    env = os.environ if env is None else env
    key_value = server.private_key or env.get("SYNCWATCH_PRIVATE_KEY")
    password = server.password or env.get("SYNCWATCH_PASSWORD")

    flag = auth_flag.lower() if auth_flag else None
    if flag and flag not in AUTH_METHODS:
        raise ConfigError(f"Invalid --auth value: {auth_flag}. Allowed: key, password")

    if flag == "key":
        if not key_value:
            raise ConfigError(
                "--auth=key requested but no private key is available "
                "(config or SYNCWATCH_PRIVATE_KEY)"
            )
        return AuthSelection(method="key", private_key=_read_key_material(key_value))
    if flag == "password":
        if not password:
            raise ConfigError(
                "--auth=password requested but no password is available "
                "(config or SYNCWATCH_PASSWORD)"
            )
        return AuthSelection(method="password", password=password)

    if key_value:
        return AuthSelection(method="key", private_key=_read_key_material(key_value))
    if password:
        return AuthSelection(method="password", password=password)
    raise ConfigError("No authentication method provided (private_key or password)")
