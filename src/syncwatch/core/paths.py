"""Remote path computation and root containment checks.

This module provides:
- to_relative: Local path relative to the watched source directory
- to_remote_path: Remote destination for a local path under the remote root
- is_within_root: Lexical containment check against the remote root

All functions are pure: paths are normalized lexically, the filesystem is
never consulted.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path


def _to_posix(path: str) -> str:
    """Rewrite backslash separators to forward slashes."""
    return path.replace("\\", "/")


def normalize_remote(path: str) -> str:
    """Normalize a remote path lexically.

    Collapses duplicate separators, resolves ``.`` and ``..`` segments and
    strips trailing separators.

    Args:
        path: Remote path, possibly with mixed separators.

    Returns:
        Normalized forward-slash path.
    """
    norm = posixpath.normpath(_to_posix(path))
    # POSIX keeps a leading "//" as implementation-defined; collapse it
    if norm.startswith("//"):
        norm = "/" + norm.lstrip("/")
    return norm


def to_relative(source_dir: Path | str, local_path: Path | str) -> str:
    """Get the path of a local file relative to the source directory.

    Args:
        source_dir: Watched source directory.
        local_path: Absolute local path.

    Returns:
        Relative path using forward slashes.
    """
    return _to_posix(os.path.relpath(str(local_path), str(source_dir)))


def to_remote_path(root: str, local_path: Path | str, relative_base: Path | str) -> str:
    """Compute the remote destination for a local path.

    Args:
        root: Remote root directory.
        local_path: Absolute local path.
        relative_base: Local directory that maps onto ``root``.

    Returns:
        Normalized remote path. May fall outside ``root`` if ``local_path``
        is not below ``relative_base``; check with is_within_root().
    """
    rel = to_relative(relative_base, local_path)
    return normalize_remote(f"{_to_posix(root)}/{rel}")


def is_within_root(root: str, candidate: str) -> bool:
    """Check that a remote path equals the root or is one of its descendants.

    Both paths are normalized before comparison, so ``..`` segments that
    climb above the root are rejected.

    Args:
        root: Remote root directory.
        candidate: Remote path to check.

    Returns:
        True if the candidate stays within the root.
    """
    base = normalize_remote(root)
    norm = normalize_remote(candidate)
    if norm == base:
        return True
    prefix = base if base.endswith("/") else base + "/"
    return norm.startswith(prefix)


def remote_parent(remote_path: str, root: str) -> str:
    """Get the parent directory of a remote path.

    Args:
        remote_path: Normalized remote path.
        root: Remote root, used when the path has no parent component.

    Returns:
        Parent directory path.
    """
    idx = remote_path.rfind("/")
    if idx <= 0:
        return normalize_remote(root)
    return remote_path[:idx]
