"""Ignore patterns for watched paths.

This module provides:
- IgnorePatterns: gitignore-like pattern matching on paths under the source root
- IGNORE_FILE: Name of the optional per-tree ignore file
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

from syncwatch.core.config import DEFAULT_IGNORE

IGNORE_FILE = ".syncwatchignore"


class IgnorePatterns:
    """Handles ignore pattern matching for file paths.

    A pattern ignores a path when it matches the relative path, the file
    name, or any ancestor directory. A leading ``**/`` also matches at the
    top level, so ``**/*.log`` ignores both ``a.log`` and ``x/a.log``.
    """

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: List of patterns, None for the defaults.
        """
        self._patterns = list(DEFAULT_IGNORE if patterns is None else patterns)
        self._excluded_dirs: list[Path] = []

    @property
    def patterns(self) -> list[str]:
        """Get the active patterns."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        self._patterns.append(pattern)

    def exclude_directory(self, path: Path) -> None:
        """Always ignore a directory and everything below it."""
        self._excluded_dirs.append(Path(path).resolve())

    def load_from_file(self, path: Path) -> None:
        """Load patterns from an ignore file."""
        if path.exists():
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    # Skip comments and empty lines
                    if line and not line.startswith("#"):
                        self._patterns.append(line)

    def _matches(self, candidate: str, pattern: str) -> bool:
        if fnmatch.fnmatch(candidate, pattern):
            return True
        if pattern.startswith("**/"):
            return fnmatch.fnmatch(candidate, pattern[3:])
        return False

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Absolute path to check.
            base_path: Source root.

        Returns:
            True if the path should be ignored.
        """
        for excluded in self._excluded_dirs:
            if path == excluded or excluded in path.parents:
                return True

        # Symlinks are never followed
        if path.is_symlink():
            return True

        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False

        rel_str = str(rel_path).replace("\\", "/")
        if rel_str == ".":
            return False

        parts = rel_str.split("/")
        ancestors = ["/".join(parts[:i]) for i in range(1, len(parts))]
        candidates = [rel_str, path.name, *ancestors, *parts[:-1]]

        for pattern in self._patterns:
            pattern = pattern.rstrip("/")
            if not pattern:
                continue
            if any(self._matches(candidate, pattern) for candidate in candidates):
                return True

        return False
