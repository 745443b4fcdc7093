"""Tests for ignore pattern matching."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from syncwatch.sync.ignore import IgnorePatterns


class TestIgnorePatterns:
    """Tests for IgnorePatterns."""

    @pytest.fixture
    def base(self, tmp_path: Path) -> Path:
        """Resolved source root."""
        return tmp_path.resolve()

    def test_defaults(self, base: Path) -> None:
        """Should ignore VCS, dependency and log paths by default."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(base / ".git", base)
        assert ignore.should_ignore(base / ".git" / "config", base)
        assert ignore.should_ignore(base / "web" / "node_modules" / "x.js", base)
        assert ignore.should_ignore(base / ".DS_Store", base)
        assert ignore.should_ignore(base / "a.log", base)
        assert ignore.should_ignore(base / "deep" / "er" / "a.tmp", base)

    def test_normal_file_not_ignored(self, base: Path) -> None:
        """Should not ignore ordinary files."""
        ignore = IgnorePatterns()
        assert not ignore.should_ignore(base / "src" / "main.py", base)
        assert not ignore.should_ignore(base / "logbook.txt", base)

    def test_root_never_ignored(self, base: Path) -> None:
        """Should never ignore the source root itself."""
        assert not IgnorePatterns(["*"]).should_ignore(base, base)

    def test_outside_base_not_ignored(self, base: Path) -> None:
        """Should not match paths outside the source root."""
        assert not IgnorePatterns(["*.txt"]).should_ignore(Path("/elsewhere/a.txt"), base)

    def test_directory_pattern_with_slash(self, base: Path) -> None:
        """Should treat a trailing slash as a directory pattern."""
        ignore = IgnorePatterns(["build/"])
        assert ignore.should_ignore(base / "build", base)
        assert ignore.should_ignore(base / "build" / "out.o", base)
        assert not ignore.should_ignore(base / "builder.py", base)

    def test_nested_path_pattern(self, base: Path) -> None:
        """Should match patterns against relative paths."""
        ignore = IgnorePatterns(["docs/drafts"])
        assert ignore.should_ignore(base / "docs" / "drafts" / "a.md", base)
        assert not ignore.should_ignore(base / "docs" / "final.md", base)

    def test_add_pattern(self, base: Path) -> None:
        """Should support adding patterns."""
        ignore = IgnorePatterns([])
        assert not ignore.should_ignore(base / "a.bak", base)
        ignore.add_pattern("*.bak")
        assert ignore.should_ignore(base / "a.bak", base)
        assert ignore.patterns == ["*.bak"]

    def test_load_from_file(self, base: Path) -> None:
        """Should load patterns, skipping comments and blank lines."""
        ignore_file = base / ".syncwatchignore"
        ignore_file.write_text("# comment\n\n*.secret\ncache/\n")

        ignore = IgnorePatterns([])
        ignore.load_from_file(ignore_file)
        ignore.load_from_file(base / "missing")

        assert ignore.patterns == ["*.secret", "cache/"]
        assert ignore.should_ignore(base / "keys.secret", base)

    def test_excluded_directory(self, base: Path) -> None:
        """Should always ignore an excluded directory and its contents."""
        checkpoints = base / ".syncwatch" / "checkpoints"
        ignore = IgnorePatterns([])
        ignore.exclude_directory(checkpoints)

        assert ignore.should_ignore(checkpoints, base)
        assert ignore.should_ignore(checkpoints / "a.json", base)
        assert not ignore.should_ignore(base / ".syncwatch" / "other", base)

    def test_symlink_ignored(self, base: Path) -> None:
        """Should never follow symlinks."""
        target = base / "real.txt"
        target.write_text("x")
        link = base / "link.txt"
        os.symlink(target, link)

        ignore = IgnorePatterns([])
        assert ignore.should_ignore(link, base)
        assert not ignore.should_ignore(target, base)
