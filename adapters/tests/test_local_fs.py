"""Tests for the LocalFileSystem adapter.

All tests use a temporary directory (via tmp_path) so no real project files
are touched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from adapters.local_fs import LocalFileSystem

if TYPE_CHECKING:
    from pathlib import Path


# ── list_names ────────────────────────────────────────────────────────────


def test_list_names_returns_files_only(tmp_path: Path) -> None:
    """list_names returns sorted file names and skips subdirectories."""
    results = tmp_path / "perf-results"
    (results / "nested").mkdir(parents=True)
    (results / "summary-1.txt").write_text("SUITE PASS", encoding="utf-8")
    (results / "memory-peak-1.log").write_text("", encoding="utf-8")

    fs = LocalFileSystem(str(tmp_path))
    assert fs.list_names("perf-results") == ["memory-peak-1.log", "summary-1.txt"]


def test_list_names_missing_directory_is_empty(tmp_path: Path) -> None:
    """list_names returns [] for a directory that does not exist yet."""
    fs = LocalFileSystem(str(tmp_path))
    assert fs.list_names("perf-results") == []


# ── write_file ────────────────────────────────────────────────────────────


def test_write_file_creates_parents(tmp_path: Path) -> None:
    """write_file creates parent directories and writes content."""
    fs = LocalFileSystem(str(tmp_path))
    fs.write_file("perf-results/summary-1.json", "{}")

    assert (tmp_path / "perf-results" / "summary-1.json").read_text(encoding="utf-8") == "{}"


def test_write_file_overwrites(tmp_path: Path) -> None:
    """write_file overwrites existing file content."""
    fs = LocalFileSystem(str(tmp_path))
    fs.write_file("f.txt", "first")
    fs.write_file("f.txt", "second")

    assert (tmp_path / "f.txt").read_text(encoding="utf-8") == "second"


def test_absolute_paths_bypass_base(tmp_path: Path) -> None:
    """An absolute path is used as given, not joined under the base."""
    base = tmp_path / "project"
    base.mkdir()
    target = tmp_path / "elsewhere" / "summary.txt"

    fs = LocalFileSystem(str(base))
    fs.write_file(str(target), "ok")

    assert target.read_text(encoding="utf-8") == "ok"
    assert fs.file_exists(str(target))


# ── file_exists / make_directory ──────────────────────────────────────────


def test_file_exists(tmp_path: Path) -> None:
    """file_exists returns True for existing files, False otherwise."""
    (tmp_path / "exists.txt").write_text("yes", encoding="utf-8")

    fs = LocalFileSystem(str(tmp_path))
    assert fs.file_exists("exists.txt") is True
    assert fs.file_exists("nope.txt") is False


def test_file_exists_false_for_directory(tmp_path: Path) -> None:
    """file_exists returns False for a directory path."""
    (tmp_path / "perf-results").mkdir()
    fs = LocalFileSystem(str(tmp_path))
    assert fs.file_exists("perf-results") is False


def test_make_directory_creates_nested(tmp_path: Path) -> None:
    """make_directory creates nested directories."""
    fs = LocalFileSystem(str(tmp_path))
    fs.make_directory("a/b/c")

    assert (tmp_path / "a" / "b" / "c").is_dir()


def test_make_directory_idempotent(tmp_path: Path) -> None:
    """make_directory does not raise if directory already exists."""
    fs = LocalFileSystem(str(tmp_path))
    fs.make_directory("results")
    fs.make_directory("results")

    assert (tmp_path / "results").is_dir()


def test_write_file_unicode(tmp_path: Path) -> None:
    """Unicode content is written as UTF-8."""
    fs = LocalFileSystem(str(tmp_path))
    content = "✓ prime-consent ✗ memory-peak"
    fs.write_file("unicode.txt", content)
    assert (tmp_path / "unicode.txt").read_text(encoding="utf-8") == content


def test_base_dir_property(tmp_path: Path) -> None:
    """base_dir property returns the resolved base directory."""
    fs = LocalFileSystem(str(tmp_path))
    assert fs.base_dir == str(tmp_path.resolve())
