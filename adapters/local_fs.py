"""Local filesystem adapter implementing FileSystemPort.

Uses pathlib for all path operations. All paths are resolved relative to a
configurable base directory.
"""

from __future__ import annotations

import os
from pathlib import Path


class LocalFileSystem:
    """Concrete FileSystemPort implementation backed by the local filesystem.

    Parameters
    ----------
    base_dir:
        Root directory for all operations. Relative paths passed to methods are
        resolved against this directory; absolute paths are used as given.

    """

    def __init__(self, base_dir: str) -> None:
        self._base = Path(base_dir).resolve()

    def _resolve(self, path: str) -> Path:
        """Resolve a path against the base directory."""
        return self._base / path

    def list_names(self, path: str) -> list[str]:
        """Return the names of the files directly inside a directory."""
        directory = self._resolve(path)
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file())

    def write_file(self, path: str, content: str) -> None:
        """Write content to a file, creating parent directories as needed."""
        resolved = self._resolve(path)
        resolved.parent.mkdir(parents=True, exist_ok=True)
        resolved.write_text(content, encoding="utf-8")

    def file_exists(self, path: str) -> bool:
        """Return True if the file exists."""
        return self._resolve(path).is_file()

    def make_directory(self, path: str) -> None:
        """Create a directory (and parents) if it doesn't exist."""
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> str:
        """Return the base directory as a string."""
        return os.fspath(self._base)
