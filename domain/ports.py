"""Port interfaces for capture-probe.

All ports are defined as typing.Protocol: structural subtyping means any class
with matching method signatures satisfies the Protocol without inheritance.

This module has ZERO external imports, only stdlib and typing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from domain.models import ProcessOutcome, ScenarioDefinition


class FileSystemPort(Protocol):
    """Abstraction over file system operations."""

    def list_names(self, path: str) -> list[str]:
        """Return the file names inside directory *path*, or [] if it is missing."""
        ...

    def write_file(self, path: str, content: str) -> None:
        """Write content to a file, creating parent directories as needed."""
        ...

    def file_exists(self, path: str) -> bool:
        """Return True if the file exists."""
        ...

    def make_directory(self, path: str) -> None:
        """Create a directory (and parents) if it doesn't exist."""
        ...


class ProcessPort(Protocol):
    """Abstraction over launching one blocking subprocess.

    Implementations write combined stdout+stderr to ``output_path`` and never
    raise for launch failures or timeouts; those are reported through
    ``ProcessOutcome.status``. ``KeyboardInterrupt`` must kill the child and
    propagate.
    """

    def run(
        self,
        command: Sequence[str],
        output_path: Path,
        timeout: float,
        env: Mapping[str, str] | None = None,
    ) -> ProcessOutcome:
        """Run *command* to completion or until *timeout* seconds elapse."""
        ...


class BuilderPort(Protocol):
    """Abstraction over producing the measurement binary."""

    def build(self, required_features: set[str]) -> Path:
        """Build the binary with *required_features* and return its path.

        Raises:
            BuildFailure: If the binary could not be produced.
        """
        ...


class ConfirmationPort(Protocol):
    """Abstraction over the "external signal before proceeding" hook."""

    def __call__(self, scenario: ScenarioDefinition) -> bool:
        """Return True to launch *scenario*, False to skip it."""
        ...
