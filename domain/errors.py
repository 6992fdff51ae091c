"""Suite-level error taxonomy.

Scenario- and metric-level problems are recorded as data on RunArtifact and
ScenarioResult; only conditions that stop the whole suite are raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models import MissingPrecondition, RunArtifact


class ProbeError(Exception):
    """Base class for errors that stop the suite before it produces a verdict."""


class PreconditionFailure(ProbeError):
    """A runtime precondition (tool, session variable) is missing."""

    def __init__(self, missing: MissingPrecondition) -> None:
        super().__init__(missing.message)
        self.missing = missing


class BuildFailure(ProbeError):
    """The measurement binary could not be produced."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ConfigError(ProbeError):
    """The configuration file or command-line selection is invalid."""


class ScenarioCancelled(Exception):  # noqa: N818
    """Raised by the runner when the operator interrupts a running scenario.

    Carries the partial artifact so the suite can still persist it.
    """

    def __init__(self, artifact: RunArtifact) -> None:
        super().__init__(f"scenario {artifact.scenario} cancelled")
        self.artifact = artifact
