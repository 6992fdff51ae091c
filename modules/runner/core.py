"""Scenario runner — execute one scenario as a subprocess.

Resolves the scenario invocation, wraps it with the scenario's profiler,
launches it through a ProcessPort and packages what happened as a
RunArtifact. Launch failures and timeouts are recorded, not raised; the
only exception that leaves ``run`` is ``ScenarioCancelled``.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from domain.errors import ScenarioCancelled
from domain.models import InconclusiveReason, LaunchStatus, RunArtifact

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from domain.models import ScenarioDefinition
    from domain.ports import ConfirmationPort, ProcessPort

logger = logging.getLogger("capture_probe.runner")


def unmet_dependency(
    scenario: ScenarioDefinition,
    prior: Mapping[str, RunArtifact | None],
) -> str | None:
    """Return the first dependency without a successful run, or None.

    Args:
        scenario: The scenario about to run.
        prior: Scenario name to its artifact for every scenario already
            attempted in this suite (None when no subprocess was launched).
    """
    for dep in scenario.depends_on:
        artifact = prior.get(dep)
        if artifact is None or not artifact.succeeded:
            return dep
    return None


def preflight(
    scenario: ScenarioDefinition,
    prior: Mapping[str, RunArtifact | None],
    confirm: ConfirmationPort,
) -> tuple[InconclusiveReason, str] | None:
    """Decide whether *scenario* may launch.

    Returns:
        None when it may, otherwise the inconclusive reason and a message.
    """
    dep = unmet_dependency(scenario, prior)
    if dep is not None:
        attempted = dep in prior
        detail = "did not succeed" if attempted else "was not run"
        message = f"requires a successful {dep} run, which {detail}"
        logger.warning("%s skipped: %s", scenario.name, message)
        return InconclusiveReason.PRECEDED_BY_FAILURE, message

    if scenario.requires_confirmation and not confirm(scenario):
        logger.warning("%s skipped: operator declined", scenario.name)
        return InconclusiveReason.NOT_CONFIRMED, "operator did not confirm the scenario"

    return None


def render_arguments(
    scenario: ScenarioDefinition,
    *,
    captures: int,
    source_id: str,
) -> tuple[str, ...]:
    """Resolve the scenario's invocation template into concrete arguments."""
    values = {"captures": str(captures), "source_id": source_id}
    return (scenario.subcommand, *(arg.format(**values) for arg in scenario.arguments))


def build_command(
    scenario: ScenarioDefinition,
    binary: Path,
    *,
    captures: int,
    source_id: str,
    profile_log: Path | None = None,
) -> tuple[str, ...]:
    """Resolve the full command line, profiler prefix included."""
    command = (str(binary), *render_arguments(scenario, captures=captures, source_id=source_id))
    profiler = scenario.profiler
    if profiler is None:
        return command
    log = str(profile_log) if profile_log is not None else ""
    prefix = (profiler.tool, *(arg.format(profile_log=log) for arg in profiler.args))
    return (*prefix, *command)


def output_paths(
    scenario: ScenarioDefinition,
    results_dir: Path,
    timestamp: str,
) -> tuple[Path, Path | None]:
    """Timestamp-qualified raw output path and profiler log path."""
    output = results_dir / f"{scenario.name}-{timestamp}.log"
    if scenario.profiler is None:
        return output, None
    return output, results_dir / f"{scenario.name}-{timestamp}.{scenario.profiler.tool}.log"


def run(
    scenario: ScenarioDefinition,
    binary: Path,
    process: ProcessPort,
    results_dir: Path,
    *,
    timestamp: str,
    captures: int,
    source_id: str,
) -> RunArtifact:
    """Launch *scenario* and capture its output.

    Args:
        scenario: What to run.
        binary: Path of the measurement binary.
        process: Subprocess launcher.
        results_dir: Directory that receives the raw output files.
        timestamp: Suite timestamp used in file names.
        captures: Value for the ``{captures}`` placeholder.
        source_id: Value for the ``{source_id}`` placeholder.

    Returns:
        The RunArtifact, whatever the subprocess outcome.

    Raises:
        ScenarioCancelled: If the operator interrupted the run.
    """
    output_path, profile_log = output_paths(scenario, results_dir, timestamp)
    command = build_command(
        scenario,
        binary,
        captures=captures,
        source_id=source_id,
        profile_log=profile_log,
    )
    logger.info("Running %s: %s", scenario.name, " ".join(command))

    started = time.monotonic()
    try:
        outcome = process.run(command, output_path, scenario.timeout_seconds)
    except KeyboardInterrupt:
        artifact = RunArtifact(
            scenario=scenario.name,
            command=command,
            status=LaunchStatus.CANCELLED,
            exit_code=None,
            output=_read_text(output_path),
            duration_seconds=time.monotonic() - started,
            output_path=str(output_path),
            profile_log_path=str(profile_log) if profile_log is not None else None,
            profile_output=_read_text(profile_log),
            error="interrupted by operator",
        )
        raise ScenarioCancelled(artifact) from None

    if outcome.status is LaunchStatus.EXITED and outcome.exit_code != 0:
        logger.warning("%s exited with code %s", scenario.name, outcome.exit_code)
    elif outcome.status is LaunchStatus.TIMED_OUT:
        logger.warning("%s timed out after %.0fs", scenario.name, scenario.timeout_seconds)
    elif outcome.status is LaunchStatus.LAUNCH_FAILED:
        logger.error("%s could not be launched: %s", scenario.name, outcome.error)

    return RunArtifact(
        scenario=scenario.name,
        command=command,
        status=outcome.status,
        exit_code=outcome.exit_code,
        output=outcome.output,
        duration_seconds=outcome.duration_seconds,
        output_path=str(output_path),
        profile_log_path=str(profile_log) if profile_log is not None else None,
        profile_output=_read_text(profile_log),
        error=outcome.error,
    )


def _read_text(path: Path | None) -> str:
    if path is None or not path.is_file():
        return ""
    return path.read_text(encoding="utf-8", errors="replace")
