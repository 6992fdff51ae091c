"""
wiring.py — Composition root: connects adapters to the pure modules.

The kernel never imports adapters or modules directly; every suite step
(gate, build, run, judge, report) goes through a function here so the
concrete ports can be swapped in one place (tests inject fakes through
``Components``).
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from adapters.cargo_builder import CargoBuilder, PrebuiltBinary
from adapters.confirmation import PromptConfirmation, auto_confirm
from adapters.local_fs import LocalFileSystem
from adapters.subprocess_runner import SubprocessRunner
from domain.errors import PreconditionFailure
from kernel.config import BINARY_NAME, BUILD_STATE_FILE, BUILD_TIMEOUT, ROOT, TIMESTAMP_FORMAT
from modules.catalog import core as catalog
from modules.environment_gate import core as environment_gate
from modules.evaluator import core as evaluator
from modules.extractor import core as extractor
from modules.reporter import core as reporter
from modules.runner import core as runner

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from pathlib import Path

    from domain.models import (
        GateReport,
        InconclusiveReason,
        RunArtifact,
        ScenarioDefinition,
        ScenarioResult,
        SuiteReport,
        Verdict,
    )
    from domain.ports import BuilderPort, ConfirmationPort, FileSystemPort, ProcessPort
    from kernel.config import ProbeConfig

logger = logging.getLogger("capture_probe.wiring")

# Process exit statuses (stable, documented in kernel/cli.py).
EXIT_PASS = reporter.EXIT_PASS
EXIT_FAIL = reporter.EXIT_FAIL
EXIT_NOT_STARTED = reporter.EXIT_NOT_STARTED


@dataclass(frozen=True)
class SuiteOptions:
    """Per-invocation values shared by every scenario of one suite run."""

    captures: int
    source_id: str
    results_dir: Path
    timestamp: str
    build: bool = True


@dataclass
class Components:
    """Concrete ports used by one suite run."""

    process: ProcessPort
    builder: BuilderPort
    fs: FileSystemPort
    confirm: ConfirmationPort
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    which: Callable[[str], str | None] = shutil.which


def make_components(
    *,
    cargo_dir: Path | None = None,
    binary: Path | None = None,
    rebuild: bool = False,
    assume_yes: bool = False,
    prompt: Callable[[str], str | None] | None = None,
    notify: Callable[[str], None] | None = None,
) -> Components:
    """Build the production Components.

    Args:
        cargo_dir: Cargo workspace root; defaults to the current directory.
        binary: Use this prebuilt binary instead of building.
        rebuild: Ignore the cached build fingerprint.
        assume_yes: Skip operator confirmation (headless runs).
        prompt: Line reader used for confirmation when attended.
        notify: Message sink used to show confirmation instructions.
    """
    builder: BuilderPort
    if binary is not None:
        builder = PrebuiltBinary(binary)
    else:
        builder = CargoBuilder(
            cargo_dir or ROOT,
            BUILD_STATE_FILE,
            binary_name=BINARY_NAME,
            timeout=BUILD_TIMEOUT,
            force=rebuild,
        )

    confirm: ConfirmationPort
    if assume_yes or prompt is None:
        confirm = auto_confirm
    else:
        confirm = PromptConfirmation(prompt, notify)

    return Components(
        process=SubprocessRunner(cwd=cargo_dir),
        builder=builder,
        fs=LocalFileSystem(str(ROOT)),
        confirm=confirm,
    )


# ---------------------------------------------------------------------------
# Suite steps
# ---------------------------------------------------------------------------


def suite_timestamp(results_dir: Path, fs: FileSystemPort, now: datetime | None = None) -> str:
    """Timestamp for a new suite run that no file in *results_dir* already uses.

    Must be chosen before any scenario writes its raw log.
    """
    base = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return reporter.unique_timestamp(base, fs.list_names(str(results_dir)))


def load_catalog(
    config: ProbeConfig,
    *,
    only: Iterable[str] | None = None,
    timeout_scale: float = 1.0,
    base: Sequence[ScenarioDefinition] = catalog.DEFAULT_CATALOG,
) -> tuple[ScenarioDefinition, ...]:
    """Validate the catalog, apply config overrides and filter by name.

    Raises:
        ConfigError: On a defective catalog, bad overrides or unknown names.
    """
    catalog.validate(base)
    configured = catalog.apply_overrides(
        base,
        timeouts=config.timeouts,
        limits=config.limits,
        timeout_scale=timeout_scale,
    )
    return catalog.select(configured, only)


def gate_environment(
    scenarios: Sequence[ScenarioDefinition],
    components: Components,
    *,
    build: bool,
) -> GateReport:
    """Check every precondition for *scenarios*.

    Raises:
        PreconditionFailure: On the first missing precondition.
    """
    preconditions = catalog.required_preconditions(scenarios, build=build)
    report = environment_gate.check(preconditions, components.env, components.which)
    if report.failure is not None:
        raise PreconditionFailure(report.failure)
    return report


def build_binary(scenarios: Sequence[ScenarioDefinition], components: Components) -> Path:
    """Produce the measurement binary with every feature *scenarios* need.

    Raises:
        BuildFailure: If the binary could not be produced.
    """
    features = catalog.required_features(scenarios)
    return components.builder.build(features)


def check_scenario(
    scenario: ScenarioDefinition,
    prior: Mapping[str, RunArtifact | None],
    components: Components,
) -> tuple[InconclusiveReason, str] | None:
    """Dependency and confirmation check before launching *scenario*."""
    return runner.preflight(scenario, prior, components.confirm)


def run_scenario(
    scenario: ScenarioDefinition,
    binary: Path,
    components: Components,
    options: SuiteOptions,
) -> RunArtifact:
    """Launch one scenario and capture its artifact.

    Raises:
        ScenarioCancelled: If the operator interrupted the run.
    """
    return runner.run(
        scenario,
        binary,
        components.process,
        options.results_dir,
        timestamp=options.timestamp,
        captures=options.captures,
        source_id=options.source_id,
    )


def judge_scenario(scenario: ScenarioDefinition, artifact: RunArtifact) -> ScenarioResult:
    """Extract metrics from *artifact* and judge them."""
    extraction = extractor.extract(artifact, scenario)
    return evaluator.evaluate_scenario(scenario, artifact, extraction)


def skip_scenario(
    scenario: ScenarioDefinition,
    reason: InconclusiveReason,
    message: str,
) -> ScenarioResult:
    """Inconclusive result for a scenario that was never launched."""
    return evaluator.not_run(scenario, reason, message)


def cancel_scenario(scenario: ScenarioDefinition, artifact: RunArtifact) -> ScenarioResult:
    """Cancelled result for a scenario whose run ended but was not judged."""
    return evaluator.interrupted(
        scenario, artifact, "suite was interrupted while judging this scenario"
    )


def record_suite(
    results: Sequence[ScenarioResult],
    components: Components,
    options: SuiteOptions,
) -> SuiteReport:
    """Aggregate *results* and write the summaries to the results directory.

    A summary that cannot be written is logged; the report is returned
    without ``summary_paths``.
    """
    report = reporter.finalize(results, str(options.results_dir), options.timestamp)
    try:
        return reporter.persist(report, components.fs)
    except OSError:
        logger.exception("Could not write summary to %s", options.results_dir)
        return report


def verdict_counts(report: SuiteReport) -> dict[Verdict, int]:
    return reporter.counts(report)
