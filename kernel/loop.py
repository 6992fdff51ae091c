"""
kernel/loop.py — Fixed suite loop.

Drives the selected scenarios strictly in order. Every step goes through
wiring.py:
  gate_environment, build_binary, check_scenario, run_scenario,
  judge_scenario, skip_scenario, cancel_scenario, record_suite

Suite-level failures (precondition, build) propagate as ProbeError before
any scenario runs. Scenario-level problems become inconclusive or failing
results. An operator interrupt cancels the in-flight scenario and every
scenario after it, and the report is still persisted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import wiring
from domain.errors import ScenarioCancelled
from domain.models import InconclusiveReason, Verdict
from kernel.console import console

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from domain.models import RunArtifact, ScenarioDefinition, ScenarioResult, SuiteReport

logger = logging.getLogger("capture_probe.loop")


def _result_lines(result: ScenarioResult) -> list[str]:
    lines = [tr.detail for tr in result.threshold_results]
    lines.extend(result.notes)
    if result.artifact is not None:
        lines.append(f"log: {result.artifact.output_path}")
    return lines


def _show(result: ScenarioResult) -> None:
    elapsed = result.artifact.duration_seconds if result.artifact is not None else None
    console.scenario_result(result.scenario, result.verdict.value, _result_lines(result), elapsed)


def prepare(
    scenarios: Sequence[ScenarioDefinition],
    components: wiring.Components,
    options: wiring.SuiteOptions,
) -> Path:
    """Gate the environment and produce the binary.

    Raises:
        PreconditionFailure: If a runtime precondition is missing.
        BuildFailure: If the binary could not be produced.
    """
    gate = wiring.gate_environment(scenarios, components, build=options.build)
    for warning in gate.warnings:
        console.warning(warning)
    console.success("Environment ready")

    console.info("Preparing measure-capture binary...")
    binary = wiring.build_binary(scenarios, components)
    console.success(f"Binary: {binary}")
    return binary


def run_scenarios(
    scenarios: Sequence[ScenarioDefinition],
    binary: Path,
    components: wiring.Components,
    options: wiring.SuiteOptions,
) -> list[ScenarioResult]:
    """Run every scenario in order and judge each one as soon as it ends."""
    results: list[ScenarioResult] = []
    prior: dict[str, RunArtifact | None] = {}
    total = len(scenarios)
    # scenario started but not yet recorded, and its artifact once it ran
    pending: ScenarioDefinition | None = None
    artifact: RunArtifact | None = None

    try:
        for index, scenario in enumerate(scenarios, start=1):
            pending, artifact = scenario, None
            console.step(index, total, scenario.name)
            blocked = wiring.check_scenario(scenario, prior, components)
            if blocked is not None:
                reason, message = blocked
                prior[scenario.name] = None
                result = wiring.skip_scenario(scenario, reason, message)
            else:
                artifact = wiring.run_scenario(scenario, binary, components, options)
                prior[scenario.name] = artifact
                result = wiring.judge_scenario(scenario, artifact)
            results.append(result)
            pending = None
            _show(result)
    except ScenarioCancelled as exc:
        logger.warning("Suite interrupted during %s", exc.artifact.scenario)
        console.warning(f"Interrupted during {exc.artifact.scenario}")
        if pending is not None:
            results.append(wiring.judge_scenario(pending, exc.artifact))
    except KeyboardInterrupt:
        console.warning("Interrupted")
        if pending is None:
            logger.warning("Suite interrupted after %d of %d scenarios", len(results), total)
        elif artifact is None:
            logger.warning("Suite interrupted before %s launched", pending.name)
        else:
            logger.warning("Suite interrupted while judging %s", pending.name)
            results.append(wiring.cancel_scenario(pending, artifact))

    for scenario in scenarios[len(results):]:
        results.append(
            wiring.skip_scenario(
                scenario,
                InconclusiveReason.CANCELLED,
                "suite was interrupted before this scenario completed",
            )
        )
    return results


def run_suite(
    scenarios: Sequence[ScenarioDefinition],
    components: wiring.Components,
    options: wiring.SuiteOptions,
) -> SuiteReport:
    """Execute one full suite: gate, build, scenarios, report.

    Returns:
        The persisted SuiteReport.

    Raises:
        ProbeError: If the suite could not start.
    """
    console.suite_header(options.timestamp, str(options.results_dir))
    logger.info(
        "Suite %s: %s (captures=%d, source=%s)",
        options.timestamp,
        ", ".join(s.name for s in scenarios),
        options.captures,
        options.source_id,
    )

    binary = prepare(scenarios, components, options)
    results = run_scenarios(scenarios, binary, components, options)

    report = wiring.record_suite(results, components, options)
    tally = wiring.verdict_counts(report)
    console.suite_result(
        report.verdict.value,
        tally[Verdict.PASS],
        tally[Verdict.FAIL],
        tally[Verdict.INCONCLUSIVE],
        report.exit_status,
    )
    for path in report.summary_paths:
        console.step_detail(f"summary: {path}")
    if not report.summary_paths:
        console.error(f"Summary could not be written to {options.results_dir}")
    logger.info("Suite %s finished: %s", options.timestamp, report.verdict.value)
    return report
