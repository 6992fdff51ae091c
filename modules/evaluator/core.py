"""Threshold evaluator — compare extracted metrics to acceptance limits.

Units are reconciled before comparing: both sides are normalized to the base
unit of their dimension, and the result is reported in the threshold's unit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domain.models import (
    Comparison,
    InconclusiveReason,
    LaunchStatus,
    ScenarioResult,
    ThresholdResult,
    Verdict,
    format_number,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from domain.models import (
        ExtractedMetric,
        Extraction,
        MetricThreshold,
        RunArtifact,
        ScenarioDefinition,
        Unit,
    )

logger = logging.getLogger("capture_probe.evaluator")

# Float noise from unit conversion (e.g. 0.1 s -> 100.00000000000001 ms).
_PRECISION = 9


def convert(value: float, from_unit: Unit, to_unit: Unit) -> float:
    """Convert *value* between two units of the same dimension.

    Raises:
        ValueError: If the units measure different dimensions.
    """
    if from_unit.dimension is not to_unit.dimension:
        msg = f"cannot compare {from_unit.value} with {to_unit.value}"
        raise ValueError(msg)
    return round(value * from_unit.factor / to_unit.factor, _PRECISION)


def evaluate(
    metric: ExtractedMetric | None,
    threshold: MetricThreshold,
    missing_reason: str = "metric not extracted",
) -> ThresholdResult:
    """Judge one metric against one threshold.

    Args:
        metric: The extracted metric, or None if extraction failed.
        threshold: The acceptance limit.
        missing_reason: Why the metric is absent, for the report.

    Returns:
        A ``ThresholdResult``; failing results carry the overage in the
        threshold's unit.
    """
    if metric is None:
        return ThresholdResult(
            threshold=threshold,
            verdict=Verdict.INCONCLUSIVE,
            metric=None,
            overage=None,
            detail=f"{threshold.metric}: inconclusive ({missing_reason})",
        )

    value = convert(metric.value, metric.unit, threshold.unit)
    unit = threshold.unit.suffix
    shown = f"{threshold.metric} = {format_number(value)}{unit}"

    if threshold.comparison is Comparison.EQUALS_ZERO:
        holds = value == 0
        overage = value
    elif threshold.comparison is Comparison.LESS_THAN:
        holds = value < threshold.limit
        overage = round(value - threshold.limit, _PRECISION)
    else:
        holds = value <= threshold.limit
        overage = round(value - threshold.limit, _PRECISION)

    if holds:
        return ThresholdResult(
            threshold=threshold,
            verdict=Verdict.PASS,
            metric=metric,
            overage=None,
            detail=f"{shown} (limit {threshold.describe()})",
        )

    logger.info("Threshold breached: %s, exceeded by %s%s", shown, format_number(overage), unit)
    return ThresholdResult(
        threshold=threshold,
        verdict=Verdict.FAIL,
        metric=metric,
        overage=overage,
        detail=f"{shown}, exceeded by {format_number(overage)}{unit} (limit {threshold.describe()})",
    )


def scenario_verdict(
    threshold_results: Sequence[ThresholdResult],
    *,
    exited_cleanly: bool,
) -> Verdict:
    """Combine threshold verdicts into the scenario verdict.

    Any ``fail`` wins over ``inconclusive``; a scenario without thresholds
    passes only if its subprocess exited 0.
    """
    if not threshold_results:
        return Verdict.PASS if exited_cleanly else Verdict.FAIL
    verdicts = {r.verdict for r in threshold_results}
    if Verdict.FAIL in verdicts:
        return Verdict.FAIL
    if Verdict.INCONCLUSIVE in verdicts:
        return Verdict.INCONCLUSIVE
    return Verdict.PASS


_STATUS_REASONS = {
    LaunchStatus.TIMED_OUT: (InconclusiveReason.TIMEOUT, "scenario timed out"),
    LaunchStatus.LAUNCH_FAILED: (InconclusiveReason.LAUNCH_FAILURE, "scenario could not be launched"),
    LaunchStatus.CANCELLED: (InconclusiveReason.CANCELLED, "scenario was cancelled"),
}


def evaluate_scenario(
    scenario: ScenarioDefinition,
    artifact: RunArtifact,
    extraction: Extraction,
) -> ScenarioResult:
    """Judge every threshold of *scenario* against one run's extraction.

    A run that did not exit on its own (timeout, launch failure, cancel) is
    inconclusive regardless of what partial output it left. A non-zero exit
    code is recorded as a note; thresholds decide the verdict.
    """
    if artifact.status in _STATUS_REASONS:
        reason, message = _STATUS_REASONS[artifact.status]
        detail = f"{message}: {artifact.error}" if artifact.error else message
        return ScenarioResult(
            scenario=scenario.name,
            artifact=artifact,
            metrics=(),
            threshold_results=tuple(evaluate(None, t, message) for t in scenario.thresholds),
            verdict=Verdict.INCONCLUSIVE,
            reason=reason,
            notes=(detail,),
        )

    results = tuple(
        evaluate(extraction.get(t.metric), t, extraction.missing_reason(t.metric))
        for t in scenario.thresholds
    )
    verdict = scenario_verdict(results, exited_cleanly=artifact.exit_code == 0)

    notes: list[str] = []
    if artifact.exit_code != 0:
        notes.append(f"exited with code {artifact.exit_code}")
    judged = {t.metric for t in scenario.thresholds}
    notes.extend(
        f"{gap.name} not extracted ({gap.reason})"
        for gap in extraction.missing
        if gap.name not in judged
    )

    return ScenarioResult(
        scenario=scenario.name,
        artifact=artifact,
        metrics=extraction.metrics,
        threshold_results=results,
        verdict=verdict,
        reason=InconclusiveReason.MISSING_METRIC if verdict is Verdict.INCONCLUSIVE else None,
        notes=tuple(notes),
    )


def _unjudged(
    scenario: ScenarioDefinition,
    artifact: RunArtifact | None,
    reason: InconclusiveReason,
    message: str,
) -> ScenarioResult:
    return ScenarioResult(
        scenario=scenario.name,
        artifact=artifact,
        metrics=(),
        threshold_results=tuple(evaluate(None, t, message) for t in scenario.thresholds),
        verdict=Verdict.INCONCLUSIVE,
        reason=reason,
        notes=(message,),
    )


def not_run(
    scenario: ScenarioDefinition,
    reason: InconclusiveReason,
    message: str,
) -> ScenarioResult:
    """Inconclusive result for a scenario whose subprocess never launched."""
    return _unjudged(scenario, None, reason, message)


def interrupted(
    scenario: ScenarioDefinition,
    artifact: RunArtifact,
    message: str,
) -> ScenarioResult:
    """Cancelled result for a scenario that finished but was never judged.

    The artifact is kept so the raw log still shows up in the report.
    """
    return _unjudged(scenario, artifact, InconclusiveReason.CANCELLED, message)
