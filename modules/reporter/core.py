"""Reporter module — aggregate scenario results into the suite verdict.

Builds the SuiteReport, renders the human-readable summary and persists it
next to the raw artifacts as ``summary-<timestamp>.txt`` plus a
machine-readable ``summary-<timestamp>.json``.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING

from domain.models import SuiteReport, Verdict, format_number

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from domain.models import ScenarioResult, ThresholdResult
    from domain.ports import FileSystemPort

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_NOT_STARTED = 2


def finalize(
    results: Sequence[ScenarioResult],
    results_dir: str,
    timestamp: str,
) -> SuiteReport:
    """Combine ordered scenario results into a SuiteReport.

    The suite passes only if every scenario passed; an empty result list
    cannot pass.
    """
    passed = bool(results) and all(r.verdict is Verdict.PASS for r in results)
    verdict = Verdict.PASS if passed else Verdict.FAIL
    return SuiteReport(
        results=tuple(results),
        verdict=verdict,
        results_dir=results_dir,
        timestamp=timestamp,
        exit_status=EXIT_PASS if passed else EXIT_FAIL,
    )


def counts(report: SuiteReport) -> dict[Verdict, int]:
    """Number of scenarios per verdict, in Verdict declaration order."""
    tally = dict.fromkeys(Verdict, 0)
    for result in report.results:
        tally[result.verdict] += 1
    return tally


def _metric_line(tr: ThresholdResult) -> str:
    marker = {Verdict.PASS: "ok", Verdict.FAIL: "FAIL", Verdict.INCONCLUSIVE: "??"}[tr.verdict]
    return f"    [{marker}] {tr.detail}"


def render_summary(report: SuiteReport) -> str:
    """Render the human-readable summary text."""
    lines = [
        f"capture-probe summary {report.timestamp}",
        f"results: {report.results_dir}",
        "",
    ]
    for result in report.results:
        header = f"{result.scenario}: {result.verdict.value.upper()}"
        if result.reason is not None:
            header += f" ({result.reason.value})"
        lines.append(header)
        lines.extend(_metric_line(tr) for tr in result.threshold_results)

        reported = {tr.threshold.metric for tr in result.threshold_results}
        for metric in result.metrics:
            if metric.name not in reported:
                lines.append(
                    f"    [--] {metric.name} = {format_number(metric.value)}{metric.unit.suffix}"
                )
        lines.extend(f"    note: {note}" for note in result.notes)
        if result.artifact is not None:
            duration = f"{result.artifact.duration_seconds:.1f}s"
            lines.append(f"    log: {result.artifact.output_path} ({duration})")
            if result.artifact.profile_log_path:
                lines.append(f"    profile: {result.artifact.profile_log_path}")
        lines.append("")

    tally = counts(report)
    lines.append(
        f"SUITE {report.verdict.value.upper()}: "
        f"{tally[Verdict.PASS]} passed, {tally[Verdict.FAIL]} failed, "
        f"{tally[Verdict.INCONCLUSIVE]} inconclusive (exit {report.exit_status})"
    )
    return "\n".join(lines) + "\n"


def _threshold_to_dict(tr: ThresholdResult) -> dict[str, object]:
    return {
        "metric": tr.threshold.metric,
        "threshold": tr.threshold.describe(),
        "verdict": tr.verdict.value,
        "value": tr.metric.value if tr.metric is not None else None,
        "unit": tr.metric.unit.value if tr.metric is not None else None,
        "overage": tr.overage,
        "overage_unit": tr.threshold.unit.value if tr.overage is not None else None,
        "detail": tr.detail,
    }


def report_to_dict(report: SuiteReport) -> dict[str, object]:
    """Convert a SuiteReport to a JSON-serializable dict."""
    scenarios: list[dict[str, object]] = []
    for result in report.results:
        artifact = result.artifact
        scenarios.append(
            {
                "scenario": result.scenario,
                "verdict": result.verdict.value,
                "reason": result.reason.value if result.reason is not None else None,
                "metrics": [
                    {"name": m.name, "value": m.value, "unit": m.unit.value, "source": m.source}
                    for m in result.metrics
                ],
                "thresholds": [_threshold_to_dict(tr) for tr in result.threshold_results],
                "notes": list(result.notes),
                "artifact": None
                if artifact is None
                else {
                    "command": list(artifact.command),
                    "status": artifact.status.value,
                    "exit_code": artifact.exit_code,
                    "duration_seconds": round(artifact.duration_seconds, 3),
                    "output_path": artifact.output_path,
                    "profile_log_path": artifact.profile_log_path,
                    "error": artifact.error,
                },
            }
        )
    return {
        "timestamp": report.timestamp,
        "verdict": report.verdict.value,
        "exit_status": report.exit_status,
        "results_dir": report.results_dir,
        "scenarios": scenarios,
    }


def unique_timestamp(base: str, taken: Iterable[str]) -> str:
    """Return *base*, or *base* with a ``-N`` counter, that no file in *taken* uses.

    Raw logs, profiler logs and summaries all carry the suite timestamp as
    ``-<timestamp>.`` in their names.
    """
    names = list(taken)
    candidate = base
    counter = 1
    while any(f"-{candidate}." in name for name in names):
        counter += 1
        candidate = f"{base}-{counter}"
    return candidate


def persist(report: SuiteReport, fs: FileSystemPort) -> SuiteReport:
    """Write the text and JSON summaries into the results directory.

    An existing summary is never overwritten: the new files get a ``-N``
    counter after the timestamp instead.

    Returns:
        A copy of *report* with ``summary_paths`` filled in.
    """
    fs.make_directory(report.results_dir)
    summaries = [n for n in fs.list_names(report.results_dir) if n.startswith("summary-")]
    stem = unique_timestamp(report.timestamp, summaries)
    text_path = f"{report.results_dir}/summary-{stem}.txt"
    json_path = f"{report.results_dir}/summary-{stem}.json"

    fs.write_file(text_path, render_summary(report))
    content = json.dumps(report_to_dict(report), indent=2, ensure_ascii=False) + "\n"
    fs.write_file(json_path, content)

    return dataclasses.replace(report, summary_paths=(text_path, json_path))
