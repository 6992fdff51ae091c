"""Metric extractor — parse tool-specific output into typed metrics.

Each strategy is a pure function over a RunArtifact. A metric that cannot be
read is reported as a MissingMetric with a reason, never defaulted to a
passing value, and never prevents its siblings from being extracted.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from domain.models import (
    ExtractedMetric,
    Extraction,
    MissingMetric,
    OutputKind,
    Unit,
)

if TYPE_CHECKING:
    from domain.models import DocumentField, RunArtifact, ScenarioDefinition

logger = logging.getLogger("capture_probe.extractor")

BYTES_PER_MB = 1_000_000

_HEAP_RECORD = re.compile(r"mem_heap_B=(\d+)")
_DEFINITELY_LOST = re.compile(r"definitely lost:[ \t]*([^\s]*)")
_POSSIBLY_LOST = re.compile(r"possibly lost:[ \t]*([^\s]*)")
_LEAK_CHECK_DONE = re.compile(
    r"LEAK SUMMARY:|All heap blocks were freed -- no leaks are possible"
)
_DOCUMENT_START = re.compile(r"^[ \t]*\{", re.MULTILINE)


def extract(artifact: RunArtifact, scenario: ScenarioDefinition) -> Extraction:
    """Extract every metric the scenario's output kind can yield.

    Args:
        artifact: Captured output of one scenario execution.
        scenario: The scenario that produced it; selects the strategy.

    Returns:
        An ``Extraction`` with the metrics that were read and the ones that
        were not.
    """
    if scenario.output_kind is OutputKind.HEAP_SNAPSHOT:
        result = extract_heap_peak(artifact)
    elif scenario.output_kind is OutputKind.LEAK_SUMMARY:
        result = extract_leak_summary(artifact)
    else:
        result = extract_document_fields(artifact, scenario.fields, scenario.success_key)

    for gap in result.missing:
        logger.warning("%s: %s missing (%s)", artifact.scenario, gap.name, gap.reason)
    return result


# ---------------------------------------------------------------------------
# Heap-snapshot log
# ---------------------------------------------------------------------------


def extract_heap_peak(artifact: RunArtifact) -> Extraction:
    """Peak heap in whole MB across all ``mem_heap_B=`` snapshot records."""
    text, source = _profiler_text(artifact)
    sizes = [int(m.group(1)) for m in _HEAP_RECORD.finditer(text)]
    if not sizes:
        return Extraction(
            metrics=(),
            missing=(MissingMetric(name="peak_heap", reason="no heap snapshot records"),),
        )
    peak_mb = max(sizes) // BYTES_PER_MB
    logger.debug("%s: %d snapshots, peak %d MB", artifact.scenario, len(sizes), peak_mb)
    return Extraction(
        metrics=(
            ExtractedMetric(
                name="peak_heap",
                value=float(peak_mb),
                unit=Unit.MEGABYTES,
                source=source,
            ),
        )
    )


# ---------------------------------------------------------------------------
# Leak-summary log
# ---------------------------------------------------------------------------


def extract_leak_summary(artifact: RunArtifact) -> Extraction:
    """Definitely/possibly lost byte counts from a leak-check report.

    Without a completed leak-check marker both counts are missing. With the
    marker, an absent label means the profiler had nothing to report for it.
    """
    text, source = _profiler_text(artifact)
    if not _LEAK_CHECK_DONE.search(text):
        reason = "no completed leak-check summary"
        return Extraction(
            metrics=(),
            missing=(
                MissingMetric(name="definitely_lost", reason=reason),
                MissingMetric(name="possibly_lost", reason=reason),
            ),
        )

    metrics: list[ExtractedMetric] = []
    missing: list[MissingMetric] = []
    for name, pattern in (
        ("definitely_lost", _DEFINITELY_LOST),
        ("possibly_lost", _POSSIBLY_LOST),
    ):
        count = _last_byte_count(pattern, text)
        if isinstance(count, str):
            missing.append(MissingMetric(name=name, reason=count))
            continue
        metrics.append(
            ExtractedMetric(name=name, value=float(count), unit=Unit.BYTES, source=source)
        )
    return Extraction(metrics=tuple(metrics), missing=tuple(missing))


def _last_byte_count(pattern: re.Pattern[str], text: str) -> int | str:
    """Return the last labelled count, 0 if the label is absent, or an error string."""
    matches = pattern.findall(text)
    if not matches:
        return 0
    raw = matches[-1].replace(",", "")
    if not raw.isdigit():
        return f"unparseable count {matches[-1]!r}"
    return int(raw)


# ---------------------------------------------------------------------------
# Structured metric document
# ---------------------------------------------------------------------------


def extract_document_fields(
    artifact: RunArtifact,
    fields: tuple[DocumentField, ...],
    success_key: str = "",
) -> Extraction:
    """Read declared fields from the JSON document the binary printed.

    When *success_key* is given and the document does not report ``true``
    for it, every field is missing: the binary zeroes its timings when the
    flow it measures did not complete.
    """
    document, problem = find_document(artifact.output)
    if document is None:
        return Extraction(
            metrics=(),
            missing=tuple(MissingMetric(name=f.metric, reason=problem) for f in fields),
        )
    if success_key and document.get(success_key) is not True:
        reason = f"run reported {success_key}={json.dumps(document.get(success_key))}"
        return Extraction(
            metrics=(),
            missing=tuple(MissingMetric(name=f.metric, reason=reason) for f in fields),
        )

    metrics: list[ExtractedMetric] = []
    missing: list[MissingMetric] = []
    for f in fields:
        value = document.get(f.key)
        if value is None:
            missing.append(MissingMetric(name=f.metric, reason=f"field {f.key!r} absent"))
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            missing.append(
                MissingMetric(name=f.metric, reason=f"field {f.key!r} is not numeric: {value!r}")
            )
        else:
            metrics.append(
                ExtractedMetric(
                    name=f.metric,
                    value=float(value),
                    unit=f.unit,
                    source=artifact.output_path,
                )
            )
    return Extraction(metrics=tuple(metrics), missing=tuple(missing))


def find_document(text: str) -> tuple[dict[str, object] | None, str]:
    """Locate the first JSON object embedded in mixed stdout/stderr text.

    Returns:
        ``(document, "")`` on success, ``(None, reason)`` otherwise.
    """
    decoder = json.JSONDecoder()
    starts = [m.end() - 1 for m in _DOCUMENT_START.finditer(text)]
    if not starts:
        return None, "no structured document in output"
    for start in starts:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value, ""
    return None, "malformed or truncated structured document"


def _profiler_text(artifact: RunArtifact) -> tuple[str, str]:
    """Text to scan and the path it came from."""
    if artifact.profile_log_path is not None:
        return artifact.profile_output, artifact.profile_log_path
    return artifact.output, artifact.output_path
