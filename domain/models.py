"""Core data types for capture-probe.

All types are frozen dataclasses with complete type annotations.
This module has ZERO imports from outside the Python standard library.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Verdict(Enum):
    """Classification of a metric, scenario, or suite."""

    PASS = "pass"
    FAIL = "fail"
    INCONCLUSIVE = "inconclusive"


class OutputKind(Enum):
    """What a scenario's captured output is expected to contain."""

    STRUCTURED = "structured"
    HEAP_SNAPSHOT = "heap-snapshot"
    LEAK_SUMMARY = "leak-summary"


class Comparison(Enum):
    """Numeric predicate applied between a metric and its limit."""

    LESS_THAN = "less-than"
    AT_MOST = "at-most"
    EQUALS_ZERO = "equals-zero"


class Dimension(Enum):
    """Physical dimension of a unit."""

    BYTES = "bytes"
    TIME = "time"
    COUNT = "count"


class Unit(Enum):
    """Measurement units understood by the evaluator.

    Megabytes are decimal: 1 MB = 1,000,000 B.
    """

    BYTES = "B"
    KILOBYTES = "KB"
    MEGABYTES = "MB"
    MILLISECONDS = "ms"
    SECONDS = "s"
    COUNT = "count"

    @property
    def suffix(self) -> str:
        """Text appended to a number; counts are shown bare."""
        return "" if self is Unit.COUNT else self.value

    @property
    def dimension(self) -> Dimension:
        return _UNIT_TABLE[self][0]

    @property
    def factor(self) -> float:
        """Multiplier converting a value in this unit to its base unit."""
        return _UNIT_TABLE[self][1]


_UNIT_TABLE: dict[Unit, tuple[Dimension, float]] = {
    Unit.BYTES: (Dimension.BYTES, 1.0),
    Unit.KILOBYTES: (Dimension.BYTES, 1_000.0),
    Unit.MEGABYTES: (Dimension.BYTES, 1_000_000.0),
    Unit.MILLISECONDS: (Dimension.TIME, 0.001),
    Unit.SECONDS: (Dimension.TIME, 1.0),
    Unit.COUNT: (Dimension.COUNT, 1.0),
}


class LaunchStatus(Enum):
    """How a scenario subprocess ended (or failed to)."""

    EXITED = "exited"
    TIMED_OUT = "timed-out"
    LAUNCH_FAILED = "launch-failed"
    CANCELLED = "cancelled"


class InconclusiveReason(Enum):
    """Why a scenario could not produce a definite verdict."""

    TIMEOUT = "timeout"
    LAUNCH_FAILURE = "launch-failure"
    PRECEDED_BY_FAILURE = "preceded-by-failure"
    NOT_CONFIRMED = "not-confirmed"
    MISSING_METRIC = "missing-metric"
    CANCELLED = "cancelled"


class PreconditionKind(Enum):
    """Category of an environment precondition."""

    TOOL = "tool"
    ENV = "env"


# ---------------------------------------------------------------------------
# Catalog types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricThreshold:
    """A fixed acceptance limit on one extracted metric."""

    metric: str
    comparison: Comparison
    limit: float
    unit: Unit

    def describe(self) -> str:
        """Render the threshold as ``metric < 200MB``."""
        if self.comparison is Comparison.EQUALS_ZERO:
            return f"{self.metric} == 0{self.unit.suffix}"
        op = "<" if self.comparison is Comparison.LESS_THAN else "<="
        return f"{self.metric} {op} {format_number(self.limit)}{self.unit.suffix}"


@dataclass(frozen=True)
class DocumentField:
    """Mapping from a metric name to a key in a structured output document."""

    metric: str
    key: str
    unit: Unit


@dataclass(frozen=True)
class ProfilerSpec:
    """External diagnostic tool wrapped around a scenario invocation.

    ``args`` may contain the ``{profile_log}`` placeholder, which the runner
    replaces with the path of a dedicated log file.
    """

    tool: str
    args: tuple[str, ...]
    install_hint: str = ""


@dataclass(frozen=True)
class ScenarioDefinition:
    """Immutable descriptor of one measurement run.

    ``arguments`` may contain ``{captures}`` and ``{source_id}`` placeholders.
    ``success_key`` names a boolean field of the structured document; when
    set, the document fields are only trusted if that field is ``true``.
    """

    name: str
    subcommand: str
    arguments: tuple[str, ...]
    output_kind: OutputKind
    thresholds: tuple[MetricThreshold, ...]
    features: frozenset[str] = frozenset()
    fields: tuple[DocumentField, ...] = ()
    success_key: str = ""
    profiler: ProfilerSpec | None = None
    depends_on: tuple[str, ...] = ()
    requires_confirmation: bool = False
    confirmation_prompt: str = ""
    timeout_seconds: float = 120.0
    description: str = ""


@dataclass(frozen=True)
class Precondition:
    """A scenario-independent requirement checked before any measurement."""

    kind: PreconditionKind
    name: str
    hint: str


@dataclass(frozen=True)
class MissingPrecondition:
    """The first precondition that was not satisfied."""

    precondition: Precondition
    message: str


@dataclass(frozen=True)
class GateReport:
    """Outcome of the environment gate."""

    passed: bool
    failure: MissingPrecondition | None = None
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Run-time types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessOutcome:
    """Raw result of one subprocess execution from the ProcessPort."""

    status: LaunchStatus
    exit_code: int | None
    output: str
    duration_seconds: float
    error: str = ""


@dataclass(frozen=True)
class RunArtifact:
    """Captured output and timing of one scenario execution."""

    scenario: str
    command: tuple[str, ...]
    status: LaunchStatus
    exit_code: int | None
    output: str
    duration_seconds: float
    output_path: str
    profile_log_path: str | None = None
    profile_output: str = ""
    error: str = ""

    @property
    def succeeded(self) -> bool:
        """True when the subprocess ran to completion with exit code 0."""
        return self.status is LaunchStatus.EXITED and self.exit_code == 0


@dataclass(frozen=True)
class ExtractedMetric:
    """A numeric value read from a real artifact."""

    name: str
    value: float
    unit: Unit
    source: str


@dataclass(frozen=True)
class MissingMetric:
    """A metric that could not be extracted, with the reason."""

    name: str
    reason: str


@dataclass(frozen=True)
class Extraction:
    """Per-metric extraction outcome for one artifact."""

    metrics: tuple[ExtractedMetric, ...]
    missing: tuple[MissingMetric, ...] = ()

    def get(self, name: str) -> ExtractedMetric | None:
        """Return the metric called *name*, or None if it was not extracted."""
        for metric in self.metrics:
            if metric.name == name:
                return metric
        return None

    def missing_reason(self, name: str) -> str:
        for gap in self.missing:
            if gap.name == name:
                return gap.reason
        return "metric not extracted"


@dataclass(frozen=True)
class ThresholdResult:
    """Verdict of one metric against one threshold."""

    threshold: MetricThreshold
    verdict: Verdict
    metric: ExtractedMetric | None
    overage: float | None
    detail: str


@dataclass(frozen=True)
class ScenarioResult:
    """Everything known about one scenario after it was attempted."""

    scenario: str
    artifact: RunArtifact | None
    metrics: tuple[ExtractedMetric, ...]
    threshold_results: tuple[ThresholdResult, ...]
    verdict: Verdict
    reason: InconclusiveReason | None = None
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class SuiteReport:
    """Ordered scenario results plus the overall verdict."""

    results: tuple[ScenarioResult, ...]
    verdict: Verdict
    results_dir: str
    timestamp: str
    exit_status: int
    summary_paths: tuple[str, ...] = ()


def format_number(value: float) -> str:
    """Format *value* without a trailing ``.0`` for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
