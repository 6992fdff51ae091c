"""Shared pytest fixtures and test factories for capture-probe.

Provides:
- Fake port implementations (FileSystem, Process, Builder, Confirmation)
- Factory functions for domain models with sensible defaults
- Output builders that mimic what measure-capture and valgrind print
- Pytest fixtures wrapping the most commonly used fakes
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from domain.errors import BuildFailure
from domain.models import (
    Comparison,
    ExtractedMetric,
    LaunchStatus,
    MetricThreshold,
    OutputKind,
    ProcessOutcome,
    RunArtifact,
    ScenarioDefinition,
    ScenarioResult,
    Unit,
    Verdict,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from domain.models import InconclusiveReason, ThresholdResult


# ── Fake Port Implementations ─────────────────────────────────────────────


class InMemoryFileSystem:
    """Stateful in-memory FileSystemPort.

    Tracks file contents and directory creation.
    Useful when tests need to verify file system side effects.
    """

    def __init__(self) -> None:
        self._files: dict[str, str] = {}
        self.created_dirs: set[str] = set()

    def list_names(self, path: str) -> list[str]:
        """Names of the files stored directly under *path*."""
        prefix = path.rstrip("/") + "/"
        names = (p[len(prefix) :] for p in self._files if p.startswith(prefix))
        return sorted(name for name in names if "/" not in name)

    def content(self, path: str) -> str:
        """Stored content of *path*, for assertions."""
        return self._files[path]

    def write_file(self, path: str, content: str) -> None:
        """Write file content to memory."""
        self._files[path] = content

    def file_exists(self, path: str) -> bool:
        """Check if a file exists in memory."""
        return path in self._files

    def make_directory(self, path: str) -> None:
        """Record that a directory was created."""
        self.created_dirs.add(path)

    @property
    def paths(self) -> list[str]:
        return sorted(self._files)


@dataclass
class FakeRun:
    """Scripted outcome of one fake subprocess launch."""

    output: str = ""
    exit_code: int | None = 0
    status: LaunchStatus = LaunchStatus.EXITED
    profile_output: str = ""
    duration_seconds: float = 0.25
    error: str = ""
    interrupt: bool = False


_PROFILE_LOG_FLAGS = ("--massif-out-file=", "--log-file=")


@dataclass
class FakeProcess:
    """ProcessPort that replays scripted runs keyed by scenario name.

    The scenario is recognised from the output file name
    (``<scenario>-<timestamp>.log``). Output and profiler logs are written to
    the real paths the runner chose, so tests should use ``tmp_path`` as
    the results directory.
    """

    runs: dict[str, FakeRun] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    timeouts: list[float] = field(default_factory=list)

    def _lookup(self, output_path: Path) -> FakeRun:
        for name in sorted(self.runs, key=len, reverse=True):
            if output_path.name.startswith(f"{name}-"):
                return self.runs[name]
        return FakeRun()

    def run(
        self,
        command: Sequence[str],
        output_path: Path,
        timeout: float,
        env: Mapping[str, str] | None = None,
    ) -> ProcessOutcome:
        self.calls.append(tuple(command))
        self.timeouts.append(timeout)
        scripted = self._lookup(output_path)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(scripted.output)
        for arg in command:
            if arg.startswith(_PROFILE_LOG_FLAGS) and scripted.profile_output:
                Path(arg.split("=", 1)[1]).write_text(scripted.profile_output)

        if scripted.interrupt:
            raise KeyboardInterrupt
        return ProcessOutcome(
            status=scripted.status,
            exit_code=scripted.exit_code,
            output=scripted.output,
            duration_seconds=scripted.duration_seconds,
            error=scripted.error,
        )


class FakeBuilder:
    """BuilderPort that records requested features and never runs cargo."""

    def __init__(self, path: str = "/opt/probe/measure-capture", *, fail: str = "") -> None:
        self.path = Path(path)
        self.fail = fail
        self.requested: list[set[str]] = []

    def build(self, required_features: set[str]) -> Path:
        self.requested.append(set(required_features))
        if self.fail:
            raise BuildFailure(self.fail, output="error[E0425]: cannot find value")
        return self.path


class RecordingConfirmation:
    """ConfirmationPort that answers a fixed value and records who asked."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.asked: list[str] = []

    def __call__(self, scenario: ScenarioDefinition) -> bool:
        self.asked.append(scenario.name)
        return self.answer


WAYLAND_ENV = {
    "WAYLAND_DISPLAY": "wayland-0",
    "DBUS_SESSION_BUS_ADDRESS": "unix:path=/run/user/1000/bus",
    "XDG_SESSION_TYPE": "wayland",
}


def which_all(name: str) -> str | None:
    """Executable resolver that finds every tool."""
    return f"/usr/bin/{name}"


def which_none(name: str) -> str | None:
    """Executable resolver that finds nothing."""
    return None


# ── Output Builders ───────────────────────────────────────────────────────


def structured_output(**fields: object) -> str:
    """Mixed progress text plus the pretty-printed JSON measure-capture emits."""
    document = json.dumps(fields, indent=2)
    return f"Starting measurement...\nCapture 1/10 done\n{document}\nDone.\n"


def massif_log(*heap_sizes: int) -> str:
    """A Massif output file with one snapshot per heap size."""
    lines = ["desc: --massif-out-file=x", "cmd: measure-capture", "time_unit: i"]
    for index, size in enumerate(heap_sizes):
        lines += [
            "#-----------",
            f"snapshot={index}",
            "#-----------",
            f"time={index * 1000}",
            f"mem_heap_B={size}",
            "mem_heap_extra_B=0",
            "mem_stacks_B=0",
            "heap_tree=empty",
        ]
    return "\n".join(lines) + "\n"


def memcheck_log(definitely: str = "0", possibly: str = "0") -> str:
    """A Memcheck log with a LEAK SUMMARY section."""
    return (
        "==4242== Memcheck, a memory error detector\n"
        "==4242== HEAP SUMMARY:\n"
        "==4242==     in use at exit: 2,048 bytes in 4 blocks\n"
        "==4242== LEAK SUMMARY:\n"
        f"==4242==    definitely lost: {definitely} bytes in 0 blocks\n"
        "==4242==    indirectly lost: 0 bytes in 0 blocks\n"
        f"==4242==      possibly lost: {possibly} bytes in 1 blocks\n"
        "==4242==    still reachable: 1,024 bytes in 3 blocks\n"
        "==4242== ERROR SUMMARY: 0 errors from 0 contexts\n"
    )


def passing_runs() -> dict[str, FakeRun]:
    """Scripted runs under which every default scenario passes."""
    batch = structured_output(total_captures=10, successful=10, failed=0, p95_ms=850.0)
    return {
        "prime-consent": FakeRun(output=structured_output(duration_ms=1800, success=True)),
        "headless-batch": FakeRun(output=batch),
        "token-rotation": FakeRun(
            output=structured_output(total_captures=10, successful=10, failed=0, p95_ms=42.5)
        ),
        "memory-peak": FakeRun(output=batch, profile_output=massif_log(1_000_000, 52_000_000)),
        "memory-leak": FakeRun(output=batch, profile_output=memcheck_log()),
    }


# ── Factory Functions ─────────────────────────────────────────────────────


def make_threshold(
    metric: str = "peak_heap",
    comparison: Comparison = Comparison.LESS_THAN,
    limit: float = 200.0,
    unit: Unit = Unit.MEGABYTES,
) -> MetricThreshold:
    """Create a MetricThreshold with sensible defaults."""
    return MetricThreshold(metric=metric, comparison=comparison, limit=limit, unit=unit)


def make_metric(
    name: str = "peak_heap",
    value: float = 120.0,
    unit: Unit = Unit.MEGABYTES,
    source: str = "perf-results/memory-peak.log",
) -> ExtractedMetric:
    """Create an ExtractedMetric with sensible defaults."""
    return ExtractedMetric(name=name, value=value, unit=unit, source=source)


def make_scenario(
    name: str = "probe",
    *,
    output_kind: OutputKind = OutputKind.STRUCTURED,
    thresholds: tuple[MetricThreshold, ...] = (),
    depends_on: tuple[str, ...] = (),
    requires_confirmation: bool = False,
    timeout_seconds: float = 30.0,
    **kwargs: object,
) -> ScenarioDefinition:
    """Create a ScenarioDefinition with sensible defaults."""
    return ScenarioDefinition(
        name=name,
        subcommand=str(kwargs.pop("subcommand", name)),
        arguments=tuple(kwargs.pop("arguments", ("{source_id}",))),  # type: ignore[call-overload]
        output_kind=output_kind,
        thresholds=thresholds,
        depends_on=depends_on,
        requires_confirmation=requires_confirmation,
        timeout_seconds=timeout_seconds,
        **kwargs,  # type: ignore[arg-type]
    )


def make_artifact(
    scenario: str = "probe",
    *,
    output: str = "",
    exit_code: int | None = 0,
    status: LaunchStatus = LaunchStatus.EXITED,
    profile_output: str = "",
    profile_log_path: str | None = None,
    duration_seconds: float = 1.5,
    error: str = "",
) -> RunArtifact:
    """Create a RunArtifact with sensible defaults."""
    return RunArtifact(
        scenario=scenario,
        command=("measure-capture", scenario),
        status=status,
        exit_code=exit_code,
        output=output,
        duration_seconds=duration_seconds,
        output_path=f"perf-results/{scenario}-20260101-120000.log",
        profile_log_path=profile_log_path,
        profile_output=profile_output,
        error=error,
    )


def make_result(
    scenario: str = "probe",
    verdict: Verdict = Verdict.PASS,
    *,
    artifact: RunArtifact | None = None,
    metrics: tuple[ExtractedMetric, ...] = (),
    threshold_results: tuple[ThresholdResult, ...] = (),
    reason: InconclusiveReason | None = None,
    notes: tuple[str, ...] = (),
) -> ScenarioResult:
    """Create a ScenarioResult with sensible defaults."""
    return ScenarioResult(
        scenario=scenario,
        artifact=artifact,
        metrics=metrics,
        threshold_results=threshold_results,
        verdict=verdict,
        reason=reason,
        notes=notes,
    )


# ── Pytest Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def in_memory_fs() -> InMemoryFileSystem:
    """Provide a fresh InMemoryFileSystem."""
    return InMemoryFileSystem()


@pytest.fixture
def fake_process() -> FakeProcess:
    """Provide a FakeProcess under which every default scenario passes."""
    return FakeProcess(runs=passing_runs())


@pytest.fixture
def fake_builder() -> FakeBuilder:
    """Provide a FakeBuilder that always succeeds."""
    return FakeBuilder()
