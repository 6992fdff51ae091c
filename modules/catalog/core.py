"""Scenario catalog — the declarative table of scenarios and thresholds.

The order of ``DEFAULT_CATALOG`` is the execution order. Later scenarios may
rely on state left by earlier ones (the consent token written by
``prime-consent``) and declare that through ``depends_on``.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from domain.errors import ConfigError
from domain.models import (
    Comparison,
    DocumentField,
    MetricThreshold,
    OutputKind,
    Precondition,
    PreconditionKind,
    ProfilerSpec,
    ScenarioDefinition,
    Unit,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger("capture_probe.catalog")

# ---------------------------------------------------------------------------
# Acceptance thresholds
# ---------------------------------------------------------------------------

PRIME_CONSENT_MAX_S = 5.0
CAPTURE_LATENCY_P95_MAX_S = 2.0
TOKEN_ROTATION_MAX_MS = 100.0
MEMORY_PEAK_MAX_MB = 200.0

BASE_FEATURES = frozenset({"perf-tests", "linux-wayland"})

VALGRIND_HINT = "Install with: sudo apt install valgrind"

MASSIF = ProfilerSpec(
    tool="valgrind",
    args=("--tool=massif", "--massif-out-file={profile_log}"),
    install_hint=VALGRIND_HINT,
)

MEMCHECK = ProfilerSpec(
    tool="valgrind",
    args=("--leak-check=full", "--log-file={profile_log}"),
    install_hint=VALGRIND_HINT,
)

# Session variables every scenario needs: the portal talks to the compositor
# over the session bus.
SESSION_PRECONDITIONS: tuple[Precondition, ...] = (
    Precondition(
        kind=PreconditionKind.ENV,
        name="WAYLAND_DISPLAY",
        hint="Run the suite from inside a live Wayland session (echo $WAYLAND_DISPLAY).",
    ),
    Precondition(
        kind=PreconditionKind.ENV,
        name="DBUS_SESSION_BUS_ADDRESS",
        hint="Start a D-Bus session bus; the desktop portal is unreachable without it.",
    ),
)

CARGO_PRECONDITION = Precondition(
    kind=PreconditionKind.TOOL,
    name="cargo",
    hint="Install the Rust toolchain from https://rustup.rs or pass --skip-build --binary PATH.",
)

_BATCH_FIELDS = (
    DocumentField(metric="p95_latency", key="p95_ms", unit=Unit.MILLISECONDS),
    DocumentField(metric="failed_captures", key="failed", unit=Unit.COUNT),
)

DEFAULT_CATALOG: tuple[ScenarioDefinition, ...] = (
    ScenarioDefinition(
        name="prime-consent",
        subcommand="prime-consent",
        arguments=("{source_id}",),
        output_kind=OutputKind.STRUCTURED,
        thresholds=(
            MetricThreshold(
                metric="consent_duration",
                comparison=Comparison.LESS_THAN,
                limit=PRIME_CONSENT_MAX_S,
                unit=Unit.SECONDS,
            ),
        ),
        features=BASE_FEATURES,
        fields=(
            DocumentField(metric="consent_duration", key="duration_ms", unit=Unit.MILLISECONDS),
        ),
        success_key="success",
        requires_confirmation=True,
        confirmation_prompt=(
            "A portal permission dialog will appear. Grant permission, "
            "then the flow time will be measured."
        ),
        timeout_seconds=120.0,
        description="Portal consent flow, stores a restore token",
    ),
    ScenarioDefinition(
        name="headless-batch",
        subcommand="headless-batch",
        arguments=("--captures", "{captures}", "{source_id}"),
        output_kind=OutputKind.STRUCTURED,
        thresholds=(
            MetricThreshold(
                metric="p95_latency",
                comparison=Comparison.LESS_THAN,
                limit=CAPTURE_LATENCY_P95_MAX_S,
                unit=Unit.SECONDS,
            ),
            MetricThreshold(
                metric="failed_captures",
                comparison=Comparison.EQUALS_ZERO,
                limit=0.0,
                unit=Unit.COUNT,
            ),
        ),
        features=BASE_FEATURES,
        fields=_BATCH_FIELDS,
        depends_on=("prime-consent",),
        timeout_seconds=300.0,
        description="Sequential captures without interaction, P95 latency",
    ),
    ScenarioDefinition(
        name="token-rotation",
        subcommand="token-rotation",
        arguments=("--captures", "{captures}", "{source_id}"),
        output_kind=OutputKind.STRUCTURED,
        thresholds=(
            MetricThreshold(
                metric="p95_rotation",
                comparison=Comparison.LESS_THAN,
                limit=TOKEN_ROTATION_MAX_MS,
                unit=Unit.MILLISECONDS,
            ),
        ),
        features=BASE_FEATURES,
        fields=(
            DocumentField(metric="p95_rotation", key="p95_ms", unit=Unit.MILLISECONDS),
            DocumentField(metric="failed_rotations", key="failed", unit=Unit.COUNT),
        ),
        depends_on=("prime-consent",),
        timeout_seconds=120.0,
        description="Restore-token rotation overhead",
    ),
    ScenarioDefinition(
        name="memory-peak",
        subcommand="headless-batch",
        arguments=("--captures", "{captures}", "{source_id}"),
        output_kind=OutputKind.HEAP_SNAPSHOT,
        thresholds=(
            MetricThreshold(
                metric="peak_heap",
                comparison=Comparison.LESS_THAN,
                limit=MEMORY_PEAK_MAX_MB,
                unit=Unit.MEGABYTES,
            ),
        ),
        features=BASE_FEATURES,
        profiler=MASSIF,
        depends_on=("prime-consent",),
        timeout_seconds=1800.0,
        description="Peak heap across sequential captures (Massif)",
    ),
    ScenarioDefinition(
        name="memory-leak",
        subcommand="headless-batch",
        arguments=("--captures", "{captures}", "{source_id}"),
        output_kind=OutputKind.LEAK_SUMMARY,
        thresholds=(
            MetricThreshold(
                metric="definitely_lost",
                comparison=Comparison.EQUALS_ZERO,
                limit=0.0,
                unit=Unit.BYTES,
            ),
        ),
        features=BASE_FEATURES,
        profiler=MEMCHECK,
        depends_on=("prime-consent",),
        timeout_seconds=1800.0,
        description="Leak check after sequential captures (Memcheck)",
    ),
)

# Metrics each text-scanning output kind produces, with their units.
PROFILER_METRICS: dict[OutputKind, tuple[tuple[str, Unit], ...]] = {
    OutputKind.HEAP_SNAPSHOT: (("peak_heap", Unit.MEGABYTES),),
    OutputKind.LEAK_SUMMARY: (
        ("definitely_lost", Unit.BYTES),
        ("possibly_lost", Unit.BYTES),
    ),
}


# ---------------------------------------------------------------------------
# Catalog queries
# ---------------------------------------------------------------------------


def scenario_names(catalog: Sequence[ScenarioDefinition]) -> list[str]:
    """Return scenario names in execution order."""
    return [s.name for s in catalog]


def declared_metrics(scenario: ScenarioDefinition) -> tuple[tuple[str, Unit], ...]:
    """Return ``(metric, unit)`` pairs the scenario's output can yield."""
    if scenario.output_kind is OutputKind.STRUCTURED:
        return tuple((f.metric, f.unit) for f in scenario.fields)
    return PROFILER_METRICS[scenario.output_kind]


def select(
    catalog: Sequence[ScenarioDefinition],
    names: Iterable[str] | None = None,
) -> tuple[ScenarioDefinition, ...]:
    """Filter the catalog by scenario name, keeping catalog order.

    Dependencies of a selected scenario are not added automatically; a
    dependent scenario whose prerequisite was filtered out fails fast.

    Raises:
        ConfigError: If a requested name is not in the catalog or nothing
            remains selected.
    """
    if names is None:
        return tuple(catalog)
    wanted = list(dict.fromkeys(names))
    if not wanted:
        return tuple(catalog)
    known = set(scenario_names(catalog))
    unknown = [n for n in wanted if n not in known]
    if unknown:
        msg = f"Unknown scenario(s): {', '.join(unknown)} (known: {', '.join(sorted(known))})"
        raise ConfigError(msg)
    return tuple(s for s in catalog if s.name in wanted)


def required_features(scenarios: Iterable[ScenarioDefinition]) -> set[str]:
    """Union of build feature flags needed by *scenarios*."""
    features: set[str] = set()
    for scenario in scenarios:
        features.update(scenario.features)
    return features


def required_preconditions(
    scenarios: Sequence[ScenarioDefinition],
    *,
    build: bool,
) -> tuple[Precondition, ...]:
    """Preconditions for running *scenarios*, in gate check order.

    Profiler tools come first, then the session variables, then the build
    toolchain when a build will be attempted.
    """
    ordered: list[Precondition] = []
    seen_tools: set[str] = set()
    for scenario in scenarios:
        profiler = scenario.profiler
        if profiler is None or profiler.tool in seen_tools:
            continue
        seen_tools.add(profiler.tool)
        ordered.append(
            Precondition(
                kind=PreconditionKind.TOOL,
                name=profiler.tool,
                hint=profiler.install_hint or f"Install {profiler.tool} and put it on PATH.",
            )
        )
    ordered.extend(SESSION_PRECONDITIONS)
    if build:
        ordered.append(CARGO_PRECONDITION)
    return tuple(ordered)


# ---------------------------------------------------------------------------
# Validation and overrides
# ---------------------------------------------------------------------------


def validate(catalog: Sequence[ScenarioDefinition]) -> None:
    """Check the catalog for structural defects.

    Raises:
        ConfigError: On duplicate names, forward or unknown dependencies,
            thresholds on metrics the output cannot yield, or thresholds whose
            unit has a different dimension than the extracted metric.
    """
    seen: set[str] = set()
    for scenario in catalog:
        if scenario.name in seen:
            msg = f"Duplicate scenario name: {scenario.name}"
            raise ConfigError(msg)
        for dep in scenario.depends_on:
            if dep not in seen:
                msg = f"{scenario.name} depends on {dep}, which does not run before it"
                raise ConfigError(msg)
        seen.add(scenario.name)

        metrics = dict(declared_metrics(scenario))
        for threshold in scenario.thresholds:
            unit = metrics.get(threshold.metric)
            if unit is None:
                msg = f"{scenario.name}: threshold on unknown metric {threshold.metric}"
                raise ConfigError(msg)
            if unit.dimension is not threshold.unit.dimension:
                msg = (
                    f"{scenario.name}: metric {threshold.metric} is measured in "
                    f"{unit.value} but its threshold uses {threshold.unit.value}"
                )
                raise ConfigError(msg)


def apply_overrides(
    catalog: Sequence[ScenarioDefinition],
    *,
    timeouts: Mapping[str, float] | None = None,
    limits: Mapping[str, Mapping[str, float]] | None = None,
    timeout_scale: float = 1.0,
) -> tuple[ScenarioDefinition, ...]:
    """Return a new catalog with configured timeouts and threshold limits.

    Args:
        catalog: The base catalog.
        timeouts: Scenario name to timeout in seconds.
        limits: Scenario name to ``{metric: limit}`` in the threshold's unit.
        timeout_scale: Multiplier applied to every timeout after overrides.

    Raises:
        ConfigError: If an override names an unknown scenario or metric.
    """
    timeouts = dict(timeouts or {})
    limits = {k: dict(v) for k, v in (limits or {}).items()}
    if timeout_scale <= 0:
        msg = f"timeout scale must be positive, got {timeout_scale}"
        raise ConfigError(msg)

    known = set(scenario_names(catalog))
    for name in [*timeouts, *limits]:
        if name not in known:
            msg = f"Override for unknown scenario: {name}"
            raise ConfigError(msg)

    updated: list[ScenarioDefinition] = []
    for scenario in catalog:
        metric_limits = limits.get(scenario.name, {})
        threshold_names = {t.metric for t in scenario.thresholds}
        for metric in metric_limits:
            if metric not in threshold_names:
                msg = f"Override for unknown threshold: {scenario.name}.{metric}"
                raise ConfigError(msg)
        thresholds = tuple(
            dataclasses.replace(t, limit=float(metric_limits[t.metric]))
            if t.metric in metric_limits
            else t
            for t in scenario.thresholds
        )
        timeout = float(timeouts.get(scenario.name, scenario.timeout_seconds)) * timeout_scale
        updated.append(dataclasses.replace(scenario, thresholds=thresholds, timeout_seconds=timeout))
        if scenario.name in timeouts or metric_limits:
            logger.info("Applied overrides to %s", scenario.name)
    return tuple(updated)
