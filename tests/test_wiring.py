"""Tests for wiring.py — catalog loading, component assembly and suite steps."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

import wiring
from adapters.cargo_builder import CargoBuilder, PrebuiltBinary
from adapters.confirmation import PromptConfirmation, auto_confirm
from adapters.local_fs import LocalFileSystem
from conftest import (
    WAYLAND_ENV,
    FakeBuilder,
    FakeProcess,
    InMemoryFileSystem,
    RecordingConfirmation,
    make_result,
    which_all,
    which_none,
)
from domain.errors import ConfigError, PreconditionFailure
from kernel.config import ProbeConfig


class TestLoadCatalog:
    """Config overrides and --only selection."""

    def test_defaults(self) -> None:
        scenarios = wiring.load_catalog(ProbeConfig())
        assert [s.name for s in scenarios] == [
            "prime-consent",
            "headless-batch",
            "token-rotation",
            "memory-peak",
            "memory-leak",
        ]

    def test_limits_and_timeout_scale(self) -> None:
        config = ProbeConfig(limits={"memory-peak": {"peak_heap": 250.0}})
        scenarios = wiring.load_catalog(config, only=["memory-peak"], timeout_scale=2.0)

        (peak,) = scenarios
        assert peak.thresholds[0].limit == 250.0
        assert peak.timeout_seconds == 3600.0

    def test_unknown_override_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unknown scenario: warp-speed"):
            wiring.load_catalog(ProbeConfig(timeouts={"warp-speed": 10.0}))


class TestMakeComponents:
    """Production adapters are chosen from the CLI flags."""

    def test_default_builds_with_cargo(self, tmp_path: Path) -> None:
        components = wiring.make_components(cargo_dir=tmp_path)
        assert isinstance(components.builder, CargoBuilder)
        assert components.builder.artifact_path == tmp_path / "target" / "release" / "measure-capture"
        assert components.confirm is auto_confirm

    def test_binary_uses_prebuilt(self, tmp_path: Path) -> None:
        components = wiring.make_components(binary=tmp_path / "measure-capture")
        assert isinstance(components.builder, PrebuiltBinary)

    def test_prompt_used_unless_yes(self) -> None:
        attended = wiring.make_components(prompt=lambda label: "")
        headless = wiring.make_components(prompt=lambda label: "", assume_yes=True)
        assert isinstance(attended.confirm, PromptConfirmation)
        assert headless.confirm is auto_confirm


class TestSteps:
    """Individual suite steps against fake ports."""

    def _components(self, **overrides: object) -> wiring.Components:
        values: dict[str, object] = {
            "process": FakeProcess(),
            "builder": FakeBuilder(),
            "fs": None,
            "confirm": RecordingConfirmation(),
            "env": WAYLAND_ENV,
            "which": which_all,
        }
        values.update(overrides)
        return wiring.Components(**values)  # type: ignore[arg-type]

    def test_gate_requires_valgrind_for_memory_scenarios(self) -> None:
        scenarios = wiring.load_catalog(ProbeConfig(), only=["memory-leak"])
        with pytest.raises(PreconditionFailure, match="valgrind not installed"):
            wiring.gate_environment(scenarios, self._components(which=which_none), build=False)

    def test_gate_without_build_skips_cargo(self) -> None:
        scenarios = wiring.load_catalog(ProbeConfig(), only=["prime-consent"])

        def only_valgrind(name: str) -> str | None:
            return None if name == "cargo" else f"/usr/bin/{name}"

        components = self._components(which=only_valgrind)
        assert wiring.gate_environment(scenarios, components, build=False).passed
        with pytest.raises(PreconditionFailure, match="cargo not installed"):
            wiring.gate_environment(scenarios, components, build=True)

    def test_build_requests_feature_union(self) -> None:
        builder = FakeBuilder()
        scenarios = wiring.load_catalog(ProbeConfig())
        path = wiring.build_binary(scenarios, self._components(builder=builder))
        assert path == Path("/opt/probe/measure-capture")
        assert builder.requested == [{"perf-tests", "linux-wayland"}]


class TestSuiteTimestamp:
    """Timestamps never collide with files already in the results directory."""

    _NOW = datetime(2026, 1, 1, 12, 0, 0)

    def test_empty_directory_uses_clock(self, tmp_path: Path) -> None:
        fs = LocalFileSystem(str(tmp_path))
        timestamp = wiring.suite_timestamp(tmp_path / "perf-results", fs, now=self._NOW)
        assert timestamp == "20260101-120000"

    def test_taken_timestamp_gets_counter(self, tmp_path: Path) -> None:
        results = tmp_path / "perf-results"
        results.mkdir()
        (results / "prime-consent-20260101-120000.log").write_text("")
        fs = LocalFileSystem(str(tmp_path))
        assert wiring.suite_timestamp(results, fs, now=self._NOW) == "20260101-120000-2"


class _ReadOnlyFileSystem(InMemoryFileSystem):
    def write_file(self, path: str, content: str) -> None:
        msg = f"Read-only file system: {path}"
        raise OSError(msg)


def test_record_suite_survives_unwritable_results(tmp_path: Path) -> None:
    components = wiring.Components(
        process=FakeProcess(),
        builder=FakeBuilder(),
        fs=_ReadOnlyFileSystem(),
        confirm=RecordingConfirmation(),
    )
    options = wiring.SuiteOptions(
        captures=10,
        source_id="wayland-perf-test",
        results_dir=tmp_path,
        timestamp="20260101-120000",
    )
    report = wiring.record_suite([make_result("prime-consent")], components, options)

    assert report.exit_status == wiring.EXIT_PASS
    assert report.summary_paths == ()
