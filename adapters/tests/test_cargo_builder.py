"""Tests for the CargoBuilder and PrebuiltBinary adapters.

cargo itself is never invoked: ``subprocess.run`` is patched.
"""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
import yaml

from adapters.cargo_builder import CargoBuilder, PrebuiltBinary
from domain.errors import BuildFailure

if TYPE_CHECKING:
    from pathlib import Path

_FEATURES = {"perf-tests", "linux-wayland"}


def _builder(tmp_path: Path, **kwargs: object) -> CargoBuilder:
    return CargoBuilder(tmp_path, tmp_path / ".capture-probe" / "build.yaml", **kwargs)  # type: ignore[arg-type]


def _place_artifact(tmp_path: Path) -> Path:
    artifact = tmp_path / "target" / "release" / "measure-capture"
    artifact.parent.mkdir(parents=True, exist_ok=True)
    artifact.write_text("#!/bin/sh\n")
    return artifact


def _ok(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")


def test_command_uses_sorted_features(tmp_path: Path) -> None:
    assert _builder(tmp_path).command(_FEATURES) == [
        "cargo",
        "build",
        "--release",
        "--bin",
        "measure-capture",
        "--quiet",
        "--features",
        "linux-wayland,perf-tests",
    ]


def test_build_runs_cargo_and_records_fingerprint(tmp_path: Path) -> None:
    artifact = _place_artifact(tmp_path)
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        assert builder.build(_FEATURES) == artifact

    assert mock_run.call_args.kwargs["cwd"] == tmp_path
    state = yaml.safe_load((tmp_path / ".capture-probe" / "build.yaml").read_text())
    assert state["fingerprint"] == builder.fingerprint(_FEATURES)
    assert state["features"] == ["linux-wayland", "perf-tests"]


def test_unchanged_features_skip_rebuild(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        builder.build(_FEATURES)
        builder.build(_FEATURES)
    assert mock_run.call_count == 1


def test_changed_features_rebuild(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        builder.build(_FEATURES)
        builder.build({*_FEATURES, "dhat-heap"})
    assert mock_run.call_count == 2


def test_source_edit_rebuilds(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    source = tmp_path / "src" / "lib.rs"
    source.parent.mkdir()
    source.write_text("pub fn capture() {}\n")
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        builder.build(_FEATURES)
        stat = source.stat()
        os.utime(source, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
        builder.build(_FEATURES)
    assert mock_run.call_count == 2


def test_new_source_file_rebuilds(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "capture"\n')
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        builder.build(_FEATURES)
        (tmp_path / "build.rs").write_text("fn main() {}\n")
        builder.build(_FEATURES)
    assert mock_run.call_count == 2


def test_target_dir_changes_do_not_rebuild(tmp_path: Path) -> None:
    artifact = _place_artifact(tmp_path)
    builder = _builder(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        builder.build(_FEATURES)
        (artifact.parent / "build" / "out.rs").parent.mkdir(parents=True)
        (artifact.parent / "build" / "out.rs").write_text("// generated\n")
        builder.build(_FEATURES)
    assert mock_run.call_count == 1


def test_force_always_rebuilds(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        _builder(tmp_path).build(_FEATURES)
        _builder(tmp_path, force=True).build(_FEATURES)
    assert mock_run.call_count == 2


def test_compile_error_raises_with_output(tmp_path: Path) -> None:
    failed = subprocess.CompletedProcess(
        args=[], returncode=101, stdout="", stderr="error[E0425]: cannot find value `x`"
    )
    with patch("subprocess.run", return_value=failed), pytest.raises(BuildFailure) as excinfo:
        _builder(tmp_path).build(_FEATURES)
    assert "exit code 101" in str(excinfo.value)
    assert "E0425" in excinfo.value.output


def test_missing_cargo_raises(tmp_path: Path) -> None:
    with (
        patch("subprocess.run", side_effect=FileNotFoundError("cargo")),
        pytest.raises(BuildFailure, match="cargo not found"),
    ):
        _builder(tmp_path).build(_FEATURES)


def test_build_timeout_raises(tmp_path: Path) -> None:
    with (
        patch("subprocess.run", side_effect=subprocess.TimeoutExpired("cargo", 10)),
        pytest.raises(BuildFailure, match="timed out"),
    ):
        _builder(tmp_path, timeout=10).build(_FEATURES)


def test_missing_artifact_after_success_raises(tmp_path: Path) -> None:
    with (
        patch("subprocess.run", side_effect=_ok),
        pytest.raises(BuildFailure, match="does not exist"),
    ):
        _builder(tmp_path).build(_FEATURES)


def test_corrupt_state_file_triggers_rebuild(tmp_path: Path) -> None:
    _place_artifact(tmp_path)
    state = tmp_path / ".capture-probe" / "build.yaml"
    state.parent.mkdir(parents=True)
    state.write_text("fingerprint: [unclosed\n")
    with patch("subprocess.run", side_effect=_ok) as mock_run:
        _builder(tmp_path).build(_FEATURES)
    assert mock_run.call_count == 1


def test_prebuilt_binary(tmp_path: Path) -> None:
    artifact = _place_artifact(tmp_path)
    assert PrebuiltBinary(artifact).build(_FEATURES) == artifact
    with pytest.raises(BuildFailure, match="not found"):
        PrebuiltBinary(tmp_path / "missing").build(_FEATURES)
