"""Adapter: CargoBuilder implements BuilderPort.

Builds the ``measure-capture`` binary with the union of feature flags the
selected scenarios need. The fingerprint of the last successful build (cargo
command plus the newest Rust source or manifest mtime) is kept in a YAML
state file so an unchanged tree does not trigger a redundant rebuild.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import subprocess
from typing import TYPE_CHECKING, Any

import yaml

from domain.errors import BuildFailure

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger("capture_probe.adapters")

_DEFAULT_TIMEOUT = 1800  # seconds
_MANIFESTS = frozenset({"Cargo.toml", "Cargo.lock"})


class CargoBuilder:
    """Concrete implementation of BuilderPort using ``cargo build``."""

    def __init__(
        self,
        project_dir: Path,
        state_file: Path,
        *,
        binary_name: str = "measure-capture",
        timeout: int = _DEFAULT_TIMEOUT,
        force: bool = False,
    ) -> None:
        """Initialise the builder.

        Args:
            project_dir: Cargo workspace root.
            state_file: YAML file holding the last build fingerprint.
            binary_name: Name of the ``--bin`` target.
            timeout: Maximum seconds before the build is abandoned.
            force: Rebuild even when the fingerprint matches.
        """
        self._project_dir = project_dir
        self._state_file = state_file
        self._binary_name = binary_name
        self._timeout = timeout
        self._force = force

    @property
    def artifact_path(self) -> Path:
        return self._project_dir / "target" / "release" / self._binary_name

    def command(self, required_features: set[str]) -> list[str]:
        """Cargo invocation for *required_features* (sorted for stability)."""
        cmd = ["cargo", "build", "--release", "--bin", self._binary_name, "--quiet"]
        if required_features:
            cmd += ["--features", ",".join(sorted(required_features))]
        return cmd

    def source_stamp(self) -> tuple[int, int]:
        """Newest mtime (ns) and count of the Rust sources and manifests.

        ``target/`` and hidden directories are not scanned.
        """
        newest = 0
        count = 0
        for dirpath, dirnames, filenames in os.walk(self._project_dir):
            dirnames[:] = [d for d in dirnames if d != "target" and not d.startswith(".")]
            for name in filenames:
                if name.endswith(".rs") or name in _MANIFESTS:
                    newest = max(newest, os.stat(os.path.join(dirpath, name)).st_mtime_ns)
                    count += 1
        return newest, count

    def fingerprint(self, required_features: set[str]) -> str:
        payload = json.dumps(
            {
                "command": self.command(required_features),
                "dir": str(self._project_dir),
                "sources": list(self.source_stamp()),
            },
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode()).hexdigest()

    def build(self, required_features: set[str]) -> Path:
        """Build the binary, or reuse it when features and sources are unchanged.

        Returns:
            Path of the built binary.

        Raises:
            BuildFailure: If cargo is missing, fails, times out, or the binary
                is absent after a successful build.
        """
        fingerprint = self.fingerprint(required_features)
        artifact = self.artifact_path
        if not self._force and artifact.is_file() and self._load_fingerprint() == fingerprint:
            logger.info("Build up to date for features %s", sorted(required_features))
            return artifact

        cmd = self.command(required_features)
        logger.info("Building: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=self._project_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError:
            msg = "cargo not found"
            raise BuildFailure(msg) from None
        except subprocess.TimeoutExpired:
            msg = f"cargo build timed out after {self._timeout}s"
            raise BuildFailure(msg) from None

        if result.returncode != 0:
            output = (result.stdout + result.stderr)[-2000:]
            msg = f"cargo build failed with exit code {result.returncode}"
            raise BuildFailure(msg, output=output)
        if not artifact.is_file():
            msg = f"cargo build succeeded but {artifact} does not exist"
            raise BuildFailure(msg)

        self._save_fingerprint(fingerprint, required_features)
        return artifact

    def _load_fingerprint(self) -> str | None:
        if not self._state_file.exists():
            return None
        try:
            data: dict[str, Any] = yaml.safe_load(self._state_file.read_text()) or {}
        except (yaml.YAMLError, OSError):
            logger.warning("Could not read build state: %s", self._state_file)
            return None
        value = data.get("fingerprint")
        return str(value) if value is not None else None

    def _save_fingerprint(self, fingerprint: str, required_features: set[str]) -> None:
        self._state_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "fingerprint": fingerprint,
            "features": sorted(required_features),
            "binary": str(self.artifact_path),
        }
        self._state_file.write_text(yaml.dump(data, default_flow_style=False))


class PrebuiltBinary:
    """BuilderPort for an already-built binary (``--skip-build``)."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def build(self, required_features: set[str]) -> Path:
        """Return the configured binary if it exists.

        Raises:
            BuildFailure: If the path is not an existing file.
        """
        if not self._path.is_file():
            msg = f"measurement binary not found: {self._path}"
            raise BuildFailure(msg)
        logger.info("Using prebuilt binary %s (features not verified)", self._path)
        return self._path
