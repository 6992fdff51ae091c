"""
kernel/config.py — Project paths, defaults, and the optional YAML config.

All path constants and suite defaults live here. ``load_config`` reads the
optional ``.capture-probe/config.yaml`` override file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from domain.errors import ConfigError

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

ROOT = Path.cwd()
STATE_DIR = ROOT / ".capture-probe"
CONFIG_FILE = STATE_DIR / "config.yaml"
BUILD_STATE_FILE = STATE_DIR / "build.yaml"
LOG_FILE = STATE_DIR / "capture-probe.log"
RESULTS_DIR = ROOT / "perf-results"

# ---------------------------------------------------------------------------
# Suite defaults
# ---------------------------------------------------------------------------

# Captures per batch scenario
DEFAULT_CAPTURES = 10

# Prefix of the generated source identifier (suffixed with the suite timestamp)
SOURCE_ID_PREFIX = "wayland-perf"

# Build target
BINARY_NAME = "measure-capture"

# Maximum seconds for a cargo release build
BUILD_TIMEOUT = 1800

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

_KNOWN_KEYS = {"source_id", "captures", "results_dir", "binary", "cargo_dir", "timeouts", "limits"}


@dataclass(frozen=True)
class ProbeConfig:
    """Values from the YAML config file; None means "use the default"."""

    source_id: str | None = None
    captures: int | None = None
    results_dir: Path | None = None
    binary: Path | None = None
    cargo_dir: Path | None = None
    timeouts: dict[str, float] = field(default_factory=dict)
    limits: dict[str, dict[str, float]] = field(default_factory=dict)


def _optional_path(data: dict[str, Any], key: str, base: Path) -> Path | None:
    value = data.get(key)
    if value is None:
        return None
    path = Path(os.path.expanduser(str(value)))
    return path if path.is_absolute() else base / path


def _number_map(value: object, key: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = f"config '{key}' must be a mapping"
        raise ConfigError(msg)
    result: dict[str, float] = {}
    for name, number in value.items():
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            msg = f"config '{key}.{name}' must be a number, got {number!r}"
            raise ConfigError(msg)
        result[str(name)] = float(number)
    return result


def load_config(path: Path = CONFIG_FILE) -> ProbeConfig:
    """Load the YAML config file, or return defaults if it does not exist.

    Relative paths in the file are resolved against the directory that
    contains the state directory.

    Raises:
        ConfigError: If the file is unreadable, malformed, or has unknown keys.
    """
    if not path.exists():
        return ProbeConfig()
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (yaml.YAMLError, OSError) as exc:
        msg = f"cannot read {path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping"
        raise ConfigError(msg)

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        msg = f"unknown config keys in {path}: {', '.join(unknown)}"
        raise ConfigError(msg)

    captures = data.get("captures")
    if captures is not None and (isinstance(captures, bool) or not isinstance(captures, int) or captures < 1):
        msg = f"config 'captures' must be a positive integer, got {captures!r}"
        raise ConfigError(msg)

    limits_raw = data.get("limits") or {}
    if not isinstance(limits_raw, dict):
        msg = "config 'limits' must be a mapping"
        raise ConfigError(msg)

    base = path.parent.parent
    return ProbeConfig(
        source_id=str(data["source_id"]) if data.get("source_id") else None,
        captures=captures,
        results_dir=_optional_path(data, "results_dir", base),
        binary=_optional_path(data, "binary", base),
        cargo_dir=_optional_path(data, "cargo_dir", base),
        timeouts=_number_map(data.get("timeouts"), "timeouts"),
        limits={str(k): _number_map(v, f"limits.{k}") for k, v in limits_raw.items()},
    )
