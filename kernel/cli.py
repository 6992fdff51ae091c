#!/usr/bin/env python3
"""
capture-probe CLI -- Stable entry point for the capture performance suite.

Suite step dispatch is handled by wiring.py via kernel/loop.py.

Usage:
  capture-probe run [--captures N] [--only NAME ...] [--source-id ID]
                    [--results-dir DIR] [--timeout-scale F] [--skip-build]
                    [--binary PATH] [--rebuild] [--yes] [--verbose|--quiet]
  capture-probe list
  capture-probe thresholds
  capture-probe check [--skip-build]

Exit status:
  0  every scenario passed every threshold
  1  at least one scenario failed or was inconclusive (including interrupts)
  2  the suite could not start (precondition, build, configuration)
"""

from __future__ import annotations

import argparse
import fcntl
import logging
import os
import sys
from pathlib import Path

from domain.errors import BuildFailure, ProbeError
from kernel.console import configure, console

logger = logging.getLogger("capture_probe")

# ---------------------------------------------------------------------------
# CLI commands
# ---------------------------------------------------------------------------


def cmd_list() -> int:
    """Display the scenario catalog in execution order."""
    import wiring
    from kernel.config import load_config

    scenarios = wiring.load_catalog(load_config())
    rows = [
        [
            s.name,
            s.output_kind.value,
            ", ".join(t.describe() for t in s.thresholds) or "exit 0",
            ", ".join(s.depends_on) or "--",
            f"{s.timeout_seconds:g}s",
        ]
        for s in scenarios
    ]
    console.table(["Scenario", "Output", "Thresholds", "Depends on", "Timeout"], rows, title="Catalog")
    return wiring.EXIT_PASS


def cmd_thresholds() -> int:
    """Display the acceptance thresholds."""
    import wiring
    from kernel.config import load_config

    rows = [
        [s.name, t.describe()]
        for s in wiring.load_catalog(load_config())
        for t in s.thresholds
    ]
    console.table(["Scenario", "Threshold"], rows, title="Performance thresholds")
    return wiring.EXIT_PASS


def cmd_check(args: argparse.Namespace) -> int:
    """Run only the environment gate."""
    import wiring
    from kernel.config import load_config

    scenarios = wiring.load_catalog(load_config())
    components = wiring.make_components(assume_yes=True)
    report = wiring.gate_environment(scenarios, components, build=not args.skip_build)
    for warning in report.warnings:
        console.warning(warning)
    console.success("Environment ready")
    return wiring.EXIT_PASS


def cmd_run(args: argparse.Namespace) -> int:
    """Run the suite; returns the suite exit status."""
    import wiring
    from kernel.config import STATE_DIR

    lock_file = STATE_DIR / "run.lock"
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    lock_fd = open(lock_file, "w")  # noqa: SIM115
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        lock_fd.close()
        console.error("Another capture-probe run is already writing results.")
        console.info(f"Lock file: {lock_file}")
        return wiring.EXIT_NOT_STARTED
    lock_fd.write(str(os.getpid()))
    lock_fd.flush()

    try:
        return _run_suite(args)
    finally:
        lock_fd.close()
        lock_file.unlink(missing_ok=True)


def _run_suite(args: argparse.Namespace) -> int:
    """Inner run logic, wrapped by cmd_run for lock management."""
    import wiring
    from kernel import loop
    from kernel.config import (
        BINARY_NAME,
        DEFAULT_CAPTURES,
        RESULTS_DIR,
        ROOT,
        SOURCE_ID_PREFIX,
        load_config,
    )

    config = load_config()
    scenarios = wiring.load_catalog(config, only=args.only, timeout_scale=args.timeout_scale)

    captures = args.captures or config.captures or DEFAULT_CAPTURES
    results_dir = (args.results_dir or config.results_dir or RESULTS_DIR).resolve()
    cargo_dir = config.cargo_dir or ROOT

    binary = args.binary or config.binary
    if args.skip_build and binary is None:
        binary = cargo_dir / "target" / "release" / BINARY_NAME

    components = wiring.make_components(
        cargo_dir=cargo_dir,
        binary=binary,
        rebuild=args.rebuild,
        assume_yes=args.yes,
        prompt=console.prompt,
        notify=console.info,
    )
    timestamp = wiring.suite_timestamp(results_dir, components.fs)
    source_id = args.source_id or config.source_id or f"{SOURCE_ID_PREFIX}-{timestamp}"
    options = wiring.SuiteOptions(
        captures=captures,
        source_id=source_id,
        results_dir=results_dir,
        timestamp=timestamp,
        build=binary is None,
    )
    console.kv(
        {
            "Scenarios": ", ".join(s.name for s in scenarios),
            "Captures": str(captures),
            "Source": source_id,
        }
    )
    report = loop.run_suite(scenarios, components, options)
    return report.exit_status


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        msg = f"must be a positive integer, got {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        msg = f"must be positive, got {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="capture-probe",
        description="capture-probe -- screen capture performance and memory suite",
    )
    sub = parser.add_subparsers(dest="command")

    # capture-probe run
    run_p = sub.add_parser("run", help="Build the binary and run the scenario suite")
    run_p.add_argument(
        "--captures",
        type=_positive_int,
        default=None,
        help="Captures per batch scenario (default: 10)",
    )
    run_p.add_argument(
        "--only",
        nargs="+",
        metavar="NAME",
        default=None,
        help="Run only these scenarios (dependencies are not added)",
    )
    run_p.add_argument("--source-id", default=None, help="Capture source identifier")
    run_p.add_argument("--results-dir", type=Path, default=None, help="Artifact directory")
    run_p.add_argument(
        "--timeout-scale",
        type=_positive_float,
        default=1.0,
        help="Multiply every scenario timeout (default: 1.0)",
    )
    run_p.add_argument("--skip-build", action="store_true", help="Use the existing release binary")
    run_p.add_argument("--binary", type=Path, default=None, help="Use this prebuilt binary")
    run_p.add_argument(
        "--rebuild",
        action="store_true",
        help="Run cargo build even if features and sources look unchanged",
    )
    run_p.add_argument("--yes", action="store_true", help="Do not wait for operator confirmation")
    run_p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    run_p.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    # capture-probe list
    sub.add_parser("list", help="Show the scenario catalog")

    # capture-probe thresholds
    sub.add_parser("thresholds", help="Show the acceptance thresholds")

    # capture-probe check
    check_p = sub.add_parser("check", help="Check runtime preconditions only")
    check_p.add_argument("--skip-build", action="store_true", help="Do not require cargo")

    return parser


def main(argv: list[str] | None = None) -> None:
    import wiring

    parser = build_parser()
    args = parser.parse_args(argv)

    # -- Console configuration ------------------------------------------------
    configure(backend="auto")

    # -- Logging configuration (file-based audit log) -----------------------
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.WARNING
    else:
        level = logging.INFO

    from kernel.config import LOG_FILE

    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(LOG_FILE),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        level=level,
    )

    try:
        if args.command == "run":
            code = cmd_run(args)
        elif args.command == "list":
            code = cmd_list()
        elif args.command == "thresholds":
            code = cmd_thresholds()
        elif args.command == "check":
            code = cmd_check(args)
        else:
            parser.print_help()
            code = wiring.EXIT_NOT_STARTED
    except BuildFailure as exc:
        logger.error("Build failed: %s", exc)
        console.error(f"Build failed: {exc}")
        if exc.output:
            console.panel(exc.output, title="cargo output", style="red")
        code = wiring.EXIT_NOT_STARTED
    except ProbeError as exc:
        logger.error("Suite could not start: %s", exc)
        console.error(str(exc))
        code = wiring.EXIT_NOT_STARTED
    except KeyboardInterrupt:
        logger.warning("Interrupted before the suite started")
        console.warning("Interrupted")
        code = wiring.EXIT_FAIL

    sys.exit(code)


if __name__ == "__main__":
    main()
