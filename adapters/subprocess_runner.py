"""Adapter: SubprocessRunner implements ProcessPort.

Runs one command via subprocess with combined stdout+stderr streamed to a
file, and returns a structured ProcessOutcome.
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import TYPE_CHECKING

from domain.models import LaunchStatus, ProcessOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = logging.getLogger("capture_probe.adapters")


class SubprocessRunner:
    """Concrete implementation of ProcessPort using ``subprocess.run``."""

    def __init__(self, cwd: Path | None = None) -> None:
        """Initialise with the working directory for launched commands.

        Args:
            cwd: Directory to run commands in (current directory if None).
        """
        self._cwd = cwd

    def run(
        self,
        command: Sequence[str],
        output_path: Path,
        timeout: float,
        env: Mapping[str, str] | None = None,
    ) -> ProcessOutcome:
        """Run *command*, streaming its output into *output_path*.

        ``subprocess.run`` kills the child on timeout and on any exception
        raised while waiting, so an operator interrupt never leaves the
        subprocess behind; ``KeyboardInterrupt`` is re-raised to the caller.

        Returns:
            A ProcessOutcome describing exit, timeout, or launch failure.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        start_time = time.monotonic()
        try:
            with output_path.open("wb") as sink:
                result = subprocess.run(
                    list(command),
                    cwd=self._cwd,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                    timeout=timeout,
                    env=dict(env) if env is not None else None,
                    check=False,
                )
        except subprocess.TimeoutExpired:
            elapsed = time.monotonic() - start_time
            logger.warning("Command timed out after %.1fs: %s", elapsed, command[0])
            return ProcessOutcome(
                status=LaunchStatus.TIMED_OUT,
                exit_code=None,
                output=_read_output(output_path),
                duration_seconds=elapsed,
                error=f"timed out after {timeout:g}s",
            )
        except OSError as exc:
            logger.warning("Command could not be launched: %s (%s)", command[0], exc)
            return ProcessOutcome(
                status=LaunchStatus.LAUNCH_FAILED,
                exit_code=None,
                output="",
                duration_seconds=time.monotonic() - start_time,
                error=f"{command[0]}: {exc.strerror or exc}",
            )

        elapsed = time.monotonic() - start_time
        logger.debug("%s exited %d in %.2fs", command[0], result.returncode, elapsed)
        return ProcessOutcome(
            status=LaunchStatus.EXITED,
            exit_code=result.returncode,
            output=_read_output(output_path),
            duration_seconds=elapsed,
        )


def _read_output(path: Path) -> str:
    if not path.is_file():
        return ""
    return path.read_text(encoding="utf-8", errors="replace")
