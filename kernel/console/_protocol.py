"""kernel.console._protocol -- ConsoleProtocol definition.

Pure standard-library typing.Protocol for the capture-probe terminal output.
No external dependencies allowed in this file.
"""

from __future__ import annotations

from typing import Protocol


class ConsoleProtocol(Protocol):
    """capture-probe terminal output protocol.

    Three layers of methods:

    **General messages** -- usable from any module::

        console.info("Building measure-capture")
        console.success("Environment ready")
        console.warning("XDG_SESSION_TYPE is x11")
        console.error("WAYLAND_DISPLAY not set")

    **Structured panels** -- tables, key-value displays, panels::

        console.panel("summary text", title="Summary")
        console.table(["Scenario", "Verdict"], [["memory-peak", "fail"]])
        console.kv({"Captures": "10", "Source": "wayland-perf-..."})

    **Suite lifecycle** -- used by kernel/loop.py::

        console.suite_header("20260101-120000", "perf-results")
        console.step(1, 5, "prime-consent")
        console.scenario_result("prime-consent", "pass", ["consent_duration = 1200ms"], 1.3)
        console.suite_result("fail", 3, 1, 1, 1)
    """

    # -- General messages ---------------------------------------------------

    def info(self, message: str) -> None:
        """Informational message."""
        ...

    def success(self, message: str) -> None:
        """Success / positive-outcome message."""
        ...

    def warning(self, message: str) -> None:
        """Warning message."""
        ...

    def error(self, message: str) -> None:
        """Error message."""
        ...

    # -- Structured panels --------------------------------------------------

    def panel(self, content: str, *, title: str = "", style: str = "") -> None:
        """Display *content* in a bordered panel."""
        ...

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        """Display a table with *headers* and *rows*."""
        ...

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        """Display key-value pairs."""
        ...

    # -- Suite lifecycle ----------------------------------------------------

    def suite_header(self, timestamp: str, results_dir: str) -> None:
        """Display the banner at the start of a suite run."""
        ...

    def step(self, current: int, total: int, description: str) -> None:
        """Display a step indicator ``[current/total] description``."""
        ...

    def step_detail(self, message: str) -> None:
        """Display an indented detail line under the current step."""
        ...

    def scenario_result(
        self,
        name: str,
        verdict: str,
        details: list[str],
        elapsed: float | None,
    ) -> None:
        """Display one scenario's verdict with its per-metric lines."""
        ...

    def suite_result(
        self,
        verdict: str,
        passed: int,
        failed: int,
        inconclusive: int,
        exit_status: int,
    ) -> None:
        """Display the end-of-suite verdict line."""
        ...

    # -- Interactive prompt -------------------------------------------------

    def prompt(self, label: str = "capture-probe", timeout: float | None = None) -> str | None:
        """Read one line from the operator; None on EOF or timeout."""
        ...
