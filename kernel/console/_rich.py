"""kernel.console._rich -- Rich-based terminal backend.

Provides coloured, structured terminal output using the Rich library.
Lazily imports Rich sub-modules so that startup cost is minimal.
"""

from __future__ import annotations

import select
import sys

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "blue",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "step.num": "bold cyan",
        "step.desc": "default",
        "verdict.pass": "bold green",
        "verdict.fail": "bold red",
        "verdict.inconclusive": "bold yellow",
        "dim": "dim",
        "prompt.label": "bold cyan",
    }
)

_ICONS = {"pass": "✓", "fail": "✗", "inconclusive": "?"}


class RichBackend:
    """ConsoleProtocol implementation backed by Rich."""

    def __init__(self) -> None:
        self._con = Console(theme=_THEME, highlight=False)

    # -- General messages ---------------------------------------------------

    def info(self, message: str) -> None:
        self._con.print(f"  {escape(message)}", style="info")

    def success(self, message: str) -> None:
        self._con.print(f"  ✓ {escape(message)}", style="success")

    def warning(self, message: str) -> None:
        self._con.print(f"  ⚠ {escape(message)}", style="warning")

    def error(self, message: str) -> None:
        self._con.print(f"  ✗ {escape(message)}", style="error")

    # -- Structured panels --------------------------------------------------

    def panel(self, content: str, *, title: str = "", style: str = "") -> None:
        from rich.panel import Panel

        self._con.print(
            Panel(escape(content), title=title or None, border_style=style or "dim"),
        )

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        from rich.table import Table

        t = Table(title=title or None, box=box.SIMPLE, show_edge=False, pad_edge=True)
        for h in headers:
            t.add_column(h)
        for r in rows:
            t.add_row(*(escape(cell) for cell in r))
        self._con.print(t)

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        from rich.table import Table

        t = Table(
            title=title or None,
            box=box.SIMPLE,
            show_header=False,
            show_edge=False,
            pad_edge=True,
        )
        t.add_column("Key", style="bold", justify="right")
        t.add_column("Value")
        for k, v in data.items():
            t.add_row(k, escape(v))
        self._con.print(t)

    # -- Suite lifecycle ----------------------------------------------------

    def suite_header(self, timestamp: str, results_dir: str) -> None:
        self._con.print()
        self._con.print(Rule(" capture-probe ", style="bold", align="left"))
        self._con.print(f"  [dim]{timestamp} · {escape(results_dir)}[/]")

    def step(self, current: int, total: int, description: str) -> None:
        self._con.print(f"\n  [step.num]\\[{current}/{total}][/] {escape(description)}")

    def step_detail(self, message: str) -> None:
        self._con.print(f"    [dim]{escape(message)}[/]")

    def scenario_result(
        self,
        name: str,
        verdict: str,
        details: list[str],
        elapsed: float | None,
    ) -> None:
        icon = _ICONS.get(verdict, "?")
        timing = f" [dim]({elapsed:.1f}s)[/]" if elapsed is not None else ""
        self._con.print(f"  [verdict.{verdict}]{icon} {escape(name)}: {verdict}[/]{timing}")
        for line in details:
            self._con.print(f"    [dim]{escape(line)}[/]")

    def suite_result(
        self,
        verdict: str,
        passed: int,
        failed: int,
        inconclusive: int,
        exit_status: int,
    ) -> None:
        icon = _ICONS.get(verdict, "?")
        style = "green" if verdict == "pass" else "red"
        self._con.print()
        self._con.print(
            Rule(
                f" {icon} Suite {verdict} "
                f"── {passed} passed · {failed} failed · "
                f"{inconclusive} inconclusive · exit {exit_status} ",
                style=style,
            ),
        )

    # -- Interactive prompt -------------------------------------------------

    def prompt(self, label: str = "capture-probe", timeout: float | None = None) -> str | None:
        """Show interactive prompt. Returns user input or None on timeout."""
        try:
            self._con.print()
            self._con.print(f"[prompt.label]{escape(label)}>[/] ", end="")
            if timeout is not None and timeout > 0:
                ready, _, _ = select.select([sys.stdin], [], [], timeout)
                if not ready:
                    self._con.print()
                    return None
            line = sys.stdin.readline()
            if not line:
                return None
            return line.rstrip("\n")
        except EOFError:
            return None
