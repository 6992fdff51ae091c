"""kernel.console._plain -- Plain-text fallback backend.

print()-based output with no external dependencies. Used when Rich is not
installed or stdout is not a TTY (CI logs, pipes, tests).
"""

from __future__ import annotations

import select
import sys

_ICONS = {"pass": "✓", "fail": "✗", "inconclusive": "?"}


class PlainBackend:
    """ConsoleProtocol implementation using only built-in print()."""

    # -- General messages ---------------------------------------------------

    def info(self, message: str) -> None:
        print(f"  {message}")

    def success(self, message: str) -> None:
        print(f"  [ok] {message}")

    def warning(self, message: str) -> None:
        print(f"  [warn] {message}")

    def error(self, message: str) -> None:
        print(f"  [error] {message}")

    # -- Structured panels --------------------------------------------------

    def panel(self, content: str, *, title: str = "", style: str = "") -> None:
        width = 60
        header = f" {title} " if title else ""
        border = header.center(width, "=")
        print(f"\n{border}")
        for line in content.splitlines():
            print(f"  {line}")
        print("=" * width)

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        if title:
            print(f"\n  {title}:")

        if not headers and not rows:
            return

        # Calculate column widths
        all_rows = [headers, *rows]
        col_widths = [
            max(len(str(row[i])) if i < len(row) else 0 for row in all_rows)
            for i in range(len(headers))
        ]

        header_line = "  " + "  ".join(
            h.ljust(w) for h, w in zip(headers, col_widths, strict=True)
        )
        print(header_line)
        print("  " + "  ".join("-" * w for w in col_widths))

        for row in rows:
            cells = [
                str(row[i]).ljust(col_widths[i]) if i < len(row) else " " * col_widths[i]
                for i in range(len(headers))
            ]
            print("  " + "  ".join(cells).rstrip())

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        if title:
            print(f"\n  {title}:")
        if not data:
            return
        max_key = max(len(k) for k in data)
        for k, v in data.items():
            print(f"  {k.rjust(max_key)}: {v}")

    # -- Suite lifecycle ----------------------------------------------------

    def suite_header(self, timestamp: str, results_dir: str) -> None:
        rule = "━" * 60
        print(f"\n{rule}")
        print(f"  capture-probe  ─  {timestamp}  ─  {results_dir}")
        print(rule)

    def step(self, current: int, total: int, description: str) -> None:
        print(f"\n  [{current}/{total}] {description}")

    def step_detail(self, message: str) -> None:
        print(f"    {message}")

    def scenario_result(
        self,
        name: str,
        verdict: str,
        details: list[str],
        elapsed: float | None,
    ) -> None:
        timing = f" ({elapsed:.1f}s)" if elapsed is not None else ""
        print(f"  {_ICONS.get(verdict, '?')} {name}: {verdict}{timing}")
        for line in details:
            print(f"    {line}")

    def suite_result(
        self,
        verdict: str,
        passed: int,
        failed: int,
        inconclusive: int,
        exit_status: int,
    ) -> None:
        print()
        print(
            f"━━ {_ICONS.get(verdict, '?')} Suite {verdict} "
            f"── {passed} passed · {failed} failed · "
            f"{inconclusive} inconclusive · exit {exit_status} ━━"
        )

    # -- Interactive prompt -------------------------------------------------

    def prompt(self, label: str = "capture-probe", timeout: float | None = None) -> str | None:
        """Show interactive prompt. Returns user input or None on timeout."""
        try:
            print(f"\n{label}> ", end="", flush=True)
            if timeout is not None and timeout > 0:
                ready, _, _ = select.select([sys.stdin], [], [], timeout)
                if not ready:
                    print()
                    return None
            line = sys.stdin.readline()
            if not line:
                return None
            return line.rstrip("\n")
        except EOFError:
            return None
