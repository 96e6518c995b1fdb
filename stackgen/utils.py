"""Shared helpers: running external tools and printing operator output.

Every module prints through the single rich ``console`` defined here, so
progress lines, warnings and the readiness report share one stream.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

# Return code reported when the executable cannot be started at all.
EXIT_NOT_FOUND = 127
# Return code reported when the tool exceeded its timeout and was killed.
EXIT_TIMED_OUT = -1


# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------


async def run_command(
    args: list[str],
    cwd: str | Path | None = None,
    timeout: float = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run one tool invocation (``composer``, ``php artisan``, ``ng``...) to completion.

    Args:
        args: Executable followed by its arguments; no shell is involved.
        cwd: Directory to run in.
        timeout: Seconds before the tool is killed.
        capture: When ``False`` the tool writes straight to the terminal, so
            long installs show their own progress; both returned strings
            are then empty.
        env: Variables layered over the current environment.

    Returns:
        ``(returncode, stdout, stderr)`` with the output stripped.  A tool
        that cannot be started yields ``EXIT_NOT_FOUND`` and one that timed
        out yields ``EXIT_TIMED_OUT``; neither raises.
    """
    stream = asyncio.subprocess.PIPE if capture else None
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            env={**os.environ, **env} if env else None,
            stdout=stream,
            stderr=stream,
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
        return (EXIT_NOT_FOUND, "", str(exc))

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (EXIT_TIMED_OUT, "", f"'{' '.join(args)}' timed out after {timeout:g}s")

    return (process.returncode or 0, _text(out), _text(err))


def _text(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace").strip()


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


def print_banner() -> None:
    console.print(
        Panel(
            "[bold cyan]Laravel + Angular full-stack project generator[/bold cyan]\n"
            "Automated creation of two-tier development projects",
            border_style="cyan",
        )
    )


def print_step(message: str) -> None:
    """Section heading, set off by blank lines."""
    console.print()
    console.print(f"[bold cyan]{message}[/bold cyan]")
    console.print()


def print_summary_table(rows: dict[str, str], title: str = "Summary") -> None:
    """Two-column label/value table, e.g. the project paths before ``serve``."""
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Setting", style="dim", no_wrap=True)
    table.add_column("Value")
    for label, value in rows.items():
        table.add_row(label, str(value))
    console.print(table)
    console.print()


def print_success(message: str) -> None:
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    console.print(f"[bold yellow]{message}[/bold yellow]")
