from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from fixture_builder.domain.models import BuildResult


def print_build_summary(result: Optional[BuildResult], console: Optional[Console] = None) -> None:
    """
    Render the files written by a build as a rich table.

    A `None` result means the build was skipped because nothing changed.
    """
    console = console or Console()

    if result is None:
        console.print("[green]Fixtures are up to date.[/green]")
        return

    if not result.dumps:
        console.print(
            f"[yellow]No rows to dump across {len(result.tables)} table(s) "
            f"({result.duration_seconds:.2f}s).[/yellow]"
        )
        return

    table = Table(
        title="Fixtures Built",
        box=box.ROUNDED,
        caption=f"{len(result.tables)} table(s) tracked in {result.duration_seconds:.2f}s",
    )
    table.add_column("Table", style="cyan", no_wrap=True)
    table.add_column("File", style="green")
    table.add_column("Rows", justify="right", style="magenta")

    for dump in sorted(result.dumps, key=lambda d: d.table):
        table.add_row(dump.table, dump.file, f"{dump.rows:,}")

    console.print(table)


__all__ = ["print_build_summary"]
