from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wiregen.cli.generate import read_design
from wiregen.config import get_settings
from wiregen.core.generate import generate_design
from wiregen.errors import GenerationError

console = Console()


def _render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(escape(str(v)) for v in row))
    console.print(table)
    console.print(f"({len(rows)} rows)")


def inspect(
    design: Annotated[Path, typer.Argument(help="Path to the design JSON file.")],
    service: Annotated[
        list[str] | None, typer.Option("--service", "-s", help="Only inspect this service (repeatable).")
    ] = None,
) -> None:
    """List the artifacts generated for every service in a design."""
    settings = get_settings()
    loaded = read_design(design)
    try:
        report = generate_design(loaded, settings, service)
    except GenerationError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    rows = [
        (name, symbol.kind, symbol.name, symbol.role, symbol.method)
        for name, artifacts in report.artifacts.items()
        for symbol in artifacts.symbols()
    ]
    _render_table(["service", "kind", "name", "role", "method"], rows)
    for name, error in report.failures.items():
        console.print(f"[red]Failed[/red] {escape(name)}: {escape(str(error))}")
    if not report.ok:
        raise typer.Exit(1)
