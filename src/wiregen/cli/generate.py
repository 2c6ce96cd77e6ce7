import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from wiregen.config import configure_logging, get_settings
from wiregen.core.generate import generate_design
from wiregen.errors import GenerationError
from wiregen.models import Design, load_design
from wiregen.render import module_filename, render_service

logger = logging.getLogger(__name__)
console = Console()


def read_design(path: Path) -> Design:
    try:
        return load_design(path)
    except OSError as exc:
        console.print(f"[red]Cannot read design[/red] {escape(str(path))}: {escape(str(exc))}")
        raise typer.Exit(1) from exc
    except ValidationError as exc:
        console.print(f"[red]Invalid design[/red] {escape(str(path))}:\n{escape(str(exc))}")
        raise typer.Exit(1) from exc


def generate(
    design: Annotated[Path, typer.Argument(help="Path to the design JSON file.")],
    out: Annotated[Path, typer.Option("--out", "-o", help="Directory the generated modules are written to.")],
    service: Annotated[
        list[str] | None, typer.Option("--service", "-s", help="Only generate this service (repeatable).")
    ] = None,
    workers: Annotated[int | None, typer.Option(min=1, help="Services generated in parallel.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log generation details.")] = False,
) -> None:
    """Generate the server types module of every service in a design."""
    settings = get_settings().override(workers=workers)
    configure_logging(settings, verbose)
    loaded = read_design(design)
    try:
        report = generate_design(loaded, settings, service)
    except GenerationError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    out.mkdir(parents=True, exist_ok=True)
    for name, artifacts in report.artifacts.items():
        target = out / module_filename(name)
        target.write_text(render_service(artifacts, settings), encoding="utf-8")
        logger.info("wrote %s", target)
        console.print(f"[green]Generated[/green] {escape(str(target))}")
    for name, error in report.failures.items():
        console.print(f"[red]Failed[/red] {escape(name)}: {escape(str(error))}")
    if not report.ok:
        raise typer.Exit(1)
