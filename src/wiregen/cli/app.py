import typer

from wiregen.cli.generate import generate
from wiregen.cli.inspect import inspect

app = typer.Typer(
    name="wiregen",
    help="wiregen CLI: generate wire boundary types from service descriptions.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("generate")(generate)
app.command("inspect")(inspect)


def main() -> None:
    app()
