from __future__ import annotations

import typer

from ship import __version__
from ship.cli.commands.config_cmd import config
from ship.cli.commands.forecast import forecast
from ship.cli.commands.release_cmd import release


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(forecast)
app.command()(release)
app.command("config")(config)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def main() -> None:
    app()
