"""Main Typer application: entry point for the ``conduitload`` CLI."""

from __future__ import annotations

import typer

from conduitload import __version__
from conduitload.cli.list_cmd import list_cmd
from conduitload.cli.run import run_cmd

app = typer.Typer(
    name="conduitload",
    help="Load, stress, spike, volume and soak tests for the Conduit API.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a bundled script by name or a script file.")(run_cmd)
app.command("list", help="List the bundled scripts and the recommended order.")(list_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"conduitload {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """conduitload: scripted load tests for the Conduit API."""
