"""``conduitload list``: the bundled scripts and the order to run them in."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from conduitload.dsl.loader import load_builtin
from conduitload.scenarios import CATALOG, RECOMMENDED_SEQUENCE

console = Console()


def list_cmd() -> None:
    """Show every bundled script with its schedule and purpose."""
    table = Table(title="Bundled scripts", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold", no_wrap=True)
    table.add_column("Description")
    table.add_column("Duration", justify="right")
    table.add_column("Users", justify="right")
    table.add_column("Purpose")

    for name in CATALOG:
        definition = load_builtin(name)
        table.add_row(
            name,
            definition.description,
            definition.duration_label,
            definition.users_summary,
            definition.purpose,
        )
    console.print(table)

    console.print()
    console.print("[bold]Recommended sequence[/bold] (start light, stop at the first failure):")
    for step, name in enumerate(RECOMMENDED_SEQUENCE, start=1):
        console.print(f"  {step}. conduitload run {name}")
