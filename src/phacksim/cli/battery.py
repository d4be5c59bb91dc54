# Copyright (c) Syntropy Systems
"""phacksim battery command."""

import typer
from rich.console import Console
from rich.table import Table

from phacksim.battery import battery_tests

console = Console()


def battery(
    covariates: int = typer.Option(
        5,
        "--covariates", "-k",
        min=0,
        help="Nuisance covariates Z1..Zk",
    ),
) -> None:
    """List every analysis the battery runs on each trial."""
    tests = battery_tests(covariates)

    table = Table(title="Analysis battery", show_header=True, header_style="bold")
    table.add_column("#", style="dim")
    table.add_column("Test")
    table.add_column("Family")
    table.add_column("Model")
    table.add_column("Data")

    for i, test in enumerate(tests):
        table.add_row(
            str(i),
            test.name,
            test.family,
            test.spec.label(),
            test.view.__name__,
        )

    console.print(table)
    console.print(
        f"\n[bold]{len(tests)} tests[/bold] per trial, no correction applied",
        soft_wrap=True,
    )
