# Copyright (c) Syntropy Systems
"""Main CLI entry point for phacksim."""

import logging

import typer
from rich.logging import RichHandler

from phacksim.cli.battery import battery
from phacksim.cli.init_cmd import init
from phacksim.cli.runs import runs, show
from phacksim.cli.simulate import baseline, simulate

app = typer.Typer(
    name="phacksim",
    help=(
        "Simulate how flexible analyses of null data inflate the "
        "false-positive rate."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    logging.getLogger("phacksim").setLevel(
        logging.DEBUG if verbose else logging.WARNING
    )


# Register commands
_ = app.command()(init)
_ = app.command()(simulate)
_ = app.command()(baseline)
_ = app.command()(battery)
_ = app.command()(runs)
_ = app.command()(show)


if __name__ == "__main__":
    app()
