# Copyright (c) Syntropy Systems
"""phacksim init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from phacksim.config import PROJECT_DIR_NAME, SimulationConfig

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Initialize a new phacksim project.

    Creates a .phacksim directory with a default configuration and a runs
    directory for saved simulations.
    """
    target = path.resolve()
    project_dir = target / PROJECT_DIR_NAME

    if project_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {project_dir}")
        return

    # Create directory structure
    project_dir.mkdir(parents=True)
    runs_dir = project_dir / "runs"
    runs_dir.mkdir()

    # Create default config
    config_path = project_dir / "config.yaml"
    with config_path.open("w") as f:
        yaml.dump(SimulationConfig().to_dict(), f, default_flow_style=False)

    console.print(f"[green]Initialized phacksim project:[/green] {project_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    console.print(f"  [dim]runs:[/dim] {runs_dir}")
