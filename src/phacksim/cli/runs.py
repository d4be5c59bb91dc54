# Copyright (c) Syntropy Systems
"""phacksim runs and show commands."""
from __future__ import annotations

import json
from collections import Counter
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from phacksim.config import get_runs_dir, require_project_dir
from phacksim.run import find_run, list_runs, read_trials

console = Console()

STATUS_STYLES = {
    "running": "blue",
    "completed": "green",
    "failed": "red",
}


def format_duration(started_at: str | None, finished_at: str | None) -> str:
    """Format the duration between two ISO timestamps."""
    if not started_at or not finished_at:
        return "-"

    start = datetime.fromisoformat(started_at.replace("Z", "+00:00"))
    end = datetime.fromisoformat(finished_at.replace("Z", "+00:00"))
    total = int((end - start).total_seconds())
    if total < 60:
        return f"{total}s"
    if total < 3600:
        m, s = divmod(total, 60)
        return f"{m}m {s}s"
    h, rem = divmod(total, 3600)
    m, _ = divmod(rem, 60)
    return f"{h}h {m}m"


def runs(
    last: int = typer.Option(
        20,
        "--last", "-n",
        help="Number of runs to show",
    ),
) -> None:
    """List saved simulation runs, newest first."""
    try:
        project_dir = require_project_dir()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    run_list = list_runs(get_runs_dir(project_dir))[:last]
    if not run_list:
        console.print("[dim]No runs found[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Mode")
    table.add_column("Status")
    table.add_column("Flagged", justify="right")

    for meta in run_list:
        status_style = STATUS_STYLES.get(meta.status, "white")
        flagged = "-"
        if meta.summary is not None:
            flagged = f"{meta.summary.flagged}/{meta.summary.trials}"

        table.add_row(
            meta.id,
            meta.name,
            meta.mode,
            f"[{status_style}]{meta.status}[/{status_style}]",
            flagged,
        )

    console.print(table)


def show(
    run_id: str = typer.Argument(
        ...,
        help="Run ID (or unique prefix) to show details for",
    ),
) -> None:
    """Show configuration, summary and trace totals for a saved run."""
    try:
        project_dir = require_project_dir()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    runs_dir = get_runs_dir(project_dir)
    matches = find_run(runs_dir, run_id)
    if not matches:
        console.print(f"[red]Error:[/red] Run '{run_id}' not found")
        raise typer.Exit(1)
    if len(matches) > 1:
        console.print(f"[yellow]Ambiguous ID '{run_id}', matches:[/yellow]")
        for m in matches[:5]:
            console.print(f"  {m.id} ({m.name})")
        raise typer.Exit(1)

    meta = matches[0]
    run_dir = runs_dir / meta.id
    status_style = STATUS_STYLES.get(meta.status, "white")

    console.print(f"\n[bold]Run {meta.id}[/bold]")
    console.print(f"  [dim]name:[/dim] {meta.name}")
    console.print(f"  [dim]mode:[/dim] {meta.mode}")
    console.print(f"  [dim]status:[/dim] [{status_style}]{meta.status}[/{status_style}]")
    console.print(f"  [dim]started:[/dim] {meta.started_at}")
    if meta.finished_at:
        console.print(f"  [dim]finished:[/dim] {meta.finished_at}")
        console.print(
            f"  [dim]duration:[/dim] {format_duration(meta.started_at, meta.finished_at)}"
        )
    if meta.error:
        console.print(f"  [dim]error:[/dim] [red]{meta.error}[/red]")

    config_path = run_dir / meta.config_file
    if config_path.exists():
        console.print("\n[bold]Config[/bold]")
        for k, v in json.loads(config_path.read_text()).items():
            console.print(f"  {k}: {v}")

    if meta.summary is not None:
        console.print("\n[bold]Summary[/bold]")
        for k, v in meta.summary.model_dump().items():
            if isinstance(v, float):
                console.print(f"  {k}: {v:.6f}")
            else:
                console.print(f"  {k}: {v}")

    if meta.trials_file:
        records = read_trials(run_dir / meta.trials_file)
        counts: Counter[str] = Counter()
        for record in records:
            counts.update(record.triggered)
        console.print(f"\n[bold]Trace[/bold] ({len(records)} trials)")
        for name, count in counts.most_common():
            console.print(f"  {name}: {count}")
