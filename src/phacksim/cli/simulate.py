# Copyright (c) Syntropy Systems
"""phacksim simulate and baseline commands."""
from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from phacksim.config import (
    ConfigError,
    SimulationConfig,
    find_project_dir,
    get_runs_dir,
    load_config,
)
from phacksim.report import (
    proportion_line,
    render_chart,
    summarize,
    trial_records,
    trigger_counts,
)
from phacksim.run import SimulationRun, new_run_id
from phacksim.simulation import (
    MODE_BASELINE,
    MODE_BATTERY,
    SimulationResult,
    simulate as run_trials,
)

console = Console()


def resolve_config(  # noqa: PLR0913
    config_file: Path | None,
    trials: int | None,
    observations: int | None,
    covariates: int | None,
    seed: int | None,
    threshold: float | None,
    workers: int | None,
) -> SimulationConfig:
    """Load file configuration, apply CLI overrides and validate."""
    config = load_config(path=config_file)
    overrides = {
        "trial_count": trials,
        "observations_per_trial": observations,
        "nuisance_covariate_count": covariates,
        "random_seed": seed,
        "significance_threshold": threshold,
        "workers": workers,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    return config.validate()


def _run_with_progress(
    config: SimulationConfig,
    mode: str,
    trace: bool,  # noqa: FBT001
) -> SimulationResult:
    with Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(f"{mode} trials", total=config.trial_count)
        return run_trials(
            config,
            mode=mode,
            trace=trace,
            progress=lambda done, _total: progress.update(task_id, completed=done),
        )


def _print_trigger_table(result: SimulationResult) -> None:
    counts = trigger_counts(result)
    if not counts:
        return

    table = Table(title="Significant results by test", show_header=True, header_style="bold")
    table.add_column("Test")
    table.add_column("Trials", justify="right")
    table.add_column("Share", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count), f"{count / result.trial_count:.1%}")
    console.print(table)


def execute(  # noqa: PLR0913
    config: SimulationConfig,
    mode: str,
    trace: bool,  # noqa: FBT001
    chart: Path | None,
    save: bool,  # noqa: FBT001
    name: str | None,
) -> None:
    """Run trials, print the summary and persist the run when in a project.

    A saved run that is interrupted or fails at any point is marked failed
    by the SimulationRun context manager.
    """
    project_dir = find_project_dir() if save else None
    run_context: AbstractContextManager[SimulationRun | None] = nullcontext()
    if project_dir is not None:
        run_id = new_run_id()
        run_context = SimulationRun(
            config=config,
            mode=mode,
            name=name,
            run_id=run_id,
            run_dir=get_runs_dir(project_dir) / run_id,
        )

    with run_context as run:
        result = _run_with_progress(config, mode, trace)
        summary = summarize(result, config.significance_threshold)

        table = Table(show_header=True, header_style="bold")
        table.add_column("Outcome")
        table.add_column("Trials", justify="right")
        table.add_column("Share", justify="right")
        table.add_row(
            "[bold]flagged[/bold]",
            str(summary.flagged),
            f"{summary.proportion:.1%}",
        )
        table.add_row(
            "not flagged",
            str(summary.not_flagged),
            f"{1 - summary.proportion:.1%}",
        )
        console.print(table)
        console.print(proportion_line(summary), soft_wrap=True)
        console.print(
            f"  [dim]95% CI:[/dim] {summary.ci_low:.3f} - {summary.ci_high:.3f}",
            soft_wrap=True,
        )

        if trace:
            _print_trigger_table(result)

        if chart is not None:
            _ = render_chart(summary, chart)
            console.print(f"  [dim]chart:[/dim] {chart}", soft_wrap=True)

        if run is not None:
            run.summary(summary)
            if trace:
                run.log_trials(trial_records(result))
            _ = render_chart(summary, run.artifact_path("chart.png"))
            run.finish()
            console.print(f"[green]Saved run[/green] {run.run_id}", soft_wrap=True)


def simulate(  # noqa: PLR0913
    trials: int | None = typer.Option(
        None, "--trials", "-t", envvar="PHACKSIM_TRIALS", help="Number of trials",
    ),
    observations: int | None = typer.Option(
        None,
        "--observations", "-n",
        envvar="PHACKSIM_OBSERVATIONS",
        help="Observations per trial",
    ),
    covariates: int | None = typer.Option(
        None, "--covariates", "-k", help="Nuisance covariates Z1..Zk",
    ),
    seed: int | None = typer.Option(
        None, "--seed", "-s", envvar="PHACKSIM_SEED", help="Root random seed",
    ),
    threshold: float | None = typer.Option(
        None, "--threshold", "-a", help="Significance threshold",
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", envvar="PHACKSIM_WORKERS", help="Worker processes",
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML configuration file",
    ),
    trace: bool = typer.Option(
        False, "--trace", help="Record which tests flagged each trial",
    ),
    chart: Path | None = typer.Option(
        None, "--chart", help="Write the bar chart to this PNG file",
    ),
    save: bool = typer.Option(
        True, "--save/--no-save", help="Save the run when inside a phacksim project",
    ),
    name: str | None = typer.Option(None, "--name", help="Name for the saved run"),
) -> None:
    """Run the full analysis battery on null datasets.

    Each trial generates X, Y and nuisance covariates with no true
    relationship, tries every analysis in the battery and counts the trial
    as flagged if any analysis reaches significance.

    Example:
        phacksim simulate --trials 1000 --observations 1000 --seed 12345

    """
    try:
        config = resolve_config(
            config_file, trials, observations, covariates, seed, threshold, workers,
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}", soft_wrap=True)
        raise typer.Exit(1) from e

    execute(config, MODE_BATTERY, trace, chart, save, name)


def baseline(  # noqa: PLR0913
    trials: int | None = typer.Option(
        None, "--trials", "-t", envvar="PHACKSIM_TRIALS", help="Number of trials",
    ),
    observations: int | None = typer.Option(
        None,
        "--observations", "-n",
        envvar="PHACKSIM_OBSERVATIONS",
        help="Observations per trial",
    ),
    seed: int | None = typer.Option(
        None, "--seed", "-s", envvar="PHACKSIM_SEED", help="Root random seed",
    ),
    threshold: float | None = typer.Option(
        None, "--threshold", "-a", help="Significance threshold",
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", envvar="PHACKSIM_WORKERS", help="Worker processes",
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML configuration file",
    ),
    chart: Path | None = typer.Option(
        None, "--chart", help="Write the bar chart to this PNG file",
    ),
    save: bool = typer.Option(
        True, "--save/--no-save", help="Save the run when inside a phacksim project",
    ),
    name: str | None = typer.Option(None, "--name", help="Name for the saved run"),
) -> None:
    """Run a single Y ~ X test per trial as a calibration baseline.

    With no battery, the flagged share should sit near the threshold.
    """
    try:
        config = resolve_config(
            config_file, trials, observations, None, seed, threshold, workers,
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}", soft_wrap=True)
        raise typer.Exit(1) from e

    execute(config, MODE_BASELINE, False, chart, save, name)
