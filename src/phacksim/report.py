# Copyright (c) Syntropy Systems
"""Summary statistics and the flagged / not-flagged bar chart."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from statsmodels.stats.proportion import proportion_confint

from phacksim.models.run import SimulationSummary, TrialRecord
from phacksim.simulation import MODE_BASELINE

if TYPE_CHECKING:
    from pathlib import Path

    from phacksim.simulation import SimulationResult

logger = logging.getLogger(__name__)

FLAGGED_LABEL = "Found a 'Significant' Result"
NOT_FLAGGED_LABEL = "No Significant Result"
FLAGGED_COLOR = "#d95f02"
NOT_FLAGGED_COLOR = "#7570b3"
CONFIDENCE_LEVEL = 0.95


def summarize(result: SimulationResult, threshold: float) -> SimulationSummary:
    """Count flagged trials and attach a Wilson interval for the proportion."""
    trials = result.trial_count
    flagged = result.flagged_count
    if trials:
        low, high = proportion_confint(
            flagged,
            trials,
            alpha=1 - CONFIDENCE_LEVEL,
            method="wilson",
        )
    else:
        low, high = 0.0, 0.0

    return SimulationSummary(
        mode=result.mode,
        trials=trials,
        flagged=flagged,
        not_flagged=trials - flagged,
        proportion=result.proportion,
        ci_low=float(low),
        ci_high=float(high),
        threshold=threshold,
    )


def proportion_line(summary: SimulationSummary) -> str:
    """Return the one-line textual summary."""
    return (
        "Proportion of iterations with at least one significant p-value: "
        f"{summary.proportion:g}"
    )


def trial_records(result: SimulationResult) -> list[TrialRecord]:
    """Convert battery traces into persisted trial records."""
    return [
        TrialRecord(
            trial=i,
            flagged=outcome.flagged,
            triggered=outcome.triggered,
            p_values=outcome.p_values(),
        )
        for i, outcome in enumerate(result.traces, start=1)
    ]


def trigger_counts(result: SimulationResult) -> dict[str, int]:
    """Count, per battery test, the trials in which it was significant."""
    counts: dict[str, int] = {}
    for outcome in result.traces:
        for sub in outcome.outcomes:
            counts.setdefault(sub.name, 0)
            if sub.decision.significant:
                counts[sub.name] += 1
    return counts


def chart_titles(summary: SimulationSummary) -> tuple[str, str]:
    """Return the chart title and subtitle for the run's mode."""
    if summary.mode == MODE_BASELINE:
        return (
            "Baseline Simulation Results",
            f"Proportion of {summary.trials} Simulations Where the Single Y ~ X "
            f"Test Was Significant (p < {summary.threshold:g})",
        )
    return (
        "P-Hacking Simulation Results",
        f"Proportion of {summary.trials} Simulations Finding at Least One "
        f"False Positive (p < {summary.threshold:g})",
    )


def render_chart(
    summary: SimulationSummary,
    path: Path,
    title: str | None = None,
) -> Path:
    """Write a two-bar chart of flagged vs not-flagged trials to path.

    The title and subtitle default to those of chart_titles().
    """
    import matplotlib  # noqa: PLC0415

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt  # noqa: PLC0415
    from matplotlib.ticker import PercentFormatter  # noqa: PLC0415

    default_title, subtitle = chart_titles(summary)
    trials = max(summary.trials, 1)
    labels = [FLAGGED_LABEL, NOT_FLAGGED_LABEL]
    shares = [summary.flagged / trials, summary.not_flagged / trials]

    fig, ax = plt.subplots(figsize=(8, 6))
    try:
        bars = ax.bar(
            labels,
            shares,
            width=0.6,
            color=[FLAGGED_COLOR, NOT_FLAGGED_COLOR],
            edgecolor="black",
        )
        ax.bar_label(bars, labels=[f"{s:.1%}" for s in shares], padding=4, fontsize=13)
        ax.set_ylim(0, 1)
        ax.yaxis.set_major_formatter(PercentFormatter(xmax=1))
        ax.set_ylabel("Proportion of Simulations")
        ax.set_title(
            title or default_title, fontweight="bold", fontsize=18, loc="left", pad=30,
        )
        fig.text(0.125, 0.9, subtitle, fontsize=11)
        ax.grid(axis="y", alpha=0.3)
        ax.grid(axis="x", visible=False)
        for label in ax.get_xticklabels():
            label.set_fontweight("bold")

        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=150, bbox_inches="tight")
    finally:
        plt.close(fig)

    logger.info("Wrote chart to %s", path)
    return path
