# Copyright (c) Syntropy Systems
"""Trial runner for the false-positive simulation."""
from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import numpy as np

from phacksim.battery import BatteryOutcome, run_baseline_test, run_battery
from phacksim.config import ConfigError, SimulationConfig
from phacksim.data import generate
from phacksim.regression import DEFAULT_THRESHOLD

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

MODE_BATTERY = "battery"
MODE_BASELINE = "baseline"

ProgressCallback = Callable[[int, int], None]


@dataclass
class SimulationResult:
    """Per-trial flags in trial order, plus optional battery traces."""

    flags: list[bool] = field(default_factory=list)
    traces: list[BatteryOutcome] = field(default_factory=list)
    mode: str = MODE_BATTERY

    @property
    def trial_count(self) -> int:
        """Number of completed trials."""
        return len(self.flags)

    @property
    def flagged_count(self) -> int:
        """Trials with at least one significant test."""
        return sum(self.flags)

    @property
    def not_flagged_count(self) -> int:
        """Trials with no significant test."""
        return self.trial_count - self.flagged_count

    @property
    def proportion(self) -> float:
        """Fraction of trials flagged significant."""
        if not self.flags:
            return 0.0
        return self.flagged_count / self.trial_count


@dataclass(frozen=True)
class _TrialTask:
    index: int
    seed: np.random.SeedSequence
    observations: int
    covariates: int
    threshold: float
    mode: str
    trace: bool


def trial_seeds(seed: int, trial_count: int) -> list[np.random.SeedSequence]:
    """Spawn one independent child seed per trial from the root seed."""
    return np.random.SeedSequence(seed).spawn(trial_count)


def _run_trial(task: _TrialTask) -> tuple[bool, BatteryOutcome | None]:
    rng = np.random.default_rng(task.seed)
    dataset = generate(task.observations, task.covariates, rng)

    if task.mode == MODE_BASELINE:
        return run_baseline_test(dataset, task.threshold), None

    outcome = run_battery(
        dataset,
        rng,
        threshold=task.threshold,
        covariate_count=task.covariates,
    )
    return outcome.flagged, outcome if task.trace else None


def _tasks(
    config: SimulationConfig,
    mode: str,
    trace: bool,  # noqa: FBT001
) -> Iterator[_TrialTask]:
    seeds = trial_seeds(config.random_seed, config.trial_count)
    for index, seed in enumerate(seeds, start=1):
        yield _TrialTask(
            index=index,
            seed=seed,
            observations=config.observations_per_trial,
            covariates=config.nuisance_covariate_count,
            threshold=config.significance_threshold,
            mode=mode,
            trace=trace,
        )


def simulate(
    config: SimulationConfig,
    mode: str = MODE_BATTERY,
    trace: bool = False,  # noqa: FBT001, FBT002
    progress: ProgressCallback | None = None,
) -> SimulationResult:
    """Run every configured trial and collect one flag per trial.

    The configuration is validated before the first trial. Trial i always
    draws from child stream i of the root seed, so results are identical
    whether trials run in-process or across worker processes. Any exception
    raised while generating data aborts the whole run.
    """
    if mode not in (MODE_BATTERY, MODE_BASELINE):
        msg = f"Unknown simulation mode: {mode}"
        raise ConfigError(msg)
    _ = config.validate()

    logger.info(
        "Starting %s simulation: %d trials x %d observations (seed=%d, workers=%d)",
        mode,
        config.trial_count,
        config.observations_per_trial,
        config.random_seed,
        config.workers,
    )

    result = SimulationResult(mode=mode)
    tasks = _tasks(config, mode, trace)
    total = config.trial_count

    if config.workers == 1:
        outcomes: Iterator[tuple[bool, BatteryOutcome | None]] = map(_run_trial, tasks)
        _collect(result, outcomes, total, progress)
    else:
        chunksize = max(1, total // (config.workers * 4))
        with ProcessPoolExecutor(max_workers=config.workers) as pool:
            # map() yields in submission order
            outcomes = pool.map(_run_trial, tasks, chunksize=chunksize)
            _collect(result, outcomes, total, progress)

    logger.info(
        "Finished %s simulation: %d/%d trials flagged (%.3f)",
        mode,
        result.flagged_count,
        result.trial_count,
        result.proportion,
    )
    return result


def _collect(
    result: SimulationResult,
    outcomes: Iterator[tuple[bool, BatteryOutcome | None]],
    total: int,
    progress: ProgressCallback | None,
) -> None:
    for flagged, outcome in outcomes:
        result.flags.append(bool(flagged))
        if outcome is not None:
            result.traces.append(outcome)
        if progress is not None:
            progress(result.trial_count, total)


def run_simulation(  # noqa: PLR0913
    trial_count: int = 1000,
    observations_per_trial: int = 1000,
    covariate_count: int = 5,
    seed: int = 12345,
    threshold: float = DEFAULT_THRESHOLD,
    workers: int = 1,
    trace: bool = False,  # noqa: FBT001, FBT002
) -> SimulationResult:
    """Run the full battery on trial_count null datasets."""
    config = SimulationConfig(
        observations_per_trial=observations_per_trial,
        trial_count=trial_count,
        nuisance_covariate_count=covariate_count,
        significance_threshold=threshold,
        random_seed=seed,
        workers=workers,
    )
    return simulate(config, mode=MODE_BATTERY, trace=trace)


def run_baseline(
    trial_count: int = 1000,
    observations_per_trial: int = 1000,
    seed: int = 12345,
    threshold: float = DEFAULT_THRESHOLD,
    workers: int = 1,
) -> SimulationResult:
    """Run the single Y ~ X test on trial_count null datasets.

    Datasets still include the default nuisance covariates so that trial i
    sees the same X and Y as in run_simulation() with the same seed.
    """
    config = SimulationConfig(
        observations_per_trial=observations_per_trial,
        trial_count=trial_count,
        significance_threshold=threshold,
        random_seed=seed,
        workers=workers,
    )
    return simulate(config, mode=MODE_BASELINE)
