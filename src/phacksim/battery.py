# Copyright (c) Syntropy Systems
"""The fixed battery of alternative analyses applied to each trial.

Three families of tests run against the same dataset:

- stack: Y ~ X, Y ~ X + Z1, ... up through all nuisance covariates
- subgroup: Y ~ X on the upper half, lower half and a random half
- transform: transformed Y ~ X on the full dataset

No correction for the number of tests is applied.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import numpy as np

from phacksim.data import PREDICTOR, RESPONSE, covariate_names
from phacksim.regression import (
    DEFAULT_THRESHOLD,
    Decision,
    FitResult,
    RegressionSpec,
    decide,
    fit_ols,
)

if TYPE_CHECKING:
    import pandas as pd

# Every view takes (dataset, rng); only random_half draws from rng.
View = Callable[["pd.DataFrame", np.random.Generator], "pd.DataFrame"]

FAMILY_STACK = "stack"
FAMILY_SUBGROUP = "subgroup"
FAMILY_TRANSFORM = "transform"

RANDOM_FRACTION = 0.5


def full_dataset(
    dataset: pd.DataFrame,
    rng: np.random.Generator,  # noqa: ARG001
) -> pd.DataFrame:
    """Return the dataset unchanged."""
    return dataset


def upper_half(
    dataset: pd.DataFrame,
    rng: np.random.Generator,  # noqa: ARG001
) -> pd.DataFrame:
    """Rows where Y is strictly above the median of Y."""
    y = dataset[RESPONSE]
    return dataset.loc[y > y.median()].reset_index(drop=True)


def lower_half(
    dataset: pd.DataFrame,
    rng: np.random.Generator,  # noqa: ARG001
) -> pd.DataFrame:
    """Rows where Y is at or below the median of Y."""
    y = dataset[RESPONSE]
    return dataset.loc[y <= y.median()].reset_index(drop=True)


def random_half(dataset: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    """Half of the rows sampled without replacement using rng."""
    size = int(round(RANDOM_FRACTION * len(dataset)))
    rows = rng.choice(len(dataset), size=size, replace=False)
    return dataset.iloc[rows].reset_index(drop=True)


# Transformed response column -> function of Y
TRANSFORMS: dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "Y_log": lambda y: np.log(np.abs(y) + 1),
    "Y_sqrt": lambda y: np.sqrt(np.abs(y)),
    "Y_squared": lambda y: y**2,
    "Y_exp": lambda y: np.exp(-np.abs(y)),
}


def with_transforms(
    dataset: pd.DataFrame,
    rng: np.random.Generator,  # noqa: ARG001
) -> pd.DataFrame:
    """Copy of the dataset with every transformed response column added."""
    y = dataset[RESPONSE].to_numpy(dtype=float)
    return dataset.assign(**{name: fn(y) for name, fn in TRANSFORMS.items()})


@dataclass(frozen=True)
class BatteryTest:
    """One analysis in the battery: a view of the data and a regression."""

    name: str
    family: str
    spec: RegressionSpec
    view: View = full_dataset


@dataclass(frozen=True)
class SubtestOutcome:
    """Decision and p-value (None when the fit failed) for one test."""

    name: str
    family: str
    decision: Decision
    p_value: float | None = None


@dataclass
class BatteryOutcome:
    """All test outcomes for one trial, in battery order."""

    outcomes: list[SubtestOutcome] = field(default_factory=list)

    @property
    def flagged(self) -> bool:
        """True iff any test in the battery was significant."""
        return any(o.decision.significant for o in self.outcomes)

    @property
    def triggered(self) -> list[str]:
        """Names of the significant tests."""
        return [o.name for o in self.outcomes if o.decision.significant]

    def p_values(self) -> dict[str, float | None]:
        """Map test name to p-value."""
        return {o.name: o.p_value for o in self.outcomes}


_TRANSFORM_TESTS = (
    ("log_abs", "Y_log"),
    ("sqrt_abs", "Y_sqrt"),
    ("squared", "Y_squared"),
    ("exp_neg_abs", "Y_exp"),
)


def battery_tests(covariate_count: int) -> list[BatteryTest]:
    """Enumerate the fixed battery for k nuisance covariates.

    Returns (k + 1) + 3 + 4 tests in evaluation order.
    """
    covariates = covariate_names(covariate_count)
    tests = [
        BatteryTest(
            name=f"stack_{size}",
            family=FAMILY_STACK,
            spec=RegressionSpec(RESPONSE, PREDICTOR, tuple(covariates[:size])),
        )
        for size in range(covariate_count + 1)
    ]

    baseline = RegressionSpec(RESPONSE, PREDICTOR)
    tests.extend(
        BatteryTest(name=name, family=FAMILY_SUBGROUP, spec=baseline, view=view)
        for name, view in (
            ("upper_half", upper_half),
            ("lower_half", lower_half),
            ("random_half", random_half),
        )
    )

    tests.extend(
        BatteryTest(
            name=name,
            family=FAMILY_TRANSFORM,
            spec=RegressionSpec(column, PREDICTOR),
            view=with_transforms,
        )
        for name, column in _TRANSFORM_TESTS
    )
    return tests


def _covariate_count(dataset: pd.DataFrame) -> int:
    count = 0
    while f"Z{count + 1}" in dataset.columns:
        count += 1
    return count


def run_battery(
    dataset: pd.DataFrame,
    rng: np.random.Generator,
    threshold: float = DEFAULT_THRESHOLD,
    covariate_count: int | None = None,
) -> BatteryOutcome:
    """Run every battery test on one dataset.

    Tests are never short-circuited, so each trial consumes the same amount
    of randomness and the outcome lists every test. Views are computed once
    per trial and shared by the tests that use them.
    """
    if covariate_count is None:
        covariate_count = _covariate_count(dataset)

    views: dict[View, pd.DataFrame] = {}
    outcome = BatteryOutcome()
    for test in battery_tests(covariate_count):
        if test.view not in views:
            views[test.view] = test.view(dataset, rng)
        fit = fit_ols(views[test.view], test.spec)
        outcome.outcomes.append(
            SubtestOutcome(
                name=test.name,
                family=test.family,
                decision=decide(fit, threshold),
                p_value=fit.p_value if isinstance(fit, FitResult) else None,
            )
        )
    return outcome


def run_baseline_test(
    dataset: pd.DataFrame,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """Single Y ~ X test with no battery."""
    fit = fit_ols(dataset, RegressionSpec(RESPONSE, PREDICTOR))
    return decide(fit, threshold).significant
