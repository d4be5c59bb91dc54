# Copyright (c) Syntropy Systems
"""OLS fitting and significance decisions.

A regression request is a structured RegressionSpec rather than a formula
string. fit_ols() returns either a FitResult or a FitError and never raises
for numerical problems; decide() is the single place where a FitError is
turned into a NOT_SIGNIFICANT decision.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

import numpy as np
import statsmodels.api as sm
from typing_extensions import TypeAlias

from phacksim.data import PREDICTOR, RESPONSE

if TYPE_CHECKING:
    from collections.abc import Sequence

    import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.05


class Decision(str, Enum):
    """Outcome of a single significance test."""

    SIGNIFICANT = "significant"
    NOT_SIGNIFICANT = "not_significant"

    @property
    def significant(self) -> bool:
        """Return True for SIGNIFICANT."""
        return self is Decision.SIGNIFICANT


@dataclass(frozen=True)
class RegressionSpec:
    """Response, predictor and ordered control columns for one OLS fit."""

    response: str = RESPONSE
    predictor: str = PREDICTOR
    controls: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        """All columns the fit reads, response first."""
        return (self.response, self.predictor, *self.controls)

    @property
    def parameter_count(self) -> int:
        """Intercept plus predictor plus controls."""
        return 2 + len(self.controls)

    def label(self) -> str:
        """Return a display label such as 'Y ~ X + Z1'."""
        rhs = " + ".join((self.predictor, *self.controls))
        return f"{self.response} ~ {rhs}"


@dataclass(frozen=True)
class FitResult:
    """Predictor coefficient statistics from a successful fit."""

    coefficient: float
    std_error: float
    p_value: float
    nobs: int
    df_resid: int


@dataclass(frozen=True)
class FitError:
    """Why a fit could not produce a usable p-value."""

    reason: str


FitOutcome: TypeAlias = Union[FitResult, FitError]


def fit_ols(dataset: pd.DataFrame, spec: RegressionSpec) -> FitOutcome:
    """Fit spec.response on intercept + predictor + controls.

    Returns a FitError when the columns are missing, the design is
    underdetermined or rank deficient, or any input or output is not finite.
    """
    missing = [c for c in spec.columns if c not in dataset.columns]
    if missing:
        return FitError(f"missing columns: {', '.join(missing)}")

    nobs = len(dataset)
    if nobs < spec.parameter_count:
        return FitError(f"{nobs} rows for {spec.parameter_count} parameters")

    endog = dataset[spec.response].to_numpy(dtype=float)
    regressors = dataset[[spec.predictor, *spec.controls]].to_numpy(dtype=float)
    exog = np.column_stack([np.ones(nobs), regressors])

    if not (np.isfinite(endog).all() and np.isfinite(exog).all()):
        return FitError("non-finite input")

    rank = int(np.linalg.matrix_rank(exog))
    if rank < spec.parameter_count:
        return FitError(f"rank deficient design ({rank} < {spec.parameter_count})")

    df_resid = nobs - spec.parameter_count
    if df_resid < 1:
        return FitError("no residual degrees of freedom")

    try:
        results = sm.OLS(endog, exog).fit()
    except (np.linalg.LinAlgError, ValueError) as exc:
        return FitError(f"fit failed: {exc}")

    # Column 0 is the intercept, column 1 the predictor
    coefficient = float(results.params[1])
    std_error = float(results.bse[1])
    p_value = float(results.pvalues[1])
    if not all(np.isfinite(v) for v in (coefficient, std_error, p_value)):
        return FitError("non-finite estimate")

    return FitResult(
        coefficient=coefficient,
        std_error=std_error,
        p_value=p_value,
        nobs=nobs,
        df_resid=df_resid,
    )


def decide(fit: FitOutcome, threshold: float = DEFAULT_THRESHOLD) -> Decision:
    """Map a fit outcome to a decision; any FitError is NOT_SIGNIFICANT."""
    if isinstance(fit, FitError):
        logger.debug("Fit failed, counting as not significant: %s", fit.reason)
        return Decision.NOT_SIGNIFICANT
    if fit.p_value < threshold:
        return Decision.SIGNIFICANT
    return Decision.NOT_SIGNIFICANT


def evaluate(
    dataset: pd.DataFrame,
    response: str = RESPONSE,
    predictor: str = PREDICTOR,
    controls: Sequence[str] = (),
    threshold: float = DEFAULT_THRESHOLD,
) -> Decision:
    """Fit one regression and return its significance decision."""
    spec = RegressionSpec(
        response=response,
        predictor=predictor,
        controls=tuple(controls),
    )
    return decide(fit_ols(dataset, spec), threshold)
