# Copyright (c) Syntropy Systems
"""Null dataset generation."""
from __future__ import annotations

import numpy as np
import pandas as pd

RESPONSE = "Y"
PREDICTOR = "X"


def covariate_names(covariate_count: int) -> list[str]:
    """Return nuisance covariate names Z1..Zk."""
    return [f"Z{i}" for i in range(1, covariate_count + 1)]


def column_names(covariate_count: int) -> list[str]:
    """Return dataset columns in draw order: X, Y, Z1..Zk."""
    return [PREDICTOR, RESPONSE, *covariate_names(covariate_count)]


def generate(
    n: int,
    covariate_count: int,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Generate one null dataset.

    Every column is an independent standard normal draw, so X and Y have
    no true relationship. Consumes exactly n * (covariate_count + 2) draws
    from rng, one column at a time in column_names() order.
    """
    if n < 1:
        msg = f"n must be >= 1, got {n}"
        raise ValueError(msg)
    if covariate_count < 0:
        msg = f"covariate_count must be >= 0, got {covariate_count}"
        raise ValueError(msg)

    columns = {name: rng.standard_normal(n) for name in column_names(covariate_count)}
    return pd.DataFrame(columns)
