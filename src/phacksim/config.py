# Copyright (c) Syntropy Systems
"""Configuration management for phacksim."""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import cast

import yaml

PROJECT_DIR_NAME = ".phacksim"


class ConfigError(ValueError):
    """Raised when a simulation configuration is invalid."""


@dataclass
class SimulationConfig:
    """Configuration for a simulation run."""

    # Rows in each generated dataset
    observations_per_trial: int = 1000

    # Number of independent trials
    trial_count: int = 1000

    # Nuisance covariates Z1..Zk added to each dataset
    nuisance_covariate_count: int = 5

    # p-value cutoff for a "significant" result
    significance_threshold: float = 0.05

    # Root seed; every trial derives its own stream from it
    random_seed: int = 12345

    # Worker processes (1 runs trials in-process)
    workers: int = 1

    def validate(self) -> SimulationConfig:
        """Check every field and return self.

        Raises ConfigError naming the first invalid field.
        """
        if self.trial_count < 1:
            msg = f"trial_count must be >= 1, got {self.trial_count}"
            raise ConfigError(msg)
        if self.observations_per_trial < 1:
            msg = (
                "observations_per_trial must be >= 1, "
                f"got {self.observations_per_trial}"
            )
            raise ConfigError(msg)
        if self.nuisance_covariate_count < 0:
            msg = (
                "nuisance_covariate_count must be >= 0, "
                f"got {self.nuisance_covariate_count}"
            )
            raise ConfigError(msg)
        if not 0.0 < self.significance_threshold < 1.0:
            msg = (
                "significance_threshold must be between 0 and 1, "
                f"got {self.significance_threshold}"
            )
            raise ConfigError(msg)
        if self.random_seed < 0:
            msg = f"random_seed must be >= 0, got {self.random_seed}"
            raise ConfigError(msg)
        if self.workers < 1:
            msg = f"workers must be >= 1, got {self.workers}"
            raise ConfigError(msg)
        return self

    def to_dict(self) -> dict[str, int | float]:
        """Return the configuration as a plain dictionary."""
        return cast("dict[str, int | float]", asdict(self))


_INT_FIELDS = (
    "observations_per_trial",
    "trial_count",
    "nuisance_covariate_count",
    "random_seed",
    "workers",
)


def _apply(config: SimulationConfig, data: dict[str, object]) -> None:
    known = {f.name for f in fields(SimulationConfig)}
    for key, value in data.items():
        if key not in known or value is None:
            continue
        if key in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"{key} must be an integer, got {value!r}"
                raise ConfigError(msg)
            setattr(config, key, value)
        else:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                msg = f"{key} must be a number, got {value!r}"
                raise ConfigError(msg)
            setattr(config, key, float(value))


def find_project_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .phacksim directory by walking up from start_path.

    Returns None if no .phacksim directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        project_dir = current / PROJECT_DIR_NAME
        if project_dir.is_dir():
            return project_dir
        current = current.parent

    # Check root
    project_dir = current / PROJECT_DIR_NAME
    if project_dir.is_dir():
        return project_dir

    return None


def load_config(
    path: Path | None = None,
    project_dir: Path | None = None,
) -> SimulationConfig:
    """Load configuration from YAML or defaults.

    Looks for config in:
    1. Explicit path
    2. Provided project_dir
    3. Nearest .phacksim directory walking up
    4. Defaults
    """
    config = SimulationConfig()

    config_path = path
    if config_path is None:
        if project_dir is None:
            project_dir = find_project_dir()
        if project_dir is not None:
            config_path = project_dir / "config.yaml"
    elif not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise ConfigError(msg)

    if config_path is not None and config_path.exists():
        with config_path.open() as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            msg = f"Config file must contain a mapping: {config_path}"
            raise ConfigError(msg)
        _apply(config, cast("dict[str, object]", raw))

    return config


def get_runs_dir(project_dir: Path | None = None) -> Path:
    """Get the path to the runs directory."""
    if project_dir is None:
        project_dir = find_project_dir()

    if project_dir is None:
        msg = "No .phacksim directory found. Run 'phacksim init' first."
        raise RuntimeError(msg)

    return project_dir / "runs"


def require_project_dir() -> Path:
    """Get project directory or raise an error if not found."""
    project_dir = find_project_dir()
    if project_dir is None:
        msg = "No .phacksim directory found. Run 'phacksim init' first."
        raise RuntimeError(msg)
    return project_dir
