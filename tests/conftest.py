# Copyright (c) Syntropy Systems
"""Pytest fixtures for phacksim tests."""

import json
import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from phacksim.data import generate

# Store original cwd at module load time
_original_cwd = Path.cwd()

GOLDEN_PATH = Path(__file__).parent / "golden" / "reference_runs.json"


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add the --update-golden option."""
    parser.addoption(
        "--update-golden",
        action="store_true",
        default=False,
        help="Record reference run values instead of checking them",
    )


class GoldenValues:
    """Recorded outputs of fixed-seed reference runs."""

    def __init__(self, path: Path, update: bool) -> None:  # noqa: FBT001
        self.path = path
        self.update = update

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text())

    def check(self, key: str, value: object) -> None:
        """Assert value equals the recorded one, or record it with --update-golden."""
        data = self._load()
        if self.update:
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            _ = self.path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n")
            return

        if key not in data:
            pytest.skip(f"No recorded value for {key}; run pytest --update-golden")
        assert value == data[key]


@pytest.fixture
def golden(request: pytest.FixtureRequest) -> GoldenValues:
    """Golden values stored under tests/golden/."""
    return GoldenValues(GOLDEN_PATH, update=request.config.getoption("--update-golden"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def phacksim_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary phacksim project directory and chdir into it."""
    project_dir = temp_dir / ".phacksim"
    project_dir.mkdir()
    (project_dir / "runs").mkdir()

    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def outside_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Chdir into an empty directory with no .phacksim above it."""
    os.chdir(temp_dir)
    yield temp_dir
    os.chdir(_original_cwd)


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator."""
    return np.random.default_rng(12345)


@pytest.fixture
def null_dataset(rng: np.random.Generator) -> pd.DataFrame:
    """A 200-row null dataset with five nuisance covariates."""
    return generate(200, 5, rng)


@pytest.fixture
def planted_dataset(rng: np.random.Generator) -> pd.DataFrame:
    """A dataset where Y depends strongly on X."""
    data = generate(200, 5, rng)
    data["Y"] = 2.0 * data["X"] + 0.1 * data["Y"]
    return data
