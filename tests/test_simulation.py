# Copyright (c) Syntropy Systems
"""Tests for the trial runner."""

from __future__ import annotations

import pytest

import phacksim.simulation as simulation
from phacksim.config import ConfigError, SimulationConfig
from phacksim.simulation import (
    MODE_BASELINE,
    SimulationResult,
    run_baseline,
    run_simulation,
    simulate,
    trial_seeds,
)


class TestSimulationResult:
    """Tests for result aggregation."""

    def test_counts(self):
        """Test flagged counts and proportion."""
        result = SimulationResult(flags=[True, False, True, False])

        assert result.trial_count == 4
        assert result.flagged_count == 2
        assert result.not_flagged_count == 2
        assert result.proportion == 0.5

    def test_empty(self):
        """Test an empty result has zero proportion."""
        assert SimulationResult().proportion == 0.0


class TestRunSimulation:
    """Tests for run_simulation()."""

    def test_one_flag_per_trial(self):
        """Test exactly trial_count boolean outcomes are produced."""
        result = run_simulation(trial_count=15, observations_per_trial=80)

        assert len(result.flags) == 15
        assert all(isinstance(flag, bool) for flag in result.flags)

    def test_deterministic(self):
        """Test the same seed reproduces the same outcome sequence."""
        first = run_simulation(trial_count=10, observations_per_trial=60, seed=4)
        second = run_simulation(trial_count=10, observations_per_trial=60, seed=4)

        assert first.flags == second.flags

    def test_seed_changes_data(self):
        """Test different seeds give different trial data."""
        first = run_simulation(trial_count=3, observations_per_trial=60, seed=1, trace=True)
        second = run_simulation(trial_count=3, observations_per_trial=60, seed=2, trace=True)

        assert first.traces[0].p_values() != second.traces[0].p_values()

    def test_trace(self):
        """Test traces are kept per trial and agree with the flags."""
        result = run_simulation(trial_count=6, observations_per_trial=60, trace=True)

        assert len(result.traces) == 6
        assert [t.flagged for t in result.traces] == result.flags
        assert all(len(t.outcomes) == 13 for t in result.traces)

    def test_no_trace_by_default(self):
        """Test traces are dropped unless requested."""
        result = run_simulation(trial_count=3, observations_per_trial=60)
        assert result.traces == []

    def test_parallel_matches_sequential(self):
        """Test worker processes reproduce the sequential outcomes."""
        sequential = run_simulation(
            trial_count=12, observations_per_trial=60, seed=9, trace=True,
        )
        parallel = run_simulation(
            trial_count=12, observations_per_trial=60, seed=9, trace=True, workers=2,
        )

        assert parallel.flags == sequential.flags
        assert [t.p_values() for t in parallel.traces] == [
            t.p_values() for t in sequential.traces
        ]

    def test_prefix_stable(self):
        """Test trial i does not depend on the total trial count."""
        short = run_simulation(trial_count=5, observations_per_trial=60, seed=3)
        long = run_simulation(trial_count=10, observations_per_trial=60, seed=3)

        assert long.flags[:5] == short.flags

    def test_tiny_datasets_complete(self):
        """Test runs with too few rows for most fits still finish."""
        result = run_simulation(trial_count=5, observations_per_trial=3)
        assert len(result.flags) == 5


class TestValidation:
    """Tests for configuration errors raised before any trial."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"trial_count": 0},
            {"observations_per_trial": 0},
            {"covariate_count": -1},
            {"threshold": 1.5},
            {"threshold": 0.0},
            {"seed": -1},
            {"workers": 0},
        ],
    )
    def test_invalid_config(self, kwargs, monkeypatch):
        """Test invalid settings raise ConfigError without running trials."""
        calls = []
        monkeypatch.setattr(simulation, "generate", lambda *a: calls.append(a))

        with pytest.raises(ConfigError):
            _ = run_simulation(**kwargs)
        assert calls == []

    def test_unknown_mode(self):
        """Test an unknown mode is a configuration error."""
        with pytest.raises(ConfigError, match="mode"):
            _ = simulate(SimulationConfig(trial_count=1), mode="forking")


class TestFailures:
    """Tests for fatal generator errors."""

    def test_generator_failure_aborts(self, monkeypatch):
        """Test an exception in data generation propagates."""
        def broken(*_args):
            msg = "random source exhausted"
            raise RuntimeError(msg)

        monkeypatch.setattr(simulation, "generate", broken)

        with pytest.raises(RuntimeError, match="exhausted"):
            _ = run_simulation(trial_count=3, observations_per_trial=10)


class TestProgress:
    """Tests for the progress callback."""

    def test_progress_called_per_trial(self):
        """Test progress reports each completed trial."""
        seen: list[tuple[int, int]] = []
        config = SimulationConfig(trial_count=4, observations_per_trial=40)

        _ = simulate(config, progress=lambda done, total: seen.append((done, total)))

        assert seen == [(1, 4), (2, 4), (3, 4), (4, 4)]


class TestSeeds:
    """Tests for per-trial seed streams."""

    def test_trial_seeds_are_distinct(self):
        """Test each trial gets its own child seed."""
        seeds = trial_seeds(12345, 5)
        states = {tuple(s.generate_state(4)) for s in seeds}
        assert len(states) == 5


class TestBaseline:
    """Tests for the single-test baseline."""

    def test_baseline_mode(self):
        """Test the baseline result is tagged with its mode."""
        result = run_baseline(trial_count=5, observations_per_trial=60)
        assert result.mode == MODE_BASELINE
        assert len(result.flags) == 5

    def test_baseline_implies_battery(self):
        """Test a baseline hit is always also a battery hit."""
        battery = run_simulation(trial_count=40, observations_per_trial=100, seed=21)
        baseline = run_baseline(trial_count=40, observations_per_trial=100, seed=21)

        for single, full in zip(baseline.flags, battery.flags):
            assert full or not single

    def test_inflation(self):
        """Test the battery flags far more trials than the single test."""
        battery = run_simulation(trial_count=300, observations_per_trial=200, seed=5)
        baseline = run_baseline(trial_count=300, observations_per_trial=200, seed=5)

        assert battery.proportion > 0.12
        assert battery.proportion > baseline.proportion + 0.05

    @pytest.mark.slow
    def test_baseline_calibration(self):
        """Test the single-test false-positive rate converges to 0.05."""
        result = run_baseline(trial_count=10000, observations_per_trial=1000, seed=12345)
        assert result.proportion == pytest.approx(0.05, abs=0.015)
