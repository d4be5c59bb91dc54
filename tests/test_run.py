# Copyright (c) Syntropy Systems
"""Tests for persisted simulation runs."""

from pathlib import Path

import pytest

from phacksim.config import SimulationConfig
from phacksim.models.run import SimulationSummary, TrialRecord
from phacksim.run import SimulationRun, find_run, list_runs, read_meta, read_trials


def _summary() -> SimulationSummary:
    return SimulationSummary(
        mode="battery",
        trials=10,
        flagged=4,
        not_flagged=6,
        proportion=0.4,
        ci_low=0.17,
        ci_high=0.69,
        threshold=0.05,
    )


class TestSimulationRun:
    """Tests for the SimulationRun class."""

    def test_run_creates_directory(self, phacksim_project: Path) -> None:
        """Test that a run creates its directory under .phacksim/runs."""
        run = SimulationRun(SimulationConfig(), mode="battery", name="test-run")

        assert run.run_dir.parent == phacksim_project.resolve() / ".phacksim" / "runs"
        assert (run.run_dir / "meta.json").exists()
        assert (run.run_dir / "config.json").exists()

        meta = read_meta(run.run_dir)
        assert meta is not None
        assert meta.status == "running"
        assert meta.name == "test-run"

        run.finish()

    def test_run_summary(self, tmp_path: Path) -> None:
        """Test setting the summary and finishing."""
        run = SimulationRun(SimulationConfig(), mode="battery", run_dir=tmp_path / "r1")

        run.summary(_summary())
        run.finish()

        meta = read_meta(run.run_dir)
        assert meta is not None
        assert meta.status == "completed"
        assert meta.finished_at is not None
        assert meta.summary == _summary()

    def test_log_trials(self, tmp_path: Path) -> None:
        """Test trial records round-trip through trials.jsonl."""
        run = SimulationRun(SimulationConfig(), mode="battery", run_dir=tmp_path / "r1")
        records = [
            TrialRecord(trial=1, flagged=True, triggered=["upper_half"],
                        p_values={"upper_half": 0.01, "stack_5": None}),
            TrialRecord(trial=2, flagged=False),
        ]

        run.log_trials(records)
        run.finish()

        assert read_trials(run.run_dir / "trials.jsonl") == records
        meta = read_meta(run.run_dir)
        assert meta is not None
        assert meta.trials_file == "trials.jsonl"

    def test_read_trials_partial_line(self, tmp_path: Path) -> None:
        """Test a truncated final line is skipped."""
        path = tmp_path / "trials.jsonl"
        _ = path.write_text('{"trial": 1, "flagged": true}\n{"trial": 2, "fla')

        records = read_trials(path)

        assert len(records) == 1
        assert records[0].flagged

    def test_read_trials_missing(self, tmp_path: Path) -> None:
        """Test a missing file reads as empty."""
        assert read_trials(tmp_path / "nope.jsonl") == []

    def test_cannot_log_after_finish(self, tmp_path: Path) -> None:
        """Test a finished run rejects further writes."""
        run = SimulationRun(SimulationConfig(), mode="battery", run_dir=tmp_path / "r1")
        run.finish()

        with pytest.raises(RuntimeError):
            run.summary(_summary())
        with pytest.raises(RuntimeError):
            run.log_trials([])

    def test_context_manager(self, tmp_path: Path) -> None:
        """Test the context manager completes the run."""
        with SimulationRun(SimulationConfig(), mode="baseline", run_dir=tmp_path / "r1") as run:
            run.summary(_summary())

        meta = read_meta(run.run_dir)
        assert meta is not None
        assert meta.status == "completed"
        assert meta.mode == "baseline"

    def test_context_manager_exception(self, tmp_path: Path) -> None:
        """Test an exception marks the run failed with its message."""
        msg = "generator failed"
        with pytest.raises(RuntimeError), SimulationRun(
            SimulationConfig(), mode="battery", run_dir=tmp_path / "r1"
        ) as run:
            raise RuntimeError(msg)

        meta = read_meta(run.run_dir)
        assert meta is not None
        assert meta.status == "failed"
        assert meta.error == "generator failed"


class TestListRuns:
    """Tests for run discovery."""

    def test_list_and_find(self, tmp_path: Path) -> None:
        """Test runs are listed and found by prefix."""
        runs_dir = tmp_path / "runs"
        for run_id in ("20240101-000000-aaaaaa", "20240102-000000-bbbbbb"):
            SimulationRun(
                SimulationConfig(),
                mode="battery",
                run_id=run_id,
                run_dir=runs_dir / run_id,
            ).finish()

        metas = list_runs(runs_dir)
        assert len(metas) == 2

        assert [m.id for m in find_run(runs_dir, "20240102")] == ["20240102-000000-bbbbbb"]
        assert len(find_run(runs_dir, "2024")) == 2
        assert find_run(runs_dir, "1999") == []

    def test_list_missing_dir(self, tmp_path: Path) -> None:
        """Test a missing runs directory lists nothing."""
        assert list_runs(tmp_path / "runs") == []
