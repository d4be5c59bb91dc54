# Copyright (c) Syntropy Systems
"""Persistence of simulation runs under .phacksim/runs/."""
from __future__ import annotations

import json
import logging
import uuid
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from typing_extensions import Self

from phacksim.config import get_runs_dir
from phacksim.models.run import RunMeta, SimulationSummary, TrialRecord

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from phacksim.config import SimulationConfig

logger = logging.getLogger(__name__)


def utcnow() -> str:
    """Get current UTC time as ISO format string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def new_run_id() -> str:
    """Generate a sortable run ID."""
    now = datetime.now(timezone.utc)
    rand = str(uuid.uuid4())[:6]
    return f"{now.strftime('%Y%m%d-%H%M%S')}-{rand}"


class SimulationRun:
    """A persisted simulation run.

    Writes config.json and meta.json on creation, trial traces to
    trials.jsonl, and marks the run completed or failed when finished.
    """

    _finished: bool
    _finished_at: str | None
    _status: str
    _summary: SimulationSummary | None
    _error: str | None
    _trials_written: bool

    run_id: str
    run_dir: Path
    name: str
    mode: str
    config: SimulationConfig
    started_at: str
    artifacts_dir: Path
    _meta_path: Path
    _config_path: Path
    _trials_path: Path

    def __init__(
        self,
        config: SimulationConfig,
        mode: str,
        name: str | None = None,
        run_id: str | None = None,
        run_dir: Path | None = None,
    ) -> None:
        """Create the run directory and write initial metadata.

        Args:
            config: Validated simulation configuration
            mode: "battery" or "baseline"
            name: Human-readable name (defaults to the run ID)
            run_id: Explicit run ID (defaults to a timestamped ID)
            run_dir: Explicit directory (defaults to .phacksim/runs/<run_id>)

        """
        self._finished = False
        self._finished_at = None
        self._status = "running"
        self._summary = None
        self._error = None
        self._trials_written = False

        self.run_id = run_id or new_run_id()
        self.run_dir = run_dir or get_runs_dir() / self.run_id
        self.name = name or self.run_id
        self.mode = mode
        self.config = config
        self.started_at = utcnow()

        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.artifacts_dir = self.run_dir / "artifacts"
        self.artifacts_dir.mkdir(exist_ok=True)

        self._meta_path = self.run_dir / "meta.json"
        self._config_path = self.run_dir / "config.json"
        self._trials_path = self.run_dir / "trials.jsonl"

        _ = self._config_path.write_text(json.dumps(config.to_dict(), indent=2))
        self._write_meta()
        logger.info("Created run %s in %s", self.run_id, self.run_dir)

    def _write_meta(self) -> None:
        """Write/update metadata file."""
        meta = RunMeta(
            id=self.run_id,
            name=self.name,
            mode=self.mode,
            started_at=self.started_at,
            finished_at=self._finished_at,
            status=self._status,
            summary=self._summary,
            config_file="config.json",
            trials_file="trials.jsonl" if self._trials_written else None,
            artifacts_dir="artifacts",
            error=self._error,
        )
        _ = self._meta_path.write_text(meta.model_dump_json(indent=2))

    def log_trials(self, records: Iterable[TrialRecord]) -> None:
        """Append trial records to trials.jsonl."""
        if self._finished:
            msg = "Cannot log to a finished run"
            raise RuntimeError(msg)

        with self._trials_path.open("a") as f:
            for record in records:
                _ = f.write(record.model_dump_json() + "\n")
        self._trials_written = True
        self._write_meta()

    def summary(self, summary: SimulationSummary) -> None:
        """Set the run summary."""
        if self._finished:
            msg = "Cannot set summary on a finished run"
            raise RuntimeError(msg)

        self._summary = summary
        self._write_meta()

    def artifact_path(self, name: str) -> Path:
        """Path for a new artifact file inside the run."""
        return self.artifacts_dir / name

    def finish(self, status: str = "completed", error: str | None = None) -> None:
        """Mark this run as finished.

        Args:
            status: Final status ("completed" or "failed")
            error: Failure message to record

        """
        if self._finished:
            return

        self._finished = True
        self._finished_at = utcnow()
        self._status = status
        self._error = error
        self._write_meta()
        logger.info("Run %s %s", self.run_id, status)

    @property
    def finished(self) -> bool:
        """Return whether the run has finished."""
        return self._finished

    def __enter__(self) -> Self:
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit - auto-finish with appropriate status."""
        if not self._finished:
            if exc_type is not None:
                self.finish(status="failed", error=str(exc_val) or exc_type.__name__)
            else:
                self.finish(status="completed")


def read_trials(trials_path: Path) -> list[TrialRecord]:
    """Read trial records from a JSONL file, tolerating partial final lines."""
    records: list[TrialRecord] = []

    if not trials_path.exists():
        return records

    with trials_path.open() as f:
        for raw_line in f:
            line = raw_line.strip()
            if line:
                with suppress(ValidationError):
                    records.append(TrialRecord.model_validate_json(line))

    return records


def read_meta(run_dir: Path) -> RunMeta | None:
    """Read run metadata from meta.json."""
    meta_path = run_dir / "meta.json"
    if not meta_path.exists():
        return None

    return RunMeta.model_validate_json(meta_path.read_text())


def list_runs(runs_dir: Path) -> list[RunMeta]:
    """Return metadata for every run, newest first."""
    if not runs_dir.is_dir():
        return []

    metas: list[RunMeta] = []
    for run_dir in runs_dir.iterdir():
        if not run_dir.is_dir():
            continue
        with suppress(ValidationError):
            meta = read_meta(run_dir)
            if meta is not None:
                metas.append(meta)

    metas.sort(key=lambda m: (m.started_at, m.id), reverse=True)
    return metas


def find_run(runs_dir: Path, run_id: str) -> list[RunMeta]:
    """Return runs whose ID equals or starts with run_id."""
    runs = list_runs(runs_dir)
    exact = [m for m in runs if m.id == run_id]
    if exact:
        return exact
    return [m for m in runs if m.id.startswith(run_id)]
