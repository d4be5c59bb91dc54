# Copyright (c) Syntropy Systems
"""Pydantic models for persisted runs, summaries and trial traces."""

from __future__ import annotations

from pydantic import Field

from .base import PhacksimBaseModel


class SimulationSummary(PhacksimBaseModel):
    """Aggregate outcome of a simulation run."""

    mode: str
    trials: int
    flagged: int
    not_flagged: int
    proportion: float
    ci_low: float
    ci_high: float
    threshold: float


class TrialRecord(PhacksimBaseModel):
    """One line of trials.jsonl."""

    trial: int
    flagged: bool
    triggered: list[str] = Field(default_factory=list)
    p_values: dict[str, float | None] = Field(default_factory=dict)


class RunMeta(PhacksimBaseModel):
    """Run metadata stored in meta.json."""

    id: str
    name: str
    mode: str
    started_at: str
    finished_at: str | None = None
    status: str
    summary: SimulationSummary | None = None
    config_file: str
    trials_file: str | None = None
    artifacts_dir: str
    error: str | None = None
