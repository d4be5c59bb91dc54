# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for phacksim."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class PhacksimBaseModel(BaseModel):
    """Base model with shared config for phacksim schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )
