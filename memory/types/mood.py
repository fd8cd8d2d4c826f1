"""Mood journal models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from memory.scoring import coerce_unit


class MoodEntry(BaseModel):
    """One observed user mood, tagged with hour and weekday (0 = Sunday)."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    mood: str
    confidence: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    hour: int = 0
    weekday: int = 0
    turn: int = 0
    context: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value)


class MoodPattern(BaseModel):
    """Detected regularity or trend over the journal."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    pattern_type: str
    description: str
    confidence: float = 0.5
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value, 0.5)


class MoodJournal(BaseModel):
    entries: list[MoodEntry] = Field(default_factory=list)
    patterns: list[MoodPattern] = Field(default_factory=list)
    last_observation: datetime | None = None
