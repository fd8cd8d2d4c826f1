"""Semantic memory models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from memory.scoring import coerce_unit

RecordType = Literal["fact", "event", "preference"]
RecordValue = str | int | float | bool | None


class MemoryRecord(BaseModel):
    """Keyed observation about the user with confidence and salience inputs."""

    model_config = ConfigDict(validate_assignment=True)

    key: str
    value: RecordValue = None
    type: RecordType = "fact"
    confidence: float = 0.8
    significance: float | None = None
    emotion: str | None = None
    source_turn: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_referenced: datetime | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return coerce_unit(value, 0.8)

    @field_validator("significance", mode="before")
    @classmethod
    def _clamp_significance(cls, value: Any) -> float | None:
        if value is None:
            return None
        return coerce_unit(value)
