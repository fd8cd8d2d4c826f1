"""Personality trait models for the agent's model of the user."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from memory.scoring import coerce_unit

TraitCategory = Literal["tone", "habits", "interests", "cadence", "time_pattern"]


class PersonalityTrait(BaseModel):
    """Learned trait with a score, a decaying salience and bounded evidence."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    label: str
    category: TraitCategory
    score: float = 0.5
    salience: float = 0.2
    evidence_count: int = 1
    evidence: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_update: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("score", "salience", mode="before")
    @classmethod
    def _clamp(cls, value: Any, info: ValidationInfo) -> float:
        return coerce_unit(value, cls.model_fields[info.field_name].default)

    @property
    def weight(self) -> float:
        """Ranking weight used for ordering and cap enforcement."""
        return self.salience * self.score


class TraitSnapshot(BaseModel):
    """Periodic copy of the active traits."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    turn: int = 0
    traits: list[PersonalityTrait] = Field(default_factory=list)


class TraitSignal(BaseModel):
    """Trait evidence extracted from a single utterance."""

    id: str
    label: str
    category: TraitCategory
    confidence: float
    evidence: str

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value)
