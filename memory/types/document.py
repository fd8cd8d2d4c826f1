"""Root persisted memory document."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from memory.types.episodic import Episode
from memory.types.goals import ContextualReminder, Goal
from memory.types.mood import MoodJournal
from memory.types.relationship import RelationshipDepth
from memory.types.self_model import PersonalityTrait, TraitSnapshot
from memory.types.semantic import MemoryRecord
from memory.types.social import SocialGraph

SCHEMA_VERSION = 1


class SummaryCache(BaseModel):
    text: str = ""
    generated_at: datetime | None = None


class MemoryDocument(BaseModel):
    """Every collection the store persists, written and read as one unit."""

    schema_version: int = SCHEMA_VERSION
    memory_enabled: bool = True
    traits_enabled: bool = True
    turn_count: int = 0
    records: dict[str, MemoryRecord] = Field(default_factory=dict)
    episodes: list[Episode] = Field(default_factory=list)
    traits: list[PersonalityTrait] = Field(default_factory=list)
    trait_history: list[TraitSnapshot] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    relationship: RelationshipDepth = Field(default_factory=RelationshipDepth)
    reminders: list[ContextualReminder] = Field(default_factory=list)
    social_graph: SocialGraph = Field(default_factory=SocialGraph)
    mood_journal: MoodJournal = Field(default_factory=MoodJournal)
    summary: SummaryCache = Field(default_factory=SummaryCache)

    @model_validator(mode="before")
    @classmethod
    def _drop_missing(cls, data: Any) -> Any:
        """Null top-level collections fall back to their defaults."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data
