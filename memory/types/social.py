"""People and relationships mentioned by the user."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Person(BaseModel):
    """Someone in the user's life, deduplicated by name or alias."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    aliases: list[str] = Field(default_factory=list)
    relationship_type: str = "unknown"
    relationship_quality: str = "unknown"
    mention_count: int = 1
    first_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_asked_about: datetime | None = None
    context_notes: list[str] = Field(default_factory=list)
    recent_updates: list[str] = Field(default_factory=list)

    def matches(self, name: str) -> bool:
        needle = name.strip().lower()
        return self.name.lower() == needle or any(a.lower() == needle for a in self.aliases)


class RelationshipEdge(BaseModel):
    """Undirected link between two people."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    person_a: str
    person_b: str
    relationship: str
    first_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def joins(self, first: str, second: str) -> bool:
        return {self.person_a, self.person_b} == {first, second}


class SocialGraph(BaseModel):
    people: list[Person] = Field(default_factory=list)
    edges: list[RelationshipEdge] = Field(default_factory=list)
