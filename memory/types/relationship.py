"""Relationship depth, milestone and shared-history models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

MilestoneType = Literal[
    "first_conversation", "conversation_count", "anniversary", "significant_moment"
]


class InsideJoke(BaseModel):
    """Phrase or bit that keeps coming back."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    description: str
    first_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_referenced: datetime = Field(default_factory=lambda: datetime.now(UTC))
    reference_count: int = 1
    context: str = ""
    turn_numbers: list[int] = Field(default_factory=list)


class Milestone(BaseModel):
    """Relationship milestone, unique per (type, value)."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: MilestoneType
    title: str
    date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    value: int = 0
    description: str = ""
    celebrated: bool = False


class SignificantMoment(BaseModel):
    """Dated moment; recurring moments re-fire annually on their month-day."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: str = "milestone"
    description: str
    anchor_date: datetime
    first_occurred: datetime = Field(default_factory=lambda: datetime.now(UTC))
    recurring: bool = False
    last_celebrated: datetime | None = None
    context: str = ""


class RelationshipDepth(BaseModel):
    """Ratcheted depth metric plus the shared history feeding it."""

    depth: int = 0
    first_conversation: datetime | None = None
    last_depth_update: datetime | None = None
    personal_reveals: int = 0
    inside_jokes: list[InsideJoke] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    significant_moments: list[SignificantMoment] = Field(default_factory=list)
