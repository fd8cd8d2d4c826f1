"""Goal and reminder memory models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

GoalStatus = Literal["active", "completed", "paused"]
ReminderType = Literal["ongoing_work", "interest", "wanted_to_do"]
ReminderStatus = Literal["active", "completed", "dismissed"]
ReminderPriority = Literal["low", "medium", "high"]


class Goal(BaseModel):
    """Something the user is working toward."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    description: str
    status: GoalStatus = "active"
    target_date: str | None = None
    progress: str = ""
    milestones: list[str] = Field(default_factory=list)
    last_check_in: datetime | None = None
    check_in_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ContextualReminder(BaseModel):
    """Loose thread the agent may follow up on later."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: ReminderType
    description: str
    original_context: str = ""
    mention_count: int = 1
    follow_up_count: int = 0
    first_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_mentioned: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_followed_up: datetime | None = None
    status: ReminderStatus = "active"

    @property
    def priority(self) -> ReminderPriority:
        if self.mention_count >= 3:
            return "high"
        if self.mention_count >= 2:
            return "medium"
        return "low"
