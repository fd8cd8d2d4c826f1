"""Affect state models shared by the user and agent classifiers."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from memory.scoring import coerce_unit

ReplyType = Literal["open", "closed", "silence"]
UserEmotionLabel = Literal[
    "neutral", "tired", "stressed", "down", "frustrated", "calm", "focused", "upbeat"
]
AgentEmotionLabel = Literal[
    "happy",
    "content",
    "neutral",
    "curious",
    "excited",
    "calm",
    "tired",
    "lonely",
    "thoughtful",
    "playful",
    "annoyed",
]


class RecentReply(BaseModel):
    """One user reply in the rolling affect window."""

    text: str
    reply_type: ReplyType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EmotionDetection(BaseModel):
    """Raw classifier output before smoothing."""

    label: UserEmotionLabel
    confidence: float
    signals: list[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value)


class EmotionState(BaseModel):
    """Held user emotion."""

    label: UserEmotionLabel = "neutral"
    confidence: float = 0.5
    last_update: datetime = Field(default_factory=lambda: datetime.now(UTC))
    signals: list[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value, 0.5)


class AgentEmotionFactors(BaseModel):
    user_engagement: float = 0.5
    time_since_interaction: float = 0.0
    interaction_count_today: int = 0
    positive_interactions_recent: float = 0.0
    time_of_day_mood: float = 0.6

    @field_validator("user_engagement", "time_of_day_mood", mode="before")
    @classmethod
    def _clamp(cls, value: Any, info: ValidationInfo) -> float:
        return coerce_unit(value, cls.model_fields[info.field_name].default)


class AgentEmotionState(BaseModel):
    """Held agent emotion with the factors that produced it."""

    label: AgentEmotionLabel = "neutral"
    intensity: float = 0.5
    last_update: datetime = Field(default_factory=lambda: datetime.now(UTC))
    factors: AgentEmotionFactors = Field(default_factory=AgentEmotionFactors)

    @field_validator("intensity", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return coerce_unit(value, 0.5)
