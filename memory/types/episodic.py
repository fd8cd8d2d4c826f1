"""Episodic memory models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class Episode(BaseModel):
    """Event-like log entry tied to a conversation turn."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    description: str
    turn: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)
