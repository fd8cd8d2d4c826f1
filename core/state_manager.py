"""Per-session conversational state held between turns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from cognition.agent_emotion import initial_agent_emotion, interaction_quality
from cognition.states import AgentEmotionState, EmotionState, RecentReply, ReplyType
from cognition.user_emotion import initial_emotion_state
from core.clock import ensure_aware
from core.settings import AffectSettings
from memory.ring_buffer import RingBuffer

HISTORY_SIZE = 4


@dataclass
class ConversationState:
    """Mutable affect state for a single session."""

    user_emotion: EmotionState
    agent_emotion: AgentEmotionState
    recent_replies: RingBuffer[RecentReply]
    history: RingBuffer[str] = field(default_factory=lambda: RingBuffer(HISTORY_SIZE))
    last_user_text: str = ""
    last_interaction: datetime | None = None
    interactions_day: date | None = None


class StateManager:
    """Wraps conversation state and provides convenience update methods."""

    def __init__(self, settings: AffectSettings | None = None, now: datetime | None = None) -> None:
        self.settings = settings or AffectSettings()
        now = now or datetime.now().astimezone()
        self.state = ConversationState(
            user_emotion=initial_emotion_state(now),
            agent_emotion=initial_agent_emotion(now),
            recent_replies=RingBuffer(self.settings.reply_window),
        )

    def seconds_since_last(self, now: datetime) -> float | None:
        if self.state.last_interaction is None:
            return None
        delta = ensure_aware(now) - ensure_aware(self.state.last_interaction)
        return max(0.0, delta.total_seconds())

    def recent_replies(self) -> list[RecentReply]:
        return self.state.recent_replies.items()

    def engagement(self) -> float:
        """Interaction quality of the latest replies, used as user engagement."""
        return interaction_quality(self.recent_replies(), self.settings.quality_window)

    def record_reply(self, text: str, reply_type: ReplyType, now: datetime) -> None:
        self.state.recent_replies.push(RecentReply(text=text, reply_type=reply_type, timestamp=now))
        if reply_type != "silence":
            self.state.last_user_text = text

    def roll_day(self, now: datetime) -> None:
        """Reset the agent's interactions-today counter on a new local day."""
        today = now.date()
        if self.state.interactions_day != today:
            self.state.agent_emotion.factors.interaction_count_today = 0
            self.state.interactions_day = today

    def touch(self, now: datetime) -> None:
        self.state.last_interaction = now

    def add_history(self, text: str | None) -> None:
        if text and text.strip():
            self.state.history.push(text)

    def history(self) -> list[str]:
        return self.state.history.items()

    def set_user_emotion(self, emotion: EmotionState) -> None:
        self.state.user_emotion = emotion

    def set_agent_emotion(self, emotion: AgentEmotionState) -> None:
        self.state.agent_emotion = emotion
