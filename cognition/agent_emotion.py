"""The agent's own mood, scored from conversation factors."""

from __future__ import annotations

from datetime import datetime

from cognition.smoothing import smooth
from cognition.states import (
    AgentEmotionFactors,
    AgentEmotionLabel,
    AgentEmotionState,
    EmotionState,
    RecentReply,
    ReplyType,
)
from core.settings import AffectSettings

REPLY_QUALITY: dict[str, float] = {"open": 0.4, "closed": 0.2, "silence": 0.1}


def time_of_day_mood(hour: int) -> float:
    """Baseline mood by local hour."""
    if 6 <= hour < 10:
        return 0.7
    if hour >= 22 or hour < 6:
        return 0.4
    if 17 <= hour < 22:
        return 0.5
    return 0.6


def interaction_quality(recent: list[RecentReply], window: int = 3) -> float:
    """Sum of per-reply quality over the last ``window`` replies, capped at 1."""
    if window <= 0:
        return 0.0
    return min(1.0, sum(REPLY_QUALITY.get(r.reply_type, 0.0) for r in recent[-window:]))


def _safe_float(value: object, default: float = 0.0) -> float:
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def initial_agent_emotion(now: datetime) -> AgentEmotionState:
    late_night = now.hour >= 22 or now.hour < 6
    return AgentEmotionState(
        label="calm" if late_night else "neutral",
        intensity=0.5,
        last_update=now,
        factors=AgentEmotionFactors(time_of_day_mood=time_of_day_mood(now.hour)),
    )


def detect_agent_emotion(
    current: AgentEmotionState,
    reply_type: ReplyType,
    turn_count: int,
    seconds_since_last: float | None,
    engagement: float | None,
    now: datetime,
    has_memory: bool = False,
    user_emotion: EmotionState | None = None,
) -> AgentEmotionState:
    """Accumulate points per label; the highest wins and ties go to neutral."""
    mood = time_of_day_mood(now.hour)
    user_engagement = _safe_float(engagement, default=0.5)
    since = max(0.0, _safe_float(seconds_since_last, default=0.0))
    streak = current.factors.positive_interactions_recent
    user_label = user_emotion.label if user_emotion is not None else None
    user_confidence = user_emotion.confidence if user_emotion is not None else 0.0

    scores: dict[AgentEmotionLabel, float] = {
        "happy": 0.0,
        "content": 0.0,
        "neutral": 0.3,
        "curious": 0.0,
        "excited": 0.0,
        "calm": 0.0,
        "tired": 0.0,
        "lonely": 0.0,
        "thoughtful": 0.0,
        "playful": 0.0,
        "annoyed": 0.0,
    }

    if user_engagement > 0.7 and streak >= 2:
        scores["happy"] += 0.6
    if user_label == "upbeat" and user_confidence >= 0.6:
        scores["happy"] += 0.4
    if reply_type == "open" and user_engagement > 0.6:
        scores["happy"] += 0.3

    if 0.5 < user_engagement < 0.8:
        scores["content"] += 0.5
    if mood > 0.5 and streak >= 1:
        scores["content"] += 0.3

    if reply_type == "open" and has_memory and turn_count < 20:
        scores["curious"] += 0.5
    if user_label == "focused":
        scores["curious"] += 0.3

    if user_engagement > 0.8 and streak >= 3:
        scores["excited"] += 0.6
    if user_label == "upbeat" and mood > 0.6:
        scores["excited"] += 0.4

    if 0.4 < user_engagement < 0.7 and mood > 0.5:
        scores["calm"] += 0.5
    if user_label == "calm":
        scores["calm"] += 0.3

    if mood < 0.5 and since > 3600:
        scores["tired"] += 0.5
    if reply_type == "closed" and streak == 0:
        scores["tired"] += 0.3

    if since > 7200:
        scores["lonely"] += 0.6
    if reply_type == "silence" and since > 1800:
        scores["lonely"] += 0.4

    if reply_type == "open" and turn_count > 10 and user_engagement > 0.6:
        scores["thoughtful"] += 0.4
    if user_label in ("calm", "focused"):
        scores["thoughtful"] += 0.3

    if user_engagement > 0.6 and streak >= 2 and mood > 0.5:
        scores["playful"] += 0.4
    if user_label == "upbeat" and turn_count < 30:
        scores["playful"] += 0.3

    if reply_type == "closed" and streak == 0 and turn_count > 5:
        scores["annoyed"] += 0.3
    if user_engagement < 0.3 and turn_count > 10:
        scores["annoyed"] += 0.4
    if user_label in ("frustrated", "stressed") and streak == 0:
        scores["annoyed"] += 0.2

    best = max(scores.values())
    if scores["neutral"] == best:
        label: AgentEmotionLabel = "neutral"
    else:
        label = next(name for name, score in scores.items() if score == best)

    if reply_type == "open" and user_engagement > 0.6:
        next_streak = min(5.0, streak + 1)
    else:
        next_streak = max(0.0, streak - 0.2)
    count = current.factors.interaction_count_today + (0 if reply_type == "silence" else 1)

    return AgentEmotionState(
        label=label,
        intensity=min(1.0, best),
        last_update=now,
        factors=AgentEmotionFactors(
            user_engagement=user_engagement,
            time_since_interaction=since,
            interaction_count_today=count,
            positive_interactions_recent=next_streak,
            time_of_day_mood=mood,
        ),
    )


def smooth_agent_emotion(
    current: AgentEmotionState,
    detected: AgentEmotionState,
    settings: AffectSettings,
) -> AgentEmotionState:
    """Fold a fresh detection into the held agent emotion.

    Factor updates from ``detected`` always carry over; engagement is
    additionally smoothed on a same-label reading.
    """
    outcome = smooth(
        held_label=current.label,
        held_intensity=current.intensity,
        new_label=detected.label,
        new_intensity=detected.intensity,
        alpha=settings.agent_alpha,
        threshold=settings.switch_threshold,
        hold_decay=settings.hold_decay,
        switch_floor=settings.switch_floor,
    )
    factors = detected.factors.model_copy()
    if outcome.kind == "blend":
        carry = settings.engagement_carry
        factors.user_engagement = (
            current.factors.user_engagement * carry + detected.factors.user_engagement * (1.0 - carry)
        )
    if outcome.kind == "hold":
        return current.model_copy(update={"intensity": outcome.intensity, "factors": factors})
    return AgentEmotionState(
        label=outcome.label,
        intensity=outcome.intensity,
        last_update=detected.last_update,
        factors=factors,
    )
