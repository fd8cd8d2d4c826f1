"""User emotion detection from text cues and recent reply context."""

from __future__ import annotations

import re
from datetime import datetime

from cognition.smoothing import smooth
from cognition.states import EmotionDetection, EmotionState, RecentReply, ReplyType, UserEmotionLabel
from core.settings import AffectSettings

_NEGATIVE = re.compile(
    r"\b(no|not|don't|can't|won't|isn't|doesn't|didn't|nope|nah|nothing|none|idk|dunno|tired|"
    r"exhausted|drained|stressed|anxious|worried|frustrated|upset|sad|down|bad|hard|difficult|"
    r"struggle|problem|issue|fail|failed|sucks|terrible|awful)\b",
    re.I,
)
_POSITIVE = re.compile(
    r"\b(yes|yeah|yep|sure|great|good|nice|awesome|amazing|happy|excited|love|enjoy|fun|"
    r"wonderful|excellent|perfect)\b",
    re.I,
)
_HEDGE = re.compile(
    r"\b(maybe|perhaps|probably|kinda|sorta|ish|i guess|i think|i suppose|might|could)\b", re.I
)
_SWEAR = re.compile(r"\b(damn|hell|shit|fuck|ugh|argh)\b", re.I)
_FIRST_PERSON_NEGATIVE = re.compile(
    r"\b(i'm|i am|i feel|i've|i have)\s+(not|don't|can't|won't|tired|stressed|anxious|upset|sad|"
    r"down|frustrated|exhausted)\b",
    re.I,
)
_LONG_DAY = re.compile(
    r"\b(long day|long night|all day|all night|since morning|since (this|early) morning|grind|"
    r"working|busy)\b",
    re.I,
)
_WORKLOAD = re.compile(r"\b(deadline|due|overwhelmed|too much|so much|swamped|backlog|behind)\b", re.I)
_INTERJECTION = re.compile(r"\b(woo|yay|haha|nice|awesome|great|yeah|yes)\b", re.I)
_TIRED_WORDS = re.compile(r"\b(tired|exhausted|drained|sleepy|nap|rest)\b", re.I)
_STRESS_WORDS = re.compile(r"\b(deadline|due|overwhelmed|swamped|behind|rushed)\b", re.I)
_DOWN_WORDS = re.compile(r"\b(down|sad|upset|low|feeling bad)\b", re.I)
_FRUSTRATED_WORDS = re.compile(r"\b(frustrated|annoyed|irritated|pissed|mad)\b", re.I)
_CALM_WORDS = re.compile(r"\b(calm|relaxed|chill|peaceful|content)\b", re.I)
_FOCUS_WORDS = re.compile(r"\b(focus|concentrate|work on|studying|grinding)\b", re.I)
_UPBEAT_WORDS = re.compile(r"\b(excited|happy|great|awesome|amazing|love|enjoy)\b", re.I)

SHORT_REPLY_CHARS = 20
WEAK_SIGNAL_SCORE = 0.4
CONFLICT_GAP = 0.2


def detect_user_emotion(
    message: str,
    reply_type: ReplyType,
    hour: int,
    recent_replies: list[RecentReply] | None = None,
    weak_signal_score: float = WEAK_SIGNAL_SCORE,
    conflict_gap: float = CONFLICT_GAP,
) -> EmotionDetection:
    """Score each label from keyword and context rules and pick the strongest."""
    if reply_type == "silence" or not message.strip():
        return EmotionDetection(label="neutral", confidence=0.3, signals=["empty_input"])

    recent_replies = recent_replies or []
    signals: list[str] = []
    length = len(message)
    exclamation_density = message.count("!") / max(1.0, length / 10.0)
    questions = message.count("?")

    negative = bool(_NEGATIVE.search(message))
    positive = bool(_POSITIVE.search(message))
    hedged = bool(_HEDGE.search(message))
    swearing = bool(_SWEAR.search(message))
    first_person_negative = bool(_FIRST_PERSON_NEGATIVE.search(message))
    long_day = bool(_LONG_DAY.search(message))
    workload = bool(_WORKLOAD.search(message))
    interjection = bool(_INTERJECTION.search(message))
    short_closed = reply_type == "closed" or length < SHORT_REPLY_CHARS
    late_night = hour >= 22 or hour < 6
    recent_short = sum(
        1 for r in recent_replies if r.reply_type == "closed" or len(r.text) < SHORT_REPLY_CHARS
    )

    scores: dict[UserEmotionLabel, float] = {
        "neutral": 0.5,
        "tired": 0.0,
        "stressed": 0.0,
        "down": 0.0,
        "frustrated": 0.0,
        "calm": 0.0,
        "focused": 0.0,
        "upbeat": 0.0,
    }

    def bump(label: UserEmotionLabel, points: float, signal: str) -> None:
        scores[label] += points
        signals.append(signal)

    if short_closed and late_night and recent_short >= 2:
        bump("tired", 0.6, "short_reply_late_night")
    if _TIRED_WORDS.search(message):
        bump("tired", 0.7, "tired_mentioned")
    if long_day and (negative or first_person_negative):
        bump("tired", 0.5, "long_day_negative")

    if workload and (negative or swearing):
        bump("stressed", 0.7, "workload_negative")
    if _STRESS_WORDS.search(message):
        bump("stressed", 0.6, "stress_keywords")
    if exclamation_density > 0.3 and negative:
        bump("stressed", 0.4, "high_exclamation_negative")

    if first_person_negative and _DOWN_WORDS.search(message):
        bump("down", 0.7, "explicit_down_feeling")
    if negative and hedged and not positive:
        bump("down", 0.5, "negative_hedged")
    if short_closed and recent_short >= 3 and negative:
        bump("down", 0.4, "multiple_short_negatives")

    if swearing and negative:
        bump("frustrated", 0.6, "swearing_negative")
    if _FRUSTRATED_WORDS.search(message):
        bump("frustrated", 0.7, "frustrated_mentioned")

    if positive and exclamation_density == 0 and length > 30 and not swearing:
        bump("calm", 0.5, "positive_casual")
    if _CALM_WORDS.search(message):
        bump("calm", 0.6, "calm_mentioned")

    if questions > 0 and not hedged and length > 40:
        bump("focused", 0.5, "questions_focused")
    if _FOCUS_WORDS.search(message) and not negative:
        bump("focused", 0.6, "focus_keywords")

    if interjection and exclamation_density > 0.2:
        bump("upbeat", 0.6, "positive_exclamation")
    if positive and not negative and not hedged and length > 20:
        bump("upbeat", 0.5, "positive_confident")
    if _UPBEAT_WORDS.search(message):
        bump("upbeat", 0.6, "upbeat_keywords")

    label: UserEmotionLabel = "neutral"
    best = 0.0
    for candidate, score in scores.items():
        if score > best:
            best = score
            label = candidate

    confidence = min(1.0, best * (1.0 + len(signals) * 0.1))
    if best < weak_signal_score:
        confidence = max(0.3, confidence * 0.7)
        label = "neutral"
        signals.append("weak_signals")

    ranked = sorted(scores.values(), reverse=True)
    if len(ranked) > 1 and ranked[0] - ranked[1] < conflict_gap:
        confidence *= 0.8
        signals.append("conflicting_signals")

    return EmotionDetection(label=label, confidence=confidence, signals=signals or ["default_neutral"])


def initial_emotion_state(now: datetime) -> EmotionState:
    return EmotionState(label="neutral", confidence=0.5, last_update=now, signals=[])


def smooth_user_emotion(
    current: EmotionState,
    detection: EmotionDetection,
    settings: AffectSettings,
    now: datetime,
) -> EmotionState:
    """Fold a fresh detection into the held user emotion."""
    outcome = smooth(
        held_label=current.label,
        held_intensity=current.confidence,
        new_label=detection.label,
        new_intensity=detection.confidence,
        alpha=settings.user_alpha,
        threshold=settings.switch_threshold,
        hold_decay=settings.hold_decay,
        switch_floor=settings.switch_floor,
    )
    if outcome.kind == "hold":
        return current.model_copy(update={"confidence": outcome.intensity})
    return EmotionState(
        label=outcome.label,
        confidence=outcome.intensity,
        last_update=now,
        signals=detection.signals[:3],
    )
