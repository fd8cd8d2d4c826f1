"""Keyword-driven trait signal extraction from user utterances."""

from __future__ import annotations

import re

from memory.types import TraitSignal
from memory.types.self_model import TraitCategory

MIN_MESSAGE_CHARS = 10
EVIDENCE_CHARS = 100

_DISALLOWED = [
    re.compile(pattern)
    for pattern in ("health", "medical", "political", "race", "ethnic", "religion", "gender", "sexual")
]

# (id, label, category, confidence, pattern)
_KEYWORD_RULES: list[tuple[str, str, TraitCategory, float, re.Pattern[str]]] = [
    (
        "discipline",
        "Discipline",
        "habits",
        0.7,
        re.compile(
            r"\b(study|studying|exam|test|quiz|homework|assignment|project|deadline|grind|focus|productive)\b",
            re.I,
        ),
    ),
    (
        "fitness_habit",
        "Fitness Habit",
        "habits",
        0.7,
        re.compile(r"\b(workout|gym|exercise|running|fitness|training|cardio|weights)\b", re.I),
    ),
    (
        "music_affinity",
        "Music Affinity",
        "interests",
        0.6,
        re.compile(r"\b(music|song|album|artist|band|producing|beat|track|spotify|playlist)\b", re.I),
    ),
    (
        "coding_interest",
        "Coding Interest",
        "interests",
        0.6,
        re.compile(
            r"\b(code|coding|programming|debug|function|algorithm|python|javascript|typescript)\b", re.I
        ),
    ),
]

_CURIOUS = re.compile(r"\b(what|how|why|when|where|wonder|curious|think|interesting)\b", re.I)
_HUMOR = re.compile(r"\b(lol|haha|funny|joke|hilarious|laugh|comedy|humor)\b", re.I)
_WARMTH = re.compile(
    r"\b(feel|feeling|emotion|personal|family|friend|love|care|worry|anxious|stressed)\b", re.I
)
_ACTIVE = re.compile(
    r"\b(finish|complete|achieve|accomplish|work|do|make|build|create|push|grind|hustle)\b", re.I
)
_LOW_ENERGY = re.compile(r"\b(tired|exhausted|drained|sleepy|nap|rest|break|slow)\b", re.I)
_NIGHT_WORK = re.compile(r"\b(grind|work|study|code|late|night)\b", re.I)
_REFLECTION = re.compile(
    r"\b(reflect|think about|consider|realize|understand|learn|growth|improve)\b", re.I
)


def normalize_trait_id(label: str) -> str:
    """snake_case, alphanumeric only, at most 50 characters."""
    cleaned = re.sub(r"[^a-z0-9\s]", "", label.lower())
    return re.sub(r"\s+", "_", cleaned.strip())[:50]


def is_trait_allowed(trait_id: str) -> bool:
    lowered = trait_id.lower()
    return not any(pattern.search(lowered) for pattern in _DISALLOWED)


def discover_trait_signals(message: str, hour: int) -> list[TraitSignal]:
    """Return trait signals suggested by ``message`` sent at local ``hour``."""
    if len(message) < MIN_MESSAGE_CHARS:
        return []
    evidence = message[:EVIDENCE_CHARS]
    signals: list[TraitSignal] = []

    def add(trait_id: str, label: str, category: TraitCategory, confidence: float, text: str = evidence) -> None:
        signals.append(
            TraitSignal(id=trait_id, label=label, category=category, confidence=confidence, evidence=text)
        )

    for trait_id, label, category, confidence, pattern in _KEYWORD_RULES:
        if pattern.search(message):
            add(trait_id, label, category, confidence)

    questions = message.count("?")
    if questions > 0 or _CURIOUS.search(message):
        add("curiosity", "Curiosity", "tone", min(0.8, 0.4 + questions * 0.1))
    if _HUMOR.search(message):
        add("humor", "Humor", "tone", 0.6)
    if _WARMTH.search(message):
        add("warmth", "Warmth", "tone", 0.6)

    low_energy = bool(_LOW_ENERGY.search(message))
    if _ACTIVE.search(message) and not low_energy:
        add("high_energy", "High Energy", "tone", 0.6)
    elif low_energy:
        add("low_energy", "Low Energy", "tone", 0.5)

    if hour >= 22 or hour < 6:
        add("night_owl", "Night Owl", "time_pattern", 0.5, f"Active at {hour}:00")
    elif 5 <= hour < 9:
        add("early_bird", "Early Bird", "time_pattern", 0.5, f"Active at {hour}:00")
    if hour >= 22 and _NIGHT_WORK.search(message):
        add("late_night_grind", "Late Night Grind", "time_pattern", 0.7)

    if _REFLECTION.search(message):
        add("self_reflection", "Self Reflection", "tone", 0.6)

    return [s for s in signals if is_trait_allowed(s.id)]
