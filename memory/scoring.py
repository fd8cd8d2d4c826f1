"""Scoring helpers for retrieval, recall, traits and relationship depth."""

from __future__ import annotations

import math
from typing import Any

from core.settings import RelationshipSettings, RetrievalSettings, TraitSettings


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; non-finite input maps to 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def coerce_unit(value: Any, default: float | None = None) -> float:
    """Validate a stored unit value; ``None`` takes ``default``, non-numbers raise ``ValueError``."""
    if value is None:
        if default is None:
            raise ValueError("a number is required")
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expected a number, got {type(value).__name__}") from exc
    return clamp_unit(number)


def round_half_up(value: float) -> int:
    """Round .5 upward, so 30.5 becomes 31."""
    return int(math.floor(value + 0.5))


def contextual_score(
    confidence: float,
    significance: float | None,
    has_emotion: bool,
    referenced: bool,
    settings: RetrievalSettings,
) -> float:
    """Weighted score for topic-filtered retrieval; unset or zero significance takes the default."""
    significance_weight = significance or settings.default_significance
    emotion_weight = settings.emotion_weight if has_emotion else 1.0
    recency_weight = settings.referenced_weight if referenced else 1.0
    return confidence * significance_weight * emotion_weight * recency_weight


def recency_multiplier(age_days: float, settings: RetrievalSettings) -> float:
    """Linear fade across the recall window, floored."""
    return max(settings.recall_recency_floor, 1.0 - age_days / settings.recall_window_days)


def recall_salience(
    confidence: float,
    age_days: float,
    is_preference: bool,
    settings: RetrievalSettings,
) -> float:
    """Salience used to rank proactive-recall candidates."""
    type_multiplier = settings.preference_multiplier if is_preference else 1.0
    return confidence * recency_multiplier(age_days, settings) * type_multiplier


def trait_score_step(score: float, settings: TraitSettings) -> float:
    """Diminishing increment applied on each new piece of trait evidence."""
    return min(settings.max_score_step, (1.0 - score) * settings.score_step_rate)


def decayed(value: float, rate: float, days: float) -> float:
    """Exponential decay by ``rate`` per elapsed day."""
    return clamp_unit(value * math.pow(rate, max(0.0, days)))


def relationship_depth(
    turn_count: int,
    days_known: float,
    joke_count: int,
    reveal_count: int,
    settings: RelationshipSettings,
) -> int:
    """Composite depth metric in [0, max_depth]."""
    turn_score = min(settings.turn_cap, settings.turn_weight * math.sqrt(max(0, turn_count)))
    time_score = min(settings.time_cap, settings.time_weight * max(0.0, days_known))
    joke_score = min(settings.joke_cap, settings.joke_weight * max(0, joke_count))
    reveal_score = min(settings.reveal_cap, settings.reveal_weight * max(0, reveal_count))
    total = turn_score + time_score + joke_score + reveal_score
    return round_half_up(min(settings.max_depth, total))
