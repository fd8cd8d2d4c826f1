"""Typed engine settings.

Every tuned constant of the memory, decay, affect and dialogue layers is a
named field here so deployments can override it from YAML.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class StoreSettings(BaseModel):
    """Durable record store limits."""

    document_name: str = "default"
    default_confidence: float = 0.8
    reaffirm_increment: float = 0.1
    episode_limit: int = 50
    mood_entry_limit: int = 500
    mood_pattern_limit: int = 20
    trait_history_limit: int = 10
    joke_turn_limit: int = 10
    person_note_limit: int = 5
    person_update_limit: int = 5
    summary_max_age_hours: float = 24.0
    summary_refresh_turns: int = 10
    summary_fact_limit: int = 10
    summary_min_confidence: float = 0.6
    max_write_retries: int = 3


class RetrievalSettings(BaseModel):
    """Contextual ranking and proactive recall constants."""

    default_limit: int = 10
    turn_recall_limit: int = 3
    default_significance: float = 0.5
    emotion_weight: float = 1.5
    referenced_weight: float = 1.2
    recent_episode_limit: int = 5
    recall_min_confidence: float = 0.6
    recall_window_days: float = 14.0
    recall_cooldown_hours: float = 24.0
    recall_recency_floor: float = 0.5
    preference_multiplier: float = 1.2
    recall_pool_size: int = 5
    recall_pick_from: int = 3
    excluded_prefixes: list[str] = Field(default_factory=lambda: ["system.", "internal."])
    upcoming_event_days: float = 3.0


class TraitSettings(BaseModel):
    """Trait upsert, decay, retirement and conflict constants."""

    decay_every_turns: int = 5
    snapshot_every_turns: int = 20
    score_decay: float = 0.98
    salience_decay: float = 0.97
    retire_salience_below: float = 0.05
    retire_score_below: float = 0.2
    retire_min_days: float = 30.0
    max_active: int = 8
    initial_salience: float = 0.2
    initial_score_scale: float = 0.5
    max_score_step: float = 0.05
    score_step_rate: float = 0.1
    salience_step: float = 0.05
    evidence_limit: int = 3
    source_limit: int = 5
    conflict_threshold: float = 0.7
    conflict_step: float = 0.05
    conflict_floor: float = 0.5
    conflict_pairs: list[tuple[str, str]] = Field(
        default_factory=lambda: [
            ("high_energy", "low_energy"),
            ("early_bird", "night_owl"),
            ("introvert", "extrovert"),
        ]
    )


class RelationshipSettings(BaseModel):
    """Depth formula caps/weights and milestone thresholds."""

    turn_weight: float = 2.0
    turn_cap: float = 50.0
    time_weight: float = 0.5
    time_cap: float = 30.0
    joke_weight: float = 2.0
    joke_cap: float = 10.0
    reveal_weight: float = 1.5
    reveal_cap: float = 10.0
    max_depth: float = 100.0
    conversation_milestones: list[int] = Field(
        default_factory=lambda: [1, 10, 25, 50, 100, 250, 500, 1000]
    )
    anniversary_months: list[int] = Field(default_factory=lambda: [1, 3, 6, 12, 18, 24, 36])
    days_per_month: int = 30
    anniversary_tolerance_days: int = 3


class AffectSettings(BaseModel):
    """Emotion classifier and smoothing constants."""

    user_alpha: float = 0.3
    agent_alpha: float = 0.4
    switch_threshold: float = 0.5
    hold_decay: float = 0.95
    switch_floor: float = 0.5
    engagement_carry: float = 0.7
    reply_window: int = 5
    quality_window: int = 3
    mood_record_min_confidence: float = 0.6
    weak_signal_score: float = 0.4
    conflict_gap: float = 0.2


class DialogueSettings(BaseModel):
    """Dialogue policy buffers and cooldowns."""

    action_history: int = 3
    topic_history: int = 5
    question_cooldown_turns: int = 5
    short_chars: int = 20
    long_chars: int = 100
    soft_engagement_silence_seconds: float = 30.0
    emotion_min_confidence: float = 0.6


class MoodTrendSettings(BaseModel):
    """Mood journal trend mining thresholds."""

    min_entries: int = 5
    window_days: float = 7.0
    min_strength: float = 0.3
    min_difference: float = 0.5
    comment_cooldown_days: float = 2.0


class EngineSettings(BaseModel):
    """Root settings object."""

    store: StoreSettings = Field(default_factory=StoreSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    traits: TraitSettings = Field(default_factory=TraitSettings)
    relationship: RelationshipSettings = Field(default_factory=RelationshipSettings)
    affect: AffectSettings = Field(default_factory=AffectSettings)
    dialogue: DialogueSettings = Field(default_factory=DialogueSettings)
    mood: MoodTrendSettings = Field(default_factory=MoodTrendSettings)

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> EngineSettings:
        """Build settings from the ``engine`` section of the merged config."""
        return cls.model_validate(data or {})
