"""Mood trend mining over the journal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from core.clock import days_between
from memory.types import MoodEntry

MOOD_VALENCE: dict[str, float] = {
    "upbeat": 2.0,
    "calm": 1.0,
    "neutral": 0.0,
    "tired": -1.0,
    "stressed": -1.5,
    "down": -2.0,
    "frustrated": -1.5,
}


@dataclass
class MoodTrend:
    direction: str
    dominant_mood: str
    strength: float
    description: str


class MoodTrendAnalyzer:
    """Compares the average valence of the older and newer half of recent entries."""

    def __init__(
        self,
        min_entries: int = 5,
        window_days: float = 7.0,
        min_strength: float = 0.3,
        min_difference: float = 0.5,
    ) -> None:
        self.min_entries = min_entries
        self.window_days = window_days
        self.min_strength = min_strength
        self.min_difference = min_difference

    @staticmethod
    def _average(entries: list[MoodEntry]) -> float:
        if not entries:
            return 0.0
        return sum(MOOD_VALENCE.get(e.mood, 0.0) * e.confidence for e in entries) / len(entries)

    @staticmethod
    def dominant_mood(entries: list[MoodEntry]) -> str:
        weights: dict[str, float] = {}
        for entry in entries:
            weights[entry.mood] = weights.get(entry.mood, 0.0) + entry.confidence
        if not weights:
            return "neutral"
        return max(weights, key=lambda mood: weights[mood])

    def analyze(self, entries: list[MoodEntry], now: datetime) -> MoodTrend | None:
        recent = [e for e in entries if days_between(e.timestamp, now) <= self.window_days]
        if len(recent) < self.min_entries:
            return None
        recent.sort(key=lambda e: e.timestamp)
        mid = len(recent) // 2
        older, newer = recent[:mid], recent[mid:]
        difference = self._average(newer) - self._average(older)
        strength = min(1.0, abs(difference) / 4.0)
        if strength < self.min_strength:
            return None
        dominant = self.dominant_mood(newer)
        if difference > self.min_difference:
            return MoodTrend("improving", dominant, strength, f"You've been more {dominant} lately")
        if difference < -self.min_difference:
            return MoodTrend("declining", dominant, strength, f"You've seemed more {dominant} recently")
        return None


def should_comment_on_mood(
    last_observation: datetime | None, now: datetime, min_days: float = 2.0
) -> bool:
    """True when no mood remark was made in the last ``min_days``."""
    return last_observation is None or days_between(last_observation, now) >= min_days
