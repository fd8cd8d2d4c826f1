"""Memory consolidation orchestrator."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from core.clock import Clock, local_now
from memory.consolidation.contradiction_finder import TraitConflictResolver
from memory.consolidation.forgetting import TraitDecayPolicy
from memory.consolidation.pattern_miner import MoodTrendAnalyzer, should_comment_on_mood

logger = logging.getLogger("rapport.consolidator")


class Consolidator:
    """Runs trait decay, conflict resolution, snapshots and mood mining on a turn cadence."""

    def __init__(self, memory_manager: Any, clock: Clock = local_now) -> None:
        self.memory_manager = memory_manager
        self.settings = memory_manager.settings.traits
        self.clock = clock
        self.forgetting = TraitDecayPolicy(memory_manager=memory_manager, clock=clock)
        self.contradiction_finder = TraitConflictResolver(memory_manager=memory_manager)
        self.mood_settings = memory_manager.settings.mood
        self.pattern_miner = MoodTrendAnalyzer(
            min_entries=self.mood_settings.min_entries,
            window_days=self.mood_settings.window_days,
            min_strength=self.mood_settings.min_strength,
            min_difference=self.mood_settings.min_difference,
        )

    def run(self, turn_count: int, now: datetime | None = None, force: bool = False) -> dict[str, Any]:
        """Run whichever maintenance steps are due at ``turn_count``.

        ``force`` runs every step regardless of cadence.
        """
        now = now or self.clock()
        results: dict[str, Any] = {"turn": turn_count}
        decay_due = force or (turn_count > 0 and turn_count % self.settings.decay_every_turns == 0)
        snapshot_due = force or (
            turn_count > 0 and turn_count % self.settings.snapshot_every_turns == 0
        )

        if decay_due:
            decay = self.forgetting.run(now)
            if decay is not None:
                results["decay"] = decay
                results["conflicts"] = self.contradiction_finder.run()
        if snapshot_due:
            snapshot = self.memory_manager.snapshot_trait_history()
            if snapshot is not None:
                results["snapshot_traits"] = len(snapshot.traits)

        if decay_due:
            results["mood_trend"] = self.mine_mood(now)
        return results

    def mine_mood(self, now: datetime | None = None) -> str | None:
        """Record a mood trend pattern when one is significant and not recently remarked on."""
        now = now or self.clock()
        journal = self.memory_manager.mood_journal()
        if not should_comment_on_mood(
            journal.last_observation, now, min_days=self.mood_settings.comment_cooldown_days
        ):
            return None
        trend = self.pattern_miner.analyze(journal.entries, now)
        if trend is None:
            return None
        if journal.patterns and journal.patterns[-1].description == trend.description:
            return None
        self.memory_manager.add_mood_pattern("trend", trend.description, trend.strength)
        logger.info("Mood trend detected: %s", trend.description)
        return trend.description
