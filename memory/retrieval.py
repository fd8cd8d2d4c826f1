"""Contextual memory ranking and proactive recall selection."""

from __future__ import annotations

import logging
import random
import re
from datetime import date, datetime, time
from typing import Any

from core.clock import Clock, days_between, ensure_aware, local_now
from core.settings import RetrievalSettings
from memory.memory_manager import MemoryManager
from memory.scoring import contextual_score, recall_salience
from memory.types import MemoryRecord

logger = logging.getLogger("rapport.retrieval")

_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


class MemoryRetriever:
    """Ranks stored records for the current turn and picks proactive recalls."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        settings: RetrievalSettings | None = None,
        rng: random.Random | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.memory_manager = memory_manager
        self.settings = settings or memory_manager.settings.retrieval
        self.rng = rng or random.Random()
        self.clock = clock

    def rank(self, topic: str | None = None, limit: int | None = None) -> list[MemoryRecord]:
        """Top records by contextual score; ties keep insertion order."""
        limit = self.settings.default_limit if limit is None else limit
        needle = topic.lower() if topic else None
        candidates = [
            record
            for record in self.memory_manager.list_records()
            if needle is None
            or needle in record.key.lower()
            or needle in str(record.value).lower()
        ]
        scored = [
            (
                contextual_score(
                    confidence=record.confidence,
                    significance=record.significance,
                    has_emotion=bool(record.emotion),
                    referenced=record.last_referenced is not None,
                    settings=self.settings,
                ),
                record,
            )
            for record in candidates
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in scored[: max(0, limit)]]

    def relevant_memories(self, topic: str | None = None, limit: int | None = None) -> dict[str, Any]:
        """Ranked records plus recent episodes and the profile summary."""
        return {
            "records": self.rank(topic=topic, limit=limit),
            "episodes": self.memory_manager.recent_episodes(self.settings.recent_episode_limit),
            "summary": self.memory_manager.summary(),
        }

    def _is_internal(self, key: str) -> bool:
        return any(key.startswith(prefix) for prefix in self.settings.excluded_prefixes)

    def recall_candidates(self, now: datetime | None = None) -> list[tuple[float, MemoryRecord]]:
        """Eligible records with their recall salience, best first."""
        now = now or self.clock()
        cfg = self.settings
        out: list[tuple[float, MemoryRecord]] = []
        for record in self.memory_manager.list_records():
            if record.confidence < cfg.recall_min_confidence or self._is_internal(record.key):
                continue
            age_days = days_between(record.created_at, now)
            if age_days > cfg.recall_window_days:
                continue
            if (
                record.last_referenced is not None
                and days_between(record.last_referenced, now) * 24.0 < cfg.recall_cooldown_hours
            ):
                continue
            salience = recall_salience(
                confidence=record.confidence,
                age_days=max(0.0, age_days),
                is_preference=record.type == "preference",
                settings=cfg,
            )
            out.append((salience, record))
        out.sort(key=lambda pair: pair[0], reverse=True)
        return out[: cfg.recall_pool_size]

    def select_proactive_recall(self, now: datetime | None = None) -> MemoryRecord | None:
        """Pick one of the strongest candidates at random and mark it referenced."""
        now = now or self.clock()
        pool = self.recall_candidates(now)
        if not pool:
            return None
        shortlist = pool[: self.settings.recall_pick_from]
        _, chosen = self.rng.choice(shortlist)
        self.memory_manager.mark_referenced(chosen.key)
        logger.debug("Proactive recall picked %s from %d candidates", chosen.key, len(pool))
        return self.memory_manager.get_record(chosen.key)

    def upcoming_event(self, days_ahead: float | None = None, now: datetime | None = None) -> MemoryRecord | None:
        """First event record dated within the window and not mentioned in the last day."""
        now = ensure_aware(now or self.clock())
        days_ahead = self.settings.upcoming_event_days if days_ahead is None else days_ahead
        for record in self.memory_manager.list_records(type="event"):
            if not isinstance(record.value, str):
                continue
            match = _ISO_DATE.match(record.value)
            if match is None:
                continue
            try:
                event_day = date.fromisoformat(match.group(1))
            except ValueError:
                continue
            event_at = datetime.combine(event_day, time.min, tzinfo=now.tzinfo)
            delta = days_between(now, event_at)
            # Events later today still count, so compare against the start of today.
            start_of_today = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
            if event_at < start_of_today or delta > days_ahead:
                continue
            if (
                record.last_referenced is not None
                and days_between(record.last_referenced, now) * 24.0 < self.settings.recall_cooldown_hours
            ):
                continue
            self.memory_manager.mark_referenced(record.key)
            return self.memory_manager.get_record(record.key)
        return None

