"""Conflict resolution for anti-correlated personality traits."""

from __future__ import annotations

import logging
from typing import Any

from core.settings import TraitSettings
from memory.types import PersonalityTrait

logger = logging.getLogger("rapport.contradictions")


class TraitConflictResolver:
    """Softens the weaker member of each configured pair when both score high."""

    def __init__(self, memory_manager: Any, settings: TraitSettings | None = None) -> None:
        self.memory_manager = memory_manager
        self.settings = settings or memory_manager.settings.traits

    def apply(self, traits: list[PersonalityTrait]) -> list[dict[str, Any]]:
        cfg = self.settings
        by_id = {t.id: t for t in traits if t.active}
        adjustments: list[dict[str, Any]] = []
        for first_id, second_id in cfg.conflict_pairs:
            first = by_id.get(first_id)
            second = by_id.get(second_id)
            if first is None or second is None:
                continue
            if first.score <= cfg.conflict_threshold or second.score <= cfg.conflict_threshold:
                continue
            lower = first if first.score <= second.score else second
            before = lower.score
            lower.score = max(cfg.conflict_floor, lower.score - cfg.conflict_step)
            adjustments.append(
                {"pair": [first_id, second_id], "lowered": lower.id, "from": before, "to": lower.score}
            )
            logger.debug("Trait conflict %s/%s lowered %s", first_id, second_id, lower.id)
        return adjustments

    def run(self) -> list[dict[str, Any]] | None:
        return self.memory_manager.update_traits(self.apply)
