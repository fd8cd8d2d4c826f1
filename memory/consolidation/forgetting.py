"""Trait decay, retirement and active-cap enforcement."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from core.clock import Clock, days_between, local_now
from core.settings import TraitSettings
from memory.scoring import decayed
from memory.types import PersonalityTrait

logger = logging.getLogger("rapport.forgetting")


class TraitDecayPolicy:
    """Decays trait score and salience by elapsed days and retires faded traits."""

    def __init__(self, memory_manager: Any, settings: TraitSettings | None = None, clock: Clock = local_now) -> None:
        self.memory_manager = memory_manager
        self.settings = settings or memory_manager.settings.traits
        self.clock = clock

    def apply(self, traits: list[PersonalityTrait], now: datetime) -> dict[str, list[str]]:
        """Decay ``traits`` in place; returns the ids retired by fading and by the cap."""
        cfg = self.settings
        retired: list[str] = []
        capped: list[str] = []

        for trait in traits:
            if not trait.active:
                continue
            days = max(0.0, days_between(trait.last_update, now))
            trait.score = decayed(trait.score, cfg.score_decay, days)
            trait.salience = decayed(trait.salience, cfg.salience_decay, days)
            if (
                trait.salience < cfg.retire_salience_below
                and trait.score < cfg.retire_score_below
                and days >= cfg.retire_min_days
            ):
                trait.active = False
                retired.append(trait.id)

        active = [t for t in traits if t.active]
        overflow = len(active) - cfg.max_active
        if overflow > 0:
            # Stable sort: among equal weights the oldest insertion retires first.
            for trait in sorted(active, key=lambda t: t.weight)[:overflow]:
                trait.active = False
                capped.append(trait.id)

        for trait_id in retired:
            logger.info("Retired faded trait %s", trait_id)
        for trait_id in capped:
            logger.info("Retired trait %s to respect the active cap", trait_id)
        return {"retired": retired, "capped": capped}

    def run(self, now: datetime | None = None) -> dict[str, list[str]] | None:
        now = now or self.clock()
        return self.memory_manager.update_traits(lambda traits: self.apply(traits, now))
