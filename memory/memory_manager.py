"""High-level memory manager over the persisted memory document."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from core.clock import Clock, days_between, local_now, sunday_first_weekday
from core.errors import NotFoundError
from core.settings import EngineSettings
from memory.ring_buffer import append_bounded, bounded
from memory.scoring import clamp_unit, trait_score_step
from memory.stores.document_store import DocumentStore
from memory.types import (
    ContextualReminder,
    Episode,
    Goal,
    MemoryDocument,
    MemoryRecord,
    MoodEntry,
    MoodJournal,
    MoodPattern,
    Person,
    PersonalityTrait,
    RelationshipEdge,
    TraitSnapshot,
)
from memory.types.goals import GoalStatus, ReminderStatus, ReminderType
from memory.types.self_model import TraitCategory
from memory.types.semantic import RecordType, RecordValue

logger = logging.getLogger("rapport.memory")

T = TypeVar("T")

_PRIORITY_RANK = {"high": 2, "medium": 1, "low": 0}


def fuzzy_match(first: str, second: str) -> bool:
    a, b = first.strip().lower(), second.strip().lower()
    return bool(a) and bool(b) and (a in b or b in a)


def _title_name(name: str) -> str:
    return " ".join(part.capitalize() for part in name.split())


class MemoryManager:
    """Manages every memory domain on top of a single ``DocumentStore`` handle.

    Reads return copies. When memory is disabled record, episode, goal,
    reminder, person and mood mutations are no-ops returning ``None`` and
    reads return empty results. Trait mutations are no-ops returning ``None``
    or ``False`` while traits are disabled.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.store = store
        self.settings = settings or EngineSettings()
        self.clock = clock

    # -- plumbing ---------------------------------------------------------

    def memory_enabled(self) -> bool:
        return self.store.read(lambda doc: doc.memory_enabled)

    def traits_enabled(self) -> bool:
        return self.store.read(lambda doc: doc.traits_enabled)

    def transaction(self, fn: Callable[[MemoryDocument], T]) -> T | None:
        """Run ``fn`` as one persisted mutation; skipped while memory is disabled."""
        if not self.memory_enabled():
            logger.debug("Memory disabled, skipping mutation")
            return None
        return self.store.mutate(fn)

    def view(self, fn: Callable[[MemoryDocument], T], default: T) -> T:
        """Read through ``fn``, returning ``default`` while memory is disabled."""

        def _read(doc: MemoryDocument) -> T:
            return fn(doc) if doc.memory_enabled else default

        return self.store.read(_read)

    def set_memory_enabled(self, enabled: bool) -> None:
        def _update(doc: MemoryDocument) -> None:
            doc.memory_enabled = enabled

        self.store.mutate(_update)
        logger.info("Memory %s", "enabled" if enabled else "disabled")

    def set_traits_enabled(self, enabled: bool) -> None:
        def _update(doc: MemoryDocument) -> None:
            doc.traits_enabled = enabled

        self.store.mutate(_update)
        logger.info("Traits %s", "enabled" if enabled else "disabled")

    def export(self) -> dict[str, Any]:
        """Full JSON-safe dump of the document."""
        return self.store.snapshot().model_dump(mode="json")

    def clear_all(self) -> None:
        """Wipe records, episodes and summary, and reset the turn counter."""

        def _update(doc: MemoryDocument) -> None:
            doc.records = {}
            doc.episodes = []
            doc.summary.text = ""
            doc.summary.generated_at = None
            doc.turn_count = 0

        self.store.mutate(_update)
        logger.info("Cleared all memory records")

    # -- records ----------------------------------------------------------

    def get_record(self, key: str) -> MemoryRecord | None:
        """Return a copy of the record stored under ``key``."""

        def _read(doc: MemoryDocument) -> MemoryRecord | None:
            record = doc.records.get(key)
            return record.model_copy(deep=True) if record else None

        return self.view(_read, None)

    def require_record(self, key: str) -> MemoryRecord:
        record = self.get_record(key)
        if record is None:
            raise NotFoundError("record", key)
        return record

    def set_record(
        self,
        key: str,
        value: RecordValue,
        type: RecordType = "fact",
        confidence: float | None = None,
        source_turn: int | None = None,
        metadata: dict[str, Any] | None = None,
        emotion: str | None = None,
        significance: float | None = None,
    ) -> MemoryRecord | None:
        """Insert a record, or reaffirm an existing one."""
        now = self.clock()
        cfg = self.settings.store

        def _update(doc: MemoryDocument) -> MemoryRecord:
            existing = doc.records.get(key)
            if existing is None:
                record = MemoryRecord(
                    key=key,
                    value=value,
                    type=type,
                    confidence=cfg.default_confidence if confidence is None else confidence,
                    source_turn=source_turn,
                    metadata=dict(metadata or {}),
                    emotion=emotion,
                    significance=significance,
                    created_at=now,
                    updated_at=now,
                )
                doc.records[key] = record
            else:
                record = existing
                record.value = value
                record.type = type
                record.confidence = clamp_unit(record.confidence + cfg.reaffirm_increment)
                record.metadata = {**record.metadata, **(metadata or {})}
                if emotion is not None:
                    record.emotion = emotion
                if significance is not None:
                    record.significance = significance
                if source_turn is not None:
                    record.source_turn = source_turn
                record.updated_at = now
            return record.model_copy(deep=True)

        return self.transaction(_update)

    def delete_record(self, key: str) -> bool:
        def _update(doc: MemoryDocument) -> bool:
            return doc.records.pop(key, None) is not None

        return bool(self.transaction(_update))

    def list_records(self, pattern: str | None = None, type: RecordType | None = None) -> list[MemoryRecord]:
        """List records in insertion order, filtered by key fragment and type."""
        needle = pattern.lower() if pattern else None

        def _read(doc: MemoryDocument) -> list[MemoryRecord]:
            out: list[MemoryRecord] = []
            for record in doc.records.values():
                if needle and needle not in record.key.lower():
                    continue
                if type and record.type != type:
                    continue
                out.append(record.model_copy(deep=True))
            return out

        return self.view(_read, [])

    def mark_referenced(self, key: str) -> bool:
        now = self.clock()

        def _update(doc: MemoryDocument) -> bool:
            record = doc.records.get(key)
            if record is None:
                return False
            record.last_referenced = now
            return True

        return bool(self.transaction(_update))

    # -- episodes and counters ---------------------------------------------

    def add_episode(self, description: str, metadata: dict[str, Any] | None = None) -> Episode | None:
        now = self.clock()
        limit = self.settings.store.episode_limit

        def _update(doc: MemoryDocument) -> Episode:
            episode = Episode(
                description=description,
                turn=doc.turn_count,
                timestamp=now,
                metadata=dict(metadata or {}),
            )
            doc.episodes = append_bounded(doc.episodes, episode, limit)
            return episode.model_copy(deep=True)

        return self.transaction(_update)

    def recent_episodes(self, limit: int = 10) -> list[Episode]:
        """Newest first."""

        def _read(doc: MemoryDocument) -> list[Episode]:
            return [ep.model_copy(deep=True) for ep in reversed(doc.episodes[-limit:])] if limit > 0 else []

        return self.view(_read, [])

    def increment_turn_count(self) -> int:
        def _update(doc: MemoryDocument) -> int:
            doc.turn_count += 1
            return doc.turn_count

        result = self.transaction(_update)
        return 0 if result is None else result

    def turn_count(self) -> int:
        return self.view(lambda doc: doc.turn_count, 0)

    def summary(self) -> str:
        """Cached profile summary, rebuilt when stale."""
        if not self.memory_enabled():
            return ""
        now = self.clock()
        cfg = self.settings.store
        cached = self.store.read(lambda doc: (doc.summary.text, doc.summary.generated_at, doc.turn_count))
        text, generated_at, turns = cached
        stale = (
            generated_at is None
            or days_between(generated_at, now) * 24.0 > cfg.summary_max_age_hours
            or turns % cfg.summary_refresh_turns == 0
        )
        if not stale:
            return text

        def _update(doc: MemoryDocument) -> str:
            doc.summary.text = self._build_summary(doc)
            doc.summary.generated_at = now
            return doc.summary.text

        return self.transaction(_update) or ""

    def _build_summary(self, doc: MemoryDocument) -> str:
        cfg = self.settings.store
        strong = [r for r in doc.records.values() if r.confidence >= cfg.summary_min_confidence]
        strong.sort(key=lambda r: r.confidence, reverse=True)
        strong = strong[: cfg.summary_fact_limit]
        facts = [f"{r.key}={r.value}" for r in strong if r.type == "fact"]
        prefs = [f"{r.key}={r.value}" for r in strong if r.type == "preference"]
        parts: list[str] = []
        if facts:
            parts.append("Facts: " + ", ".join(facts))
        if prefs:
            parts.append("Preferences: " + ", ".join(prefs))
        return ". ".join(parts)

    # -- goals ------------------------------------------------------------

    def add_goal(self, description: str, target_date: str | None = None, progress: str = "") -> Goal | None:
        now = self.clock()

        def _update(doc: MemoryDocument) -> Goal:
            goal = Goal(
                description=description,
                target_date=target_date,
                progress=progress,
                created_at=now,
                updated_at=now,
            )
            doc.goals.append(goal)
            return goal.model_copy(deep=True)

        return self.transaction(_update)

    def active_goals(self) -> list[Goal]:
        return self.view(
            lambda doc: [g.model_copy(deep=True) for g in doc.goals if g.status == "active"], []
        )

    def find_goal_by_description(self, text: str) -> Goal | None:
        def _read(doc: MemoryDocument) -> Goal | None:
            for goal in doc.goals:
                if fuzzy_match(goal.description, text):
                    return goal.model_copy(deep=True)
            return None

        return self.view(_read, None)

    def update_goal(
        self,
        goal_id: str,
        status: GoalStatus | None = None,
        progress: str | None = None,
        milestone: str | None = None,
    ) -> Goal | None:
        now = self.clock()

        def _update(doc: MemoryDocument) -> Goal | None:
            goal = next((g for g in doc.goals if g.id == goal_id), None)
            if goal is None:
                return None
            if status is not None:
                goal.status = status
            if progress is not None:
                goal.progress = progress
            if milestone and milestone not in goal.milestones:
                goal.milestones.append(milestone)
            goal.updated_at = now
            return goal.model_copy(deep=True)

        return self.transaction(_update)

    def check_in_goal(self, goal_id: str) -> Goal | None:
        now = self.clock()

        def _update(doc: MemoryDocument) -> Goal | None:
            goal = next((g for g in doc.goals if g.id == goal_id), None)
            if goal is None:
                return None
            goal.last_check_in = now
            goal.check_in_count += 1
            goal.updated_at = now
            return goal.model_copy(deep=True)

        return self.transaction(_update)

    def goals_needing_check_in(self, days: float = 3.0) -> list[Goal]:
        now = self.clock()

        def _read(doc: MemoryDocument) -> list[Goal]:
            return [
                g.model_copy(deep=True)
                for g in doc.goals
                if g.status == "active"
                and (g.last_check_in is None or days_between(g.last_check_in, now) >= days)
            ]

        return self.view(_read, [])

    # -- reminders --------------------------------------------------------

    def add_or_update_reminder(
        self, type: ReminderType, description: str, context: str = ""
    ) -> ContextualReminder | None:
        """Create a reminder, or bump the mention count of a similar active one."""
        now = self.clock()

        def _update(doc: MemoryDocument) -> ContextualReminder:
            for reminder in doc.reminders:
                if reminder.status == "active" and fuzzy_match(reminder.description, description):
                    reminder.mention_count += 1
                    reminder.last_mentioned = now
                    return reminder.model_copy(deep=True)
            reminder = ContextualReminder(
                type=type,
                description=description,
                original_context=context,
                first_mentioned=now,
                last_mentioned=now,
            )
            doc.reminders.append(reminder)
            return reminder.model_copy(deep=True)

        return self.transaction(_update)

    def reminders_for_follow_up(self, min_days: float = 2.0, limit: int = 3) -> list[ContextualReminder]:
        now = self.clock()

        def _read(doc: MemoryDocument) -> list[ContextualReminder]:
            due = [
                r
                for r in doc.reminders
                if r.status == "active"
                and (r.last_followed_up is None or days_between(r.last_followed_up, now) >= min_days)
            ]
            due.sort(
                key=lambda r: (_PRIORITY_RANK[r.priority], r.mention_count, r.last_mentioned),
                reverse=True,
            )
            return [r.model_copy(deep=True) for r in due[:limit]]

        return self.view(_read, [])

    def mark_reminder_followed_up(self, reminder_id: str) -> bool:
        now = self.clock()

        def _update(doc: MemoryDocument) -> bool:
            reminder = next((r for r in doc.reminders if r.id == reminder_id), None)
            if reminder is None:
                return False
            reminder.last_followed_up = now
            reminder.follow_up_count += 1
            return True

        return bool(self.transaction(_update))

    def update_reminder_status(self, reminder_id: str, status: ReminderStatus) -> bool:
        def _update(doc: MemoryDocument) -> bool:
            reminder = next((r for r in doc.reminders if r.id == reminder_id), None)
            if reminder is None:
                return False
            reminder.status = status
            return True

        return bool(self.transaction(_update))

    # -- social graph -----------------------------------------------------

    def add_or_update_person(
        self,
        name: str,
        relationship_type: str = "unknown",
        context: str | None = None,
        relationship_quality: str | None = None,
    ) -> Person | None:
        """Upsert a person by name or alias."""
        now = self.clock()
        display = _title_name(name)
        cfg = self.settings.store

        def _update(doc: MemoryDocument) -> Person:
            person = next((p for p in doc.social_graph.people if p.matches(display)), None)
            if person is None:
                person = Person(
                    name=display,
                    relationship_type=relationship_type,
                    first_mentioned=now,
                    last_mentioned=now,
                )
                doc.social_graph.people.append(person)
            else:
                person.mention_count += 1
                person.last_mentioned = now
                if display != person.name and display not in person.aliases:
                    person.aliases.append(display)
                if relationship_type != "unknown" and (
                    person.relationship_type == "unknown" or relationship_type in ("family", "partner")
                ):
                    person.relationship_type = relationship_type
            if relationship_quality:
                person.relationship_quality = relationship_quality
            if context:
                person.context_notes = append_bounded(
                    person.context_notes, context, cfg.person_note_limit, unique=True
                )
            return person.model_copy(deep=True)

        return self.transaction(_update)

    def find_person(self, name: str) -> Person | None:
        def _read(doc: MemoryDocument) -> Person | None:
            person = next((p for p in doc.social_graph.people if p.matches(name)), None)
            return person.model_copy(deep=True) if person else None

        return self.view(_read, None)

    def people_to_ask_about(self, min_days: float = 3.0, limit: int = 2) -> list[Person]:
        now = self.clock()

        def _read(doc: MemoryDocument) -> list[Person]:
            due = [
                p
                for p in doc.social_graph.people
                if p.mention_count >= 2
                and (p.last_asked_about is None or days_between(p.last_asked_about, now) >= min_days)
            ]
            due.sort(key=lambda p: (p.mention_count, p.last_mentioned), reverse=True)
            return [p.model_copy(deep=True) for p in due[:limit]]

        return self.view(_read, [])

    def mark_person_asked_about(self, person_id: str) -> bool:
        now = self.clock()

        def _update(doc: MemoryDocument) -> bool:
            person = next((p for p in doc.social_graph.people if p.id == person_id), None)
            if person is None:
                return False
            person.last_asked_about = now
            return True

        return bool(self.transaction(_update))

    def add_person_update(self, person_id: str, update: str) -> bool:
        limit = self.settings.store.person_update_limit

        def _update(doc: MemoryDocument) -> bool:
            person = next((p for p in doc.social_graph.people if p.id == person_id), None)
            if person is None:
                return False
            person.recent_updates = append_bounded(person.recent_updates, update, limit)
            return True

        return bool(self.transaction(_update))

    def add_relationship(self, person_a: str, person_b: str, relationship: str) -> RelationshipEdge | None:
        """Link two known people; an existing edge for the pair is returned unchanged."""
        now = self.clock()

        def _update(doc: MemoryDocument) -> RelationshipEdge | None:
            known = {p.id for p in doc.social_graph.people}
            if person_a not in known or person_b not in known or person_a == person_b:
                return None
            for edge in doc.social_graph.edges:
                if edge.joins(person_a, person_b):
                    return edge.model_copy(deep=True)
            edge = RelationshipEdge(
                person_a=person_a, person_b=person_b, relationship=relationship, first_mentioned=now
            )
            doc.social_graph.edges.append(edge)
            return edge.model_copy(deep=True)

        return self.transaction(_update)

    def people(self) -> list[Person]:
        return self.view(lambda doc: [p.model_copy(deep=True) for p in doc.social_graph.people], [])

    # -- mood journal -----------------------------------------------------

    def add_mood_entry(self, mood: str, confidence: float, context: str = "") -> MoodEntry | None:
        now = self.clock()
        limit = self.settings.store.mood_entry_limit

        def _update(doc: MemoryDocument) -> MoodEntry:
            entry = MoodEntry(
                mood=mood,
                confidence=confidence,
                timestamp=now,
                hour=now.hour,
                weekday=sunday_first_weekday(now),
                turn=doc.turn_count,
                context=context,
            )
            doc.mood_journal.entries = append_bounded(doc.mood_journal.entries, entry, limit)
            return entry.model_copy(deep=True)

        return self.transaction(_update)

    def recent_mood_entries(self, days: float = 7.0) -> list[MoodEntry]:
        now = self.clock()

        def _read(doc: MemoryDocument) -> list[MoodEntry]:
            return [
                e.model_copy(deep=True)
                for e in doc.mood_journal.entries
                if days_between(e.timestamp, now) <= days
            ]

        return self.view(_read, [])

    def add_mood_pattern(self, pattern_type: str, description: str, confidence: float) -> MoodPattern | None:
        now = self.clock()
        limit = self.settings.store.mood_pattern_limit

        def _update(doc: MemoryDocument) -> MoodPattern:
            pattern = MoodPattern(
                pattern_type=pattern_type,
                description=description,
                confidence=confidence,
                detected_at=now,
            )
            doc.mood_journal.patterns = append_bounded(doc.mood_journal.patterns, pattern, limit)
            return pattern.model_copy(deep=True)

        return self.transaction(_update)

    def mark_mood_observation(self) -> None:
        now = self.clock()

        def _update(doc: MemoryDocument) -> None:
            doc.mood_journal.last_observation = now

        self.transaction(_update)

    def mood_journal(self) -> MoodJournal:
        return self.view(lambda doc: doc.mood_journal.model_copy(deep=True), MoodJournal())

    # -- traits -----------------------------------------------------------

    def _traits_off(self, action: str) -> bool:
        if self.traits_enabled():
            return False
        logger.debug("Traits disabled, skipping %s", action)
        return True

    def update_traits(self, fn: Callable[[list[PersonalityTrait]], T]) -> T | None:
        """Apply ``fn`` to the trait list as one persisted mutation; skipped while traits are disabled."""
        if self._traits_off("trait update"):
            return None

        def _update(doc: MemoryDocument) -> T | None:
            if not doc.traits_enabled:
                return None
            return fn(doc.traits)

        return self.store.mutate(_update)

    def find_or_create_trait(
        self,
        trait_id: str,
        label: str,
        category: TraitCategory,
        initial_score: float,
        evidence: str | None = None,
        source: str | None = None,
    ) -> PersonalityTrait | None:
        """Create a trait, or reinforce the active trait with the same id."""
        now = self.clock()
        cfg = self.settings.traits

        def _update(traits: list[PersonalityTrait]) -> PersonalityTrait:
            trait = next((t for t in traits if t.id == trait_id), None)
            if trait is not None and not trait.active:
                traits.remove(trait)
                trait = None
            if trait is None:
                trait = PersonalityTrait(
                    id=trait_id,
                    label=label,
                    category=category,
                    score=initial_score,
                    salience=cfg.initial_salience,
                    evidence_count=1,
                    evidence=[evidence] if evidence else [],
                    sources=[source] if source else [],
                    created_at=now,
                    last_update=now,
                )
                traits.append(trait)
                logger.info("Discovered trait %s", trait_id)
            else:
                trait.evidence_count += 1
                trait.score = clamp_unit(trait.score + trait_score_step(trait.score, cfg))
                trait.salience = clamp_unit(trait.salience + cfg.salience_step)
                if evidence:
                    trait.evidence = append_bounded(trait.evidence, evidence, cfg.evidence_limit, unique=True)
                if source:
                    trait.sources = append_bounded(trait.sources, source, cfg.source_limit, unique=True)
                trait.last_update = now
            return trait.model_copy(deep=True)

        return self.update_traits(_update)

    def forget_trait(self, trait_id: str) -> bool:
        def _update(traits: list[PersonalityTrait]) -> bool:
            for trait in traits:
                if trait.id == trait_id and trait.active:
                    trait.active = False
                    return True
            return False

        return bool(self.update_traits(_update))

    def reset_traits(self) -> bool:
        """Drop every trait and snapshot; returns False while traits are disabled."""
        if self._traits_off("trait reset"):
            return False

        def _update(doc: MemoryDocument) -> bool:
            if not doc.traits_enabled:
                return False
            doc.traits = []
            doc.trait_history = []
            return True

        return self.store.mutate(_update)

    def active_traits(self) -> list[PersonalityTrait]:
        """Active traits ordered by salience x score, strongest first."""

        def _read(doc: MemoryDocument) -> list[PersonalityTrait]:
            if not doc.traits_enabled:
                return []
            active = [t for t in doc.traits if t.active]
            active.sort(key=lambda t: t.weight, reverse=True)
            return [t.model_copy(deep=True) for t in active]

        return self.store.read(_read)

    def get_trait(self, trait_id: str) -> PersonalityTrait | None:
        return next((t for t in self.active_traits() if t.id == trait_id), None)

    def top_traits(self, n: int = 3) -> list[PersonalityTrait]:
        return self.active_traits()[:n]

    def snapshot_trait_history(self) -> TraitSnapshot | None:
        if self._traits_off("trait snapshot"):
            return None
        now = self.clock()
        limit = self.settings.store.trait_history_limit

        def _update(doc: MemoryDocument) -> TraitSnapshot | None:
            if not doc.traits_enabled:
                return None
            snap = TraitSnapshot(
                timestamp=now,
                turn=doc.turn_count,
                traits=[t.model_copy(deep=True) for t in doc.traits if t.active],
            )
            doc.trait_history = bounded([*doc.trait_history, snap], limit)
            return snap.model_copy(deep=True)

        return self.store.mutate(_update)

    def trait_history(self) -> list[TraitSnapshot]:
        return self.store.read(lambda doc: [s.model_copy(deep=True) for s in doc.trait_history])
