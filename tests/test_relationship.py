"""Relationship depth, milestone and anniversary tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

from core.settings import RelationshipSettings
from memory.memory_manager import MemoryManager
from memory.relationship import (
    RelationshipTracker,
    detect_inside_joke,
    detect_personal_reveal,
    find_common_phrases,
)
from memory.scoring import relationship_depth, round_half_up
from memory.stores.document_store import DocumentStore
from memory.stores.sql_store import SQLStore
from memory.types import MemoryDocument

START = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FrozenClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def build_memory(tmp_path: Path, clock: FrozenClock) -> MemoryManager:
    store = DocumentStore(SQLStore(db_path=tmp_path / "rapport.db"))
    return MemoryManager(store, clock=clock)


def set_turns(memory: MemoryManager, turns: int) -> None:
    def _update(doc: MemoryDocument) -> None:
        doc.turn_count = turns

    memory.transaction(_update)


def test_depth_formula_rounds_half_up() -> None:
    settings = RelationshipSettings()
    assert round_half_up(30.5) == 31
    assert relationship_depth(25, 30, 2, 1, settings) == 31
    assert relationship_depth(10_000, 10_000, 100, 100, settings) == 100
    assert relationship_depth(0, 0, 0, 0, settings) == 0


def test_depth_scenario_and_ratchet(tmp_path: Path) -> None:
    clock = FrozenClock(START - timedelta(days=30))
    memory = build_memory(tmp_path, clock)
    tracker = RelationshipTracker(memory, clock=clock)
    assert tracker.ensure_first_contact() is True
    assert tracker.ensure_first_contact() is False
    tracker.add_inside_joke("the sourdough incident")
    tracker.add_inside_joke("tea not coffee")
    tracker.record_personal_reveal()

    clock.now = START
    set_turns(memory, 25)
    assert tracker.days_since_first_contact() == 30
    assert tracker.update_depth() == 31

    set_turns(memory, 1)
    assert tracker.update_depth() == 31
    assert tracker.depth() == 31


def test_conversation_milestones_are_idempotent(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    tracker = RelationshipTracker(memory, clock=clock)
    tracker.ensure_first_contact()

    set_turns(memory, 10)
    created = tracker.check_milestones()
    assert [m.title for m in created] == ["10th conversation!"]
    assert tracker.check_milestones() == []

    set_turns(memory, 11)
    assert tracker.check_milestones() == []

    titles = [m.title for m in tracker.state().milestones]
    assert titles.count("10th conversation!") == 1
    assert titles[0] == "First conversation"


def test_month_anniversary_registers_recurring_moment(tmp_path: Path) -> None:
    clock = FrozenClock(START - timedelta(days=31))
    memory = build_memory(tmp_path, clock)
    tracker = RelationshipTracker(memory, clock=clock)
    tracker.ensure_first_contact()
    set_turns(memory, 2)

    clock.now = START
    created = tracker.check_milestones()
    assert [(m.type, m.value) for m in created] == [("anniversary", 1)]
    assert tracker.check_milestones() == []

    moments = tracker.state().significant_moments
    assert len(moments) == 1
    assert moments[0].recurring is True


def test_anniversary_fires_once_per_year(tmp_path: Path) -> None:
    clock = FrozenClock(START)
    memory = build_memory(tmp_path, clock)
    tracker = RelationshipTracker(memory, clock=clock)
    tracker.add_significant_moment("Started the new job", anchor_date=START, recurring=True)

    assert tracker.anniversaries_due() == []

    clock.now = START.replace(year=2027)
    due = tracker.anniversaries_due()
    assert [m.description for m in due] == ["Started the new job"]
    assert tracker.anniversaries_due() == []
    clock.advance(hours=6)
    assert tracker.anniversaries_due() == []

    clock.now = START.replace(year=2028)
    assert len(tracker.anniversaries_due(celebrate=False)) == 1
    assert len(tracker.anniversaries_due()) == 1
    assert tracker.anniversaries_due() == []


def test_inside_jokes_merge_and_track_turns(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    tracker = RelationshipTracker(memory, clock=clock)
    tracker.add_inside_joke("the sourdough incident", turn=3)
    merged = tracker.add_inside_joke("Sourdough incident", turn=7)

    assert merged is not None
    assert merged.reference_count == 2
    assert merged.turn_numbers == [3, 7]
    assert len(tracker.state().inside_jokes) == 1


def test_detectors() -> None:
    assert detect_personal_reveal("I haven't told anyone this before")
    assert detect_personal_reveal("My family is coming over")
    assert not detect_personal_reveal("The weather is nice")

    assert detect_inside_joke('haha "tea not coffee" again', "classic") == "tea not coffee"
    assert detect_inside_joke("remember when the oven caught fire.", "lol yes") == "the oven caught fire"
    assert detect_inside_joke("ok", "") is None
    assert detect_inside_joke("what time is it", "about noon") is None

    history = ["midnight snack again tonight", "another midnight snack run", "hungry"]
    assert find_common_phrases(history) == ["midnight snack"]
