"""End-to-end turn processing tests."""

from __future__ import annotations

import json
import random
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from core.errors import StoreWriteError
from core.orchestrator import Orchestrator, TurnOrchestrator
from governance.audit_logger import TurnAuditLogger
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.stores.document_store import DocumentStore
from memory.stores.sql_store import SQLStore
from memory.types import TraitSignal

START = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FrozenClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def build_turns(tmp_path: Path, clock: FrozenClock) -> TurnOrchestrator:
    store = DocumentStore(SQLStore(db_path=tmp_path / "rapport.db"))
    memory = MemoryManager(store, clock=clock)
    return TurnOrchestrator(
        memory,
        retriever=MemoryRetriever(memory, rng=random.Random(5), clock=clock),
        audit=TurnAuditLogger(tmp_path / "logs" / "turns.jsonl", clock=clock),
        clock=clock,
    )


def test_first_turn_records_milestone(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    result = turns.run_turn("I had a really long day at work today")

    assert result.reply_type == "open"
    assert result.turn == 1
    assert [m.title for m in result.milestones] == ["1st conversation!"]
    assert result.persisted is True
    assert turns.relationship_depth() == 2
    assert turns.memory.turn_count() == 1

    again = turns.run_turn("and then the train was late")
    assert again.turn == 2
    assert again.milestones == []


def test_agent_question_blocks_follow_up_question(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    result = turns.run_turn("It was fine I guess, pretty quiet overall", agent_reply="How was your day?")

    assert result.may_ask_question is False
    assert result.policy.last_actions[-1].type == "question"
    assert result.policy.phase == "cooling_down"
    assert "question" in result.allowed_actions.disallowed
    assert result.allowed_actions.preferred != "question"


def test_observed_reply_is_not_recorded_twice(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    assert turns.observe_agent_reply("Sounds like fun.") == "observation"
    result = turns.run_turn("yeah it was a great time", agent_reply="Sounds like fun.")
    assert len(result.policy.last_actions) == 1

    second = turns.run_turn("we should go again", agent_reply="I made tea earlier")
    assert [a.type for a in second.policy.last_actions] == ["observation", "statement"]


def test_silence_turn_skips_mood_and_recall(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    turns.observe_fact("user.city", "Lisbon", confidence=0.9)
    clock.advance(minutes=1)

    result = turns.run_turn("")
    assert result.reply_type == "silence"
    assert result.engagement == "closed"
    assert result.proactive_recall is None
    assert result.user_emotion.label == "neutral"
    assert turns.memory.recent_mood_entries() == []
    assert [r.key for r in result.recalled] == ["user.city"]


def test_open_turn_surfaces_proactive_recall(tmp_path: Path) -> None:
    clock = FrozenClock(START - timedelta(days=1))
    turns = build_turns(tmp_path, clock)
    turns.observe_fact("user.city", "Lisbon", confidence=0.9)
    clock.now = START

    result = turns.run_turn("I went for a walk along the river this morning")
    assert result.proactive_recall is not None
    assert result.proactive_recall.key == "user.city"
    assert turns.proactive_recall() is None


def test_memory_disabled_turn_is_not_recorded(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    turns.memory.set_memory_enabled(False)

    result = turns.run_turn("I went climbing with my friend today")
    assert result.turn == 0
    assert result.milestones == []
    assert result.recalled == []
    assert result.persisted is True
    assert turns.memory.turn_count() == 0
    assert turns.observe_fact("user.city", "Lisbon") is None


def test_observations_write_through_memory(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    turns.run_turn("hello there, nice to meet you")

    record = turns.observe_fact("user.city", "Lisbon")
    assert record is not None and record.source_turn == 1

    first = turns.observe_goal("run a marathon", progress="signed up")
    second = turns.observe_goal("Run a marathon", progress="week 2")
    assert first is not None and second is not None
    assert second.id == first.id
    assert second.progress == "week 2"
    assert len(turns.memory.active_goals()) == 1

    person = turns.observe_person("sam", relationship_type="friend", context="climbing partner")
    assert person is not None
    assert person.name == "Sam"

    mood = turns.observe_mood("calm", 0.8)
    assert mood is not None and mood.mood == "calm"


def test_observe_trait_normalizes_and_filters(tmp_path: Path) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)
    signal = TraitSignal(
        id="Night Owl", label="Night Owl", category="time_pattern", confidence=0.8, evidence="up at 3am"
    )

    trait = turns.observe_trait(signal)
    assert trait is not None
    assert trait.id == "night_owl"
    assert trait.score == pytest.approx(0.4)
    assert [t.id for t in turns.active_traits()] == ["night_owl"]

    blocked = TraitSignal(id="health_focus", label="Health", category="habits", confidence=0.9, evidence="x")
    assert turns.observe_trait(blocked) is None

    turns.memory.set_traits_enabled(False)
    assert turns.observe_trait(signal) is None


def test_write_failure_marks_turn_unpersisted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    clock = FrozenClock()
    turns = build_turns(tmp_path, clock)

    def fail(document: object, expected_version: int) -> int:
        raise StoreWriteError("disk full")

    monkeypatch.setattr(turns.memory.store, "_write", fail)
    result = turns.run_turn("I finally finished the big project")
    assert result.persisted is False
    assert result.reply_type == "open"

    lines = (tmp_path / "logs" / "turns.jsonl").read_text(encoding="utf-8").splitlines()
    event = json.loads(lines[-1])
    assert event["persisted"] is False
    assert event["timestamp"] == START.isoformat()
    assert "finished" not in lines[-1]
    assert len(event["text_hash"]) == 64


def test_runtime_build_creates_directories(tmp_path: Path) -> None:
    clock = FrozenClock()
    bundle = Orchestrator(root=tmp_path, clock=clock, rng=random.Random(7)).build()

    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "logs").is_dir()
    assert bundle.settings.traits.max_active == 8

    result = bundle.turns.run_turn("hello there, how are you doing")
    assert result.turn == 1
    line = (tmp_path / "logs" / "turns.jsonl").read_text(encoding="utf-8").splitlines()[-1]
    assert json.loads(line)["timestamp"] == START.isoformat()
    assert bundle.memory.turn_count() == 1
