"""Retrieval ranking and proactive recall tests."""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from core.settings import RetrievalSettings
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.scoring import contextual_score
from memory.stores.document_store import DocumentStore
from memory.stores.sql_store import SQLStore

START = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FrozenClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def build_memory(tmp_path: Path, clock: FrozenClock) -> MemoryManager:
    tmp_path.mkdir(parents=True, exist_ok=True)
    store = DocumentStore(SQLStore(db_path=tmp_path / "rapport.db"))
    return MemoryManager(store, clock=clock)


def test_rank_weights_emotion_and_keeps_insertion_order_on_ties(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    memory.set_record("a", "alpha", confidence=0.8)
    memory.set_record("b", "beta", confidence=0.8)
    memory.set_record("c", "gamma", confidence=0.8, emotion="joy")
    memory.set_record("d", "delta", confidence=0.5, significance=1.0)

    retriever = MemoryRetriever(memory, clock=clock)
    assert [r.key for r in retriever.rank()] == ["c", "d", "a", "b"]
    assert [r.key for r in retriever.rank(limit=2)] == ["c", "d"]

    memory.mark_referenced("b")
    assert [r.key for r in retriever.rank()][:3] == ["c", "d", "b"]


def test_zero_significance_weighs_like_unset() -> None:
    settings = RetrievalSettings()
    unset = contextual_score(0.8, None, False, False, settings)
    assert unset == pytest.approx(0.4)
    assert contextual_score(0.8, 0.0, False, False, settings) == pytest.approx(unset)
    assert contextual_score(0.8, 0.25, False, False, settings) == pytest.approx(0.2)


def test_rank_topic_matches_key_or_value(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    memory.set_record("music.genre", "jazz", type="preference")
    memory.set_record("user.city", "Lisbon")
    memory.set_record("weekend.plan", "jazz festival", type="event")

    retriever = MemoryRetriever(memory, clock=clock)
    assert [r.key for r in retriever.rank(topic="JAZZ")] == ["music.genre", "weekend.plan"]
    bundle = retriever.relevant_memories(topic="city")
    assert [r.key for r in bundle["records"]] == ["user.city"]
    assert "episodes" in bundle and "summary" in bundle


def test_old_record_is_excluded_and_recent_one_recalled(tmp_path: Path) -> None:
    clock = FrozenClock(START - timedelta(days=20))
    memory = build_memory(tmp_path, clock)
    memory.set_record("record.a", "old but confident", confidence=0.9)
    clock.now = START - timedelta(days=1)
    memory.set_record("record.b", "recent", confidence=0.6)
    clock.now = START

    retriever = MemoryRetriever(memory, rng=random.Random(1), clock=clock)
    candidates = retriever.recall_candidates()
    assert [record.key for _, record in candidates] == ["record.b"]
    salience, _ = candidates[0]
    assert salience == pytest.approx(0.6 * (1 - 1 / 14))

    chosen = retriever.select_proactive_recall()
    assert chosen is not None
    assert chosen.key == "record.b"
    assert chosen.last_referenced == START
    assert retriever.select_proactive_recall() is None


def test_proactive_recall_skips_internal_and_weak_records(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    memory.set_record("system.boot", "x", confidence=1.0)
    memory.set_record("internal.flag", "y", confidence=1.0)
    memory.set_record("user.guess", "z", confidence=0.4)

    retriever = MemoryRetriever(memory, rng=random.Random(3), clock=clock)
    assert retriever.select_proactive_recall() is None


def test_proactive_recall_is_deterministic_under_a_seed(tmp_path: Path) -> None:
    picks = []
    for run in ("first", "second"):
        clock = FrozenClock()
        memory = build_memory(tmp_path / run, clock)
        for i in range(6):
            memory.set_record(f"fact.{i}", f"value {i}", confidence=0.7 + i * 0.05)
        retriever = MemoryRetriever(memory, rng=random.Random(42), clock=clock)
        chosen = retriever.select_proactive_recall()
        assert chosen is not None
        picks.append(chosen.key)
        # only the top three by salience are ever picked
        assert chosen.key in {"fact.5", "fact.4", "fact.3"}
    assert picks[0] == picks[1]


def test_preferences_get_a_recall_boost(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    memory.set_record("user.city", "Lisbon", confidence=0.8)
    memory.set_record("music.genre", "jazz", type="preference", confidence=0.8)

    retriever = MemoryRetriever(memory, clock=clock)
    ranked = [record.key for _, record in retriever.recall_candidates()]
    assert ranked == ["music.genre", "user.city"]


def test_upcoming_event_within_window(tmp_path: Path) -> None:
    clock = FrozenClock()
    memory = build_memory(tmp_path, clock)
    memory.set_record("event.exam", "2026-03-12", type="event")
    memory.set_record("event.past", "2026-03-01", type="event")
    memory.set_record("event.far", "2026-04-20", type="event")
    memory.set_record("event.vague", "next week sometime", type="event")

    retriever = MemoryRetriever(memory, clock=clock)
    event = retriever.upcoming_event()
    assert event is not None
    assert event.key == "event.exam"
    assert retriever.upcoming_event() is None

    clock.advance(hours=25)
    again = retriever.upcoming_event()
    assert again is not None and again.key == "event.exam"
