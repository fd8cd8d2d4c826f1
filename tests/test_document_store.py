"""Document persistence, recovery and optimistic write tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from sqlalchemy import update

from core.errors import CorruptStateError, StaleDocumentError
from memory.schemas import MemoryDocumentRecord
from memory.stores.document_store import DocumentStore
from memory.stores.sql_store import SQLStore
from memory.types import MemoryDocument


def bump_turns(doc: MemoryDocument) -> int:
    doc.turn_count += 1
    return doc.turn_count


def overwrite_payload(sql_store: SQLStore, payload: str) -> None:
    with sql_store.session() as sess:
        sess.execute(update(MemoryDocumentRecord).values(payload=payload))


def test_mutate_persists_and_bumps_version(tmp_path: Path) -> None:
    store = DocumentStore(SQLStore(tmp_path / "rapport.db"))
    assert store.version == 0
    assert store.mutate(bump_turns) == 1
    assert store.mutate(bump_turns) == 2
    assert store.version == 2
    assert store.load().turn_count == 2


def test_failed_mutation_leaves_document_untouched(tmp_path: Path) -> None:
    store = DocumentStore(SQLStore(tmp_path / "rapport.db"))
    store.mutate(bump_turns)

    def explode(doc: MemoryDocument) -> None:
        doc.turn_count = 99
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.mutate(explode)
    assert store.snapshot().turn_count == 1


def test_corrupt_document_is_replaced_with_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    store = DocumentStore(sql_store)
    store.mutate(bump_turns)
    overwrite_payload(sql_store, "{not json")

    reopened = DocumentStore(sql_store)
    with caplog.at_level(logging.WARNING, logger="rapport.document_store"):
        document = reopened.load()
    assert document.turn_count == 0
    assert "corrupt" in caplog.text

    reopened.mutate(bump_turns)
    assert DocumentStore(sql_store).load().turn_count == 1


def test_missing_collections_get_defaults(tmp_path: Path) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    DocumentStore(sql_store).mutate(bump_turns)
    overwrite_payload(sql_store, '{"turn_count": 4, "records": null}')

    document = DocumentStore(sql_store).load()
    assert document.turn_count == 4
    assert document.records == {}
    assert document.traits == []
    assert document.memory_enabled is True


def test_null_scores_take_field_defaults(tmp_path: Path) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    DocumentStore(sql_store).mutate(bump_turns)
    overwrite_payload(
        sql_store,
        '{"turn_count": 2, "records": {"k": {"key": "k", "value": "v", "confidence": null}}, '
        '"traits": [{"id": "humor", "label": "Humor", "category": "tone", "score": null, "salience": null}]}',
    )

    document = DocumentStore(sql_store).load()
    assert document.turn_count == 2
    assert document.records["k"].confidence == 0.8
    assert document.traits[0].score == 0.5
    assert document.traits[0].salience == 0.2


def test_non_numeric_scores_reset_the_document(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    DocumentStore(sql_store).mutate(bump_turns)
    overwrite_payload(
        sql_store,
        '{"turn_count": 3, "records": {"k": {"key": "k", "value": "v", "confidence": [1, 2]}}}',
    )

    with caplog.at_level(logging.WARNING, logger="rapport.document_store"):
        document = DocumentStore(sql_store).load()
    assert document.turn_count == 0
    assert document.records == {}
    assert "corrupt" in caplog.text

    with pytest.raises(CorruptStateError):
        DocumentStore.decode('{"traits": [{"id": "x", "label": "X", "category": "tone", "score": {}}]}')


def test_decode_rejects_non_objects() -> None:
    with pytest.raises(CorruptStateError):
        DocumentStore.decode("[1, 2, 3]")
    assert DocumentStore.decode("").turn_count == 0


def test_stale_writer_reloads_and_retries(tmp_path: Path) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    first = DocumentStore(sql_store)
    second = DocumentStore(sql_store)

    first.mutate(bump_turns)
    second.load()
    first.mutate(bump_turns)

    # second still holds version 1; its write must be re-applied on version 2.
    assert second.mutate(bump_turns) == 3
    assert second.version == 3
    assert first.load().turn_count == 3


def test_stale_writer_gives_up_after_retries(tmp_path: Path) -> None:
    sql_store = SQLStore(tmp_path / "rapport.db")
    first = DocumentStore(sql_store)
    second = DocumentStore(sql_store, max_retries=0)

    first.mutate(bump_turns)
    second.load()
    first.mutate(bump_turns)

    with pytest.raises(StaleDocumentError):
        second.mutate(bump_turns)
    assert first.load().turn_count == 2


def test_unreadable_database_is_recreated(tmp_path: Path) -> None:
    db_path = tmp_path / "rapport.db"
    db_path.write_bytes(b"this is not a sqlite database file " * 64)

    store = DocumentStore(SQLStore(db_path))
    assert store.load().turn_count == 0
    store.mutate(bump_turns)
    assert DocumentStore(SQLStore(db_path)).load().turn_count == 1
