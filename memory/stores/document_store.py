"""Single-writer, versioned store for the whole memory document."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import DatabaseError, IntegrityError, SQLAlchemyError

from core.clock import utc_now
from core.errors import CorruptStateError, StaleDocumentError, StoreWriteError
from memory.schemas import MemoryDocumentRecord
from memory.stores.sql_store import SQLStore
from memory.types.document import MemoryDocument

logger = logging.getLogger("rapport.document_store")

T = TypeVar("T")


class DocumentStore:
    """Loads, mutates and persists one named ``MemoryDocument``.

    Mutations run under a re-entrant lock against a private working copy.
    The row is only updated when its version still matches the version the
    copy was read from; otherwise the document is reloaded and the mutation
    re-applied, up to ``max_retries`` times.
    """

    def __init__(self, sql_store: SQLStore, name: str = "default", max_retries: int = 3) -> None:
        self.sql_store = sql_store
        self.name = name
        self.max_retries = max_retries
        self._lock = threading.RLock()
        self._document: MemoryDocument | None = None
        self._version = 0
        try:
            self.sql_store.create_all()
        except DatabaseError as exc:
            logger.warning("Memory database unreadable (%s), recreating", exc)
            self.sql_store.recreate()

    @property
    def version(self) -> int:
        return self._version

    @staticmethod
    def encode(document: MemoryDocument) -> str:
        """Serialize a document to JSON text."""
        return json.dumps(document.model_dump(mode="json"), ensure_ascii=False)

    @staticmethod
    def decode(payload: str | None) -> MemoryDocument:
        """Parse JSON text into a document, raising ``CorruptStateError`` on failure."""
        if not payload:
            return MemoryDocument()
        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as exc:
            raise CorruptStateError(f"Undecodable memory document: {exc}") from exc
        if not isinstance(data, dict):
            raise CorruptStateError("Memory document must be a JSON object")
        try:
            return MemoryDocument.model_validate(data)
        except (ValidationError, TypeError, ValueError) as exc:
            raise CorruptStateError(f"Invalid memory document: {exc}") from exc

    def _fetch(self) -> tuple[str, int] | None:
        with self.sql_store.session() as sess:
            row = sess.execute(
                select(MemoryDocumentRecord.payload, MemoryDocumentRecord.version).where(
                    MemoryDocumentRecord.name == self.name
                )
            ).first()
            if row is None:
                return None
            return row[0], row[1]

    def load(self) -> MemoryDocument:
        """(Re)read the persisted document; corrupt state is replaced with defaults."""
        with self._lock:
            try:
                fetched = self._fetch()
            except DatabaseError as exc:
                logger.warning("Memory database unreadable (%s), recreating", exc)
                self.sql_store.recreate()
                fetched = None

            if fetched is None:
                self._document = MemoryDocument()
                self._version = 0
            else:
                payload, version = fetched
                self._version = version
                try:
                    self._document = self.decode(payload)
                except CorruptStateError as exc:
                    logger.warning(
                        "Memory document '%s' is corrupt, reinitialising defaults: %s",
                        self.name,
                        exc,
                    )
                    self._document = MemoryDocument()
            return self._document.model_copy(deep=True)

    def _current(self) -> MemoryDocument:
        if self._document is None:
            self.load()
        assert self._document is not None
        return self._document

    def snapshot(self) -> MemoryDocument:
        """Deep copy of the current document."""
        with self._lock:
            return self._current().model_copy(deep=True)

    def read(self, fn: Callable[[MemoryDocument], T]) -> T:
        """Run ``fn`` against the live document. ``fn`` must copy what it returns."""
        with self._lock:
            return fn(self._current())

    def _write(self, document: MemoryDocument, expected_version: int) -> int:
        payload = self.encode(document)
        new_version = expected_version + 1
        try:
            with self.sql_store.session() as sess:
                exists = sess.scalar(
                    select(MemoryDocumentRecord.id).where(MemoryDocumentRecord.name == self.name)
                )
                if exists is None and expected_version == 0:
                    sess.add(
                        MemoryDocumentRecord(name=self.name, payload=payload, version=new_version)
                    )
                    return new_version
                result = sess.execute(
                    update(MemoryDocumentRecord)
                    .where(
                        MemoryDocumentRecord.name == self.name,
                        MemoryDocumentRecord.version == expected_version,
                    )
                    .values(payload=payload, version=new_version, updated_at=utc_now())
                )
                if result.rowcount != 1:
                    raise StaleDocumentError(
                        f"Memory document '{self.name}' changed since version {expected_version}"
                    )
        except IntegrityError as exc:
            raise StaleDocumentError(
                f"Memory document '{self.name}' was created concurrently"
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to persist memory document '{self.name}': {exc}") from exc
        return new_version

    def mutate(self, fn: Callable[[MemoryDocument], T]) -> T:
        """Apply ``fn`` to a working copy and persist the full document.

        On failure the in-memory document is left untouched and the error
        propagates.
        """
        with self._lock:
            attempts = 0
            while True:
                working = self._current().model_copy(deep=True)
                result = fn(working)
                try:
                    self._version = self._write(working, self._version)
                except StaleDocumentError:
                    attempts += 1
                    if attempts > self.max_retries:
                        raise
                    logger.info(
                        "Stale write on '%s', reloading (attempt %d/%d)",
                        self.name,
                        attempts,
                        self.max_retries,
                    )
                    self.load()
                    continue
                self._document = working
                return result

    def reset(self) -> None:
        """Persist a fresh default document."""
        self.mutate(lambda doc: self._clear(doc))

    @staticmethod
    def _clear(document: MemoryDocument) -> None:
        fresh = MemoryDocument()
        for field_name in MemoryDocument.model_fields:
            setattr(document, field_name, getattr(fresh, field_name))
