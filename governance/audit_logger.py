"""Structured JSONL journal of processed turns."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from core.clock import Clock, utc_now


class TurnAuditLogger:
    """Writes one JSON line per turn; user text is stored only as a hash."""

    def __init__(self, log_path: Path, clock: Clock = utc_now) -> None:
        self.log_path = log_path
        self.clock = clock
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("rapport.audit")

    @staticmethod
    def _hash_text(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def log(
        self,
        user_text: str,
        reply_type: str,
        user_emotion: str,
        agent_emotion: str,
        may_ask_question: bool,
        persisted: bool,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Append one JSONL turn event and return it."""
        event = {
            "timestamp": self.clock().isoformat(),
            "text_hash": self._hash_text(user_text),
            "reply_type": reply_type,
            "user_emotion": user_emotion,
            "agent_emotion": agent_emotion,
            "may_ask_question": may_ask_question,
            "persisted": persisted,
        }
        if extra:
            event.update(extra)
        with self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, ensure_ascii=True, default=str) + "\n")
        self.logger.debug(json.dumps(event, ensure_ascii=True, default=str))
        return event
