"""Relationship depth, milestones, anniversaries and shared-history detectors."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Any

from core.clock import Clock, days_between, ensure_aware, local_now
from core.settings import RelationshipSettings
from memory.memory_manager import MemoryManager, fuzzy_match
from memory.ring_buffer import append_bounded
from memory.scoring import relationship_depth
from memory.types import (
    InsideJoke,
    MemoryDocument,
    Milestone,
    RelationshipDepth,
    SignificantMoment,
)
from memory.types.relationship import MilestoneType

logger = logging.getLogger("rapport.relationship")

_JOKE_CUES = [
    re.compile(r"\b(remember when|that time|like we said|our thing|inside joke|our joke)\b", re.I),
    re.compile(r"\b(haha|hehe|lol|that's so us|classic)\b", re.I),
    re.compile(r"\b(reference to|like that|same vibe|our bit)\b", re.I),
]
_QUOTED = re.compile(r'"([^"]+)"')
_REMEMBER = re.compile(r"(?:remember when|that time)\s+(.+?)(?:\.|$)", re.I)

_REVEAL_CUES = [
    re.compile(r"\b(i (feel|think|believe|hope|worry|fear|love|hate|am|was|used to be))\b", re.I),
    re.compile(r"\b(my (family|mom|dad|parents|sibling|friend|ex|past|secret|dream|goal))\b", re.I),
    re.compile(r"\b(i (never|always|sometimes) (tell|share|mention|talk about))\b", re.I),
    re.compile(r"\b(this is (personal|private|between us|just for you))\b", re.I),
    re.compile(r"\b(i (trust|know) you (enough|with this|to tell you))\b", re.I),
    re.compile(r"\b(i (haven't|have never) (told|shared|mentioned))\b", re.I),
]


def detect_personal_reveal(message: str) -> bool:
    """True when the user appears to be sharing something personal."""
    return bool(message) and any(pattern.search(message) for pattern in _REVEAL_CUES)


def find_common_phrases(messages: list[str]) -> list[str]:
    """Two-word phrases (longer words only) repeated across ``messages``, most frequent first."""
    counts: dict[str, int] = {}
    for message in messages:
        words = [w for w in message.lower().split() if len(w) > 3]
        for first, second in zip(words, words[1:]):
            phrase = f"{first} {second}"
            if 10 < len(phrase) < 50:
                counts[phrase] = counts.get(phrase, 0) + 1
    repeated = [(phrase, n) for phrase, n in counts.items() if n >= 2]
    repeated.sort(key=lambda pair: pair[1], reverse=True)
    return [phrase for phrase, _ in repeated[:3]]


def detect_inside_joke(user_message: str, agent_reply: str, history: list[str] | None = None) -> str | None:
    """Return a short description of a shared reference, if the exchange contains one."""
    if not user_message or not agent_reply:
        return None
    if not any(p.search(user_message) or p.search(agent_reply) for p in _JOKE_CUES):
        return None
    quoted = _QUOTED.search(user_message) or _QUOTED.search(agent_reply)
    if quoted:
        return quoted.group(1)
    remembered = _REMEMBER.search(user_message) or _REMEMBER.search(agent_reply)
    if remembered and len(remembered.group(1)) < 100:
        return remembered.group(1).strip()
    if history and len(history) >= 2:
        phrases = find_common_phrases(history[-4:])
        if phrases:
            return phrases[0]
    return None


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _has_milestone(state: RelationshipDepth, kind: MilestoneType, value: int) -> bool:
    return any(m.type == kind and m.value == value for m in state.milestones)


class RelationshipTracker:
    """Maintains the ratcheted depth metric and idempotent milestone records."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        settings: RelationshipSettings | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.memory_manager = memory_manager
        self.settings = settings or memory_manager.settings.relationship
        self.clock = clock

    def state(self) -> RelationshipDepth:
        return self.memory_manager.view(
            lambda doc: doc.relationship.model_copy(deep=True), RelationshipDepth()
        )

    def depth(self) -> int:
        return self.state().depth

    @staticmethod
    def _days_known(state: RelationshipDepth, now: datetime) -> int:
        if state.first_conversation is None:
            return 0
        return max(0, math.floor(days_between(state.first_conversation, now)))

    def days_since_first_contact(self, now: datetime | None = None) -> int:
        return self._days_known(self.state(), now or self.clock())

    def compute_depth(self, doc: MemoryDocument, now: datetime) -> int:
        state = doc.relationship
        return relationship_depth(
            turn_count=doc.turn_count,
            days_known=self._days_known(state, now),
            joke_count=len(state.inside_jokes),
            reveal_count=state.personal_reveals,
            settings=self.settings,
        )

    def ensure_first_contact(self, now: datetime | None = None) -> bool:
        """Stamp the first-contact date once. Returns True when it was just set."""
        now = now or self.clock()

        def _update(doc: MemoryDocument) -> bool:
            if doc.relationship.first_conversation is not None:
                return False
            doc.relationship.first_conversation = now
            doc.relationship.milestones.append(
                Milestone(
                    type="first_conversation",
                    title="First conversation",
                    date=now,
                    value=0,
                    description="The day we first talked.",
                )
            )
            return True

        return bool(self.memory_manager.transaction(_update))

    def update_depth(self, now: datetime | None = None) -> int:
        """Recompute depth; the stored value only ever increases."""
        now = now or self.clock()

        def _update(doc: MemoryDocument) -> int:
            candidate = self.compute_depth(doc, now)
            if candidate > doc.relationship.depth:
                logger.info("Relationship depth %d -> %d", doc.relationship.depth, candidate)
                doc.relationship.depth = candidate
                doc.relationship.last_depth_update = now
            return doc.relationship.depth

        result = self.memory_manager.transaction(_update)
        return 0 if result is None else result

    def check_milestones(self, now: datetime | None = None) -> list[Milestone]:
        """Create any conversation-count or month-anniversary milestone now due."""
        now = now or self.clock()
        cfg = self.settings

        def _update(doc: MemoryDocument) -> list[Milestone]:
            state = doc.relationship
            created: list[Milestone] = []
            turns = doc.turn_count
            for threshold in cfg.conversation_milestones:
                if turns == threshold and not _has_milestone(state, "conversation_count", threshold):
                    created.append(
                        Milestone(
                            type="conversation_count",
                            title=f"{_ordinal(threshold)} conversation!",
                            date=now,
                            value=threshold,
                            description=f"We've had {threshold} conversations together!",
                        )
                    )

            if state.first_conversation is not None:
                days = self._days_known(state, now)
                for months in cfg.anniversary_months:
                    target = months * cfg.days_per_month
                    if abs(days - target) > cfg.anniversary_tolerance_days:
                        continue
                    if _has_milestone(state, "anniversary", months):
                        continue
                    label = "month" if months == 1 else "months"
                    created.append(
                        Milestone(
                            type="anniversary",
                            title=f"{months} {label} together",
                            date=now,
                            value=months,
                            description=f"It's been about {months} {label} since we first talked.",
                        )
                    )
                    if not any(m.recurring and m.type == "anniversary" for m in state.significant_moments):
                        state.significant_moments.append(
                            SignificantMoment(
                                type="anniversary",
                                description="The day we first talked",
                                anchor_date=state.first_conversation,
                                first_occurred=state.first_conversation,
                                recurring=True,
                            )
                        )

            state.milestones.extend(created)
            for milestone in created:
                logger.info("Milestone reached: %s", milestone.title)
            return [m.model_copy(deep=True) for m in created]

        return self.memory_manager.transaction(_update) or []

    def anniversaries_due(self, now: datetime | None = None, celebrate: bool = True) -> list[SignificantMoment]:
        """Recurring moments whose month-day is today and not yet celebrated this year."""
        now = ensure_aware(now or self.clock())

        def _due(state: RelationshipDepth) -> list[SignificantMoment]:
            due: list[SignificantMoment] = []
            for moment in state.significant_moments:
                if not moment.recurring:
                    continue
                anchor = ensure_aware(moment.anchor_date).astimezone(now.tzinfo)
                if (anchor.month, anchor.day) != (now.month, now.day) or anchor.date() >= now.date():
                    continue
                if moment.last_celebrated is not None and moment.last_celebrated.year >= now.year:
                    continue
                due.append(moment)
            return due

        if not celebrate:
            return self.memory_manager.view(
                lambda doc: [m.model_copy(deep=True) for m in _due(doc.relationship)], []
            )

        def _update(doc: MemoryDocument) -> list[SignificantMoment]:
            due = _due(doc.relationship)
            for moment in due:
                moment.last_celebrated = now
                logger.info("Anniversary today: %s", moment.description)
            return [m.model_copy(deep=True) for m in due]

        if not self.anniversaries_due(now, celebrate=False):
            return []
        return self.memory_manager.transaction(_update) or []

    def add_significant_moment(
        self,
        description: str,
        anchor_date: datetime | None = None,
        type: str = "milestone",
        recurring: bool = False,
        context: str = "",
    ) -> SignificantMoment | None:
        now = self.clock()

        def _update(doc: MemoryDocument) -> SignificantMoment:
            moment = SignificantMoment(
                type=type,
                description=description,
                anchor_date=anchor_date or now,
                first_occurred=now,
                recurring=recurring,
                context=context,
            )
            doc.relationship.significant_moments.append(moment)
            return moment.model_copy(deep=True)

        return self.memory_manager.transaction(_update)

    def add_inside_joke(self, description: str, context: str = "", turn: int | None = None) -> InsideJoke | None:
        """Record a shared reference, merging with a similar existing one."""
        now = self.clock()
        limit = self.memory_manager.settings.store.joke_turn_limit

        def _update(doc: MemoryDocument) -> InsideJoke:
            turn_number = doc.turn_count if turn is None else turn
            for joke in doc.relationship.inside_jokes:
                if fuzzy_match(joke.description, description):
                    joke.reference_count += 1
                    joke.last_referenced = now
                    joke.turn_numbers = append_bounded(joke.turn_numbers, turn_number, limit)
                    return joke.model_copy(deep=True)
            joke = InsideJoke(
                description=description,
                first_mentioned=now,
                last_referenced=now,
                context=context,
                turn_numbers=[turn_number],
            )
            doc.relationship.inside_jokes.append(joke)
            logger.info("New inside joke: %s", description)
            return joke.model_copy(deep=True)

        return self.memory_manager.transaction(_update)

    def record_personal_reveal(self) -> int:
        def _update(doc: MemoryDocument) -> int:
            doc.relationship.personal_reveals += 1
            return doc.relationship.personal_reveals

        result = self.memory_manager.transaction(_update)
        return 0 if result is None else result

    def describe(self, now: datetime | None = None) -> dict[str, Any]:
        """Read-only summary for collaborators that render relationship state."""
        now = now or self.clock()
        state = self.state()
        return {
            "depth": state.depth,
            "days_known": self._days_known(state, now),
            "inside_jokes": len(state.inside_jokes),
            "personal_reveals": state.personal_reveals,
            "milestones": len(state.milestones),
        }
