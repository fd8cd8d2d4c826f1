"""Dialogue policy: agent action history, question cooldown and the ask gate."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from cognition.states import EmotionState, ReplyType
from core.clock import Clock, local_now
from core.settings import DialogueSettings
from memory.ring_buffer import RingBuffer

logger = logging.getLogger("rapport.dialogue_policy")

AgentAction = Literal["question", "statement", "acknowledgment", "observation"]
Engagement = Literal["open", "neutral", "closed"]
Verbosity = Literal["short", "medium", "long"]

CLOSED_PHRASES = frozenset(
    {
        "nothing",
        "idk",
        "i don't know",
        "don't know",
        "nah",
        "nope",
        "no",
        "yes",
        "yep",
        "yup",
        "ok",
        "okay",
        "sure",
        "alright",
        "just chilling",
        "just vibing",
        "not really",
        "nothing much",
        "nothing special",
        "same",
        "cool",
        "nice",
        "lol",
        "haha",
        "yeah",
        "mhm",
        "mm",
        "hmm",
    }
)

_OPEN_INDICATORS = [
    re.compile(
        r"\b(feel|feeling|felt|emotion|stress|stressed|anxious|worried|sad|happy|excited|"
        r"frustrated|angry|tired|exhausted)\b",
        re.I,
    ),
    re.compile(r"\b(problem|issue|struggling|difficult|hard|tough|challenge)\b", re.I),
    re.compile(r"\b(tell|told|share|sharing|explain|explained|happened|happening)\b", re.I),
    re.compile(r"\b(because|since|reason|why|how|what happened)\b", re.I),
]
_ACKNOWLEDGMENTS = [
    re.compile(r"^(gotcha|fair|makes sense|yeah,? true|right|ok|okay|cool|nice|alright|sure|yeah|yep)$", re.I),
    re.compile(r"^(got it|i see|i understand|noted|okay,? cool)$", re.I),
]
_OBSERVATIONS = [
    re.compile(r"^(you seem|looks like|it seems|you're pretty|sounds like)", re.I),
    re.compile(r"^(that's|here's|there's|it's)", re.I),
]


def classify_verbosity(message: str, short_chars: int = 20, long_chars: int = 100) -> Verbosity:
    length = len(message.strip())
    if length < short_chars:
        return "short"
    if length < long_chars:
        return "medium"
    return "long"


def classify_user_engagement(message: str) -> Engagement:
    """Open when the user is sharing, closed when minimal or deflecting."""
    text = message.strip()
    if not text:
        return "closed"
    words = text.split()
    if len(words) <= 2:
        return "closed"
    if len(words) == 3 and text.lower() in CLOSED_PHRASES:
        return "closed"
    if len(words) > 15:
        return "open"
    if len(words) > 5 and any(p.search(text) for p in _OPEN_INDICATORS):
        return "open"
    return "neutral"


def classify_agent_reply(text: str) -> AgentAction:
    lowered = text.strip().lower()
    if lowered.endswith("?"):
        return "question"
    if any(p.match(lowered) for p in _ACKNOWLEDGMENTS):
        return "acknowledgment"
    if any(p.match(lowered) for p in _OBSERVATIONS):
        return "observation"
    return "statement"


@dataclass
class PolicyDecision:
    """Represents allow/block decision."""

    allowed: bool
    reason: str


@dataclass
class AllowedActions:
    """Advisory action set for response phrasing."""

    allowed: list[AgentAction] = field(default_factory=list)
    disallowed: list[AgentAction] = field(default_factory=list)
    preferred: AgentAction = "statement"
    reasoning: str = ""


class ActionRecord(BaseModel):
    type: AgentAction
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DialoguePolicyState(BaseModel):
    """Serializable view of the policy."""

    last_actions: list[ActionRecord] = Field(default_factory=list)
    last_user_verbosity: Verbosity = "medium"
    user_engagement: Engagement = "neutral"
    silence_duration: float = 0.0
    question_cooldown: int = 0
    recent_topics_asked: list[str] = Field(default_factory=list)
    phase: Literal["free", "cooling_down"] = "free"


class DialoguePolicy:
    """Tracks recent agent actions and gates when a question may be asked.

    States are ``free`` and ``cooling_down(N)``. A question moves to
    ``cooling_down(question_cooldown_turns)``; every other agent action
    decrements N until it reaches ``free`` again. Closed user engagement
    suppresses questions regardless of N.
    """

    def __init__(
        self,
        settings: DialogueSettings | None = None,
        state: DialoguePolicyState | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.settings = settings or DialogueSettings()
        self.clock = clock
        initial = state or DialoguePolicyState()
        self._actions: RingBuffer[ActionRecord] = RingBuffer(self.settings.action_history, initial.last_actions)
        self._topics: RingBuffer[str] = RingBuffer(self.settings.topic_history, initial.recent_topics_asked)
        self.verbosity: Verbosity = initial.last_user_verbosity
        self.engagement: Engagement = initial.user_engagement
        self.silence_duration = initial.silence_duration
        self.cooldown = max(0, initial.question_cooldown)

    @property
    def phase(self) -> Literal["free", "cooling_down"]:
        return "cooling_down" if self.cooldown > 0 else "free"

    @property
    def last_action(self) -> AgentAction | None:
        record = self._actions.last()
        return record.type if record else None

    def register_user_turn(
        self,
        message: str,
        engagement: Engagement | None = None,
        silence_seconds: float = 0.0,
    ) -> Engagement:
        """Record the user's latest message; returns its engagement class."""
        self.verbosity = classify_verbosity(message, self.settings.short_chars, self.settings.long_chars)
        self.engagement = engagement or classify_user_engagement(message)
        self.silence_duration = max(0.0, silence_seconds) if not message.strip() else 0.0
        return self.engagement

    def record_action(self, action: AgentAction, topic: str | None = None, now: datetime | None = None) -> None:
        """Push an agent action and advance the cooldown state machine."""
        self._actions.push(ActionRecord(type=action, timestamp=now or self.clock()))
        if action == "question":
            self.cooldown = self.settings.question_cooldown_turns
            if topic:
                self._topics.push(topic)
            logger.debug("Question asked, cooling down for %d turns", self.cooldown)
        else:
            self.cooldown = max(0, self.cooldown - 1)

    def observe_agent_reply(self, text: str, topic: str | None = None, now: datetime | None = None) -> AgentAction:
        action = classify_agent_reply(text)
        self.record_action(action, topic=topic, now=now)
        return action

    def check_question(self) -> PolicyDecision:
        """Evaluate whether a response may be phrased as a question."""
        if self.engagement == "closed":
            return PolicyDecision(False, "User engagement is closed.")
        if self.last_action == "question":
            return PolicyDecision(False, "Last agent action was a question.")
        if self.cooldown > 0:
            return PolicyDecision(False, f"Question cooldown active ({self.cooldown} turns).")
        return PolicyDecision(True, "Question allowed.")

    def may_ask_question(self) -> bool:
        return self.check_question().allowed

    def recently_asked(self, topic: str) -> bool:
        needle = topic.strip().lower()
        return any(t.strip().lower() == needle for t in self._topics)

    def allowed_actions(
        self,
        reply_type: ReplyType,
        user_emotion: EmotionState | None = None,
    ) -> AllowedActions:
        """Advisory allowed/disallowed/preferred actions for the next response."""
        allowed: list[AgentAction] = []
        disallowed: list[AgentAction] = []
        preferred: AgentAction = "statement"
        reasons: list[str] = []

        actions = self._actions.items()
        last_was_question = self.last_action == "question"
        two_questions = len(actions) >= 2 and all(a.type == "question" for a in actions[-2:])
        closed = self.engagement == "closed"

        if self.cooldown > 0 or last_was_question or two_questions or closed:
            disallowed.append("question")
            if closed:
                reasons.append("User engagement is closed - do not interrogate.")
            else:
                reasons.append("Question cooldown active - no consecutive questions.")
        else:
            allowed.append("question")

        if closed or reply_type == "closed" or self.verbosity == "short":
            disallowed.append("question")
            allowed.extend(["statement", "acknowledgment", "observation"])
            reasons.append("Short or closed reply - respond with a statement, not a question.")

        if reply_type == "silence":
            if self.silence_duration > self.settings.soft_engagement_silence_seconds:
                allowed.extend(["observation", "statement"])
                disallowed.append("question")
                preferred = "observation"
                reasons.append("Extended silence, soft engagement.")
            else:
                allowed.append("acknowledgment")
                preferred = "acknowledgment"
                reasons.append("Brief silence, minimal acknowledgment.")

        if closed or self.verbosity == "short" or reply_type in ("closed", "silence") or last_was_question:
            preferred = "statement"
            allowed.extend(["statement", "observation", "acknowledgment"])
            disallowed.append("question")
            reasons.append("User is quiet or brief - share thoughts, not questions.")

        if user_emotion is not None and user_emotion.confidence >= self.settings.emotion_min_confidence:
            label = user_emotion.label
            if label in ("tired", "down"):
                preferred = "observation"
                allowed.extend(["observation", "statement"])
                disallowed.append("question")
                reasons.append(f"Emotion: {label}, prefer reflective.")
            elif label in ("stressed", "frustrated"):
                preferred = "acknowledgment"
                allowed.extend(["acknowledgment", "statement"])
                disallowed.append("question")
                reasons.append(f"Emotion: {label}, prefer calm confirmation.")
            elif label == "upbeat":
                allowed.extend(["statement", "question"])
                reasons.append(f"Emotion: {label}, allow varied response.")

        if not allowed:
            allowed.extend(["statement", "observation", "acknowledgment"])
            if self.cooldown == 0 and not last_was_question and self.verbosity != "short":
                allowed.append("question")

        allowed = list(dict.fromkeys(allowed))
        disallowed = list(dict.fromkeys(disallowed))
        if preferred == "question" or preferred not in allowed:
            preferred = "statement" if "statement" in allowed else allowed[0]
        return AllowedActions(allowed, disallowed, preferred, " ".join(reasons))

    def snapshot(self) -> DialoguePolicyState:
        return DialoguePolicyState(
            last_actions=[a.model_copy() for a in self._actions],
            last_user_verbosity=self.verbosity,
            user_engagement=self.engagement,
            silence_duration=self.silence_duration,
            question_cooldown=self.cooldown,
            recent_topics_asked=self._topics.items(),
            phase=self.phase,
        )
