"""Top-level turn orchestrator and runtime wiring."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from cognition.agent_emotion import detect_agent_emotion, smooth_agent_emotion
from cognition.reply_type import classify_reply_type
from cognition.states import AgentEmotionState, EmotionState, ReplyType
from cognition.user_emotion import detect_user_emotion, smooth_user_emotion
from core.clock import Clock, local_now
from core.errors import StoreWriteError
from core.policy_runtime import (
    build_settings,
    configure_logging,
    ensure_runtime_dirs,
    load_effective_config,
)
from core.settings import EngineSettings
from core.state_manager import StateManager
from governance.audit_logger import TurnAuditLogger
from governance.dialogue_policy import (
    AllowedActions,
    DialoguePolicy,
    DialoguePolicyState,
    Engagement,
)
from memory.consolidation.consolidator import Consolidator
from memory.memory_manager import MemoryManager
from memory.relationship import RelationshipTracker, detect_inside_joke, detect_personal_reveal
from memory.retrieval import MemoryRetriever
from memory.stores.document_store import DocumentStore
from memory.stores.sql_store import SQLStore
from memory.trait_signals import discover_trait_signals, is_trait_allowed, normalize_trait_id
from memory.types import (
    Goal,
    InsideJoke,
    MemoryRecord,
    Milestone,
    MoodEntry,
    Person,
    PersonalityTrait,
    SignificantMoment,
    TraitSignal,
)
from memory.types.semantic import RecordType, RecordValue

logger = logging.getLogger("rapport.orchestrator")


@dataclass
class TurnResult:
    """Everything a response generator needs from one processed turn."""

    reply_type: ReplyType
    engagement: Engagement
    user_emotion: EmotionState
    agent_emotion: AgentEmotionState
    policy: DialoguePolicyState
    may_ask_question: bool
    allowed_actions: AllowedActions
    turn: int = 0
    recalled: list[MemoryRecord] = field(default_factory=list)
    proactive_recall: MemoryRecord | None = None
    milestones: list[Milestone] = field(default_factory=list)
    anniversaries: list[SignificantMoment] = field(default_factory=list)
    inside_joke: InsideJoke | None = None
    persisted: bool = True


class TurnOrchestrator:
    """Runs affect, policy and memory updates once per conversational turn."""

    def __init__(
        self,
        memory: MemoryManager,
        retriever: MemoryRetriever | None = None,
        relationship: RelationshipTracker | None = None,
        consolidator: Consolidator | None = None,
        policy: DialoguePolicy | None = None,
        state: StateManager | None = None,
        audit: TurnAuditLogger | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.memory = memory
        self.settings: EngineSettings = memory.settings
        self.clock = clock
        self.retriever = retriever or MemoryRetriever(memory, clock=clock)
        self.relationship = relationship or RelationshipTracker(memory, clock=clock)
        self.consolidator = consolidator or Consolidator(memory, clock=clock)
        self.policy = policy or DialoguePolicy(self.settings.dialogue, clock=clock)
        self.state = state or StateManager(self.settings.affect, now=clock())
        self.audit = audit
        self._reply_observed = False

    # -- turn loop --------------------------------------------------------

    def run_turn(
        self,
        user_text: str,
        agent_reply: str | None = None,
        reply_type: ReplyType | None = None,
        now: datetime | None = None,
    ) -> TurnResult:
        """Process one user utterance.

        ``agent_reply`` is the agent message the user is answering. When
        given it is fed to the dialogue policy first (unless already
        observed) and paired with ``user_text`` for inside-joke detection.
        """
        now = now or self.clock()
        reply_type = reply_type or classify_reply_type(user_text)
        since = self.state.seconds_since_last(now)

        if reply_type != "silence":
            detection = detect_user_emotion(
                user_text,
                reply_type,
                now.hour,
                self.state.recent_replies(),
                weak_signal_score=self.settings.affect.weak_signal_score,
                conflict_gap=self.settings.affect.conflict_gap,
            )
            self.state.set_user_emotion(
                smooth_user_emotion(self.state.state.user_emotion, detection, self.settings.affect, now)
            )
        self.state.record_reply(user_text, reply_type, now)
        user_emotion = self.state.state.user_emotion

        self.state.roll_day(now)
        detected = detect_agent_emotion(
            current=self.state.state.agent_emotion,
            reply_type=reply_type,
            turn_count=self.memory.turn_count(),
            seconds_since_last=since,
            engagement=self.state.engagement(),
            now=now,
            has_memory=bool(self.memory.list_records()),
            user_emotion=user_emotion,
        )
        self.state.set_agent_emotion(
            smooth_agent_emotion(self.state.state.agent_emotion, detected, self.settings.affect)
        )

        if agent_reply and not self._reply_observed:
            self.observe_agent_reply(agent_reply, now=now)
        engagement = self.policy.register_user_turn(user_text, silence_seconds=since or 0.0)

        result = TurnResult(
            reply_type=reply_type,
            engagement=engagement,
            user_emotion=user_emotion.model_copy(deep=True),
            agent_emotion=self.state.state.agent_emotion.model_copy(deep=True),
            policy=self.policy.snapshot(),
            may_ask_question=self.policy.may_ask_question(),
            allowed_actions=self.policy.allowed_actions(reply_type, user_emotion),
        )

        try:
            self._update_memory(result, user_text, agent_reply, now)
        except StoreWriteError as exc:
            logger.error("Turn state was not persisted: %s", exc)
            result.persisted = False

        self.state.add_history(user_text)
        self.state.add_history(agent_reply)
        self.state.touch(now)
        self._reply_observed = False
        if self.audit is not None:
            self.audit.log(
                user_text=user_text,
                reply_type=reply_type,
                user_emotion=user_emotion.label,
                agent_emotion=result.agent_emotion.label,
                may_ask_question=result.may_ask_question,
                persisted=result.persisted,
                extra={"turn": result.turn, "milestones": [m.title for m in result.milestones]},
            )
        return result

    def _update_memory(self, result: TurnResult, user_text: str, agent_reply: str | None, now: datetime) -> None:
        if not self.memory.memory_enabled():
            logger.debug("Memory disabled, turn not recorded")
            return
        cfg = self.settings
        result.turn = self.memory.increment_turn_count()

        emotion = result.user_emotion
        if result.reply_type != "silence" and emotion.confidence >= cfg.affect.mood_record_min_confidence:
            self.memory.add_mood_entry(emotion.label, emotion.confidence, context=user_text[:100])

        if result.reply_type == "open":
            for signal in discover_trait_signals(user_text, now.hour):
                self.observe_trait(signal)

        self.consolidator.run(result.turn, now)

        if detect_personal_reveal(user_text):
            self.relationship.record_personal_reveal()
        if agent_reply:
            joke = detect_inside_joke(user_text, agent_reply, self.state.history())
            if joke:
                result.inside_joke = self.relationship.add_inside_joke(joke, context=user_text[:100])

        self.relationship.ensure_first_contact(now)
        result.milestones = self.relationship.check_milestones(now)
        self.relationship.update_depth(now)
        result.anniversaries = self.relationship.anniversaries_due(now)

        result.recalled = self.retriever.rank(limit=cfg.retrieval.turn_recall_limit)
        if result.reply_type != "silence":
            result.proactive_recall = self.retriever.select_proactive_recall(now)

    def observe_agent_reply(self, text: str, topic: str | None = None, now: datetime | None = None) -> str:
        """Feed the produced agent reply into the dialogue policy."""
        self._reply_observed = True
        return self.policy.observe_agent_reply(text, topic=topic, now=now or self.clock())

    # -- read accessors ---------------------------------------------------

    def affect(self) -> tuple[EmotionState, AgentEmotionState]:
        return (
            self.state.state.user_emotion.model_copy(deep=True),
            self.state.state.agent_emotion.model_copy(deep=True),
        )

    def relationship_depth(self) -> int:
        return self.relationship.depth()

    def active_traits(self) -> list[PersonalityTrait]:
        return self.memory.active_traits()

    def may_ask_question(self) -> bool:
        return self.policy.may_ask_question()

    def proactive_recall(self, now: datetime | None = None) -> MemoryRecord | None:
        return self.retriever.select_proactive_recall(now or self.clock())

    # -- observations -----------------------------------------------------

    def observe_fact(
        self,
        key: str,
        value: RecordValue,
        type: RecordType = "fact",
        confidence: float | None = None,
        emotion: str | None = None,
        significance: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryRecord | None:
        return self.memory.set_record(
            key,
            value,
            type=type,
            confidence=confidence,
            source_turn=self.memory.turn_count(),
            metadata=metadata,
            emotion=emotion,
            significance=significance,
        )

    def observe_trait(self, signal: TraitSignal, source: str = "conversation") -> PersonalityTrait | None:
        """Upsert a trait from a signal; returns None when trait learning is off."""
        trait_id = normalize_trait_id(signal.id)
        if not trait_id or not is_trait_allowed(trait_id):
            logger.debug("Trait signal %s filtered", signal.id)
            return None
        return self.memory.find_or_create_trait(
            trait_id=trait_id,
            label=signal.label,
            category=signal.category,
            initial_score=signal.confidence * self.settings.traits.initial_score_scale,
            evidence=signal.evidence or None,
            source=source,
        )

    def observe_goal(
        self,
        description: str,
        target_date: str | None = None,
        progress: str | None = None,
    ) -> Goal | None:
        existing = self.memory.find_goal_by_description(description)
        if existing is None:
            return self.memory.add_goal(description, target_date=target_date, progress=progress or "")
        return self.memory.update_goal(existing.id, progress=progress)

    def observe_person(
        self,
        name: str,
        relationship_type: str = "unknown",
        context: str | None = None,
        relationship_quality: str | None = None,
    ) -> Person | None:
        return self.memory.add_or_update_person(
            name,
            relationship_type=relationship_type,
            context=context,
            relationship_quality=relationship_quality,
        )

    def observe_mood(self, mood: str, confidence: float, context: str = "") -> MoodEntry | None:
        return self.memory.add_mood_entry(mood, confidence, context=context)


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    settings: EngineSettings
    store: DocumentStore
    memory: MemoryManager
    retriever: MemoryRetriever
    relationship: RelationshipTracker
    consolidator: Consolidator
    policy: DialoguePolicy
    turns: TurnOrchestrator


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(
        self,
        root: Path | None = None,
        clock: Clock = local_now,
        rng: random.Random | None = None,
    ) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self.clock = clock
        self.rng = rng

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root)
        paths = ensure_runtime_dirs(self.root, config)
        configure_logging(config, paths["log_path"])
        settings = build_settings(config)

        sql_store = SQLStore(paths["db_path"])
        store = DocumentStore(
            sql_store,
            name=settings.store.document_name,
            max_retries=settings.store.max_write_retries,
        )
        memory = MemoryManager(store, settings=settings, clock=self.clock)
        retriever = MemoryRetriever(memory, rng=self.rng, clock=self.clock)
        relationship = RelationshipTracker(memory, clock=self.clock)
        consolidator = Consolidator(memory, clock=self.clock)
        policy = DialoguePolicy(settings.dialogue, clock=self.clock)
        turns = TurnOrchestrator(
            memory,
            retriever=retriever,
            relationship=relationship,
            consolidator=consolidator,
            policy=policy,
            state=StateManager(settings.affect, now=self.clock()),
            audit=TurnAuditLogger(paths["audit_log_path"], clock=self.clock),
            clock=self.clock,
        )
        return RuntimeBundle(
            config=config,
            settings=settings,
            store=store,
            memory=memory,
            retriever=retriever,
            relationship=relationship,
            consolidator=consolidator,
            policy=policy,
            turns=turns,
        )
