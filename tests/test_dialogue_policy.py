"""Dialogue policy classification and question-gate tests."""

from __future__ import annotations

from datetime import UTC, datetime

from cognition.states import EmotionState
from core.settings import DialogueSettings
from governance.dialogue_policy import (
    DialoguePolicy,
    DialoguePolicyState,
    classify_agent_reply,
    classify_user_engagement,
    classify_verbosity,
)

START = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def build_policy() -> DialoguePolicy:
    return DialoguePolicy(clock=lambda: START)


def test_verbosity_classes() -> None:
    assert classify_verbosity("hi") == "short"
    assert classify_verbosity("x" * 50) == "medium"
    assert classify_verbosity("x" * 120) == "long"


def test_engagement_classes() -> None:
    assert classify_user_engagement("") == "closed"
    assert classify_user_engagement("not really") == "closed"
    assert classify_user_engagement("i don't know") == "closed"
    assert classify_user_engagement("I feel like work is hard lately") == "open"
    assert classify_user_engagement("we went to the park today") == "neutral"
    assert classify_user_engagement(" ".join(["word"] * 16)) == "open"


def test_agent_reply_classes() -> None:
    assert classify_agent_reply("How was it?") == "question"
    assert classify_agent_reply("Got it") == "acknowledgment"
    assert classify_agent_reply("Sounds like a long day") == "observation"
    assert classify_agent_reply("That's great") == "observation"
    assert classify_agent_reply("I made tea earlier") == "statement"


def test_question_cooldown_gate() -> None:
    policy = build_policy()
    policy.register_user_turn("I have been thinking about my week a lot")
    assert policy.may_ask_question() is True

    policy.record_action("question", topic="weekend plans")
    assert policy.phase == "cooling_down"
    decision = policy.check_question()
    assert decision.allowed is False
    assert decision.reason == "Last agent action was a question."

    for _ in range(4):
        policy.record_action("statement")
        assert policy.may_ask_question() is False
    policy.record_action("statement")
    assert policy.cooldown == 0
    assert policy.phase == "free"
    assert policy.may_ask_question() is True


def test_closed_engagement_blocks_questions() -> None:
    policy = build_policy()
    assert policy.register_user_turn("ok") == "closed"
    decision = policy.check_question()
    assert decision.allowed is False
    assert decision.reason == "User engagement is closed."

    assert policy.register_user_turn("whatever", engagement="open") == "open"
    assert policy.may_ask_question() is True


def test_silence_is_tracked_only_for_empty_messages() -> None:
    policy = build_policy()
    policy.register_user_turn("", silence_seconds=45)
    assert policy.silence_duration == 45
    assert policy.verbosity == "short"
    policy.register_user_turn("back now, sorry about that", silence_seconds=45)
    assert policy.silence_duration == 0.0


def test_allowed_actions_on_long_silence() -> None:
    policy = build_policy()
    policy.register_user_turn("", silence_seconds=45)
    actions = policy.allowed_actions("silence")
    assert "question" in actions.disallowed
    assert "question" not in actions.allowed
    assert actions.preferred == "statement"
    assert "Extended silence" in actions.reasoning


def test_allowed_actions_follow_user_emotion() -> None:
    policy = build_policy()
    policy.register_user_turn("work has been really tough this week honestly")

    stressed = EmotionState(label="stressed", confidence=0.8, last_update=START)
    actions = policy.allowed_actions("open", stressed)
    assert actions.preferred == "acknowledgment"
    assert "question" in actions.disallowed

    tired = EmotionState(label="tired", confidence=0.7, last_update=START)
    assert policy.allowed_actions("open", tired).preferred == "observation"

    upbeat = EmotionState(label="upbeat", confidence=0.9, last_update=START)
    varied = policy.allowed_actions("open", upbeat)
    assert "question" in varied.allowed
    assert varied.preferred == "statement"
    assert len(varied.allowed) == len(set(varied.allowed))


def test_emotion_confidence_threshold_is_configurable() -> None:
    policy = DialoguePolicy(DialogueSettings(emotion_min_confidence=0.8), clock=lambda: START)
    policy.register_user_turn("work has been really tough this week honestly")

    tired = EmotionState(label="tired", confidence=0.7, last_update=START)
    actions = policy.allowed_actions("open", tired)
    assert actions.preferred == "statement"
    assert "Emotion:" not in actions.reasoning

    sure = EmotionState(label="tired", confidence=0.85, last_update=START)
    assert policy.allowed_actions("open", sure).preferred == "observation"


def test_snapshot_restores_policy() -> None:
    policy = build_policy()
    policy.register_user_turn("I have been thinking about my week a lot")
    for action in ("statement", "observation", "acknowledgment", "statement"):
        policy.record_action(action)
    policy.record_action("question", topic="weekend plans")

    state = policy.snapshot()
    assert len(state.last_actions) == 3
    assert state.last_actions[-1].type == "question"
    assert state.question_cooldown == 5
    assert state.phase == "cooling_down"

    restored = DialoguePolicy(state=DialoguePolicyState.model_validate(state.model_dump(mode="json")))
    assert restored.may_ask_question() is False
    assert restored.recently_asked("Weekend Plans") is True
    assert restored.last_action == "question"
