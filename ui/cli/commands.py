"""Typer command handlers."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel

from core.errors import NotFoundError
from core.orchestrator import Orchestrator, RuntimeBundle, TurnResult

_ROOT: Path | None = None


def configure(root: Path | None) -> None:
    """Select the runtime root (config/, data/ and logs/ live beneath it)."""
    global _ROOT
    _ROOT = root


def _runtime() -> RuntimeBundle:
    return Orchestrator(root=_ROOT).build()


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def _turn_payload(result: TurnResult) -> dict[str, Any]:
    return {
        "turn": result.turn,
        "reply_type": result.reply_type,
        "engagement": result.engagement,
        "user_emotion": result.user_emotion,
        "agent_emotion": result.agent_emotion,
        "may_ask_question": result.may_ask_question,
        "preferred_action": result.allowed_actions.preferred,
        "policy": result.policy,
        "recalled": result.recalled,
        "proactive_recall": result.proactive_recall,
        "milestones": result.milestones,
        "anniversaries": result.anniversaries,
        "persisted": result.persisted,
    }


def turn(text: str, agent_reply: str | None = None) -> None:
    """Process one turn and print the result."""
    bundle = _runtime()
    result = bundle.turns.run_turn(text, agent_reply=agent_reply)
    _echo_json(_turn_payload(result))


def chat() -> None:
    """Run interactive turn loop."""
    bundle = _runtime()
    typer.echo("Chat mode. Type 'exit' to quit.")
    while True:
        user_text = typer.prompt("you", default="", show_default=False)
        if user_text.strip().lower() in {"exit", "quit"}:
            typer.echo("bye")
            break
        result = bundle.turns.run_turn(user_text)
        typer.echo(
            f"user={result.user_emotion.label}({result.user_emotion.confidence:.2f}) "
            f"agent={result.agent_emotion.label}({result.agent_emotion.intensity:.2f}) "
            f"ask={'yes' if result.may_ask_question else 'no'} "
            f"prefer={result.allowed_actions.preferred}"
        )
        for milestone in result.milestones:
            typer.echo(f"milestone: {milestone.title}")
        if result.proactive_recall is not None:
            typer.echo(f"recall: {result.proactive_recall.key} = {result.proactive_recall.value}")
        reply = typer.prompt("agent", default="", show_default=False)
        if reply.strip():
            bundle.turns.observe_agent_reply(reply)


def memory_set(key: str, value: str, type: str, confidence: float | None, emotion: str | None) -> None:
    bundle = _runtime()
    record = bundle.turns.observe_fact(key, value, type=type, confidence=confidence, emotion=emotion)
    if record is None:
        typer.echo("Memory is disabled; nothing stored.")
        return
    typer.echo(f"Stored {record.key} (confidence={record.confidence:.2f})")


def memory_get(key: str) -> None:
    bundle = _runtime()
    try:
        record = bundle.memory.require_record(key)
    except NotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _echo_json(record)


def memory_list(pattern: str | None, type: str | None) -> None:
    bundle = _runtime()
    _echo_json(bundle.memory.list_records(pattern=pattern, type=type))


def memory_delete(key: str) -> None:
    bundle = _runtime()
    if not bundle.memory.delete_record(key):
        typer.echo(f"record not found: {key}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {key}")


def memory_summary() -> None:
    bundle = _runtime()
    typer.echo(bundle.memory.summary() or "(empty)")


def memory_export() -> None:
    bundle = _runtime()
    _echo_json(bundle.memory.export())


def memory_clear() -> None:
    bundle = _runtime()
    bundle.memory.clear_all()
    typer.echo("Cleared memory records.")


def memory_toggle(enabled: bool) -> None:
    bundle = _runtime()
    bundle.memory.set_memory_enabled(enabled)
    typer.echo(f"Memory {'enabled' if enabled else 'disabled'}")


def traits_list() -> None:
    bundle = _runtime()
    traits = bundle.memory.active_traits()
    if not traits:
        typer.echo("No active traits.")
        return
    for trait in traits:
        typer.echo(
            f"{trait.id}: score={trait.score:.2f} salience={trait.salience:.2f} "
            f"evidence={trait.evidence_count}"
        )


TRAITS_DISABLED = "Traits are disabled; nothing changed."


def traits_forget(trait_id: str) -> None:
    bundle = _runtime()
    if not bundle.memory.traits_enabled():
        typer.echo(TRAITS_DISABLED)
        return
    if not bundle.memory.forget_trait(trait_id):
        typer.echo(f"trait not found: {trait_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Forgot {trait_id}")


def traits_reset() -> None:
    bundle = _runtime()
    if not bundle.memory.reset_traits():
        typer.echo(TRAITS_DISABLED)
        return
    typer.echo("Traits reset.")


def traits_toggle(enabled: bool) -> None:
    bundle = _runtime()
    bundle.memory.set_traits_enabled(enabled)
    typer.echo(f"Traits {'enabled' if enabled else 'disabled'}")


def relationship_show() -> None:
    bundle = _runtime()
    _echo_json(bundle.relationship.describe())


def config_show() -> None:
    """Show effective runtime config."""
    bundle = _runtime()
    _echo_json(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert models and datetimes to JSON-friendly values."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, (datetime, date)):
        return payload.isoformat()
    return payload
