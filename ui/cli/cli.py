"""CLI entrypoint for rapport-core."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Conversational memory and affect engine")
memory_app = typer.Typer(help="Memory commands")
traits_app = typer.Typer(help="Personality trait commands")
relationship_app = typer.Typer(help="Relationship commands")
config_app = typer.Typer(help="Configuration commands")


class RecordKind(str, Enum):
    fact = "fact"
    event = "event"
    preference = "preference"


@app.callback()
def main_callback(
    root: Path | None = typer.Option(
        None, "--root", envvar="RAPPORT_ROOT", help="Runtime root holding config/, data/ and logs/"
    ),
) -> None:
    commands.configure(root)


@app.command("turn")
def turn_cmd(
    text: str = typer.Argument(..., help="User utterance"),
    agent_reply: str | None = typer.Option(None, "--agent-reply", help="Agent message being answered"),
) -> None:
    """Process a single turn."""
    commands.turn(text=text, agent_reply=agent_reply)


@app.command("chat")
def chat_cmd() -> None:
    """Interactive turn loop."""
    commands.chat()


@memory_app.command("set")
def memory_set_cmd(
    key: str = typer.Argument(..., help="Record key"),
    value: str = typer.Argument(..., help="Record value"),
    type: RecordKind = typer.Option(RecordKind.fact, "--type", help="Record type"),
    confidence: float | None = typer.Option(None, min=0.0, max=1.0),
    emotion: str | None = typer.Option(None, help="Emotion tag"),
) -> None:
    """Store or reaffirm a record."""
    commands.memory_set(key=key, value=value, type=type.value, confidence=confidence, emotion=emotion)


@memory_app.command("get")
def memory_get_cmd(key: str) -> None:
    """Show one record."""
    commands.memory_get(key=key)


@memory_app.command("list")
def memory_list_cmd(
    pattern: str | None = typer.Option(None, help="Key substring"),
    type: RecordKind | None = typer.Option(None, "--type", help="Only records of this type"),
) -> None:
    """List records."""
    commands.memory_list(pattern=pattern, type=type.value if type else None)


@memory_app.command("delete")
def memory_delete_cmd(key: str) -> None:
    """Delete a record."""
    commands.memory_delete(key=key)


@memory_app.command("summary")
def memory_summary_cmd() -> None:
    """Show the cached profile summary."""
    commands.memory_summary()


@memory_app.command("export")
def memory_export_cmd() -> None:
    """Dump the whole memory document as JSON."""
    commands.memory_export()


@memory_app.command("clear")
def memory_clear_cmd(yes: bool = typer.Option(False, "--yes", help="Skip confirmation")) -> None:
    """Wipe records, episodes and the turn counter."""
    if not yes:
        typer.confirm("Clear all memory records?", abort=True)
    commands.memory_clear()


@memory_app.command("enable")
def memory_enable_cmd() -> None:
    commands.memory_toggle(True)


@memory_app.command("disable")
def memory_disable_cmd() -> None:
    commands.memory_toggle(False)


@traits_app.command("list")
def traits_list_cmd() -> None:
    """List active traits, strongest first."""
    commands.traits_list()


@traits_app.command("forget")
def traits_forget_cmd(trait_id: str) -> None:
    """Deactivate one trait."""
    commands.traits_forget(trait_id=trait_id)


@traits_app.command("reset")
def traits_reset_cmd() -> None:
    """Drop all traits and trait history."""
    commands.traits_reset()


@traits_app.command("enable")
def traits_enable_cmd() -> None:
    commands.traits_toggle(True)


@traits_app.command("disable")
def traits_disable_cmd() -> None:
    commands.traits_toggle(False)


@relationship_app.command("show")
def relationship_show_cmd() -> None:
    """Show relationship depth and counters."""
    commands.relationship_show()


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


app.add_typer(memory_app, name="memory")
app.add_typer(traits_app, name="traits")
app.add_typer(relationship_app, name="relationship")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
