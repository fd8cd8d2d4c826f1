"""CLI command tests."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from ui.cli.cli import app

runner = CliRunner()


def invoke(root: Path, *args: str):
    return runner.invoke(app, ["--root", str(root), *args])


def test_memory_set_and_get(tmp_path: Path) -> None:
    stored = invoke(tmp_path, "memory", "set", "user.city", "Lisbon", "--confidence", "0.9")
    assert stored.exit_code == 0
    assert "Stored user.city (confidence=0.90)" in stored.stdout

    shown = invoke(tmp_path, "memory", "get", "user.city")
    assert shown.exit_code == 0
    record = json.loads(shown.stdout)
    assert record["value"] == "Lisbon"
    assert record["type"] == "fact"


def test_missing_records_exit_with_error(tmp_path: Path) -> None:
    assert invoke(tmp_path, "memory", "get", "nope").exit_code == 1
    assert invoke(tmp_path, "memory", "delete", "nope").exit_code == 1


def test_memory_list_and_clear(tmp_path: Path) -> None:
    invoke(tmp_path, "memory", "set", "music.genre", "jazz", "--type", "preference")
    invoke(tmp_path, "memory", "set", "user.city", "Lisbon")

    listed = invoke(tmp_path, "memory", "list", "--type", "preference")
    assert [r["key"] for r in json.loads(listed.stdout)] == ["music.genre"]

    cleared = invoke(tmp_path, "memory", "clear", "--yes")
    assert cleared.exit_code == 0
    assert json.loads(invoke(tmp_path, "memory", "list").stdout) == []


def test_disabled_memory_stores_nothing(tmp_path: Path) -> None:
    assert invoke(tmp_path, "memory", "disable").exit_code == 0
    result = invoke(tmp_path, "memory", "set", "user.city", "Lisbon")
    assert "Memory is disabled" in result.stdout
    invoke(tmp_path, "memory", "enable")
    assert invoke(tmp_path, "memory", "get", "user.city").exit_code == 1


def test_turn_prints_json(tmp_path: Path) -> None:
    result = invoke(tmp_path, "turn", "I had a long day at work", "--agent-reply", "How was today?")
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["turn"] == 1
    assert payload["reply_type"] == "open"
    assert payload["may_ask_question"] is False
    assert payload["persisted"] is True
    assert payload["milestones"][0]["title"] == "1st conversation!"

    shown = invoke(tmp_path, "relationship", "show")
    assert json.loads(shown.stdout)["depth"] == 2


def test_traits_commands_respect_toggle(tmp_path: Path) -> None:
    assert "No active traits." in invoke(tmp_path, "traits", "list").stdout
    assert invoke(tmp_path, "traits", "forget", "humor").exit_code == 1

    invoke(tmp_path, "traits", "disable")
    for args in (("reset",), ("forget", "humor")):
        result = invoke(tmp_path, "traits", *args)
        assert result.exit_code == 0
        assert "Traits are disabled; nothing changed." in result.stdout
    invoke(tmp_path, "traits", "enable")
    reset = invoke(tmp_path, "traits", "reset")
    assert reset.exit_code == 0
    assert "Traits reset." in reset.stdout


def test_memory_set_rejects_unknown_type(tmp_path: Path) -> None:
    result = invoke(tmp_path, "memory", "set", "k", "v", "--type", "bogus")
    assert result.exit_code == 2
    assert invoke(tmp_path, "memory", "get", "k").exit_code == 1

    stored = invoke(tmp_path, "memory", "set", "k", "v", "--type", "event")
    assert stored.exit_code == 0
    assert json.loads(invoke(tmp_path, "memory", "get", "k").stdout)["type"] == "event"


def test_config_show_merges_local_override(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(
        "logging:\n  level: INFO\nengine:\n  traits:\n    max_active: 8\n", encoding="utf-8"
    )
    (config_dir / "local.yaml").write_text("engine:\n  traits:\n    max_active: 5\n", encoding="utf-8")

    result = invoke(tmp_path, "config", "show")
    assert result.exit_code == 0
    config = json.loads(result.stdout)
    assert config["engine"]["traits"]["max_active"] == 5
    assert config["logging"]["level"] == "INFO"
