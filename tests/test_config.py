"""Configuration loading and settings validation tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from core.errors import ConfigurationError
from core.policy_runtime import (
    build_settings,
    configure_logging,
    ensure_runtime_dirs,
    load_effective_config,
    load_yaml,
    merge_dicts,
)

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_load_yaml_missing_and_invalid(tmp_path: Path) -> None:
    assert load_yaml(tmp_path / "absent.yaml") == {}

    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_yaml(bad)


def test_merge_dicts_is_recursive() -> None:
    base = {"engine": {"traits": {"max_active": 8, "decay_every_turns": 5}}, "logging": {"level": "INFO"}}
    override = {"engine": {"traits": {"max_active": 5}}}
    merged = merge_dicts(base, override)
    assert merged["engine"]["traits"] == {"max_active": 5, "decay_every_turns": 5}
    assert merged["logging"] == {"level": "INFO"}
    assert base["engine"]["traits"]["max_active"] == 8


def test_shipped_defaults_build_settings() -> None:
    config = load_effective_config(REPO_ROOT)
    settings = build_settings(config)
    assert settings.traits.max_active == 8
    assert settings.dialogue.question_cooldown_turns == 5
    assert settings.retrieval.excluded_prefixes == ["system.", "internal."]
    assert settings.relationship.conversation_milestones[:3] == [1, 10, 25]
    assert settings.dialogue.emotion_min_confidence == 0.6
    assert settings.affect.weak_signal_score == 0.4
    assert settings.mood.min_entries == 5


def test_build_settings_applies_overrides() -> None:
    settings = build_settings({"engine": {"traits": {"max_active": 5}, "affect": {"user_alpha": 0.5}}})
    assert settings.traits.max_active == 5
    assert settings.affect.user_alpha == 0.5
    assert settings.affect.agent_alpha == 0.4
    assert build_settings({}).store.document_name == "default"


def test_build_settings_rejects_bad_values() -> None:
    with pytest.raises(ConfigurationError):
        build_settings({"engine": {"traits": {"max_active": "lots"}}})


def test_runtime_dirs_are_created(tmp_path: Path) -> None:
    paths = ensure_runtime_dirs(tmp_path, {"paths": {"db_path": "state/mem.db"}})
    assert paths["db_path"] == (tmp_path / "state" / "mem.db").resolve()
    assert paths["db_path"].parent.is_dir()
    assert paths["log_path"].parent.is_dir()
    assert paths["audit_log_path"].name == "turns.jsonl"


def test_configure_logging_levels(tmp_path: Path) -> None:
    logger = configure_logging({"logging": {"level": "debug"}})
    assert logger.name == "rapport"
    assert logger.level == logging.DEBUG

    with pytest.raises(ConfigurationError):
        configure_logging({"logging": {"level": "chatty"}})

    log_path = tmp_path / "rapport.log"
    configure_logging({}, log_path)
    configure_logging({}, log_path)
    handlers = [
        h
        for h in logging.getLogger("rapport").handlers
        if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
    ]
    assert len(handlers) == 1
    assert logging.getLogger("rapport").level == logging.INFO
