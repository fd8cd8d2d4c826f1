"""Configuration and runtime path bootstrapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from core.errors import ConfigurationError
from core.settings import EngineSettings


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure data and log directories exist and return resolved paths."""
    paths_cfg = config.get("paths", {})
    data_dir = (root / paths_cfg.get("data_dir", "data")).resolve()
    db_path = (root / paths_cfg.get("db_path", "data/memory.db")).resolve()
    log_path = (root / paths_cfg.get("log_path", "logs/rapport.log")).resolve()
    audit_log_path = (root / paths_cfg.get("audit_log_path", "logs/turns.jsonl")).resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    audit_log_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "data_dir": data_dir,
        "db_path": db_path,
        "log_path": log_path,
        "audit_log_path": audit_log_path,
    }


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load default config and merge the optional local override on top."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    local_cfg = load_yaml(config_dir / "local.yaml")
    return merge_dicts(default_cfg, local_cfg)


def build_settings(config: dict[str, Any]) -> EngineSettings:
    """Validate the ``engine`` section into typed settings."""
    try:
        return EngineSettings.from_mapping(config.get("engine"))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid engine settings: {exc}") from exc


def configure_logging(config: dict[str, Any], log_path: Path | None = None) -> logging.Logger:
    """Attach a level and an optional file handler to the ``rapport`` logger."""
    level_name = str(config.get("logging", {}).get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown logging level: {level_name}")
    logger = logging.getLogger("rapport")
    logger.setLevel(level)
    if log_path is not None and not any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path for h in logger.handlers
    ):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    return logger
