from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from signal_desk.config.models import AppConfig, default_config

CONFIG_ENV_PREFIX = "SIGNAL_DESK_"


def load_config(path: str | Path | None = None, env_prefix: str = CONFIG_ENV_PREFIX) -> AppConfig:
    config = default_config()
    if path:
        payload = _read_file(Path(path))
        config = AppConfig.model_validate(_deep_merge(config.model_dump(), payload))
    return _apply_env_overrides(config, env_prefix=env_prefix)


def _read_file(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh) or {}
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    raise ValueError(f"Unsupported config format: {path.suffix}")


def _deep_merge(base: dict[str, Any], payload: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in payload.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: AppConfig, env_prefix: str) -> AppConfig:
    pairs = os.getenv(f"{env_prefix}PAIRS")
    interval = os.getenv(f"{env_prefix}INTERVAL")
    storage_path = os.getenv(f"{env_prefix}STORAGE_PATH")
    log_level = os.getenv(f"{env_prefix}LOG_LEVEL")
    cooldown = _get_env_float(f"{env_prefix}COOLDOWN_SECONDS")
    debounce = _get_env_float(f"{env_prefix}DEBOUNCE_SECONDS")

    data_updates: dict[str, Any] = {}
    if pairs:
        data_updates["pairs"] = [p.strip() for p in pairs.split(",") if p.strip()]
    if interval:
        data_updates["interval"] = interval

    coordinator_updates: dict[str, Any] = {}
    if cooldown is not None:
        coordinator_updates["cooldown_seconds"] = cooldown
    if debounce is not None:
        coordinator_updates["debounce_seconds"] = debounce

    updates: dict[str, Any] = {}
    if data_updates:
        updates["data"] = config.data.model_copy(update=data_updates)
    if coordinator_updates:
        updates["coordinator"] = config.coordinator.model_copy(update=coordinator_updates)
    if storage_path:
        updates["persistence"] = config.persistence.model_copy(update={"storage_path": storage_path})
    if log_level:
        updates["logging"] = config.logging.model_copy(update={"level": log_level.upper()})
    return config.model_copy(update=updates) if updates else config


def _get_env_float(key: str) -> float | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
