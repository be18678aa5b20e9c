from __future__ import annotations

import json

import pytest

from signal_desk.config.loader import load_config


def test_defaults_without_file(monkeypatch):
    monkeypatch.delenv("SIGNAL_DESK_PAIRS", raising=False)
    config = load_config()
    assert config.data.selected_pair == "BTC/USDT"
    assert config.coordinator.cooldown_seconds == 600.0
    assert config.thresholds.pair_confidence["BTC/USDT"] == 0.60
    assert config.risk.leverage_steps == [20.0, 21.0, 22.0, 24.0, 25.0]


def test_yaml_is_merged_over_defaults(tmp_path):
    path = tmp_path / "desk.yaml"
    path.write_text(
        "data:\n"
        "  interval: 15m\n"
        "thresholds:\n"
        "  pair_confidence:\n"
        "    BTC/USDT: 0.7\n"
        "coordinator:\n"
        "  cooldown_seconds: 120\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.data.interval == "15m"
    assert config.data.candle_limit == 200
    assert config.coordinator.cooldown_seconds == 120.0
    assert config.coordinator.debounce_seconds == 8.0
    # nested mappings merge key by key
    assert config.thresholds.pair_confidence == {"BTC/USDT": 0.7, "ETH/USDT": 0.58}


def test_json_config(tmp_path):
    path = tmp_path / "desk.json"
    path.write_text(json.dumps({"persistence": {"max_records": 50}}), encoding="utf-8")
    assert load_config(path).persistence.max_records == 50


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SIGNAL_DESK_PAIRS", "BTC/USDT, SOL/USDT ,")
    monkeypatch.setenv("SIGNAL_DESK_COOLDOWN_SECONDS", "30")
    monkeypatch.setenv("SIGNAL_DESK_LOG_LEVEL", "debug")
    monkeypatch.setenv("SIGNAL_DESK_STORAGE_PATH", "/tmp/desk")
    config = load_config()
    assert config.data.pairs == ["BTC/USDT", "SOL/USDT"]
    assert config.coordinator.cooldown_seconds == 30.0
    assert config.logging.level == "DEBUG"
    assert config.persistence.storage_path == "/tmp/desk"


def test_unparseable_env_float_is_ignored(monkeypatch):
    monkeypatch.setenv("SIGNAL_DESK_DEBOUNCE_SECONDS", "soon")
    assert load_config().coordinator.debounce_seconds == 8.0


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/desk.yaml")


def test_unsupported_suffix(tmp_path):
    path = tmp_path / "desk.toml"
    path.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
