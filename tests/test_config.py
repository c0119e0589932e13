"""Tests for environment-based configuration."""

import dataclasses

import pytest

import config
from config import MonitorConfig, env_num, load_config, load_env_file

ENV_KEYS = [
    "TCIN", "QTY", "POLL_MS", "REFIRE_COOLDOWN_MS", "SUCCESS_COOLDOWN_MS", "DISCORD_WEBHOOK",
    "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "STORE_ID", "ZIP", "STATE", "LATITUDE", "LONGITUDE",
    "LOG_DIR", "FETCH_TIMEOUT", "REDSKY_KEY",
]


def _clear(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    cfg = load_config()
    assert cfg.tcin == "94336414"
    assert cfg.poll_ms == 1000
    assert cfg.refire_cooldown_ms == 30000
    assert cfg.success_cooldown_ms == 300000
    assert cfg.discord_webhook == ""
    assert cfg.log_dir == (config.BASE_DIR / "logs").resolve()
    assert cfg.event_log_path.name == "events_94336414.csv"
    assert cfg.window_log_path.name == "windows_94336414.csv"
    assert cfg.product_url == "https://www.target.com/p/-/A-94336414"


def test_overrides(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("TCIN", "123")
    monkeypatch.setenv("POLL_MS", "2500")
    monkeypatch.setenv("SUCCESS_COOLDOWN_MS", "0")
    monkeypatch.setenv("DISCORD_WEBHOOK", "  https://discord.test/hook  ")
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    cfg = load_config()
    assert cfg.tcin == "123"
    assert cfg.poll_ms == 2500
    assert cfg.success_cooldown_ms == 0
    assert cfg.discord_webhook == "https://discord.test/hook"
    assert cfg.log_dir == tmp_path


def test_env_num_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("POLL_MS", "soon")
    assert env_num("POLL_MS", 1000) == 1000
    monkeypatch.setenv("POLL_MS", "inf")
    assert env_num("POLL_MS", 1000) == 1000
    monkeypatch.setenv("POLL_MS", "")
    assert env_num("POLL_MS", 1000) == 1000
    monkeypatch.setenv("POLL_MS", "250")
    assert env_num("POLL_MS", 1000) == 250


def test_env_file_overrides_inherited(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("TCIN", "inherited")
    env_file = tmp_path / ".env"
    env_file.write_text("TCIN=from_file\n", encoding="utf-8")
    assert load_env_file(env_file) is True
    assert load_config().tcin == "from_file"


def test_missing_env_file(tmp_path):
    assert load_env_file(tmp_path / "nope.env") is False


def test_config_is_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        MonitorConfig().tcin = "x"
