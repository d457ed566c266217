from __future__ import annotations

from datetime import timedelta

import pytest

from livesync.config import SyncConfig
from livesync.errors import ConfigError

_ENV_KEYS = (
    "LIVESYNC_FEED_URL",
    "CHANNELS_JSON_URL",
    "LIVESYNC_DB_PATH",
    "DATABASE_PATH",
    "DATA_DIR",
    "SYNC_CONCURRENCY",
    "CONCURRENCY",
    "SYNC_MIN_INTERVAL_HOURS",
    "SYNC_TIME_BUDGET_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "LIVESYNC_USER_AGENT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_missing_feed_url_is_a_config_error(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    with pytest.raises(ConfigError):
        SyncConfig.from_env()


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("LIVESYNC_FEED_URL", "https://feeds.example/channels.json")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    config = SyncConfig.from_env()

    assert config.db_path == tmp_path / "livesync.sqlite3"
    assert config.concurrency == 8
    assert config.min_interval == timedelta(hours=6)
    assert config.time_budget == 30.0
    assert config.http_timeout == 10.0
    assert config.user_agent.startswith("livesync/")


def test_fallback_names_and_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CHANNELS_JSON_URL", "https://feeds.example/legacy.json")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "custom" / "links.db"))
    monkeypatch.setenv("CONCURRENCY", "100")
    monkeypatch.setenv("SYNC_MIN_INTERVAL_HOURS", "0.5")
    monkeypatch.setenv("SYNC_TIME_BUDGET_SECONDS", "12")

    config = SyncConfig.from_env()

    assert config.feed_url == "https://feeds.example/legacy.json"
    assert config.db_path == tmp_path / "custom" / "links.db"
    assert config.concurrency == 32
    assert config.min_interval == timedelta(minutes=30)
    assert config.time_budget == 12.0


def test_non_numeric_settings_are_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("LIVESYNC_FEED_URL", "https://feeds.example/channels.json")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SYNC_CONCURRENCY", "many")

    with pytest.raises(ConfigError):
        SyncConfig.from_env()


def test_filesystem_root_is_not_a_data_dir(monkeypatch):
    monkeypatch.setenv("LIVESYNC_FEED_URL", "https://feeds.example/channels.json")
    monkeypatch.setenv("DATA_DIR", "/")

    with pytest.raises(ConfigError):
        SyncConfig.from_env()


def test_direct_construction_clamps_concurrency(tmp_path):
    config = SyncConfig(feed_url="https://feeds.example/c.json", db_path=tmp_path / "x.db", concurrency=0)

    assert config.concurrency == 1
    with pytest.raises(ConfigError):
        SyncConfig(feed_url="https://feeds.example/c.json", db_path=tmp_path / "x.db", time_budget=0)
