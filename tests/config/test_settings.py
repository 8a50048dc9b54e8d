"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from linkstash.config import AppConfig, SyncConfig, load_config

_ENV_VARS = (
    "LOG_LEVEL",
    "LOG_FILE",
    "SYNC_TOPIC_PREFIX",
    "SYNC_TOMBSTONE_TTL_SECONDS",
    "SYNC_MAX_TOMBSTONES",
    "SUBMISSION_SUCCESS_FLASH_SECONDS",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_TABLE",
    "SUPABASE_TIMEOUT_SEC",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()

        assert isinstance(config, AppConfig)
        assert config.runtime.log_level == "INFO"
        assert config.sync.topic_prefix == "bookmarks"
        assert config.sync.tombstone_ttl_seconds == 30.0
        assert config.sync.max_tombstones == 1024
        assert config.sync.success_flash_seconds == 3.0
        assert config.supabase.is_configured is False
        assert config.supabase.timeout_sec is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SYNC_TOMBSTONE_TTL_SECONDS", "5")
        monkeypatch.setenv("SYNC_MAX_TOMBSTONES", "10")
        monkeypatch.setenv("SUPABASE_URL", "https://p.supabase.co/")
        monkeypatch.setenv("SUPABASE_ANON_KEY", " key ")
        monkeypatch.setenv("SUPABASE_TIMEOUT_SEC", "2.5")

        config = load_config()

        assert config.runtime.log_level == "DEBUG"
        assert config.sync.tombstone_ttl_seconds == 5.0
        assert config.sync.max_tombstones == 10
        assert config.supabase.url == "https://p.supabase.co"
        assert config.supabase.anon_key == "key"
        assert config.supabase.timeout_sec == 2.5
        assert config.supabase.is_configured

    def test_overrides_take_precedence(self, monkeypatch):
        monkeypatch.setenv("SYNC_TOMBSTONE_TTL_SECONDS", "5")
        config = load_config(sync={"tombstone_ttl_seconds": 12})
        assert config.sync.tombstone_ttl_seconds == 12.0

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("LOG_LEVEL", "LOUD"),
            ("SYNC_TOMBSTONE_TTL_SECONDS", "0"),
            ("SYNC_TOMBSTONE_TTL_SECONDS", "forever"),
            ("SYNC_MAX_TOMBSTONES", "-1"),
            ("SYNC_TOPIC_PREFIX", "bad:prefix"),
            ("SUPABASE_URL", "ftp://p.supabase.co"),
            ("SUPABASE_TIMEOUT_SEC", "-3"),
        ],
    )
    def test_invalid_values_fail_loudly(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(RuntimeError, match="Configuration validation failed"):
            load_config()

    def test_sync_config_is_frozen(self):
        config = SyncConfig()
        with pytest.raises(Exception):
            config.max_tombstones = 5  # type: ignore[misc]
