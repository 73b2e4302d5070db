"""Tests for settings loading and the in-memory TTL cache."""

from pathlib import Path

from docvault.core.cache import InMemoryCache
from docvault.core.settings import get_settings, reset_settings


class TestSettings:
    def test_env_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("DOCVAULT_HISTORY_LIMIT", "10")
        monkeypatch.setenv("DOCVAULT_DATA_DIR", str(tmp_path))
        reset_settings()
        settings = get_settings()
        assert settings.history_limit == 10
        assert settings.data_dir == tmp_path

    def test_defaults(self):
        settings = get_settings()
        assert settings.document_key == "app_data"
        assert settings.history_key == "migration_log"
        assert settings.backup_prefix == "migration_backup_"
        assert settings.validation_timeout_seconds == 5.0

    def test_cached(self):
        assert get_settings() is get_settings()
        assert get_settings(_force_reload=True) is not None


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryCache:
    def test_ttl_expiry(self):
        clock = FakeClock()
        cache = InMemoryCache(default_ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.now = 9.9
        assert cache.get("k") == "v"
        clock.now = 10
        assert cache.get("k") is None

    def test_lru_eviction(self):
        cache = InMemoryCache(max_size=2, default_ttl_seconds=None)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.exists("a")
        assert not cache.exists("b")
        assert cache.size() == 2
