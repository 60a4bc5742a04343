"""Unit tests for ProberSettings and component wiring from settings."""

import pytest
from pydantic import ValidationError

from prober.catalog.file import FileEndpointCatalog
from prober.catalog.http import HttpEndpointCatalog
from prober.config.settings import ProberSettings
from prober.container import build_catalog, build_components, build_store
from prober.middleware.error_handler import ConfigurationError
from prober.store.memory import InMemoryStatusStore
from prober.store.redis_store import RedisStatusStore


class TestProberSettings:
    def test_defaults_are_correct(self):
        settings = ProberSettings()

        assert settings.port == 8002
        assert settings.log_level == "INFO"
        assert settings.max_concurrent_probes == 150
        assert settings.tick_interval_seconds == 10.0
        assert settings.default_retries == 3
        assert settings.default_timeout_ms == 10000
        assert settings.privileged_ping is False
        assert settings.store_backend == "redis"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.status_ttl_seconds == 600
        assert settings.history_retention_days == 90
        assert settings.history_prune_interval_seconds == 3600
        assert settings.notification_cooldown_seconds == 300
        assert settings.catalog_backend == "file"
        assert settings.catalog_api_url is None
        assert settings.catalog_path == "catalog.yaml"
        assert settings.catalog_max_retries == 3
        assert settings.graceful_shutdown_seconds == 30

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROBER_MAX_CONCURRENT_PROBES", "200")
        monkeypatch.setenv("PROBER_TICK_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("PROBER_STORE_BACKEND", "memory")

        settings = ProberSettings()

        assert settings.max_concurrent_probes == 200
        assert settings.tick_interval_seconds == 2.5
        assert settings.store_backend == "memory"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_concurrent_probes", 0),
            ("tick_interval_seconds", 0),
            ("tick_interval_seconds", -1),
            ("default_retries", 0),
            ("default_timeout_ms", 0),
            ("history_retention_days", 0),
            ("notification_cooldown_seconds", -1),
            ("store_backend", "sqlite"),
        ],
    )
    def test_invalid_values_rejected(self, field: str, value: object):
        with pytest.raises(ValidationError):
            ProberSettings(**{field: value})


class TestWiring:
    def test_memory_store_backend(self):
        store = build_store(ProberSettings(store_backend="memory"))
        assert isinstance(store, InMemoryStatusStore)

    def test_redis_store_backend(self):
        store = build_store(ProberSettings(store_backend="redis"))
        assert isinstance(store, RedisStatusStore)

    def test_file_catalog_backend(self):
        catalog = build_catalog(ProberSettings(catalog_backend="file"))
        assert isinstance(catalog, FileEndpointCatalog)

    def test_http_catalog_backend(self):
        catalog = build_catalog(
            ProberSettings(
                catalog_backend="http",
                catalog_api_url="http://catalog.local/api",
            )
        )
        assert isinstance(catalog, HttpEndpointCatalog)

    def test_http_catalog_requires_url(self):
        with pytest.raises(ConfigurationError):
            build_catalog(ProberSettings(catalog_backend="http"))

    def test_build_components_threads_settings(self, settings: ProberSettings):
        components = build_components(settings)

        stats = components.scheduler.get_stats()
        assert stats["max_concurrent_probes"] == settings.max_concurrent_probes
        assert stats["tick_interval_seconds"] == settings.tick_interval_seconds
        assert components.sweeper.get_stats()["retention_days"] == 90
