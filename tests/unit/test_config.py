"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError

from flixr.core.config import DEFAULT_CATEGORY_TTLS, Settings, load_ttl_config
from flixr.core.exceptions import ConfigurationError


class TestSettings:
    """Tests for Settings configuration model."""

    def test_default_values(self, monkeypatch):
        """Test default configuration values."""
        for name in ("TMDB_BASE_URL", "TMDB_BASE", "CACHE_TTL_SECONDS", "API_PORT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.tmdb_base_url == "https://api.themoviedb.org/3"
        assert settings.tmdb_include_adult is False
        assert settings.tmdb_timeout == 10.0
        assert settings.cache_namespace == "tmdb"
        assert settings.cache_ttl_seconds == 3600
        assert settings.cache_min_ttl_seconds == 60
        assert settings.api_port == 4000
        assert settings.api_rate_limit == 120
        assert settings.otel_enabled is False

    def test_cache_timeout_shorter_than_upstream(self):
        """Cache calls must give up long before an upstream call would."""
        settings = Settings(_env_file=None)

        assert settings.redis_timeout < settings.tmdb_timeout

    def test_legacy_base_env_name(self, monkeypatch):
        """TMDB_BASE is accepted as an alias for TMDB_BASE_URL."""
        monkeypatch.delenv("TMDB_BASE_URL", raising=False)
        monkeypatch.setenv("TMDB_BASE", "https://proxy.example/3")

        settings = Settings(_env_file=None)

        assert settings.tmdb_base_url == "https://proxy.example/3"

    def test_redis_url(self):
        settings = Settings(
            _env_file=None, redis_host="cache.internal", redis_port=6380, redis_db=2
        )

        assert settings.redis_url == "redis://cache.internal:6380/2"

    def test_redis_url_with_password(self):
        settings = Settings(_env_file=None, redis_password="s3cret")

        assert settings.redis_url.startswith("redis://:s3cret@")

    def test_ttl_below_floor_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_ttl_seconds=30, cache_min_ttl_seconds=60)

    def test_is_production(self):
        assert Settings(_env_file=None, environment="Production").is_production
        assert not Settings(_env_file=None, environment="development").is_production


class TestLoadTTLConfig:
    """Tests for the flixr.yaml TTL loader."""

    def test_missing_file_falls_back_to_settings(self, tmp_path):
        base = Settings(_env_file=None, cache_ttl_seconds=1800)

        config = load_ttl_config(tmp_path / "missing.yaml", base=base)

        assert config["default"] == 1800
        assert config["minimum"] == 60
        assert config["categories"] == DEFAULT_CATEGORY_TTLS

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "flixr.yaml"
        path.write_text(
            "cache:\n"
            "  ttl:\n"
            "    default: 7200\n"
            "    minimum: 120\n"
            "    categories:\n"
            "      search: 300\n"
            "      trending: 43200\n"
        )

        config = load_ttl_config(path, base=Settings(_env_file=None))

        assert config["default"] == 7200
        assert config["minimum"] == 120
        assert config["categories"]["search"] == 300
        assert config["categories"]["trending"] == 43200
        # Untouched categories keep their built-in default
        assert config["categories"]["details"] == 21600

    def test_invalid_yaml_ignored(self, tmp_path):
        path = tmp_path / "flixr.yaml"
        path.write_text("cache: [unclosed\n")

        config = load_ttl_config(path, base=Settings(_env_file=None))

        assert config["default"] == 3600

    def test_non_integer_values_ignored(self, tmp_path):
        path = tmp_path / "flixr.yaml"
        path.write_text("cache:\n  ttl:\n    default: soon\n    categories:\n      search: fast\n")

        config = load_ttl_config(path, base=Settings(_env_file=None))

        assert config["default"] == 3600
        assert config["categories"]["search"] == 900

    def test_env_values_beat_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CACHE_TTL_SECONDS", "7200")
        monkeypatch.setenv("CACHE_MIN_TTL_SECONDS", "120")
        path = tmp_path / "flixr.yaml"
        path.write_text(
            "cache:\n  ttl:\n    default: 3600\n    minimum: 60\n"
            "    categories:\n      search: 300\n"
        )

        config = load_ttl_config(path, base=Settings(_env_file=None))

        assert config["default"] == 7200
        assert config["minimum"] == 120
        assert config["categories"]["search"] == 300

    def test_yaml_default_below_floor_rejected(self, tmp_path):
        path = tmp_path / "flixr.yaml"
        path.write_text("cache:\n  ttl:\n    default: 30\n    minimum: 60\n")

        with pytest.raises(ConfigurationError):
            load_ttl_config(path, base=Settings(_env_file=None))

    def test_yaml_floor_above_env_default_rejected(self, tmp_path):
        path = tmp_path / "flixr.yaml"
        path.write_text("cache:\n  ttl:\n    minimum: 600\n")
        base = Settings(_env_file=None, cache_ttl_seconds=300)

        with pytest.raises(ConfigurationError):
            load_ttl_config(path, base=base)
