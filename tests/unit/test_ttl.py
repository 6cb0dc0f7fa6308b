"""Unit tests for the TTL policy."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from flixr.core.config import Settings
from flixr.core.exceptions import ConfigurationError
from flixr.tmdb.ttl import TTLPolicy


@pytest.fixture
def policy():
    return TTLPolicy(
        default=3600,
        minimum=60,
        categories={"search": 900, "details": 21600, "popular": 3600},
    )


class TestTTLResolution:
    """Tests for effective TTL resolution."""

    def test_category_default(self, policy):
        assert policy.resolve("search") == 900
        assert policy.resolve("details") == 21600

    def test_unknown_category_uses_global_default(self, policy):
        assert policy.resolve("raw") == 3600

    def test_override_beats_category(self, policy):
        assert policy.resolve("search", override=43200) == 43200

    def test_override_clamped_to_floor(self, policy):
        """A 5 second override still lives for the floor."""
        assert policy.resolve("raw", override=5) == 60

    def test_zero_and_negative_override_clamped(self, policy):
        assert policy.resolve("raw", override=0) == 60
        assert policy.resolve("raw", override=-10) == 60

    def test_category_below_floor_clamped(self):
        policy = TTLPolicy(default=3600, minimum=120, categories={"search": 30})

        assert policy.resolve("search") == 120


class TestTTLPolicyConstruction:
    """Tests for building policies."""

    def test_defaults(self):
        policy = TTLPolicy()

        assert policy.default == 3600
        assert policy.minimum == 60
        assert policy.categories == {}

    def test_rejects_non_positive_category(self):
        with pytest.raises(ValidationError):
            TTLPolicy(categories={"search": 0})

    def test_from_config(self):
        policy = TTLPolicy.from_config(
            {"default": 1800, "minimum": 30, "categories": {"search": 600}}
        )

        assert policy.resolve("search") == 600
        assert policy.resolve("raw") == 1800

    def test_from_config_invalid(self):
        with pytest.raises(ConfigurationError):
            TTLPolicy.from_config({"default": 3600, "minimum": 60, "categories": {"search": 0}})

    def test_from_settings_without_yaml(self, tmp_path, monkeypatch):
        """Settings values and built-in category defaults apply with no flixr.yaml."""
        monkeypatch.chdir(tmp_path)
        settings = Settings(cache_ttl_seconds=7200, cache_min_ttl_seconds=90)

        policy = TTLPolicy.from_settings(settings)

        assert policy.default == 7200
        assert policy.minimum == 90
        assert policy.resolve("details") == 21600

    def test_from_settings_env_wins_over_shipped_yaml(self, tmp_path, monkeypatch):
        """CACHE_TTL_SECONDS and CACHE_MIN_TTL_SECONDS apply with flixr.yaml present."""
        shipped = Path(__file__).resolve().parents[2] / "flixr.yaml"
        (tmp_path / "flixr.yaml").write_text(shipped.read_text())
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CACHE_TTL_SECONDS", "7200")
        monkeypatch.setenv("CACHE_MIN_TTL_SECONDS", "120")

        policy = TTLPolicy.from_settings(Settings(_env_file=None))

        assert policy.default == 7200
        assert policy.minimum == 120
        assert policy.resolve("raw") == 7200
        assert policy.resolve("search") == 900

    def test_from_settings_yaml_default_below_floor(self, tmp_path, monkeypatch):
        (tmp_path / "flixr.yaml").write_text("cache:\n  ttl:\n    default: 10\n")
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ConfigurationError):
            TTLPolicy.from_settings(Settings(_env_file=None))
