"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from screener.config import Settings
from screener_core.models import TIMEFRAMES


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SCREENER_TIMEFRAMES", raising=False)
        settings = Settings(_env_file=None)

        assert settings.indicator_ttl == 300
        assert settings.update_threshold == 60
        assert settings.batch_size == 200
        assert settings.cache_backend == "redis"
        assert settings.timeframes == list(TIMEFRAMES)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SCREENER_INDICATOR_TTL", "120")
        monkeypatch.setenv("SCREENER_CACHE_BACKEND", "memory")
        monkeypatch.setenv("SCREENER_TIMEFRAMES", '["1h", "4h"]')

        settings = Settings(_env_file=None)
        assert settings.indicator_ttl == 120
        assert settings.cache_backend == "memory"
        assert settings.timeframes == ["1h", "4h"]

    def test_unknown_timeframe_rejected(self):
        with pytest.raises(ValidationError, match="Unsupported timeframes"):
            Settings(_env_file=None, timeframes=["1h", "3m"])

    def test_empty_timeframes_rejected(self):
        with pytest.raises(ValidationError, match="At least one timeframe"):
            Settings(_env_file=None, timeframes=[])

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_backend="memcached")
