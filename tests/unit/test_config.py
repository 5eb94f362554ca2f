"""Unit tests for configuration validation"""
import pytest

from volunteer_achievements import config
from volunteer_achievements.exceptions import ConfigurationError


def test_defaults_are_valid():
    config.validate_config()


def test_frequency_defaults():
    assert config.DEFAULT_CONSECUTIVE_MONTHS == 3
    assert config.DEFAULT_MIN_HOURS_PER_MONTH == 1.0


def test_missing_database_url(monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "")

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key == "DATABASE_URL"


@pytest.mark.parametrize("min_size,max_size", [(0, 10), (5, 2)])
def test_invalid_pool_size(monkeypatch, min_size, max_size):
    monkeypatch.setattr(config, "DB_POOL_MIN_SIZE", min_size)
    monkeypatch.setattr(config, "DB_POOL_MAX_SIZE", max_size)

    with pytest.raises(ConfigurationError):
        config.validate_config()


def test_invalid_batch_size(monkeypatch):
    monkeypatch.setattr(config, "EVALUATION_BATCH_SIZE", 0)

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key == "EVALUATION_BATCH_SIZE"
