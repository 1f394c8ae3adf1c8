"""
Unit tests for configuration settings.
"""

import pytest
from pydantic import ValidationError

from agent_swarm.config import (
    Environment,
    ObservabilitySettings,
    ReplaySettings,
    Settings,
    get_settings,
)


class TestObservabilitySettings:
    """Tests for observability switches."""

    def test_defaults(self):
        """Test every feature but decision tracing is on by default."""
        settings = ObservabilitySettings()

        assert settings.is_structured_logging_active
        assert settings.is_tool_tracing_active
        assert settings.is_replay_active
        assert not settings.is_decision_tracing_active
        assert settings.replay.store_type == "memory"
        assert settings.replay.retention_days == 7
        assert settings.replay.max_events_in_memory == 10000
        assert settings.decision.max_prompt_length == 10000

    def test_master_switch(self):
        """Test the master switch disables every feature."""
        settings = ObservabilitySettings(enabled=False, decision_tracing_enabled=True)

        assert not settings.is_structured_logging_active
        assert not settings.is_tool_tracing_active
        assert not settings.is_decision_tracing_active
        assert not settings.is_replay_active

    def test_individual_switch(self):
        """Test a feature flag alone turns its feature off."""
        settings = ObservabilitySettings(replay_enabled=False)

        assert not settings.is_replay_active
        assert settings.is_tool_tracing_active

    def test_env_prefix(self, monkeypatch):
        """Test switches are read from SWARM_OBSERVABILITY_ variables."""
        monkeypatch.setenv("SWARM_OBSERVABILITY_DECISION_TRACING_ENABLED", "true")
        monkeypatch.setenv("SWARM_REPLAY_RETENTION_DAYS", "30")

        settings = ObservabilitySettings()

        assert settings.is_decision_tracing_active
        assert settings.replay.retention_days == 30

    def test_replay_limits_validated(self):
        """Test the in-memory limit must be positive."""
        with pytest.raises(ValidationError):
            ReplaySettings(max_events_in_memory=0)


class TestSettings:
    """Tests for application settings."""

    def test_environment_parsing(self):
        """Test environment names are case-insensitive."""
        settings = Settings(environment="PROD")

        assert settings.environment == Environment.PROD
        assert settings.is_production
        assert not settings.is_development

    def test_log_level_normalized(self):
        """Test log levels are upper-cased and checked."""
        assert Settings(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(log_level="verbose")

    def test_get_settings_cached(self):
        """Test settings are loaded once."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()

        get_settings.cache_clear()
