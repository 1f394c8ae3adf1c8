"""
Environment-aware configuration settings for the agent swarm.

Supports dev, test, and prod environments with appropriate defaults.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    DEV = "dev"
    TEST = "test"
    PROD = "prod"


class ReplaySettings(BaseSettings):
    """Event store and workflow replay settings."""

    model_config = SettingsConfigDict(env_prefix="SWARM_REPLAY_")

    store_type: str = Field(default="memory", description="Event store backend")
    store_directory: str = Field(
        default="./observability/recordings",
        description="Directory for exported workflow recordings",
    )
    retention_days: int = Field(default=7, ge=0, description="Days to keep stored events")
    max_events_in_memory: int = Field(
        default=10000,
        ge=1,
        description="Maximum events held in memory before whole runs are evicted",
    )


class DecisionSettings(BaseSettings):
    """Decision tracing capture settings."""

    model_config = SettingsConfigDict(env_prefix="SWARM_DECISION_")

    capture_prompts: bool = Field(default=True, description="Store the full prompt on decision nodes")
    capture_responses: bool = Field(default=True, description="Store the raw response on decision nodes")
    max_prompt_length: int = Field(default=10000, ge=0, description="Prompt truncation length")
    max_response_length: int = Field(default=10000, ge=0, description="Response truncation length")


class ObservabilitySettings(BaseSettings):
    """
    Observability feature switches.

    Every feature flag is gated by the master ``enabled`` switch; use the
    ``is_*_active`` properties rather than the raw flags.
    """

    model_config = SettingsConfigDict(env_prefix="SWARM_OBSERVABILITY_")

    enabled: bool = Field(default=True, description="Master switch for all observability")
    structured_logging_enabled: bool = Field(default=True)
    tool_tracing_enabled: bool = Field(default=True)
    decision_tracing_enabled: bool = Field(
        default=False,
        description="Decision tracing keeps prompts in memory, so it is opt-in",
    )
    replay_enabled: bool = Field(default=True)

    # Sub-settings
    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    decision: DecisionSettings = Field(default_factory=DecisionSettings)

    @property
    def is_structured_logging_active(self) -> bool:
        return self.enabled and self.structured_logging_enabled

    @property
    def is_tool_tracing_active(self) -> bool:
        return self.enabled and self.tool_tracing_enabled

    @property
    def is_decision_tracing_active(self) -> bool:
        return self.enabled and self.decision_tracing_enabled

    @property
    def is_replay_active(self) -> bool:
        return self.enabled and self.replay_enabled


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Agent Swarm")
    environment: Environment = Field(default=Environment.DEV)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Sub-settings
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str | Environment) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TEST

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PROD


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
