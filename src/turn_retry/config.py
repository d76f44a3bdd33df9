"""
Configuration settings for turn retry orchestration.

Process-wide settings are loaded from environment variables with sensible
defaults (use a .env file for local development). Per-session retry behaviour
lives in a RetryConfig snapshot owned by a SettingsManager, which can be
changed between (or during) turns.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from turn_retry.models.enums import BackoffPolicy

logger = structlog.get_logger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Turn Retry Orchestrator"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Auto-retry ===
    RETRY_ENABLED: bool = True
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_MS: int = 2000
    RETRY_BACKOFF: BackoffPolicy = BackoffPolicy.EXPONENTIAL
    RETRY_MAX_DELAY_MS: int = 60000  # Upper bound for a single backoff wait

    # === Redis session persistence ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SOCKET_TIMEOUT: float = 5.0
    SESSION_TTL_SECONDS: int = 86400  # 24 hours


class RetryConfig(BaseModel):
    """
    Immutable auto-retry configuration for one session.

    Attributes:
        enabled: Whether retryable failures are retried at all
        max_retries: Retries allowed per turn (0 = never retry)
        base_delay_ms: Delay before the first retry
        backoff: Delay growth policy across retries
        max_delay_ms: Cap applied to every computed delay
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Retry transient failures")
    max_retries: int = Field(default=3, ge=0, description="Retries per turn")
    base_delay_ms: float = Field(default=2000, ge=0, description="First backoff delay (ms)")
    backoff: BackoffPolicy = Field(default=BackoffPolicy.EXPONENTIAL, description="Backoff policy")
    max_delay_ms: float = Field(default=60000, ge=0, description="Backoff cap (ms)")


class SettingsManager:
    """
    Holder for the live RetryConfig of a session.

    The orchestrator reads the config at every retry decision, so overrides
    applied while a turn is retrying take effect at the next decision point.
    """

    def __init__(self, retry_config: RetryConfig | None = None):
        self._retry_config = retry_config or RetryConfig()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SettingsManager":
        """Build a manager seeded from environment settings."""
        return cls(
            RetryConfig(
                enabled=settings.RETRY_ENABLED,
                max_retries=settings.RETRY_MAX_RETRIES,
                base_delay_ms=settings.RETRY_BASE_DELAY_MS,
                backoff=settings.RETRY_BACKOFF,
                max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            )
        )

    def get_retry_config(self) -> RetryConfig:
        return self._retry_config

    def set_retry_config(self, config: RetryConfig) -> None:
        self._retry_config = config
        logger.info("Retry config replaced", extra=config.model_dump(mode="json"))

    def apply_overrides(self, **overrides) -> RetryConfig:
        """
        Replace selected fields of the retry config.

        Args:
            **overrides: RetryConfig field values (e.g. max_retries=5)

        Returns:
            The new, validated RetryConfig

        Raises:
            pydantic.ValidationError: If an override is out of range
        """
        merged = {**self._retry_config.model_dump(), **overrides}
        self.set_retry_config(RetryConfig.model_validate(merged))
        return self._retry_config


# Global settings instance
settings = Settings()
