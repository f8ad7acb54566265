from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stylecheck.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_NAME: str = "stylecheck"
    APP_ENV: Literal["development", "production", "test"] = "production"
    REDIS_URL: str = "redis://redis:6379/0"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_KEY_PREFIX: str = "stylecheck:"

    # Scoring engine
    SCORE_HIGH_THRESHOLD: float = 0.78
    SCORE_HIGH_THRESHOLD_SHOES: float = 0.82
    SCORE_MEDIUM_THRESHOLD: float = 0.58
    # Per pair type HIGH threshold overrides, e.g. {"tops_bottoms": 0.8}
    SCORE_HIGH_THRESHOLD_OVERRIDES: dict[str, float] = Field(default_factory=dict)
    SILHOUETTE_ENABLED: bool = False
    EXPLANATIONS_ENABLED: bool = True
    EXPLANATIONS_ALLOW_SHOES: bool = False

    # Style signals
    SIGNAL_CACHE_TTL_SECONDS: int = 1200  # 20 minutes
    SIGNAL_CACHE_MAX_ENTRIES: int = 10
    SIGNAL_STORE_TTL_SECONDS: int = 2592000  # 30 days
    SIGNALS_PROMPT_VERSION: int = 1
    SIGNAL_MAX_PAYLOAD_BYTES: int = 6 * 1024 * 1024
    SIGNAL_SECOND_PASS_BYTES: int = int(1.5 * 1024 * 1024)
    SIGNAL_GENERATION_TIMEOUT_SECONDS: float = 30.0
    SIGNALS_GEMINI_MODEL: str = "gemini-2.5-flash"

    # Trust filter
    TRUST_FILTER_ENABLED: bool = True
    TRUST_FILTER_REMOTE_OVERRIDES: dict[str, Any] = Field(default_factory=dict)

    # Safety check (client)
    AI_SAFETY_ENABLED: bool = True
    AI_SAFETY_ROLLOUT_PCT: int = 0
    AI_SAFETY_URL: str = "http://localhost:8000"
    AI_SAFETY_REQUESTED_DRY_RUN: bool | None = None
    AI_SAFETY_CLIENT_TIMEOUT_SECONDS: float = 6.0
    AI_SAFETY_MAX_CANDIDATES: int = 5

    # Safety check (server)
    AI_SAFETY_DRY_RUN: bool = False
    AI_SAFETY_TIMEOUT_MS: int = 3000
    AI_SAFETY_DAILY_CAP: int = 50
    AI_SAFETY_CACHE_TTL_DAYS: int = 7
    AI_SAFETY_MAX_PAIRS: int = 10
    AI_SAFETY_GEMINI_MODEL: str = "gemini-2.5-flash"

    # AI
    GEMINI_API_KEY: str | None = None


settings = Settings()

APP_VERSION = __version__
