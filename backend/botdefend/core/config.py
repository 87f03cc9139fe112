"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "YouTube Bot Defend"
    VERSION: str = "2.0.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # CORS
    CORS_ORIGINS: list[str] = []

    # Google OAuth client used to refresh bot tokens
    YOUTUBE_CLIENT_ID: str = ""
    YOUTUBE_CLIENT_SECRET: str = ""

    # Project API keys, one per Google Cloud project (10k quota/day each)
    YOUTUBE_API_KEYS: list[str] = []

    # Local bot tokens, JSON list of
    # {"name", "access_token", "refresh_token", "channel_id"}
    BOT_TOKENS: list[dict[str, str]] = []

    # Remote document store (Firestore REST)
    FIRESTORE_PROJECT_ID: str = ""
    FIRESTORE_API_KEY: str = ""
    FIRESTORE_BOTS_COLLECTION: str = "webapp_bots"
    FIRESTORE_PATTERNS_COLLECTION: str = "webapp_patterns"
    FIRESTORE_BLACKLIST_COLLECTION: str = "webapp_blacklist"

    # OpenAI API (optional AI spam fallback)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 100
    OPENAI_TEMPERATURE: float = 0.1

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Polling
    MIN_POLL_INTERVAL_MS: int = 1000
    DEFAULT_POLL_INTERVAL_MS: int = 3000

    # Moderation
    MOD_STATUS_TTL_SECONDS: int = 300
    TOKEN_REFRESH_MARGIN_SECONDS: int = 300
    TIMEOUT_DURATION_SECONDS: int = 300
    AI_MAX_CHECKS_PER_CYCLE: int = 3
    AI_MIN_CONFIDENCE: int = 70
    MODERATION_LOG_LIMIT: int = 200

    # Optional explicit path for the remote store base URL (tests, emulator)
    FIRESTORE_BASE_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
