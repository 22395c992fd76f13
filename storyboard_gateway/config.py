"""
Configuration Management Module

Configures application parameters via environment variables or .env file.
Supports SQLite (default) and PostgreSQL databases.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    """

    # Application Config
    APP_NAME: str = "Storyboard AI Gateway"
    DEBUG: bool = False

    # Database Config
    # Supports "sqlite" or "postgresql"
    DATABASE_TYPE: Literal["sqlite", "postgresql"] = "sqlite"
    # SQLite default database path, PostgreSQL requires full connection string
    DATABASE_URL: str = "sqlite+aiosqlite:///./storyboard.db"

    # Asset Storage Config
    # Root directory for generated assets, files land in {DATA_DIR}/assets/{project_id}/
    DATA_DIR: str = "./data"

    # Gemini Provider Config
    # Server fallback credential, used when the caller does not send their own key
    GEMINI_API_KEY: str | None = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"

    # HTTP Client Config
    # Request timeout (seconds)
    HTTP_TIMEOUT: int = 300

    # AI Rate Limit Config
    # Enable/disable rate limiting of /api/ai endpoints (useful for development)
    AI_RATE_LIMIT_ENABLED: bool = True
    # Fixed window length (ms), values below 1000 are raised to 1000
    AI_RATE_LIMIT_WINDOW_MS: int = 60000
    # Max admitted requests per client per window
    AI_RATE_LIMIT_MAX_REQUESTS: int = 30
    # Expired bucket cleanup interval (seconds)
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS: int = 300

    # Telemetry Config
    ENABLE_AI_TELEMETRY: bool = False
    AI_TELEMETRY_LEVEL: str = "INFO"

    # Video Job Config
    # Interval between operation polls (seconds)
    VIDEO_POLL_INTERVAL_SECONDS: float = 10.0
    # Max wall-clock time for one video job (seconds)
    VIDEO_POLL_TIMEOUT_SECONDS: float = 900.0
    # Consecutive transient poll failures tolerated before giving up
    VIDEO_POLL_MAX_ERRORS: int = 3

    # CORS Config
    # Comma-separated list of allowed origins for CORS
    # Example: "http://localhost:5173,https://example.com"
    ALLOWED_ORIGINS: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def rate_limit_window_ms(self) -> int:
        """Window length clamped to at least one second"""
        return max(1000, self.AI_RATE_LIMIT_WINDOW_MS)

    @property
    def rate_limit_max_requests(self) -> int:
        return max(1, self.AI_RATE_LIMIT_MAX_REQUESTS)

    @property
    def gemini_api_key(self) -> str | None:
        """Server credential with surrounding whitespace removed, None when blank"""
        if self.GEMINI_API_KEY is None:
            return None
        return self.GEMINI_API_KEY.strip() or None


@lru_cache()
def get_settings() -> Settings:
    """
    Get application configuration (Singleton)

    Uses lru_cache to ensure configuration is loaded only once, improving performance.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
