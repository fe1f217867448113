"""
Application configuration using Pydantic Settings.
Both serverless functions (canvas-data and assistant) read the same settings.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS configuration
    # Production: Set CORS_ORIGINS env var to comma-separated list of allowed origins
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins. Set via CORS_ORIGINS env var for production.",
    )
    cors_allow_credentials: bool = False
    cors_allow_methods: list[str] = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = [
        "authorization",
        "x-client-info",
        "apikey",
        "content-type",
    ]

    @property
    def parsed_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS from comma-separated string if provided as env var."""
        if isinstance(self.cors_origins, str):
            return [
                origin.strip()
                for origin in self.cors_origins.split(",")
                if origin.strip()
            ]
        return self.cors_origins

    # Canvas API configuration
    canvas_api_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CANVAS_API_URL", "CANVAS_BASE_URL"),
    )
    canvas_api_token: Optional[str] = None

    # Assistant (OpenAI) configuration
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    assistant_temperature: float = 0.3
    assistant_max_tokens: int = 1000
    assistant_rate_limit: str = "30/minute"
    assistant_announcement_days: int = 7

    # Local calendar used for "due today" and the timetable
    timezone: str = "UTC"

    # Notes storage: S3 when a bucket is configured, local JSON file otherwise
    s3_bucket_name: str = ""
    notes_key: str = "notes/sticky_notes.json"
    notes_file: str = "sticky_notes.json"

    # Logging configuration
    log_level: str = "INFO"

    # Application metadata
    app_name: str = "Canvas++ API"
    app_version: str = "1.0.0"
    canvas_api_version: str = "v1"

    # Performance settings
    thread_pool_max_workers: int = 10
    request_timeout: int = 30

    # Cache settings (seconds)
    courses_cache_ttl: int = 60
    assignments_cache_ttl: int = 30
    announcements_cache_ttl: int = 60
    enable_caching: bool = True

    @property
    def canvas_configured(self) -> bool:
        return bool(self.canvas_api_url and self.canvas_api_token)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses @lru_cache to create a singleton, following FastAPI best practices.
    """
    return Settings()
