"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "Huntr Chart Analysis Backend"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # SQLite (training corpus + analysis history)
    sqlite_path: Optional[str] = None  # Defaults to ./data/huntr.db

    # Redis (search result cache)
    redis_url: str = "redis://localhost:6379"

    # CORS (Frontend URL)
    allowed_origins: list[str] = ["http://localhost:8081"]

    # Vision model (Gemini)
    gemini_api_key: Optional[str] = None
    gemini_default_model: str = "gemini-2.5-flash"
    model_timeout_seconds: float = 60.0
    model_temperature: float = 0.4

    # Web search (Serper)
    serper_api_key: Optional[str] = None
    serper_base_url: str = "https://google.serper.dev/search"
    search_timeout_seconds: float = 10.0
    search_max_queries: int = 2
    search_results_per_query: int = 3
    search_pacing_seconds: float = 0.5
    search_cache_ttl: int = 300

    # Learning context
    learning_window_days: int = 30
    learning_recent_limit: int = 10
    learning_user_limit: int = 5
    learning_min_rating: int = 4

    # Image validation
    max_image_bytes: int = 10 * 1024 * 1024
    max_batch_images: int = 5
    allowed_image_types: list[str] = ["image/jpeg", "image/png", "image/webp"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
