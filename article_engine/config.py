"""
Configuration management for the article engine.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Article Engine")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./article_engine.db")

    # Site; used to tell internal links from external ones
    site_url: str = Field(
        default="localhost:4321",
        description="Deployment base domain, either a bare host or a full URL.",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Listing
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Slugs
    slug_max_attempts: int = Field(
        default=100,
        ge=1,
        description="Suffixed candidates to check before falling back to a timestamp suffix.",
    )

    # Maintenance
    recalculate_batch_size: int = Field(default=50, ge=1)

    # Process-local list cache
    list_cache_ttl_seconds: int = Field(default=300, ge=0)
    list_cache_max_entries: int = Field(default=100, ge=1)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
