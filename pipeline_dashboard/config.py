"""
Configuration management for Pipeline Dashboard.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="Pipeline Dashboard")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./pipeline_dashboard.db")
    statement_timeout_ms: int = Field(
        default=30000,
        description="Per-statement timeout applied to PostgreSQL connections (0 disables it)",
    )

    # Report search
    monitoring_duration_days: int = Field(
        default=2,
        description="Default lookback window, in days, when no explicit time range is given",
    )
    max_page_limit: int = Field(default=1000)

    # Ingestion
    scm_store_source_branch: bool = Field(
        default=False,
        description=(
            "Store the source branch instead of the target branch when an SCM "
            "reference is first registered"
        ),
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
