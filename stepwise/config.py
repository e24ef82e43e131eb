"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All configuration is loaded from ``STEPWISE_*`` environment variables (or .env file)."""

    # --- App ---
    app_name: str = "stepwise"
    environment: str = "development"  # development | staging | production

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"

    # --- Health engine ---
    health_config_path: Path | None = None  # None = bundled health_config.yaml
    timezone: str | None = Field(
        default=None,
        description="Overrides calendar.timezone from health_config.yaml",
    )

    model_config = SettingsConfigDict(
        env_prefix="STEPWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
