"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (ORDERSYNC_*)."""

    model_config = SettingsConfigDict(
        env_prefix="ORDERSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote store
    base_url: str = "http://localhost:5000"
    request_timeout: float = Field(default=10.0, gt=0)
    update_method: Literal["PUT", "PATCH"] = "PUT"

    # Reorder debouncer window
    debounce_ms: int = Field(default=40, ge=0, le=2000)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
