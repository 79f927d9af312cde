"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class BridgeSettings(BaseSettings):
    """Route bridge settings loaded from ``ROUTE_BRIDGE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    # Lifecycle
    debug: bool = False

    # Responses
    allow_origin: str = "*"
    internal_error_message: str = "Internal Server Error"


_settings: BridgeSettings | None = None


def get_settings() -> BridgeSettings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = BridgeSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
