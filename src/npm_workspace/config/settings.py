"""Configuration and settings management using pydantic-settings."""
import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="NPM_WORKSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Console log format",
    )

    # npm
    npm_bin: str = Field(default="npm", description="npm executable")
    npm_timeout_s: Optional[int] = Field(
        default=None,
        description="Timeout for a single npm command (None = no timeout)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Log level must be a standard logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("npm_timeout_s")
    @classmethod
    def validate_timeout(cls, v: Optional[int]) -> Optional[int]:
        """Timeout must be positive when set."""
        if v is not None and v <= 0:
            raise ValueError("npm_timeout_s must be positive")
        return v


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment plus explicit overrides.

    Returns a new instance on every call; callers construct settings once
    and pass them to the components that need them.
    """
    return Settings(**overrides)
