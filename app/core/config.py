# File: app/core/config.py
"""
Configuration settings for ContactHub Scheduler.

This module defines application settings using Pydantic's BaseSettings,
which supports environment variable loading and validation.
"""

import json
from typing import List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    This class uses Pydantic's BaseSettings to load configuration from
    environment variables, with validation and type conversion.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore",
    )

    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "ContactHub Scheduler"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[Union[AnyHttpUrl, str]] = []

    # Database
    DATABASE_URL: str = "sqlite:///contacthub.db"
    DB_ECHO: bool = False

    # Calendar / recurrence
    DEFAULT_TIMEZONE: Optional[str] = None  # None = host local zone
    DEFAULT_START_TIME: str = "09:00"
    RECURRENCE_HORIZON_DAYS: int = 731  # two years of lookahead
    HOLIDAY_MAX_ROLL_YEARS: int = 3
    UPCOMING_DEFAULT_LIMIT: int = 5
    UPCOMING_MAX_LIMIT: int = 100

    # Dispatch
    DISPATCH_ENABLED: bool = False
    DISPATCH_INTERVAL_MINUTES: int = 15
    DISPATCH_SEND_TIMEOUT_SECONDS: float = 30.0
    DISPATCH_CLAIM_TTL_SECONDS: int = 600
    # A day that ended before its fire was reached is caught up within this window
    DISPATCH_CATCHUP_MINUTES: int = 120
    DISPATCH_MAX_WORKERS: int = 4

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS origins from environment variables."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                # Fallback to comma-separated format
                return [i.strip() for i in v.split(",") if i.strip()]
        return v or []

    @field_validator("DEFAULT_TIMEZONE")
    @classmethod
    def validate_default_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject zone names the tz database does not know."""
        if not v:
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IANA timezone: {v}")
        return v

    @field_validator("RECURRENCE_HORIZON_DAYS", "HOLIDAY_MAX_ROLL_YEARS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        return max(1, v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        return v.upper() if v.upper() in valid_levels else "INFO"


# Create settings instance
settings = Settings()
