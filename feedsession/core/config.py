"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefixed with
``FEEDSESSION_``) or a .env file.
"""

from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDSESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "feedsession"
    VERSION: str = "0.4.0"
    ENVIRONMENT: Literal["development", "test", "production"] = "development"
    DEV_MODE: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGGING: bool = True
    LOG_FILE: Optional[str] = None

    # Durable client storage
    DATABASE_URL: str = "sqlite:///./data/feedsession.db"
    SECRET_KEY: str = "feedsession-local-secret-change-me"
    SECURE_CREDENTIAL_STORAGE: bool = False

    # Feed orchestration
    AUTOLOAD_ON_FOCUS_AFTER_MINUTES: int = 5
    SERIALIZE_LOADS: bool = True
    DEFAULT_LOCALE: str = "en-CA"

    # Remote service transport
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Navigation targets handed to the host UI
    HOME_PATH: str = "/"
    LOGIN_PATH: str = "/#/login"

    @field_validator("AUTOLOAD_ON_FOCUS_AFTER_MINUTES")
    @classmethod
    def validate_autoload_minutes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("AUTOLOAD_ON_FOCUS_AFTER_MINUTES must be positive")
        return v

    @field_validator("HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level


# Global settings instance
settings = Settings()
