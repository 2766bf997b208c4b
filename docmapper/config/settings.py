# settings.py
# Version: 1.0
# Purpose: Core settings module for document mapper configuration using Pydantic

# External imports - versions specified for production deployments
from pydantic import SecretStr, field_validator  # pydantic v2.5+
from pydantic_settings import BaseSettings, SettingsConfigDict  # pydantic-settings v2.1+
from typing import Dict, Any
import logging
from functools import lru_cache

# Global constants
ALLOWED_ENVIRONMENTS = ["development", "staging", "production", "test"]
PIVOT_KEY_TYPES = ["string", "object_id"]


class Settings(BaseSettings):
    """
    Settings management using pydantic-settings BaseSettings.
    Values are read from the environment and an optional .env file.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
    )

    # Core Settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # MongoDB Configuration
    MONGODB_URL: SecretStr = SecretStr("mongodb://localhost:27017")
    MONGODB_DB_NAME: str = "docmapper"

    # Serialization format for date attributes
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # How pivot collections store their foreign keys
    PIVOT_KEY_TYPE: str = "string"

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        if v not in ALLOWED_ENVIRONMENTS:
            raise ValueError(f"Environment must be one of {ALLOWED_ENVIRONMENTS}")
        return v

    @field_validator("MONGODB_URL")
    @classmethod
    def validate_mongodb_url(cls, v: SecretStr) -> SecretStr:
        """Validate MongoDB URL format."""
        url = v.get_secret_value()
        if not url.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("Invalid MongoDB URL format")
        return v

    @field_validator("PIVOT_KEY_TYPE")
    @classmethod
    def validate_pivot_key_type(cls, v: str) -> str:
        if v not in PIVOT_KEY_TYPES:
            raise ValueError(f"PIVOT_KEY_TYPE must be one of {PIVOT_KEY_TYPES}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    def get_mongodb_settings(self) -> Dict[str, Any]:
        """
        Returns MongoDB connection settings.
        """
        return {
            "host": self.MONGODB_URL.get_secret_value(),
            "db": self.MONGODB_DB_NAME,
            "connect_timeout_ms": 5000,
            "server_selection_timeout_ms": 5000,
            "tz_aware": True,
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Returns cached settings instance.
    Uses lru_cache to prevent multiple environment variable reads.
    """
    return Settings()
