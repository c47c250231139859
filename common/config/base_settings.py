"""
Base settings shared by the API and the jobs.

Values come from the environment or a `.env` file. Applications extend
BaseAppSettings with their own fields.

Example:
    from common.config import BaseAppSettings

    class Settings(BaseAppSettings):
        SUPPORT_FANOUT_CONCURRENCY: int = 8

    settings = Settings()
"""

import logging
from typing import Optional, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    """
    Connection, identity and server settings.
    """

    # ==========================================================================
    # Database
    # ==========================================================================
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "haven"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    # ==========================================================================
    # Bearer tokens (issued by the identity service)
    # ==========================================================================
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_ISSUER: Optional[str] = None
    JWT_AUDIENCE: Optional[str] = None
    JWT_LEEWAY_SECONDS: int = 30

    # ==========================================================================
    # Server
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # Comma-separated origins or "*"
    CORS_ORIGINS: str = "*"
    CORS_ALLOW_CREDENTIALS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("ENVIRONMENT")
    @classmethod
    def _lowercase_environment(cls, value: str) -> str:
        return value.strip().lower()

    def get_cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS into a list."""
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    def validate_required(self) -> None:
        """
        Check the settings a server process cannot start without.

        Raises:
            ValueError: Listing every missing or unsafe setting
        """
        errors = []

        if not self.JWT_SECRET:
            errors.append("JWT_SECRET is required to verify bearer tokens")

        if self.ENVIRONMENT == "production" and "*" in self.get_cors_origins() and self.CORS_ALLOW_CREDENTIALS:
            errors.append("CORS_ORIGINS must list explicit origins when credentials are allowed in production")

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))
