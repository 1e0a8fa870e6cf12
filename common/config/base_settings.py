"""
Base settings class for environment configuration.

Uses Pydantic Settings for automatic environment variable loading.
Extend this class for application-specific settings.

Example:
    from common.config import BaseAppSettings

    class Settings(BaseAppSettings):
        MAX_SESSIONS_PER_USER: int = 3

    settings = Settings()
    print(settings.MONGODB_URI)
"""

import re
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PATTERN = re.compile(r"^\d+[dhms]$")


class BaseAppSettings(BaseSettings):
    """
    Base settings class with common configuration options.

    Automatically loads values from environment variables.
    Extend this class for application-specific settings.
    """

    # ==========================================================================
    # Database Settings
    # ==========================================================================
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "gemini_gateway"

    # ==========================================================================
    # JWT Settings
    # ==========================================================================
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE: str = "7d"  # <int><d|h|m|s>
    JWT_ISSUER: str = "gemini-api-server"
    JWT_AUDIENCE: str = "gemini-api-client"
    JWT_COOKIE_NAME: str = "token"

    # ==========================================================================
    # Password Settings
    # ==========================================================================
    BCRYPT_ROUNDS: int = 10
    PASSWORD_MIN_LENGTH: int = 8

    # ==========================================================================
    # Server Settings
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production, test
    TESTING: bool = False

    # CORS Settings
    CORS_ORIGINS: str = "*"  # Comma-separated origins or "*"
    CORS_ALLOW_CREDENTIALS: bool = True

    # ==========================================================================
    # Pydantic Settings Configuration
    # ==========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",  # Allow app-specific settings
        case_sensitive=True,
    )

    def get_cors_origins(self) -> list:
        """Parse CORS_ORIGINS into a list."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    def is_testing(self) -> bool:
        """Check if running under tests (disables background jobs)."""
        return self.TESTING or self.ENVIRONMENT.lower() == "test"

    def collect_config_errors(self) -> List[str]:
        """Every configuration problem found. Extend in subclasses."""
        errors = []

        if not self.JWT_SECRET:
            errors.append("JWT_SECRET is required")
        elif self.is_production() and len(self.JWT_SECRET) < 32:
            errors.append("JWT_SECRET must be at least 32 characters in production")

        if not _DURATION_PATTERN.match(self.JWT_EXPIRE):
            errors.append("JWT_EXPIRE must look like 7d, 24h, 60m or 3600s")

        if self.BCRYPT_ROUNDS < 4 or self.BCRYPT_ROUNDS > 31:
            errors.append("BCRYPT_ROUNDS must be between 4 and 31")

        return errors

    def validate_required(self) -> None:
        """
        Validate that required settings are configured.

        Raises:
            ValueError: If required settings are missing
        """
        errors = self.collect_config_errors()
        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))
