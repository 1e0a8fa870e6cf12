"""
Gemini Gateway application settings.

Extends the base settings with session limits, sweep scheduling and
credential endpoint throttling.
"""

from typing import List

from limits import parse

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Gateway-specific settings."""

    # ==========================================================================
    # Session Settings
    # ==========================================================================
    # Active sessions per user before the oldest is evicted
    MAX_SESSIONS_PER_USER: int = 5

    # Background sweep of expired sessions
    SESSION_SWEEP_INTERVAL_SECONDS: int = 3600

    # How long revoked sessions are kept before the sweep removes them
    SESSION_REVOKED_RETENTION_DAYS: int = 30

    # ==========================================================================
    # Rate Limit Settings (per client IP)
    # ==========================================================================
    RATE_LIMIT_ENABLED: bool = True
    # Failed login attempts only; successful logins are not counted
    LOGIN_RATE_LIMIT: str = "5/15 minutes"
    REGISTER_RATE_LIMIT: str = "3/hour"
    # "memory://" per process, or a shared store such as "mongodb://host:27017"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    def collect_config_errors(self) -> List[str]:
        errors = super().collect_config_errors()

        if self.MAX_SESSIONS_PER_USER < 1:
            errors.append("MAX_SESSIONS_PER_USER must be at least 1")

        if self.SESSION_SWEEP_INTERVAL_SECONDS < 1:
            errors.append("SESSION_SWEEP_INTERVAL_SECONDS must be positive")

        for name in ("LOGIN_RATE_LIMIT", "REGISTER_RATE_LIMIT"):
            try:
                parse(getattr(self, name))
            except ValueError:
                errors.append(f"{name} must look like 5/15 minutes or 3/hour")

        return errors


# Global settings instance
settings = Settings()
