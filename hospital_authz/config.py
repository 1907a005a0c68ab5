"""
Application configuration.

Loads settings from environment variables (prefix HMS_) with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Statuses a browser follows with a GET or a replay
REDIRECT_STATUS_CODES = (301, 302, 303, 307, 308)


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="HMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"

    # ==========================================================================
    # API Server
    # ==========================================================================

    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Session (server-side session mode)
    # ==========================================================================

    session_secret_key: str = "dev-session-secret-change-in-production"
    session_cookie: str = "hms_session"
    session_idle_timeout_minutes: int = 30

    # ==========================================================================
    # Bearer tokens (claims mode)
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    # Issuer / audience are only validated when set
    jwt_issuer: str = ""
    jwt_audience: str = ""
    jwt_leeway_seconds: int = 0

    # ==========================================================================
    # Authorization
    # ==========================================================================

    login_path: str = "/Account/Login"
    access_denied_path: str = "/Account/AccessDenied"
    redirect_status_code: int = 302

    # YAML file replacing the built-in role → permission table
    permission_matrix_file: str = ""

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Validation
    # ==========================================================================

    @field_validator("redirect_status_code")
    @classmethod
    def check_redirect_status(cls, value: int) -> int:
        if value not in REDIRECT_STATUS_CODES:
            allowed = ", ".join(str(code) for code in REDIRECT_STATUS_CODES)
            raise ValueError(f"redirect_status_code must be one of {allowed}, got {value}")
        return value

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def session_max_age(self) -> int:
        return self.session_idle_timeout_minutes * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
