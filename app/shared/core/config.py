from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"
ENV_LOCAL = "local"

_WEAK_SESSION_SECRETS = {
    "change_me",
    "changeme",
    "default",
    "secret",
    "session_secret",
}


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


class Settings(BaseSettings):
    """
    Main configuration for the SCIM bridge.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "SCIM Bridge"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: local, development, staging, production
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Public base URL used to build meta.location for SCIM resources.
    API_URL: str = "http://localhost:8000"
    CORS_ORIGINS: list[str] = []

    # Database
    DATABASE_URL: str = ""
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Operator sessions are issued by the OIDC login flow and verified here.
    SESSION_JWT_SECRET: Optional[str] = None
    SESSION_JWT_AUDIENCE: str = "authenticated"
    SESSION_COOKIE_NAME: str = "scim_session"
    SESSION_TTL_MINUTES: int = 60

    # Provisioning API keys
    API_KEY_PREFIX: str = "scim_"
    API_KEY_DISPLAY_PREFIX_LENGTH: int = 8

    # SCIM list pagination
    SCIM_DEFAULT_PAGE_SIZE: int = 10
    SCIM_MAX_PAGE_SIZE: int = Field(default=200, ge=1)

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        """Centralized validation, grouped by concern."""
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )
        if self.SCIM_DEFAULT_PAGE_SIZE < 0:
            raise ValueError("SCIM_DEFAULT_PAGE_SIZE must be >= 0.")
        if self.SCIM_DEFAULT_PAGE_SIZE > self.SCIM_MAX_PAGE_SIZE:
            raise ValueError("SCIM_DEFAULT_PAGE_SIZE must not exceed SCIM_MAX_PAGE_SIZE.")
        if self.TESTING:
            return self

        self._validate_session_config()
        self._validate_database_config()
        return self

    def _validate_session_config(self) -> None:
        secret = str(self.SESSION_JWT_SECRET or "").strip()
        if len(secret) < 32:
            raise ValueError("SESSION_JWT_SECRET must be set to a secure value (>= 32 chars).")
        if secret.lower() in _WEAK_SESSION_SECRETS:
            raise ValueError("SESSION_JWT_SECRET must not be a placeholder value.")

    def _validate_database_config(self) -> None:
        if self.is_production and not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is required in production.")
        if self.is_production and not self.API_URL.startswith("https://"):
            raise ValueError("API_URL must use https in production.")

    @property
    def is_production(self) -> bool:
        """True only when ENVIRONMENT is explicitly set to 'production'."""
        return self.ENVIRONMENT == ENV_PRODUCTION
