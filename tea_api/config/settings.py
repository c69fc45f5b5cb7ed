"""Application settings and configuration."""

import logging

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tea_api.config.cors_config import CORSConfiguration, CORSConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application (hardcoded constants)
    app_name: str = "Tea API"
    app_version: str = "0.1.0"

    # Environment-specific settings
    debug: bool = False
    environment: str  # development, staging, production

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    database_echo: bool = False
    database_create_schema: bool = False

    # API
    api_prefix: str = "/api/v1"

    # CORS (credentials are always on, the refresh token travels in a cookie)
    cors_allow_origins: str | None = None
    cors_max_age: int = 600

    # Security
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    # Telegram login
    telegram_bot_token: str = ""
    telegram_auth_max_age_seconds: int = 86400

    # Refresh token cookie
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str | None = None
    refresh_cookie_secure: bool = True

    # Rate limiting
    rate_limit_default: str = "120/minute"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"development", "staging", "production"}
        env = str(v).lower()
        if env not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}, got {env}")
        return env

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only the symmetric HMAC family is accepted for signing."""
        algorithm = v.upper()
        if algorithm not in {"HS256", "HS384", "HS512"}:
            raise ValueError(f"JWT algorithm must be one of HS256, HS384, HS512, got {v}")
        return algorithm

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Log format must be 'json' or 'text', got {v}")
        return fmt

    @model_validator(mode="after")
    def default_refresh_cookie_path(self) -> "Settings":
        """Scope the refresh cookie to the auth routes unless configured otherwise."""
        if self.refresh_cookie_path is None:
            self.refresh_cookie_path = f"{self.api_prefix}/auth"
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_cors_configuration(self) -> CORSConfiguration:
        """Get CORS configuration based on environment settings.

        Returns:
            CORSConfiguration instance

        Raises:
            CORSConfigurationError: If CORS configuration is invalid or insecure.

        """
        try:
            return CORSConfiguration(
                allow_origins=self.cors_allow_origins,
                max_age=self.cors_max_age,
                environment=self.environment,
            )
        except CORSConfigurationError as exc:
            logger.error(f"Failed to create CORS configuration: {exc}")
            raise


settings = Settings()  # type: ignore[call-arg]
