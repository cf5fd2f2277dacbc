"""
Server configuration for the Super Dashboard API.

Values come from an optional ``.env`` file overlaid by the process
environment; environment variables always win over the file.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("debug", "info", "warning", "warn", "error", "critical")


class ConfigError(Exception):
    """Raised when the environment holds a value that cannot be coerced."""


class Settings(BaseSettings):
    """ENV, PORT, DATABASE_URL and friends, typed and read once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    # Server
    env: str = Field(default="development", description="ENV")
    port: str = Field(default="8080", description="PORT")
    log_level: str = Field(default="info", description="LOG_LEVEL")
    cors_origins: str = Field(default="*", description="CORS_ORIGINS")

    # Database (Postgres expected)
    database_url: str = Field(default="", description="DATABASE_URL")

    # Refresh token store (Redis)
    redis_url: str = Field(default="", description="REDIS_URL")

    # Auth
    jwt_secret: str = Field(default="", description="JWT_SECRET")
    google_client_id: str = Field(default="", description="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", description="GOOGLE_CLIENT_SECRET")
    auth_rate_limit: int = Field(default=5, ge=1, description="AUTH_RATE_LIMIT")
    auth_rate_window_seconds: int = Field(default=60, ge=1, description="AUTH_RATE_WINDOW_SECONDS")

    # Third-party data providers
    odds_api_key: str = Field(default="", description="ODDS_API_KEY")
    alpha_vantage_api_key: str = Field(default="", description="ALPHA_VANTAGE_API_KEY")

    # Development toggles
    use_mock_data: bool = Field(default=True, description="USE_MOCK_DATA")
    mock_data_dir: str = Field(default="", description="MOCK_DATA_DIR")

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: str) -> str:
        value = value.strip()
        if not value.isdigit() or not 0 < int(value) < 65536:
            raise ValueError(f"port must be a number between 1 and 65535, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return value

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def port_number(self) -> int:
        return int(self.port)

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """
    Build settings from ``env_file`` (if it exists) and the process environment.

    A missing file is not an error. Values that cannot be coerced to their
    declared type raise ConfigError naming the offending variables.
    """
    try:
        return Settings(_env_file=env_file)
    except ValidationError as exc:
        names = sorted({str(err["loc"][0]).upper() for err in exc.errors() if err.get("loc")})
        raise ConfigError(
            f"invalid configuration for {', '.join(names) or 'settings'}: {exc}"
        ) from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for the process entrypoint, loaded on first use."""
    return load_settings()
