"""Application configuration."""

import base64
from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Key generation command for documentation (split for line length)
KEY_GEN_CMD = (
    'python -c "import secrets,base64;'
    'print(base64.urlsafe_b64encode(secrets.token_bytes(32)).decode())"'
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "HR Directory API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Database (required - no default)
    database_url: PostgresDsn = Field(
        description="PostgreSQL connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Tenant credential encryption
    encryption_key: str = Field(min_length=32)
    # Comma-separated, oldest to newest
    encryption_key_legacy: str = ""

    # Google Workspace endpoints
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_directory_url: str = "https://admin.googleapis.com/admin/directory/v1/users"

    # Directory fetch
    sync_page_size: int = Field(default=500, ge=1, le=500)
    sync_fetch_timeout_seconds: float = Field(default=300.0, gt=0)
    sync_http_timeout_seconds: float = Field(default=30.0, gt=0)
    sync_rate_limit_max_retries: int = Field(default=3, ge=0)
    sync_rate_limit_max_wait_seconds: float = Field(default=60.0, ge=0)

    # Reconciliation policy
    sync_max_removal_ratio: float = Field(default=0.5, gt=0, le=1)
    sync_removal_guard_min_population: int = Field(default=10, ge=0)
    sync_default_role: str = "EMPLOYEE"

    # Run coordination
    sync_lock_ttl_minutes: int = Field(default=60, ge=1)
    sync_scheduler_enabled: bool = True
    sync_scheduler_interval_minutes: int = Field(default=15, ge=1)

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for deployment requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose detailed error messages."
            )

        url = str(self.database_url)
        if not url.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL starting with 'postgresql://' or 'postgres://'"
            )

        if self.environment == "production":
            try:
                decoded_key = base64.urlsafe_b64decode(self.encryption_key + "=" * (-len(self.encryption_key) % 4))
            except ValueError:
                decoded_key = b""
            if len(decoded_key) != 32:
                raise ValueError(
                    "ENCRYPTION_KEY must be a base64-encoded 32-byte key. "
                    f"Generate with: {KEY_GEN_CMD}"
                )

        return self

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy with asyncpg.

        Converts sslmode parameter to ssl for asyncpg compatibility.
        """
        url = str(self.database_url)
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return url.replace("sslmode=", "ssl=")

    @property
    def encryption_key_legacy_list(self) -> list[str]:
        """Get legacy encryption keys as a list."""
        return [key.strip() for key in self.encryption_key_legacy.split(",") if key.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
