"""
Configuration and settings for the portfolio backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SESSION_SECRET = "portfolio-dev-secret"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Record store (Supabase Postgres, or any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # Supabase project (auth REST API)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)

    # Object store (Supabase storage through its S3-compatible endpoint)
    storage_bucket: str = Field(default="project-images")
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    storage_url_marker: str = Field(default="supabase")
    storage_cache_control: str = Field(default="3600")
    max_image_bytes: int = Field(default=5 * 1024 * 1024)

    # Admin session
    session_secret: str = Field(default=DEFAULT_SESSION_SECRET)
    session_https_only: bool = Field(default=False)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "PORTFOLIO_USE_IN_MEMORY_BACKENDS"
        ),
    )

    @property
    def resolved_storage_endpoint(self) -> Optional[str]:
        if self.storage_endpoint:
            return self.storage_endpoint
        if self.supabase_url:
            return f"{self.supabase_url.rstrip('/')}/storage/v1/s3"
        return None

    @property
    def resolved_public_base_url(self) -> Optional[str]:
        if self.storage_public_base_url:
            return self.storage_public_base_url.rstrip("/")
        if self.supabase_url:
            return (
                f"{self.supabase_url.rstrip('/')}/storage/v1/object/public/"
                f"{self.storage_bucket}"
            )
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
