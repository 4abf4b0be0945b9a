"""
Application settings using pydantic-settings for type-safe configuration.

All environment variables are centralized here with proper typing, validation,
and sensible defaults. Settings are loaded once at startup and cached.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Production values should be set via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not defined here
        case_sensitive=False,
        populate_by_name=True,
    )

    # === Grouping Store ===
    grouping_store: str = Field(
        default="memory",
        description="Where grouping states live: 'memory' (single process) or 'pocketbase'",
    )
    config_from_pocketbase: bool = Field(
        default=False,
        description="Read grouping defaults from the PocketBase config collection",
    )
    skip_pb_auth: bool = Field(
        default=False,
        description="Skip PocketBase authentication on startup (for testing)",
    )

    # === PocketBase ===
    pocketbase_url: str = Field(
        default="http://127.0.0.1:8090",
        description="PocketBase server URL",
    )
    pocketbase_admin_email: str = Field(
        default="admin@camp.local",
        description="PocketBase admin email for API authentication",
    )
    pocketbase_admin_password: str = Field(
        default="",
        description="PocketBase admin password",
    )

    # === CORS ===
    allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS",
        description="Allowed CORS origins (comma-separated)",
    )

    @field_validator("grouping_store", mode="after")
    @classmethod
    def validate_grouping_store(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "pocketbase"):
            raise ValueError(f"grouping_store must be 'memory' or 'pocketbase', got '{v}'")
        return v

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins string into list."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    @property
    def uses_pocketbase(self) -> bool:
        return self.grouping_store == "pocketbase" or self.config_from_pocketbase


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once on first call and cached for the lifetime of
    the process. Call ``get_settings.cache_clear()`` in tests that change
    the environment.
    """
    return Settings()
