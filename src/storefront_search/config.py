"""Application configuration powered by Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import cast

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    api_base_url: str = Field(
        "http://localhost:3000/api",
        alias="STOREFRONT_API_URL",
        min_length=1,
        description="Base URL of the storefront REST API (search, history, products).",
    )
    api_timeout: float = Field(
        10.0,
        alias="STOREFRONT_API_TIMEOUT",
        ge=1.0,
        le=60.0,
        description="Timeout in seconds for storefront HTTP calls.",
    )
    search_debounce_ms: int = Field(
        300,
        alias="SEARCH_DEBOUNCE_MS",
        ge=0,
        le=5000,
        description="Quiet period applied to query keystrokes before a search is issued.",
    )
    suggestion_debounce_ms: int = Field(200, alias="SUGGESTION_DEBOUNCE_MS", ge=0, le=5000)
    search_page_size: int = Field(10, alias="SEARCH_PAGE_SIZE", ge=1, le=100)
    search_history_limit: int = Field(10, alias="SEARCH_HISTORY_LIMIT", ge=1, le=100)
    search_path: str = Field(
        "/search",
        alias="SEARCH_PATH",
        description="Path of the search page whose query string mirrors the search state.",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        validate_by_name=True,
        extra="ignore",
    )

    @field_validator("api_base_url", mode="before")
    @classmethod
    def ensure_base_url_has_value(cls, value: str | None) -> str:
        """Fallback to the default API URL when an empty string is provided.

        Container runtimes forward ``-e NAME=$NAME`` as an empty string when the
        variable is undefined on the host, which would otherwise fail the
        ``min_length`` constraint.
        """
        default_url = cast(str, cls.model_fields["api_base_url"].default)
        if value is None or str(value).strip() == "":
            return default_url
        return str(value).strip().rstrip("/")

    @field_validator("search_path")
    @classmethod
    def ensure_absolute_path(cls, value: str) -> str:
        """Reject relative search paths so built URLs stay stable."""
        if not value.startswith("/"):
            raise ValueError("search_path must start with '/'")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]


settings = get_settings()

__all__ = ["Settings", "get_settings", "settings"]
