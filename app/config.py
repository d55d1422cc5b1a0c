"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineScout", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_token: str | None = Field(default=None, alias="TMDB_API_TOKEN")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_url: HttpUrl = Field(
        default="https://image.tmdb.org/t/p", alias="TMDB_IMAGE_URL"
    )
    tmdb_language: str = Field(default="zh-CN", alias="TMDB_LANGUAGE")
    tmdb_retry_attempts: int = Field(
        default=3, alias="TMDB_RETRY_ATTEMPTS", ge=1, le=10
    )
    tmdb_retry_backoff_seconds: float = Field(
        default=1.0, alias="TMDB_RETRY_BACKOFF", ge=0
    )
    placeholder_image: str = Field(
        default="/placeholder.svg", alias="PLACEHOLDER_IMAGE"
    )

    search_debounce_ms: int = Field(
        default=500, alias="SEARCH_DEBOUNCE_MS", ge=0, le=10_000
    )
    scroll_threshold_px: int = Field(
        default=500, alias="SCROLL_THRESHOLD_PX", ge=0
    )

    watchlist_key: str = Field(default="movie-watchlist", alias="WATCHLIST_KEY")
    database_url: str = Field(
        default="sqlite:///./cinescout.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_token", mode="before")
    @classmethod
    def _strip_token(cls, value: object) -> str | None:
        """Treat blank tokens as missing and drop a pasted ``Bearer`` prefix."""

        if value is None:
            return None
        token = str(value).strip()
        if token.lower().startswith("bearer "):
            token = token[len("bearer ") :].strip()
        return token or None

    @field_validator("tmdb_language", "watchlist_key")
    @classmethod
    def _require_non_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Value must not be blank")
        return cleaned

    @property
    def search_debounce_seconds(self) -> float:
        """Return the debounce quiet interval in seconds."""

        return self.search_debounce_ms / 1000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
