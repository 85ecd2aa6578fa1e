"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Media Tracker", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")
    base_path: str = Field(default="", alias="BASE_PATH")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    mal_client_id: str | None = Field(default=None, alias="MAL_CLIENT_ID")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    mal_api_url: HttpUrl = Field(
        default="https://api.myanimelist.net/v2", alias="MAL_API_URL"
    )
    steam_store_url: HttpUrl = Field(
        default="https://store.steampowered.com", alias="STEAM_STORE_URL"
    )
    steamspy_api_url: HttpUrl = Field(
        default="https://steamspy.com/api.php", alias="STEAMSPY_API_URL"
    )
    provider_timeout_seconds: float = Field(
        default=15.0, alias="PROVIDER_TIMEOUT", gt=0, le=120
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediatracker.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("base_path", mode="before")
    @classmethod
    def _normalise_base_path(cls, value: object) -> str:
        """Store the base path with one leading slash and no trailing slash."""

        if value is None:
            return ""
        if not isinstance(value, str):
            raise TypeError("BASE_PATH must be a string")
        stripped = value.strip().strip("/")
        if not stripped:
            return ""
        if any(not segment for segment in stripped.split("/")):
            raise ValueError("BASE_PATH must not contain empty segments")
        return f"/{stripped}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
