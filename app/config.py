"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .catalog_sources import CATALOG_SOURCES, CatalogSource


DEFAULT_SOURCE_KEYS: tuple[str, ...] = tuple(source.key for source in CATALOG_SOURCES)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Media Scout", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8080, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_region: str = Field(default="US", alias="TMDB_REGION")

    catalog_sources: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_SOURCE_KEYS, alias="CATALOG_SOURCES"
    )
    catalog_pages: int = Field(default=3, alias="CATALOG_PAGES", ge=1, le=20)
    detail_concurrency: int = Field(
        default=8, alias="DETAIL_CONCURRENCY", ge=1, le=64
    )
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT", gt=0)

    refresh_interval_seconds: int = Field(
        default=43_200, alias="REFRESH_INTERVAL", ge=60
    )
    stale_after_seconds: int = Field(default=43_200, alias="STALE_AFTER", ge=60)

    rotation_floor: int = Field(default=10, alias="ROTATION_FLOOR", ge=0)
    recommendation_limit: int = Field(
        default=20, alias="RECOMMENDATION_LIMIT", ge=1, le=500
    )
    description_limit: int = Field(default=200, alias="DESCRIPTION_LIMIT", ge=0)
    rotation_max_users: int = Field(
        default=10_000, alias="ROTATION_MAX_USERS", ge=0
    )

    snapshot_key: str = Field(default="latest.snapshot", alias="SNAPSHOT_KEY")
    snapshot_retries: int = Field(
        default=3, alias="SNAPSHOT_RETRIES", ge=0, le=10
    )
    snapshot_backoff_base: float = Field(
        default=2.0, alias="SNAPSHOT_BACKOFF_BASE", ge=0
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediascout.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("catalog_sources", mode="before")
    @classmethod
    def _parse_catalog_sources(cls, value: object) -> tuple[str, ...]:
        """Normalise listing source selections from environment values."""

        if value is None:
            return DEFAULT_SOURCE_KEYS
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("CATALOG_SOURCES must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            if not entry:
                continue
            slug = entry.replace("_", "-").replace(" ", "-").lower()
            slug = "-".join(filter(None, slug.split("-")))
            if not slug:
                continue
            if slug not in DEFAULT_SOURCE_KEYS:
                raise ValueError("Unknown catalog sources configured")
            if slug not in cleaned:
                cleaned.append(slug)
        if not cleaned:
            return DEFAULT_SOURCE_KEYS
        return tuple(cleaned)

    @property
    def source_definitions(self) -> tuple[CatalogSource, ...]:
        """Return listing definitions for the selected source keys, in order."""

        source_map = {source.key: source for source in CATALOG_SOURCES}
        return tuple(source_map[key] for key in self.catalog_sources)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
