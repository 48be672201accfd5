"""Pydantic models describing catalog entries, requests and snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from .catalog_sources import MediaType
from .utils import user_key

ContentType = Literal["movies", "shows"]

_CONTENT_TYPE_MEDIA: dict[str, MediaType] = {"movies": "movie", "shows": "tv"}


class Content(BaseModel):
    """A single recommendable catalog entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(min_length=1)
    year: str | None = None
    rating: float | None = None
    genres: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("genres", "genre"),
    )
    description: str = ""
    availability: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("availability", "where_to_watch"),
    )
    media_type: MediaType | None = None

    @field_validator("genres", "availability")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        cleaned: list[str] = []
        for entry in value:
            if entry and entry not in seen:
                seen.add(entry)
                cleaned.append(entry)
        return cleaned

    def effective_rating(self) -> float:
        """Rating used for filtering; unrated entries count as 0.0."""

        return self.rating if self.rating is not None else 0.0

    def to_payload(self) -> dict[str, object]:
        """Serialise for API responses.

        Genre and availability lists are also exposed under the older
        ``genre`` and ``where_to_watch`` names read by existing clients.
        """

        payload = self.model_dump(mode="json")
        payload["genre"] = list(self.genres)
        payload["where_to_watch"] = list(self.availability)
        return payload


class UserPreferences(BaseModel):
    """Request-scoped filtering criteria."""

    model_config = ConfigDict(populate_by_name=True)

    favorite_genres: list[str] = Field(
        validation_alias=AliasChoices("favorite_genres", "favoriteGenres"),
    )
    minimum_rating: float = Field(
        validation_alias=AliasChoices("minimum_rating", "minimumRating"),
    )
    content_type: ContentType | None = Field(
        default=None,
        validation_alias=AliasChoices("content_type", "contentType"),
    )

    @field_validator("content_type", mode="before")
    @classmethod
    def _normalize_content_type(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            lowered = value.strip().lower()
            if not lowered or lowered in {"all", "both"}:
                return None
            if lowered in {"movie", "movies", "film", "films"}:
                return "movies"
            if lowered in {"show", "shows", "tv", "series"}:
                return "shows"
        return value

    @property
    def genre_set(self) -> frozenset[str]:
        return frozenset(self.favorite_genres)

    @property
    def media_type(self) -> MediaType | None:
        if self.content_type is None:
            return None
        return _CONTENT_TYPE_MEDIA[self.content_type]

    def key(self) -> int:
        """Return the rotation key for this preference combination."""

        return user_key(self.favorite_genres, self.minimum_rating, self.content_type)

    def matches(self, content: Content) -> bool:
        """Return whether ``content`` passes the rating and genre filters.

        An empty genre selection matches nothing.
        """

        if content.effective_rating() < self.minimum_rating:
            return False
        media_type = self.media_type
        if media_type is not None and content.media_type != media_type:
            return False
        return not self.genre_set.isdisjoint(content.genres)


class DurableSnapshot(BaseModel):
    """Persisted form of the catalog cache."""

    content: list[Content] = Field(default_factory=list)
    rotation: dict[int, set[str]] = Field(default_factory=dict)
    last_updated: datetime

    @field_validator("last_updated")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("rotation")
    def _serialize_rotation(self, rotation: dict[int, set[str]]) -> dict[str, list[str]]:
        return {str(key): sorted(titles) for key, titles in rotation.items()}
