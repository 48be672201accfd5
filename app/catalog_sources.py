"""Upstream listing definitions aggregated into the catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


MediaType = Literal["movie", "tv"]


@dataclass(frozen=True)
class CatalogSource:
    """Describes one paginated TMDB listing feeding the catalog."""

    key: str
    path: str
    media_type: MediaType


CATALOG_SOURCES: tuple[CatalogSource, ...] = (
    CatalogSource(key="trending-movie-day", path="/trending/movie/day", media_type="movie"),
    CatalogSource(key="trending-movie-week", path="/trending/movie/week", media_type="movie"),
    CatalogSource(key="trending-tv-day", path="/trending/tv/day", media_type="tv"),
    CatalogSource(key="trending-tv-week", path="/trending/tv/week", media_type="tv"),
    CatalogSource(key="popular-movie", path="/movie/popular", media_type="movie"),
    CatalogSource(key="popular-tv", path="/tv/popular", media_type="tv"),
    CatalogSource(key="top-rated-movie", path="/movie/top_rated", media_type="movie"),
    CatalogSource(key="top-rated-tv", path="/tv/top_rated", media_type="tv"),
    CatalogSource(key="now-playing-movie", path="/movie/now_playing", media_type="movie"),
    CatalogSource(key="on-the-air-tv", path="/tv/on_the_air", media_type="tv"),
)
