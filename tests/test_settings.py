"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import DEFAULT_SOURCE_KEYS, Settings


def test_defaults_match_refresh_and_rotation_rules() -> None:
    settings = Settings(_env_file=None)

    assert settings.refresh_interval_seconds == 12 * 3600
    assert settings.stale_after_seconds == 12 * 3600
    assert settings.rotation_floor == 10
    assert settings.recommendation_limit == 20
    assert settings.description_limit == 200
    assert settings.snapshot_key == "latest.snapshot"
    assert settings.snapshot_retries == 3
    assert settings.tmdb_api_key is None


def test_catalog_sources_subset_selection() -> None:
    """Settings should respect custom listing selections."""

    settings = Settings(_env_file=None, CATALOG_SOURCES="popular-movie,top-rated-tv")

    assert settings.catalog_sources == ("popular-movie", "top-rated-tv")
    assert [source.path for source in settings.source_definitions] == [
        "/movie/popular",
        "/tv/top_rated",
    ]


def test_catalog_sources_are_normalised() -> None:
    settings = Settings(
        _env_file=None,
        CATALOG_SOURCES=["Popular_Movie", "TRENDING TV DAY", "popular-movie"],
    )

    assert settings.catalog_sources == ("popular-movie", "trending-tv-day")


def test_catalog_sources_blank_defaults() -> None:
    settings = Settings(_env_file=None, CATALOG_SOURCES="")

    assert settings.catalog_sources == DEFAULT_SOURCE_KEYS


def test_catalog_sources_invalid_raises() -> None:
    with pytest.raises(ValueError, match="Unknown catalog sources configured"):
        Settings(_env_file=None, CATALOG_SOURCES="does-not-exist")


def test_catalog_sources_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("CATALOG_SOURCES", "on-the-air-tv, now-playing-movie")

    settings = Settings(_env_file=None)

    assert settings.catalog_sources == ("on-the-air-tv", "now-playing-movie")
