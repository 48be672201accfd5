"""Client for the listing and detail endpoints of The Movie Database (TMDB)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from ..catalog_sources import CatalogSource, MediaType
from ..config import Settings
from ..errors import FetchError, UpstreamUnavailable
from ..utils import retry_async

logger = logging.getLogger(__name__)

_PROVIDER_SECTIONS = ("flatrate", "free", "ads", "rent", "buy")


def _listing_backoff(retry: int) -> float:
    return min(2 ** (retry - 1), 5) + (0.1 * retry)


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        max_retries: int = 2,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self._settings = settings
        self._client = http_client
        self._max_retries = max_retries
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self._settings.tmdb_api_key)

    async def fetch_listing(self, source: CatalogSource, page: int) -> list[dict[str, Any]]:
        """Return the raw results of one page of a listing endpoint."""

        description = f"{source.key} page {page}"

        async def _request() -> Any:
            return await self._get(
                source.path,
                params={"language": "en-US", "page": page},
                description=description,
            )

        payload = await retry_async(
            _request,
            retries=self._max_retries,
            backoff=_listing_backoff,
            retry_on=(UpstreamUnavailable,),
            sleep=self._sleep,
            description=f"TMDB {description}",
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise FetchError(description, "response has no results list")
        return [entry for entry in results if isinstance(entry, dict)]

    async def fetch_genres(self, media_type: MediaType, tmdb_id: int) -> list[str]:
        """Return the genre names attached to a title."""

        payload = await self._get(
            f"/{media_type}/{tmdb_id}",
            params={"language": "en-US"},
            description=f"{media_type} {tmdb_id} details",
        )
        genres = payload.get("genres") if isinstance(payload, dict) else None
        if not isinstance(genres, list):
            return []
        names: list[str] = []
        for genre in genres:
            if isinstance(genre, dict) and genre.get("name"):
                names.append(str(genre["name"]))
        return names

    async def fetch_providers(self, media_type: MediaType, tmdb_id: int) -> list[str]:
        """Return provider names offering a title in the configured region."""

        payload = await self._get(
            f"/{media_type}/{tmdb_id}/watch/providers",
            params={},
            description=f"{media_type} {tmdb_id} providers",
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, dict):
            return []
        region = results.get(self._settings.tmdb_region)
        if not isinstance(region, dict):
            return []

        providers: list[str] = []
        for section in _PROVIDER_SECTIONS:
            entries = region.get(section)
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                name = entry.get("provider_name")
                if name and name not in providers:
                    providers.append(str(name))
        return providers

    async def _get(
        self, path: str, *, params: dict[str, Any], description: str
    ) -> Any:
        query = {**params, "api_key": self._settings.tmdb_api_key}
        try:
            response = await self._client.get(path, params=query)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(description, f"timed out ({exc.__class__.__name__})") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(description, str(exc) or exc.__class__.__name__) from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise UpstreamUnavailable(description, f"HTTP {status}")
        if status >= 400:
            raise FetchError(description, f"HTTP {status}")
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(description, "non-JSON response") from exc
