"""Build the catalog from the configured TMDB listings."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..catalog_sources import CatalogSource, MediaType
from ..config import Settings
from ..errors import FetchError
from ..models import Content
from ..utils import parse_release_year, truncate_description
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AggregationReport:
    """Outcome counters for one aggregation run."""

    configured: bool = True
    attempted: int = 0
    failed: int = 0
    duplicates: int = 0
    items: int = 0
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def upstream_down(self) -> bool:
        """True when every listing call failed (or none could be made)."""

        if not self.configured:
            return True
        return self.attempted > 0 and self.failed == self.attempted

    def to_payload(self) -> dict[str, Any]:
        return {
            "configured": self.configured,
            "attempted": self.attempted,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "items": self.items,
            "upstreamDown": self.upstream_down,
            "finishedAt": self.finished_at.isoformat(),
        }


class CatalogAggregator:
    """Fetches listings, deduplicates them and normalises entries to :class:`Content`.

    Upstream ids are only meaningful within one media type, so the
    deduplication key is ``(media_type, id)``. That set lives for a single run.
    """

    def __init__(
        self,
        settings: Settings,
        client: TMDBClient,
        *,
        rng: random.Random | None = None,
    ):
        self._settings = settings
        self._client = client
        self._rng = rng or random.Random()
        self._semaphore = asyncio.Semaphore(settings.detail_concurrency)
        self.last_report: AggregationReport | None = None

    async def aggregate(self) -> list[Content]:
        """Return a shuffled, deduplicated catalog.

        Individual failures are logged and skipped; if everything fails the
        result is simply empty and :attr:`last_report` flags the outage.
        """

        report = AggregationReport()
        if not self._client.configured:
            logger.warning("TMDB API key missing; aggregation skipped")
            report.configured = False
            self.last_report = report
            return []

        requests = [
            (source, page)
            for source in self._settings.source_definitions
            for page in range(1, self._settings.catalog_pages + 1)
        ]
        report.attempted = len(requests)
        pages = await asyncio.gather(
            *(self._client.fetch_listing(source, page) for source, page in requests),
            return_exceptions=True,
        )

        seen: set[tuple[MediaType, int]] = set()
        pending: list[tuple[CatalogSource, int, dict[str, Any]]] = []
        for (source, page), result in zip(requests, pages):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                report.failed += 1
                logger.warning("Skipping %s page %s: %s", source.key, page, result)
                continue
            for raw in result:
                tmdb_id = self._extract_id(raw)
                if tmdb_id is None:
                    continue
                identity = (source.media_type, tmdb_id)
                if identity in seen:
                    report.duplicates += 1
                    continue
                seen.add(identity)
                pending.append((source, tmdb_id, raw))

        built = await asyncio.gather(
            *(self._build(source, tmdb_id, raw) for source, tmdb_id, raw in pending)
        )
        content = [item for item in built if item is not None]
        self._rng.shuffle(content)

        report.items = len(content)
        report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        if report.upstream_down:
            logger.error("All %s TMDB listing calls failed", report.attempted)
        else:
            logger.info(
                "Aggregated %s item(s) from %s listing page(s) (%s failed, %s duplicate(s))",
                report.items,
                report.attempted,
                report.failed,
                report.duplicates,
            )
        return content

    async def _build(
        self, source: CatalogSource, tmdb_id: int, raw: dict[str, Any]
    ) -> Content | None:
        title = str(raw.get("title") or raw.get("name") or "").strip()
        if not title:
            return None

        genres, providers = await asyncio.gather(
            self._detail(self._client.fetch_genres, source.media_type, tmdb_id),
            self._detail(self._client.fetch_providers, source.media_type, tmdb_id),
        )
        return Content(
            title=title,
            year=parse_release_year(raw.get("release_date") or raw.get("first_air_date")),
            rating=self._extract_rating(raw.get("vote_average")),
            genres=genres,
            description=truncate_description(
                raw.get("overview"), self._settings.description_limit
            ),
            availability=providers,
            media_type=source.media_type,
        )

    async def _detail(self, fetch, media_type: MediaType, tmdb_id: int) -> list[str]:
        try:
            async with self._semaphore:
                return await fetch(media_type, tmdb_id)
        except FetchError as exc:
            logger.warning("Detail lookup degraded for %s %s: %s", media_type, tmdb_id, exc)
            return []

    @staticmethod
    def _extract_id(raw: dict[str, Any]) -> int | None:
        value = raw.get("id")
        if isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _extract_rating(value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
