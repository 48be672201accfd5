"""Recommendation orchestration: refresh, restore, filter and rotate."""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from contextlib import suppress
from typing import Any

from ..config import Settings
from ..errors import PersistError, RecommendError, RestoreError, SnapshotNotFound
from ..models import Content, UserPreferences
from .aggregator import CatalogAggregator
from .cache import CatalogCache, CatalogView
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class RestoreOutcome(str, enum.Enum):
    """Result of trying to load the durable snapshot."""

    RESTORED = "restored"
    MISSING = "missing"
    CORRUPT = "corrupt"
    UNAVAILABLE = "unavailable"
    DISABLED = "disabled"


class RecommendationService:
    """Serves recommendations from the shared catalog cache."""

    def __init__(
        self,
        settings: Settings,
        aggregator: CatalogAggregator,
        cache: CatalogCache,
        snapshots: SnapshotStore | None = None,
        *,
        rng: random.Random | None = None,
    ):
        self._settings = settings
        self._aggregator = aggregator
        self._cache = cache
        self._snapshots = snapshots
        self._rng = rng or random.Random()
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None
        self._restore_outcome: RestoreOutcome | None = None

    @property
    def cache(self) -> CatalogCache:
        return self._cache

    @property
    def restore_outcome(self) -> RestoreOutcome | None:
        return self._restore_outcome

    async def start(self) -> None:
        """Restore the last snapshot, refresh if needed and launch the refresh loop."""

        outcome = await self.restore()
        if outcome is not RestoreOutcome.RESTORED or self._cache.is_stale():
            await self.refresh(force=True)
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop the refresh loop and wait for pending snapshot writes."""

        if self._refresh_task is not None:
            self._refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._refresh_task
            self._refresh_task = None
        await self._cache.drain()

    async def restore(self) -> RestoreOutcome:
        """Load the durable snapshot into the cache.

        Every failure is a soft miss; the caller falls back to aggregation.
        """

        outcome = await self._load_snapshot()
        self._restore_outcome = outcome
        return outcome

    async def _load_snapshot(self) -> RestoreOutcome:
        if self._snapshots is None:
            return RestoreOutcome.DISABLED
        try:
            snapshot = await self._snapshots.load()
        except SnapshotNotFound:
            logger.info("No snapshot stored under %s yet", self._snapshots.key)
            return RestoreOutcome.MISSING
        except RestoreError as exc:
            logger.error("Discarding corrupt snapshot: %s", exc)
            return RestoreOutcome.CORRUPT
        except PersistError as exc:
            logger.warning("Snapshot store unavailable: %s", exc)
            return RestoreOutcome.UNAVAILABLE
        if not snapshot.content:
            logger.info("Snapshot %s holds no content; ignoring it", self._snapshots.key)
            return RestoreOutcome.MISSING
        await self._cache.restore(snapshot)
        return RestoreOutcome.RESTORED

    async def refresh(self, *, force: bool = False) -> bool:
        """Re-aggregate the catalog and swap it into the cache.

        Returns ``False`` when aggregation produced nothing, in which case the
        current catalog stays in place.
        """

        async with self._refresh_lock:
            if not force and not self._cache.is_stale():
                return True
            try:
                content = await self._aggregator.aggregate()
            except Exception as exc:
                logger.exception("Catalog aggregation crashed: %s", exc)
                return False
            if not content:
                logger.warning("Aggregation returned no content; keeping current catalog")
                return False
            await self._cache.replace(content)
            return True

    async def recommend(self, prefs: UserPreferences) -> list[Content]:
        """Return up to the configured number of unseen matching titles.

        Upstream and storage outages only ever shrink or age the result; an
        empty list is a valid answer.
        """

        try:
            view = await self._current_catalog()
            if view is None:
                return []
            candidates = [item for item in view.items if prefs.matches(item)]
            if not candidates:
                return []
            selection = await self._cache.select(
                prefs.key(),
                candidates,
                generation=view.generation,
                floor=self._settings.rotation_floor,
                limit=self._settings.recommendation_limit,
                rng=self._rng,
            )
        except Exception as exc:
            raise RecommendError("Unable to build recommendations") from exc

        if selection.reset:
            logger.info(
                "Rotation reset for %s candidate(s) below floor %s",
                len(candidates),
                self._settings.rotation_floor,
            )
        if selection.items:
            self._cache.schedule_persist()
        return selection.items

    async def _current_catalog(self) -> CatalogView | None:
        view = await self._cache.read()
        if view is None and self._restore_outcome is None:
            await self.restore()
            view = await self._cache.read()
        if not self._cache.is_stale():
            return view
        if view is not None and self._refresh_lock.locked():
            # Another task is already refreshing; serve what we have.
            return view
        await self.refresh()
        return await self._cache.read()

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.refresh_interval_seconds)
            try:
                await self.refresh(force=True)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Scheduled refresh failed: %s", exc)

    def status(self) -> dict[str, Any]:
        """Expose cache and aggregation state for the status endpoint."""

        last_updated = self._cache.last_updated
        report = self._aggregator.last_report
        return {
            "lastUpdated": last_updated.isoformat() if last_updated else None,
            "items": self._cache.item_count,
            "stale": self._cache.is_stale(),
            "generation": self._cache.generation,
            "rotationUsers": len(self._cache.rotation),
            "restore": self._restore_outcome.value if self._restore_outcome else None,
            "refreshing": self._refresh_lock.locked(),
            "lastAggregation": report.to_payload() if report else None,
        }
