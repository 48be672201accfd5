"""In-process catalog cache with staleness tracking."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Sequence

from ..locks import ReadWriteLock
from ..models import Content, DurableSnapshot
from .rotation import RotationStore, Selection

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
PersistCallback = Callable[[DurableSnapshot], Awaitable[object]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class CatalogView:
    """Immutable view of the catalog at the time it was read."""

    items: tuple[Content, ...]
    generation: int
    last_updated: datetime | None


class CatalogCache:
    """Holds the current catalog and the rotation state derived from it.

    Reads run under the shared side of a :class:`ReadWriteLock`; every
    mutation happens under the exclusive side and never awaits I/O while
    holding it. Durable writes are scheduled as background tasks once the
    lock has been released.
    """

    DEFAULT_KEY = "latest"

    def __init__(
        self,
        rotation: RotationStore | None = None,
        *,
        stale_after: timedelta = timedelta(hours=12),
        persist: PersistCallback | None = None,
        clock: Clock = utcnow,
    ):
        self._rotation = rotation if rotation is not None else RotationStore()
        self._stale_after = stale_after
        self._persist = persist
        self._clock = clock
        self._lock = ReadWriteLock()
        self._data: dict[str, tuple[Content, ...]] = {}
        self._last_updated: datetime | None = None
        self._generation = 0
        self._persist_task: asyncio.Task[None] | None = None
        self._persist_again = False

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def rotation(self) -> RotationStore:
        return self._rotation

    @property
    def item_count(self) -> int:
        return len(self._data.get(self.DEFAULT_KEY, ()))

    def is_stale(self, now: datetime | None = None) -> bool:
        """Return whether the catalog is older than the refresh threshold.

        An empty cache is always stale. Staleness is advisory: stale content
        keeps being served until a replacement arrives.
        """

        if self._last_updated is None:
            return True
        current = now or self._clock()
        return current - self._last_updated > self._stale_after

    async def read(self, key: str = DEFAULT_KEY) -> CatalogView | None:
        """Return the cached catalog, or ``None`` when nothing is loaded."""

        async with self._lock.shared():
            items = self._data.get(key)
            if items is None:
                return None
            return CatalogView(
                items=items,
                generation=self._generation,
                last_updated=self._last_updated,
            )

    async def replace(
        self, content: Sequence[Content], key: str = DEFAULT_KEY
    ) -> None:
        """Swap in a freshly aggregated catalog and reset all rotation state."""

        items = tuple(content)
        async with self._lock.exclusive():
            data = dict(self._data)
            data[key] = items
            self._data = data
            self._last_updated = self._clock()
            self._generation += 1
            self._rotation.clear()
        logger.info("Catalog replaced with %s item(s)", len(items))
        self.schedule_persist()

    async def restore(self, snapshot: DurableSnapshot, key: str = DEFAULT_KEY) -> None:
        """Install a previously persisted snapshot without writing it back."""

        async with self._lock.exclusive():
            self._data = {key: tuple(snapshot.content)}
            self._last_updated = snapshot.last_updated
            self._generation += 1
            self._rotation.load(snapshot.rotation)
        logger.info(
            "Restored %s item(s) and %s rotation entr%s from snapshot",
            len(snapshot.content),
            len(snapshot.rotation),
            "y" if len(snapshot.rotation) == 1 else "ies",
        )

    async def select(
        self,
        user_key: int,
        candidates: Sequence[Content],
        *,
        generation: int,
        floor: int,
        limit: int,
        rng: random.Random | None = None,
    ) -> Selection:
        """Run a rotation pass for ``user_key`` under the exclusive section.

        Served titles are only recorded when the candidates came from the
        catalog generation that is still current.
        """

        async with self._lock.exclusive():
            return self._rotation.select(
                user_key,
                candidates,
                floor=floor,
                limit=limit,
                rng=rng,
                record=generation == self._generation,
            )

    async def snapshot(self, key: str = DEFAULT_KEY) -> DurableSnapshot:
        """Copy the current state out for persistence."""

        async with self._lock.shared():
            return DurableSnapshot(
                content=list(self._data.get(key, ())),
                rotation=self._rotation.to_mapping(),
                last_updated=self._last_updated or self._clock(),
            )

    def schedule_persist(self) -> None:
        """Queue a background snapshot write, coalescing overlapping requests."""

        if self._persist is None:
            return
        if self._persist_task is not None and not self._persist_task.done():
            self._persist_again = True
            return
        self._persist_task = asyncio.create_task(self._run_persist())

    async def drain(self) -> None:
        """Wait for any in-flight snapshot write to finish."""

        task = self._persist_task
        if task is None:
            return
        with suppress(asyncio.CancelledError):
            await task

    async def _run_persist(self) -> None:
        if self._persist is None:
            return
        while True:
            self._persist_again = False
            try:
                snapshot = await self.snapshot()
                await self._persist(snapshot)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Snapshot write failed: %s", exc)
            if not self._persist_again:
                break
