"""Snapshot encoding and durable persistence with bounded retries."""

from __future__ import annotations

import asyncio
import gzip
import logging
import zlib
from typing import Awaitable, Callable

from pydantic import ValidationError

from ..errors import PersistError, RestoreError, SnapshotNotFound
from ..models import DurableSnapshot
from ..utils import exponential_backoff, retry_async
from .blob_store import BlobStore

logger = logging.getLogger(__name__)


class SnapshotCodec:
    """Convert snapshots to and from gzip-compressed JSON."""

    def __init__(self, compresslevel: int = 6):
        self._compresslevel = compresslevel

    def encode(self, snapshot: DurableSnapshot) -> bytes:
        payload = snapshot.model_dump_json().encode("utf-8")
        return gzip.compress(payload, compresslevel=self._compresslevel)

    def decode(self, data: bytes, *, key: str = "snapshot") -> DurableSnapshot:
        try:
            payload = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            raise RestoreError(key, f"decompression failed: {exc}") from exc
        try:
            return DurableSnapshot.model_validate_json(payload)
        except ValidationError as exc:
            raise RestoreError(key, f"invalid payload: {exc.error_count()} error(s)") from exc


class SnapshotStore:
    """Reads and writes the catalog snapshot under a fixed key."""

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        key: str = "latest.snapshot",
        retries: int = 3,
        backoff_base: float = 2.0,
        codec: SnapshotCodec | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self._blobs = blob_store
        self._key = key
        self._retries = retries
        self._backoff = exponential_backoff(backoff_base)
        self._codec = codec or SnapshotCodec()
        self._sleep = sleep

    @property
    def key(self) -> str:
        return self._key

    async def save(self, snapshot: DurableSnapshot) -> None:
        """Upload ``snapshot``, retrying transient failures.

        Raises :class:`PersistError` once every attempt has failed. Each
        attempt overwrites the same key, so retries are idempotent.
        """

        data = self._codec.encode(snapshot)

        async def _upload() -> None:
            await self._blobs.put(self._key, data)

        try:
            await retry_async(
                _upload,
                retries=self._retries,
                backoff=self._backoff,
                sleep=self._sleep,
                description=f"Snapshot upload to {self._key}",
            )
        except Exception as exc:
            logger.warning(
                "Giving up on snapshot %s after %s attempt(s): %s",
                self._key,
                self._retries + 1,
                exc,
            )
            raise PersistError(self._key, self._retries + 1, str(exc)) from exc
        logger.info(
            "Saved snapshot %s (%s item(s), %s bytes)",
            self._key,
            len(snapshot.content),
            len(data),
        )

    async def save_quietly(self, snapshot: DurableSnapshot) -> bool:
        """Best-effort :meth:`save`; failures are logged, never raised."""

        try:
            await self.save(snapshot)
        except PersistError as exc:
            logger.error("Snapshot not persisted; in-memory catalog kept: %s", exc)
            return False
        return True

    async def load(self) -> DurableSnapshot:
        """Fetch and decode the stored snapshot.

        Raises :class:`SnapshotNotFound` when nothing is stored,
        :class:`RestoreError` when the stored bytes are unreadable and
        :class:`PersistError` when the store itself cannot be reached.
        """

        try:
            data = await self._blobs.get(self._key)
        except SnapshotNotFound:
            raise
        except Exception as exc:
            raise PersistError(self._key, 1, str(exc)) from exc
        return self._codec.decode(data, key=self._key)
