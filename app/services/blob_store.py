"""Key/value blob storage used for durable snapshots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import BlobRecord
from ..errors import SnapshotNotFound

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Minimal object-store interface: whole-object put and get."""

    async def put(self, key: str, data: bytes) -> None: ...

    async def get(self, key: str) -> bytes: ...


class SqlBlobStore:
    """Blob store persisting objects as rows of the ``blobs`` table.

    Each ``put`` is a single-row upsert inside one transaction, so readers see
    either the previous object or the new one, never a partial write.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def put(self, key: str, data: bytes) -> None:
        async with self._session_factory() as session:
            await session.merge(
                BlobRecord(
                    key=key,
                    payload=data,
                    size=len(data),
                    updated_at=datetime.utcnow(),
                )
            )
            await session.commit()
        logger.debug("Stored blob %s (%s bytes)", key, len(data))

    async def get(self, key: str) -> bytes:
        async with self._session_factory() as session:
            record = await session.get(BlobRecord, key)
            if record is None:
                raise SnapshotNotFound(key)
            return record.payload
