"""Utility helpers for the Media Scout service."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import struct
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def user_key(
    genres: Iterable[str], minimum_rating: float, content_type: str | None = None
) -> int:
    """Return a stable, order-independent key for a preference combination.

    The key has to survive process restarts because rotation state is
    persisted in snapshots, so the salted builtin ``hash`` is not usable.
    """

    digest = hashlib.blake2b(digest_size=8)
    for genre in sorted(set(genres)):
        digest.update(genre.encode("utf-8"))
        digest.update(b"\x00")
    digest.update(b"\x01")
    digest.update(struct.pack(">d", float(minimum_rating)))
    if content_type:
        digest.update(b"\x02")
        digest.update(content_type.encode("utf-8"))
    return int.from_bytes(digest.digest(), "big")


def truncate_description(value: str | None, limit: int) -> str:
    """Trim an overview to ``limit`` characters."""

    if not value:
        return ""
    return value[:limit]


def parse_release_year(value: object) -> str | None:
    """Return the four digit year from a TMDB ``YYYY-MM-DD`` date."""

    if not isinstance(value, str) or len(value) < 4:
        return None
    year = value[:4]
    if not year.isdigit():
        return None
    return year


def exponential_backoff(base: float) -> Callable[[int], float]:
    """Return a backoff function waiting ``base ** retry`` seconds."""

    def _delay(retry: int) -> float:
        return base**retry

    return _delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    backoff: Callable[[int], float],
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation`` with up to ``retries`` additional attempts.

    Retry ``n`` (starting at 1) waits ``backoff(n)`` seconds first. The last
    exception is re-raised once the budget is spent.
    """

    retry = 0
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if retry >= retries:
                raise
            retry += 1
            delay = backoff(retry)
            logger.info(
                "%s failed (%s). Retry %s/%s in %.1fs",
                description,
                exc.__class__.__name__,
                retry,
                retries,
                delay,
            )
            await sleep(delay)
