"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def make_content(title: str, **overrides: Any):
    """Build a ``Content`` entry with sensible defaults."""

    from app.models import Content

    data: dict[str, Any] = {
        "title": title,
        "year": "2024",
        "rating": 7.5,
        "genres": ["Drama"],
        "description": f"About {title}",
        "availability": ["Netflix"],
        "media_type": "movie",
    }
    data.update(overrides)
    return Content(**data)


class FlakyBlobStore:
    """In-memory blob store failing the first ``failures`` writes."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.put_calls = 0
        self.blobs: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes) -> None:
        self.put_calls += 1
        if self.put_calls <= self.failures:
            raise ConnectionError("blob store unavailable")
        self.blobs[key] = data

    async def get(self, key: str) -> bytes:
        from app.errors import SnapshotNotFound

        try:
            return self.blobs[key]
        except KeyError:
            raise SnapshotNotFound(key) from None


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that only records the delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
