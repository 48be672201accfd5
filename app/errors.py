"""Exception hierarchy for the recommendation service."""

from __future__ import annotations


class MediaScoutError(Exception):
    """Base class for service errors."""


class FetchError(MediaScoutError):
    """An upstream metadata call failed."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Fetching {source} failed: {reason}")
        self.source = source
        self.reason = reason


class PersistError(MediaScoutError):
    """A durable snapshot write did not succeed within the retry budget."""

    def __init__(self, key: str, attempts: int, reason: str | None = None):
        message = f"Persisting {key} failed after {attempts} attempt(s)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.key = key
        self.attempts = attempts


class SnapshotNotFound(MediaScoutError):
    """No durable snapshot exists under the requested key."""

    def __init__(self, key: str):
        super().__init__(f"No snapshot stored under {key}")
        self.key = key


class RestoreError(MediaScoutError):
    """A durable snapshot exists but could not be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Snapshot {key} is unreadable: {reason}")
        self.key = key
        self.reason = reason


class RecommendError(MediaScoutError):
    """An unexpected local fault prevented building recommendations."""


class UpstreamUnavailable(FetchError):
    """A transient upstream failure (timeout, 429 or 5xx) worth retrying."""
