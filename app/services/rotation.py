"""Per-user record of titles that have already been served."""

from __future__ import annotations

import logging
import random
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..models import Content

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Selection:
    """Outcome of a rotation pass for one request."""

    items: list[Content]
    eligible: int
    reset: bool = False


class RotationStore:
    """Map of user keys to the titles they have already been shown.

    Titles are the identity here even though aggregation deduplicates on the
    upstream id, so two distinct entries sharing a title are treated as one.
    Keys are kept in least-recently-used order and the oldest are evicted once
    ``max_users`` is exceeded (``0`` disables the bound).

    The store is not synchronised; callers hold the catalog cache's exclusive
    section while mutating it.
    """

    def __init__(self, max_users: int = 0):
        self._max_users = max(0, max_users)
        self._served: OrderedDict[int, set[str]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._served)

    def __contains__(self, key: object) -> bool:
        return key in self._served

    def served(self, key: int) -> frozenset[str]:
        titles = self._served.get(key)
        if titles is None:
            return frozenset()
        self._served.move_to_end(key)
        return frozenset(titles)

    def record(self, key: int, titles: Iterable[str]) -> None:
        """Add ``titles`` to the user's served set."""

        bucket = self._served.get(key)
        if bucket is None:
            bucket = set()
            self._served[key] = bucket
        else:
            self._served.move_to_end(key)
        bucket.update(titles)
        self._evict()

    def reset(self, key: int) -> None:
        self._served.pop(key, None)

    def clear(self) -> None:
        self._served.clear()

    def to_mapping(self) -> dict[int, set[str]]:
        """Return a deep copy suitable for serialisation."""

        return {key: set(titles) for key, titles in self._served.items()}

    def load(self, mapping: Mapping[int, Iterable[str]]) -> None:
        """Replace the store contents with ``mapping``."""

        self._served = OrderedDict(
            (int(key), set(titles)) for key, titles in mapping.items()
        )
        self._evict()

    def _evict(self) -> None:
        if not self._max_users:
            return
        while len(self._served) > self._max_users:
            evicted, _ = self._served.popitem(last=False)
            logger.debug("Evicted rotation state for user key %s", evicted)

    def select(
        self,
        key: int,
        candidates: Sequence[Content],
        *,
        floor: int,
        limit: int,
        rng: random.Random | None = None,
        record: bool = True,
    ) -> Selection:
        """Pick up to ``limit`` candidates the user has not been shown yet.

        When fewer than ``floor`` unseen candidates remain the user's state is
        cleared and the full candidate list becomes eligible again.
        """

        served = self.served(key)
        eligible = [item for item in candidates if item.title not in served]
        reset = False
        if len(eligible) < floor:
            if served:
                logger.debug(
                    "Rotation exhausted for user key %s (%s fresh); resetting",
                    key,
                    len(eligible),
                )
            self.reset(key)
            eligible = list(candidates)
            reset = True

        chooser = rng or random
        chooser.shuffle(eligible)
        picked = eligible[:limit]
        if record and picked:
            self.record(key, (item.title for item in picked))
        return Selection(items=picked, eligible=len(eligible), reset=reset)
