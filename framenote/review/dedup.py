from __future__ import annotations

import os
import time
from collections.abc import Callable

from ..config import parse_float

DEFAULT_DEDUP_WINDOW_SECONDS = max(
    0.0, parse_float(os.environ.get("FRAMENOTE_REALTIME_DEDUP_SECONDS"), 5.0)
)


class RecentWrites:
    """
    Ids of writes this client originated, remembered for a short window so
    the realtime echo of the same row can be dropped. Expired entries are
    purged lazily whenever the set is touched.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_DEDUP_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, float] = {}

    def _purge(self) -> None:
        cutoff = self._clock() - self.window_seconds
        expired = [key for key, added_at in self._entries.items() if added_at <= cutoff]
        for key in expired:
            del self._entries[key]

    def add(self, entity_id: str) -> None:
        self._purge()
        self._entries[entity_id] = self._clock()

    def discard(self, entity_id: str) -> None:
        self._entries.pop(entity_id, None)

    def __contains__(self, entity_id: object) -> bool:
        self._purge()
        return entity_id in self._entries

    def __len__(self) -> int:
        self._purge()
        return len(self._entries)
