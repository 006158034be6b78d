from __future__ import annotations

import logging
import time
from typing import Dict, Optional, Tuple

from memory_gallery.core.dto.image import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
DEFAULT_MAX_AGE_SECONDS = 30 * 60


class ImageCache:
    """
    Bounded map of already-loaded image sources.

    FIFO eviction by insertion order: reads do not promote an entry, and
    overwriting a key keeps its original position. Single-threaded use only.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_ENTRIES):
        self._max_size = max(1, max_size)
        self._store: Dict[str, Tuple[float, CacheEntry]] = {}  # key -> (stored_at, entry)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def size(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Optional[CacheEntry]:
        item = self._store.get(key)
        if item is None:
            return None
        return item[1]

    def set(self, key: str, value: CacheEntry) -> None:
        if key in self._store:
            # dict assignment keeps the insertion position
            self._store[key] = (self._store[key][0], value)
            return
        self._store[key] = (time.time(), value)
        while len(self._store) > self._max_size:
            oldest = next(iter(self._store))
            self._store.pop(oldest, None)
            logger.debug(f"Image cache full, evicted {oldest}")

    def has(self, key: str) -> bool:
        return key in self._store

    def clear(self) -> None:
        self._store.clear()

    def cleanup(self, max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS) -> int:
        """Drop entries stored more than max_age_seconds ago. Returns the count removed."""
        cutoff = time.time() - max_age_seconds
        expired = [key for key, (stored_at, _) in self._store.items() if stored_at < cutoff]
        for key in expired:
            self._store.pop(key, None)
        if expired:
            logger.debug(f"Image cache cleanup removed {len(expired)} entries")
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return self.size
