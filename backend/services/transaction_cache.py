"""Read-through cache with independently invalidated regions.

Two regions are used by the transaction service:

* ``transactions`` keyed by the stringified record id, holding single records.
* ``transactionList`` keyed by ``(page, size)``, holding listing pages.

Every eviction bumps the region generation. A read-through fill records the
generation before loading from the store and is dropped if the region was
invalidated in the meantime, so a slow read can never resurrect a value that a
concurrent write already evicted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any, TypeVar


logger = logging.getLogger(__name__)

RECORD_REGION = "transactions"
LIST_REGION = "transactionList"

T = TypeVar("T")


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0


@dataclass(slots=True)
class _Region:
    entries: dict[Hashable, Any] = field(default_factory=dict)
    generation: int = 0
    hits: int = 0
    misses: int = 0


class TransactionCache:
    """Process-wide, unbounded cache; entries only leave through explicit eviction."""

    def __init__(self, regions: tuple[str, ...] = (RECORD_REGION, LIST_REGION), enabled: bool = True) -> None:
        self._regions = {name: _Region() for name in regions}
        self._lock = threading.Lock()
        self.enabled = enabled

    def _region(self, name: str) -> _Region:
        try:
            return self._regions[name]
        except KeyError:
            raise KeyError(f"Unknown cache region: {name}") from None

    def get(self, region: str, key: Hashable) -> Any | None:
        """Return the cached value or None on a miss."""

        with self._lock:
            cache_region = self._region(region)
            if self.enabled and key in cache_region.entries:
                cache_region.hits += 1
                logger.debug("transaction_cache_hit region=%s key=%s", region, key)
                return cache_region.entries[key]
            cache_region.misses += 1
        logger.debug("transaction_cache_miss region=%s key=%s", region, key)
        return None

    def generation(self, region: str) -> int:
        with self._lock:
            return self._region(region).generation

    def put(self, region: str, key: Hashable, value: Any, generation: int | None = None) -> bool:
        """Store a value; with ``generation`` the write only lands if nothing was evicted since.

        Returns whether the value was stored.
        """

        if value is None:
            raise ValueError("None cannot be cached")
        with self._lock:
            cache_region = self._region(region)
            if not self.enabled:
                return False
            if generation is not None and generation != cache_region.generation:
                logger.debug("transaction_cache_fill_discarded region=%s key=%s", region, key)
                return False
            cache_region.entries[key] = value
            return True

    def evict(self, region: str, key: Hashable) -> None:
        with self._lock:
            cache_region = self._region(region)
            cache_region.entries.pop(key, None)
            cache_region.generation += 1

    def evict_all(self, region: str) -> None:
        with self._lock:
            cache_region = self._region(region)
            cache_region.entries.clear()
            cache_region.generation += 1
        logger.debug("transaction_cache_region_cleared region=%s", region)

    def read_through(self, region: str, key: Hashable, loader: Callable[[], T | None]) -> T | None:
        """Return the cached value, or load, cache and return it on a miss.

        A loader result of None (not found) is returned but never cached.
        """

        cached = self.get(region, key)
        if cached is not None:
            return cached

        generation = self.generation(region)
        value = loader()
        if value is not None:
            self.put(region, key, value, generation=generation)
        return value

    def stats(self, region: str) -> CacheStats:
        with self._lock:
            cache_region = self._region(region)
            return CacheStats(
                hits=cache_region.hits,
                misses=cache_region.misses,
                size=len(cache_region.entries),
            )
