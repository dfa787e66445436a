"""
Dish lookup cache.

Entries are keyed on the dish id *and* the catalog version they were read
under, so a catalog update makes every earlier entry unreachable.  Stale
entries are dropped lazily on access, as are entries older than the TTL.
"""
from __future__ import annotations

import threading
import time
from typing import Any

from .catalog import DishCatalog
from .models import Dish

_DEFAULT_TTL = 300  # 5 minutes


class CachedDishCatalog:
    def __init__(self, catalog: DishCatalog, ttl: float = _DEFAULT_TTL) -> None:
        self._catalog = catalog
        self._ttl = ttl
        self._lock = threading.Lock()
        self._cache: dict[str, dict[str, Any]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def version(self) -> int:
        return self._catalog.version

    def list_available(self) -> list[Dish]:
        return self._catalog.list_available()

    def get(self, dish_id: str) -> Dish:
        version = self._catalog.version
        with self._lock:
            entry = self._cache.get(dish_id)
            if (
                entry
                and entry["version"] == version
                and time.monotonic() - entry["created_at"] < self._ttl
            ):
                self._hits += 1
                return entry["value"]
            if entry:
                del self._cache[dish_id]
            self._misses += 1

        # NotFound propagates and is never cached
        dish = self._catalog.get(dish_id)
        with self._lock:
            self._cache[dish_id] = {
                "value": dish,
                "version": version,
                "created_at": time.monotonic(),
            }
        return dish

    def get_cache_stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
                "catalog_version": self._catalog.version,
            }

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
