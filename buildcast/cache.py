"""Forecast caching with TTL expiry and explicit invalidation."""

import time
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Dict, Any
from dataclasses import dataclass, asdict
import hashlib
import threading

from .constants import CACHE_KEY_PREFIX
from .exceptions import CacheError
from .models import Forecast
from .utils import ensure_directory, logger


class CacheBackend(ABC):
    """Key-value store with per-key time to live."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether it existed."""


@dataclass
class CacheEntry:
    """Single cache entry."""
    key: str
    value: str
    timestamp: float
    ttl: float
    hit_count: int = 0
    last_accessed: float = None


class MemoryCacheBackend(CacheBackend):
    """Thread-safe in-process cache with optional JSON persistence."""

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        max_size: int = 1000,
        persist: bool = False,
        clock: Callable[[], float] = time.time
    ):
        """Initialize the cache backend.

        Args:
            cache_dir: Directory for persistent cache
            max_size: Maximum cache entries
            persist: Whether to persist entries to disk
            clock: Source of the current time in seconds
        """
        self.cache_dir = cache_dir or Path.home() / ".buildcast" / "cache"
        self.max_size = max_size
        self.persist = persist
        self.clock = clock

        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0
        }

        if self.persist:
            self._load_cache()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if key not in self._cache:
                self._stats["misses"] += 1
                return None

            entry = self._cache[key]

            if self._is_expired(entry):
                self._remove(key)
                self._stats["expirations"] += 1
                self._stats["misses"] += 1
                return None

            entry.hit_count += 1
            entry.last_accessed = self.clock()
            self._stats["hits"] += 1

            return entry.value

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                self._evict_oldest()

            now = self.clock()
            entry = CacheEntry(
                key=key,
                value=value,
                timestamp=now,
                ttl=ttl,
                last_accessed=now
            )
            self._cache[key] = entry

            if self.persist:
                try:
                    self._save_entry(entry)
                except OSError as e:
                    raise CacheError(f"Failed to persist cache entry {key}: {e}") from e

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                self._remove(key)
                return True
            return False

    def clear(self):
        """Clear entire cache."""
        with self._lock:
            for key in list(self._cache):
                self._remove(key)
            self._stats = {
                "hits": 0,
                "misses": 0,
                "evictions": 0,
                "expirations": 0
            }

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = self._stats["hits"] / total_requests if total_requests > 0 else 0

            return {
                **self._stats,
                "size": len(self._cache),
                "hit_rate": hit_rate,
                "total_requests": total_requests
            }

    def prune(self) -> int:
        """Remove expired entries."""
        with self._lock:
            expired_keys = [
                key for key, entry in self._cache.items()
                if self._is_expired(entry)
            ]

            for key in expired_keys:
                self._remove(key)
                self._stats["expirations"] += 1

            logger.info(f"Pruned {len(expired_keys)} expired entries")
            return len(expired_keys)

    def _is_expired(self, entry: CacheEntry) -> bool:
        age = self.clock() - entry.timestamp
        return age > entry.ttl

    def _remove(self, key: str):
        del self._cache[key]
        if self.persist:
            entry_file = self._get_entry_path(key)
            if entry_file.exists():
                entry_file.unlink()

    def _evict_oldest(self):
        """Evict least recently used entry to make room."""
        if not self._cache:
            return

        oldest_key = min(
            self._cache.keys(),
            key=lambda k: self._cache[k].last_accessed or self._cache[k].timestamp
        )
        self._remove(oldest_key)
        self._stats["evictions"] += 1

    def _get_entry_path(self, key: str) -> Path:
        safe_key = hashlib.sha256(key.encode()).hexdigest()[:16]
        return self.cache_dir / f"{safe_key}.json"

    def _save_entry(self, entry: CacheEntry):
        ensure_directory(self.cache_dir)
        with open(self._get_entry_path(entry.key), 'w') as f:
            json.dump(asdict(entry), f, indent=2)

    def _load_cache(self):
        """Load cache from disk."""
        if not self.cache_dir.exists():
            return

        loaded = 0
        for entry_file in self.cache_dir.glob("*.json"):
            try:
                with open(entry_file, 'r') as f:
                    entry = CacheEntry(**json.load(f))

                if not self._is_expired(entry):
                    self._cache[entry.key] = entry
                    loaded += 1
                else:
                    entry_file.unlink()

            except Exception as e:
                logger.warning(f"Failed to load cache entry {entry_file}: {e}")

        logger.info(f"Loaded {loaded} cache entries")

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not self._is_expired(entry)


class ForecastCache:
    """Best-effort forecast cache keyed by project id.

    Backend failures are logged and treated as a miss (reads) or a
    no-op (writes and deletes); they never reach the caller.
    """

    def __init__(self, backend: Optional[CacheBackend] = None, ttl: int = 3600):
        self.backend = backend if backend is not None else MemoryCacheBackend()
        self.ttl = ttl

    @staticmethod
    def key_for(project_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}{project_id}"

    def get(self, project_id: str) -> Optional[Forecast]:
        """Return the fresh cached forecast for a project, if any."""
        try:
            payload = self.backend.get(self.key_for(project_id))
            if payload is None:
                return None
            return Forecast.from_json(payload)
        except Exception as e:
            logger.warning(f"Failed to retrieve cached forecast for {project_id}: {e}")
            return None

    def set(self, forecast: Forecast) -> bool:
        """Cache a forecast; return whether the write succeeded."""
        try:
            self.backend.set(self.key_for(forecast.project_id), forecast.to_json(), self.ttl)
            return True
        except Exception as e:
            logger.error(f"Failed to cache forecast for {forecast.project_id}: {e}")
            return False

    def invalidate(self, project_id: str) -> bool:
        """Drop the cached forecast for a project."""
        try:
            return self.backend.delete(self.key_for(project_id))
        except Exception as e:
            logger.error(f"Failed to invalidate forecast cache for {project_id}: {e}")
            return False
