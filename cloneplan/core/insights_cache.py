"""TTL cache for technology insights keyed by a normalized technology set.

Avoids recomputing complexity, estimates and clonability for stacks that
have already been seen. Entries expire after the TTL (default 24 hours):
lazily when read past expiry, and eagerly through a periodic sweep.

Usage:
    cache = InsightsCache(ttl=86400)
    insights = cache.get(["React", "Node.js"])   # None on miss
    cache.set(["React", "Node.js"], insights, analysis_id)
    cache.get_stats()
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60 * 60
KEY_SEPARATOR = "|"

# Stacks precomputed by warm_cache()
COMMON_TECH_PATTERNS: List[List[str]] = [
    ["React", "Node.js", "PostgreSQL"],
    ["Next.js", "Vercel", "Supabase"],
    ["WordPress", "PHP", "MySQL"],
    ["Shopify"],
    ["Vue.js", "Laravel", "MySQL"],
    ["Angular", "Spring", "AWS"],
    ["Django", "PostgreSQL", "AWS"],
    ["Webflow"],
]


def make_cache_key(technologies: Iterable[str]) -> str:
    """Lower-case, trim, deduplicate, sort and join technology names."""
    names = {t.strip().lower() for t in technologies if t and t.strip()}
    return KEY_SEPARATOR.join(sorted(names))


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    analysis_id: Optional[str] = None


class InsightsCache:
    """Technology-set keyed cache with hit/miss/eviction counters.

    Accessed only from the event loop thread, so no locking is done.

    Attributes:
        ttl: Entry lifetime in seconds
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ):
        """Initialize the cache.

        Args:
            ttl: Entry lifetime in seconds (default: 24 hours)
            clock: Returns the current time in seconds; injectable for tests
            sweep_interval: Period of the background expiry sweep
        """
        self._ttl = ttl
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._sweeper: Optional[asyncio.Task] = None

    # ── Core operations ───────────────────────────────────────────────

    def get(self, technologies: Iterable[str]) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry.

        Expired entries are evicted on read.
        """
        key = make_cache_key(technologies)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() - entry.inserted_at > self._ttl:
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            logger.debug(f"Insights cache entry expired: {key}")
            return None

        self._hits += 1
        logger.debug(f"Insights cache hit: {key}")
        return entry.value

    def set(self, technologies: Iterable[str], value: Any, analysis_id: Optional[str] = None) -> None:
        """Insert or overwrite an entry stamped with the current time."""
        key = make_cache_key(technologies)
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            analysis_id=analysis_id,
        )
        logger.debug(f"Insights cached for {key} (analysis={analysis_id})")

    def has(self, technologies: Iterable[str]) -> bool:
        """Whether a live entry exists; does not touch counters."""
        entry = self._entries.get(make_cache_key(technologies))
        return entry is not None and self._clock() - entry.inserted_at <= self._ttl

    def get_entry_age(self, technologies: Iterable[str]) -> Optional[float]:
        """Age of the entry in seconds, or None if absent."""
        entry = self._entries.get(make_cache_key(technologies))
        if entry is None:
            return None
        return self._clock() - entry.inserted_at

    def clear_expired(self) -> int:
        """Remove every entry older than the TTL. Returns the count removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.inserted_at > self._ttl]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        if expired:
            logger.info(f"Insights cache sweep evicted {len(expired)} entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get_stats(self) -> Dict[str, Any]:
        """Return hits, misses, evictions, size and hit rate."""
        lookups = self._hits + self._misses
        hit_rate = self._hits / lookups if lookups else 0.0
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "size": len(self._entries),
            "hitRate": round(hit_rate, 2),
        }

    def warm_cache(self, compute: Callable[[List[str]], Any]) -> int:
        """Precompute insights for common stacks not already cached."""
        warmed = 0
        for pattern in COMMON_TECH_PATTERNS:
            if self.has(pattern):
                continue
            self.set(pattern, compute(pattern), analysis_id="warmup")
            warmed += 1
        logger.info(f"Insights cache warmed with {warmed} stacks")
        return warmed

    # ── Periodic sweep ────────────────────────────────────────────────

    def start_sweeper(self) -> None:
        """Start the hourly sweep task on the running loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.clear_expired()

    @property
    def ttl(self) -> float:
        """Get the cache TTL in seconds."""
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)
