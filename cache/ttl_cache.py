"""
TTL cache for ledger reads, backed by the durable blob store.

Entries are stored as JSON ``{"data", "stored_at", "expires_at"}`` under a
fixed key prefix so they never collide with other persisted data. An entry is
never served once ``now > expires_at``: the first lookup that observes the
expiry deletes it. A small in-memory LRU tier sits in front of the store and
follows the same rule; it keeps the serialized entry, so every hit hands out
a fresh copy and callers cannot mutate what is cached.
"""

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple

from database.database import BlobStore
from monitoring.metrics import cache_lookups_total

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60.0
CACHE_PREFIX = "@sonichain_cache_"
MAX_MEMORY_CACHE_SIZE = 50

SOURCE_CACHE = "cache"
SOURCE_FETCHED = "fetched"
SOURCE_ERROR = "error"


class CacheKeys:
    """Deterministic cache keys derived from entity identity"""

    @staticmethod
    def story(story_id) -> str:
        return f"story_{story_id}"

    @staticmethod
    def round(story_id, round_num) -> str:
        return f"round_{story_id}_{round_num}"

    @staticmethod
    def submissions(story_id, round_num) -> str:
        return f"submissions_{story_id}_{round_num}"

    @staticmethod
    def user(address: str) -> str:
        return f"user_{address}"

    @staticmethod
    def user_stories(address: str) -> str:
        return f"user_stories_{address}"


@dataclass
class FetchResult:
    """Outcome of a cache-first fetch.

    ``source`` is ``"cache"`` or ``"fetched"`` when ``data`` is real (it may
    still be ``None`` for a legitimately empty result) and ``"error"`` when the
    fetcher failed and nothing is available.
    """
    data: Any
    source: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.source != SOURCE_ERROR


class TTLCache:
    """Cache-first storage for ledger reads"""

    def __init__(
        self,
        store: BlobStore,
        prefix: str = CACHE_PREFIX,
        default_ttl: float = DEFAULT_TTL,
        memory_size: int = MAX_MEMORY_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.memory_size = memory_size
        self.clock = clock
        self.memory: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def _storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _remember(self, key: str, expires_at: float, raw: str):
        if self.memory_size <= 0:
            return
        self.memory[key] = (expires_at, raw)
        self.memory.move_to_end(key)
        while len(self.memory) > self.memory_size:
            self.memory.popitem(last=False)

    async def _lookup(self, key: str) -> Tuple[bool, Any]:
        """Return (hit, data); expired entries are deleted, never returned"""
        now = self.clock()

        remembered = self.memory.get(key)
        if remembered is not None:
            expires_at, raw = remembered
            if now <= expires_at:
                self.memory.move_to_end(key)
                cache_lookups_total.labels(result="hit").inc()
                logger.debug(f"Memory cache HIT: {key}")
                return True, json.loads(raw)["data"]
            del self.memory[key]

        try:
            raw = await self.store.get_item(self._storage_key(key))
            if raw is None:
                cache_lookups_total.labels(result="miss").inc()
                return False, None

            entry = json.loads(raw)
            if now > entry["expires_at"]:
                await self.store.remove_item(self._storage_key(key))
                cache_lookups_total.labels(result="expired").inc()
                logger.debug(f"Cache EXPIRED: {key}")
                return False, None
        except Exception as e:
            cache_lookups_total.labels(result="error").inc()
            logger.error(f"Cache read error for {key}: {e}")
            return False, None

        self._remember(key, entry["expires_at"], raw)
        cache_lookups_total.labels(result="hit").inc()
        logger.debug(f"Storage cache HIT: {key}")
        return True, entry["data"]

    async def get(self, key: str) -> Any:
        """Return cached data, or None when absent or expired"""
        _, data = await self._lookup(key)
        return data

    async def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Store ``data`` for ``ttl`` seconds, replacing any previous entry"""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            logger.warning(f"Cache write skipped for {key}: ttl must be positive, got {ttl}")
            await self.invalidate(key)
            return

        now = self.clock()
        entry = {"data": data, "stored_at": now, "expires_at": now + ttl}
        try:
            raw = json.dumps(entry)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache write error for {key}: data is not serializable: {e}")
            return

        self._remember(key, entry["expires_at"], raw)
        try:
            await self.store.set_item(self._storage_key(key), raw)
            logger.debug(f"Cache SAVE: {key} (ttl={ttl}s)")
        except Exception as e:
            logger.error(f"Cache write error for {key}: {e}")

    async def invalidate(self, key: str) -> None:
        self.memory.pop(key, None)
        try:
            await self.store.remove_item(self._storage_key(key))
            logger.debug(f"Cache INVALIDATE: {key}")
        except Exception as e:
            logger.error(f"Cache invalidate error for {key}: {e}")

    async def clear_all(self) -> int:
        """Remove every entry under the cache prefix; returns the count removed"""
        self.memory.clear()
        try:
            keys = [k for k in await self.store.get_all_keys() if k.startswith(self.prefix)]
            if keys:
                await self.store.multi_remove(keys)
            logger.info(f"Cache CLEARED: {len(keys)} entries")
            return len(keys)
        except Exception as e:
            logger.error(f"Cache clear error: {e}")
            return 0

    async def fetch_with_cache_result(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> FetchResult:
        """Cache-first fetch returning an envelope that tells misses from failures"""
        hit, data = await self._lookup(key)
        if hit:
            return FetchResult(data, SOURCE_CACHE)

        logger.debug(f"Cache MISS: {key} - fetching from source")
        try:
            data = await fetcher()
        except Exception as e:
            logger.error(f"Fetch with cache error for {key}: {e}")
            return FetchResult(None, SOURCE_ERROR, e)

        await self.set(key, data, ttl)
        return FetchResult(data, SOURCE_FETCHED)

    async def fetch_with_cache(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Cache-first fetch; None means unavailable or empty"""
        result = await self.fetch_with_cache_result(key, fetcher, ttl)
        return result.data
