"""
Response Cache Module - TTL cache of generated answers.
=======================================================

Answers are keyed by the normalised query and the asker's user type, and
remember the knowledge version (manifest dataset hash) they were built
from. A lookup misses when:
- the entry is older than the TTL (0 = never expires)
- the knowledge base has been refreshed since the entry was stored
- the cache was cleared explicitly
"""

import threading
import time
from collections import OrderedDict
from typing import Optional

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import CachedResponse, QueryType
from dorsu_connect.shared.utils import compute_hash, normalize_query

logger = get_logger(__name__)


def cache_key(query: str, user_type: Optional[str] = None) -> str:
    """sha256 of the normalised query plus the user type."""
    return compute_hash(f"{normalize_query(query)}|{user_type or 'all'}")


class ResponseCache:
    """
    Thread-safe answer cache with insertion-order eviction.

    Example:
        >>> cache = ResponseCache(ttl_seconds=60)
        >>> cache.set("Who is the president?", "Dr. Roy G. Ponce ...", knowledge_version="ab12")
        >>> cache.get("who is  the PRESIDENT?", knowledge_version="ab12").reply
        'Dr. Roy G. Ponce ...'
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_entries: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        settings = get_settings()
        self.ttl_seconds = settings.get_effective_cache_ttl() if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or settings.cache.max_entries
        self.enabled = settings.cache.enabled if enabled is None else enabled

        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        logger.debug(
            f"Response cache initialized: ttl={self.ttl_seconds}s, "
            f"max_entries={self.max_entries}, enabled={self.enabled}"
        )

    def _expired(self, entry: CachedResponse, now: float) -> bool:
        return self.ttl_seconds > 0 and now - entry.created_at > self.ttl_seconds

    def get(
        self,
        query: str,
        user_type: Optional[str] = None,
        knowledge_version: Optional[str] = None,
    ) -> Optional[CachedResponse]:
        """
        Look up a cached answer.

        Args:
            query: User query (normalised before hashing)
            user_type: Asker's user type
            knowledge_version: Current manifest hash; entries built from a
                different version are dropped

        Returns:
            The cached response, or None on a miss
        """
        if not self.enabled:
            return None

        key = cache_key(query, user_type)
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._expired(entry, now):
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry expired: {key[:12]}")
                return None
            if knowledge_version is not None and entry.knowledge_version != knowledge_version:
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry stale (knowledge {entry.knowledge_version} != {knowledge_version})")
                return None
            self._hits += 1
            return entry

    def set(
        self,
        query: str,
        reply: str,
        user_type: Optional[str] = None,
        query_type: str = QueryType.GENERAL.value,
        sections: Optional[list[str]] = None,
        knowledge_version: Optional[str] = None,
    ) -> None:
        """Store an answer, evicting the oldest entries beyond ``max_entries``."""
        if not self.enabled:
            return

        key = cache_key(query, user_type)
        entry = CachedResponse(
            reply=reply,
            query_type=query_type,
            sections=sections or [],
            knowledge_version=knowledge_version,
            created_at=time.monotonic(),
        )
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate_all(self) -> int:
        """Drop every entry; returns how many were dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Response cache cleared ({count} entries)")
        return count

    def invalidate_section(self, section: str) -> int:
        """Drop entries whose answer drew on ``section``."""
        with self._lock:
            keys = [k for k, e in self._entries.items() if section in e.sections]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.info(f"Invalidated {len(keys)} cached answers for section '{section}'")
        return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "enabled": self.enabled,
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            }


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    global _response_cache
    if _response_cache is None:
        _response_cache = ResponseCache()
    return _response_cache
