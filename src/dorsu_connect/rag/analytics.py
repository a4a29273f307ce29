"""In-memory query log used for the top-queries endpoint and stats."""

import threading
from collections import Counter, deque
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import utc_now
from dorsu_connect.shared.utils import normalize_query

logger = get_logger(__name__)


class QueryLogEntry(BaseModel):
    query: str
    normalized: str
    query_type: str
    user_type: Optional[str] = None
    response_time_ms: float = 0.0
    cached: bool = False
    timestamp: datetime = Field(default_factory=utc_now)


class QueryAnalytics:
    """
    Thread-safe log of answered queries.

    Only the most recent ``max_entries`` entries are kept. Query counts
    follow the same window, so top queries reflect recent traffic;
    ``total_queries`` still counts everything logged since startup.
    """

    def __init__(self, max_entries: int = 5000):
        self._entries: deque[QueryLogEntry] = deque(maxlen=max_entries)
        self._counts: Counter[str] = Counter()
        self._total = 0
        self._lock = threading.Lock()

    def log_query(
        self,
        query: str,
        query_type: str,
        user_type: Optional[str] = None,
        response_time_ms: float = 0.0,
        cached: bool = False,
    ) -> None:
        normalized = normalize_query(query)
        entry = QueryLogEntry(
            query=query,
            normalized=normalized,
            query_type=query_type,
            user_type=user_type,
            response_time_ms=response_time_ms,
            cached=cached,
        )
        with self._lock:
            if len(self._entries) == self._entries.maxlen:
                self._forget(self._entries[0])
            self._entries.append(entry)
            self._counts[normalized] += 1
            self._total += 1

    def _forget(self, entry: QueryLogEntry) -> None:
        self._counts[entry.normalized] -= 1
        if self._counts[entry.normalized] <= 0:
            del self._counts[entry.normalized]

    def top_queries(self, limit: int = 10) -> list[dict]:
        """Most asked normalised queries, ties broken alphabetically."""
        with self._lock:
            ranked = sorted(self._counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"query": query, "count": count} for query, count in ranked[:limit]]

    def stats(self) -> dict:
        with self._lock:
            entries = list(self._entries)
            total = self._total
            unique = len(self._counts)

        times = [e.response_time_ms for e in entries]
        by_type = Counter(e.query_type for e in entries)
        cached = sum(1 for e in entries if e.cached)
        return {
            "total_queries": total,
            "unique_queries": unique,
            "cached_responses": cached,
            "cache_hit_rate": round(cached / len(entries), 4) if entries else 0.0,
            "avg_response_time_ms": round(sum(times) / len(times), 2) if times else 0.0,
            "queries_by_type": dict(by_type.most_common()),
        }

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._counts.clear()
            self._total = 0
        logger.debug("Query analytics reset")


_query_analytics: Optional[QueryAnalytics] = None


def get_query_analytics() -> QueryAnalytics:
    global _query_analytics
    if _query_analytics is None:
        _query_analytics = QueryAnalytics()
    return _query_analytics
