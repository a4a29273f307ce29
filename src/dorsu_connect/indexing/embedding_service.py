"""
Embedding Service - Cached text and chunk embedding with model fallback.
========================================================================

Wraps an ``EmbeddingProvider`` with:
- A bounded query-embedding cache keyed by the first characters of the text
- Automatic fallback to the hashing provider when the model cannot load
- Chunk text building (text + date variants + keywords)
- Cosine similarity helpers
"""

import math
import threading
from typing import Optional, Sequence

from dorsu_connect.indexing.embeddings_base import EmbeddingProvider, get_embedding_provider
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import EmbeddingError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import KnowledgeChunk, SearchHit
from dorsu_connect.shared.utils import format_date_variants

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Raises:
        ValueError: If the vectors differ in length

    Example:
        >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
        1.0
    """
    if len(a) != len(b):
        raise ValueError(f"Embeddings must have the same length ({len(a)} != {len(b)})")

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class EmbeddingService:
    """
    Embedding front-end used by refresh, search and RAG sync.

    Example:
        >>> service = EmbeddingService(provider_name="hashing")
        >>> vector = service.embed_text("enrollment schedule")
        >>> service.get_cache_stats()["size"]
        1
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        provider_name: Optional[str] = None,
        cache_size: Optional[int] = None,
        cache_key_chars: Optional[int] = None,
    ):
        settings = get_settings()
        self._provider = provider
        self._provider_name = provider_name
        self.cache_size = cache_size if cache_size is not None else settings.embeddings.cache_size
        self.cache_key_chars = cache_key_chars or settings.embeddings.cache_key_chars
        self.timezone = settings.schedule.timezone
        self._cache: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._fallback_active = False

    # ── provider handling ───────────────────────────────────────────────────

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = get_embedding_provider(self._provider_name)
        return self._provider

    @property
    def is_fallback(self) -> bool:
        """True once the service switched to hashing because the model failed."""
        return self._fallback_active

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    def _switch_to_fallback(self, error: Exception) -> None:
        logger.warning(f"Embedding model unavailable ({error}); using hashing fallback")
        self._provider = get_embedding_provider("hashing")
        self._fallback_active = True
        with self._lock:
            self._cache.clear()

    def _call(self, method: str, *args):  # type: ignore[no-untyped-def]
        try:
            return getattr(self.provider, method)(*args)
        except EmbeddingError as e:
            if self.provider.provider_name == "hashing":
                raise
            self._switch_to_fallback(e)
            return getattr(self.provider, method)(*args)

    # ── embedding ───────────────────────────────────────────────────────────

    def embed_text(self, text: str) -> list[float]:
        """
        Embed text, serving repeats from the cache.

        The cache stops admitting entries once full; existing entries stay
        until ``clear_cache`` is called.
        """
        key = text[: self.cache_key_chars]
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        embedding = self._call("embed_text", text)

        with self._lock:
            if len(self._cache) < self.cache_size:
                self._cache[key] = embedding
        return embedding

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts one at a time through the cache, logging progress."""
        embeddings = []
        for i, text in enumerate(texts, start=1):
            embeddings.append(self.embed_text(text))
            if i % 10 == 0:
                logger.debug(f"Embedded {i}/{len(texts)} texts")
        return embeddings

    def _dated_text(self, chunk: KnowledgeChunk) -> str:
        text = chunk.content
        date_value = chunk.metadata.get("date") or chunk.metadata.get("startDate")
        if date_value:
            variants = format_date_variants(date_value, self.timezone)
            if variants:
                text = f"{text} {' '.join(variants)}"
        return text

    def build_chunk_text(self, chunk: KnowledgeChunk) -> str:
        """
        Text used to embed a chunk: its content, readable forms of its date
        (so "Jan 15" matches "2025-01-15") and its keywords.
        """
        return f"{self._dated_text(chunk)} {' '.join(chunk.keywords)}".strip()

    def embed_chunk(self, chunk: KnowledgeChunk) -> list[float]:
        """Embed a chunk for storage (not cached)."""
        return self._call("embed_document", self._dated_text(chunk), chunk.keywords)

    def embed_chunks(
        self,
        chunks: list[KnowledgeChunk],
        log_every: int = 50,
    ) -> list[KnowledgeChunk]:
        """
        Return copies of ``chunks`` with embeddings filled in.

        Args:
            chunks: Chunks to embed
            log_every: Progress log interval
        """
        embedded = []
        for i, chunk in enumerate(chunks, start=1):
            embedded.append(chunk.model_copy(update={"embedding": self.embed_chunk(chunk)}))
            if i % log_every == 0:
                logger.info(f"Progress: {i}/{len(chunks)}")
        return embedded

    # ── similarity ──────────────────────────────────────────────────────────

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)

    def find_similar(
        self,
        query: str,
        chunks: list[KnowledgeChunk],
        top_k: int = 5,
    ) -> list[SearchHit]:
        """
        Rank chunks by cosine similarity to the query.

        Chunks without embeddings are skipped. ``score`` is the similarity
        scaled to 0-100.
        """
        query_embedding = self.embed_text(query)
        scored = []
        for chunk in chunks:
            if not chunk.embedding:
                continue
            similarity = cosine_similarity(query_embedding, chunk.embedding)
            hit = SearchHit.from_chunk(chunk, similarity * 100, "embedding_similarity")
            hit.metadata = {**hit.metadata, "similarity": similarity}
            scored.append(hit)

        scored.sort(key=lambda hit: hit.score, reverse=True)
        return scored[:top_k]

    # ── cache ───────────────────────────────────────────────────────────────

    def clear_cache(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Embedding cache cleared ({count} entries)")
        return count

    def get_cache_stats(self) -> dict:
        with self._lock:
            size = len(self._cache)
        return {"size": size, "max_size": self.cache_size}

    def get_info(self) -> dict:
        info = self.provider.get_info()
        info["fallback"] = self._fallback_active
        info["cache"] = self.get_cache_stats()
        return info


# ─────────────────────────────────────────────────────────────────────────────
# Singleton
# ─────────────────────────────────────────────────────────────────────────────


_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    """Get or create the shared embedding service."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
