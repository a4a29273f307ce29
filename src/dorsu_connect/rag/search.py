"""
Hybrid Search Module - Topic, vector and keyword retrieval.
===========================================================

Routes a query to the search path that suits its type:
- Typed queries use a ``TopicProfile`` over the in-memory chunk index,
  topped up with vector and keyword hits
- Comprehensive and general queries use vector search with a keyword
  supplement, falling back to in-memory L2 search
- Keyword search is typo-tolerant phrase/word/keyword scoring

If the embedding model or the vector store fails, search degrades to keyword
search instead of failing the request.
"""

import re
from typing import Optional

import numpy as np

from dorsu_connect.indexing.embedding_service import EmbeddingService, get_embedding_service
from dorsu_connect.indexing.knowledge_store import KnowledgeStore, get_knowledge_store
from dorsu_connect.rag.query_types import detect_query_type
from dorsu_connect.rag.topics import TopicProfile, profile_for
from dorsu_connect.rag.typo import correct_typos
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import EmbeddingError, StoreError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import KnowledgeChunk, QueryType, SearchHit

logger = get_logger(__name__)

TOPIC_BASE_SCORE = 100
_WORD = re.compile(r"[\w-]+")


def sort_hits(hits: list[SearchHit]) -> list[SearchHit]:
    """
    Order hits by score descending, then date (or category) ascending.

    The sort is stable, so equal hits keep their insertion order.
    """
    return sorted(hits, key=lambda h: (-h.score, h.sort_date or h.category))


def _merge(hits: list[SearchHit], extra: list[SearchHit], seen: set[str]) -> None:
    for hit in extra:
        if hit.id not in seen:
            seen.add(hit.id)
            hits.append(hit)


class HybridSearchService:
    """
    Query-type aware search over the knowledge base.

    The service keeps an in-memory copy of the chunks (loaded by
    ``RAGService.sync_with_store``) for keyword scoring, topic matching and
    the L2 fallback; vector queries go to the knowledge store.

    Example:
        >>> search = HybridSearchService()
        >>> search.load(store.get_all_chunks())
        >>> hits = search.search("Who is the president of DOrSU?", max_sections=5)
        >>> hits[0].type
        'president'
    """

    def __init__(
        self,
        store: Optional[KnowledgeStore] = None,
        embedding_service: Optional[EmbeddingService] = None,
    ):
        settings = get_settings()
        self._store = store
        self._embedding_service = embedding_service
        self.config = settings.search

        self._chunks: list[KnowledgeChunk] = []
        self._vector_chunks: list[KnowledgeChunk] = []
        self._matrix: Optional[np.ndarray] = None

    @property
    def store(self) -> KnowledgeStore:
        """Lazy load knowledge store."""
        if self._store is None:
            self._store = get_knowledge_store()
        return self._store

    @property
    def embedding_service(self) -> EmbeddingService:
        """Lazy load embedding service."""
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    # ─────────────────────────────────────────────────────────────────────────
    # Index
    # ─────────────────────────────────────────────────────────────────────────

    def load(self, chunks: list[KnowledgeChunk]) -> None:
        """Replace the in-memory keyword and vector indexes."""
        self._chunks = list(chunks)
        self._vector_chunks = [c for c in chunks if c.embedding]
        if self._vector_chunks:
            self._matrix = np.asarray([c.embedding for c in self._vector_chunks], dtype=np.float32)
        else:
            self._matrix = None
        logger.debug(
            f"Search index loaded: {len(self._chunks)} chunks, "
            f"{len(self._vector_chunks)} with embeddings"
        )

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def vector_count(self) -> int:
        return len(self._vector_chunks)

    # ─────────────────────────────────────────────────────────────────────────
    # Routing
    # ─────────────────────────────────────────────────────────────────────────

    def search(
        self,
        query: str,
        max_sections: Optional[int] = None,
        query_type: Optional[QueryType] = None,
    ) -> list[SearchHit]:
        """
        Search the knowledge base.

        Args:
            query: User query (typo correction happens in keyword scoring)
            max_sections: Number of results; the route's default if None
            query_type: Route override; detected from the query if None

        Returns:
            Hits sorted by score with ties broken by date/category
        """
        if not query or not query.strip():
            logger.warning("Empty query provided")
            return []

        query_type = query_type or detect_query_type(query)
        profile = profile_for(query_type, query)
        if max_sections is None:
            max_sections = profile.default_size if profile else self.config.max_sections

        if profile is not None:
            hits = self.topic_search(profile, query, max_sections)
        elif query_type == QueryType.COMPREHENSIVE:
            hits = self.comprehensive_search(query, max_sections)
        else:
            hits = self.general_search(query, max_sections)

        logger.info(
            f"Search [{query_type.value}] returned {len(hits)} hits for: '{query[:50]}'"
        )
        return hits

    # ─────────────────────────────────────────────────────────────────────────
    # Search Paths
    # ─────────────────────────────────────────────────────────────────────────

    def topic_search(self, profile: TopicProfile, query: str, max_sections: int) -> list[SearchHit]:
        """
        Profile matches first, topped up with filtered vector hits and then
        keyword hits while below ``max_sections``.
        """
        hits = [
            SearchHit.from_chunk(chunk, TOPIC_BASE_SCORE + relevance, "topic")
            for chunk, relevance in profile.rank(self._chunks)
        ]
        seen = {hit.id for hit in hits}

        vector_hits = self._safe_vector_search(query, max_sections)
        if vector_hits is not None:
            _merge(hits, [h for h in vector_hits if profile.accepts_vector_hit(h)], seen)

        if len(hits) < max_sections:
            _merge(hits, self.keyword_search(query, max_sections), seen)

        hits = [h for h in hits if not profile.is_excluded(h)]
        return sort_hits(hits)[:max_sections]

    def general_search(self, query: str, max_sections: int) -> list[SearchHit]:
        """Vector top ``max_sections * vector_factor`` plus a keyword supplement."""
        limit = max_sections * self.config.vector_factor
        vector_hits = self._safe_vector_search(query, limit)
        if vector_hits is None:
            return self.keyword_search(query, limit)

        hits: list[SearchHit] = []
        seen: set[str] = set()
        _merge(hits, vector_hits, seen)
        _merge(hits, self.keyword_search(query, limit), seen)

        if not hits:
            hits = self.memory_vector_search(query, limit)
        return sort_hits(hits)[:limit]

    def comprehensive_search(self, query: str, max_sections: int) -> list[SearchHit]:
        """Like general search, but fills the full result size from both paths."""
        hits: list[SearchHit] = []
        seen: set[str] = set()
        vector_hits = self._safe_vector_search(query, max_sections)
        if vector_hits is not None:
            _merge(hits, vector_hits, seen)
        _merge(hits, self.keyword_search(query, max_sections), seen)
        return sort_hits(hits)[:max_sections]

    def vector_search(self, query: str, limit: int) -> list[SearchHit]:
        """
        Nearest chunks from the knowledge store.

        Scores are cosine similarity scaled to 0-100.

        Raises:
            EmbeddingError: If the query cannot be embedded
            StoreError: If the store query fails
        """
        embedding = self.embedding_service.embed_text(query)
        hits = self.store.vector_search(embedding, limit=limit)
        for hit in hits:
            hit.score = round(hit.score * 100, 4)
        return hits

    def _safe_vector_search(self, query: str, limit: int) -> Optional[list[SearchHit]]:
        try:
            return self.vector_search(query, limit)
        except (EmbeddingError, StoreError) as e:
            logger.warning(f"Vector search unavailable, using keyword search: {e}")
            return None

    def memory_vector_search(self, query: str, limit: int) -> list[SearchHit]:
        """
        Brute-force L2 search over the loaded embeddings.

        Similarity is ``1 / (1 + distance) * 100``.
        """
        if self._matrix is None:
            return []
        try:
            query_vector = np.asarray(self.embedding_service.embed_text(query), dtype=np.float32)
        except EmbeddingError as e:
            logger.warning(f"In-memory vector search skipped: {e}")
            return []

        distances = np.linalg.norm(self._matrix - query_vector, axis=1)
        order = np.argsort(distances, kind="stable")[:limit]
        return [
            SearchHit.from_chunk(
                self._vector_chunks[i], round(float(1 / (1 + distances[i]) * 100), 4), "memory"
            )
            for i in order
        ]

    def keyword_search(self, query: str, limit: int) -> list[SearchHit]:
        """
        Typo-tolerant keyword scoring over the in-memory chunks.

        Scoring per chunk:
        - phrase_weight if the whole (corrected) query occurs in the text
        - word_weight per word-boundary occurrence of each query word (> 2 chars)
        - keyword_weight per chunk keyword that contains or is contained by a
          query word

        Falls back to the store's native text search when nothing is loaded.
        """
        corrected = correct_typos(query).corrected
        if not self._chunks:
            try:
                return self.store.native_search(corrected, limit=limit)
            except StoreError as e:
                logger.warning(f"Native search failed: {e}")
                return []

        phrase = corrected.lower().strip()
        words = [w for w in _WORD.findall(phrase) if len(w) > 2]
        word_patterns = [re.compile(rf"\b{re.escape(w)}\b") for w in words]

        hits = []
        for chunk in self._chunks:
            text = chunk.content.lower()
            score = 0
            if phrase and phrase in text:
                score += self.config.phrase_weight
            for pattern in word_patterns:
                score += len(pattern.findall(text)) * self.config.word_weight
            for keyword in chunk.keywords:
                keyword = keyword.lower()
                if any(w in keyword or keyword in w for w in words):
                    score += self.config.keyword_weight
            if score > 0:
                hits.append(SearchHit.from_chunk(chunk, score, "keyword"))

        return sort_hits(hits)[:limit]
