"""
Knowledge Store Module - ChromaDB persistence for knowledge chunks.
===================================================================

Stores ``KnowledgeChunk`` records in a persistent ChromaDB collection:
- The chunk text is the document
- Scalar fields plus JSON-encoded keywords/metadata are chroma metadata
- The embedding is stored natively and searched in cosine space

Also offers the keyword ("native") lookup used for structured queries.
"""

import re
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import StoreError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import KnowledgeChunk, SearchHit, utc_now
from dorsu_connect.shared.utils import parse_datetime

logger = get_logger(__name__)

NATIVE_BASE_SCORE = 100.0


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge Store Class
# ─────────────────────────────────────────────────────────────────────────────


class KnowledgeStore:
    """
    ChromaDB-backed store for knowledge chunks.

    Example:
        >>> store = KnowledgeStore(persist_directory=Path("/tmp/kb"))
        >>> store.upsert_chunks(embedded_chunks)
        {'inserted': 42, 'updated': 0}
        >>> hits = store.vector_search(query_embedding, limit=5)
    """

    def __init__(
        self,
        collection_name: Optional[str] = None,
        persist_directory: Optional[Path] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the store.

        Args:
            collection_name: ChromaDB collection (defaults to ``knowledge_chunks``)
            persist_directory: Directory for persistent storage
            batch_size: Records per upsert call
        """
        settings = get_settings()

        self.collection_name = collection_name or settings.store.collection_name
        self.persist_directory = persist_directory or settings.resolved_paths.store_dir
        self.batch_size = batch_size or settings.store.batch_size

        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=ChromaSettings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )
        self._collection = self._open_collection()

        logger.info(
            f"Knowledge store initialized: collection={self.collection_name}, "
            f"persist_dir={self.persist_directory}, "
            f"existing_count={self._collection.count()}"
        )

    def _open_collection(self):  # type: ignore[no-untyped-def]
        # Embeddings are always supplied by the caller
        return self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    def count(self) -> int:
        """Number of stored chunks."""
        try:
            return self._collection.count()
        except Exception as e:
            raise StoreError(f"Failed to count chunks: {e}") from e

    # ── writes ──────────────────────────────────────────────────────────────

    def upsert_chunks(self, chunks: list[KnowledgeChunk]) -> dict[str, int]:
        """
        Insert or replace chunks by id.

        Existing chunks keep their ``created_at``; ``updated_at`` is set to
        now for every written chunk.

        Returns:
            ``{"inserted": n, "updated": m}``

        Raises:
            StoreError: If a chunk has no embedding or chroma rejects the batch
        """
        if not chunks:
            return {"inserted": 0, "updated": 0}

        missing = [chunk.id for chunk in chunks if not chunk.embedding]
        if missing:
            raise StoreError(f"{len(missing)} chunks have no embedding (first: {missing[0]})")

        existing = self._existing_created_at([chunk.id for chunk in chunks])
        now = utc_now()
        inserted = updated = 0

        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i : i + self.batch_size]
            records = []
            for chunk in batch:
                created_at = existing.get(chunk.id)
                if created_at is not None:
                    updated += 1
                    records.append(chunk.model_copy(update={"created_at": created_at, "updated_at": now}))
                else:
                    inserted += 1
                    records.append(chunk.model_copy(update={"updated_at": now}))

            try:
                self._collection.upsert(
                    ids=[r.id for r in records],
                    embeddings=[r.embedding for r in records],
                    documents=[r.content for r in records],
                    metadatas=[r.to_store_metadata() for r in records],
                )
            except Exception as e:
                raise StoreError(f"Failed to upsert batch {i // self.batch_size + 1}: {e}") from e

            logger.debug(f"Upserted batch {i // self.batch_size + 1}: {i + len(batch)}/{len(chunks)}")

        logger.info(f"Upserted {len(chunks)} chunks ({inserted} inserted, {updated} updated)")
        return {"inserted": inserted, "updated": updated}

    def _existing_created_at(self, chunk_ids: list[str]) -> dict[str, Any]:
        found: dict[str, Any] = {}
        for i in range(0, len(chunk_ids), self.batch_size):
            try:
                results = self._collection.get(
                    ids=chunk_ids[i : i + self.batch_size],
                    include=["metadatas"],
                )
            except Exception as e:
                raise StoreError(f"Failed to read existing chunks: {e}") from e
            for chunk_id, meta in zip(results["ids"], results.get("metadatas") or []):
                created_at = parse_datetime((meta or {}).get("created_at"))
                if created_at is not None:
                    found[chunk_id] = created_at
        return found

    def get_ids_by_source(self, source: str) -> list[str]:
        """Ids of every chunk whose metadata ``source`` matches."""
        try:
            results = self._collection.get(where={"source": source}, include=[])
        except Exception as e:
            raise StoreError(f"Failed to list chunks of source {source}: {e}") from e
        return list(results["ids"])

    def delete_by_source(self, source: str, keep_ids: Optional[set[str]] = None) -> int:
        """
        Delete chunks whose metadata ``source`` matches.

        Args:
            source: Source name recorded on the chunks
            keep_ids: Ids to leave in place (the chunks just written)

        Returns:
            Number of deleted chunks
        """
        ids = [i for i in self.get_ids_by_source(source) if not keep_ids or i not in keep_ids]
        if not ids:
            return 0
        for i in range(0, len(ids), self.batch_size):
            self._delete_ids(ids[i : i + self.batch_size])
        logger.info(f"Deleted {len(ids)} chunks from source {source}")
        return len(ids)

    def delete_chunks(self, chunk_ids: list[str]) -> int:
        if not chunk_ids:
            return 0
        self._delete_ids(chunk_ids)
        logger.info(f"Deleted {len(chunk_ids)} chunks")
        return len(chunk_ids)

    def _delete_ids(self, chunk_ids: list[str]) -> None:
        try:
            self._collection.delete(ids=chunk_ids)
        except Exception as e:
            raise StoreError(f"Failed to delete {len(chunk_ids)} chunks: {e}") from e

    def clear(self) -> None:
        """Drop and recreate the collection."""
        try:
            self._client.delete_collection(self.collection_name)
            self._collection = self._open_collection()
        except Exception as e:
            raise StoreError(f"Failed to clear collection {self.collection_name}: {e}") from e
        logger.info(f"Cleared collection: {self.collection_name}")

    # ── reads ───────────────────────────────────────────────────────────────

    def vector_search(
        self,
        embedding: list[float],
        limit: int = 10,
        where: Optional[dict[str, Any]] = None,
    ) -> list[SearchHit]:
        """
        Nearest chunks to ``embedding``.

        Args:
            embedding: Query vector
            limit: Maximum hits
            where: Optional metadata filters, e.g. ``{"section": "history"}``

        Returns:
            Hits sorted by ``score = 1 - cosine distance``, highest first
        """
        total = self.count()
        if total == 0 or limit <= 0:
            return []

        where_clause = self._build_where_clause(where) if where else None
        try:
            results = self._collection.query(
                query_embeddings=[embedding],
                n_results=min(limit, total),
                where=where_clause or None,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise StoreError(f"Vector search failed: {e}") from e
        return self._results_to_hits(results)

    def native_search(self, query: str, limit: int = 10) -> list[SearchHit]:
        """
        Keyword/field lookup without vectors.

        A chunk matches when one of its keywords equals a query word longer
        than two characters, or when its category, section, type or text
        contains the whole query (case-insensitive). Matches are ordered by
        ``updated_at`` newest first and scored 100 plus the number of
        matching keywords.
        """
        query = query.strip()
        if not query:
            return []

        words = {w for w in re.findall(r"[\w-]+", query.lower()) if len(w) > 2}
        phrase = re.compile(re.escape(query), re.IGNORECASE)

        matches: list[tuple[KnowledgeChunk, int]] = []
        for chunk in self.get_all_chunks(include_embeddings=False):
            keyword_hits = sum(1 for k in chunk.keywords if k.lower() in words)
            field_hit = any(
                phrase.search(value or "")
                for value in (chunk.category, chunk.section, chunk.type, chunk.content)
            )
            if keyword_hits or field_hit:
                matches.append((chunk, keyword_hits))

        matches.sort(key=lambda item: item[0].updated_at, reverse=True)
        return [
            SearchHit.from_chunk(chunk, NATIVE_BASE_SCORE + relevance, "native")
            for chunk, relevance in matches[:limit]
        ]

    def get_all_chunks(self, include_embeddings: bool = True) -> list[KnowledgeChunk]:
        """Load every stored chunk."""
        include = ["documents", "metadatas"]
        if include_embeddings:
            include.append("embeddings")
        try:
            results = self._collection.get(include=include)
        except Exception as e:
            raise StoreError(f"Failed to load chunks: {e}") from e
        return self._results_to_chunks(results)

    def get_by_ids(self, chunk_ids: list[str]) -> list[KnowledgeChunk]:
        if not chunk_ids:
            return []
        try:
            results = self._collection.get(
                ids=chunk_ids,
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as e:
            raise StoreError(f"Failed to load {len(chunk_ids)} chunks: {e}") from e
        return self._results_to_chunks(results)

    def get_stats(self) -> dict[str, Any]:
        """Counts by section and type, plus storage details."""
        try:
            results = self._collection.get(include=["metadatas"])
        except Exception as e:
            raise StoreError(f"Failed to read store statistics: {e}") from e
        metadatas = results.get("metadatas") or []

        sections = Counter(meta.get("section", "unknown") for meta in metadatas)
        types = Counter(meta.get("type", "unknown") for meta in metadatas)
        updated = [meta.get("updated_at", "") for meta in metadatas if meta.get("updated_at")]

        return {
            "collection_name": self.collection_name,
            "total_chunks": len(metadatas),
            "chunks_by_section": dict(sections.most_common()),
            "chunks_by_type": dict(types.most_common()),
            "last_updated": max(updated) if updated else None,
            "persist_directory": str(self.persist_directory),
        }

    # ── conversion helpers ──────────────────────────────────────────────────

    @staticmethod
    def _build_where_clause(filters: dict[str, Any]) -> dict[str, Any]:
        """Build a ChromaDB where clause from simple filters."""
        conditions = []

        for key, value in filters.items():
            if value is None:
                continue
            if isinstance(value, list):
                if value:
                    conditions.append({key: {"$in": value}})
            else:
                conditions.append({key: value})

        if not conditions:
            return {}
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    @staticmethod
    def _results_to_hits(results: dict) -> list[SearchHit]:
        hits: list[SearchHit] = []
        if not results or not results.get("ids") or not results["ids"][0]:
            return hits

        ids = results["ids"][0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for i, chunk_id in enumerate(ids):
            distance = distances[i] if distances else 0.0
            chunk = KnowledgeChunk.from_store(
                chunk_id,
                documents[i] if documents else "",
                metadatas[i] if metadatas else {},
            )
            hits.append(SearchHit.from_chunk(chunk, 1.0 - distance, "vector"))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    @staticmethod
    def _results_to_chunks(results: dict) -> list[KnowledgeChunk]:
        ids = results.get("ids") or []
        documents = results.get("documents") or []
        metadatas = results.get("metadatas") or []
        embeddings = results.get("embeddings")

        chunks = []
        for i, chunk_id in enumerate(ids):
            embedding = None
            if embeddings is not None and len(embeddings) > i and embeddings[i] is not None:
                embedding = [float(v) for v in embeddings[i]]
            chunks.append(
                KnowledgeChunk.from_store(
                    chunk_id,
                    documents[i] if documents else "",
                    metadatas[i] if metadatas else {},
                    embedding=embedding,
                )
            )
        return chunks


# ─────────────────────────────────────────────────────────────────────────────
# Singleton
# ─────────────────────────────────────────────────────────────────────────────


_knowledge_store: Optional[KnowledgeStore] = None


def get_knowledge_store() -> KnowledgeStore:
    """Get or create the shared knowledge store."""
    global _knowledge_store
    if _knowledge_store is None:
        _knowledge_store = KnowledgeStore()
    return _knowledge_store
