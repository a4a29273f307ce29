"""
Indexing Module - Embeddings and the knowledge store.
=====================================================

- embeddings_base: Abstract provider interface and factory
- embeddings_sbert: Local sentence-transformers provider
- embeddings_hashing: Model-free fallback provider
- embedding_service: Cached embedding with automatic fallback
- knowledge_store: ChromaDB persistence and search
- manifest: Per-refresh index records
"""

from dorsu_connect.indexing.embedding_service import (
    EmbeddingService,
    cosine_similarity,
    get_embedding_service,
)
from dorsu_connect.indexing.embeddings_base import (
    EmbeddingProvider,
    clear_provider_cache,
    get_embedding_provider,
)
from dorsu_connect.indexing.knowledge_store import KnowledgeStore, get_knowledge_store
from dorsu_connect.indexing.manifest import ManifestManager

__all__ = [
    "EmbeddingProvider",
    "get_embedding_provider",
    "clear_provider_cache",
    "EmbeddingService",
    "cosine_similarity",
    "get_embedding_service",
    "KnowledgeStore",
    "get_knowledge_store",
    "ManifestManager",
]
