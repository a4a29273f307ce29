"""
Ingestion Module - Dataset chunking and keyword extraction.
===========================================================

- chunker: Walk the university JSON dataset and emit knowledge chunks
- keywords: Structured and frequency-based keyword extraction
"""

from dorsu_connect.ingestion.chunker import (
    ChunkerConfig,
    KnowledgeChunker,
    object_to_text,
    parse_dataset,
)
from dorsu_connect.ingestion.keywords import extract_keywords, top_words

__all__ = [
    "ChunkerConfig",
    "KnowledgeChunker",
    "object_to_text",
    "parse_dataset",
    "extract_keywords",
    "top_words",
]
