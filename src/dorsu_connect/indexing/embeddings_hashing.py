"""
Hashing Embeddings Module - Model-free fallback vectors.
========================================================

Used when the transformer model cannot be loaded (offline hosts, CI). Each
word longer than two characters is bucketed into a dimension by a stable
32-bit string hash and weighted by its frequency; chunk keywords get an
extra +3. The vector is L2-normalised so it can share an index with SBERT
vectors of the same size, although scores across the two are not
meaningfully comparable.
"""

from collections import Counter
from typing import Optional

import numpy as np

from dorsu_connect.indexing.embeddings_base import EmbeddingProvider
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.utils import js_string_hash

logger = get_logger(__name__)

KEYWORD_WEIGHT = 3


class HashingEmbeddingProvider(EmbeddingProvider):
    """
    Bag-of-words hashing provider.

    Example:
        >>> provider = HashingEmbeddingProvider()
        >>> vec = provider.embed_document("OSA handles student affairs", ["osa"])
        >>> round(sum(v * v for v in vec), 6)
        1.0
    """

    def __init__(self, dimensions: int = 384):
        self._dimensions = dimensions

    @property
    def provider_name(self) -> str:
        return "hashing"

    @property
    def model_name(self) -> str:
        return f"word-hash-{self._dimensions}"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _vectorize(self, counts: Counter) -> list[float]:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for word, freq in counts.items():
            vector[js_string_hash(word) % self._dimensions] += freq
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    @staticmethod
    def _word_counts(text: str) -> Counter:
        return Counter(word for word in text.lower().split() if len(word) > 2)

    def embed_text(self, text: str) -> list[float]:
        return self._vectorize(self._word_counts(text or ""))

    def embed_document(self, text: str, keywords: Optional[list[str]] = None) -> list[float]:
        keywords = keywords or []
        counts = self._word_counts(f"{text} {' '.join(keywords)}")
        for keyword in keywords:
            counts[keyword.lower()] += KEYWORD_WEIGHT
        return self._vectorize(counts)

    def embed_batch(
        self,
        texts: list[str],
        show_progress: bool = False,
    ) -> list[list[float]]:
        return [self.embed_text(text) for text in texts]

    def is_available(self) -> bool:
        return True
