"""
Embeddings Base Module - Abstract interface for embedding providers.
===================================================================

Defines the abstract base class for embedding providers. The transformer
provider (SBERT) and the model-free hashing provider share this interface,
so the embedding service can fall back from one to the other without the
store or search layers noticing.
"""

from abc import ABC, abstractmethod
from typing import Optional

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations must provide:
    - embed_text(): Embed a single text string
    - embed_batch(): Embed multiple texts

    Properties:
    - model_name: Name of the embedding model
    - dimensions: Embedding vector dimensions
    - provider_name: Provider identifier (sbert, hashing)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding vector dimensions."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats
        """

    @abstractmethod
    def embed_batch(
        self,
        texts: list[str],
        show_progress: bool = False,
    ) -> list[list[float]]:
        """
        Embed multiple texts.

        Args:
            texts: List of texts to embed
            show_progress: Whether to show a progress bar

        Returns:
            List of embedding vectors, one per input text
        """

    def embed_query(self, query: str) -> list[float]:
        """Embed a query. Both built-in providers embed queries like documents."""
        return self.embed_text(query)

    def embed_document(self, text: str, keywords: Optional[list[str]] = None) -> list[float]:
        """
        Embed a chunk's text together with its keywords.

        Providers that can weight keywords separately override this.
        """
        combined = f"{text} {' '.join(keywords or [])}".strip()
        return self.embed_text(combined)

    def is_available(self) -> bool:
        """Check if the provider can produce vectors of the declared size."""
        try:
            return len(self.embed_text("availability check")) == self.dimensions
        except Exception as e:
            logger.warning(f"Provider {self.provider_name} not available: {e}")
            return False

    def get_info(self) -> dict:
        """Get provider information."""
        return {
            "provider": self.provider_name,
            "model": self.model_name,
            "dimensions": self.dimensions,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


PROVIDER_NAMES = ("sbert", "hashing")

_provider_cache: dict[str, EmbeddingProvider] = {}


def get_embedding_provider(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> EmbeddingProvider:
    """
    Get an embedding provider instance.

    Args:
        provider_name: "sbert" or "hashing". If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Returns:
        EmbeddingProvider instance

    Raises:
        ValueError: If provider name is invalid

    Example:
        >>> provider = get_embedding_provider("hashing")
        >>> len(provider.embed_text("admission requirements"))
        384
    """
    settings = get_settings()
    if provider_name is None:
        provider_name = settings.get_effective_embedding_provider()

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    provider: EmbeddingProvider

    if provider_name == "sbert":
        from dorsu_connect.indexing.embeddings_sbert import SBERTEmbeddingProvider

        provider = SBERTEmbeddingProvider()

    elif provider_name == "hashing":
        from dorsu_connect.indexing.embeddings_hashing import HashingEmbeddingProvider

        provider = HashingEmbeddingProvider(dimensions=settings.embeddings.dimensions)

    else:
        raise ValueError(
            f"Unknown embedding provider: {provider_name}. "
            f"Valid options: {', '.join(PROVIDER_NAMES)}"
        )

    if use_cache:
        _provider_cache[provider_name] = provider

    logger.info(
        f"Initialized embedding provider: {provider.provider_name} "
        f"(model={provider.model_name}, dims={provider.dimensions})"
    )

    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache."""
    _provider_cache.clear()
