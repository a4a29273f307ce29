"""
SBERT Embeddings Module - Local embeddings via sentence-transformers.
====================================================================

Runs the MiniLM sentence encoder locally. Vectors are mean pooled and
L2-normalised, so cosine similarity reduces to a dot product and scores
are comparable with the hashing fallback.
"""

from typing import Optional

from tqdm import tqdm

from dorsu_connect.indexing.embeddings_base import EmbeddingProvider
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import EmbeddingError
from dorsu_connect.shared.logging import get_logger

logger = get_logger(__name__)


MODEL_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "paraphrase-multilingual-MiniLM-L12-v2": 384,
    "multi-qa-MiniLM-L6-cos-v1": 384,
}


class SBERTEmbeddingProvider(EmbeddingProvider):
    """
    SBERT embedding provider using sentence-transformers.

    The model is loaded on first use; constructing the provider is cheap.

    Example:
        >>> provider = SBERTEmbeddingProvider()
        >>> len(provider.embed_text("Who is the university president?"))
        384
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        config = get_settings().embeddings

        self._model_name = model_name or config.model_name
        self._device = device or config.device
        self._batch_size = batch_size or config.batch_size
        self._dimensions = MODEL_DIMENSIONS.get(self._model_name, config.dimensions)
        self._model = None

        logger.debug(
            f"SBERT provider configured: model={self._model_name}, "
            f"device={self._device}, batch_size={self._batch_size}"
        )

    @property
    def provider_name(self) -> str:
        return "sbert"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def model(self):
        """Lazy load and return the sentence transformer model."""
        if self._model is None:
            self._load_model()
        return self._model

    def _load_model(self) -> None:
        """
        Load the sentence transformer model.

        Raises:
            EmbeddingError: If the library is missing or the model fails to load
        """
        try:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self._model_name}")

            device = self._device
            if device == "auto":
                import torch

                device = "cuda" if torch.cuda.is_available() else "cpu"

            self._model = SentenceTransformer(self._model_name, device=device)
            self._dimensions = self._model.get_sentence_embedding_dimension()

            logger.info(
                f"Embedding model loaded: {self._model_name} "
                f"(dims={self._dimensions}, device={device})"
            )

        except ImportError as e:
            raise EmbeddingError(
                "sentence-transformers is required for SBERT embeddings. "
                "Install with: pip install sentence-transformers"
            ) from e
        except Exception as e:
            raise EmbeddingError(f"Failed to load SBERT model {self._model_name}: {e}") from e

    def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            return [0.0] * self._dimensions

        embedding = self.model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return embedding.tolist()

    def embed_batch(
        self,
        texts: list[str],
        show_progress: bool = False,
    ) -> list[list[float]]:
        if not texts:
            return []

        non_empty = [(i, t) for i, t in enumerate(texts) if t and t.strip()]
        result = [[0.0] * self._dimensions for _ in texts]

        if non_empty:
            encoded = self.model.encode(
                [t for _, t in non_empty],
                batch_size=self._batch_size,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=show_progress,
            )
            for (i, _), emb in zip(non_empty, encoded):
                result[i] = emb.tolist()

        return result

    def embed_with_progress(
        self,
        texts: list[str],
        desc: str = "Embedding",
    ) -> list[list[float]]:
        """Embed texts batch by batch with a tqdm progress bar."""
        embeddings: list[list[float]] = []
        for i in tqdm(range(0, len(texts), self._batch_size), desc=desc):
            embeddings.extend(self.embed_batch(texts[i : i + self._batch_size]))
        return embeddings

    def get_info(self) -> dict:
        info = super().get_info()
        info["batch_size"] = self._batch_size
        info["device"] = self._device
        info["loaded"] = self.is_loaded
        if self._model is not None:
            info["device_actual"] = str(self._model.device)
        return info
