"""Embedding generation with sentence-transformers."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import structlog

from semantic_code_sync.errors import EmbedError

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

log = structlog.get_logger()


class Embedder:
    """Generates embeddings for chunks with a shared SentenceTransformer.

    The model is injected (the container owns its lifecycle), so constructing
    an Embedder is cheap.
    """

    def __init__(self, model: SentenceTransformer) -> None:
        self.model = model

    @property
    def embedding_dim(self) -> int | None:
        return self.model.get_sentence_embedding_dimension()

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            EmbedError: If the model fails or returns an unusable vector.
        """
        try:
            embedding = self.model.encode(text, convert_to_numpy=True, show_progress_bar=False)
        except (RuntimeError, ValueError, TypeError) as e:
            raise EmbedError(f"Embedding failed: {e}") from e

        vector = _to_vector(embedding)
        if vector is None:
            raise EmbedError("Embedding model returned an empty or non-finite vector")
        return vector

    def embed_batch(self, texts: list[str]) -> list[list[float] | None]:
        """Generate embeddings for multiple texts.

        Args:
            texts: Texts to embed.

        Returns:
            One entry per input; None where the model produced an unusable vector.

        Raises:
            EmbedError: If the model fails for the whole batch.
        """
        if not texts:
            return []

        log.debug("embedding_batch", count=len(texts))
        try:
            embeddings = self.model.encode(texts, convert_to_numpy=True, show_progress_bar=False)
        except (RuntimeError, ValueError, TypeError) as e:
            raise EmbedError(f"Batch embedding of {len(texts)} texts failed: {e}") from e

        vectors = [_to_vector(e) for e in embeddings]
        if len(vectors) != len(texts):
            raise EmbedError(f"Embedding model returned {len(vectors)} vectors for {len(texts)} texts")

        missing = sum(1 for v in vectors if v is None)
        if missing:
            log.warning("embedding_vectors_unusable", count=missing, batch_size=len(texts))
        return vectors


def _to_vector(embedding) -> list[float] | None:
    values = [float(x) for x in embedding.tolist()]
    if not values or not all(math.isfinite(x) for x in values):
        return None
    return values
