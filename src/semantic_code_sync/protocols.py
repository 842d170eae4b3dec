"""Protocols for dependency injection."""

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from semantic_code_sync.models import (
    Chunk,
    ChunkWithEmbedding,
    IndexedFile,
    IndexStats,
    Language,
    StoredFile,
)

# (phase, current, total); phases are the values of models.Phase
ProgressCallback = Callable[[str, int, int], None]


class TokenizerProtocol(Protocol):
    """Deterministic token counter used for every budget decision."""

    def count(self, text: str) -> int:
        """Count tokens in text."""
        ...


class EmbedderProtocol(Protocol):
    """Interface for embedding generation."""

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float] | None]:
        """Generate embeddings for multiple texts; None marks a per-item failure."""
        ...


class VectorStoreProtocol(Protocol):
    """Interface for vector storage of one index."""

    def get_file_fingerprints(self) -> dict[str, StoredFile]:
        """Stored fingerprint and chunk count per relative path."""
        ...

    def add_chunks(self, items: list[ChunkWithEmbedding]) -> None:
        """Add chunks with embeddings to the store."""
        ...

    def delete_by_file(self, file_path: str) -> None:
        """Delete all chunks for a specific file."""
        ...

    def get_indexed_files(self) -> list[str]:
        """Get list of all indexed file paths."""
        ...

    def list_files(self) -> list[IndexedFile]:
        """Per-file summaries of stored chunks."""
        ...

    def get_stats(self) -> IndexStats:
        """Chunk and file counts by language and chunk type."""
        ...

    def last_ingestion(self) -> str | None:
        """Most recent ingestion timestamp, if anything is stored."""
        ...

    def count(self) -> int:
        """Count total chunks in the store."""
        ...

    def clear(self) -> None:
        """Delete all chunks from the store."""
        ...


class ChunkerProtocol(Protocol):
    """Interface for per-file chunking."""

    def chunk_file(
        self, absolute_path: Path, language: Language, relative_path: str | None = None
    ) -> list[Chunk]:
        """Extract size-bounded chunks from a source file."""
        ...
