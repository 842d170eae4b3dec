"""Error taxonomy for chunking and incremental sync.

Per-file errors (parse, hash, embed, storage) are recoverable: the sync engine
logs them, records a ``FileFailure`` tagged with the error's ``kind`` and moves
on to the next file. Only ``SyncError`` escapes ``SyncService.rescan``.
"""

from typing import ClassVar


class IndexingError(Exception):
    """Base class for all indexing errors."""

    kind: ClassVar[str] = "indexing"

    def __init__(self, message: str, *, file_path: str | None = None) -> None:
        super().__init__(message)
        self.file_path = file_path


class ParseError(IndexingError):
    """Source text could not be read or parsed into a syntax tree."""

    kind = "parse"

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        language: str | None = None,
        text_length: int = 0,
    ) -> None:
        super().__init__(message, file_path=file_path)
        self.language = language
        self.text_length = text_length


class HashError(IndexingError):
    """File content could not be fingerprinted."""

    kind = "hash"


class EmbedError(IndexingError):
    """Embedding generation failed for a chunk or batch."""

    kind = "embed"


class StorageError(IndexingError):
    """A vector store operation failed."""

    kind = "storage"


class ConfigurationError(IndexingError):
    """Invalid configuration, e.g. an unsupported language or index id."""

    kind = "configuration"


class SyncError(IndexingError):
    """A rescan could not complete at all (e.g. storage unreachable)."""

    kind = "sync"
