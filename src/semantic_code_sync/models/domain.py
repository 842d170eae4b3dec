"""Domain models for scanning, chunks, change detection, and sync results."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Language(StrEnum):
    """Languages with a syntax table. Adding one requires a row in chunkers.languages."""

    python = auto()
    javascript = auto()
    typescript = auto()
    tsx = auto()
    java = auto()
    csharp = auto()
    rust = auto()


class ChunkKind(StrEnum):
    """Semantic kind of an extracted unit."""

    function = auto()
    method = auto()
    klass = "class"
    interface = auto()
    property = auto()
    field = auto()
    enum = auto()
    module = auto()


class FileChange(StrEnum):
    """Classification of a path when comparing stored and current fingerprints."""

    added = auto()
    modified = auto()
    deleted = auto()
    unchanged = auto()


class Phase(StrEnum):
    """Progress phases of a rescan, in the order they are reported."""

    retrieving_hashes = "retrieving stored hashes"
    scanning = "scanning filesystem"
    detecting_changes = "detecting changes"
    deleting_stale = "deleting stale chunks"
    processing_files = "processing changed files"
    embedding = "generating embeddings"
    storing = "storing chunks"


# --- Scanning ---


class ScannedFile(BaseModel):
    """A file found by the scanner. Immutable, lives for one scan pass."""

    model_config = ConfigDict(frozen=True)

    absolute_path: Path
    relative_path: str
    extension: str
    language: Language | None
    size_bytes: int

    @property
    def supported(self) -> bool:
        return self.language is not None


class ScanOptions(BaseModel):
    """Walker policy. Full ingestion and rescans must use the same options."""

    respect_ignore_file: bool = True
    skip_hidden: bool = True
    max_file_size_bytes: int = 1024 * 1024


class ScanStatistics(BaseModel):
    total_files: int = 0
    supported_files: int = 0
    unsupported_files: int = 0
    skipped_too_large: int = 0


class ScanReport(BaseModel):
    """Files found by one scan plus counters."""

    files: list[ScannedFile]
    statistics: ScanStatistics

    @property
    def supported_files(self) -> list[ScannedFile]:
        return [f for f in self.files if f.supported]


# --- Chunking ---


class FileFingerprint(BaseModel):
    """Content hash of one file at scan time."""

    model_config = ConfigDict(frozen=True)

    relative_path: str
    content_hash: str


class FileClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_test: bool = False
    is_library: bool = False


class SyntaxUnit(BaseModel):
    """A semantic span extracted from a syntax tree, leading context included."""

    model_config = ConfigDict(frozen=True)

    kind: ChunkKind
    start_line: int
    end_line: int
    text: str


class Chunk(BaseModel):
    """A size-bounded piece of a semantic unit, ready for embedding."""

    content: str
    file_path: str
    start_line: int
    end_line: int
    chunk_type: str
    language: Language
    file_hash: str
    is_test_file: bool = False
    is_library_file: bool = False
    part_index: int | None = None
    part_count: int = 1

    @field_validator("start_line")
    @classmethod
    def start_line_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("start_line must be >= 1")
        return v

    @model_validator(mode="after")
    def end_line_gte_start_line(self) -> Chunk:
        if self.end_line < self.start_line:
            raise ValueError("end_line must be >= start_line")
        return self

    @property
    def is_fragment(self) -> bool:
        return self.part_count > 1


class ChunkWithEmbedding(BaseModel):
    """A chunk paired with its embedding vector for storage."""

    chunk: Chunk
    embedding: list[float]


# --- Change detection ---


class StoredFile(BaseModel):
    """What the store knows about one path: its fingerprint and how many chunks carry it."""

    file_hash: str
    chunk_count: int = 0


class ChangeSet(BaseModel):
    """Result of diffing stored fingerprints against the current scan."""

    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)

    @property
    def to_delete(self) -> list[str]:
        """Paths whose stored chunks are stale (modified + deleted)."""
        return self.modified + self.deleted

    @property
    def to_process(self) -> list[str]:
        """Paths that need chunking (added + modified)."""
        return self.added + self.modified

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    def classification(self, path: str) -> FileChange | None:
        for change in FileChange:
            if path in getattr(self, change.value):
                return change
        return None


# --- Results ---


class FileFailure(BaseModel):
    """A recoverable per-file error, tagged with the error kind."""

    path: str
    kind: str
    message: str


class StoreOutcome(BaseModel):
    """What embed-and-store actually persisted."""

    chunks_stored: int = 0
    files_stored: list[str] = Field(default_factory=list)
    failures: list[FileFailure] = Field(default_factory=list)


class RescanResult(BaseModel):
    """Counters for one rescan. Built once, never persisted."""

    files_scanned: int = 0
    files_added: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    files_unchanged: int = 0
    chunks_added: int = 0
    chunks_deleted: int = 0
    duration_ms: float = 0.0
    failures: list[FileFailure] = Field(default_factory=list)


class IndexStatus(BaseModel):
    """Status of an index compared against the filesystem."""

    is_indexed: bool
    last_updated: datetime | None
    files_count: int
    chunks_count: int
    stale_files: list[str]


class IndexedFile(BaseModel):
    """Per-file summary of what is stored."""

    file_path: str
    language: str
    chunk_count: int
    file_hash: str
    is_test_file: bool
    is_library_file: bool
    last_ingestion: str


class IndexStats(BaseModel):
    """Chunk and file counts for an index, broken down by language and chunk type."""

    chunk_count: int
    file_count: int
    languages: dict[str, int]
    chunk_types: dict[str, int]
