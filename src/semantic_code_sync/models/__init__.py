"""Domain models."""

from semantic_code_sync.models.domain import (
    ChangeSet,
    Chunk,
    ChunkKind,
    ChunkWithEmbedding,
    FileChange,
    FileClassification,
    FileFailure,
    FileFingerprint,
    IndexedFile,
    IndexStats,
    IndexStatus,
    Language,
    Phase,
    RescanResult,
    ScanOptions,
    ScannedFile,
    ScanReport,
    ScanStatistics,
    StoredFile,
    StoreOutcome,
    SyntaxUnit,
)

__all__ = [
    "ChangeSet",
    "Chunk",
    "ChunkKind",
    "ChunkWithEmbedding",
    "FileChange",
    "FileClassification",
    "FileFailure",
    "FileFingerprint",
    "IndexStats",
    "IndexStatus",
    "IndexedFile",
    "Language",
    "Phase",
    "RescanResult",
    "ScanOptions",
    "ScanReport",
    "ScanStatistics",
    "ScannedFile",
    "StoreOutcome",
    "StoredFile",
    "SyntaxUnit",
]
