"""LanceDB vector storage: one table per index id."""

import re
import uuid
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import lancedb
import pyarrow as pa
import structlog

from semantic_code_sync.errors import ConfigurationError, StorageError
from semantic_code_sync.models import ChunkWithEmbedding, IndexedFile, IndexStats, StoredFile

log = structlog.get_logger()

INDEX_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

FINGERPRINT_COLUMNS = ["file_path", "file_hash"]
SUMMARY_COLUMNS = [
    "file_path",
    "language",
    "chunk_type",
    "file_hash",
    "is_test_file",
    "is_library_file",
    "ingestion_timestamp",
]


def chunks_schema(dim: int) -> pa.Schema:
    """Row schema for an index table with embeddings of the given dimension."""
    return pa.schema(
        [
            pa.field("id", pa.utf8()),
            pa.field("vector", pa.list_(pa.float32(), dim)),
            pa.field("content", pa.utf8()),
            pa.field("file_path", pa.utf8()),
            pa.field("start_line", pa.int32()),
            pa.field("end_line", pa.int32()),
            pa.field("language", pa.utf8()),
            pa.field("chunk_type", pa.utf8()),
            pa.field("is_test_file", pa.bool_()),
            pa.field("is_library_file", pa.bool_()),
            pa.field("file_hash", pa.utf8()),
            pa.field("ingestion_timestamp", pa.utf8()),
        ]
    )


def validate_index_id(index_id: str) -> str:
    """Index ids become table names, so only a conservative charset is allowed."""
    if not INDEX_ID_RE.match(index_id):
        raise ConfigurationError(
            f"Invalid index id {index_id!r}: use letters, digits, '_', '-' or '.'"
        )
    return index_id


@contextmanager
def _storage_errors(operation: str, file_path: str | None = None) -> Iterator[None]:
    """Re-raise any backend failure as StorageError."""
    try:
        yield
    except StorageError:
        raise
    except Exception as e:
        raise StorageError(f"LanceDB {operation} failed: {e}", file_path=file_path) from e


class LanceDBConnection:
    """Owns the LanceDB database handle. Shared by every store in one process."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        with _storage_errors("connect"):
            db_path.mkdir(parents=True, exist_ok=True)
            self.db = lancedb.connect(str(db_path))
        log.debug("lancedb_connected", db_path=str(db_path))

    def open_table(self, name: str) -> lancedb.table.Table | None:
        """Open a table, or None if it has not been created yet."""
        try:
            return self.db.open_table(name)
        except (ValueError, FileNotFoundError):
            return None


class LanceDBVectorStore:
    """Chunk storage for one index. Implements VectorStoreProtocol.

    The table is created lazily on the first write; until then every read
    behaves as an empty index.
    """

    def __init__(self, connection: LanceDBConnection, index_id: str) -> None:
        self.connection = connection
        self.index_id = validate_index_id(index_id)

    @property
    def table_name(self) -> str:
        return self.index_id

    def _table(self) -> lancedb.table.Table | None:
        with _storage_errors("open_table"):
            return self.connection.open_table(self.table_name)

    def _rows(self, columns: list[str]) -> list[dict]:
        table = self._table()
        if table is None:
            return []
        with _storage_errors("read"):
            return table.to_arrow().select(columns).to_pylist()

    def get_file_fingerprints(self) -> dict[str, StoredFile]:
        """Stored fingerprint and chunk count per relative path.

        A path whose chunks disagree on the hash gets an empty fingerprint, so
        it never matches a current hash and is rebuilt on the next pass.
        """
        stored: dict[str, StoredFile] = {}
        for row in self._rows(FINGERPRINT_COLUMNS):
            path, file_hash = row["file_path"], row["file_hash"]
            existing = stored.get(path)
            if existing is None:
                stored[path] = StoredFile(file_hash=file_hash, chunk_count=1)
                continue
            if existing.file_hash and existing.file_hash != file_hash:
                log.warning("inconsistent_stored_hashes", file_path=path)
                existing.file_hash = ""
            existing.chunk_count += 1
        return stored

    def add_chunks(self, items: list[ChunkWithEmbedding]) -> None:
        """Add chunks with their embeddings, creating the table on first use.

        Args:
            items: Chunks paired with embeddings; all vectors share one dimension.
        """
        if not items:
            return

        timestamp = datetime.now(UTC).isoformat()
        data = [
            {
                "id": uuid.uuid4().hex,
                "vector": item.embedding,
                "content": item.chunk.content,
                "file_path": item.chunk.file_path,
                "start_line": item.chunk.start_line,
                "end_line": item.chunk.end_line,
                "language": item.chunk.language.value,
                "chunk_type": item.chunk.chunk_type,
                "is_test_file": item.chunk.is_test_file,
                "is_library_file": item.chunk.is_library_file,
                "file_hash": item.chunk.file_hash,
                "ingestion_timestamp": timestamp,
            }
            for item in items
        ]
        schema = chunks_schema(len(items[0].embedding))

        with _storage_errors("add", file_path=items[0].chunk.file_path):
            table = self.connection.open_table(self.table_name)
            if table is None:
                table = self.connection.db.create_table(
                    self.table_name, schema=schema, exist_ok=True
                )
                log.info("created_index_table", index_id=self.index_id)
            table.add(pa.Table.from_pylist(data, schema=schema))
        log.debug("added_chunks", index_id=self.index_id, count=len(data))

    def delete_by_file(self, file_path: str) -> None:
        """Delete all chunks whose file_path equals the given path exactly."""
        table = self._table()
        if table is None:
            return
        escaped = file_path.replace("'", "''")
        with _storage_errors("delete", file_path=file_path):
            table.delete(f"file_path = '{escaped}'")
        log.debug("deleted_chunks_for_file", index_id=self.index_id, file_path=file_path)

    def get_indexed_files(self) -> list[str]:
        """Get list of all indexed file paths."""
        return sorted({row["file_path"] for row in self._rows(["file_path"])})

    def list_files(self) -> list[IndexedFile]:
        """Per-file summaries, sorted by path."""
        files: dict[str, IndexedFile] = {}
        for row in self._rows(SUMMARY_COLUMNS):
            path = row["file_path"]
            summary = files.get(path)
            if summary is None:
                files[path] = IndexedFile(
                    file_path=path,
                    language=row["language"],
                    chunk_count=1,
                    file_hash=row["file_hash"],
                    is_test_file=row["is_test_file"],
                    is_library_file=row["is_library_file"],
                    last_ingestion=row["ingestion_timestamp"],
                )
                continue
            summary.chunk_count += 1
            summary.last_ingestion = max(summary.last_ingestion, row["ingestion_timestamp"])
        return [files[path] for path in sorted(files)]

    def get_stats(self) -> IndexStats:
        """Chunk and file counts by language and chunk type."""
        rows = self._rows(["language", "chunk_type"])
        return IndexStats(
            chunk_count=self.count(),
            file_count=len(self.get_indexed_files()),
            languages=dict(Counter(row["language"] for row in rows)),
            chunk_types=dict(Counter(row["chunk_type"] for row in rows)),
        )

    def last_ingestion(self) -> str | None:
        """Most recent ingestion timestamp, if anything is stored."""
        timestamps = [row["ingestion_timestamp"] for row in self._rows(["ingestion_timestamp"])]
        return max(timestamps, default=None)

    def count(self) -> int:
        """Count total chunks in the store."""
        table = self._table()
        if table is None:
            return 0
        with _storage_errors("count"):
            return table.count_rows()

    def clear(self) -> None:
        """Drop the index table. The next write recreates it."""
        with _storage_errors("drop_table"):
            self.connection.db.drop_table(self.table_name, ignore_missing=True)
        log.debug("cleared_store", index_id=self.index_id)
