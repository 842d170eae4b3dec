"""Indexer: embed and store chunks, delete stale ones."""

import asyncio
import time

import structlog

from semantic_code_sync.errors import EmbedError, StorageError
from semantic_code_sync.models import Chunk, ChunkWithEmbedding, FileFailure, Phase, StoreOutcome
from semantic_code_sync.protocols import EmbedderProtocol, ProgressCallback, VectorStoreProtocol

log = structlog.get_logger()


class Indexer:
    """Embeds and stores code chunks.

    Pure data pipeline: embed -> group by file -> store. Change detection and
    bookkeeping belong to the caller (SyncService). A file is the unit of
    atomicity: it is stored with all of its chunks or not at all.
    """

    def __init__(
        self,
        embedder: EmbedderProtocol,
        store: VectorStoreProtocol,
        embedding_batch_size: int = 32,
        storage_batch_size: int = 100,
    ) -> None:
        if embedding_batch_size < 1 or storage_batch_size < 1:
            raise ValueError("batch sizes must be >= 1")
        self.embedder = embedder
        self.store = store
        self.embedding_batch_size = embedding_batch_size
        self.storage_batch_size = storage_batch_size

    def delete_file(self, file_path: str) -> None:
        """Delete every stored chunk of one file.

        Raises:
            StorageError: If the store rejects the delete.
        """
        self.store.delete_by_file(file_path)

    async def embed_and_store(
        self,
        chunks: list[Chunk],
        on_progress: ProgressCallback | None = None,
    ) -> StoreOutcome:
        """Embed chunks in batches, then store them file by file.

        Args:
            chunks: Chunks of the files to (re)index, grouped by file in order.
            on_progress: Called as (phase, done, total) after each batch.

        Returns:
            StoreOutcome with what was persisted and per-file failures.
        """
        if not chunks:
            if on_progress is not None:
                on_progress(Phase.embedding, 0, 0)
                on_progress(Phase.storing, 0, 0)
            return StoreOutcome()

        vectors = await self._embed(chunks, on_progress)

        by_file: dict[str, list[ChunkWithEmbedding]] = {}
        missing: dict[str, int] = {}
        for chunk, vector in zip(chunks, vectors, strict=True):
            items = by_file.setdefault(chunk.file_path, [])
            if vector is None:
                missing[chunk.file_path] = missing.get(chunk.file_path, 0) + 1
                continue
            items.append(ChunkWithEmbedding(chunk=chunk, embedding=vector))

        failures: list[FileFailure] = []
        for path, count in missing.items():
            total = count + len(by_file.pop(path))
            log.warning("embedding_incomplete_dropping_file", file_path=path, missing=count)
            failures.append(
                FileFailure(
                    path=path,
                    kind=EmbedError.kind,
                    message=f"{count} of {total} chunks received no embedding",
                )
            )

        outcome = await self._store(by_file, on_progress)
        outcome.failures = failures + outcome.failures
        return outcome

    async def _embed(
        self, chunks: list[Chunk], on_progress: ProgressCallback | None
    ) -> list[list[float] | None]:
        """Generate embeddings; a failed batch yields None for each of its chunks."""
        vectors: list[list[float] | None] = []
        total = len(chunks)

        t0 = time.time()
        for batch_start in range(0, total, self.embedding_batch_size):
            batch = chunks[batch_start : batch_start + self.embedding_batch_size]
            contents = [chunk.content for chunk in batch]
            try:
                batch_vectors = await asyncio.to_thread(self.embedder.embed_batch, contents)
            except EmbedError as e:
                log.warning("embedding_batch_failed", batch_start=batch_start, error=str(e))
                batch_vectors = [None] * len(batch)
            vectors.extend(batch_vectors)
            if on_progress is not None:
                on_progress(Phase.embedding, len(vectors), total)

        log.debug(
            "embedding_completed",
            chunks=total,
            duration_ms=round((time.time() - t0) * 1000, 1),
        )
        return vectors

    async def _store(
        self,
        by_file: dict[str, list[ChunkWithEmbedding]],
        on_progress: ProgressCallback | None,
    ) -> StoreOutcome:
        """Write file groups in batches that never split one file."""
        outcome = StoreOutcome()
        total = sum(len(items) for items in by_file.values())
        done = 0
        if not by_file and on_progress is not None:
            on_progress(Phase.storing, 0, 0)

        t0 = time.time()
        for batch_files in self._storage_batches(by_file):
            items = [item for path in batch_files for item in by_file[path]]
            try:
                await asyncio.to_thread(self.store.add_chunks, items)
            except StorageError as e:
                log.warning("storage_batch_failed", files=len(batch_files), error=str(e))
                outcome.failures.extend(
                    FileFailure(path=path, kind=e.kind, message=str(e)) for path in batch_files
                )
            else:
                outcome.chunks_stored += len(items)
                outcome.files_stored.extend(batch_files)
            done += len(items)
            if on_progress is not None:
                on_progress(Phase.storing, done, total)

        log.debug(
            "storage_completed",
            chunks=outcome.chunks_stored,
            files=len(outcome.files_stored),
            duration_ms=round((time.time() - t0) * 1000, 1),
        )
        return outcome

    def _storage_batches(self, by_file: dict[str, list[ChunkWithEmbedding]]) -> list[list[str]]:
        batches: list[list[str]] = []
        current: list[str] = []
        current_size = 0
        for path, items in by_file.items():
            if current and current_size + len(items) > self.storage_batch_size:
                batches.append(current)
                current, current_size = [], 0
            current.append(path)
            current_size += len(items)
        if current:
            batches.append(current)
        return batches

    def clear_store(self) -> None:
        """Delete all chunks from the store."""
        self.store.clear()
