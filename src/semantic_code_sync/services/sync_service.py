"""Sync service: hash-based incremental rescans of one index."""

import asyncio
import time
from collections.abc import Callable, Collection, Mapping
from datetime import datetime
from pathlib import Path

import structlog

from semantic_code_sync.config import Settings
from semantic_code_sync.errors import HashError, IndexingError, StorageError, SyncError
from semantic_code_sync.hashing import hash_many
from semantic_code_sync.indexer import Indexer
from semantic_code_sync.models import (
    ChangeSet,
    Chunk,
    FileFailure,
    IndexStatus,
    Phase,
    RescanResult,
    ScannedFile,
    ScanOptions,
    StoredFile,
)
from semantic_code_sync.protocols import ChunkerProtocol, ProgressCallback
from semantic_code_sync.scanner import FileScanner

log = structlog.get_logger()


def classify_changes(
    stored: Mapping[str, str],
    current: Mapping[str, str],
    scanned: Collection[str],
) -> ChangeSet:
    """Diff stored fingerprints against the current scan.

    Args:
        stored: Stored hash per relative path.
        current: Current hash per relative path, for files that hashed.
        scanned: Every supported path the scan found, hashed or not.

    Returns:
        ChangeSet. A scanned path missing from ``current`` (it failed to hash)
        lands in no bucket, so it is neither reprocessed nor deleted.
    """
    changes = ChangeSet()
    for path in scanned:
        current_hash = current.get(path)
        if current_hash is None:
            continue
        stored_hash = stored.get(path)
        if stored_hash is None:
            changes.added.append(path)
        elif stored_hash != current_hash:
            changes.modified.append(path)
        else:
            changes.unchanged.append(path)

    scanned_set = set(scanned)
    changes.deleted.extend(sorted(path for path in stored if path not in scanned_set))
    return changes


class SyncService:
    """Keeps one index consistent with a directory tree.

    Owns scanning, change detection, stale-chunk deletion and chunking.
    Delegates embedding and storage to Indexer. One rescan at a time per
    index; concurrent rescans of the same index are the caller's problem.
    """

    def __init__(
        self,
        settings: Settings,
        scanner: FileScanner,
        pipeline: ChunkerProtocol,
        indexer: Indexer,
        index_id: str = "default",
    ) -> None:
        self.settings = settings
        self.scanner = scanner
        self.pipeline = pipeline
        self.indexer = indexer
        self.index_id = index_id

    @property
    def scan_options(self) -> ScanOptions:
        return ScanOptions(
            respect_ignore_file=self.settings.use_gitignore,
            skip_hidden=self.settings.skip_hidden,
            max_file_size_bytes=self.settings.max_file_size_bytes,
        )

    async def rescan(
        self,
        root: Path,
        on_progress: ProgressCallback | None = None,
    ) -> RescanResult:
        """Bring the index in line with the files under root.

        Phases run strictly in order: stored hashes, scan, classification,
        stale deletes, then reprocessing of added and modified files.

        Args:
            root: Project root directory.
            on_progress: Called as (phase, current, total).

        Returns:
            RescanResult with counts, duration and per-file failures.

        Raises:
            SyncError: If stored hashes cannot be read or root cannot be scanned.
        """
        start = time.perf_counter()
        root = root.resolve()

        def _progress(phase: Phase, current: int, total: int) -> None:
            if on_progress is not None:
                on_progress(phase, current, total)

        with structlog.contextvars.bound_contextvars(index_id=self.index_id):
            _progress(Phase.retrieving_hashes, 0, 1)
            stored = await self._stored_files()
            _progress(Phase.retrieving_hashes, 1, 1)

            _progress(Phase.scanning, 0, 1)
            files = await self._scan(root)
            _progress(Phase.scanning, 1, 1)

            _progress(Phase.detecting_changes, 0, len(files))
            changes, failures = await self._detect_changes(
                stored, files, lambda done, total: _progress(Phase.detecting_changes, done, total)
            )
            log.info(
                "changes_detected",
                added=len(changes.added),
                modified=len(changes.modified),
                deleted=len(changes.deleted),
                unchanged=len(changes.unchanged),
            )
            if not changes.has_changes:
                log.info("index_up_to_date", files=len(changes.unchanged))

            chunks_deleted, delete_failures = await self._delete_stale(
                changes.to_delete, stored, _progress
            )
            failures.extend(delete_failures)

            failed_deletes = {f.path for f in delete_failures}
            by_path = {f.relative_path: f for f in files}
            to_process = [by_path[p] for p in changes.to_process if p not in failed_deletes]

            chunks, chunk_failures = await self.chunk_files(to_process, _progress)
            failures.extend(chunk_failures)

            outcome = await self.indexer.embed_and_store(chunks, on_progress=on_progress)
            failures.extend(outcome.failures)

            result = RescanResult(
                files_scanned=len(files),
                files_added=len(changes.added),
                files_modified=len(changes.modified),
                files_deleted=len(changes.deleted),
                files_unchanged=len(changes.unchanged),
                chunks_added=outcome.chunks_stored,
                chunks_deleted=chunks_deleted,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
                failures=failures,
            )
            log.info(
                "rescan_completed",
                root=str(root),
                chunks_added=result.chunks_added,
                chunks_deleted=result.chunks_deleted,
                failures=len(failures),
                duration_ms=result.duration_ms,
            )
            return result

    async def index(
        self,
        root: Path,
        force: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> RescanResult:
        """Full ingestion. With force, the index is dropped first so every file is added."""
        if force:
            try:
                await asyncio.to_thread(self.indexer.clear_store)
            except StorageError as e:
                raise SyncError(f"Could not clear index '{self.index_id}': {e}") from e
            log.info("index_cleared", index_id=self.index_id)
        return await self.rescan(root, on_progress)

    async def get_status(self, root: Path) -> IndexStatus:
        """Compare the index against the filesystem without changing either.

        Returns:
            IndexStatus; stale_files lists added, modified and deleted paths.
        """
        stored = await self._stored_files()
        if not stored:
            return IndexStatus(
                is_indexed=False,
                last_updated=None,
                files_count=0,
                chunks_count=0,
                stale_files=[],
            )

        files = await self._scan(root.resolve())
        changes, _ = await self._detect_changes(stored, files)

        try:
            last = await asyncio.to_thread(self.indexer.store.last_ingestion)
        except StorageError as e:
            raise SyncError(f"Could not read index '{self.index_id}': {e}") from e

        return IndexStatus(
            is_indexed=True,
            last_updated=datetime.fromisoformat(last) if last else None,
            files_count=len(stored),
            chunks_count=sum(s.chunk_count for s in stored.values()),
            stale_files=sorted(changes.added + changes.modified + changes.deleted),
        )

    # --- Phases ---

    async def _stored_files(self) -> dict[str, StoredFile]:
        try:
            return await asyncio.to_thread(self.indexer.store.get_file_fingerprints)
        except StorageError as e:
            raise SyncError(
                f"Could not retrieve stored hashes for index '{self.index_id}': {e}"
            ) from e

    async def _scan(self, root: Path) -> list[ScannedFile]:
        try:
            report = await asyncio.to_thread(self.scanner.scan, root, self.scan_options)
        except OSError as e:
            raise SyncError(f"Could not scan {root}: {e}") from e
        log.debug(
            "scan_statistics",
            total=report.statistics.total_files,
            supported=report.statistics.supported_files,
            skipped_too_large=report.statistics.skipped_too_large,
        )
        return report.supported_files

    async def _detect_changes(
        self,
        stored: dict[str, StoredFile],
        files: list[ScannedFile],
        on_batch: Callable[[int, int], None] | None = None,
    ) -> tuple[ChangeSet, list[FileFailure]]:
        hashes = await hash_many(
            [f.absolute_path for f in files],
            concurrency=self.settings.hash_concurrency,
            on_batch=on_batch,
        )

        current: dict[str, str] = {}
        failures: list[FileFailure] = []
        for f in files:
            content_hash = hashes.get(str(f.absolute_path))
            if content_hash is None:
                failures.append(
                    FileFailure(
                        path=f.relative_path,
                        kind=HashError.kind,
                        message="File could not be read; skipped this pass",
                    )
                )
            else:
                current[f.relative_path] = content_hash

        changes = classify_changes(
            {path: s.file_hash for path, s in stored.items()},
            current,
            [f.relative_path for f in files],
        )
        return changes, failures

    async def _delete_stale(
        self,
        paths: list[str],
        stored: dict[str, StoredFile],
        progress: ProgressCallback,
    ) -> tuple[int, list[FileFailure]]:
        """Delete per file so one failure does not block the rest. No retries."""
        chunks_deleted = 0
        failures: list[FileFailure] = []

        progress(Phase.deleting_stale, 0, len(paths))
        for i, path in enumerate(paths, start=1):
            try:
                await asyncio.to_thread(self.indexer.delete_file, path)
            except StorageError as e:
                log.warning("delete_failed", file_path=path, error=str(e))
                failures.append(FileFailure(path=path, kind=e.kind, message=str(e)))
            else:
                chunks_deleted += stored[path].chunk_count
            progress(Phase.deleting_stale, i, len(paths))

        return chunks_deleted, failures

    async def chunk_files(
        self,
        files: list[ScannedFile],
        progress: ProgressCallback | None = None,
    ) -> tuple[list[Chunk], list[FileFailure]]:
        """Chunk files in parallel batches; a file that fails is skipped and recorded."""
        all_chunks: list[Chunk] = []
        failures: list[FileFailure] = []
        total_files = len(files)
        batch_size = self.settings.chunk_concurrency

        if progress is not None:
            progress(Phase.processing_files, 0, total_files)

        t0 = time.time()
        for batch_start in range(0, total_files, batch_size):
            batch = files[batch_start : batch_start + batch_size]

            chunk_tasks = [
                asyncio.to_thread(
                    self.pipeline.chunk_file, f.absolute_path, f.language, f.relative_path
                )
                for f in batch
            ]
            batch_results = await asyncio.gather(*chunk_tasks, return_exceptions=True)
            for f, outcome in zip(batch, batch_results, strict=True):
                if isinstance(outcome, IndexingError):
                    log.warning(
                        "chunking_failed_skipping",
                        file_path=f.relative_path,
                        kind=outcome.kind,
                        error=str(outcome),
                    )
                    failures.append(
                        FileFailure(path=f.relative_path, kind=outcome.kind, message=str(outcome))
                    )
                    continue
                if isinstance(outcome, BaseException):
                    raise outcome
                all_chunks.extend(outcome)

            if progress is not None:
                progress(Phase.processing_files, batch_start + len(batch), total_files)

        log.debug(
            "chunking_completed",
            files=total_files,
            chunks=len(all_chunks),
            duration_ms=round((time.time() - t0) * 1000, 1),
        )
        return all_chunks, failures
