"""Content fingerprints for change detection.

xxHash64 is used because only change detection matters here, not preimage
resistance. Files are streamed through the digest in fixed-size blocks.
"""

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog
import xxhash

from semantic_code_sync.errors import HashError
from semantic_code_sync.models import FileFingerprint

log = structlog.get_logger()

READ_BLOCK_SIZE = 64 * 1024
DEFAULT_CONCURRENCY = 10


def hash_bytes(content: bytes) -> str:
    """Fingerprint an in-memory buffer."""
    return xxhash.xxh64(content).hexdigest()


def hash_file(file_path: str | Path, relative_path: str | None = None) -> FileFingerprint:
    """Fingerprint a file without loading it fully into memory.

    Args:
        file_path: Path to the file.
        relative_path: Path to record on the fingerprint; defaults to file_path.

    Returns:
        FileFingerprint for the file's current bytes.

    Raises:
        HashError: If the file cannot be read.
    """
    path = Path(file_path)
    digest = xxhash.xxh64()
    try:
        with path.open("rb") as f:
            while block := f.read(READ_BLOCK_SIZE):
                digest.update(block)
    except OSError as e:
        raise HashError(f"Failed to hash {path}: {e}", file_path=str(path)) from e

    content_hash = digest.hexdigest()
    log.debug("file_hashed", file_path=str(path), content_hash=content_hash)
    return FileFingerprint(relative_path=relative_path or str(path), content_hash=content_hash)


async def hash_many(
    file_paths: Sequence[str | Path],
    concurrency: int = DEFAULT_CONCURRENCY,
    on_batch: Callable[[int, int], None] | None = None,
) -> dict[str, str]:
    """Hash files in fixed-size concurrent batches.

    A file that fails to hash is left out of the result and logged. Callers
    treat a missing entry as "state unknown, skip this file this pass".

    Args:
        file_paths: Files to hash.
        concurrency: Files hashed concurrently per batch.
        on_batch: Called with (files done, total) after each batch joins.

    Returns:
        Mapping of path (as given, stringified) to content hash.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    results: dict[str, str] = {}
    paths = [str(p) for p in file_paths]

    for batch_start in range(0, len(paths), concurrency):
        batch = paths[batch_start : batch_start + concurrency]
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(hash_file, p) for p in batch),
            return_exceptions=True,
        )
        for path, outcome in zip(batch, outcomes, strict=True):
            if isinstance(outcome, HashError):
                log.warning("hash_failed_skipping", file_path=path, error=str(outcome))
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            results[path] = outcome.content_hash
        if on_batch is not None:
            on_batch(batch_start + len(batch), len(paths))

    log.debug("files_hashed", requested=len(paths), hashed=len(results))
    return results
