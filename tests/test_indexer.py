"""Tests for Indexer (embed and store)."""

from unittest.mock import MagicMock

import pytest

from semantic_code_sync.errors import EmbedError, StorageError
from semantic_code_sync.indexer import Indexer
from semantic_code_sync.models import Chunk, ChunkWithEmbedding, Language, Phase
from semantic_code_sync.protocols import EmbedderProtocol, VectorStoreProtocol


def make_chunks(file_path: str, count: int) -> list[Chunk]:
    return [
        Chunk(
            content=f"{file_path} chunk {i}",
            file_path=file_path,
            start_line=i + 1,
            end_line=i + 1,
            chunk_type="function",
            language=Language.python,
            file_hash=f"hash-{file_path}",
        )
        for i in range(count)
    ]


def stored_paths(store: MagicMock) -> list[list[str]]:
    """File paths of each add_chunks call, in call order."""
    batches = []
    for call in store.add_chunks.call_args_list:
        items: list[ChunkWithEmbedding] = call.args[0]
        batches.append([item.chunk.file_path for item in items])
    return batches


class TestEmbedAndStore:
    """Tests for Indexer.embed_and_store()."""

    @pytest.mark.asyncio
    async def test_stores_all_chunks(
        self, mock_embedder: EmbedderProtocol, mock_store: VectorStoreProtocol
    ):
        """Every embedded chunk is stored and counted."""
        indexer = Indexer(mock_embedder, mock_store)
        chunks = make_chunks("a.py", 3) + make_chunks("b.py", 2)

        outcome = await indexer.embed_and_store(chunks)

        assert outcome.chunks_stored == 5
        assert outcome.files_stored == ["a.py", "b.py"]
        assert outcome.failures == []

    @pytest.mark.asyncio
    async def test_empty_input(self, mock_embedder: EmbedderProtocol, mock_store: MagicMock):
        """No chunks means no embedding or storage calls."""
        indexer = Indexer(mock_embedder, mock_store)

        outcome = await indexer.embed_and_store([])

        assert outcome.chunks_stored == 0
        mock_embedder.embed_batch.assert_not_called()
        mock_store.add_chunks.assert_not_called()

    @pytest.mark.asyncio
    async def test_embeds_in_fixed_batches(
        self, mock_embedder: MagicMock, mock_store: VectorStoreProtocol
    ):
        """Embedding calls never exceed the batch size."""
        indexer = Indexer(mock_embedder, mock_store, embedding_batch_size=2)

        await indexer.embed_and_store(make_chunks("a.py", 5))

        sizes = [len(call.args[0]) for call in mock_embedder.embed_batch.call_args_list]
        assert sizes == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_storage_batches_never_split_a_file(
        self, mock_embedder: EmbedderProtocol, mock_store: MagicMock
    ):
        """A file's chunks are written in one call even when that exceeds the batch size."""
        indexer = Indexer(mock_embedder, mock_store, storage_batch_size=3)
        chunks = make_chunks("a.py", 2) + make_chunks("b.py", 4) + make_chunks("c.py", 1)

        await indexer.embed_and_store(chunks)

        assert stored_paths(mock_store) == [
            ["a.py", "a.py"],
            ["b.py"] * 4,
            ["c.py"],
        ]

    @pytest.mark.asyncio
    async def test_small_files_share_a_batch(
        self, mock_embedder: EmbedderProtocol, mock_store: MagicMock
    ):
        """Files are packed together up to the batch size."""
        indexer = Indexer(mock_embedder, mock_store, storage_batch_size=4)
        chunks = make_chunks("a.py", 2) + make_chunks("b.py", 2) + make_chunks("c.py", 1)

        await indexer.embed_and_store(chunks)

        assert stored_paths(mock_store) == [["a.py", "a.py", "b.py", "b.py"], ["c.py"]]

    @pytest.mark.asyncio
    async def test_missing_vector_drops_whole_file(
        self, mock_embedder: MagicMock, mock_store: VectorStoreProtocol
    ):
        """A file with any chunk lacking a vector is not stored at all."""

        def embed(texts: list[str]) -> list[list[float] | None]:
            return [None if t == "a.py chunk 1" else [0.1] * 8 for t in texts]

        mock_embedder.embed_batch.side_effect = embed
        indexer = Indexer(mock_embedder, mock_store)

        outcome = await indexer.embed_and_store(make_chunks("a.py", 3) + make_chunks("b.py", 1))

        assert outcome.files_stored == ["b.py"]
        assert outcome.chunks_stored == 1
        assert [(f.path, f.kind) for f in outcome.failures] == [("a.py", "embed")]
        assert "1 of 3" in outcome.failures[0].message

    @pytest.mark.asyncio
    async def test_failed_embedding_batch_is_recoverable(
        self, mock_embedder: MagicMock, mock_store: VectorStoreProtocol
    ):
        """An EmbedError fails only the files in that batch."""
        calls = 0

        def embed(texts: list[str]) -> list[list[float]]:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise EmbedError("model crashed")
            return [[0.1] * 8 for _ in texts]

        mock_embedder.embed_batch.side_effect = embed
        indexer = Indexer(mock_embedder, mock_store, embedding_batch_size=2)

        outcome = await indexer.embed_and_store(make_chunks("a.py", 2) + make_chunks("b.py", 2))

        assert outcome.files_stored == ["b.py"]
        assert [f.path for f in outcome.failures] == ["a.py"]

    @pytest.mark.asyncio
    async def test_storage_failure_is_recorded_per_file(
        self, mock_embedder: EmbedderProtocol, mock_store: MagicMock
    ):
        """A failed write records every file of that batch and continues."""
        mock_store.add_chunks.side_effect = [StorageError("disk full"), None]
        indexer = Indexer(mock_embedder, mock_store, storage_batch_size=2)

        outcome = await indexer.embed_and_store(make_chunks("a.py", 2) + make_chunks("b.py", 2))

        assert outcome.files_stored == ["b.py"]
        assert outcome.chunks_stored == 2
        assert [(f.path, f.kind) for f in outcome.failures] == [("a.py", "storage")]

    @pytest.mark.asyncio
    async def test_reports_progress(
        self, mock_embedder: EmbedderProtocol, mock_store: VectorStoreProtocol
    ):
        """Embedding progress precedes storage progress, both counted in chunks."""
        indexer = Indexer(mock_embedder, mock_store, embedding_batch_size=2, storage_batch_size=10)
        events: list[tuple[str, int, int]] = []

        await indexer.embed_and_store(
            make_chunks("a.py", 3), on_progress=lambda *e: events.append(e)
        )

        assert events == [
            (Phase.embedding, 2, 3),
            (Phase.embedding, 3, 3),
            (Phase.storing, 3, 3),
        ]

    @pytest.mark.asyncio
    async def test_empty_input_still_reports_phases(
        self, mock_embedder: EmbedderProtocol, mock_store: VectorStoreProtocol
    ):
        """With nothing to embed, both phases are reported as 0 of 0."""
        events: list[tuple[str, int, int]] = []

        await Indexer(mock_embedder, mock_store).embed_and_store(
            [], on_progress=lambda *e: events.append(e)
        )

        assert events == [(Phase.embedding, 0, 0), (Phase.storing, 0, 0)]

    @pytest.mark.asyncio
    async def test_all_files_dropped_still_reports_storing(
        self, mock_embedder: MagicMock, mock_store: MagicMock
    ):
        """When every file loses a vector, storing is reported as 0 of 0."""
        mock_embedder.embed_batch.side_effect = lambda texts: [None] * len(texts)
        events: list[tuple[str, int, int]] = []

        await Indexer(mock_embedder, mock_store).embed_and_store(
            make_chunks("a.py", 2), on_progress=lambda *e: events.append(e)
        )

        assert events[-1] == (Phase.storing, 0, 0)
        mock_store.add_chunks.assert_not_called()


class TestStoreHelpers:
    """Tests for delete pass-through and argument checks."""

    def test_delete_file(self, mock_embedder: EmbedderProtocol, mock_store: MagicMock):
        """delete_file deletes by exact path."""
        Indexer(mock_embedder, mock_store).delete_file("a.py")

        mock_store.delete_by_file.assert_called_once_with("a.py")

    def test_delete_failure_propagates(
        self, mock_embedder: EmbedderProtocol, mock_store: MagicMock
    ):
        """The caller decides how to handle a failed delete."""
        mock_store.delete_by_file.side_effect = StorageError("locked")

        with pytest.raises(StorageError):
            Indexer(mock_embedder, mock_store).delete_file("a.py")

    def test_invalid_batch_size(self, mock_embedder: EmbedderProtocol, mock_store: MagicMock):
        """Batch sizes must be positive."""
        with pytest.raises(ValueError):
            Indexer(mock_embedder, mock_store, embedding_batch_size=0)
