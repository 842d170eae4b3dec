"""Dependency injection container.

Shares expensive resources (model, tokenizer, DB connection) across calls.
Lazy: nothing is loaded until first use. Built from explicit Settings so
tests and the CLI can pass their own.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

import structlog

from semantic_code_sync.chunkers.extractor import SyntaxExtractor
from semantic_code_sync.chunkers.pipeline import ChunkingPipeline
from semantic_code_sync.chunkers.splitter import TokenBudgetSplitter
from semantic_code_sync.config import Settings, get_db_path
from semantic_code_sync.embedder import Embedder
from semantic_code_sync.indexer import Indexer
from semantic_code_sync.scanner import FileScanner
from semantic_code_sync.services.sync_service import SyncService
from semantic_code_sync.storage.lancedb import LanceDBConnection, LanceDBVectorStore
from semantic_code_sync.tokens import TokenCounter

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

log = structlog.get_logger()


class Container:
    """Shares expensive resources, creates fresh lightweight instances per call.

    Caching strategy:
    - Model, embedder, tokenizer: session-scoped (expensive to load, stateless)
    - Connection: session-scoped (one LanceDB directory holds every index)
    - Stores: per index id (wraps connection, lightweight)
    - Scanner, pipeline, indexer, services: created fresh (cheap, stateless)
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._stores: dict[str, LanceDBVectorStore] = {}

    @cached_property
    def model(self) -> SentenceTransformer:
        """Lazy-load the SentenceTransformer model on first access."""
        # Lazy: sentence-transformers pulls in torch; defer until first use
        from sentence_transformers import SentenceTransformer  # noqa: PLC0415

        device = None if self.settings.embedding_device == "auto" else self.settings.embedding_device
        log.info("loading_embedding_model", model=self.settings.embedding_model, device=device)
        model = SentenceTransformer(self.settings.embedding_model, device=device)
        log.info("embedding_model_loaded", model=self.settings.embedding_model)
        return model

    @cached_property
    def embedder(self) -> Embedder:
        """Lazy-load the embedder (wraps the shared model)."""
        return Embedder(self.model)

    @cached_property
    def tokenizer(self) -> TokenCounter:
        return TokenCounter(self.settings.tokenizer_encoding)

    @cached_property
    def connection(self) -> LanceDBConnection:
        return LanceDBConnection(get_db_path(self.settings))

    def get_store(self, index_id: str) -> LanceDBVectorStore:
        """Get or create a cached vector store for an index."""
        if index_id not in self._stores:
            self._stores[index_id] = LanceDBVectorStore(self.connection, index_id)
        return self._stores[index_id]

    def create_scanner(self) -> FileScanner:
        return FileScanner(self.settings.ignore_patterns)

    def create_pipeline(self) -> ChunkingPipeline:
        """Create a ChunkingPipeline using the configured token budget."""
        return ChunkingPipeline(
            extractor=SyntaxExtractor(),
            splitter=TokenBudgetSplitter(self.tokenizer),
            max_tokens=self.settings.max_chunk_tokens,
            overlap_tokens=self.settings.chunk_overlap_tokens,
            test_patterns=self.settings.test_file_patterns,
            library_patterns=self.settings.library_file_patterns,
        )

    def create_indexer(self, index_id: str) -> Indexer:
        return Indexer(
            embedder=self.embedder,
            store=self.get_store(index_id),
            embedding_batch_size=self.settings.embedding_batch_size,
            storage_batch_size=self.settings.storage_batch_size,
        )

    def create_sync_service(self, index_id: str) -> SyncService:
        """Create a SyncService wired to the cached store and embedder."""
        return SyncService(
            settings=self.settings,
            scanner=self.create_scanner(),
            pipeline=self.create_pipeline(),
            indexer=self.create_indexer(index_id),
            index_id=index_id,
        )

