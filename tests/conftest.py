"""Pytest configuration and fixtures."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from semantic_code_sync.chunkers.extractor import SyntaxExtractor
from semantic_code_sync.chunkers.pipeline import ChunkingPipeline
from semantic_code_sync.chunkers.splitter import TokenBudgetSplitter
from semantic_code_sync.config import Settings
from semantic_code_sync.indexer import Indexer
from semantic_code_sync.models import Chunk, Language
from semantic_code_sync.protocols import EmbedderProtocol, VectorStoreProtocol
from semantic_code_sync.scanner import FileScanner
from semantic_code_sync.services.sync_service import SyncService
from semantic_code_sync.storage.lancedb import LanceDBConnection, LanceDBVectorStore

EMBEDDING_DIM = 8


class WordTokenizer:
    """Counts whitespace-separated words, so budgets in tests are easy to reason about."""

    def count(self, text: str) -> int:
        return len(text.split())


def fake_vectors(texts: list[str]) -> list[list[float]]:
    """Deterministic small embeddings, one per text."""
    return [[float(len(t) % 7), 1.0] + [0.5] * (EMBEDDING_DIM - 2) for t in texts]


# Settings fixtures


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with temp cache dir."""
    return Settings(cache_dir=tmp_path / "cache", chunk_concurrency=2, hash_concurrency=2)


# Protocol mock fixtures


@pytest.fixture
def mock_store() -> VectorStoreProtocol:
    """Create a mock VectorStore implementing the protocol."""
    mock = MagicMock(spec=VectorStoreProtocol)
    mock.count.return_value = 0
    mock.get_file_fingerprints.return_value = {}
    mock.get_indexed_files.return_value = []
    return mock


@pytest.fixture
def mock_embedder() -> EmbedderProtocol:
    """Create a mock Embedder returning one vector per input text."""
    mock = MagicMock(spec=EmbedderProtocol)
    mock.embed_text.return_value = [0.1] * EMBEDDING_DIM
    mock.embed_batch.side_effect = fake_vectors
    return mock


# Real component fixtures for integration tests


@pytest.fixture
def tokenizer() -> WordTokenizer:
    return WordTokenizer()


@pytest.fixture
def splitter(tokenizer: WordTokenizer) -> TokenBudgetSplitter:
    return TokenBudgetSplitter(tokenizer)


@pytest.fixture
def pipeline(splitter: TokenBudgetSplitter, test_settings: Settings) -> ChunkingPipeline:
    """Real extractor + splitter with the word tokenizer and default budgets."""
    return ChunkingPipeline(
        extractor=SyntaxExtractor(),
        splitter=splitter,
        max_tokens=test_settings.max_chunk_tokens,
        overlap_tokens=test_settings.chunk_overlap_tokens,
        test_patterns=test_settings.test_file_patterns,
        library_patterns=test_settings.library_file_patterns,
    )


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary directory for the database."""
    return tmp_path / "test.lance"


@pytest.fixture
def lance_connection(temp_db_path: Path) -> LanceDBConnection:
    """Create a LanceDB connection for testing."""
    return LanceDBConnection(temp_db_path)


@pytest.fixture
def vector_store(lance_connection: LanceDBConnection) -> LanceDBVectorStore:
    """Create a VectorStore for the 'test' index."""
    return LanceDBVectorStore(lance_connection, "test")


@pytest.fixture
def sync_service(
    test_settings: Settings,
    pipeline: ChunkingPipeline,
    mock_embedder: EmbedderProtocol,
    vector_store: LanceDBVectorStore,
) -> SyncService:
    """SyncService over a real LanceDB store with a fake embedder."""
    indexer = Indexer(
        embedder=mock_embedder,
        store=vector_store,
        embedding_batch_size=4,
        storage_batch_size=5,
    )
    return SyncService(
        settings=test_settings,
        scanner=FileScanner(test_settings.ignore_patterns),
        pipeline=pipeline,
        indexer=indexer,
        index_id="test",
    )


@pytest.fixture
def sample_chunk() -> Chunk:
    """Create a sample chunk for testing."""
    return Chunk(
        content="def hello():\n    return 'world'",
        file_path="src/hello.py",
        start_line=10,
        end_line=11,
        chunk_type="function",
        language=Language.python,
        file_hash="abc123",
    )


# Sample project fixtures


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create a small multi-language project for testing."""
    project = tmp_path / "project"
    project.mkdir()

    (project / "main.py").write_text('''"""Main module."""

def greet(name: str) -> str:
    """Greet someone."""
    return f"Hello, {name}!"

def farewell(name: str) -> str:
    """Say goodbye."""
    return f"Goodbye, {name}!"
''')

    (project / "utils.py").write_text('''"""Utility functions."""

class Helper:
    """A helper class."""

    def assist(self):
        """Provide assistance."""
        pass
''')

    (project / "web").mkdir()
    (project / "web" / "app.ts").write_text("""// Adds two numbers.
export function add(a: number, b: number): number {
  return a + b;
}

interface Shape {
  area(): number;
}
""")

    (project / "tests").mkdir()
    (project / "tests" / "test_main.py").write_text("""def test_greet():
    assert True
""")

    (project / "README.md").write_text("# Sample\n")

    return project
