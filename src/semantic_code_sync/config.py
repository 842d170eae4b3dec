"""Configuration and settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SEMANTIC_CODE_SYNC_",
        env_file=".env",
        extra="ignore",
    )

    debug: bool = False

    # Embedding settings
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_device: str = "auto"

    # Storage settings
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "semantic-code-sync")

    # Chunking settings. Changing the encoding changes every token budget decision.
    tokenizer_encoding: str = "cl100k_base"
    max_chunk_tokens: int = Field(default=500, gt=0)
    chunk_overlap_tokens: int = Field(default=50, ge=0)

    # Concurrency and batching
    hash_concurrency: int = Field(default=10, gt=0)
    chunk_concurrency: int = Field(default=20, gt=0)
    embedding_batch_size: int = Field(default=32, gt=0)
    storage_batch_size: int = Field(default=100, gt=0)

    # Scanning
    max_file_size_bytes: int = Field(default=1024 * 1024, gt=0)
    use_gitignore: bool = True
    skip_hidden: bool = True
    ignore_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules/**",
            ".venv/**",
            "__pycache__/**",
            ".git/**",
            "*.pyc",
            ".pytest_cache/**",
            "dist/**",
            "build/**",
            "*.min.js",
        ]
    )

    # Path classification
    test_file_patterns: list[str] = Field(
        default_factory=lambda: [
            "test_*.py",
            "*_test.py",
            "*.test.*",
            "*.spec.*",
            "*Test.java",
            "*Tests.java",
            "*Tests.cs",
            "*Test.cs",
            "test/**",
            "tests/**",
            "__tests__/**",
        ]
    )
    library_file_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules/**",
            "vendor/**",
            "third_party/**",
            "third-party/**",
            "site-packages/**",
            "external/**",
        ]
    )

    @model_validator(mode="after")
    def overlap_below_max(self) -> Settings:
        if self.chunk_overlap_tokens >= self.max_chunk_tokens:
            raise ValueError("chunk_overlap_tokens must be smaller than max_chunk_tokens")
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings loaded from the environment."""
    return Settings()


def get_db_path(settings: Settings) -> Path:
    """Get the LanceDB directory holding every index table.

    Args:
        settings: Application settings.

    Returns:
        Path of the database directory.
    """
    return settings.cache_dir / "lancedb"
