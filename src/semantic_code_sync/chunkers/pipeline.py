"""Chunking pipeline: file -> fingerprint -> syntax units -> token-bounded chunks."""

from pathlib import Path

import structlog

from semantic_code_sync.chunkers.extractor import SyntaxExtractor
from semantic_code_sync.chunkers.languages import get_spec
from semantic_code_sync.chunkers.splitter import TokenBudgetSplitter, locate_fragments
from semantic_code_sync.classification import classify_path
from semantic_code_sync.errors import ParseError
from semantic_code_sync.hashing import hash_bytes
from semantic_code_sync.models import Chunk, ChunkKind, Language, SyntaxUnit

log = structlog.get_logger()


class ChunkingPipeline:
    """Turns one source file into chunks that share the file's fingerprint.

    Implements ChunkerProtocol.
    """

    def __init__(
        self,
        extractor: SyntaxExtractor,
        splitter: TokenBudgetSplitter,
        max_tokens: int,
        overlap_tokens: int,
        test_patterns: list[str] | None = None,
        library_patterns: list[str] | None = None,
    ) -> None:
        self.extractor = extractor
        self.splitter = splitter
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.test_patterns = list(test_patterns or [])
        self.library_patterns = list(library_patterns or [])

    def chunk_file(
        self,
        absolute_path: Path,
        language: Language,
        relative_path: str | None = None,
    ) -> list[Chunk]:
        """Extract chunks from a source file.

        The fingerprint is computed from the same bytes that are parsed, so
        every chunk's file_hash describes exactly the content it came from.

        Args:
            absolute_path: File to read.
            language: Language of the file.
            relative_path: Path recorded on chunks; defaults to absolute_path.

        Returns:
            Chunks in document order.

        Raises:
            ConfigurationError: If the language has no syntax table.
            ParseError: If the file cannot be read or parsed.
        """
        file_path = relative_path or str(absolute_path)
        get_spec(language)

        try:
            raw = Path(absolute_path).read_bytes()
        except OSError as e:
            raise ParseError(
                f"Failed to read {language} file '{file_path}': {e}",
                file_path=file_path,
                language=str(language),
            ) from e

        code = raw.decode("utf-8", errors="replace")
        return self.chunk_string(code, language, file_path, hash_bytes(raw))

    def chunk_string(
        self,
        code: str,
        language: Language,
        file_path: str,
        file_hash: str,
    ) -> list[Chunk]:
        """Extract chunks from source text.

        A file with no semantic units becomes a single module unit, so every
        non-empty file stores at least one chunk carrying its fingerprint.
        """
        if not code:
            return []

        units = self.extractor.extract_string(code, language, file_path)
        if not units:
            units = [self._module_unit(code)]

        classification = classify_path(file_path, self.test_patterns, self.library_patterns)
        chunks: list[Chunk] = []
        for unit in units:
            chunks.extend(
                self._split_unit(
                    unit,
                    language=Language(language),
                    file_path=file_path,
                    file_hash=file_hash,
                    is_test_file=classification.is_test,
                    is_library_file=classification.is_library,
                )
            )

        log.debug(
            "chunked_file",
            file_path=file_path,
            language=str(language),
            units=len(units),
            chunks=len(chunks),
        )
        return chunks

    def _split_unit(
        self,
        unit: SyntaxUnit,
        *,
        language: Language,
        file_path: str,
        file_hash: str,
        is_test_file: bool,
        is_library_file: bool,
    ) -> list[Chunk]:
        parts = self.splitter.split(unit.text, self.max_tokens, self.overlap_tokens)
        common = {
            "file_path": file_path,
            "language": language,
            "file_hash": file_hash,
            "is_test_file": is_test_file,
            "is_library_file": is_library_file,
        }

        if len(parts) == 1:
            return [
                Chunk(
                    content=parts[0],
                    start_line=unit.start_line,
                    end_line=unit.end_line,
                    chunk_type=unit.kind.value,
                    **common,
                )
            ]

        log.debug(
            "splitting_oversized_unit",
            file_path=file_path,
            kind=unit.kind.value,
            start_line=unit.start_line,
            parts=len(parts),
        )
        last_offset = unit.end_line - unit.start_line
        chunks: list[Chunk] = []
        for i, (part, (first, last)) in enumerate(
            zip(parts, locate_fragments(unit.text, parts), strict=True), start=1
        ):
            first = min(first, last_offset)
            last = min(max(last, first), last_offset)
            chunks.append(
                Chunk(
                    content=part,
                    start_line=unit.start_line + first,
                    end_line=unit.start_line + last,
                    chunk_type=f"{unit.kind.value}_part_{i}",
                    part_index=i,
                    part_count=len(parts),
                    **common,
                )
            )
        return chunks

    def _module_unit(self, code: str) -> SyntaxUnit:
        line_count = code.count("\n") + (0 if code.endswith("\n") else 1)
        return SyntaxUnit(
            kind=ChunkKind.module,
            start_line=1,
            end_line=max(line_count, 1),
            text=code,
        )
