"""Directory walker producing ScannedFile records."""

from pathlib import Path

import structlog

from semantic_code_sync.chunkers.languages import detect_language
from semantic_code_sync.classification import matches_any
from semantic_code_sync.models import ScannedFile, ScanOptions, ScanReport, ScanStatistics

log = structlog.get_logger()

SKIP_DIRS = frozenset(
    {".venv", "venv", ".git", "node_modules", "__pycache__", ".pytest_cache", ".mypy_cache"}
)


class FileScanner:
    """Walks a project directory with ignore rules and a size limit.

    Full ingestion and rescans must share one ScanOptions so that stored and
    current state are compared over the same file set.
    """

    def __init__(self, ignore_patterns: list[str] | None = None) -> None:
        self.ignore_patterns = list(ignore_patterns or [])

    def scan(self, root: Path, options: ScanOptions | None = None) -> ScanReport:
        """Scan a directory tree.

        Args:
            root: Project root directory.
            options: Walk policy; defaults to ScanOptions().

        Returns:
            ScanReport with every visited file (supported or not) and counters.

        Raises:
            NotADirectoryError: If root is not a directory.
        """
        options = options or ScanOptions()
        root = root.resolve()
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        patterns = list(self.ignore_patterns)
        if options.respect_ignore_file:
            gitignore_path = root / ".gitignore"
            if gitignore_path.exists():
                patterns += self._parse_gitignore(gitignore_path)

        stats = ScanStatistics()
        files: list[ScannedFile] = []

        for dirpath, dirs, filenames in root.walk():
            dirs[:] = sorted(
                d
                for d in dirs
                if d not in SKIP_DIRS and not (options.skip_hidden and d.startswith("."))
            )

            for filename in sorted(filenames):
                if options.skip_hidden and filename.startswith("."):
                    continue

                file_path = dirpath / filename
                rel_path = file_path.relative_to(root).as_posix()
                if matches_any(rel_path, patterns):
                    continue

                try:
                    size = file_path.stat().st_size
                except OSError as e:
                    log.warning("stat_failed", file_path=rel_path, error=str(e))
                    continue

                # Empty files have nothing to index.
                if size == 0:
                    continue
                if size > options.max_file_size_bytes:
                    stats.skipped_too_large += 1
                    log.debug("file_too_large", file_path=rel_path, size_bytes=size)
                    continue

                language = detect_language(file_path)
                stats.total_files += 1
                if language is None:
                    stats.unsupported_files += 1
                else:
                    stats.supported_files += 1

                files.append(
                    ScannedFile(
                        absolute_path=file_path,
                        relative_path=rel_path,
                        extension=file_path.suffix.lower(),
                        language=language,
                        size_bytes=size,
                    )
                )

        log.debug(
            "scanned_files",
            root=str(root),
            total=stats.total_files,
            supported=stats.supported_files,
        )
        return ScanReport(files=files, statistics=stats)

    def _parse_gitignore(self, gitignore_path: Path) -> list[str]:
        """Parse .gitignore file into patterns."""
        patterns: list[str] = []
        try:
            content = gitignore_path.read_text()
            for line in content.splitlines():
                line = line.strip()
                if not line or line.startswith(("#", "!")):
                    continue
                line = line.lstrip("/")
                if line.endswith("/"):
                    patterns.append(line + "**")
                    patterns.append(line[:-1])
                else:
                    patterns.append(line)
                    patterns.append("**/" + line)
        except OSError as e:
            log.debug("gitignore_parse_failed", path=str(gitignore_path), error=str(e))
        return patterns
