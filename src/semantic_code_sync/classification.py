"""Glob-based path matching and test/library classification."""

import fnmatch
from collections.abc import Iterable

from semantic_code_sync.models import FileClassification


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a relative path against glob patterns.

    A pattern matches the full path, any leading directory prefix of it, or
    (for patterns without a slash) the file name alone.
    """
    rel_path = rel_path.replace("\\", "/")
    parts = rel_path.split("/")

    for pattern in patterns:
        pattern = pattern.replace("\\", "/")
        if fnmatch.fnmatch(rel_path, pattern):
            return True
        if "/" not in pattern and fnmatch.fnmatch(parts[-1], pattern):
            return True
        for i in range(len(parts)):
            partial = "/".join(parts[: i + 1])
            if fnmatch.fnmatch(partial, pattern):
                return True
            # "tests/**" should also match "src/tests/x.py"
            if pattern.endswith("/**") and parts[i] == pattern[:-3] and i < len(parts) - 1:
                return True
    return False


def classify_path(
    rel_path: str,
    test_patterns: Iterable[str],
    library_patterns: Iterable[str],
) -> FileClassification:
    """Flag a path as test code and/or third-party library code."""
    return FileClassification(
        is_test=matches_any(rel_path, test_patterns),
        is_library=matches_any(rel_path, library_patterns),
    )
