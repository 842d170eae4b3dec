"""Tree-sitter syntax unit extraction driven by the per-language tables."""

import structlog
from tree_sitter import Node, Parser, Tree

from semantic_code_sync.chunkers.languages import (
    STRING_LITERAL_TYPES,
    LanguageSpec,
    get_spec,
    get_ts_language,
)
from semantic_code_sync.errors import ParseError
from semantic_code_sync.models import ChunkKind, Language, SyntaxUnit

log = structlog.get_logger()


class SyntaxExtractor:
    """Walks a parse tree and emits one SyntaxUnit per mapped node.

    Nested definitions (methods inside classes, classes inside classes) are
    emitted as separate units; nesting shows up only as overlapping line
    ranges. Each unit's span is widened to include the single immediately
    preceding comment or docstring sibling.
    """

    def parse(self, code: str, language: Language, file_path: str | None = None) -> Tree:
        """Parse source text into a syntax tree.

        Thread-safe: creates a fresh Parser per call since tree-sitter
        parsers mutate internal state during parse().

        Raises:
            ConfigurationError: If the language has no syntax table.
            ParseError: If the grammar cannot be loaded or parsing fails.
        """
        get_spec(language)
        spec_language = Language(language)
        try:
            parser = Parser(get_ts_language(spec_language))
            tree = parser.parse(code.encode())
        except (ValueError, TypeError, RuntimeError) as e:
            raise ParseError(
                f"Failed to parse {spec_language.value} file '{file_path}': {e}",
                file_path=file_path,
                language=spec_language.value,
                text_length=len(code),
            ) from e

        if tree.root_node.has_error:
            log.debug("parse_tree_has_errors", file_path=file_path, language=spec_language.value)
        return tree

    def extract(self, tree: Tree, code: str, language: Language) -> list[SyntaxUnit]:
        """Extract semantic units in pre-order.

        Args:
            tree: Tree produced by parse() for the same code.
            code: The source text that was parsed.
            language: Language of the source.

        Returns:
            Units in document pre-order (parents before their children).
        """
        spec = get_spec(language)
        source = code.encode()
        units: list[SyntaxUnit] = []

        # Explicit stack keeps deep trees clear of the recursion limit.
        stack: list[Node] = [tree.root_node]
        while stack:
            node = stack.pop()
            kind = spec.node_kinds.get(node.type)
            if kind is not None:
                units.append(self._make_unit(node, source, spec, self._resolve_kind(node, kind, spec)))
            stack.extend(reversed(node.children))

        return units

    def extract_string(
        self, code: str, language: Language, file_path: str | None = None
    ) -> list[SyntaxUnit]:
        """Parse and extract in one step."""
        tree = self.parse(code, language, file_path)
        return self.extract(tree, code, language)

    def _resolve_kind(self, node: Node, kind: ChunkKind, spec: LanguageSpec) -> ChunkKind:
        """Relabel a function as a method when it sits lexically inside a container."""
        containers = spec.method_containers.get(node.type)
        if not containers:
            return kind

        parent = node.parent
        while parent is not None:
            if parent.type in containers:
                return ChunkKind.method
            parent = parent.parent
        return kind

    def _span_node(self, node: Node, spec: LanguageSpec) -> Node:
        """Climb through wrappers (decorators, exports) that belong to the definition."""
        while node.parent is not None and node.parent.type in spec.wrapper_types:
            node = node.parent
        return node

    def _leading_context(self, node: Node, spec: LanguageSpec) -> Node | None:
        prev = node.prev_sibling
        if prev is None:
            return None
        if prev.type in spec.comment_types:
            return prev
        if prev.type in spec.docstring_statement_types and prev.child_count > 0:
            if prev.children[0].type in STRING_LITERAL_TYPES:
                return prev
        return None

    def _make_unit(
        self,
        node: Node,
        source: bytes,
        spec: LanguageSpec,
        kind: ChunkKind,
    ) -> SyntaxUnit:
        span = self._span_node(node, spec)
        start = self._leading_context(span, spec) or span

        return SyntaxUnit(
            kind=kind,
            start_line=start.start_point[0] + 1,
            end_line=span.end_point[0] + 1,
            text=source[start.start_byte : span.end_byte].decode("utf-8", errors="replace"),
        )
