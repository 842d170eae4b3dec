"""Per-language syntax tables.

Every supported language is one ``LanguageSpec`` row keyed by the closed
``Language`` enum. The extractor is driven entirely by these rows, so adding
a language means adding a grammar dependency and a row here.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import cache
from pathlib import Path

import tree_sitter_c_sharp as tscsharp
import tree_sitter_java as tsjava
import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_rust as tsrust
import tree_sitter_typescript as tstypescript
from tree_sitter import Language as TSLanguage

from semantic_code_sync.errors import ConfigurationError
from semantic_code_sync.models import ChunkKind, Language


@dataclass(frozen=True)
class LanguageSpec:
    """How to find semantic units in one grammar.

    Attributes:
        grammar: Returns the tree-sitter language capsule.
        extensions: File extensions (lowercase, with dot).
        node_kinds: Grammar node type -> semantic kind. Unmapped nodes are skipped.
        comment_types: Node types attached as leading context.
        docstring_statement_types: Statement types that count as leading context
            when their first child is a string literal.
        method_containers: Node type -> ancestor types that turn it into a method.
        wrapper_types: Parent node types whose span replaces the definition's own
            (decorators, export statements, variable declarations).
    """

    grammar: Callable[[], object]
    extensions: tuple[str, ...]
    node_kinds: Mapping[str, ChunkKind]
    comment_types: frozenset[str]
    docstring_statement_types: frozenset[str] = frozenset()
    method_containers: Mapping[str, frozenset[str]] = field(default_factory=dict)
    wrapper_types: frozenset[str] = frozenset()


STRING_LITERAL_TYPES = frozenset({"string", "concatenated_string"})

_JS_NODE_KINDS: dict[str, ChunkKind] = {
    "function_declaration": ChunkKind.function,
    "generator_function_declaration": ChunkKind.function,
    "arrow_function": ChunkKind.function,
    "class_declaration": ChunkKind.klass,
    "method_definition": ChunkKind.method,
}

_TS_NODE_KINDS: dict[str, ChunkKind] = {
    **_JS_NODE_KINDS,
    "abstract_class_declaration": ChunkKind.klass,
    "interface_declaration": ChunkKind.interface,
    "enum_declaration": ChunkKind.enum,
}

_JS_WRAPPERS = frozenset({"export_statement", "variable_declarator", "lexical_declaration"})

LANGUAGE_SPECS: dict[Language, LanguageSpec] = {
    Language.python: LanguageSpec(
        grammar=tspython.language,
        extensions=(".py", ".pyi"),
        node_kinds={
            "function_definition": ChunkKind.function,
            "class_definition": ChunkKind.klass,
        },
        comment_types=frozenset({"comment"}),
        docstring_statement_types=frozenset({"expression_statement"}),
        method_containers={"function_definition": frozenset({"class_definition"})},
        wrapper_types=frozenset({"decorated_definition"}),
    ),
    Language.javascript: LanguageSpec(
        grammar=tsjavascript.language,
        extensions=(".js", ".jsx", ".mjs", ".cjs"),
        node_kinds=_JS_NODE_KINDS,
        comment_types=frozenset({"comment"}),
        wrapper_types=_JS_WRAPPERS,
    ),
    Language.typescript: LanguageSpec(
        grammar=tstypescript.language_typescript,
        extensions=(".ts", ".mts", ".cts"),
        node_kinds=_TS_NODE_KINDS,
        comment_types=frozenset({"comment"}),
        wrapper_types=_JS_WRAPPERS,
    ),
    Language.tsx: LanguageSpec(
        grammar=tstypescript.language_tsx,
        extensions=(".tsx",),
        node_kinds=_TS_NODE_KINDS,
        comment_types=frozenset({"comment"}),
        wrapper_types=_JS_WRAPPERS,
    ),
    Language.java: LanguageSpec(
        grammar=tsjava.language,
        extensions=(".java",),
        node_kinds={
            "class_declaration": ChunkKind.klass,
            "method_declaration": ChunkKind.method,
            "constructor_declaration": ChunkKind.method,
            "field_declaration": ChunkKind.field,
            "interface_declaration": ChunkKind.interface,
            "enum_declaration": ChunkKind.enum,
        },
        comment_types=frozenset({"comment", "line_comment", "block_comment"}),
    ),
    Language.csharp: LanguageSpec(
        grammar=tscsharp.language,
        extensions=(".cs",),
        node_kinds={
            "class_declaration": ChunkKind.klass,
            "struct_declaration": ChunkKind.klass,
            "method_declaration": ChunkKind.method,
            "constructor_declaration": ChunkKind.method,
            "property_declaration": ChunkKind.property,
            "interface_declaration": ChunkKind.interface,
            "enum_declaration": ChunkKind.enum,
        },
        comment_types=frozenset({"comment", "documentation_comment"}),
    ),
    Language.rust: LanguageSpec(
        grammar=tsrust.language,
        extensions=(".rs",),
        node_kinds={
            "function_item": ChunkKind.function,
            "struct_item": ChunkKind.klass,
            "enum_item": ChunkKind.enum,
            "trait_item": ChunkKind.interface,
            "impl_item": ChunkKind.klass,
        },
        comment_types=frozenset({"line_comment", "block_comment"}),
        method_containers={"function_item": frozenset({"impl_item", "trait_item"})},
    ),
}


def validate_language_specs(specs: Mapping[Language, LanguageSpec]) -> None:
    """Check that every language has a complete row and extensions are unambiguous.

    Raises:
        ConfigurationError: On a missing or incomplete row, or a shared extension.
    """
    missing = [lang.value for lang in Language if lang not in specs]
    if missing:
        raise ConfigurationError(f"No syntax table for languages: {', '.join(missing)}")

    owners: dict[str, Language] = {}
    for language, spec in specs.items():
        if not spec.extensions or not spec.node_kinds or not spec.comment_types:
            raise ConfigurationError(f"Incomplete syntax table for {language.value}")
        for node_type in spec.method_containers:
            if node_type not in spec.node_kinds:
                raise ConfigurationError(
                    f"{language.value}: method container rule for unmapped node {node_type!r}"
                )
        for ext in spec.extensions:
            if ext in owners:
                raise ConfigurationError(
                    f"Extension {ext!r} claimed by {owners[ext].value} and {language.value}"
                )
            owners[ext] = language


validate_language_specs(LANGUAGE_SPECS)

EXTENSION_MAP: dict[str, Language] = {
    ext: language for language, spec in LANGUAGE_SPECS.items() for ext in spec.extensions
}


def get_spec(language: Language | str) -> LanguageSpec:
    """Look up the syntax table for a language.

    Raises:
        ConfigurationError: If the language is unknown.
    """
    try:
        return LANGUAGE_SPECS[Language(language)]
    except (ValueError, KeyError) as e:
        raise ConfigurationError(f"Unsupported language: {language!r}") from e


@cache
def get_ts_language(language: Language) -> TSLanguage:
    """Load (once) the tree-sitter grammar for a language."""
    return TSLanguage(get_spec(language).grammar())


def detect_language(file_path: str | Path) -> Language | None:
    """Map a file's extension to a supported language, or None."""
    return EXTENSION_MAP.get(Path(file_path).suffix.lower())


def supported_extensions() -> list[str]:
    return sorted(EXTENSION_MAP)
