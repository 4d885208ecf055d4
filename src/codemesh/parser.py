# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tree-sitter based parser producing FileGraphs.

Each supported language has a table of syntax node types kept at each
granularity level. The parse walks the concrete syntax tree and keeps only
named nodes whose type is in the table; a kept node's parent is its nearest
kept ancestor. Parse-time ids are ``node_<file key>_<n>`` in pre-order, so
they are unique within a file and unlikely to repeat across files.
"""

import hashlib
import logging
import os
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from tree_sitter_language_pack import get_parser

from .errors import InputError, ParseError
from .models import FileGraph, Granularity, Position, SourceRange, SyntaxNode
from .scanner import language_for_path

logger = logging.getLogger(__name__)

_SCRIPT_COARSE = (
    "class_declaration",
    "abstract_class_declaration",
    "interface_declaration",
    "module",
    "internal_module",
)
_SCRIPT_MEDIUM = _SCRIPT_COARSE + (
    "function_declaration",
    "generator_function_declaration",
    "method_definition",
    "arrow_function",
    "import_statement",
    "export_statement",
    "public_field_definition",
    "field_definition",
    "property_signature",
    "type_alias_declaration",
    "enum_declaration",
)
_SCRIPT_FINE = _SCRIPT_MEDIUM + (
    "variable_declaration",
    "lexical_declaration",
    "call_expression",
    "new_expression",
    "class_heritage",
    "extends_clause",
    "jsx_attribute",
    "string",
    "template_string",
)

_STYLESHEET_TYPES = {
    Granularity.COARSE: ("stylesheet", "rule_set", "keyframe_block"),
    Granularity.MEDIUM: (
        "stylesheet",
        "rule_set",
        "keyframe_block",
        "declaration",
        "class_selector",
        "id_selector",
    ),
    Granularity.FINE: (
        "stylesheet",
        "rule_set",
        "keyframe_block",
        "declaration",
        "class_selector",
        "id_selector",
        "property_name",
        "plain_value",
        "comment",
    ),
}

NODE_TYPES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "typescript": {
        Granularity.COARSE: _SCRIPT_COARSE,
        Granularity.MEDIUM: _SCRIPT_MEDIUM,
        Granularity.FINE: _SCRIPT_FINE,
    },
    "javascript": {
        Granularity.COARSE: _SCRIPT_COARSE,
        Granularity.MEDIUM: _SCRIPT_MEDIUM,
        Granularity.FINE: _SCRIPT_FINE,
    },
    "css": _STYLESHEET_TYPES,
    "scss": _STYLESHEET_TYPES,
    "html": {
        Granularity.COARSE: ("element", "script_element", "style_element"),
        Granularity.MEDIUM: ("element", "script_element", "style_element", "attribute", "text"),
        Granularity.FINE: (
            "element",
            "script_element",
            "style_element",
            "attribute",
            "text",
            "comment",
            "doctype",
        ),
    },
    "python": {
        Granularity.COARSE: ("module", "class_definition", "function_definition"),
        Granularity.MEDIUM: (
            "module",
            "class_definition",
            "function_definition",
            "import_statement",
            "import_from_statement",
            "if_statement",
            "for_statement",
            "while_statement",
        ),
        Granularity.FINE: (
            "module",
            "class_definition",
            "function_definition",
            "import_statement",
            "import_from_statement",
            "if_statement",
            "for_statement",
            "while_statement",
            "assignment",
            "call",
            "attribute",
            "decorator",
            "comment",
        ),
    },
}

SUPPORTED_LANGUAGES = tuple(NODE_TYPES)

_COMMENT_TYPES = ("comment",)


def _text(ts_node: Any) -> str:
    raw = ts_node.text
    if raw is None:
        return ""
    return raw.decode("utf-8", errors="replace")


def _field_text(ts_node: Any, field_name: str) -> str:
    child = ts_node.child_by_field_name(field_name)
    return _text(child) if child is not None else ""


def _first_child_text(ts_node: Any, *types: str) -> str:
    for child in ts_node.children:
        if child.type in types:
            return _text(child)
    return ""


def _strip_quotes(value: str) -> str:
    return value.strip().strip("'\"`")


class Parser:
    """Parses source text into a FileGraph.

    Usage:
        parser = Parser(granularity="medium")
        graph = parser.parse_file("/project/src/app.ts", project_path="/project")
    """

    def __init__(
        self, granularity: str = Granularity.MEDIUM, include_comments: bool = False
    ) -> None:
        if granularity not in Granularity.ALL:
            raise InputError(f"Unknown granularity '{granularity}'")
        self.granularity = granularity
        self.include_comments = include_comments
        self._parsers: Dict[str, Any] = {}

    def node_types(self, language: str) -> FrozenSet[str]:
        """Node types kept for ``language`` at this parser's granularity.

        Raises:
            InputError: If the language is not supported.
        """
        table = NODE_TYPES.get(language)
        if table is None:
            raise InputError(f"Unsupported language '{language}'")
        types = set(table[self.granularity])
        if self.include_comments:
            types.update(_COMMENT_TYPES)
        return frozenset(types)

    @staticmethod
    def capture_types(language: str) -> Dict[str, str]:
        """Map each node type to the coarsest granularity level that keeps it."""
        capture: Dict[str, str] = {}
        for level in Granularity.ALL:
            for node_type in NODE_TYPES.get(language, {}).get(level, ()):
                capture.setdefault(node_type, level)
        return capture

    def _get_ts_parser(self, grammar: str, file_path: str) -> Any:
        parser = self._parsers.get(grammar)
        if parser is None:
            try:
                parser = get_parser(grammar)  # type: ignore[arg-type]
            except Exception as e:
                raise ParseError(file_path, f"tree-sitter grammar '{grammar}' unavailable: {e}") from e
            self._parsers[grammar] = parser
        return parser

    @staticmethod
    def grammar_for(language: str, file_path: str) -> str:
        if language == "typescript" and file_path.lower().endswith(".tsx"):
            return "tsx"
        return language

    def parse_file(
        self,
        file_path: str,
        language: Optional[str] = None,
        content: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> FileGraph:
        """Parse one file.

        Args:
            file_path: Path of the file; also used to pick the language.
            language: Language tag; derived from the extension when None.
            content: Source text; read from disk when None.
            project_path: Project root used for the relative path.

        Raises:
            InputError: If the language is unsupported.
            ParseError: If the file cannot be read or parsed.
        """
        if language is None:
            language = language_for_path(file_path)
            if language is None:
                raise InputError(f"Unsupported file type: {file_path}")

        node_types = self.node_types(language)

        if content is None:
            content = self._read(file_path)

        ts_parser = self._get_ts_parser(self.grammar_for(language, file_path), file_path)
        try:
            tree = ts_parser.parse(content.encode("utf-8"))
        except Exception as e:
            raise ParseError(file_path, str(e)) from e

        if tree.root_node.has_error:
            logger.debug(f"Syntax errors in {file_path}, keeping recoverable nodes")

        nodes, root_nodes = self._collect(
            tree.root_node, node_types, file_path, self.capture_types(language)
        )

        relative_path = None
        if project_path:
            try:
                relative_path = os.path.relpath(file_path, project_path)
            except ValueError:
                relative_path = None

        logger.debug(f"Parsed {file_path} ({language}): {len(nodes)} nodes")
        return FileGraph(
            nodes=nodes,
            root_nodes=root_nodes,
            language=language,
            file_path=file_path,
            project_path=project_path,
            relative_path=relative_path,
            granularity=self.granularity,
        )

    @staticmethod
    def _read(file_path: str) -> str:
        try:
            with open(file_path, encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError:
            logger.warning(f"File {file_path} is not UTF-8, using latin-1 fallback encoding")
            try:
                with open(file_path, encoding="latin-1") as f:
                    return f.read()
            except OSError as e:
                raise ParseError(file_path, str(e)) from e
        except OSError as e:
            raise ParseError(file_path, str(e)) from e

    def _collect(
        self,
        root: Any,
        node_types: FrozenSet[str],
        file_path: str,
        capture_types: Dict[str, str],
    ) -> Tuple[Dict[str, SyntaxNode], List[str]]:
        file_key = hashlib.sha1(file_path.encode("utf-8")).hexdigest()[:8]
        nodes: Dict[str, SyntaxNode] = {}
        root_nodes: List[str] = []
        counter = 0

        # Iterative pre-order walk; deep trees would exhaust the recursion limit
        stack: List[Tuple[Any, Optional[str]]] = [(root, None)]
        while stack:
            ts_node, parent_id = stack.pop()
            current_parent = parent_id

            if ts_node.is_named and ts_node.type in node_types:
                node_id = f"node_{file_key}_{counter}"
                counter += 1
                nodes[node_id] = self._build_node(ts_node, parent_id, capture_types)
                if parent_id is None:
                    root_nodes.append(node_id)
                else:
                    nodes[parent_id].children.append(node_id)
                current_parent = node_id

            for child in reversed(ts_node.children):
                stack.append((child, current_parent))

        return nodes, root_nodes

    def _build_node(
        self, ts_node: Any, parent_id: Optional[str], capture_types: Dict[str, str]
    ) -> SyntaxNode:
        metadata: Dict[str, Any] = {
            "node_text": _text(ts_node),
            "capture_type": capture_types.get(ts_node.type, self.granularity),
        }
        name = self.node_name(ts_node)

        if ts_node.type == "import_statement" and ts_node.child_by_field_name("source"):
            source = _strip_quotes(_field_text(ts_node, "source"))
            metadata["import_source"] = source
            metadata["import_type"] = (
                "namespace" if "namespace_import" in _descendant_types(ts_node, 2) else "named"
            )
            name = source
        elif ts_node.type == "import_from_statement":
            metadata["import_source"] = _field_text(ts_node, "module_name")
            metadata["import_type"] = "from"
            name = metadata["import_source"]
        elif ts_node.type == "import_statement":
            module = _first_child_text(ts_node, "dotted_name", "aliased_import")
            module = module.split(" as ", 1)[0].strip()
            if module:
                metadata["import_source"] = module
                metadata["import_type"] = "module"
                name = module

        start = ts_node.start_point
        end = ts_node.end_point
        return SyntaxNode(
            type=ts_node.type,
            name=name,
            range=SourceRange(
                start=Position(start[0], start[1]),
                end=Position(end[0], end[1]),
            ),
            parent=parent_id,
            metadata=metadata,
        )

    @staticmethod
    def node_name(ts_node: Any) -> str:
        """Best-effort display name of a syntax node; empty when it has none."""
        node_type = ts_node.type

        if node_type in ("class_selector", "id_selector", "string", "text"):
            return _strip_quotes(_text(ts_node)) if node_type == "string" else _text(ts_node)
        if node_type == "rule_set":
            return _first_child_text(ts_node, "selectors", "selector")
        if node_type == "declaration":
            return _first_child_text(ts_node, "property_name")
        if node_type in ("element", "script_element", "style_element"):
            for child in ts_node.children:
                if child.type in ("start_tag", "self_closing_tag"):
                    return _first_child_text(child, "tag_name")
            return ""
        if node_type == "attribute":
            return _first_child_text(ts_node, "attribute_name")
        if node_type == "jsx_attribute":
            return _first_child_text(ts_node, "property_identifier", "identifier")
        if node_type in ("call_expression", "call", "new_expression"):
            callee = ts_node.child_by_field_name("function") or ts_node.child_by_field_name(
                "constructor"
            )
            if callee is None:
                return ""
            for field_name in ("property", "attribute"):
                member = callee.child_by_field_name(field_name)
                if member is not None:
                    return _text(member)
            return _text(callee)
        if node_type in ("arrow_function", "function_expression", "function"):
            parent = ts_node.parent
            if parent is not None and parent.type == "variable_declarator":
                return _field_text(parent, "name")
            return _field_text(ts_node, "name")

        name = _field_text(ts_node, "name")
        if name:
            return name
        if node_type == "export_statement":
            declaration = ts_node.child_by_field_name("declaration")
            if declaration is not None:
                return _field_text(declaration, "name")
        return ""


def _descendant_types(ts_node: Any, depth: int) -> List[str]:
    types: List[str] = []
    frontier = list(ts_node.children)
    for _ in range(depth):
        next_frontier = []
        for child in frontier:
            types.append(child.type)
            next_frontier.extend(child.children)
        frontier = next_frontier
    return types
