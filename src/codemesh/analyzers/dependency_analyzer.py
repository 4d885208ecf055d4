# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Analyzer for module and type dependencies.

Detects patterns:
- import x from 'mod' / import 'mod' / require('mod')   -> module_import
- from pkg import x / import pkg                        -> module_import
- interface I { user: User }                            -> interface_property_type
- class C { user: User }                                -> class_property_type
- function f(u: User): Result                           -> parameter_type, return_type

Module imports always target a virtual module node, one per (file, import
path). Type dependencies only link to real type declarations found through
the NodeMap. Output is deduplicated on (from, to, kind).
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from codemesh.models import (
    FileGraph,
    NodeMap,
    NodeMapEntry,
    Relationship,
    RelationshipKind,
    RelationshipType,
    SyntaxNode,
    VirtualNodeType,
)

from .base import AnalysisResult, RelationshipAnalyzer

logger = logging.getLogger(__name__)

FUNCTION_TYPES = (
    "function_declaration",
    "function_definition",
    "function",
    "function_expression",
    "generator_function_declaration",
    "method_definition",
    "method_signature",
    "arrow_function",
)
CLASS_TYPES = ("class_declaration", "abstract_class_declaration", "class_definition", "class")
CLASS_MEMBER_TYPES = (
    "public_field_definition",
    "field_definition",
    "property_declaration",
    "property_signature",
)
TYPE_DECLARATION_TYPES = (
    "class_declaration",
    "abstract_class_declaration",
    "class_definition",
    "class",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
)

_IMPORT_PATTERNS = (
    re.compile(r"from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"^\s*import\s+['\"]([^'\"]+)['\"]"),
)
_PYTHON_IMPORT_PATTERNS = (
    re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\b"),
    re.compile(r"^\s*import\s+([\w.]+)"),
)
_ANNOTATED_TYPE = re.compile(r"[\w$]\??\s*:\s*([A-Za-z_$][\w$]*)")
_RETURN_TYPE = re.compile(r"^\s*(?::|->)\s*([A-Za-z_$][\w$.]*)")
_QUOTES = re.compile(r"^['\"`]|['\"`]$")


class DependencyAnalyzer(RelationshipAnalyzer):
    """Emits ``dependency`` edges for imports and type references."""

    def analyze(self, graphs: Sequence[FileGraph], node_map: NodeMap) -> AnalysisResult:
        result = AnalysisResult()

        for graph in graphs:
            self._analyze_imports(graph, result)
            self._analyze_member_types(graph, node_map, result)
            self._analyze_signature_types(graph, node_map, result)

        result.relationships = self.deduplicate(result.relationships)
        logger.debug(f"{self.name()} found {len(result.relationships)} relationships")
        return result

    @staticmethod
    def deduplicate(relationships: Iterable[Relationship]) -> List[Relationship]:
        """Keep one relationship per (from, to, kind); the last one seen wins."""
        unique: Dict[Tuple[str, str, str], Relationship] = {}
        for rel in relationships:
            unique[(rel.from_node, rel.to_node, rel.metadata.kind)] = rel
        return list(unique.values())

    # Module imports

    def _analyze_imports(self, graph: FileGraph, result: AnalysisResult) -> None:
        modules: Dict[str, str] = {}

        for node_id, node in graph.nodes.items():
            if "import" not in node.type and "require" not in node.type:
                continue

            import_path = self.find_import_path(node, graph)
            if not import_path:
                continue

            module_id = modules.get(import_path)
            if module_id is None:
                virtual = self.synthesize_node(
                    graph,
                    VirtualNodeType.MODULE,
                    import_path,
                    node,
                    metadata={"node_text": f"module {import_path}"},
                )
                result.synthesized_nodes.append(virtual)
                module_id = virtual.node_id
                modules[import_path] = module_id

            result.relationships.append(
                self.make_relationship(
                    RelationshipType.DEPENDENCY,
                    node_id,
                    module_id,
                    RelationshipKind.MODULE_IMPORT,
                    graph,
                    node,
                    description=f"{graph.file_path} imports {import_path}",
                )
            )

    def find_import_path(self, node: SyntaxNode, graph: FileGraph) -> Optional[str]:
        """Extract the imported module path from an import-shaped node."""
        explicit = node.metadata.get("import_source")
        if isinstance(explicit, str) and explicit:
            return explicit

        for child in graph.children_of_node(node):
            if "string" in child.type:
                value = _QUOTES.sub("", (child.text or child.name).strip())
                if value:
                    return value

        text = node.text
        if not text:
            return None

        for pattern in _IMPORT_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)

        if graph.language == "python":
            for pattern in _PYTHON_IMPORT_PATTERNS:
                match = pattern.search(text)
                if match and match.group(1):
                    return match.group(1)

        return None

    # Property types

    def _analyze_member_types(
        self, graph: FileGraph, node_map: NodeMap, result: AnalysisResult
    ) -> None:
        for node_id, node in graph.nodes.items():
            if node.type == "interface_declaration":
                kind = RelationshipKind.INTERFACE_PROPERTY_TYPE
                label = "Interface"
            elif node.type in CLASS_TYPES:
                kind = RelationshipKind.CLASS_PROPERTY_TYPE
                label = "Class"
            else:
                continue

            for member in graph.children_of_node(node):
                if member.type not in CLASS_MEMBER_TYPES:
                    continue
                type_name = self.extract_annotated_type(member, graph)
                entry = self._resolve_type(type_name, node_map)
                if entry is None:
                    continue
                result.relationships.append(
                    self.make_relationship(
                        RelationshipType.DEPENDENCY,
                        node_id,
                        entry.node_id,
                        kind,
                        graph,
                        member,
                        description=(
                            f"{label} {node.name} property {member.name} depends on {type_name}"
                        ),
                        target_path=entry.graph.file_path,
                    )
                )

    def extract_annotated_type(self, node: SyntaxNode, graph: FileGraph) -> Optional[str]:
        """Return the type name annotated on a property or parameter node."""
        for child in graph.children_of_node(node):
            if "type" not in child.type:
                continue
            for grandchild in graph.children_of_node(child):
                if "identifier" in grandchild.type and grandchild.name:
                    return grandchild.name
            if child.name:
                return child.name

        match = _ANNOTATED_TYPE.search(node.text.split("=", 1)[0])
        if match:
            return match.group(1)
        return None

    # Parameter and return types

    def _analyze_signature_types(
        self, graph: FileGraph, node_map: NodeMap, result: AnalysisResult
    ) -> None:
        for node_id, node in graph.nodes.items():
            if node.type not in FUNCTION_TYPES:
                continue

            params, returns = self.extract_signature_types(node.text)
            label = node.name or "function"

            for type_name in params:
                entry = self._resolve_type(type_name, node_map)
                if entry is None:
                    continue
                result.relationships.append(
                    self.make_relationship(
                        RelationshipType.DEPENDENCY,
                        node_id,
                        entry.node_id,
                        RelationshipKind.PARAMETER_TYPE,
                        graph,
                        node,
                        description=f"{label} parameter depends on {type_name}",
                        target_path=entry.graph.file_path,
                    )
                )

            entry = self._resolve_type(returns, node_map)
            if entry is not None:
                result.relationships.append(
                    self.make_relationship(
                        RelationshipType.DEPENDENCY,
                        node_id,
                        entry.node_id,
                        RelationshipKind.RETURN_TYPE,
                        graph,
                        node,
                        description=f"{label} returns {returns}",
                        target_path=entry.graph.file_path,
                    )
                )

    @staticmethod
    def extract_signature_types(text: str) -> Tuple[List[str], Optional[str]]:
        """Split a function's source into parameter type names and a return type name.

        Works on ``name(a: A, b?: B): R`` as well as ``def name(a: A) -> R:``.
        """
        if not text:
            return [], None

        start = text.find("(")
        if start < 0:
            return [], None

        depth = 0
        end = -1
        for i in range(start, len(text)):
            if text[i] == "(":
                depth += 1
            elif text[i] == ")":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end < 0:
            return [], None

        params: List[str] = []
        for param in _split_top_level(text[start + 1 : end]):
            match = _ANNOTATED_TYPE.search(param.split("=", 1)[0])
            if match:
                params.append(match.group(1))

        returns = None
        match = _RETURN_TYPE.match(text[end + 1 :])
        if match:
            returns = match.group(1).rsplit(".", 1)[-1]

        return params, returns

    @staticmethod
    def _resolve_type(type_name: Optional[str], node_map: NodeMap) -> Optional[NodeMapEntry]:
        if not type_name:
            return None
        entry = node_map.find(type_name, TYPE_DECLARATION_TYPES)
        if entry is None or entry.node.type not in TYPE_DECLARATION_TYPES:
            return None
        return entry

    def priority(self) -> int:
        return 300

    def name(self) -> str:
        return "DependencyAnalyzer"


def _split_top_level(params: str) -> List[str]:
    """Split a parameter list on commas that are not nested in brackets."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in params:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(depth - 1, 0)
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts
