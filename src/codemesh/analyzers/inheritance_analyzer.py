# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Analyzer for class and interface inheritance.

Detects patterns:
- class Foo extends Bar {}          (JavaScript / TypeScript)
- interface Foo extends Bar {}      (TypeScript)
- class Foo(Bar):                   (Python)

The parent name is taken from a heritage clause child when the parser
produced one, otherwise from the declaration header text. Parents are
resolved in the same file first, then across files through the NodeMap.
Unresolved parents become virtual nodes.
"""

import logging
import re
from typing import Optional, Sequence, Tuple

from codemesh.models import (
    FileGraph,
    NodeMap,
    RelationshipKind,
    RelationshipType,
    SyntaxNode,
    VirtualNodeType,
)

from .base import AnalysisResult, RelationshipAnalyzer

logger = logging.getLogger(__name__)

CLASS_TYPES = (
    "class_declaration",
    "abstract_class_declaration",
    "class_definition",
    "class",
)
INTERFACE_TYPES = ("interface_declaration",)

HERITAGE_TYPES = (
    "extends_clause",
    "extends_type_clause",
    "class_heritage",
    "heritage_clause",
    "extends",
)

_EXTENDS = re.compile(r"extends\s+([A-Za-z_$][\w$]*)")
_PYTHON_BASE = re.compile(r"^\s*class\s+\w+\s*\(\s*([A-Za-z_][\w.]*)\s*[,)]")


class InheritanceAnalyzer(RelationshipAnalyzer):
    """Emits ``inheritance`` edges with kind class_extends or interface_extends."""

    def analyze(self, graphs: Sequence[FileGraph], node_map: NodeMap) -> AnalysisResult:
        result = AnalysisResult()

        for graph in graphs:
            for node_id, node in graph.nodes.items():
                if node.type in CLASS_TYPES:
                    is_interface = False
                elif node.type in INTERFACE_TYPES:
                    is_interface = True
                else:
                    continue

                parent_name = self.find_parent_name(node, graph)
                if not parent_name:
                    continue

                self._link(result, graph, node_id, node, parent_name, is_interface, node_map)

        logger.debug(f"{self.name()} found {len(result.relationships)} relationships")
        return result

    def _link(
        self,
        result: AnalysisResult,
        graph: FileGraph,
        node_id: str,
        node: SyntaxNode,
        parent_name: str,
        is_interface: bool,
        node_map: NodeMap,
    ) -> None:
        parent_types = INTERFACE_TYPES if is_interface else CLASS_TYPES
        kind = (
            RelationshipKind.INTERFACE_EXTENDS if is_interface else RelationshipKind.CLASS_EXTENDS
        )
        label = "Interface" if is_interface else "Class"
        description = f"{label} {node.name} extends {parent_name}"

        target = self._resolve_parent(graph, node_id, parent_name, parent_types, node_map)
        if target is not None:
            target_id, target_path = target
            result.relationships.append(
                self.make_relationship(
                    RelationshipType.INHERITANCE,
                    node_id,
                    target_id,
                    kind,
                    graph,
                    node,
                    description=description,
                    target_path=target_path,
                )
            )
            return

        virtual_type = VirtualNodeType.INTERFACE if is_interface else VirtualNodeType.CLASS
        keyword = "interface" if is_interface else "class"
        virtual = self.synthesize_node(
            graph,
            virtual_type,
            parent_name,
            node,
            metadata={"node_text": f"{keyword} {parent_name} {{}}"},
        )
        result.synthesized_nodes.append(virtual)
        result.relationships.append(
            self.make_relationship(
                RelationshipType.INHERITANCE,
                node_id,
                virtual.node_id,
                kind,
                graph,
                node,
                description=description,
            )
        )

    def _resolve_parent(
        self,
        graph: FileGraph,
        node_id: str,
        parent_name: str,
        parent_types: Tuple[str, ...],
        node_map: NodeMap,
    ) -> Optional[Tuple[str, str]]:
        """Return (node id, owning file) of the parent, or None if unresolved."""
        for candidate_id, candidate in graph.nodes.items():
            if candidate_id == node_id:
                continue
            if candidate.name == parent_name and candidate.type in parent_types:
                return candidate_id, graph.file_path

        # Parse-time ids repeat across files, so self means same id in the same graph
        entry = node_map.find(parent_name, parent_types)
        if (
            entry is not None
            and entry.node.type in parent_types
            and not (entry.graph is graph and entry.node_id == node_id)
        ):
            return entry.node_id, entry.graph.file_path

        return None

    def find_parent_name(self, node: SyntaxNode, graph: FileGraph) -> Optional[str]:
        """Extract the name of the extended class or interface."""
        for child in graph.children_of_node(node):
            if child.type not in HERITAGE_TYPES and child.name != "extends":
                continue

            for grandchild in graph.children_of_node(child):
                if "identifier" in grandchild.type or grandchild.type in (
                    "type_reference",
                    "class_name",
                    "name",
                ):
                    name = grandchild.name or grandchild.text
                    if name:
                        return name

            match = _EXTENDS.search(child.text)
            if match:
                return match.group(1)

        text = node.text
        if not text:
            return None

        header = text.split("{", 1)[0]
        match = _EXTENDS.search(header)
        if match:
            return match.group(1)

        match = _PYTHON_BASE.match(header)
        if match:
            base = match.group(1).rsplit(".", 1)[-1]
            if base != "object":
                return base

        return None

    def priority(self) -> int:
        return 400

    def name(self) -> str:
        return "InheritanceAnalyzer"
