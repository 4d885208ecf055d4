# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Analyzer for method and function calls.

Detects patterns:
- foo()            (call_expression, call)
- obj.foo()        (call_expression, member call)
- obj.foo()        (method_invocation)

Every call yields a ``method_call`` edge to a fresh virtual method node.
Plain call expressions additionally yield ``function_call`` edges to each
real function declaration of the same name anywhere in the corpus.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

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

FUNCTION_DECLARATION_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "function_definition",
)
PLAIN_CALL_TYPES = ("call_expression", "call")

_CALLEE = re.compile(r"(?:(\w+)\.)?(\w+)\s*\(")


def is_call_node(node_type: str) -> bool:
    return "call" in node_type or "invocation" in node_type


class CallAnalyzer(RelationshipAnalyzer):
    """Emits ``call`` edges with kind method_call or function_call."""

    def analyze(self, graphs: Sequence[FileGraph], node_map: NodeMap) -> AnalysisResult:
        result = AnalysisResult()
        declarations = self._index_function_declarations(graphs)

        for graph in graphs:
            for node_id, node in graph.nodes.items():
                if not is_call_node(node.type):
                    continue

                callee = self.extract_callee_name(node, graph)
                if not callee:
                    continue

                virtual = self.synthesize_node(
                    graph,
                    VirtualNodeType.METHOD,
                    callee,
                    node,
                    metadata={"node_text": f"function {callee}() {{}}"},
                )
                result.synthesized_nodes.append(virtual)
                result.relationships.append(
                    self.make_relationship(
                        RelationshipType.CALL,
                        node_id,
                        virtual.node_id,
                        RelationshipKind.METHOD_CALL,
                        graph,
                        node,
                        description=f"Calls method {callee}",
                    )
                )

                if node.type not in PLAIN_CALL_TYPES:
                    continue

                for target_id, target_graph in declarations.get(callee, []):
                    result.relationships.append(
                        self.make_relationship(
                            RelationshipType.CALL,
                            node_id,
                            target_id,
                            RelationshipKind.FUNCTION_CALL,
                            graph,
                            node,
                            description=f"Calls function {callee}",
                            target_path=target_graph.file_path,
                        )
                    )

        logger.debug(f"{self.name()} found {len(result.relationships)} relationships")
        return result

    @staticmethod
    def _index_function_declarations(
        graphs: Sequence[FileGraph],
    ) -> Dict[str, List[Tuple[str, FileGraph]]]:
        declarations: Dict[str, List[Tuple[str, FileGraph]]] = {}
        for graph in graphs:
            for node_id, node in graph.nodes.items():
                if node.type in FUNCTION_DECLARATION_TYPES and node.name:
                    declarations.setdefault(node.name, []).append((node_id, graph))
        return declarations

    def extract_callee_name(self, node: SyntaxNode, graph: FileGraph) -> Optional[str]:
        """Name of the called function or method.

        Order: the node's own name, the call pattern in its text, then an
        identifier-typed child.
        """
        if node.name and node.name != "anonymous":
            return node.name

        match = _CALLEE.search(node.text)
        if match and match.group(2):
            return match.group(2)

        for child in graph.children_of_node(node):
            if "identifier" in child.type or child.type == "method_name":
                name = child.name or child.text
                if name:
                    return name

        return None

    def priority(self) -> int:
        return 200

    def name(self) -> str:
        return "CallAnalyzer"
