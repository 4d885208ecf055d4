# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Analyzer for component-to-stylesheet coupling.

Only script-family files are scanned for components. A component is a
class or function declaration whose name ends in a component suffix, is
PascalCase, or looks like a hook (``useSomething``). Class names used by the
component (``className="a b"``, ``class="a"`` and class-name-shaped string
literals) are matched against class and id selectors of the stylesheet
graphs analyzed in the same run.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from codemesh.models import (
    FileGraph,
    NodeMap,
    RelationshipKind,
    RelationshipType,
    SyntaxNode,
)

from .base import AnalysisResult, RelationshipAnalyzer

logger = logging.getLogger(__name__)

SCRIPT_LANGUAGES = ("javascript", "typescript", "jsx", "tsx")
STYLESHEET_LANGUAGES = ("css", "scss", "less")

COMPONENT_SUFFIXES = (
    "Component",
    "Container",
    "View",
    "Page",
    "Screen",
    "Layout",
    "Provider",
    "Modal",
)
COMPONENT_TYPES = (
    "class_declaration",
    "abstract_class_declaration",
    "class",
    "function_declaration",
    "generator_function_declaration",
    "function",
    "function_expression",
    "arrow_function",
    "method_definition",
)
CLASS_ATTRIBUTE_NAMES = ("className", "class")

_PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9]*[a-z][A-Za-z0-9]*$")
_HOOK = re.compile(r"^use[A-Z]")
_CLASS_NAME_LITERAL = re.compile(r"^[A-Za-z0-9_-]+$")
_CLASS_ATTRIBUTE_TEXT = re.compile(
    r"\b(?:className|class)\s*=\s*\{?\s*[\"'`]([^\"'`]*)[\"'`]"
)
_STRING_LITERAL_TEXT = re.compile(r"[\"'`]([A-Za-z0-9_-]+(?:[ \t]+[A-Za-z0-9_-]+)*)[\"'`]")
_QUOTES = re.compile(r"^['\"`]|['\"`]$")
_INVALID_CLASS_CHARS = set("(){};=")


def is_component_name(name: Optional[str]) -> bool:
    """Return True for names that look like UI components or hooks."""
    if not name:
        return False
    if any(name.endswith(suffix) for suffix in COMPONENT_SUFFIXES):
        return True
    return bool(_PASCAL_CASE.match(name) or _HOOK.match(name))


def _is_plausible_class_name(value: str) -> bool:
    return len(value) > 1 and not (_INVALID_CLASS_CHARS & set(value))


def _is_attribute_like(node: SyntaxNode) -> bool:
    if node.name not in CLASS_ATTRIBUTE_NAMES:
        return False
    return "attribute" in node.type or node.type == "property_identifier"


class StyleAnalyzer(RelationshipAnalyzer):
    """Emits ``style`` edges with kind component_style."""

    def analyze(self, graphs: Sequence[FileGraph], node_map: NodeMap) -> AnalysisResult:
        result = AnalysisResult()
        selectors = self._collect_selectors(graphs)
        if not selectors:
            logger.debug(f"{self.name()} found no stylesheet selectors")
            return result

        for graph in graphs:
            if graph.language not in SCRIPT_LANGUAGES:
                continue

            for node_id, node in graph.nodes.items():
                if node.type not in COMPONENT_TYPES or not is_component_name(node.name):
                    continue

                class_names = self.find_class_names(node, graph)
                if not class_names:
                    continue

                linked: Set[Tuple[str, str]] = set()
                for class_name in class_names:
                    for selector_id, selector, css_graph in selectors:
                        key = (css_graph.file_path, selector_id)
                        if key in linked or not self.selector_matches(selector, class_name):
                            continue
                        linked.add(key)
                        result.relationships.append(
                            self.make_relationship(
                                RelationshipType.STYLE,
                                node_id,
                                selector_id,
                                RelationshipKind.COMPONENT_STYLE,
                                graph,
                                node,
                                description=f"{node.name} uses style class {class_name}",
                                target_path=css_graph.file_path,
                            )
                        )

        logger.debug(f"{self.name()} found {len(result.relationships)} relationships")
        return result

    @staticmethod
    def _collect_selectors(graphs: Sequence[FileGraph]) -> List[Tuple[str, str, FileGraph]]:
        selectors: List[Tuple[str, str, FileGraph]] = []
        for graph in graphs:
            if graph.language not in STYLESHEET_LANGUAGES:
                continue
            for node_id, node in graph.nodes.items():
                if "selector" not in node.type:
                    continue
                selector = (node.name or node.text).strip()
                if selector:
                    selectors.append((node_id, selector, graph))
        return selectors

    @staticmethod
    def selector_matches(selector: str, class_name: str) -> bool:
        """Literal class/id equality, or substring containment."""
        if selector in (f".{class_name}", f"#{class_name}", class_name):
            return True
        return class_name in selector

    def find_class_names(self, component: SyntaxNode, graph: FileGraph) -> List[str]:
        """Collect class names referenced inside a component, in first-seen order."""
        found: Dict[str, None] = {}
        visited: Set[int] = set()

        def add_literal(text: str) -> None:
            for part in _QUOTES.sub("", text.strip()).split():
                if _is_plausible_class_name(part):
                    found.setdefault(part, None)

        def visit(node: SyntaxNode) -> None:
            if id(node) in visited:
                return
            visited.add(id(node))

            if _is_attribute_like(node):
                for child in graph.children_of_node(node):
                    if "string" in child.type:
                        add_literal(child.text or child.name)
            elif "string" in node.type:
                literal = _QUOTES.sub("", (node.text or node.name).strip())
                if _CLASS_NAME_LITERAL.match(literal) or " " in literal:
                    add_literal(literal)

            for child in graph.children_of_node(node):
                visit(child)

        for child in graph.children_of_node(component):
            visit(child)

        for match in _CLASS_ATTRIBUTE_TEXT.finditer(component.text):
            add_literal(match.group(1))
        for match in _STRING_LITERAL_TEXT.finditer(component.text):
            add_literal(match.group(1))

        return list(found)

    def priority(self) -> int:
        return 100

    def name(self) -> str:
        return "StyleAnalyzer"
