# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for codemesh tests."""

import os
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from codemesh.errors import ParseError
from codemesh.models import FileGraph, Position, SourceRange, SyntaxNode


class GraphBuilder:
    """Builds a FileGraph node by node, wiring parent/child links."""

    def __init__(self, file_path: str, language: str, project_path: Optional[str] = None):
        self.graph = FileGraph(
            nodes={},
            root_nodes=[],
            language=language,
            file_path=file_path,
            project_path=project_path,
        )
        self._counter = 0

    def add(
        self,
        node_type: str,
        name: str = "",
        text: str = "",
        parent: Optional[str] = None,
        row: int = 0,
        node_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        if node_id is None:
            node_id = f"node_{self._counter}"
            self._counter += 1

        node = SyntaxNode(
            type=node_type,
            name=name,
            range=SourceRange(start=Position(row, 0), end=Position(row, len(text))),
            parent=parent,
            metadata={"node_text": text, **(metadata or {})},
        )
        self.graph.add_node(node_id, node, root=parent is None)
        if parent is not None:
            self.graph.nodes[parent].children.append(node_id)
        return node_id


@pytest.fixture
def make_graph():
    """Factory for GraphBuilder instances."""

    def _make(file_path: str, language: str, project_path: Optional[str] = "/proj") -> GraphBuilder:
        return GraphBuilder(file_path, language, project_path)

    return _make


class FakeParser:
    """Stands in for Parser, building graphs from a basename -> nodes table.

    Each table entry is a list of ``(type, name, text)`` or
    ``(type, name, text, metadata)`` tuples added as root nodes. Files named
    in ``broken`` raise ParseError.
    """

    def __init__(self, table: Dict[str, List[Tuple]], broken: Iterable[str] = ()):
        self.table = table
        self.broken = set(broken)
        self.calls: List[str] = []

    def parse_file(self, file_path, language=None, content=None, project_path=None):
        name = os.path.basename(file_path)
        self.calls.append(name)
        if name in self.broken:
            raise ParseError(file_path, "syntax error")

        builder = GraphBuilder(file_path, language or "", project_path)
        for row, entry in enumerate(self.table.get(name, [])):
            node_type, node_name, text = entry[:3]
            metadata = entry[3] if len(entry) > 3 else None
            builder.add(node_type, node_name, text=text, row=row, metadata=metadata)
        return builder.graph


@pytest.fixture
def shop_project(tmp_path):
    """A small project on disk plus the FakeParser describing its files."""
    root = tmp_path / "shop"
    (root / "src").mkdir(parents=True)
    for name in ("base.ts", "Card.tsx", "card.css", "broken.ts"):
        (root / "src" / name).write_text("// placeholder\n")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "dep.js").write_text("")

    parser = FakeParser(
        {
            "base.ts": [("class_declaration", "BaseCard", "class BaseCard {}")],
            "Card.tsx": [
                ("import_statement", "./base", "import { BaseCard } from './base';",
                 {"import_source": "./base"}),
                (
                    "class_declaration",
                    "UserCard",
                    'class UserCard extends BaseCard {\n  render() { return <div className="card" />; }\n}',
                ),
            ],
            "card.css": [("class_selector", ".card", ".card")],
        },
        broken=["broken.ts"],
    )
    return root, parser
