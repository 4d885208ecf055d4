# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for codemesh.

This module defines the foundational data structures used throughout the system:
- SyntaxNode: One node of a parsed file (class, function, import, selector, ...)
- FileGraph: Per-file arena of SyntaxNodes keyed by parse-time id
- IndexedNode: A SyntaxNode enriched with search tokens and project attribution
- Relationship: A typed, directed edge between two nodes
- NodeMap: Cross-file lookup of nodes by name and by "type:name"

All models use JSON-compatible primitives for serialization.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


class RelationshipType:
    """Types of relationships between nodes.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    INHERITANCE = "inheritance"  # class Foo extends Bar
    DEPENDENCY = "dependency"  # import, property/parameter/return types
    CALL = "call"  # foo() or obj.foo()
    STYLE = "style"  # component -> css selector

    ALL = (INHERITANCE, DEPENDENCY, CALL, STYLE)

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return value in cls.ALL


class RelationshipKind:
    """Fine-grained kind stored in Relationship metadata."""

    CLASS_EXTENDS = "class_extends"
    INTERFACE_EXTENDS = "interface_extends"
    MODULE_IMPORT = "module_import"
    INTERFACE_PROPERTY_TYPE = "interface_property_type"
    CLASS_PROPERTY_TYPE = "class_property_type"
    PARAMETER_TYPE = "parameter_type"
    RETURN_TYPE = "return_type"
    METHOD_CALL = "method_call"
    FUNCTION_CALL = "function_call"
    COMPONENT_STYLE = "component_style"
    UNKNOWN = "unknown"


class Granularity:
    """Parse granularity levels."""

    COARSE = "coarse"  # top-level declarations only
    MEDIUM = "medium"  # declarations, members, imports and calls
    FINE = "fine"  # additionally attributes, identifiers and literals

    ALL = (COARSE, MEDIUM, FINE)


class VirtualNodeType:
    """Node types synthesized by analyzers for unresolved endpoints."""

    CLASS = "virtual_class"
    INTERFACE = "virtual_interface"
    MODULE = "virtual_module"
    METHOD = "virtual_method"


@dataclass
class Position:
    """Zero-based row/column location in a source file."""

    row: int = 0
    column: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"row": self.row, "column": self.column}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(row=data.get("row", 0), column=data.get("column", 0))


@dataclass
class SourceRange:
    """Start and end positions of a node."""

    start: Position = field(default_factory=Position)
    end: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceRange":
        return cls(
            start=Position.from_dict(data.get("start", {})),
            end=Position.from_dict(data.get("end", {})),
        )


@dataclass
class SyntaxNode:
    """A single node of a parsed file.

    Metadata keys produced by the parser:
    - node_text: raw source text of the node
    - import_source / import_type: set on import nodes when known
    - capture_type: coarsest granularity level that keeps the node type
    """

    type: str
    name: str
    range: SourceRange = field(default_factory=SourceRange)
    parent: Optional[str] = None  # parent node id within the same FileGraph
    children: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Raw source text of the node, empty if unknown."""
        value = self.metadata.get("node_text")
        return value if isinstance(value, str) else ""

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "range": self.range.to_dict(),
            "children": list(self.children),
            "metadata": dict(self.metadata),
        }
        if self.parent is not None:
            result["parent"] = self.parent
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyntaxNode":
        return cls(
            type=data["type"],
            name=data.get("name", ""),
            range=SourceRange.from_dict(data.get("range", {})),
            parent=data.get("parent"),
            children=list(data.get("children", [])),
            metadata=dict(data.get("metadata", {})),
        )


@dataclass
class FileGraph:
    """Per-file arena of SyntaxNodes keyed by parse-time node id.

    Node ids are unique within one FileGraph only; they routinely repeat
    across files.
    """

    nodes: Dict[str, SyntaxNode]
    root_nodes: List[str]
    language: str
    file_path: str
    project_path: Optional[str] = None
    relative_path: Optional[str] = None
    granularity: str = Granularity.MEDIUM

    def add_node(self, node_id: str, node: SyntaxNode, root: bool = False) -> None:
        """Insert a node into the arena, optionally registering it as a root."""
        self.nodes[node_id] = node
        if root and node_id not in self.root_nodes:
            self.root_nodes.append(node_id)

    def children_of(self, node_id: str) -> List[SyntaxNode]:
        """Resolve the child ids of a node into nodes, skipping dangling ids."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return self.children_of_node(node)

    def children_of_node(self, node: SyntaxNode) -> List[SyntaxNode]:
        return [self.nodes[c] for c in node.children if c in self.nodes]

    def find_by_name(self, name: str, types: Optional[Iterable[str]] = None) -> Optional[str]:
        """Return the id of the first node with the given name (and type, if given)."""
        allowed = set(types) if types is not None else None
        for node_id, node in self.nodes.items():
            if node.name != name:
                continue
            if allowed is not None and node.type not in allowed:
                continue
            return node_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "root_nodes": list(self.root_nodes),
            "language": self.language,
            "file_path": self.file_path,
            "project_path": self.project_path,
            "relative_path": self.relative_path,
            "granularity": self.granularity,
        }


@dataclass
class FileAttribution:
    """Project/file attribution derived from a FileGraph."""

    project_name: str
    project_path: str
    file_name: str
    relative_path: str


def derive_attribution(graph: FileGraph) -> FileAttribution:
    """Derive project and file attribution for a graph.

    The project path falls back to the grandparent directory of the file
    (files usually sit one level below the root, e.g. src/), and the relative
    path falls back to the path relative to the project path.
    """
    file_path = graph.file_path or ""
    project_path = graph.project_path or (
        os.path.dirname(os.path.dirname(file_path)) if file_path else ""
    )

    relative_path = graph.relative_path
    if not relative_path and file_path:
        try:
            relative_path = os.path.relpath(file_path, project_path) if project_path else file_path
        except ValueError:
            # Different drives on Windows
            relative_path = file_path

    return FileAttribution(
        project_name=os.path.basename(project_path.rstrip("/\\")) if project_path else "",
        project_path=project_path,
        file_name=os.path.basename(file_path) if file_path else "",
        relative_path=relative_path or "",
    )


def tokenize(text: Optional[str]) -> List[str]:
    """Split text into lower-cased alphanumeric tokens.

    Used identically at ingestion and query time.
    """
    if not text:
        return []
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


@dataclass
class IndexedNode:
    """A SyntaxNode enriched for lookup.

    ``id`` is the identity the node is known by in its container: the
    parse-time id inside the Indexer, the durable id once persisted. The
    parse-time id is always preserved in ``node_id``.
    """

    id: str
    type: str
    name: str
    range: SourceRange
    language: str
    file_path: str
    tokens: List[str] = field(default_factory=list)
    project_name: str = ""
    project_path: str = ""
    file_name: str = ""
    relative_path: str = ""
    content: str = ""
    granularity: str = Granularity.MEDIUM
    node_id: Optional[str] = None
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_syntax_node(
        cls,
        node_id: str,
        node: SyntaxNode,
        graph: FileGraph,
        attribution: Optional[FileAttribution] = None,
    ) -> "IndexedNode":
        """Build an IndexedNode from a node of a FileGraph."""
        if attribution is None:
            attribution = derive_attribution(graph)
        return cls(
            id=node_id,
            type=node.type or "",
            name=node.name or "",
            range=node.range,
            language=graph.language or "",
            file_path=graph.file_path or "",
            tokens=tokenize(node.name),
            project_name=attribution.project_name,
            project_path=attribution.project_path,
            file_name=attribution.file_name,
            relative_path=attribution.relative_path,
            content=node.text,
            granularity=graph.granularity or Granularity.MEDIUM,
            node_id=node_id,
            parent_id=node.parent,
            children=list(node.children or []),
            metadata=dict(node.metadata or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "parent_id": self.parent_id,
            "type": self.type,
            "name": self.name,
            "range": self.range.to_dict(),
            "language": self.language,
            "file_path": self.file_path,
            "tokens": list(self.tokens),
            "project_name": self.project_name,
            "project_path": self.project_path,
            "file_name": self.file_name,
            "relative_path": self.relative_path,
            "content": self.content,
            "granularity": self.granularity,
            "children": list(self.children),
            "metadata": dict(self.metadata),
        }


@dataclass
class RelationshipMetadata:
    """Metadata attached to every Relationship.

    ``target_path`` names the file that owns the ``to`` endpoint. It lets the
    persistence layer disambiguate parse-time ids that repeat across files.
    """

    kind: str = RelationshipKind.UNKNOWN
    path: str = ""
    source_code: str = ""
    project_name: str = ""
    file_name: str = ""
    line: int = 0
    column: int = 0
    description: Optional[str] = None
    target_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.kind or RelationshipKind.UNKNOWN,
            "path": self.path,
            "source_code": self.source_code,
            "project_name": self.project_name,
            "file_name": self.file_name,
            "position": {"line": self.line, "column": self.column},
        }
        if self.description is not None:
            result["description"] = self.description
        if self.target_path is not None:
            result["target_path"] = self.target_path
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RelationshipMetadata":
        data = data or {}
        position = data.get("position") or {}
        return cls(
            kind=data.get("kind") or RelationshipKind.UNKNOWN,
            path=data.get("path") or "",
            source_code=data.get("source_code") or "",
            project_name=data.get("project_name") or "",
            file_name=data.get("file_name") or "",
            line=position.get("line", 0) or 0,
            column=position.get("column", 0) or 0,
            description=data.get("description"),
            target_path=data.get("target_path"),
        )


@dataclass
class Relationship:
    """A typed, directed edge between two nodes.

    ``from_node``/``to_node`` reference parse-time ids when produced by the
    analyzers and durable ids once persisted; the two spaces are never mixed
    within one Relationship.
    """

    type: str
    from_node: str
    to_node: str
    metadata: RelationshipMetadata = field(default_factory=RelationshipMetadata)
    id: Optional[str] = None  # durable id, set once persisted

    @property
    def kind(self) -> str:
        return self.metadata.kind

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type,
            "from": self.from_node,
            "to": self.to_node,
            "metadata": self.metadata.to_dict(),
        }
        if self.id is not None:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relationship":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If type, from or to is missing.
        """
        return cls(
            type=data["type"],
            from_node=data["from"],
            to_node=data["to"],
            metadata=RelationshipMetadata.from_dict(data.get("metadata")),
            id=data.get("id"),
        )


@dataclass
class NodeMapEntry:
    """A node located through the NodeMap, with its owning graph."""

    node_id: str
    node: SyntaxNode
    graph: FileGraph


class NodeMap:
    """Cross-file lookup of nodes by ``name`` and by ``"type:name"``.

    Rebuilt for every analysis run and never persisted. When two nodes share
    a key the last one inserted wins.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, NodeMapEntry] = {}

    @classmethod
    def from_graphs(cls, graphs: Iterable[FileGraph]) -> "NodeMap":
        node_map = cls()
        for graph in graphs:
            for node_id, node in graph.nodes.items():
                node_map.add(node_id, node, graph)
        return node_map

    def add(self, node_id: str, node: SyntaxNode, graph: FileGraph) -> None:
        if not node.name:
            return
        entry = NodeMapEntry(node_id=node_id, node=node, graph=graph)
        self._entries[node.name] = entry
        self._entries[f"{node.type}:{node.name}"] = entry

    def get(self, key: str) -> Optional[NodeMapEntry]:
        return self._entries.get(key)

    def find(self, name: str, types: Optional[Iterable[str]] = None) -> Optional[NodeMapEntry]:
        """Look up a name, preferring the given node types in order.

        Falls back to the bare-name entry when no typed key matches.
        """
        if not name:
            return None
        for node_type in types or ():
            entry = self._entries.get(f"{node_type}:{name}")
            if entry is not None:
                return entry
        return self._entries.get(name)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def new_virtual_id(prefix: str = "virtual") -> str:
    """Generate a collision-free id for a synthesized node."""
    return f"{prefix}_{uuid.uuid4().hex}"
