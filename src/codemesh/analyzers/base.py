# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Base interface for relationship analyzer plugins.

Each analyzer looks at every FileGraph of an import, using a shared NodeMap
for cross-file name resolution, and returns the relationships it found
together with any virtual nodes it had to synthesize for endpoints that do
not exist in the parsed corpus. Analyzers never mutate the graphs they are
given; the pipeline merges synthesized nodes afterwards.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from codemesh.models import (
    FileGraph,
    NodeMap,
    Position,
    Relationship,
    RelationshipMetadata,
    SourceRange,
    SyntaxNode,
    derive_attribution,
    new_virtual_id,
)

logger = logging.getLogger(__name__)


@dataclass
class SynthesizedNode:
    """A virtual node produced by an analyzer, owned by ``file_path``."""

    file_path: str
    node_id: str
    node: SyntaxNode


@dataclass
class AnalysisResult:
    """Output of one analyzer run."""

    relationships: List[Relationship] = field(default_factory=list)
    synthesized_nodes: List[SynthesizedNode] = field(default_factory=list)

    def extend(self, other: "AnalysisResult") -> None:
        self.relationships.extend(other.relationships)
        self.synthesized_nodes.extend(other.synthesized_nodes)


class RelationshipAnalyzer(ABC):
    """Abstract base class for relationship analyzer plugins.

    Design Pattern:
    - Each analyzer is independent and keeps no state between runs
    - Analyzers are registered with priority values
    - Higher priority analyzers execute first
    - New analyzers can be added without modifying existing code

    Lifecycle:
    1. Analyzer is registered in AnalyzerRegistry with priority
    2. RelationshipPipeline builds one NodeMap and calls analyze()
    3. Analyzer returns relationships plus synthesized virtual nodes
    4. Pipeline concatenates results and merges virtual nodes into graphs
    """

    @abstractmethod
    def analyze(self, graphs: Sequence[FileGraph], node_map: NodeMap) -> AnalysisResult:
        """Find relationships across all graphs.

        Args:
            graphs: Every FileGraph of the import.
            node_map: Shared name -> node lookup built from ``graphs``.

        Returns:
            Relationships referencing parse-time node ids, and the virtual
            nodes those relationships point at.

        Design Notes:
        - Analyzers MUST NOT mutate ``graphs``
        - Analyzers MUST NOT raise exceptions (skip the node instead)
        """
        pass

    @abstractmethod
    def priority(self) -> int:
        """Return analyzer priority for execution order.

        Higher priority analyzers execute first.

        Returns:
            Integer priority value.
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """Return analyzer name for logging (e.g., "InheritanceAnalyzer")."""
        pass

    # Helpers shared by the concrete analyzers

    def make_relationship(
        self,
        rel_type: str,
        from_id: str,
        to_id: str,
        kind: str,
        graph: FileGraph,
        node: SyntaxNode,
        description: Optional[str] = None,
        target_path: Optional[str] = None,
    ) -> Relationship:
        """Build a Relationship whose metadata is attributed to ``node`` in ``graph``.

        ``target_path`` defaults to the source file, which is correct for
        same-file targets and for virtual nodes synthesized into that file.
        """
        attribution = derive_attribution(graph)
        metadata = RelationshipMetadata(
            kind=kind,
            path=graph.file_path,
            source_code=node.text,
            project_name=attribution.project_name,
            file_name=attribution.file_name,
            line=node.range.start.row,
            column=node.range.start.column,
            description=description,
            target_path=target_path if target_path is not None else graph.file_path,
        )
        return Relationship(type=rel_type, from_node=from_id, to_node=to_id, metadata=metadata)

    def synthesize_node(
        self,
        graph: FileGraph,
        node_type: str,
        name: str,
        anchor: SyntaxNode,
        metadata: Optional[dict] = None,
    ) -> SynthesizedNode:
        """Create a virtual node located at ``anchor`` and owned by ``graph``."""
        start = anchor.range.start
        node = SyntaxNode(
            type=node_type,
            name=name,
            range=SourceRange(
                start=Position(start.row, start.column),
                end=Position(start.row, start.column),
            ),
            metadata={"node_text": name, "virtual": True, **(metadata or {})},
        )
        return SynthesizedNode(
            file_path=graph.file_path,
            node_id=new_virtual_id(node_type),
            node=node,
        )
