# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Coordinator for the relationship analyzer pipeline.

Flow: FileGraphs -> NodeMap -> analyzers (in priority order) -> Relationships

The pipeline:
1. Builds one NodeMap shared by every analyzer of the run
2. Runs each registered analyzer and concatenates their relationships
   (no deduplication across analyzers)
3. Merges the virtual nodes synthesized by the analyzers into the graph
   that owns them, so every relationship endpoint exists in some graph

Usage:
    pipeline = RelationshipPipeline()
    relationships = pipeline.analyze(graphs)
"""

import logging
from typing import Dict, List, Optional, Sequence

from codemesh.analyzers import AnalyzerRegistry, SynthesizedNode, create_default_registry
from codemesh.models import FileGraph, NodeMap, Relationship

logger = logging.getLogger(__name__)


class RelationshipPipeline:
    """Runs every registered analyzer over a batch of FileGraphs."""

    def __init__(self, registry: Optional[AnalyzerRegistry] = None) -> None:
        self.registry = registry if registry is not None else create_default_registry()

    def analyze(self, graphs: Sequence[FileGraph]) -> List[Relationship]:
        """Find all relationships across ``graphs``.

        Graphs are mutated only to receive the synthesized virtual nodes.
        An analyzer that fails unexpectedly is logged and skipped; the
        remaining analyzers still run.

        Args:
            graphs: Every FileGraph of the import.

        Returns:
            Relationships referencing parse-time node ids.
        """
        node_map = NodeMap.from_graphs(graphs)
        relationships: List[Relationship] = []
        synthesized: List[SynthesizedNode] = []

        for analyzer in self.registry.get_analyzers():
            try:
                result = analyzer.analyze(graphs, node_map)
            except Exception as e:
                logger.error(f"Error in analyzer '{analyzer.name()}': {e}")
                continue

            relationships.extend(result.relationships)
            synthesized.extend(result.synthesized_nodes)
            logger.info(
                f"{analyzer.name()}: {len(result.relationships)} relationships, "
                f"{len(result.synthesized_nodes)} virtual nodes"
            )

        self.merge_synthesized_nodes(graphs, synthesized)
        logger.info(f"Relationship analysis complete: {len(relationships)} relationships")
        return relationships

    @staticmethod
    def merge_synthesized_nodes(
        graphs: Sequence[FileGraph], synthesized: Sequence[SynthesizedNode]
    ) -> int:
        """Insert synthesized nodes into the graph owning their file.

        Returns:
            Number of nodes merged.
        """
        by_path: Dict[str, FileGraph] = {}
        for graph in graphs:
            by_path.setdefault(graph.file_path, graph)

        merged = 0
        for item in synthesized:
            graph = by_path.get(item.file_path)
            if graph is None:
                logger.warning(
                    f"No graph owns synthesized node {item.node_id} ({item.file_path}), dropping"
                )
                continue
            graph.add_node(item.node_id, item.node)
            merged += 1
        return merged
