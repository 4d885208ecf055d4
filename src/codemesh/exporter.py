# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Node and graph export.

Graph export format:
- metadata: timestamp, version, node and edge counts, edge counts per type
- nodes: {id, label, type, file_path, language, virtual}
- edges: {id, source, target, type, kind}
- graph_metadata: most connected nodes (by incoming edges)
"""

import json
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from . import __version__
from .models import IndexedNode, Relationship

MOST_CONNECTED_LIMIT = 10

# Relationship type filter value matching every type
ALL_TYPES = "all"


def export_to_markdown(nodes: Iterable[IndexedNode]) -> str:
    """Render nodes as Markdown sections with fenced source blocks."""
    sections = []
    for node in nodes:
        sections.append(
            f"### {node.type}: {node.name}\n"
            f"`{node.relative_path or node.file_path}:{node.range.start.row + 1}`\n\n"
            f"```{node.language}\n{node.content}\n```\n"
        )
    return "\n".join(sections)


def export_to_json(nodes: Iterable[IndexedNode], indent: Optional[int] = 2) -> str:
    return json.dumps([node.to_dict() for node in nodes], indent=indent)


def build_graph(
    nodes: Iterable[IndexedNode],
    relationships: Iterable[Relationship],
    rel_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a nodes + edges dict for visualization.

    Args:
        nodes: Persisted nodes.
        relationships: Persisted relationships (durable ids).
        rel_type: Keep only edges of this relationship type.

    Returns:
        JSON-compatible dict in the graph export format.
    """
    graph_nodes: List[Dict[str, Any]] = [
        {
            "id": node.id,
            "label": node.name or node.type,
            "type": node.type,
            "file_path": node.file_path,
            "language": node.language,
            "virtual": bool(node.metadata.get("virtual", False)),
        }
        for node in nodes
    ]

    edges: List[Dict[str, Any]] = []
    for rel in relationships:
        if rel_type and rel_type != ALL_TYPES and rel.type != rel_type:
            continue
        edges.append(
            {
                "id": rel.id,
                "source": rel.from_node,
                "target": rel.to_node,
                "type": rel.type,
                "kind": rel.kind,
            }
        )

    incoming = Counter(edge["target"] for edge in edges)
    labels = {entry["id"]: entry["label"] for entry in graph_nodes}

    return {
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "total_nodes": len(graph_nodes),
            "total_edges": len(edges),
            "edges_by_type": dict(Counter(edge["type"] for edge in edges)),
        },
        "nodes": graph_nodes,
        "edges": edges,
        "graph_metadata": {
            "most_connected_nodes": [
                {"id": node_id, "label": labels.get(node_id, node_id), "incoming": count}
                for node_id, count in incoming.most_common(MOST_CONNECTED_LIMIT)
            ]
        },
    }
