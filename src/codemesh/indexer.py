# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory multi-index over parsed nodes.

The primary map (id -> IndexedNode) is the source of truth. The four
secondary indices (name, type, file, language) are a cache derivable from it:
every id they contain is present in the primary map.
"""

import logging
from typing import Dict, Iterable, List, Optional

from .models import FileGraph, IndexedNode, derive_attribution, tokenize

logger = logging.getLogger(__name__)


class Indexer:
    """Inverted indices over IndexedNodes for name/type/file/language lookup.

    Lookups are O(matches). The indexer never raises; missing optional node
    fields fall back to empty strings or lists.

    Thread Safety:
    - NOT thread-safe: designed for single-threaded use
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, IndexedNode] = {}
        self._by_name: Dict[str, Dict[str, None]] = {}
        self._by_type: Dict[str, Dict[str, None]] = {}
        self._by_file: Dict[str, Dict[str, None]] = {}
        self._by_language: Dict[str, Dict[str, None]] = {}

    def add_to_index(self, graph: FileGraph) -> int:
        """Index every node of a FileGraph.

        Re-adding an id overwrites the previous entry; its stale secondary
        entries are removed first.

        Args:
            graph: Parsed file graph.

        Returns:
            Number of nodes indexed.
        """
        attribution = derive_attribution(graph)
        count = 0
        for node_id, node in graph.nodes.items():
            indexed = IndexedNode.from_syntax_node(node_id, node, graph, attribution)
            self.add_node(indexed)
            count += 1

        logger.debug(f"Indexed {count} nodes from {graph.file_path}")
        return count

    def add_node(self, node: IndexedNode) -> None:
        """Index a single, already enriched node."""
        if node.id in self._nodes:
            self._unlink(self._nodes[node.id])

        if not node.tokens:
            node.tokens = tokenize(node.name)

        self._nodes[node.id] = node
        self._by_name.setdefault(node.name, {})[node.id] = None
        self._by_type.setdefault(node.type, {})[node.id] = None
        self._by_file.setdefault(node.file_path, {})[node.id] = None
        self._by_language.setdefault(node.language, {})[node.id] = None

    def _unlink(self, node: IndexedNode) -> None:
        for index, key in (
            (self._by_name, node.name),
            (self._by_type, node.type),
            (self._by_file, node.file_path),
            (self._by_language, node.language),
        ):
            ids = index.get(key)
            if ids is None:
                continue
            ids.pop(node.id, None)
            if not ids:
                del index[key]

    def _resolve(self, ids: Optional[Iterable[str]]) -> List[IndexedNode]:
        if not ids:
            return []
        return [self._nodes[node_id] for node_id in ids if node_id in self._nodes]

    def query_by_name(self, name: str) -> List[IndexedNode]:
        return self._resolve(self._by_name.get(name))

    def query_by_type(self, node_type: str) -> List[IndexedNode]:
        return self._resolve(self._by_type.get(node_type))

    def query_by_file(self, file_path: str) -> List[IndexedNode]:
        return self._resolve(self._by_file.get(file_path))

    def query_by_language(self, language: str) -> List[IndexedNode]:
        return self._resolve(self._by_language.get(language))

    def search_by_text(self, text: str) -> List[IndexedNode]:
        """Return nodes sharing at least one token with the query (OR, unranked)."""
        query_tokens = set(tokenize(text))
        if not query_tokens:
            return []
        return [node for node in self._nodes.values() if query_tokens.intersection(node.tokens)]

    def get_nodes_matching_rules(self, rule_text: str) -> List[IndexedNode]:
        """Select nodes whose type contains any of the given rules.

        Args:
            rule_text: One substring rule per line; blank lines are ignored.

        Returns:
            Nodes matching at least one rule.
        """
        rules = [line.strip() for line in (rule_text or "").splitlines() if line.strip()]
        if not rules:
            return []
        return [
            node
            for node in self._nodes.values()
            if any(rule in node.type for rule in rules)
        ]

    def get_node(self, node_id: str) -> Optional[IndexedNode]:
        return self._nodes.get(node_id)

    def get_all_nodes(self) -> List[IndexedNode]:
        return list(self._nodes.values())

    def node_count(self) -> int:
        return len(self._nodes)

    def clear(self) -> None:
        """Empty the primary map and all secondary indices."""
        self._nodes.clear()
        self._by_name.clear()
        self._by_type.clear()
        self._by_file.clear()
        self._by_language.clear()
        logger.debug("Index cleared")
