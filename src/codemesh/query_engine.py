# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Query Engine over the Indexer.

Stateless filter and paginate:
1. Primary selector: the first present of name, type, file_path, language,
   text. With none present, all indexed nodes are candidates.
2. Secondary filters: project_name (exact), file_name (exact),
   relative_path (substring).
3. ``total`` is the post-filter count before pagination.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .analyzers.similarity import are_names_similar
from .indexer import Indexer
from .models import IndexedNode

if TYPE_CHECKING:
    from .service import CodeMeshService

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


@dataclass
class QueryOptions:
    """Query parameters. Every field is optional."""

    name: Optional[str] = None
    type: Optional[str] = None
    file_path: Optional[str] = None
    language: Optional[str] = None
    text: Optional[str] = None
    project_name: Optional[str] = None
    file_name: Optional[str] = None
    relative_path: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryOptions":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class QueryResult:
    """One page of query results."""

    nodes: List[IndexedNode] = field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }


class QueryEngine:
    """Filter and paginate nodes held by an Indexer.

    Usage:
        engine = QueryEngine(indexer)
        result = engine.query(QueryOptions(type="class_declaration", limit=10))
    """

    def __init__(self, indexer: Indexer, default_limit: int = DEFAULT_LIMIT) -> None:
        self.indexer = indexer
        self.default_limit = default_limit

    @classmethod
    def from_service(cls, service: "CodeMeshService") -> "QueryEngine":
        return cls(service.indexer, default_limit=service.config.default_query_limit)

    def _select(self, options: QueryOptions) -> List[IndexedNode]:
        if options.name:
            return self.indexer.query_by_name(options.name)
        if options.type:
            return self.indexer.query_by_type(options.type)
        if options.file_path:
            return self.indexer.query_by_file(options.file_path)
        if options.language:
            return self.indexer.query_by_language(options.language)
        if options.text:
            return self.indexer.search_by_text(options.text)
        return self.indexer.get_all_nodes()

    def query(self, options: Optional[QueryOptions] = None) -> QueryResult:
        """Run a query.

        Args:
            options: Selector, filters and pagination. None selects everything.

        Returns:
            QueryResult with the requested page and the pre-pagination total.
        """
        if options is None:
            options = QueryOptions()

        nodes = self._select(options)

        if options.project_name:
            nodes = [n for n in nodes if n.project_name == options.project_name]
        if options.file_name:
            nodes = [n for n in nodes if n.file_name == options.file_name]
        if options.relative_path:
            nodes = [n for n in nodes if options.relative_path in (n.relative_path or "")]

        limit = options.limit if options.limit is not None else self.default_limit
        offset = options.offset if options.offset is not None else 0
        limit = max(limit, 0)
        offset = max(offset, 0)

        total = len(nodes)
        page = nodes[offset : offset + limit]

        logger.debug(f"Query matched {total} nodes, returning {len(page)} (offset={offset})")
        return QueryResult(nodes=page, total=total, limit=limit, offset=offset)

    def find_similar(self, name: str, limit: Optional[int] = None) -> List[IndexedNode]:
        """Find nodes whose names are similar to ``name``.

        Nodes with an exactly equal name come first.
        """
        if not name:
            return []
        exact: List[IndexedNode] = []
        similar: List[IndexedNode] = []
        for node in self.indexer.get_all_nodes():
            if not node.name:
                continue
            if node.name == name:
                exact.append(node)
            elif are_names_similar(name, node.name):
                similar.append(node)

        matches = exact + similar
        if limit is None:
            limit = self.default_limit
        return matches[:limit]
