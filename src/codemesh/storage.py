# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Persistence layer for nodes and relationships.

This module provides the storage facade used by the importer and the
service layer. Parse-time node ids are only unique within one file, so a
project import mints a globally unique durable id for every node and
rewrites every relationship endpoint to durable ids before writing it.

Import flow (one transaction):
1. For each graph, mint ``node_<uuid>`` ids and write the node rows
   (parent and child ids remapped within the graph)
2. After ALL nodes are written, remap each relationship's endpoints,
   preferring the (file, parse-time id) pair, then the bare parse-time id;
   ids found in neither map pass through unchanged
3. Write the relationship rows

Any failure rolls the whole import back and raises PersistenceError.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .database import IN_MEMORY, Database
from .errors import PersistenceError
from .models import FileGraph, IndexedNode, Relationship, derive_attribution
from .node_storage import NodeQuery, NodeStorage
from .relationship_storage import RelationshipQuery, RelationshipStorage

logger = logging.getLogger(__name__)


def new_durable_id() -> str:
    return f"node_{uuid.uuid4().hex}"


@dataclass
class SaveResult:
    """Outcome of a successful ``save_project_data`` call."""

    node_count: int = 0
    relationship_count: int = 0
    # (file_path, parse-time id) -> durable id
    node_ids: Dict[Tuple[str, str], str] = field(default_factory=dict)
    relationships: List[Relationship] = field(default_factory=list)


class Storage:
    """Storage facade over the node and relationship tables.

    The underlying connection is opened and closed explicitly, or scoped
    with ``session()``. An in-memory database loses its contents when
    closed, so keep it open for the lifetime of its owner.

    Usage:
        storage = Storage("codemesh.db")
        with storage.session():
            storage.save_project_data(graphs, relationships)
            node = storage.get_node_by_id(node_id)
    """

    def __init__(
        self,
        db_path: Union[str, Path] = IN_MEMORY,
        database: Optional[Database] = None,
    ) -> None:
        self.db = database if database is not None else Database(db_path)
        self.nodes = NodeStorage(self.db)
        self.relationships = RelationshipStorage(self.db)

    # Lifecycle

    @property
    def is_open(self) -> bool:
        return self.db.is_open

    def open(self) -> None:
        self.db.open()

    def close(self) -> None:
        self.db.close()

    @contextmanager
    def session(self) -> Iterator["Storage"]:
        """Open the database for the block, closing it only if this call opened it."""
        opened_here = not self.db.is_open
        if opened_here:
            self.db.open()
        try:
            yield self
        finally:
            if opened_here:
                self.db.close()

    def init_schema(self) -> None:
        self.db.init_schema()

    def reset(self) -> None:
        """Delete all stored nodes and relationships."""
        self.db.reset()

    # Writes

    def save_project_data(
        self, graphs: Sequence[FileGraph], relationships: Sequence[Relationship]
    ) -> SaveResult:
        """Persist a whole project atomically.

        Args:
            graphs: Parsed graphs, including merged virtual nodes.
            relationships: Relationships referencing parse-time ids.

        Returns:
            SaveResult with counts, the id mapping and the persisted
            relationships (durable ids). The inputs are not modified.

        Raises:
            PersistenceError: If anything fails; nothing is persisted then.
        """
        result = SaveResult()
        plain_ids: Dict[str, str] = {}

        try:
            with self.db.transaction():
                for graph in graphs:
                    self._save_graph(graph, result, plain_ids)

                for rel in relationships:
                    persisted = self._remap_relationship(rel, result.node_ids, plain_ids)
                    self.relationships.insert_relationship(persisted)
                    result.relationships.append(persisted)
        except PersistenceError:
            logger.error("Project save failed, all changes rolled back")
            raise
        except Exception as e:
            logger.error(f"Project save failed, all changes rolled back: {e}")
            raise PersistenceError(f"Failed to save project data: {e}") from e

        result.node_count = len(result.node_ids)
        result.relationship_count = len(result.relationships)
        logger.info(
            f"Saved {result.node_count} nodes and {result.relationship_count} relationships"
        )
        return result

    def _save_graph(
        self, graph: FileGraph, result: SaveResult, plain_ids: Dict[str, str]
    ) -> None:
        local_ids = {node_id: new_durable_id() for node_id in graph.nodes}
        attribution = derive_attribution(graph)

        for node_id, node in graph.nodes.items():
            indexed = IndexedNode.from_syntax_node(node_id, node, graph, attribution)
            indexed.id = local_ids[node_id]
            if node.parent is not None:
                indexed.parent_id = local_ids.get(node.parent, node.parent)
            indexed.children = [local_ids.get(child, child) for child in node.children]
            self.nodes.insert_node(indexed)

            result.node_ids.setdefault((graph.file_path, node_id), indexed.id)
            plain_ids.setdefault(node_id, indexed.id)

    @staticmethod
    def _remap_relationship(
        rel: Relationship,
        qualified: Dict[Tuple[str, str], str],
        plain: Dict[str, str],
    ) -> Relationship:
        source_path = rel.metadata.path
        target_path = rel.metadata.target_path or source_path

        def resolve(file_path: str, node_id: str) -> str:
            durable = qualified.get((file_path, node_id))
            if durable is None:
                durable = plain.get(node_id, node_id)
            return durable

        return replace(
            rel,
            from_node=resolve(source_path, rel.from_node),
            to_node=resolve(target_path, rel.to_node),
            metadata=replace(rel.metadata),
            id=None,
        )

    # Reads

    def get_node_by_id(self, node_id: str) -> Optional[IndexedNode]:
        """Durable id first, then parse-time id. None when absent."""
        return self.nodes.get_node_by_id(node_id)

    def get_nodes(
        self, query: Optional[NodeQuery] = None, limit: Optional[int] = None, offset: int = 0
    ) -> List[IndexedNode]:
        return self.nodes.get_nodes(query, limit=limit, offset=offset)

    def get_all_nodes(self) -> List[IndexedNode]:
        return self.nodes.get_nodes()

    def count_nodes(self, query: Optional[NodeQuery] = None) -> int:
        return self.nodes.count_nodes(query)

    def get_relationships(
        self,
        query: Optional[RelationshipQuery] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Relationship]:
        """Relationships matching type/from/to exactly, paginated."""
        return self.relationships.get_relationships(query, limit=limit, offset=offset)

    def count_relationships(self, query: Optional[RelationshipQuery] = None) -> int:
        return self.relationships.count_relationships(query)

    def get_relationship_by_id(self, rel_id: str) -> Optional[Relationship]:
        return self.relationships.get_relationship_by_id(rel_id)

    def get_relationships_between(self, node_a: str, node_b: str) -> List[Relationship]:
        return self.relationships.get_relationships_between(node_a, node_b)
