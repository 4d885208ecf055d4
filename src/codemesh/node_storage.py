# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Durable node table access."""

import json
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .database import Database
from .errors import PersistenceError
from .models import IndexedNode, Position, SourceRange, tokenize

logger = logging.getLogger(__name__)

_INSERT_NODE = """
    INSERT INTO nodes (
        id, node_id, parent_id, type, name, content, language, granularity,
        children, metadata, project_name, project_path, file_name, file_path,
        relative_path, start_line, start_column, end_line, end_column
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


@dataclass
class NodeQuery:
    """Exact-match filters over stored nodes. Unset fields are ignored."""

    type: Optional[str] = None
    name: Optional[str] = None
    file_path: Optional[str] = None
    language: Optional[str] = None
    project_name: Optional[str] = None


class NodeStorage:
    """Reads and writes rows of the ``nodes`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert_node(self, node: IndexedNode) -> None:
        """Write a node whose ``id`` is already its durable id."""
        self.db.execute(
            _INSERT_NODE,
            (
                node.id,
                node.node_id,
                node.parent_id,
                node.type,
                node.name,
                node.content,
                node.language,
                node.granularity,
                json.dumps(node.children),
                json.dumps(node.metadata, default=str),
                node.project_name,
                node.project_path,
                node.file_name,
                node.file_path,
                node.relative_path,
                node.range.start.row,
                node.range.start.column,
                node.range.end.row,
                node.range.end.column,
            ),
        )

    def get_node_by_id(self, node_id: str) -> Optional[IndexedNode]:
        """Look up by durable id first, then by parse-time id.

        Parse-time ids repeat across files; the earliest stored match wins.
        """
        row = self.db.fetchone("SELECT * FROM nodes WHERE id = ?", (node_id,))
        if row is None:
            row = self.get_row_by_original_id(node_id)
        return self._row_to_node(row) if row is not None else None

    def get_row_by_original_id(self, node_id: str) -> Optional[sqlite3.Row]:
        return self.db.fetchone(
            "SELECT * FROM nodes WHERE node_id = ? ORDER BY rowid LIMIT 1", (node_id,)
        )

    def get_nodes(
        self, query: Optional[NodeQuery] = None, limit: Optional[int] = None, offset: int = 0
    ) -> List[IndexedNode]:
        where, params = self._where(query)
        sql = f"SELECT * FROM nodes{where} ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + [limit, offset]
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params = params + [offset]
        return [self._row_to_node(row) for row in self.db.fetchall(sql, params)]

    def count_nodes(self, query: Optional[NodeQuery] = None) -> int:
        where, params = self._where(query)
        row = self.db.fetchone(f"SELECT COUNT(*) FROM nodes{where}", params)
        return int(row[0]) if row is not None else 0

    @staticmethod
    def _where(query: Optional[NodeQuery]) -> Tuple[str, List[Any]]:
        if query is None:
            return "", []
        clauses: List[str] = []
        params: List[Any] = []
        for column in ("type", "name", "file_path", "language", "project_name"):
            value = getattr(query, column)
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(clauses), params

    @staticmethod
    def _row_to_node(row: sqlite3.Row) -> IndexedNode:
        try:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
            children = json.loads(row["children"]) if row["children"] else []
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Node {row['id']} has corrupt JSON columns: {e}") from e
        name = row["name"] or ""
        return IndexedNode(
            id=row["id"],
            type=row["type"] or "",
            name=name,
            range=SourceRange(
                start=Position(row["start_line"] or 0, row["start_column"] or 0),
                end=Position(row["end_line"] or 0, row["end_column"] or 0),
            ),
            language=row["language"] or "",
            file_path=row["file_path"] or "",
            tokens=tokenize(name),
            project_name=row["project_name"] or "",
            project_path=row["project_path"] or "",
            file_name=row["file_name"] or "",
            relative_path=row["relative_path"] or "",
            content=row["content"] or "",
            granularity=row["granularity"] or "",
            node_id=row["node_id"],
            parent_id=row["parent_id"],
            children=children,
            metadata=metadata,
        )
