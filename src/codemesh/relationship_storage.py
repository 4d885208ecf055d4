# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Durable relationship table access."""

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from .database import Database
from .errors import PersistenceError
from .models import Relationship, RelationshipKind, RelationshipMetadata, RelationshipType

logger = logging.getLogger(__name__)

_INSERT_RELATIONSHIP = """
    INSERT INTO relationships (
        id, type, from_node, to_node, kind, source_code, path, line_number,
        column_number, project_name, file_name, metadata, created_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


@dataclass
class RelationshipQuery:
    """Exact-match filter on type / from / to. Unset fields are ignored."""

    type: Optional[str] = None
    from_node: Optional[str] = None
    to_node: Optional[str] = None


class RelationshipStorage:
    """Reads and writes rows of the ``relationships`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert_relationship(self, rel: Relationship) -> str:
        """Write a relationship whose endpoints are durable ids.

        Returns:
            The durable relationship id.
        """
        rel_id = rel.id or f"rel_{uuid.uuid4().hex}"
        metadata = rel.metadata
        if not metadata.kind:
            metadata.kind = RelationshipKind.UNKNOWN

        self.db.execute(
            _INSERT_RELATIONSHIP,
            (
                rel_id,
                rel.type,
                rel.from_node,
                rel.to_node,
                metadata.kind,
                metadata.source_code,
                metadata.path,
                metadata.line,
                metadata.column,
                metadata.project_name,
                metadata.file_name,
                json.dumps(metadata.to_dict()),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        rel.id = rel_id
        return rel_id

    def get_relationships(
        self,
        query: Optional[RelationshipQuery] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Relationship]:
        where, params = self._where(query)
        sql = f"SELECT * FROM relationships{where} ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + [limit, offset]
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params = params + [offset]
        return [self._row_to_relationship(row) for row in self.db.fetchall(sql, params)]

    def count_relationships(self, query: Optional[RelationshipQuery] = None) -> int:
        where, params = self._where(query)
        row = self.db.fetchone(f"SELECT COUNT(*) FROM relationships{where}", params)
        return int(row[0]) if row is not None else 0

    def get_relationship_by_id(self, rel_id: str) -> Optional[Relationship]:
        row = self.db.fetchone("SELECT * FROM relationships WHERE id = ?", (rel_id,))
        return self._row_to_relationship(row) if row is not None else None

    def get_relationships_between(self, node_a: str, node_b: str) -> List[Relationship]:
        """Relationships connecting two nodes in either direction."""
        rows = self.db.fetchall(
            "SELECT * FROM relationships "
            "WHERE (from_node = ? AND to_node = ?) OR (from_node = ? AND to_node = ?) "
            "ORDER BY rowid",
            (node_a, node_b, node_b, node_a),
        )
        return [self._row_to_relationship(row) for row in rows]

    @staticmethod
    def _where(query: Optional[RelationshipQuery]) -> Tuple[str, List[Any]]:
        if query is None:
            return "", []
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in (
            ("type", query.type),
            ("from_node", query.from_node),
            ("to_node", query.to_node),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(clauses), params

    @staticmethod
    def _row_to_relationship(row: sqlite3.Row) -> Relationship:
        try:
            stored = json.loads(row["metadata"]) if row["metadata"] else {}
        except json.JSONDecodeError:
            logger.warning(f"Corrupt metadata on relationship {row['id']}, using columns")
            stored = {}

        metadata = RelationshipMetadata.from_dict(stored)
        metadata.kind = metadata.kind if stored.get("kind") else (row["kind"] or "unknown")
        metadata.path = metadata.path or row["path"] or ""
        metadata.source_code = metadata.source_code or row["source_code"] or ""
        metadata.project_name = metadata.project_name or row["project_name"] or ""
        metadata.file_name = metadata.file_name or row["file_name"] or ""
        if "position" not in stored:
            metadata.line = row["line_number"] or 0
            metadata.column = row["column_number"] or 0

        rel_type = row["type"]
        if not RelationshipType.is_valid(rel_type):
            raise PersistenceError(
                f"Relationship {row['id']} has unknown type '{rel_type}'"
            )

        return Relationship(
            type=rel_type,
            from_node=row["from_node"],
            to_node=row["to_node"],
            metadata=metadata,
            id=row["id"],
        )
