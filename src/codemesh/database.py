# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""SQLite connection ownership and schema.

The Database object is the single storage handle of a process. It is
opened and closed explicitly; nothing is created at import time. Writes
that must be atomic run inside ``transaction()``.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

from .errors import PersistenceError

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        node_id TEXT,
        parent_id TEXT,
        type TEXT NOT NULL,
        name TEXT,
        content TEXT,
        language TEXT,
        granularity TEXT,
        children TEXT,
        metadata TEXT,
        project_name TEXT,
        project_path TEXT,
        file_name TEXT,
        file_path TEXT,
        relative_path TEXT,
        start_line INTEGER,
        start_column INTEGER,
        end_line INTEGER,
        end_column INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_nodes_node_id ON nodes(node_id)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_name ON nodes(name)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_type ON nodes(type)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_file_path ON nodes(file_path)",
    """
    CREATE TABLE IF NOT EXISTS relationships (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        from_node TEXT NOT NULL,
        to_node TEXT NOT NULL,
        kind TEXT NOT NULL DEFAULT 'unknown',
        source_code TEXT,
        path TEXT,
        line_number INTEGER,
        column_number INTEGER,
        project_name TEXT,
        file_name TEXT,
        metadata TEXT,
        created_at TEXT,
        FOREIGN KEY (from_node) REFERENCES nodes(id),
        FOREIGN KEY (to_node) REFERENCES nodes(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_relationships_type ON relationships(type)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_from ON relationships(from_node)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_to ON relationships(to_node)",
)

DROP_STATEMENTS = (
    "DROP TABLE IF EXISTS relationships",
    "DROP TABLE IF EXISTS nodes",
)


class Database:
    """Owner of one sqlite3 connection.

    Transactions are managed explicitly (autocommit mode plus BEGIN /
    COMMIT / ROLLBACK) so a whole project import is one unit of work.
    References between tables are declared but not enforced.

    Thread Safety:
    - NOT thread-safe: one writer at a time is assumed
    """

    def __init__(self, path: Union[str, Path] = IN_MEMORY, timeout: float = 30.0) -> None:
        self.path = str(path)
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._transaction_depth = 0

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Open the connection and make sure the schema exists. Idempotent."""
        if self._conn is not None:
            return

        if self.path != IN_MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row
            if self.path != IN_MEMORY:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=OFF")
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.path}: {e}") from e

        self._conn = conn
        self.init_schema()
        logger.info(f"Database opened: {self.path}")

    def close(self) -> None:
        """Close the connection. Safe to call when already closed."""
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        self._transaction_depth = 0
        logger.info(f"Database closed: {self.path}")

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError("Database is not open")
        return self._conn

    def init_schema(self) -> None:
        for statement in SCHEMA_STATEMENTS:
            self.execute(statement)

    def reset(self) -> None:
        """Drop and recreate all tables."""
        with self.transaction():
            for statement in DROP_STATEMENTS:
                self.execute(statement)
            for statement in SCHEMA_STATEMENTS:
                self.execute(statement)
        logger.info(f"Database reset: {self.path}")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block atomically.

        Nested use joins the outermost transaction. On any exception the
        whole transaction is rolled back and the exception re-raised;
        sqlite errors are re-raised as PersistenceError.
        """
        conn = self.connection
        if self._transaction_depth > 0:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        conn.execute("BEGIN")
        self._transaction_depth = 1
        try:
            yield
        except BaseException as e:
            self._transaction_depth = 0
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            logger.warning("Transaction rolled back")
            if isinstance(e, sqlite3.Error):
                raise PersistenceError(f"Transaction failed: {e}") from e
            raise
        else:
            self._transaction_depth = 0
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise PersistenceError(f"Commit failed: {e}") from e

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(query, params)
        except sqlite3.Error as e:
            if self._transaction_depth > 0:
                # Let transaction() roll back and wrap
                raise
            raise PersistenceError(f"Query failed: {e}") from e

    def fetchall(self, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return self.execute(query, params).fetchall()

    def fetchone(self, query: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        row: Optional[sqlite3.Row] = self.execute(query, params).fetchone()
        return row
