# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Service layer for codemesh.

The service owns every component and is the single entry point used by the
MCP layer. It keeps the in-memory Indexer in step with persistent storage:
on open the Indexer is loaded from the stored nodes, and after each import
the newly persisted nodes are indexed under their durable ids, so ids
returned by ``query`` resolve through ``get_node_by_id`` and relationships.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .config import Config
from .errors import InputError
from .exporter import ALL_TYPES, build_graph, export_to_json, export_to_markdown
from .importer import ImportResult, ProjectImporter
from .indexer import Indexer
from .models import IndexedNode, Relationship, RelationshipType
from .node_storage import NodeQuery
from .parser import Parser
from .query_engine import QueryEngine, QueryOptions, QueryResult
from .relationship_pipeline import RelationshipPipeline
from .relationship_storage import RelationshipQuery
from .scanner import ProjectScanner
from .storage import Storage

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("markdown", "json")


class CodeMeshService:
    """Business logic coordinator for codemesh.

    Owned Components:
    - Storage: durable nodes and relationships (SQLite)
    - Indexer / QueryEngine: in-memory lookup over stored nodes
    - ProjectImporter: scan, parse, analyze and persist a project

    Usage:
        with CodeMeshService(Config()) as service:
            service.import_project("/path/to/project")
            result = service.query(QueryOptions(type="class_declaration"))
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        storage: Optional[Storage] = None,
        indexer: Optional[Indexer] = None,
        parser: Optional[Parser] = None,
        scanner: Optional[ProjectScanner] = None,
        pipeline: Optional[RelationshipPipeline] = None,
        import_logger: Optional[logging.Logger] = None,
    ):
        """Initialize the service with its dependencies.

        Supports dependency injection for testing while providing sensible
        defaults for production use.

        Args:
            config: Configuration object (default: loads ./.codemesh.yml)
            storage: Storage facade (default: SQLite at config.database_path)
            indexer: In-memory indexer (default: new empty indexer)
            parser: Parser (default: tree-sitter parser at config.granularity)
            scanner: Project scanner (default: built from config)
            pipeline: Relationship pipeline (default: built-in analyzers)
            import_logger: Logger receiving one summary record per import
        """
        self.config = config if config is not None else Config()
        self.storage = storage if storage is not None else Storage(self.config.database_path)
        self.indexer = indexer if indexer is not None else Indexer()
        self.query_engine = QueryEngine.from_service(self)

        self._parser = (
            parser
            if parser is not None
            else Parser(
                granularity=self.config.granularity,
                include_comments=self.config.include_comments,
            )
        )
        self._scanner = (
            scanner
            if scanner is not None
            else ProjectScanner(
                supported_extensions=self.config.supported_extensions,
                ignored_directories=self.config.ignored_directories,
                max_file_size_kb=self.config.max_file_size_kb,
            )
        )
        self._pipeline = pipeline if pipeline is not None else RelationshipPipeline()
        self._importer = ProjectImporter(self._scanner, self._parser, self._pipeline, self.storage)
        self._import_logger = import_logger

    # Lifecycle

    def open(self) -> None:
        """Open storage and load the stored nodes into the Indexer."""
        if not self.storage.is_open:
            self.storage.open()
        self.indexer.clear()
        for node in self.storage.get_all_nodes():
            self.indexer.add_node(node)
        logger.info(f"CodeMeshService opened with {self.indexer.node_count()} stored nodes")

    def shutdown(self) -> None:
        """Close storage and drop the in-memory index."""
        logger.info("CodeMeshService shutting down...")
        self.indexer.clear()
        self.storage.close()
        logger.info("CodeMeshService shutdown complete")

    def __enter__(self) -> "CodeMeshService":
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.shutdown()

    def _ensure_open(self) -> None:
        if not self.storage.is_open:
            self.open()

    # Import

    def import_project(self, project_path: str, reset: bool = False) -> ImportResult:
        """Import a project and index its persisted nodes.

        Args:
            project_path: Project root directory.
            reset: Delete all previously stored data first.

        Raises:
            InputError: If the path is invalid.
            PersistenceError: If saving fails; storage is unchanged then.
        """
        self._ensure_open()
        if reset:
            self.storage.reset()
            self.indexer.clear()

        result = self._importer.import_project(project_path)

        indexed = 0
        saved_ids = set(result.saved.node_ids.values()) if result.saved else set()
        for graph in result.graphs:
            for node in self.storage.get_nodes(NodeQuery(file_path=graph.file_path)):
                if node.id in saved_ids:
                    self.indexer.add_node(node)
                    indexed += 1
        logger.info(f"Indexed {indexed} imported nodes")

        if self._import_logger is not None:
            self._import_logger.info(
                "project_import", extra={"extra_fields": result.summary()}
            )
        return result

    # Queries

    def query(self, options: Union[QueryOptions, Dict[str, Any], None] = None) -> QueryResult:
        """Filter and paginate indexed nodes."""
        self._ensure_open()
        if isinstance(options, dict):
            options = QueryOptions.from_dict(options)
        return self.query_engine.query(options)

    def find_similar(self, name: str, limit: Optional[int] = None) -> List[IndexedNode]:
        self._ensure_open()
        return self.query_engine.find_similar(name, limit)

    def get_node_by_id(self, node_id: str) -> Optional[IndexedNode]:
        """Durable id first, then parse-time id. None when absent."""
        if not node_id:
            raise InputError("Node id is required")
        self._ensure_open()
        return self.storage.get_node_by_id(node_id)

    def get_relationships(
        self,
        filter: Union[RelationshipQuery, Dict[str, Any], None] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Relationship]:
        """Relationships matching type/from/to exactly, paginated.

        A type of "all" matches every type.

        Raises:
            InputError: If the type is not a known relationship type.
        """
        self._ensure_open()
        query = self._relationship_query(filter)
        return self.storage.get_relationships(query, limit=limit, offset=offset or 0)

    def count_relationships(
        self, filter: Union[RelationshipQuery, Dict[str, Any], None] = None
    ) -> int:
        self._ensure_open()
        return self.storage.count_relationships(self._relationship_query(filter))

    @staticmethod
    def _relationship_query(
        filter: Union[RelationshipQuery, Dict[str, Any], None]
    ) -> RelationshipQuery:
        if filter is None:
            return RelationshipQuery()
        if isinstance(filter, dict):
            filter = RelationshipQuery(
                type=filter.get("type"),
                from_node=filter.get("from_node", filter.get("from")),
                to_node=filter.get("to_node", filter.get("to")),
            )
        if filter.type == ALL_TYPES:
            filter = RelationshipQuery(from_node=filter.from_node, to_node=filter.to_node)
        elif filter.type is not None and not RelationshipType.is_valid(filter.type):
            raise InputError(f"Unknown relationship type '{filter.type}'")
        return filter

    # Export

    def export_graph(self, rel_type: Optional[str] = None) -> Dict[str, Any]:
        """All stored nodes and relationships as a visualization graph."""
        self._ensure_open()
        return build_graph(
            self.storage.get_all_nodes(), self.storage.get_relationships(), rel_type=rel_type
        )

    def export_nodes(
        self,
        options: Union[QueryOptions, Dict[str, Any], None] = None,
        fmt: str = "markdown",
    ) -> str:
        """Export one page of query results as Markdown or JSON.

        Raises:
            InputError: If the format is unknown.
        """
        if fmt not in EXPORT_FORMATS:
            raise InputError(f"Unknown export format '{fmt}', expected one of {EXPORT_FORMATS}")
        nodes = self.query(options).nodes
        if fmt == "json":
            return export_to_json(nodes)
        return export_to_markdown(nodes)
