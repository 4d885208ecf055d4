# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""codemesh: cross-language syntax graphs and relationship inference."""

__version__ = "0.1.0"

from .config import Config  # noqa: E402
from .errors import CodeMeshError, InputError, ParseError, PersistenceError  # noqa: E402
from .importer import ImportResult, ProjectImporter  # noqa: E402
from .indexer import Indexer  # noqa: E402
from .models import (  # noqa: E402
    FileGraph,
    IndexedNode,
    NodeMap,
    Relationship,
    RelationshipKind,
    RelationshipMetadata,
    RelationshipType,
    SyntaxNode,
)
from .query_engine import QueryEngine, QueryOptions, QueryResult  # noqa: E402
from .relationship_pipeline import RelationshipPipeline  # noqa: E402
from .service import CodeMeshService  # noqa: E402
from .storage import SaveResult, Storage  # noqa: E402

__all__ = [
    "CodeMeshError",
    "CodeMeshService",
    "Config",
    "FileGraph",
    "ImportResult",
    "IndexedNode",
    "Indexer",
    "InputError",
    "NodeMap",
    "ParseError",
    "PersistenceError",
    "ProjectImporter",
    "QueryEngine",
    "QueryOptions",
    "QueryResult",
    "Relationship",
    "RelationshipKind",
    "RelationshipMetadata",
    "RelationshipPipeline",
    "RelationshipType",
    "SaveResult",
    "Storage",
    "SyntaxNode",
]

# Conditional import for MCP server (requires the mcp package)
try:
    from .mcp_server import CodeMeshMCPServer  # noqa: E402

    __all__.append("CodeMeshMCPServer")
except ImportError:
    # MCP package not available
    pass
