# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for codemesh.

This module implements the MCP protocol layer with ZERO business logic.
All business logic is delegated to CodeMeshService.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from codemesh.config import Config
from codemesh.errors import CodeMeshError
from codemesh.logging_setup import DEFAULT_LOG_DIRNAME, get_import_logger, setup_logging
from codemesh.query_engine import QueryOptions
from codemesh.service import CodeMeshService
from codemesh.storage import Storage

logger = logging.getLogger(__name__)


class CodeMeshMCPServer:
    """MCP Protocol Layer for codemesh.

    Responsibilities:
    - Initialize MCP server and register tools
    - Translate MCP requests to service calls
    - Format service responses as JSON-compatible tool results
    - Handle MCP server lifecycle (startup, shutdown)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        service: Optional[CodeMeshService] = None,
        log_dir: Optional[Path] = None,
    ):
        """Initialize MCP server.

        Args:
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates default service.
            log_dir: Directory for the import summary log. If None, uses ./.codemesh_logs/
        """
        if config is None:
            config = Config()
        self.config = config

        if service is None:
            service = CodeMeshService(config=config, import_logger=get_import_logger(log_dir))
        self.service = service

        self.mcp = FastMCP(name="codemesh")
        self._register_tools()

        logger.info("CodeMeshMCPServer initialized")

    def _register_tools(self) -> None:
        """Register MCP tools with the server."""

        @self.mcp.tool()
        async def import_project(
            project_path: str,
            ctx: Context[ServerSession, None],
            reset: bool = False,
        ) -> Dict[str, Any]:
            """Import a project: parse its files, infer relationships and store both.

            Args:
                project_path: Project root directory
                ctx: MCP context for logging and progress
                reset: Delete previously imported data first

            Returns:
                Import summary with file, node and relationship counts.
            """
            await ctx.info(f"Importing project: {project_path}")
            try:
                result = self.service.import_project(project_path, reset=reset)
                summary = result.summary()
                summary["failed"] = result.failed_files
                await ctx.info(
                    f"Imported {summary['files']} files, {summary['relationships']} relationships"
                )
                return summary
            except CodeMeshError as e:
                await ctx.error(f"Import failed for {project_path}: {e}")
                raise
            except Exception as e:
                await ctx.error(f"Unexpected error importing {project_path}: {e}")
                raise

        @self.mcp.tool()
        async def query_nodes(
            ctx: Context[ServerSession, None],
            name: Optional[str] = None,
            type: Optional[str] = None,
            file_path: Optional[str] = None,
            language: Optional[str] = None,
            text: Optional[str] = None,
            project_name: Optional[str] = None,
            file_name: Optional[str] = None,
            relative_path: Optional[str] = None,
            limit: Optional[int] = None,
            offset: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Query indexed syntax nodes.

            The first given of name, type, file_path, language and text selects
            candidates; project_name, file_name and relative_path filter them.

            Returns:
                Dictionary with nodes, total (before pagination), limit and offset.
            """
            options = QueryOptions(
                name=name,
                type=type,
                file_path=file_path,
                language=language,
                text=text,
                project_name=project_name,
                file_name=file_name,
                relative_path=relative_path,
                limit=limit,
                offset=offset,
            )
            try:
                return self.service.query(options).to_dict()
            except Exception as e:
                await ctx.error(f"Error querying nodes: {e}")
                raise

        @self.mcp.tool()
        async def find_similar_nodes(
            name: str,
            ctx: Context[ServerSession, None],
            limit: Optional[int] = None,
        ) -> List[Dict[str, Any]]:
            """Find nodes whose names are similar to the given name."""
            try:
                return [node.to_dict() for node in self.service.find_similar(name, limit)]
            except Exception as e:
                await ctx.error(f"Error finding nodes similar to {name}: {e}")
                raise

        @self.mcp.tool()
        async def get_relationships(
            ctx: Context[ServerSession, None],
            type: Optional[str] = None,
            from_node: Optional[str] = None,
            to_node: Optional[str] = None,
            limit: Optional[int] = None,
            offset: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Get stored relationships by exact type, source node and target node.

            Args:
                ctx: MCP context for logging and progress
                type: inheritance, dependency, call, style or all
                from_node: Durable id of the source node
                to_node: Durable id of the target node
                limit: Maximum number of relationships
                offset: Number of relationships to skip

            Returns:
                Dictionary with relationships and total (before pagination).
            """
            rel_filter = {"type": type, "from_node": from_node, "to_node": to_node}
            try:
                relationships = self.service.get_relationships(rel_filter, limit, offset)
                total = self.service.count_relationships(rel_filter)
            except CodeMeshError as e:
                await ctx.error(f"Invalid relationship query: {e}")
                raise
            except Exception as e:
                await ctx.error(f"Error reading relationships: {e}")
                raise
            return {"relationships": [rel.to_dict() for rel in relationships], "total": total}

        @self.mcp.tool()
        async def get_node(
            node_id: str,
            ctx: Context[ServerSession, None],
        ) -> Optional[Dict[str, Any]]:
            """Get one stored node by durable id (or parse-time id)."""
            try:
                node = self.service.get_node_by_id(node_id)
            except Exception as e:
                await ctx.error(f"Error reading node {node_id}: {e}")
                raise
            if node is None:
                await ctx.info(f"Node not found: {node_id}")
                return None
            return node.to_dict()

        @self.mcp.tool()
        async def export_graph(
            ctx: Context[ServerSession, None],
            rel_type: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Export stored nodes and relationships as a graph for visualization.

            Returns:
                Dictionary with metadata, nodes, edges and graph_metadata.
            """
            await ctx.info("Exporting graph")
            try:
                graph = self.service.export_graph(rel_type=rel_type)
            except Exception as e:
                await ctx.error(f"Error exporting graph: {e}")
                raise
            await ctx.info(
                f"Graph exported: {graph['metadata']['total_nodes']} nodes, "
                f"{graph['metadata']['total_edges']} edges"
            )
            return graph

        logger.info(
            "MCP tools registered: import_project, query_nodes, find_similar_nodes, "
            "get_relationships, get_node, export_graph"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport type to use. Options:
                - "stdio": Standard input/output (default)
                - "streamable-http": HTTP transport
                - "sse": Server-sent events transport
        """
        logger.info(f"Starting MCP server with {transport} transport")
        self.mcp.run(transport=transport)  # type: ignore[arg-type]

    def shutdown(self) -> None:
        """Shutdown the MCP server and cleanup resources."""
        logger.info("Shutting down MCP server")
        self.service.shutdown()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="codemesh MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the configuration file. Default: ./.codemesh.yml",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=None,
        help="SQLite database path, overriding database_path from the configuration",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help=f"Directory for log files. Default: ./{DEFAULT_LOG_DIRNAME}/",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    return parser.parse_args(argv)


def main() -> None:
    """Main entry point for MCP server."""
    args = parse_args()

    setup_logging(log_dir=args.log_dir)

    config = Config(args.config)
    service = CodeMeshService(
        config=config,
        storage=Storage(args.database or config.database_path),
        import_logger=get_import_logger(args.log_dir),
    )
    server = CodeMeshMCPServer(config=config, service=service)
    logger.info(f"Starting MCP server with database={service.storage.db.path}")
    try:
        server.run(transport=args.transport)
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
