# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Project import flow.

Flow: scan -> parse each file -> relationship pipeline -> persist

A file that fails to parse is logged and skipped; the rest of the project
is still imported. Persistence is all-or-nothing.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import InputError, ParseError
from .models import FileGraph, Relationship
from .parser import Parser
from .relationship_pipeline import RelationshipPipeline
from .scanner import ProjectScanner, language_for_path
from .storage import SaveResult, Storage

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Result of importing one project.

    ``relationships`` reference parse-time ids; the persisted form with
    durable ids is in ``saved.relationships``.
    """

    project_path: str
    graphs: List[FileGraph] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    saved: Optional[SaveResult] = None
    failed_files: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def summary(self) -> Dict[str, Any]:
        return {
            "project_path": self.project_path,
            "files": len(self.graphs),
            "failed_files": len(self.failed_files),
            "nodes": sum(len(graph.nodes) for graph in self.graphs),
            "relationships": len(self.relationships),
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


class ProjectImporter:
    """Runs the import flow for one project directory.

    Usage:
        importer = ProjectImporter(scanner, parser, pipeline, storage)
        result = importer.import_project("/path/to/project")
    """

    def __init__(
        self,
        scanner: ProjectScanner,
        parser: Parser,
        pipeline: RelationshipPipeline,
        storage: Storage,
    ) -> None:
        self.scanner = scanner
        self.parser = parser
        self.pipeline = pipeline
        self.storage = storage

    def import_project(self, project_path: str) -> ImportResult:
        """Import every supported file under ``project_path``.

        Raises:
            InputError: If the path is empty or not a directory.
            PersistenceError: If saving fails; nothing is persisted then.
        """
        if not project_path:
            raise InputError("Project path is required")

        root = str(Path(project_path).expanduser().resolve())
        start_time = time.time()
        result = ImportResult(project_path=root)

        files = self.scanner.scan(root)
        logger.info(f"Importing {len(files)} files from {root}")

        for file_path in files:
            graph = self._parse(file_path, root)
            if graph is None:
                result.failed_files.append(file_path)
                continue
            result.graphs.append(graph)

        result.relationships = self.pipeline.analyze(result.graphs)
        result.saved = self.storage.save_project_data(result.graphs, result.relationships)
        result.elapsed_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Imported {root} in {result.elapsed_ms:.1f}ms: {len(result.graphs)} files, "
            f"{len(result.failed_files)} failed, {len(result.relationships)} relationships"
        )
        return result

    def _parse(self, file_path: str, root: str) -> Optional[FileGraph]:
        language = language_for_path(file_path)
        if language is None:
            logger.debug(f"No language for {file_path}, skipping")
            return None

        try:
            graph = self.parser.parse_file(file_path, language=language, project_path=root)
        except (ParseError, InputError) as e:
            logger.warning(f"Skipping {file_path}: {e}")
            return None

        # Attribution is owned by the importer, whatever the parser filled in
        graph.project_path = root
        graph.relative_path = os.path.relpath(file_path, root)
        return graph
