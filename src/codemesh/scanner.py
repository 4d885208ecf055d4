# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Project scanner: collects the source files of a project in a stable order."""

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import InputError

logger = logging.getLogger(__name__)

EXTENSION_LANGUAGES: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".css": "css",
    ".scss": "scss",
    ".html": "html",
    ".htm": "html",
    ".py": "python",
}

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".css", ".scss", ".html", ".py")
DEFAULT_IGNORED_DIRECTORIES = (
    "node_modules",
    "dist",
    "build",
    ".git",
    ".vscode",
    "coverage",
    "tmp",
    "temp",
    ".next",
    ".nuxt",
)


def language_for_path(file_path: str) -> Optional[str]:
    """Language tag for a file extension, or None if unsupported."""
    return EXTENSION_LANGUAGES.get(Path(file_path).suffix.lower())


@dataclass
class ScanResult:
    """Files found by a scan, plus what was skipped."""

    files: List[str] = field(default_factory=list)
    skipped_unsupported: int = 0
    skipped_too_large: List[str] = field(default_factory=list)


class ProjectScanner:
    """Walks a project directory and returns supported source files.

    Usage:
        scanner = ProjectScanner()
        paths = scanner.scan("/path/to/project")
    """

    def __init__(
        self,
        supported_extensions: Optional[Iterable[str]] = None,
        ignored_directories: Optional[Iterable[str]] = None,
        max_file_size_kb: Optional[int] = None,
    ) -> None:
        extensions = supported_extensions if supported_extensions is not None else DEFAULT_EXTENSIONS
        self.supported_extensions = {ext.lower() for ext in extensions}
        self.ignored_directories = set(
            ignored_directories if ignored_directories is not None else DEFAULT_IGNORED_DIRECTORIES
        )
        self.max_file_size_kb = max_file_size_kb

    def should_ignore_directory(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignored_directories)

    def is_supported_file(self, file_path: str) -> bool:
        suffix = Path(file_path).suffix.lower()
        return suffix in self.supported_extensions and suffix in EXTENSION_LANGUAGES

    def scan(self, root: str) -> List[str]:
        """Return supported files under ``root`` as sorted absolute paths.

        Raises:
            InputError: If root is missing or not a directory.
        """
        return self.scan_with_stats(root).files

    def scan_with_stats(self, root: str) -> ScanResult:
        if not root:
            raise InputError("Project path is required")

        root_path = Path(root).expanduser()
        if not root_path.is_dir():
            raise InputError(f"Project path is not a directory: {root}")

        result = ScanResult()
        for dirpath, dirnames, filenames in os.walk(root_path.resolve()):
            # Prune in place so os.walk never descends into ignored directories
            dirnames[:] = sorted(d for d in dirnames if not self.should_ignore_directory(d))

            for filename in filenames:
                file_path = os.path.join(dirpath, filename)
                if not self.is_supported_file(file_path):
                    result.skipped_unsupported += 1
                    continue

                if self.max_file_size_kb is not None:
                    try:
                        size_kb = os.path.getsize(file_path) / 1024
                    except OSError as e:
                        logger.warning(f"Cannot stat {file_path}: {e}")
                        continue
                    if size_kb > self.max_file_size_kb:
                        logger.warning(
                            f"Skipping {file_path}: {size_kb:.0f}KB exceeds "
                            f"{self.max_file_size_kb}KB limit"
                        )
                        result.skipped_too_large.append(file_path)
                        continue

                result.files.append(file_path)

        result.files.sort()
        logger.info(
            f"Scanned {root_path}: {len(result.files)} files, "
            f"{result.skipped_unsupported} unsupported, "
            f"{len(result.skipped_too_large)} too large"
        )
        return result
