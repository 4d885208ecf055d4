# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for codemesh.

Two sinks are configured:
- the root logger writes JSON lines to a dated ``codemesh_YYYYMMDD.log``
  and, optionally, human-readable lines to stderr
- ``codemesh.imports`` writes one JSON line per project import to
  ``imports.jsonl`` and does not propagate

stdout is never used: it carries the MCP stdio transport.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_DIRNAME = ".codemesh_logs"
IMPORT_LOGGER_NAME = "codemesh.imports"
IMPORT_LOG_FILENAME = "imports.jsonl"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_CORE_FIELDS = ("timestamp", "level", "logger", "message")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Fields passed as ``extra={"extra_fields": {...}}`` are merged in, but
    never replace the core fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                if key not in _CORE_FIELDS:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


def _log_dir(log_dir: Optional[Path]) -> Path:
    path = Path(log_dir) if log_dir is not None else Path.cwd() / DEFAULT_LOG_DIRNAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def _json_file_handler(path: Path, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Replace the root handlers with the codemesh sinks.

    Args:
        log_dir: Directory for log files (default: ./.codemesh_logs/)
        log_level: Level for the root logger and its handlers
        console_output: Also log to stderr

    Returns:
        Path of the JSON log file.
    """
    directory = _log_dir(log_dir)
    log_file = directory / f"codemesh_{datetime.now(timezone.utc):%Y%m%d}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_json_file_handler(log_file, log_level))

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
        root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(f"Logging initialized. Log directory: {directory}")
    return log_file


def get_import_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Logger receiving one summary record per project import.

    Calling it again re-targets the logger, closing the previous file.
    """
    import_logger = logging.getLogger(IMPORT_LOGGER_NAME)
    import_logger.setLevel(logging.INFO)
    import_logger.propagate = False

    for handler in list(import_logger.handlers):
        import_logger.removeHandler(handler)
        handler.close()

    import_logger.addHandler(
        _json_file_handler(_log_dir(log_dir) / IMPORT_LOG_FILENAME, logging.INFO)
    )
    return import_logger
