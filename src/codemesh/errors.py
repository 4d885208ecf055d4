# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Exception hierarchy for codemesh.

Lookups that miss never raise; they return None or an empty list.
"""


class CodeMeshError(Exception):
    """Base class for all codemesh errors."""

    pass


class InputError(CodeMeshError):
    """Raised for an invalid project path, unsupported language or missing parameter."""

    pass


class ParseError(CodeMeshError):
    """Raised when a single file cannot be parsed.

    The importer logs and skips the file; the rest of the import continues.
    """

    def __init__(self, file_path: str, message: str):
        super().__init__(f"Failed to parse {file_path}: {message}")
        self.file_path = file_path


class PersistenceError(CodeMeshError):
    """Raised when a storage operation fails.

    For imports this is raised only after the whole transaction was rolled back.
    """

    pass
