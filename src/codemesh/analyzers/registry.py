# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Registry for relationship analyzer plugins with priority-based dispatch."""

import logging
from typing import List

from .base import RelationshipAnalyzer

logger = logging.getLogger(__name__)


class AnalyzerRegistry:
    """Registry for relationship analyzer plugins.

    Analyzers run in priority order (highest first), ties broken by name.

    Thread Safety:
    - NOT thread-safe: register all analyzers during initialization
    """

    def __init__(self) -> None:
        self._analyzers: List[RelationshipAnalyzer] = []
        self._sorted: bool = True

    def register(self, analyzer: RelationshipAnalyzer) -> None:
        """Register an analyzer plugin.

        Raises:
            TypeError: If analyzer is not a RelationshipAnalyzer instance.
        """
        if not isinstance(analyzer, RelationshipAnalyzer):
            raise TypeError(
                f"Analyzer must be a RelationshipAnalyzer instance, got {type(analyzer)}"
            )

        self._analyzers.append(analyzer)
        self._sorted = False

        logger.debug(f"Registered analyzer '{analyzer.name()}' with priority {analyzer.priority()}")

    def get_analyzers(self) -> List[RelationshipAnalyzer]:
        """Get all registered analyzers in execution order."""
        if not self._sorted:
            self._analyzers.sort(key=lambda a: (-a.priority(), a.name()))
            self._sorted = True

        return self._analyzers

    def clear(self) -> None:
        self._analyzers.clear()
        self._sorted = True

    def count(self) -> int:
        return len(self._analyzers)
