# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relationship analyzer plugins."""

from .base import AnalysisResult, RelationshipAnalyzer, SynthesizedNode
from .call_analyzer import CallAnalyzer
from .dependency_analyzer import DependencyAnalyzer
from .inheritance_analyzer import InheritanceAnalyzer
from .registry import AnalyzerRegistry
from .similarity import are_names_similar, levenshtein_distance, normalize_name
from .style_analyzer import StyleAnalyzer


def create_default_registry() -> AnalyzerRegistry:
    """Registry with the built-in analyzers.

    Execution order is inheritance, dependency, call, style.
    """
    registry = AnalyzerRegistry()
    registry.register(InheritanceAnalyzer())
    registry.register(DependencyAnalyzer())
    registry.register(CallAnalyzer())
    registry.register(StyleAnalyzer())
    return registry


__all__ = [
    "AnalysisResult",
    "AnalyzerRegistry",
    "CallAnalyzer",
    "DependencyAnalyzer",
    "InheritanceAnalyzer",
    "RelationshipAnalyzer",
    "StyleAnalyzer",
    "SynthesizedNode",
    "are_names_similar",
    "create_default_registry",
    "levenshtein_distance",
    "normalize_name",
]
