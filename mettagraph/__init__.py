"""
mettagraph: Fact Text to Positioned Graph
=========================================

Parses ``(predicate arg ...)`` fact documents into a deduplicated graph
with hypergraph support, and lays the graph out for display.

Public API:
- MettaParser: Validate, extract and transform a document
- GraphTransformer: Triples → GraphData
- LayoutEngine: Layout algorithms and tick-driven animation
- NodeMapper: Label → id/type/colour configuration
"""

from mettagraph.core import (
    GraphData,
    GraphEdge,
    GraphNode,
    GraphTransformer,
    LayoutAlgorithm,
    LayoutOptions,
    LayoutState,
    NodeMapper,
    ParseResult,
    Point,
    Triple,
    ViewTransform,
    build_legend,
    to_networkx,
)
from mettagraph.layout import LayoutEngine
from mettagraph.parser import MettaParser, SyntaxValidator, TripleExtractor

__all__ = [
    "MettaParser",
    "SyntaxValidator",
    "TripleExtractor",
    "GraphTransformer",
    "LayoutEngine",
    "NodeMapper",
    "build_legend",
    "to_networkx",
    "GraphData",
    "GraphEdge",
    "GraphNode",
    "LayoutAlgorithm",
    "LayoutOptions",
    "LayoutState",
    "ParseResult",
    "Point",
    "Triple",
    "ViewTransform",
]
