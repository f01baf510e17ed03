"""
mettagraph core: schema, label mapping and graph transformation.
"""

from mettagraph.core.schema import (
    BidirectionalPair,
    EdgeType,
    GraphData,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    HypergraphStructure,
    LayoutAlgorithm,
    LayoutOptions,
    LayoutState,
    NodeMetadata,
    NodeType,
    ParseError,
    ParseResult,
    Point,
    Severity,
    Triple,
    ValidationResult,
    ViewTransform,
)
from mettagraph.core.mapper import NodeMapper, NodeAttributes, node_id
from mettagraph.core.transformer import GraphTransformer, to_networkx
from mettagraph.core.legend import Legend, build_legend

__all__ = [
    "BidirectionalPair",
    "EdgeType",
    "GraphData",
    "GraphEdge",
    "GraphMetadata",
    "GraphNode",
    "HypergraphStructure",
    "LayoutAlgorithm",
    "LayoutOptions",
    "LayoutState",
    "NodeMetadata",
    "NodeType",
    "ParseError",
    "ParseResult",
    "Point",
    "Severity",
    "Triple",
    "ValidationResult",
    "ViewTransform",
    "NodeMapper",
    "NodeAttributes",
    "node_id",
    "GraphTransformer",
    "to_networkx",
    "Legend",
    "build_legend",
]
