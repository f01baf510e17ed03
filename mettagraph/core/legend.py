"""
Legend summary of a graph: which labels and predicates appear, with the
colours a renderer should use for them, and per-type counts.
"""

from collections import Counter
from typing import Optional

from pydantic import BaseModel, Field

from mettagraph.core.mapper import NodeMapper
from mettagraph.core.schema import EdgeType, GraphEdge, GraphNode, NodeType


class LegendEntry(BaseModel):
    label: str
    color: str


class LegendTypeEntry(BaseModel):
    type: str
    color: str
    count: int


class Legend(BaseModel):
    """Sorted legend entries for a graph."""

    nodes: list[LegendEntry] = Field(default_factory=list)
    predicates: list[LegendEntry] = Field(default_factory=list)
    node_types: list[LegendTypeEntry] = Field(default_factory=list)
    edge_types: list[LegendTypeEntry] = Field(default_factory=list)


def build_legend(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    mapper: Optional[NodeMapper] = None,
) -> Legend:
    """
    Summarize labels, predicates and types present in a graph.

    Types with no members are left out.
    """
    mapper = mapper or NodeMapper()

    labels = sorted({node.label for node in nodes if node.label})
    predicates = sorted({edge.label for edge in edges if edge.label})
    node_counts = Counter(node.type for node in nodes)
    edge_counts = Counter(edge.type for edge in edges)

    return Legend(
        nodes=[LegendEntry(label=label, color=mapper.node_color(label)) for label in labels],
        predicates=[LegendEntry(label=p, color=mapper.edge_color(p)) for p in predicates],
        node_types=[
            LegendTypeEntry(type=t.value, color=mapper.type_color(t), count=node_counts[t])
            for t in NodeType
            if node_counts[t]
        ],
        edge_types=[
            LegendTypeEntry(type=t.value, color=mapper.edge_type_color(t), count=edge_counts[t])
            for t in EdgeType
            if edge_counts[t]
        ],
    )
