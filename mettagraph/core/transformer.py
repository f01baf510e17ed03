"""
Graph Transformer
=================

Converts triples into a deduplicated node/edge graph.

Key Design Principles:
1. Node identity comes from the label, never from input order
2. Hypergraph facts get a synthetic intermediate node
3. Each transform starts from an empty graph, so re-running the same
   triples reproduces the same ids
4. Bidirectional edge pairs are detected and reported, never merged
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import math
from typing import Container, Iterable, Optional

import networkx as nx

from mettagraph.core.mapper import NodeMapper
from mettagraph.core.schema import (
    BidirectionalPair,
    EdgeType,
    GraphData,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    HypergraphStructure,
    NodeMetadata,
    NodeType,
    Point,
    Triple,
)


SIMPLE_ROW_SPACING = 100.0
"""Vertical offset between rows of successive simple facts."""

SIMPLE_COLUMN_WIDTH = 120.0
"""Horizontal distance between nodes on a simple-fact row."""

HYPERGRAPH_ROW_SPACING = 150.0
HYPERGRAPH_MIN_RADIUS = 80.0
HYPERGRAPH_RADIUS_PER_ENTITY = 20.0
INTERMEDIATE_NODE_SIZE = 1.2


EdgeKey = tuple[str, str, str]
"""(predicate, source id, target id)."""


@dataclass
class _TransformSession:
    """Mutable state of one transform call."""

    nodes: dict[str, GraphNode] = field(default_factory=dict)
    entities: dict[str, GraphNode] = field(default_factory=dict)
    """Label nodes keyed by normalized label; the node id may carry a suffix."""

    edges: dict[EdgeKey, GraphEdge] = field(default_factory=dict)
    edge_ids: set[str] = field(default_factory=set)
    hypergraphs: list[HypergraphStructure] = field(default_factory=list)
    hypergraph_counter: int = 0


def next_free_id(base: str, taken: Container[str]) -> str:
    """``base`` if unused, else ``base-2``, ``base-3``, ... whichever is free first."""
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


class GraphTransformer:
    """
    Builds GraphData from triples.

    Example
    -------
    >>> transformer = GraphTransformer()
    >>> graph = transformer.transform([
    ...     Triple(predicate="gender", subject="Chandler", object="M"),
    ... ])
    >>> [n.id for n in graph.nodes]
    ['chandler', 'm']
    """

    def __init__(self, mapper: Optional[NodeMapper] = None):
        """
        Parameters
        ----------
        mapper : NodeMapper, optional
            Source of node ids, types and colours.
            If None, uses default configuration.
        """
        self._mapper = mapper or NodeMapper()
        self._session = _TransformSession()

    @property
    def mapper(self) -> NodeMapper:
        return self._mapper

    def transform(self, triples: Iterable[Triple]) -> GraphData:
        """
        Convert triples to a graph.

        Parameters
        ----------
        triples : iterable of Triple
            Triples in document order

        Returns
        -------
        GraphData
            Fresh graph; nothing is shared with previous calls
        """
        self._session = _TransformSession()

        for index, triple in enumerate(triples):
            if triple.is_hypergraph:
                self.process_hypergraph_triple(triple, index)
            else:
                self.process_simple_triple(triple, index)

        session = self._session
        edges = collapse_duplicate_edges(list(session.edges.values()))
        nodes = list(session.nodes.values())

        return GraphData(
            nodes=nodes,
            edges=edges,
            hypergraphs=list(session.hypergraphs),
            bidirectional_pairs=detect_bidirectional_pairs(edges),
            metadata=GraphMetadata(
                node_count=len(nodes),
                edge_count=len(edges),
                hypergraph_count=len(session.hypergraphs),
                last_updated=datetime.now(timezone.utc),
            ),
        )

    def process_simple_triple(self, triple: Triple, index: int) -> None:
        """Add nodes and directed relation edges for one simple fact."""
        subjects = self._usable_labels(triple.subjects)
        objects = self._usable_labels(triple.objects)
        if not subjects or not objects:
            return

        y = index * SIMPLE_ROW_SPACING
        offset = (len(subjects) - 1) * SIMPLE_COLUMN_WIDTH / 2

        subject_nodes = [
            self._create_or_update_node(label, Point(x=i * SIMPLE_COLUMN_WIDTH - offset, y=y), triple)
            for i, label in enumerate(subjects)
        ]
        object_nodes = [
            self._create_or_update_node(
                label,
                Point(x=(len(subjects) + i) * SIMPLE_COLUMN_WIDTH - offset, y=y),
                triple,
            )
            for i, label in enumerate(objects)
        ]

        self._set_node_properties(subject_nodes + object_nodes, triple.predicate)

        for source in subject_nodes:
            for target in object_nodes:
                self._add_edge(source, target, triple.predicate, directed=True, edge_type=EdgeType.RELATION)

    def process_hypergraph_triple(self, triple: Triple, index: int) -> None:
        """Add entity nodes, an intermediate node and connections for one hypergraph fact."""
        session = self._session
        members = self._usable_labels(triple.subjects + triple.objects)
        if not members:
            return

        center = Point(x=0.0, y=index * HYPERGRAPH_ROW_SPACING)
        radius = max(HYPERGRAPH_MIN_RADIUS, len(members) * HYPERGRAPH_RADIUS_PER_ENTITY)

        entity_nodes = []
        for i, label in enumerate(members):
            angle = 2 * math.pi * i / len(members)
            position = Point(
                x=center.x + radius * math.cos(angle),
                y=center.y + radius * math.sin(angle),
            )
            entity_nodes.append(self._create_or_update_node(label, position, triple))

        session.hypergraph_counter += 1
        intermediate = self.create_intermediate_node(triple.predicate, session.hypergraph_counter, center)
        session.nodes[intermediate.id] = intermediate

        session.hypergraphs.append(HypergraphStructure(
            id=f"hypergraph-{session.hypergraph_counter}",
            predicate=triple.predicate,
            subjects=triple.subjects,
            objects=triple.objects,
            intermediate_node_id=intermediate.id,
        ))

        for entity in entity_nodes:
            self._add_edge(
                entity,
                intermediate,
                triple.predicate,
                directed=False,
                edge_type=EdgeType.HYPERGRAPH_CONNECTION,
            )

        self._set_node_properties(entity_nodes, triple.predicate)

    def create_intermediate_node(self, predicate: str, counter: int, position: Point) -> GraphNode:
        """
        Build the synthetic node standing for a hypergraph fact.

        The id is ``<predicate>-group-<counter>``; the counter is bumped
        past any id already taken by a node in the current session.
        """
        intermediate_id = f"{predicate}-group-{counter}"
        while intermediate_id in self._session.nodes:
            counter += 1
            intermediate_id = f"{predicate}-group-{counter}"
        self._session.hypergraph_counter = max(self._session.hypergraph_counter, counter)

        return GraphNode(
            id=intermediate_id,
            label=f"{predicate} group",
            type=NodeType.HYPERGRAPH,
            position=position.copy_point(),
            is_hypergraph=True,
            color=self._mapper.node_color(predicate),
            size=INTERMEDIATE_NODE_SIZE,
            metadata=NodeMetadata(
                is_generated=True,
                original_expression=f"{predicate} hypergraph",
                occurrences=1,
            ),
        )

    def _usable_labels(self, labels: list[str]) -> list[str]:
        """Drop labels that normalize to an empty id."""
        return [label for label in labels if self._mapper.node_id(label)]

    def _create_or_update_node(self, label: str, position: Point, triple: Triple) -> GraphNode:
        """
        Return the node for ``label``, creating it at ``position`` on first mention.

        Only label nodes are reused. When the normalized label is already
        the id of an intermediate node, the new node gets a numeric suffix.
        """
        session = self._session
        key = self._mapper.node_id(label)

        existing = session.entities.get(key)
        if existing is not None:
            existing.metadata.occurrences += 1
            return existing

        node_id = next_free_id(key, session.nodes)
        node = GraphNode(
            id=node_id,
            label=label,
            position=position,
            metadata=NodeMetadata(original_expression=triple.expression, occurrences=1),
        )
        session.nodes[node_id] = node
        session.entities[key] = node
        return node

    def _set_node_properties(self, nodes: list[GraphNode], predicate: str) -> None:
        """Backfill colour and refine the type of nodes still marked as entities."""
        for node in nodes:
            if not node.color:
                node.color = self._mapper.node_color(node.label)
            if node.type == NodeType.ENTITY:
                node.type = self._mapper.normalize_attributes(node.label, predicate).type

    def _add_edge(
        self,
        source: GraphNode,
        target: GraphNode,
        predicate: str,
        directed: bool,
        edge_type: EdgeType,
    ) -> None:
        """
        Add an edge unless one with the same key already exists.

        The id joins predicate and endpoint ids with dashes, so different
        keys can spell the same id; a later edge then gets a numeric suffix.
        """
        session = self._session
        key = (predicate, source.id, target.id)
        if key in session.edges:
            return

        edge_id = next_free_id(f"{predicate}-{source.id}-{target.id}", session.edge_ids)
        session.edge_ids.add(edge_id)
        session.edges[key] = GraphEdge(
            id=edge_id,
            source=source.id,
            target=target.id,
            label=predicate,
            directed=directed,
            type=edge_type,
            color=self._mapper.edge_color(predicate),
        )


def collapse_duplicate_edges(edges: list[GraphEdge]) -> list[GraphEdge]:
    """Keep the first directed edge per (source, target, label); undirected edges pass through."""
    seen: set[tuple[str, str, str]] = set()
    result: list[GraphEdge] = []

    for edge in edges:
        if edge.directed:
            key = (edge.source, edge.target, edge.label)
            if key in seen:
                continue
            seen.add(key)
        result.append(edge)

    return result


def detect_bidirectional_pairs(edges: list[GraphEdge]) -> list[BidirectionalPair]:
    """
    Find directed edges whose reverse (same label) also exists.

    Each pair is reported once, forward edge being the one that appears
    first. Both edges stay in the graph.
    """
    by_key: dict[tuple[str, str, str], GraphEdge] = {}
    for edge in edges:
        if edge.directed:
            by_key.setdefault((edge.source, edge.target, edge.label), edge)

    pairs: list[BidirectionalPair] = []
    reported: set[frozenset[str]] = set()

    for edge in edges:
        if not edge.directed or edge.source == edge.target:
            continue
        reverse = by_key.get((edge.target, edge.source, edge.label))
        if reverse is None:
            continue
        pair_key = frozenset((edge.id, reverse.id))
        if pair_key in reported:
            continue
        reported.add(pair_key)
        pairs.append(BidirectionalPair(
            label=edge.label,
            forward_edge_id=edge.id,
            reverse_edge_id=reverse.id,
        ))

    return pairs


def to_networkx(nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> nx.MultiDiGraph:
    """
    Build a networkx view of a graph.

    Node attributes mirror GraphNode fields (``x``/``y`` for the
    position); each GraphEdge becomes one edge keyed by its id. Edges
    whose endpoints are missing are skipped.
    """
    G = nx.MultiDiGraph()

    for node in nodes:
        G.add_node(
            node.id,
            label=node.label,
            type=node.type.value,
            x=node.position.x,
            y=node.position.y,
        )

    for edge in edges:
        if edge.source not in G or edge.target not in G:
            continue
        G.add_edge(
            edge.source,
            edge.target,
            key=edge.id,
            label=edge.label,
            type=edge.type.value,
            directed=edge.directed,
        )

    return G
