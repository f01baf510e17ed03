"""
Graph Schema
============

Data models shared by the parser, the graph transformer and the layout
engine.

These schemas describe a positioned graph without any reference to how it
is drawn. Renderers consume them as-is.

Model Groups:
- Parse records: Triple, ParseError, ValidationResult, ParseResult
- Graph records: GraphNode, GraphEdge, HypergraphStructure, GraphData
- Layout records: LayoutOptions, LayoutState, ViewTransform
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeType(str, Enum):
    """Kinds of graph node."""

    ENTITY = "entity"
    """A named thing mentioned in a fact (the default)."""

    PREDICATE = "predicate"
    """A label that also names the relationship it appears in."""

    VALUE = "value"
    """A literal: integer, gender marker or boolean."""

    HYPERGRAPH = "hypergraph"
    """Synthetic node standing for a whole hypergraph fact."""


class EdgeType(str, Enum):
    """Kinds of graph edge."""

    RELATION = "relation"
    """Directed subject → object edge of a simple fact."""

    HYPERGRAPH_CONNECTION = "hypergraph_connection"
    """Undirected edge between an entity and an intermediate node."""


class Severity(str, Enum):
    """Severity of a parse diagnostic."""

    ERROR = "error"
    WARNING = "warning"


class LayoutAlgorithm(str, Enum):
    """Supported layout algorithms."""

    FORCE_DIRECTED = "force-directed"
    HIERARCHICAL = "hierarchical"
    CIRCULAR = "circular"


# =============================================================================
# Parse Records
# =============================================================================


class Triple(BaseModel):
    """
    Normalized predicate/subject/object form of one fact.

    ``subject`` and ``object`` keep a scalar/list duality: a single value
    is a plain string, two or more values (or none, for hypergraph facts
    without flat arguments) are a list. Consumers branch on
    ``isinstance(value, list)``.

    Examples
    --------
    Simple fact ``(gender Chandler M)``:
        Triple(predicate="gender", subject="Chandler", object="M",
               is_hypergraph=False)

    Hypergraph fact ``(believes Alice (likes Bob Carol))``:
        Triple(predicate="believes", subject="Alice",
               object=["likes", "Bob", "Carol"], is_hypergraph=True)
    """

    model_config = ConfigDict(frozen=True)

    predicate: str
    subject: Union[str, list[str]]
    object: Union[str, list[str]]
    is_hypergraph: bool = False

    expression: Optional[str] = None
    """Source text of the line the triple was extracted from."""

    @property
    def subjects(self) -> list[str]:
        """Subjects as a list, whatever the stored shape."""
        return list(self.subject) if isinstance(self.subject, list) else [self.subject]

    @property
    def objects(self) -> list[str]:
        """Objects as a list, whatever the stored shape."""
        return list(self.object) if isinstance(self.object, list) else [self.object]


class ParseError(BaseModel):
    """A diagnostic attached to one line of input."""

    line: int
    """1-based line number."""

    column: int
    """1-based column, or 0 when the whole line is at fault."""

    message: str
    severity: Severity = Severity.ERROR


class ValidationResult(BaseModel):
    """Outcome of line-by-line syntax validation."""

    is_valid: bool
    errors: list[ParseError] = Field(default_factory=list)
    warnings: list[ParseError] = Field(default_factory=list)


# =============================================================================
# Graph Records
# =============================================================================


class Point(BaseModel):
    """A 2-D coordinate in world space."""

    x: float = 0.0
    y: float = 0.0

    def copy_point(self) -> "Point":
        return Point(x=self.x, y=self.y)


class NodeMetadata(BaseModel):
    """Bookkeeping carried by every node."""

    original_expression: Optional[str] = None
    """Source expression of the fact that first mentioned the node."""

    occurrences: int = 1
    """How many times the label was mentioned across all facts."""

    is_generated: bool = False
    """True for synthetic hypergraph intermediate nodes."""


class GraphNode(BaseModel):
    """
    A node of the graph.

    The ``id`` is derived from the label (see ``NodeMapper.node_id``), so
    the same label always resolves to the same node.
    """

    id: str
    label: str
    type: NodeType = NodeType.ENTITY
    position: Point = Field(default_factory=Point)
    color: Optional[str] = None
    size: Optional[float] = None
    is_hypergraph: bool = False
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)


class GraphEdge(BaseModel):
    """An edge of the graph. ``label`` is the predicate name."""

    id: str
    source: str
    target: str
    label: str
    directed: bool = True
    type: EdgeType = EdgeType.RELATION
    color: Optional[str] = None
    weight: Optional[float] = None


class HypergraphStructure(BaseModel):
    """Record of one hypergraph fact and its intermediate node."""

    id: str
    predicate: str
    subjects: list[str] = Field(default_factory=list)
    objects: list[str] = Field(default_factory=list)
    intermediate_node_id: Optional[str] = None


class BidirectionalPair(BaseModel):
    """Two directed edges with the same label running in opposite directions."""

    label: str
    forward_edge_id: str
    reverse_edge_id: str


class GraphMetadata(BaseModel):
    """Counts recomputed after every transform."""

    node_count: int = 0
    edge_count: int = 0
    hypergraph_count: int = 0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GraphData(BaseModel):
    """A complete graph produced by one transform."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    hypergraphs: list[HypergraphStructure] = Field(default_factory=list)
    bidirectional_pairs: list[BidirectionalPair] = Field(default_factory=list)
    metadata: GraphMetadata = Field(default_factory=GraphMetadata)

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Look up a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class ParseResult(BaseModel):
    """Everything a caller needs after parsing a document."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)
    """Validation errors followed by warnings."""

    metadata: GraphMetadata = Field(default_factory=GraphMetadata)
    hypergraphs: list[HypergraphStructure] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """True if any diagnostic has error severity."""
        return any(e.severity == Severity.ERROR for e in self.errors)


# =============================================================================
# Layout Records
# =============================================================================


class LayoutOptions(BaseModel):
    """
    Tuning knobs for the layout algorithms.

    Partial dictionaries are merged over these defaults by
    ``LayoutOptions.merged``.
    """

    iterations: int = Field(default=300, gt=0)
    """Force-directed simulation steps."""

    spring_length: float = Field(default=200.0, gt=0)
    """Natural edge length used by the spring force."""

    spring_strength: float = 0.1
    repulsion_strength: float = 1000.0

    damping: float = Field(default=0.9, ge=0.0, le=1.0)
    """Velocity multiplier applied after every step."""

    animation_duration: float = Field(default=1500.0, ge=0.0)
    """Transition length in milliseconds."""

    center_force: float = 0.01

    level_height: float = Field(default=170.0, gt=0)
    """Vertical distance between hierarchical levels."""

    node_width: float = Field(default=120.0, gt=0)
    """Horizontal slot width of a node in a hierarchical row."""

    @classmethod
    def merged(cls, options: Union["LayoutOptions", dict, None] = None) -> "LayoutOptions":
        """Merge user options over the defaults."""
        if options is None:
            return cls()
        if isinstance(options, LayoutOptions):
            return options.model_copy()
        return cls.model_validate(options)


class LayoutState(BaseModel):
    """Snapshot of the layout animation."""

    is_animating: bool = False
    progress: float = 0.0
    algorithm: LayoutAlgorithm = LayoutAlgorithm.FORCE_DIRECTED
    start_time: float = 0.0
    duration: float = 0.0


class ViewTransform(BaseModel):
    """Screen ↔ world mapping supplied by the renderer."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    @model_validator(mode="after")
    def _validate_scale(self) -> "ViewTransform":
        """Scale must be strictly positive."""
        if self.scale <= 0:
            raise ValueError("scale must be greater than 0")
        return self

    def screen_to_world(self, point: Point) -> Point:
        return Point(
            x=(point.x - self.x) / self.scale,
            y=(point.y - self.y) / self.scale,
        )

    def world_to_screen(self, point: Point) -> Point:
        return Point(
            x=point.x * self.scale + self.x,
            y=point.y * self.scale + self.y,
        )
