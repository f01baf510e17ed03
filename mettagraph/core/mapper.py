"""
Node Mapper
===========

Configuration-driven conversion from raw labels to node identity, node
type and display colour.

Labels are the only thing the text language gives us about a node, so
every derived attribute here is a pure function of the label (and, for
the type heuristic, of the predicate it appears under). The mapper can be
loaded from a JSON file to change colours or the predicate dictionary
used for spelling suggestions.
"""

from dataclasses import dataclass
import hashlib
import json
from pathlib import Path
import re
from typing import Any, Optional

from mettagraph.core.schema import EdgeType, NodeType


_NON_ALNUM = re.compile(r"[^a-z0-9]")
_HYPHEN_RUN = re.compile(r"-+")

_PROPER_NAME = re.compile(r"^[A-Z][a-z]+$")
_INTEGER = re.compile(r"^[0-9]+$")
_GENDER_MARKER = re.compile(r"^[MF]$")
_BOOLEAN = re.compile(r"^(true|false)$", re.IGNORECASE)


DEFAULT_COMMON_PREDICATES: tuple[str, ...] = (
    "gender",
    "is-parent",
    "is-brother",
    "is-sister",
    "age",
    "name",
)
"""Predicates checked for near-miss spellings during validation."""


# Fallback colours per node/edge type, used when a node carries no colour.
DEFAULT_MAPPER_CONFIG: dict[str, Any] = {
    "common_predicates": list(DEFAULT_COMMON_PREDICATES),
    "type_colors": {
        "entity": "rgba(59, 130, 246, 0.7)",
        "predicate": "rgba(34, 197, 94, 0.7)",
        "value": "rgba(245, 101, 101, 0.7)",
        "hypergraph": "rgba(168, 85, 247, 0.7)",
    },
    "edge_type_colors": {
        "relation": "rgba(107, 114, 128, 0.6)",
        "hypergraph_connection": "rgba(168, 85, 247, 0.6)",
    },
    "node_saturation": 65,
    "node_lightness": 70,
    "edge_hue_offset": 180,
}


def node_id(label: str) -> str:
    """
    Derive a stable node id from a label.

    Lower-cases the label, turns every character outside ``[a-z0-9]``
    into a hyphen, collapses hyphen runs and strips hyphens at both ends.

    >>> node_id("Is Parent!")
    'is-parent'
    """
    slug = _NON_ALNUM.sub("-", label.lower())
    slug = _HYPHEN_RUN.sub("-", slug)
    return slug.strip("-")


def infer_node_type(label: str, predicate: str) -> NodeType:
    """Guess a node type from its label and the predicate it appears under."""
    if _PROPER_NAME.match(label):
        return NodeType.ENTITY

    if _INTEGER.match(label) or _GENDER_MARKER.match(label) or _BOOLEAN.match(label):
        return NodeType.VALUE

    if label == predicate:
        return NodeType.PREDICATE

    return NodeType.ENTITY


def _label_hue(label: str) -> int:
    digest = hashlib.sha256(label.encode("utf-8")).hexdigest()[:8]
    return int(digest, 16) % 360


@dataclass
class NodeAttributes:
    """Derived attributes for a label."""

    id: str
    type: NodeType
    color: str


class NodeMapper:
    """
    Maps raw labels to node attributes.

    Example
    -------
    >>> mapper = NodeMapper()
    >>> attrs = mapper.normalize_attributes("Chandler", predicate="gender")
    >>> attrs.id, attrs.type.value
    ('chandler', 'entity')
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        """
        Initialize the mapper with configuration.

        Parameters
        ----------
        config : dict, optional
            Partial configuration merged over DEFAULT_MAPPER_CONFIG.

        Raises
        ------
        ValueError
            If a configured value has the wrong shape.
        """
        merged = json.loads(json.dumps(DEFAULT_MAPPER_CONFIG))
        for key, value in (config or {}).items():
            if key not in merged:
                raise ValueError(f"Unknown mapper config key: {key!r}")
            if isinstance(merged[key], dict):
                if not isinstance(value, dict):
                    raise ValueError(f"Mapper config {key!r} must be an object")
                merged[key].update(value)
            else:
                merged[key] = value

        predicates = merged["common_predicates"]
        if not isinstance(predicates, list) or not all(isinstance(p, str) for p in predicates):
            raise ValueError("common_predicates must be a list of strings")

        self.config = merged

    @classmethod
    def from_json_file(cls, path: Path | str) -> "NodeMapper":
        """Load configuration from a JSON file."""
        with open(path) as f:
            config = json.load(f)
        return cls(config)

    @property
    def common_predicates(self) -> tuple[str, ...]:
        return tuple(self.config["common_predicates"])

    def node_id(self, label: str) -> str:
        return node_id(label)

    def node_color(self, label: str) -> str:
        """Stable translucent colour for a node label."""
        saturation = self.config["node_saturation"]
        lightness = self.config["node_lightness"]
        return f"hsla({_label_hue(label)}, {saturation}%, {lightness}%, 0.7)"

    def edge_color(self, predicate: str) -> str:
        """Stable colour for a predicate, offset from the node palette."""
        hue = (_label_hue(predicate) + self.config["edge_hue_offset"]) % 360
        return f"hsla({hue}, 60%, 65%, 0.6)"

    def type_color(self, node_type: NodeType) -> str:
        return self.config["type_colors"][NodeType(node_type).value]

    def edge_type_color(self, edge_type: EdgeType) -> str:
        return self.config["edge_type_colors"][EdgeType(edge_type).value]

    def normalize_attributes(self, label: str, predicate: str = "") -> NodeAttributes:
        """
        Convert a label to normalized node attributes.

        Parameters
        ----------
        label : str
            Raw label as written in the fact
        predicate : str
            Predicate of the fact mentioning the label

        Returns
        -------
        NodeAttributes
            Id, inferred type and colour
        """
        return NodeAttributes(
            id=node_id(label),
            type=infer_node_type(label, predicate),
            color=self.node_color(label),
        )
