"""
Graph layout: algorithms and the animated layout engine.
"""

from mettagraph.layout.algorithms import (
    LAYOUT_ALGORITHMS,
    assign_levels,
    center_positions,
    circular_layout,
    force_directed_layout,
    hierarchical_layout,
)
from mettagraph.layout.engine import HIT_RADIUS, LayoutEngine, ease_out_cubic

__all__ = [
    "LAYOUT_ALGORITHMS",
    "assign_levels",
    "center_positions",
    "circular_layout",
    "force_directed_layout",
    "hierarchical_layout",
    "HIT_RADIUS",
    "LayoutEngine",
    "ease_out_cubic",
]
