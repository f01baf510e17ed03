"""
Layout Engine
=============

Owns a positioned graph and animates it between layouts.

Key Design Principles:
1. Target positions are computed synchronously, all at once
2. The animation is a state machine advanced by ``tick(now)``; whoever
   hosts the engine (a display loop, an asyncio task, a test) supplies
   the ticks and, optionally, the timestamps
3. At most one animation runs; starting a layout cancels the previous one
4. Stopping freezes nodes where they are; it never snaps to the target
"""

import math
import time
from typing import Callable, Optional, Union

from mettagraph.core.schema import (
    GraphEdge,
    GraphNode,
    LayoutAlgorithm,
    LayoutOptions,
    LayoutState,
    Point,
    ViewTransform,
)
from mettagraph.layout.algorithms import LAYOUT_ALGORITHMS, Positions


HIT_RADIUS = 20.0
"""World-space radius used by ``get_node_at_position``."""


def ease_out_cubic(t: float) -> float:
    return 1 - (1 - t) ** 3


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class LayoutEngine:
    """
    Layout state machine over a private copy of the graph.

    Example
    -------
    >>> engine = LayoutEngine(clock=lambda: 0.0)
    >>> engine.set_data(graph.nodes, graph.edges)
    >>> engine.apply_layout("hierarchical", {"animation_duration": 1000})
    >>> engine.tick(now=500.0)   # halfway
    True
    >>> engine.tick(now=1000.0)  # done
    False
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Initialize an empty engine.

        Parameters
        ----------
        clock : callable, optional
            Returns the current time in milliseconds. Used whenever a
            timestamp is not passed explicitly. Defaults to a monotonic
            clock.
        """
        self._clock = clock or _monotonic_ms
        self._nodes: list[GraphNode] = []
        self._edges: list[GraphEdge] = []
        self._layout_state = LayoutState()
        self._initial_positions: Positions = {}
        self._target_positions: Positions = {}

    @property
    def nodes(self) -> list[GraphNode]:
        """Nodes owned by the engine, with their current positions."""
        return self._nodes

    @property
    def edges(self) -> list[GraphEdge]:
        return self._edges

    @property
    def target_positions(self) -> Positions:
        """Copy of the target map of the running animation (empty when idle)."""
        return {node_id: p.copy_point() for node_id, p in self._target_positions.items()}

    def set_data(self, nodes: list[GraphNode], edges: list[GraphEdge]) -> None:
        """
        Take ownership of a graph.

        Nodes and edges are deep-copied so positions animated here never
        leak back into the caller's objects. Any running animation is
        cancelled.
        """
        self.stop_layout()
        self._nodes = [node.model_copy(deep=True) for node in nodes]
        self._edges = [edge.model_copy(deep=True) for edge in edges]
        print(f"[LayoutEngine] Loaded {len(self._nodes)} nodes, {len(self._edges)} edges")

    def apply_layout(
        self,
        algorithm: Union[LayoutAlgorithm, str],
        options: Union[LayoutOptions, dict, None] = None,
        *,
        now: Optional[float] = None,
    ) -> None:
        """
        Compute a layout and start animating toward it.

        Parameters
        ----------
        algorithm : LayoutAlgorithm or str
            "force-directed", "hierarchical" or "circular"
        options : LayoutOptions or dict, optional
            Merged over the defaults
        now : float, optional
            Start timestamp in milliseconds. Defaults to the engine clock.

        Raises
        ------
        ValueError
            If the algorithm name is unknown
        pydantic.ValidationError
            If the options are invalid
        """
        try:
            algorithm = LayoutAlgorithm(algorithm)
        except ValueError as exc:
            raise ValueError(f"Unknown layout algorithm: {algorithm!r}") from exc

        layout_options = LayoutOptions.merged(options)
        self.stop_layout()

        if not self._nodes:
            return

        print(f"[LayoutEngine] Applying {algorithm.value} layout to {len(self._nodes)} nodes")
        layout = LAYOUT_ALGORITHMS[algorithm]
        targets = layout(self._nodes, self._edges, layout_options)

        self._start_animation(algorithm, targets, layout_options.animation_duration, now)

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Advance the animation to ``now``.

        Returns
        -------
        bool
            True while the animation still has frames to play
        """
        state = self._layout_state
        if not state.is_animating:
            return False

        if now is None:
            now = self._clock()

        if state.duration > 0:
            progress = min(max((now - state.start_time) / state.duration, 0.0), 1.0)
        else:
            progress = 1.0

        eased = ease_out_cubic(progress)
        for node in self._nodes:
            initial = self._initial_positions.get(node.id)
            target = self._target_positions.get(node.id)
            if initial is None or target is None:
                continue
            node.position.x = initial.x + (target.x - initial.x) * eased
            node.position.y = initial.y + (target.y - initial.y) * eased

        state.progress = progress
        if progress >= 1.0:
            state.is_animating = False
            state.progress = 1.0
            self._initial_positions = {}
            self._target_positions = {}

        return state.is_animating

    def settle(self) -> None:
        """Jump the running animation to its final frame."""
        state = self._layout_state
        if state.is_animating:
            self.tick(now=state.start_time + state.duration)

    def stop_layout(self) -> None:
        """Cancel the animation, leaving nodes at their current positions."""
        self._layout_state.is_animating = False
        self._initial_positions = {}
        self._target_positions = {}

    def get_layout_state(self) -> LayoutState:
        return self._layout_state.model_copy()

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def handle_node_drag(self, node_id: str, position: Point) -> bool:
        """
        Move a node directly.

        Works whether or not an animation is running; the next tick will
        pull the node back toward its target.

        Returns
        -------
        bool
            True if the node exists
        """
        node = self.get_node(node_id)
        if node is None:
            return False
        node.position = Point(x=position.x, y=position.y)
        return True

    def get_node_at_position(self, position: Point, transform: ViewTransform) -> Optional[GraphNode]:
        """
        Hit test in screen coordinates.

        Returns the node nearest to ``position`` within HIT_RADIUS world
        units, or None.
        """
        world = transform.screen_to_world(position)
        best: Optional[GraphNode] = None
        best_distance = HIT_RADIUS

        for node in self._nodes:
            distance = math.hypot(world.x - node.position.x, world.y - node.position.y)
            if distance <= best_distance and (best is None or distance < best_distance):
                best = node
                best_distance = distance

        return best

    def _start_animation(
        self,
        algorithm: LayoutAlgorithm,
        targets: Positions,
        duration: float,
        now: Optional[float],
    ) -> None:
        start_time = self._clock() if now is None else now
        self._target_positions = targets
        self._initial_positions = {node.id: node.position.copy_point() for node in self._nodes}
        self._layout_state = LayoutState(
            is_animating=True,
            progress=0.0,
            algorithm=algorithm,
            start_time=start_time,
            duration=duration,
        )
