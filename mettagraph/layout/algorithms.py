"""
Layout Algorithms
=================

Pure functions from (nodes, edges, options) to target positions.

None of them mutate the nodes they are given. Every result is shifted so
its centroid equals the centroid of the nodes' current positions, which
keeps the viewport framing stable when the layout changes.

Algorithms:
- force_directed_layout: Fruchterman-Reingold style spring simulation
- hierarchical_layout: BFS levels from the roots of the directed graph
- circular_layout: one circle per node type
"""

import math
from typing import Callable

import networkx as nx

from mettagraph.core.schema import (
    GraphEdge,
    GraphNode,
    LayoutAlgorithm,
    LayoutOptions,
    Point,
)
from mettagraph.core.transformer import to_networkx


Positions = dict[str, Point]
LayoutFunction = Callable[[list[GraphNode], list[GraphEdge], LayoutOptions], Positions]


MIN_DISTANCE = 0.1
"""Floor for pairwise distances so coincident nodes still repel."""

REPULSION_SCALE = 20.0
MIN_INITIAL_AREA = 800.0
MIN_TEMPERATURE = 0.1

CIRCLE_BASE_RADIUS = 130.0
CIRCLE_RADIUS_INCREMENT = 100.0
CIRCLE_RADIUS_PER_NODE = 15.0


def center_positions(nodes: list[GraphNode], positions: Positions) -> Positions:
    """
    Translate ``positions`` so their centroid matches the nodes' current centroid.
    """
    if not positions or not nodes:
        return positions

    current_x = sum(node.position.x for node in nodes) / len(nodes)
    current_y = sum(node.position.y for node in nodes) / len(nodes)

    new_x = sum(p.x for p in positions.values()) / len(positions)
    new_y = sum(p.y for p in positions.values()) / len(positions)

    offset_x = current_x - new_x
    offset_y = current_y - new_y

    return {
        node_id: Point(x=p.x + offset_x, y=p.y + offset_y)
        for node_id, p in positions.items()
    }


# =============================================================================
# Force-Directed
# =============================================================================


def force_directed_layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    options: LayoutOptions,
) -> Positions:
    """
    Spring-electrical simulation.

    Every node pair repels with ``repulsion_strength / d²``, every edge
    pulls its endpoints together with ``d² / spring_length *
    spring_strength`` and every node is pulled toward the origin by
    ``center_force``. Velocities are capped by a temperature that cools
    linearly over ``iterations`` steps and damped after each step. No
    randomness is involved, so equal input gives equal output.
    """
    ids = [node.id for node in nodes]
    pos = {node.id: [node.position.x, node.position.y] for node in nodes}
    vel = {node_id: [0.0, 0.0] for node_id in ids}

    area = max(MIN_INITIAL_AREA, math.sqrt(len(nodes)) * 100)
    temperature = area / 10
    cooling = temperature / options.iterations

    for _ in range(options.iterations):
        for i, id_a in enumerate(ids):
            pos_a, vel_a = pos[id_a], vel[id_a]
            for id_b in ids[i + 1:]:
                pos_b, vel_b = pos[id_b], vel[id_b]

                dx = pos_a[0] - pos_b[0]
                dy = pos_a[1] - pos_b[1]
                distance = math.hypot(dx, dy) or MIN_DISTANCE

                force = options.repulsion_strength / (distance * distance)
                fx = dx / distance * force * REPULSION_SCALE
                fy = dy / distance * force * REPULSION_SCALE

                vel_a[0] += fx
                vel_a[1] += fy
                vel_b[0] -= fx
                vel_b[1] -= fy

        for edge in edges:
            if edge.source not in pos or edge.target not in pos:
                continue
            source_pos, target_pos = pos[edge.source], pos[edge.target]
            source_vel, target_vel = vel[edge.source], vel[edge.target]

            dx = target_pos[0] - source_pos[0]
            dy = target_pos[1] - source_pos[1]
            distance = math.hypot(dx, dy) or MIN_DISTANCE

            force = distance * distance / options.spring_length * options.spring_strength
            fx = dx / distance * force
            fy = dy / distance * force

            source_vel[0] += fx
            source_vel[1] += fy
            target_vel[0] -= fx
            target_vel[1] -= fy

        for node_id in ids:
            p, v = pos[node_id], vel[node_id]
            v[0] -= p[0] * options.center_force
            v[1] -= p[1] * options.center_force

        for node_id in ids:
            p, v = pos[node_id], vel[node_id]

            speed = math.hypot(v[0], v[1])
            if speed > temperature:
                v[0] = v[0] / speed * temperature
                v[1] = v[1] / speed * temperature

            p[0] += v[0]
            p[1] += v[1]

            v[0] *= options.damping
            v[1] *= options.damping

        temperature = max(MIN_TEMPERATURE, temperature - cooling)

    positions = {node_id: Point(x=p[0], y=p[1]) for node_id, p in pos.items()}
    return center_positions(nodes, positions)


# =============================================================================
# Hierarchical
# =============================================================================


def assign_levels(nodes: list[GraphNode], edges: list[GraphEdge]) -> dict[str, int]:
    """
    Level of every node, in node order within each level.

    Roots are the nodes without incoming edges. When every node has an
    incoming edge, the first node with the highest out-degree is the
    only root. Nodes the BFS never reaches sit on level 0.
    """
    G = to_networkx(nodes, edges)
    order = [node.id for node in nodes]

    roots = [node_id for node_id in order if G.in_degree(node_id) == 0]
    if not roots and order:
        best = max(G.out_degree(node_id) for node_id in order)
        roots = [next(node_id for node_id in order if G.out_degree(node_id) == best)]

    levels: dict[str, int] = {}
    if roots:
        for level, layer in enumerate(nx.bfs_layers(G, roots)):
            for node_id in layer:
                levels[node_id] = level

    for node_id in order:
        levels.setdefault(node_id, 0)

    return levels


def hierarchical_layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    options: LayoutOptions,
) -> Positions:
    """
    Rows of nodes by BFS level.

    Row ``level`` sits at ``(level - max_level / 2) * level_height``; the
    nodes of a row are spaced ``node_width`` apart and centred on x = 0.
    """
    levels = assign_levels(nodes, edges)
    if not levels:
        return {}

    rows: dict[int, list[str]] = {}
    for node_id, level in levels.items():
        rows.setdefault(level, []).append(node_id)

    max_level = max(levels.values())
    width = options.node_width
    positions: Positions = {}

    for level, row in rows.items():
        y = (level - max_level / 2) * options.level_height
        start_x = -len(row) * width / 2
        for i, node_id in enumerate(row):
            positions[node_id] = Point(x=start_x + i * width + width / 2, y=y)

    return center_positions(nodes, positions)


# =============================================================================
# Circular
# =============================================================================


def circular_layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    options: LayoutOptions,
) -> Positions:
    """
    Concentric circles, one per node type.

    With a single type all nodes share one circle whose radius grows with
    the node count; otherwise each type gets its own ring.
    """
    groups: dict[str, list[str]] = {}
    for node in nodes:
        groups.setdefault(node.type.value, []).append(node.id)

    positions: Positions = {}
    rings = list(groups.values())

    for ring_index, ring in enumerate(rings):
        if len(rings) == 1:
            radius = max(CIRCLE_BASE_RADIUS, len(ring) * CIRCLE_RADIUS_PER_NODE)
        else:
            radius = CIRCLE_BASE_RADIUS + ring_index * CIRCLE_RADIUS_INCREMENT

        for i, node_id in enumerate(ring):
            angle = 2 * math.pi * i / len(ring)
            positions[node_id] = Point(x=math.cos(angle) * radius, y=math.sin(angle) * radius)

    return center_positions(nodes, positions)


LAYOUT_ALGORITHMS: dict[LayoutAlgorithm, LayoutFunction] = {
    LayoutAlgorithm.FORCE_DIRECTED: force_directed_layout,
    LayoutAlgorithm.HIERARCHICAL: hierarchical_layout,
    LayoutAlgorithm.CIRCULAR: circular_layout,
}
