#!/usr/bin/env python3
"""
Hierarchical Layout Engine
Places nodes tier by tier (isolated, root, intermediate, leaf) in centred
rows. The same input order always gives the same coordinates.
"""

from typing import Dict, List, Optional, Tuple

from .classify import classify
from .config import LayoutConfig
from .models import Edge, Graph, Node


DEPENDENCY_ORDER = "dependency"
PRIORITY_ORDER = "priority"
ORDERS = (DEPENDENCY_ORDER, PRIORITY_ORDER)


def center_row(row: List[Node], y: float, spacing: float) -> Dict[str, Tuple[float, float]]:
    """x_i = i * spacing - (count - 1) * spacing / 2, all at height y."""
    start = -(len(row) - 1) * spacing / 2
    return {node.id: (start + i * spacing, y) for i, node in enumerate(row)}


def _place(nodes: List[Node], positions: Dict[str, Tuple[float, float]]) -> List[Node]:
    # Externally supplied positions are never overwritten.
    return [n if n.position is not None else n.with_position(*positions[n.id]) for n in nodes]


def hierarchical_layout(nodes: List[Node], edges: List[Edge],
                        config: Optional[LayoutConfig] = None,
                        nodes_per_row: Optional[int] = None) -> List[Node]:
    """Return the nodes, in input order, with positions assigned by tier."""
    config = config or LayoutConfig()
    per_row = max(1, nodes_per_row or config.nodes_per_row)

    positions: Dict[str, Tuple[float, float]] = {}
    y = config.top_margin
    for group in classify(nodes, edges).groups():
        group = [n for n in group if n.position is None]
        if not group:
            continue
        for start in range(0, len(group), per_row):
            positions.update(center_row(group[start:start + per_row], y, config.spacing))
            y += config.row_gap
        y += config.group_gap - config.row_gap

    return _place(nodes, positions)


def _priority(node: Node, index: int):
    priority = node.data.get('priority')
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        return index
    return priority


def grid_layout(nodes: List[Node], config: Optional[LayoutConfig] = None,
                nodes_per_row: Optional[int] = None) -> List[Node]:
    """Priority-ordered grid: nodes_per_row per row on a grid_size grid."""
    config = config or LayoutConfig()
    per_row = max(1, nodes_per_row or config.nodes_per_row)

    free = [(i, n) for i, n in enumerate(nodes) if n.position is None]
    free.sort(key=lambda item: (_priority(item[1], item[0]), item[0]))

    positions = {}
    for slot, (_, node) in enumerate(free):
        row, col = divmod(slot, per_row)
        positions[node.id] = (col * config.grid_size, row * config.grid_size + config.top_margin)

    return _place(nodes, positions)


def apply_layout(graph: Graph, order: str = DEPENDENCY_ORDER,
                 config: Optional[LayoutConfig] = None) -> Graph:
    if order == DEPENDENCY_ORDER:
        nodes = hierarchical_layout(graph.nodes, graph.edges, config)
    elif order == PRIORITY_ORDER:
        nodes = grid_layout(graph.nodes, config)
    else:
        raise ValueError(f"Unsupported layout order: {order}")
    return Graph(nodes=nodes, edges=list(graph.edges))
