#!/usr/bin/env python3
"""
Graph renderer
Draws a positioned rule graph to a PNG: nodes coloured by tier,
edges coloured by kind.
"""

from pathlib import Path
from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import networkx as nx
from matplotlib.patches import Patch

from .classify import INTERMEDIATE, ISOLATED, LEAF, ROOT, classify
from .config import LayoutConfig
from .layout import hierarchical_layout
from .models import (
    COMPOUND_EXPANSION,
    CONDITIONAL_ACTION,
    HEADER_SHARED,
    IP_SHARED,
    LABEL_DEPENDENCY,
    POLICY_SHARED,
    PORT_SHARED,
    SYNTHETIC_CONDITION,
    Edge,
    Graph,
    Node,
)


CLASS_COLORS = {
    ISOLATED: '#bdbdbd',
    ROOT: '#1e88e5',
    INTERMEDIATE: '#81d4fa',
    LEAF: '#43a047',
}

EDGE_STYLES = {
    LABEL_DEPENDENCY: ('#546e7a', 'solid'),
    COMPOUND_EXPANSION: ('#388e3c', 'solid'),
    HEADER_SHARED: ('#ffa726', 'dashed'),
    IP_SHARED: ('#8e24aa', 'dashed'),
    PORT_SHARED: ('#00897b', 'dotted'),
    POLICY_SHARED: ('#6d4c41', 'dotted'),
    CONDITIONAL_ACTION: ('#e53935', 'dashdot'),
}


def drawing_graph(nodes: List[Node], edges: List[Edge]) -> nx.DiGraph:
    """One networkx edge per node pair, carrying every kind that links the pair."""
    g = nx.DiGraph()
    for node in nodes:
        g.add_node(node.id)
    for edge in edges:
        if not g.has_edge(edge.source, edge.target):
            g.add_edge(edge.source, edge.target, kinds=[])
        g.edges[edge.source, edge.target]['kinds'].append(edge.kind)
    return g


def edges_of_kind(g: nx.DiGraph, kind: str) -> List[Tuple[str, str]]:
    return [(u, v) for u, v, kinds in g.edges(data='kinds') if kind in kinds]


def render_graph(graph: Graph, output_file: str = 'output/rule_graph.png',
                 config: Optional[LayoutConfig] = None, title: str = "Rule Dependency Graph") -> Path:
    """Save a PNG of the graph; nodes without a position are laid out first."""
    nodes = graph.nodes
    if any(n.position is None for n in nodes):
        nodes = hierarchical_layout(nodes, graph.edges, config)

    g = drawing_graph(nodes, graph.edges)

    # screen coordinates grow downwards
    pos = {n.id: (n.position.x, -n.position.y) for n in nodes}
    classes = classify(nodes, graph.edges).as_ids()
    synthetic = {n.id for n in nodes if n.kind == SYNTHETIC_CONDITION}

    plt.figure(figsize=(24, 16))

    for name, ids in classes.items():
        rules = [i for i in ids if i not in synthetic]
        conditions = [i for i in ids if i in synthetic]
        nx.draw_networkx_nodes(g, pos, nodelist=rules, node_color=CLASS_COLORS[name],
                               node_size=1800, node_shape='s', alpha=0.9,
                               linewidths=2, edgecolors='#37474f')
        nx.draw_networkx_nodes(g, pos, nodelist=conditions, node_color=CLASS_COLORS[name],
                               node_size=700, node_shape='o', alpha=0.8)

    for offset, (kind, (color, style)) in enumerate(EDGE_STYLES.items()):
        edgelist = edges_of_kind(g, kind)
        if not edgelist:
            continue
        # each kind bends differently so parallel kinds stay visible
        nx.draw_networkx_edges(g, pos, edgelist=edgelist, edge_color=color, style=style,
                               arrows=True, arrowsize=18, width=2, alpha=0.7,
                               connectionstyle=f'arc3,rad={0.1 + 0.08 * offset:.2f}')

    labels = {n.id: n.name for n in nodes}
    nx.draw_networkx_labels(g, pos, labels, font_size=8, font_weight='bold',
                            bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.8))

    legend_elements = [Patch(facecolor=color, label=f"{name.title()} nodes") for name, color in CLASS_COLORS.items()]
    legend_elements += [Patch(facecolor=color, label=kind) for kind, (color, _) in EDGE_STYLES.items()]
    plt.legend(handles=legend_elements, loc='upper right', fontsize=10, framealpha=0.9)

    plt.title(title, fontsize=18, fontweight='bold', pad=20)
    plt.axis('off')
    plt.tight_layout()

    output = Path(output_file)
    output.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output, dpi=150, bbox_inches='tight', facecolor='white')
    plt.close()
    return output
