#!/usr/bin/env python3
"""
Subgraph Extractor
Focused views of a rule graph for a selected node: direct neighbours,
everything downstream, everything upstream, and the full lineage.
"""

import json
from typing import List, Set

import networkx as nx

from .models import Edge, Graph, Node, prune_dangling


def to_digraph(nodes: List[Node], edges: List[Edge]) -> nx.DiGraph:
    graph = nx.DiGraph()
    graph.add_nodes_from(n.id for n in nodes)
    for edge in prune_dangling(nodes, edges):
        graph.add_edge(edge.source, edge.target)
    return graph


def _induced(nodes: List[Node], edges: List[Edge], keep: Set[str]) -> Graph:
    """Nodes in keep (input order) and the edges running between them."""
    return Graph(
        nodes=[n for n in nodes if n.id in keep],
        edges=[e for e in edges if e.source in keep and e.target in keep],
    )


def direct_subgraph(focus: str, nodes: List[Node], edges: List[Edge]) -> Graph:
    """Focus, its one-hop neighbours either way, and only the edges touching focus."""
    if not any(n.id == focus for n in nodes):
        return Graph()

    incident = [e for e in prune_dangling(nodes, edges) if focus in (e.source, e.target)]
    keep = {focus}
    for edge in incident:
        keep.update((edge.source, edge.target))
    return Graph(nodes=[n for n in nodes if n.id in keep], edges=incident)


def dependents_closure(focus: str, nodes: List[Node], edges: List[Edge]) -> Graph:
    """Focus plus everything reachable along source -> target edges."""
    graph = to_digraph(nodes, edges)
    if focus not in graph:
        return Graph()
    # nx.descendants tracks visited nodes, so cycles terminate
    keep = nx.descendants(graph, focus) | {focus}
    return _induced(nodes, edges, keep)


def dependencies_closure(focus: str, nodes: List[Node], edges: List[Edge]) -> Graph:
    """Focus plus everything it transitively depends on."""
    graph = to_digraph(nodes, edges)
    if focus not in graph:
        return Graph()
    keep = nx.ancestors(graph, focus) | {focus}
    return _induced(nodes, edges, keep)


def lineage_subgraph(focus: str, nodes: List[Node], edges: List[Edge]) -> Graph:
    """Upstream and downstream of focus together."""
    graph = to_digraph(nodes, edges)
    if focus not in graph:
        return Graph()
    keep = nx.ancestors(graph, focus) | nx.descendants(graph, focus) | {focus}
    return _induced(nodes, edges, keep)


def search_nodes(nodes: List[Node], term: str) -> List[str]:
    """Ids of nodes whose data mentions term (case-insensitive)."""
    if not term:
        return []
    needle = term.lower()
    return [
        n.id for n in nodes
        if needle in n.id.lower() or needle in json.dumps(n.data, default=str).lower()
    ]


EXTRACTORS = {
    'direct': direct_subgraph,
    'dependents': dependents_closure,
    'dependencies': dependencies_closure,
    'lineage': lineage_subgraph,
}
