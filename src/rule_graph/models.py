#!/usr/bin/env python3
"""
Graph data model shared by every stage of the engine.
Nodes and edges are immutable; layout hands back new node objects.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple


# Node kinds
RULE = "rule"
SYNTHETIC_CONDITION = "syntheticCondition"
LAYER_ROOT = "layer"

# Rule layers
ACL = "acl"
ALB = "alb"

# Edge kinds
LABEL_DEPENDENCY = "label-dependency"
COMPOUND_EXPANSION = "compound-expansion"
HEADER_SHARED = "header-shared"
IP_SHARED = "ip-shared"
PORT_SHARED = "port-shared"
POLICY_SHARED = "policy-shared"
CONDITIONAL_ACTION = "conditional-action"

EDGE_KINDS = (
    LABEL_DEPENDENCY,
    COMPOUND_EXPANSION,
    HEADER_SHARED,
    IP_SHARED,
    PORT_SHARED,
    POLICY_SHARED,
    CONDITIONAL_ACTION,
)


@dataclass(frozen=True)
class Position:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y}


@dataclass(frozen=True)
class Node:
    """A rule, a synthetic condition, or a layer root."""
    id: str
    kind: str                 # RULE, SYNTHETIC_CONDITION or LAYER_ROOT
    layer: str                # ACL or ALB
    data: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Position] = None

    @property
    def name(self) -> str:
        return self.data.get('name', self.id)

    def with_position(self, x: float, y: float) -> 'Node':
        return replace(self, position=Position(x, y))

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'id': self.id,
            'kind': self.kind,
            'layer': self.layer,
            'data': self.data,
        }
        if self.position is not None:
            out['position'] = self.position.to_dict()
        return out


@dataclass(frozen=True)
class Edge:
    """Directed edge: source provides, target depends (parent -> child for expansion)."""
    id: str
    source: str
    target: str
    kind: str
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source,
            'target': self.target,
            'kind': self.kind,
            'label': self.label,
        }


def make_edge(source: str, target: str, kind: str, label: str = "") -> Edge:
    return Edge(
        id=f"{kind}:{source}->{target}",
        source=source,
        target=target,
        kind=kind,
        label=label,
    )


def merge_edges(edges: Iterable[Edge]) -> List[Edge]:
    """Collapse edges with the same id, joining their labels in first-seen order."""
    merged: Dict[str, Edge] = {}
    labels: Dict[str, List[str]] = {}

    for edge in edges:
        if edge.id not in merged:
            merged[edge.id] = edge
            labels[edge.id] = []
        if edge.label and edge.label not in labels[edge.id]:
            labels[edge.id].append(edge.label)

    return [replace(e, label=", ".join(labels[e.id])) for e in merged.values()]


def _escape_id_part(value: str) -> str:
    return value.replace('%', '%25').replace('#', '%23')


def synthetic_id(parent_id: str, path: Tuple) -> str:
    """Render the (parent id, expansion path) key of a synthetic node as a string id.

    The parent id is escaped so that a '#' inside a rule name can never
    produce the same id as a different expansion path.
    """
    parts = [_escape_id_part(parent_id)]
    parts.extend(str(p) for p in path)
    return "#".join(parts)


def rule_node_ids(layer: str, names: List[str]) -> List[Tuple[str, bool]]:
    """Give every rule name a graph-wide id; repeated names get a '#<index>' suffix.

    Names are escaped like synthetic parent ids, so a rule id never takes
    the shape of a synthetic id. Returns (id, is_duplicate) per name, in
    input order.
    """
    seen = set()
    out = []
    for index, name in enumerate(names):
        base = f"{layer}-{_escape_id_part(name)}"
        node_id = base
        duplicate = node_id in seen
        suffix = index
        while node_id in seen:
            node_id = f"{base}#{suffix}"
            suffix += 1
        seen.add(node_id)
        out.append((node_id, duplicate))
    return out


def prune_dangling(nodes: List[Node], edges: List[Edge]) -> List[Edge]:
    """Drop edges whose endpoints are not in the node list."""
    ids = {n.id for n in nodes}
    return [e for e in edges if e.source in ids and e.target in ids]


@dataclass
class Graph:
    """A snapshot of nodes and edges."""
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def __post_init__(self):
        self.edges = prune_dangling(self.nodes, self.edges)

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def node(self, node_id: str) -> Optional[Node]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def edges_of_kind(self, kind: str) -> List[Edge]:
        return [e for e in self.edges if e.kind == kind]

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
        }
