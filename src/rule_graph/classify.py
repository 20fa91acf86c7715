"""Partition graph nodes into isolated / root / intermediate / leaf tiers."""

from dataclasses import dataclass, field
from typing import Dict, List

from .models import Edge, Node, prune_dangling


ISOLATED = "isolated"
ROOT = "root"
INTERMEDIATE = "intermediate"
LEAF = "leaf"

CLASS_ORDER = (ISOLATED, ROOT, INTERMEDIATE, LEAF)


@dataclass
class NodeClasses:
    isolated: List[Node] = field(default_factory=list)
    root: List[Node] = field(default_factory=list)
    intermediate: List[Node] = field(default_factory=list)
    leaf: List[Node] = field(default_factory=list)

    def groups(self) -> List[List[Node]]:
        """Node groups in layout order."""
        return [getattr(self, name) for name in CLASS_ORDER]

    def as_ids(self) -> Dict[str, List[str]]:
        return {name: [n.id for n in getattr(self, name)] for name in CLASS_ORDER}

    def class_of(self, node_id: str) -> str:
        for name in CLASS_ORDER:
            if any(n.id == node_id for n in getattr(self, name)):
                return name
        raise KeyError(node_id)


def node_class(node_id: str, parents: set, children: set) -> str:
    if node_id in parents:
        return INTERMEDIATE if node_id in children else ROOT
    return LEAF if node_id in children else ISOLATED


def classify(nodes: List[Node], edges: List[Edge]) -> NodeClasses:
    """Classify by edge membership only; each node lands in exactly one tier."""
    edges = prune_dangling(nodes, edges)
    parents = {e.source for e in edges}
    children = {e.target for e in edges}

    classes = NodeClasses()
    for node in nodes:
        getattr(classes, node_class(node.id, parents, children)).append(node)
    return classes
