#!/usr/bin/env python3
"""
Rule Graph Builder
Builds: web-ACL label graph, listener condition graph, combined cross-layer graph
Output: positioned {nodes, edges} for rendering or JSON export
"""

from typing import Any, Dict, List, Optional

from rich.console import Console

from .conditions import ConditionExpander, parse_alb_rules
from .config import Settings
from .correlate import CrossLayerCorrelator
from .labels import LabelResolver
from .layout import DEPENDENCY_ORDER, apply_layout
from .models import Graph, Node, merge_edges


ACL_LAYER = "acl"
ALB_LAYER = "alb"
COMBINED_LAYER = "combined"
LAYERS = (ACL_LAYER, ALB_LAYER, COMBINED_LAYER)


class RuleGraphBuilder:
    """Build dependency graphs from web-ACL and listener rule arrays."""

    def __init__(self, acl_rules: Optional[List[Any]] = None, alb_rules: Optional[List[Any]] = None,
                 settings: Optional[Settings] = None, console: Optional[Console] = None):
        self.acl_rules = acl_rules if isinstance(acl_rules, list) else []
        self.alb_rules = alb_rules if isinstance(alb_rules, list) else []
        self.settings = settings or Settings()
        self.console = console

    def _report(self, title: str, graph: Graph):
        if self.console is None:
            return
        self.console.print(f"\n🔗 {title}")
        self.console.print(f"  ✓ {len(graph.nodes)} nodes")
        self.console.print(f"  ✓ {len(graph.edges)} edges")
        warned = sum(1 for n in graph.nodes if n.data.get('warnings'))
        if warned:
            self.console.print(f"  [yellow]⚠️  {warned} rules with warnings[/yellow]")

    def _label_resolver(self) -> LabelResolver:
        return LabelResolver(self.acl_rules, self.settings.max_depth)

    def build_acl_graph(self) -> Graph:
        """Web-ACL rules linked by label dependencies."""
        graph = self._label_resolver().resolve()
        self._report("Web ACL label graph", graph)
        return graph

    def _alb_graph(self, expand_conditions: bool):
        parsed = sorted(parse_alb_rules(self.alb_rules), key=lambda r: (r.priority, r.index))
        expander = ConditionExpander(self.settings.max_depth)

        synthetic_nodes, edges = [], []
        if expand_conditions:
            for rule in parsed:
                rule_nodes, rule_edges = expander.expand(rule.node_id, rule.conditions, rule.warn)
                synthetic_nodes.extend(rule_nodes)
                edges.extend(rule_edges)

        # rule nodes are built after expansion so they carry its warnings
        nodes = [rule.to_node() for rule in parsed] + synthetic_nodes
        return parsed, nodes, edges

    def build_alb_graph(self, expand_conditions: bool = True) -> Graph:
        """Listener rules, with compound conditions expanded into child nodes."""
        _, nodes, edges = self._alb_graph(expand_conditions)
        graph = Graph(nodes=nodes, edges=edges)
        self._report("Listener rule graph", graph)
        return graph

    def build_combined_graph(self, expand_conditions: bool = False) -> Graph:
        """Both layers with label edges and cross-layer edges."""
        resolver = self._label_resolver()
        acl_graph = resolver.resolve()
        alb_parsed, alb_nodes, alb_edges = self._alb_graph(expand_conditions)

        correlator = CrossLayerCorrelator(resolver.ordered_rules(), alb_parsed, self.settings.max_depth)
        root_nodes, cross_edges = correlator.correlate()

        graph = Graph(
            nodes=acl_graph.nodes + alb_nodes + root_nodes,
            edges=merge_edges(acl_graph.edges + alb_edges + cross_edges),
        )
        self._report("Combined web ACL / listener graph", graph)
        return graph

    def build(self, layer: str = ACL_LAYER) -> Graph:
        if layer == ACL_LAYER:
            return self.build_acl_graph()
        if layer == ALB_LAYER:
            return self.build_alb_graph()
        if layer == COMBINED_LAYER:
            return self.build_combined_graph()
        raise ValueError(f"Unsupported layer: {layer}")

    def layout(self, graph: Graph, order: str = DEPENDENCY_ORDER) -> Graph:
        return apply_layout(graph, order, self.settings.layout)


def collect_warnings(nodes: List[Node]) -> List[Dict[str, Any]]:
    """Rules with warnings, in node order: [{'id', 'rule', 'warnings'}]."""
    warned = [n for n in nodes if n.data.get('warnings')]
    return [
        {'id': str(i), 'rule': n.name, 'warnings': list(n.data['warnings'])}
        for i, n in enumerate(warned)
    ]


def transform(rules: Any, layer: str = ACL_LAYER, alb_rules: Any = None,
              order: str = DEPENDENCY_ORDER, settings: Optional[Settings] = None) -> Dict[str, List[Dict]]:
    """Rule documents in, positioned {'nodes', 'edges'} out. Never raises on rule content.

    For layer "alb" the listener rules come from ``rules``; for "combined"
    ``rules`` are the web-ACL rules and ``alb_rules`` the listener rules.
    """
    if layer not in LAYERS:
        raise ValueError(f"Unsupported layer: {layer}")
    if layer == ALB_LAYER:
        acl, alb = [], rules
    else:
        acl, alb = rules, alb_rules

    if not isinstance(acl, list) and not isinstance(alb, list):
        return Graph().to_dict()

    builder = RuleGraphBuilder(acl, alb if isinstance(alb, list) else [], settings)
    graph = builder.build(layer)
    return builder.layout(graph, order).to_dict()
