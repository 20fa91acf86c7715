"""Tests for PNG rendering."""

import matplotlib

matplotlib.use("Agg")

from rule_graph.builder import RuleGraphBuilder  # noqa: E402
from rule_graph.models import HEADER_SHARED, IP_SHARED, Graph, Node, make_edge  # noqa: E402
from rule_graph.visualize import drawing_graph, edges_of_kind, render_graph  # noqa: E402


def test_render_graph_writes_png(tmp_path):
    rules = [
        {'Name': 'A', 'Priority': 1, 'Action': {'Count': {}}, 'RuleLabels': [{'Name': 'L'}],
         'Statement': {'GeoMatchStatement': {'CountryCodes': ['US']}}},
        {'Name': 'B', 'Priority': 2, 'Action': {'Block': {}},
         'Statement': {'LabelMatchStatement': {'Scope': 'LABEL', 'Key': 'L'}}},
    ]
    graph = RuleGraphBuilder(rules).build_acl_graph()

    output = render_graph(graph, str(tmp_path / "out" / "graph.png"))

    assert output.exists()
    assert output.read_bytes()[:8] == b'\x89PNG\r\n\x1a\n'


def test_parallel_edge_kinds_are_all_drawn():
    """Two kinds linking the same pair both keep their own styled edge."""
    nodes = [Node(id='acl-A', kind='rule', layer='acl'), Node(id='alb-b', kind='rule', layer='alb')]
    edges = [
        make_edge('acl-A', 'alb-b', HEADER_SHARED, 'x-bot'),
        make_edge('acl-A', 'alb-b', IP_SHARED, '10.0.0.1/32'),
    ]
    g = drawing_graph(nodes, edges)

    assert g.edges['acl-A', 'alb-b']['kinds'] == [HEADER_SHARED, IP_SHARED]
    assert edges_of_kind(g, HEADER_SHARED) == [('acl-A', 'alb-b')]
    assert edges_of_kind(g, IP_SHARED) == [('acl-A', 'alb-b')]


def test_render_graph_with_parallel_kinds(tmp_path):
    nodes = [Node(id='acl-A', kind='rule', layer='acl'), Node(id='alb-b', kind='rule', layer='alb')]
    edges = [
        make_edge('acl-A', 'alb-b', HEADER_SHARED, 'x-bot'),
        make_edge('acl-A', 'alb-b', IP_SHARED, '10.0.0.1/32'),
    ]
    graph = Graph(nodes=nodes, edges=edges)

    assert render_graph(graph, str(tmp_path / "parallel.png")).exists()
