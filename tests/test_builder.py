"""Tests for graph assembly and the transform entry point."""

import io

import pytest
from rich.console import Console

from rule_graph.builder import RuleGraphBuilder, collect_warnings, transform
from rule_graph.config import LayoutConfig, Settings
from rule_graph.models import COMPOUND_EXPANSION, SYNTHETIC_CONDITION


def acl_rule(name, priority, labels=(), statement=None, action='Count'):
    rule = {
        'Name': name,
        'Priority': priority,
        'Action': {action: {}},
        'Statement': statement or {'GeoMatchStatement': {'CountryCodes': ['US']}},
        'VisibilityConfig': {'MetricName': name},
    }
    if labels:
        rule['RuleLabels'] = [{'Name': label} for label in labels]
    return rule


def label_match(key):
    return {'LabelMatchStatement': {'Scope': 'LABEL', 'Key': key}}


LISTENER_RULES = [
    {
        'Name': 'api',
        'Priority': '5',
        'Actions': [{'Type': 'forward'}],
        'Conditions': [{'AndStatement': {'Conditions': [
            {'Field': 'host-header', 'Values': ['api.example.com']},
            {'OrStatement': {'Conditions': [
                {'Field': 'path-pattern', 'Values': ['/v1/*']},
                {'Field': 'path-pattern', 'Values': ['/v2/*']},
            ]}},
        ]}}],
    },
]


@pytest.mark.parametrize("rules", [None, {}, "rules", 3])
def test_non_array_input_gives_empty_graph(rules):
    assert transform(rules) == {'nodes': [], 'edges': []}


def test_rule_missing_statement_is_still_placed():
    rule = acl_rule('A', 1)
    del rule['Statement']
    result = transform([rule])

    assert len(result['nodes']) == 1
    node = result['nodes'][0]
    assert "Missing required field: Statement" in node['data']['warnings']
    assert node['position'] == {'x': 0, 'y': 0}


def test_acl_transform_positions_every_node():
    result = transform([
        acl_rule('A', 1, labels=['L']),
        acl_rule('B', 2, statement=label_match('L')),
        acl_rule('C', 3),
    ])

    assert [n['id'] for n in result['nodes']] == ['acl-A', 'acl-B', 'acl-C']
    assert all('position' in n for n in result['nodes'])
    assert [(e['source'], e['target'], e['kind']) for e in result['edges']] == [
        ('acl-A', 'acl-B', 'label-dependency'),
    ]


def test_alb_transform_expands_conditions():
    result = transform(LISTENER_RULES, layer='alb')

    kinds = [n['kind'] for n in result['nodes']]
    assert kinds.count(SYNTHETIC_CONDITION) == 4
    assert all(e['kind'] == COMPOUND_EXPANSION for e in result['edges'])
    assert len(result['edges']) == 4


def test_combined_transform_contains_both_layers():
    result = transform([acl_rule('A', 1, action='Block')], layer='combined', alb_rules=LISTENER_RULES)

    layers = {n['layer'] for n in result['nodes']}
    assert layers == {'acl', 'alb'}
    assert any(e['kind'] == 'conditional-action' for e in result['edges'])


def test_transform_is_idempotent():
    rules = [acl_rule('A', 1, labels=['L']), acl_rule('B', 2, statement=label_match('L'))]

    assert transform(rules) == transform(rules)


def test_priority_order_uses_grid():
    settings = Settings(layout=LayoutConfig(grid_size=100))
    result = transform([acl_rule('B', 2), acl_rule('A', 1)], order='priority', settings=settings)

    positions = {n['id']: n['position'] for n in result['nodes']}
    assert positions == {'acl-A': {'x': 0, 'y': 0}, 'acl-B': {'x': 100, 'y': 0}}


def test_unknown_layer_or_order():
    with pytest.raises(ValueError):
        transform([], layer='nlb')
    with pytest.raises(ValueError):
        RuleGraphBuilder().build('nlb')
    with pytest.raises(ValueError):
        transform([acl_rule('A', 1)], order='random')


def test_builder_reports_progress():
    out = io.StringIO()
    builder = RuleGraphBuilder(
        [acl_rule('A', 1, labels=['L']), acl_rule('B', 2, statement=label_match('L'))],
        console=Console(file=out, width=120),
    )
    builder.build_acl_graph()

    text = out.getvalue()
    assert "Web ACL label graph" in text
    assert "2 nodes" in text
    assert "1 edges" in text


def test_collect_warnings():
    graph = RuleGraphBuilder([acl_rule('A', 1), {'Priority': 2}]).build_acl_graph()
    entries = collect_warnings(graph.nodes)

    assert len(entries) == 1
    assert entries[0]['id'] == '0'
    assert entries[0]['rule'] == '1'
    assert "Missing required field: Name" in entries[0]['warnings']


def test_rule_names_cannot_shadow_synthetic_ids():
    rules = [
        {'Name': 'api', 'Priority': '1', 'Actions': [{'Type': 'forward'}],
         'Conditions': [{'Field': 'path-pattern', 'Values': ['/api']}]},
        {'Name': 'api#cond#0', 'Priority': '2', 'Actions': [{'Type': 'forward'}],
         'Conditions': [{'Field': 'path-pattern', 'Values': ['/other']}]},
    ]
    ids = [n['id'] for n in transform(rules, layer='alb')['nodes']]

    assert len(ids) == 4
    assert len(set(ids)) == 4
    assert 'alb-api%23cond%230' in ids


@pytest.mark.parametrize("priority", ["--5", "²"])
def test_unreadable_priority_never_raises(priority):
    acl = transform([acl_rule('A', priority)])
    alb = transform([{'Name': 'api', 'Priority': priority, 'Actions': [{'Type': 'forward'}],
                      'Conditions': [{'Field': 'path-pattern', 'Values': ['/']}]}], layer='alb')

    assert "Priority is not an integer" in acl['nodes'][0]['data']['warnings']
    assert "Priority is not an integer" in alb['nodes'][0]['data']['warnings']
