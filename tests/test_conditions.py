"""Tests for listener rule parsing and compound condition expansion."""

from rule_graph.conditions import (
    DEFAULT_RULE_PRIORITY,
    ConditionExpander,
    condition_values,
    parse_alb_rule,
    parse_alb_rules,
    split_condition,
)
from rule_graph.models import COMPOUND_EXPANSION, SYNTHETIC_CONDITION, synthetic_id


def leaf(path):
    return {'Field': 'path-pattern', 'Values': [path]}


def expand(conditions, rule_id='alb-api'):
    warnings = []
    nodes, edges = ConditionExpander().expand(rule_id, conditions, warnings.append)
    return nodes, edges, warnings


def test_and_with_nested_or_expands_to_leaves_and_one_compound():
    """AND(c1, c2, OR(c3, c4)): four leaf nodes and one OR node."""
    conditions = [{'AndStatement': {'Conditions': [
        leaf('/1'),
        leaf('/2'),
        {'OrStatement': {'Conditions': [leaf('/3'), leaf('/4')]}},
    ]}}]
    nodes, edges, warnings = expand(conditions)

    leaves = [n for n in nodes if 'field' in n.data]
    compounds = [n for n in nodes if 'op' in n.data]
    assert len(leaves) == 4
    assert [n.data['op'] for n in compounds] == ['or']
    assert all(n.kind == SYNTHETIC_CONDITION for n in nodes)
    assert warnings == []

    or_id = compounds[0].id
    assert or_id == 'alb-api#and#0#2'
    assert len([e for e in edges if e.source == 'alb-api']) == 3
    assert len([e for e in edges if e.source == or_id]) == 2
    assert all(e.kind == COMPOUND_EXPANSION for e in edges)


def test_synthetic_ids_follow_expansion_path():
    conditions = [{'AndStatement': {'Conditions': [
        leaf('/1'),
        {'OrStatement': {'Conditions': [leaf('/2')]}},
    ]}}]
    nodes, _, _ = expand(conditions)

    assert [n.id for n in nodes] == [
        'alb-api#and#0#0',
        'alb-api#and#0#1',
        'alb-api#and#0#1#or#0',
    ]
    assert nodes[2].data['path'] == ['and', 0, 1, 'or', 0]


def test_simple_conditions_become_direct_leaves():
    nodes, edges, _ = expand([leaf('/a'), {'Field': 'host-header', 'HostHeaderConfig': {'Values': ['example.com']}}])

    assert [n.id for n in nodes] == ['alb-api#cond#0', 'alb-api#cond#1']
    assert nodes[1].data['values'] == ['example.com']
    assert [(e.source, e.target) for e in edges] == [
        ('alb-api', 'alb-api#cond#0'),
        ('alb-api', 'alb-api#cond#1'),
    ]


def test_top_level_not_marks_child_negated():
    nodes, _, _ = expand([{'NotStatement': {'Condition': leaf('/admin')}}])

    assert [n.id for n in nodes] == ['alb-api#not#0']
    assert nodes[0].data['negated'] is True


def test_generic_op_children_form():
    conditions = [{'op': 'AND', 'children': [
        {'field': 'host-header', 'values': ['a.example.com']},
        {'op': 'NOT', 'children': [{'field': 'source-ip', 'values': ['10.0.0.1/32']}]},
    ]}]
    nodes, edges, _ = expand(conditions)

    by_id = {n.id: n for n in nodes}
    assert by_id['alb-api#and#0#1'].data['op'] == 'not'
    assert by_id['alb-api#and#0#1#not#0'].data['negated'] is True
    assert by_id['alb-api#and#0#0'].data['negated'] is False
    assert len(edges) == 3


def test_unrecognised_conditions_are_warned():
    nodes, edges, warnings = expand([{'Unknown': 1}, "text"])

    assert nodes == [] and edges == []
    assert warnings == ["Unrecognised condition at 0", "Unrecognised condition at 1"]


def test_nesting_limit():
    condition = leaf('/deep')
    for _ in range(5):
        condition = {'OrStatement': {'Conditions': [condition]}}
    warnings = []
    ConditionExpander(max_depth=2).expand('alb-api', [condition], warnings.append)

    assert any('nesting exceeds 2 levels' in w for w in warnings)


def test_split_condition():
    assert split_condition(leaf('/')) == ('leaf', [])
    assert split_condition({'NotStatement': {'Condition': leaf('/')}}) == ('not', [leaf('/')])
    assert split_condition({'op': 'or', 'children': 'bad'}) == ('or', [])
    assert split_condition(None) == (None, [])


def test_condition_values_from_config_blocks():
    condition = {
        'Field': 'query-string',
        'QueryStringConfig': {'Values': [{'Key': 'debug', 'Value': '1'}]},
    }

    assert condition_values(condition) == ['debug=1']


def test_synthetic_id_escapes_delimiters():
    assert synthetic_id('alb-a#b', ('cond', 0)) == 'alb-a%23b#cond#0'
    assert synthetic_id('alb-a', ('cond', 0)) != synthetic_id('alb-a#cond', (0,))


def test_parse_listener_rule():
    rule = {
        'RuleArn': 'arn:aws:elasticloadbalancing:rule/1',
        'Priority': '10',
        'Actions': [{'Type': 'redirect'}],
        'Conditions': [leaf('/old')],
    }
    parsed = parse_alb_rule(rule, 0)

    assert parsed.name == 'arn:aws:elasticloadbalancing:rule/1'
    assert parsed.priority == 10
    assert parsed.action == 'redirect'
    assert parsed.warnings == []


def test_default_rule_sorts_last_without_warnings():
    rule = {'Name': 'default', 'Priority': 'default', 'IsDefault': True,
            'Actions': [{'Type': 'fixed-response'}], 'Conditions': []}
    parsed = parse_alb_rule(rule, 0)

    assert parsed.priority == DEFAULT_RULE_PRIORITY
    assert parsed.warnings == []


def test_malformed_listener_rule_warnings():
    parsed = parse_alb_rules([{'Priority': 'high'}, None])

    assert parsed[0].name == '0'
    assert parsed[0].priority == 0
    assert "Missing required field: Name" in parsed[0].warnings
    assert "Priority is not an integer" in parsed[0].warnings
    assert "Missing required field: Actions" in parsed[0].warnings
    assert "Missing required field: Conditions" in parsed[0].warnings
    assert parsed[1].node_id == 'alb-1'
    assert parsed[1].warnings == ["Rule is not an object"]


def test_unreadable_listener_priority_falls_back_to_index():
    rule = {'Name': 'api', 'Priority': '²', 'Actions': [{'Type': 'forward'}], 'Conditions': [leaf('/')]}
    parsed = parse_alb_rule(rule, 3)

    assert parsed.priority == 3
    assert "Priority is not an integer" in parsed.warnings


def test_deep_nesting_does_not_exhaust_the_call_stack():
    """A deep condition chain under a generous limit expands without recursion errors."""
    condition = leaf('/deep')
    for _ in range(1500):
        condition = {'NotStatement': {'Condition': condition}}
    warnings = []
    nodes, edges = ConditionExpander(max_depth=2000).expand('alb-api', [condition], warnings.append)

    assert warnings == []
    assert len(nodes) == 1500
    assert len(edges) == 1500
    assert nodes[-1].data['field'] == 'path-pattern'
