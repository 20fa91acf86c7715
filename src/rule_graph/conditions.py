#!/usr/bin/env python3
"""
Compound Condition Expander
Turns load-balancer listener rules into rule nodes, and AND/OR/NOT
condition trees into synthetic child nodes joined by compound-expansion edges.
The synthetic nodes exist for display only; they are not rules.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .labels import parse_priority
from .models import (
    ALB,
    COMPOUND_EXPANSION,
    RULE,
    SYNTHETIC_CONDITION,
    Edge,
    Node,
    make_edge,
    rule_node_ids,
    synthetic_id,
)
from .walker import MAX_DEPTH


# Numbered listener rules go up to 50000; the default rule always runs last.
DEFAULT_RULE_PRIORITY = 50001

COMPOUND_KEYS = {
    'AndStatement': 'and',
    'OrStatement': 'or',
    'NotStatement': 'not',
}
OPERATORS = ('and', 'or', 'not')


@dataclass
class AlbRule:
    """Read-only view of one listener rule."""
    index: int
    name: str
    priority: int
    action: str
    action_types: List[str]
    conditions: List[Any]
    is_default: bool
    raw: Any
    warnings: List[str] = field(default_factory=list)
    node_id: str = ""

    def warn(self, message: str):
        if message not in self.warnings:
            self.warnings.append(message)

    def to_node(self) -> Node:
        return Node(
            id=self.node_id,
            kind=RULE,
            layer=ALB,
            data={
                'name': self.name,
                'priority': self.priority,
                'action': self.action,
                'action_types': list(self.action_types),
                'is_default': self.is_default,
                'warnings': list(self.warnings),
                'rule': self.raw,
            },
        )


def parse_alb_rule(rule: Any, index: int) -> AlbRule:
    """Read a listener rule with best-effort defaults; problems become warnings."""
    if not isinstance(rule, Mapping):
        parsed = AlbRule(
            index=index, name=str(index), priority=index, action="", action_types=[],
            conditions=[], is_default=False, raw=rule,
        )
        parsed.warn("Rule is not an object")
        return parsed

    name = next((rule.get(k) for k in ('Name', 'RuleArn', 'Id') if rule.get(k) is not None), None)
    raw_priority = rule.get('Priority')
    is_default = bool(rule.get('IsDefault')) or str(raw_priority).lower() == 'default'

    priority = parse_priority(raw_priority)
    if priority is None:
        priority = DEFAULT_RULE_PRIORITY if is_default else index

    actions = rule.get('Actions')
    action_types = []
    if isinstance(actions, list):
        action_types = [str(a.get('Type', '')).lower() for a in actions if isinstance(a, Mapping)]

    conditions = rule.get('Conditions')
    parsed = AlbRule(
        index=index,
        name=str(name) if name is not None else str(index),
        priority=priority,
        action=action_types[0] if action_types else "",
        action_types=action_types,
        conditions=conditions if isinstance(conditions, list) else [],
        is_default=is_default,
        raw=rule,
    )

    if name is None:
        parsed.warn("Missing required field: Name")
    if raw_priority is None:
        parsed.warn("Missing required field: Priority")
    elif parse_priority(raw_priority) is None and not is_default:
        parsed.warn("Priority is not an integer")
    if not action_types:
        parsed.warn("Missing required field: Actions")
    if conditions is None and not is_default:
        parsed.warn("Missing required field: Conditions")
    elif conditions is not None and not isinstance(conditions, list):
        parsed.warn("Conditions is not a list")
    return parsed


def parse_alb_rules(rules: List[Any]) -> List[AlbRule]:
    parsed = [parse_alb_rule(rule, i) for i, rule in enumerate(rules)]
    for rule, (node_id, duplicate) in zip(parsed, rule_node_ids(ALB, [r.name for r in parsed])):
        rule.node_id = node_id
        if duplicate:
            rule.warn(f"Duplicate rule name: {rule.name}")
    return parsed


def split_condition(condition: Any) -> Tuple[Optional[str], List[Any]]:
    """Classify a condition as ('leaf', []), (operator, children) or (None, [])."""
    if not isinstance(condition, Mapping):
        return None, []

    for key, op in COMPOUND_KEYS.items():
        inner = condition.get(key)
        if isinstance(inner, Mapping):
            if 'Conditions' in inner:
                children = inner['Conditions']
            else:
                children = [inner['Condition']] if 'Condition' in inner else []
            return op, children if isinstance(children, list) else []

    op = condition.get('op')
    if isinstance(op, str) and op.lower() in OPERATORS:
        children = condition.get('children')
        return op.lower(), children if isinstance(children, list) else []

    if condition_field(condition):
        return 'leaf', []
    return None, []


def condition_field(condition: Mapping) -> str:
    value = condition.get('Field', condition.get('field'))
    return str(value) if value else ""


def condition_values(condition: Mapping) -> List[str]:
    """Match values of a leaf condition, from Values or any <X>Config block."""
    values = []

    def add(items):
        if not isinstance(items, list):
            return
        for item in items:
            if isinstance(item, Mapping):
                # QueryStringConfig key/value pairs
                key = item.get('Key')
                values.append(f"{key}={item.get('Value', '')}" if key else str(item.get('Value', '')))
            elif item is not None:
                values.append(str(item))

    add(condition.get('Values', condition.get('values')))
    for key, config in condition.items():
        if key.endswith('Config') and isinstance(config, Mapping):
            add(config.get('Values'))
    return values


def _header_name(condition: Mapping) -> str:
    config = condition.get('HttpHeaderConfig')
    if isinstance(config, Mapping) and config.get('HttpHeaderName'):
        return str(config['HttpHeaderName'])
    return ""


def _location(path: Tuple) -> str:
    return "/".join(str(p) for p in path)

class ConditionExpander:
    """Expand listener rule conditions into synthetic child nodes."""

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth

    def _leaf_node(self, rule_id: str, path: Tuple, condition: Mapping, negated: bool) -> Node:
        data = {
            'name': condition_field(condition),
            'field': condition_field(condition),
            'values': condition_values(condition),
            'negated': negated,
            'path': list(path),
            'rule_id': rule_id,
        }
        header = _header_name(condition)
        if header:
            data['header'] = header
        return Node(id=synthetic_id(rule_id, path), kind=SYNTHETIC_CONDITION, layer=ALB, data=data)

    def _attach(self, rule_id: str, owner_id: str, path: Tuple, condition: Any, negated: bool,
                nodes: List[Node], edges: List[Edge], warn: Callable[[str], None]):
        """Expand one condition subtree below owner_id, pre-order, with an explicit stack."""
        stack = [(owner_id, path, condition, negated, 1)]

        while stack:
            owner_id, path, condition, negated, depth = stack.pop()
            kind, children = split_condition(condition)

            if kind is None:
                warn(f"Unrecognised condition at {_location(path)}")
                continue
            if depth > self.max_depth:
                warn(f"Condition nesting exceeds {self.max_depth} levels at {_location(path)}")
                continue

            if kind == 'leaf':
                node = self._leaf_node(rule_id, path, condition, negated)
                nodes.append(node)
                edges.append(make_edge(owner_id, node.id, COMPOUND_EXPANSION))
                continue

            node = Node(
                id=synthetic_id(rule_id, path),
                kind=SYNTHETIC_CONDITION,
                layer=ALB,
                data={
                    'name': kind.upper(),
                    'op': kind,
                    'negated': negated,
                    'path': list(path),
                    'rule_id': rule_id,
                },
            )
            nodes.append(node)
            edges.append(make_edge(owner_id, node.id, COMPOUND_EXPANSION))
            # reversed so children come off the stack in document order
            for j in reversed(range(len(children))):
                stack.append((node.id, path + (kind, j), children[j], negated ^ (kind == 'not'), depth + 1))

    def expand(self, rule_id: str, conditions: List[Any],
               warn: Callable[[str], None] = lambda message: None) -> Tuple[List[Node], List[Edge]]:
        """Synthetic nodes and compound-expansion edges for one rule's conditions.

        A top-level compound hangs its children directly off the rule; only
        nested compounds get a node of their own.
        """
        nodes: List[Node] = []
        edges: List[Edge] = []

        for i, condition in enumerate(conditions):
            kind, children = split_condition(condition)
            if kind is None:
                warn(f"Unrecognised condition at {i}")
            elif kind == 'leaf':
                self._attach(rule_id, rule_id, ('cond', i), condition, False, nodes, edges, warn)
            else:
                for j, child in enumerate(children):
                    if kind == 'not' and len(children) == 1:
                        path = ('not', i)
                    else:
                        path = (kind, i, j)
                    self._attach(rule_id, rule_id, path, child, kind == 'not', nodes, edges, warn)
        return nodes, edges

