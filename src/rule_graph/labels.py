#!/usr/bin/env python3
"""
Label Dependency Resolver
Links web-ACL rules that emit a label to the rules that match on it.
Output: rule nodes (with per-rule warnings) + label-dependency edges
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import ACL, LABEL_DEPENDENCY, RULE, Graph, Node, make_edge, merge_edges, rule_node_ids
from .walker import MAX_DEPTH, exceeds_depth, iter_objects


TERMINAL_ACTIONS = ('allow', 'block')
REQUIRED_KEYS = ('Name', 'Priority', 'Statement', 'Action')


@dataclass
class LabelReference:
    """A LabelMatchStatement found somewhere in a rule's statement."""
    label: str
    logic: str = ""           # "&&", "||" or "" from the nearest combinator
    negated: bool = False
    scope_down: bool = False  # inside a rate-based ScopeDownStatement
    namespace: bool = False   # Scope: NAMESPACE
    emitters: List[str] = field(default_factory=list)

    def matches(self, emitted_label: str) -> bool:
        if not self.namespace:
            return emitted_label == self.label
        prefix = self.label if self.label.endswith(':') else self.label + ':'
        return emitted_label.startswith(prefix) or emitted_label == self.label.rstrip(':')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'logic': self.logic,
            'label': self.label,
            'negated': self.negated,
            'scope_down': self.scope_down,
            'namespace': self.namespace,
            'emitters': list(self.emitters),
        }


@dataclass
class AclRule:
    """Read-only view of one web-ACL rule."""
    index: int
    name: str
    priority: int
    action: str
    rule_labels: List[str]
    insert_headers: List[Dict[str, str]]
    statement: Any
    raw: Any
    references: List[LabelReference] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    node_id: str = ""

    def warn(self, message: str):
        if message not in self.warnings:
            self.warnings.append(message)

    def to_node(self) -> Node:
        return Node(
            id=self.node_id,
            kind=RULE,
            layer=ACL,
            data={
                'name': self.name,
                'priority': self.priority,
                'action': self.action,
                'rule_labels': list(self.rule_labels),
                'insert_headers': [dict(h) for h in self.insert_headers],
                'label_state': [ref.to_dict() for ref in self.references],
                'warnings': list(self.warnings),
                'rule': self.raw,
            },
        )


def _first_key(value: Any) -> Optional[str]:
    if isinstance(value, Mapping) and value:
        return str(next(iter(value)))
    return None


def parse_priority(value: Any) -> Optional[int]:
    """Integer priority, or None if the value cannot be read as one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r'-?[0-9]+', value.strip()):
        return int(value.strip())
    return None


def _rule_labels(rule: Mapping) -> List[str]:
    entries = rule.get('RuleLabels')
    if not isinstance(entries, list):
        return []

    labels = []
    for entry in entries:
        if isinstance(entry, Mapping) and entry.get('Name'):
            labels.append(str(entry['Name']))
        elif isinstance(entry, str) and entry:
            labels.append(entry)
    return labels


def _insert_headers(rule: Mapping) -> List[Dict[str, str]]:
    action = rule.get('Action')
    if not isinstance(action, Mapping):
        return []

    headers = []
    for settings in action.values():
        if not isinstance(settings, Mapping):
            continue
        handling = settings.get('CustomRequestHandling')
        if not isinstance(handling, Mapping):
            continue
        inserted = handling.get('InsertHeaders')
        for header in inserted if isinstance(inserted, list) else []:
            if isinstance(header, Mapping) and header.get('Name'):
                headers.append({'name': str(header['Name']), 'value': str(header.get('Value', ''))})
    return headers


def find_label_references(statement: Any, max_depth: int = MAX_DEPTH) -> List[LabelReference]:
    """Every label reference in a statement tree, negated and scope-down ones included."""
    references = []

    for path, obj in iter_objects(statement, max_depth):
        match = obj.get('LabelMatchStatement')
        if not isinstance(match, Mapping):
            continue
        key = match.get('Key')
        if not isinstance(key, str) or not key:
            continue

        logic = ""
        for step in reversed(path):
            if step == 'AndStatement':
                logic = '&&'
                break
            if step == 'OrStatement':
                logic = '||'
                break

        references.append(LabelReference(
            label=key,
            logic=logic,
            negated=path.count('NotStatement') % 2 == 1,
            scope_down='ScopeDownStatement' in path,
            namespace=str(match.get('Scope', 'LABEL')).upper() == 'NAMESPACE',
        ))
    return references


def parse_acl_rule(rule: Any, index: int, max_depth: int = MAX_DEPTH) -> AclRule:
    """Read a web-ACL rule with best-effort defaults; problems become warnings."""
    if not isinstance(rule, Mapping):
        parsed = AclRule(
            index=index, name=str(index), priority=index, action="",
            rule_labels=[], insert_headers=[], statement=None, raw=rule,
        )
        parsed.warn("Rule is not an object")
        return parsed

    name = rule.get('Name')
    if name is None:
        name = rule.get('Id')
    priority = parse_priority(rule.get('Priority'))
    action = _first_key(rule.get('Action')) or _first_key(rule.get('OverrideAction')) or ""

    parsed = AclRule(
        index=index,
        name=str(name) if name is not None else str(index),
        priority=priority if priority is not None else index,
        action=action.lower(),
        rule_labels=_rule_labels(rule),
        insert_headers=_insert_headers(rule),
        statement=rule.get('Statement'),
        raw=rule,
    )

    for key in REQUIRED_KEYS:
        if key == 'Action' and 'OverrideAction' in rule:
            continue
        if rule.get(key) is None:
            parsed.warn(f"Missing required field: {key}")
    if rule.get('Priority') is not None and priority is None:
        parsed.warn("Priority is not an integer")

    visibility = rule.get('VisibilityConfig')
    if isinstance(visibility, Mapping) and 'MetricName' in visibility and visibility['MetricName'] != rule.get('Name'):
        parsed.warn("Name and MetricName do not match")

    if parsed.statement is not None and exceeds_depth(parsed.statement, max_depth):
        parsed.warn(f"Statement nesting exceeds {max_depth} levels; deeper conditions were ignored")

    parsed.references = find_label_references(parsed.statement, max_depth)
    return parsed


class LabelResolver:
    """Resolve label dependencies between web-ACL rules."""

    def __init__(self, rules: List[Any], max_depth: int = MAX_DEPTH):
        self.rules = rules if isinstance(rules, list) else []
        self.max_depth = max_depth
        self.parsed: List[AclRule] = []
        self.emitted_by: Dict[str, AclRule] = {}

    def _parse(self):
        self.parsed = [parse_acl_rule(rule, i, self.max_depth) for i, rule in enumerate(self.rules)]
        for rule, (node_id, duplicate) in zip(self.parsed, rule_node_ids(ACL, [r.name for r in self.parsed])):
            rule.node_id = node_id
            if duplicate:
                rule.warn(f"Duplicate rule name: {rule.name}")

    def _build_emitter_map(self):
        # First emitter in input order wins; later emitters are only flagged.
        self.emitted_by = {}
        for rule in self.parsed:
            for label in rule.rule_labels:
                first = self.emitted_by.get(label)
                if first is None:
                    self.emitted_by[label] = rule
                elif first is not rule:
                    rule.warn(
                        f"Label '{label}' is also emitted by '{first.name}'; "
                        f"dependencies are linked to '{first.name}' only"
                    )

    def _link(self, rule: AclRule, ref: LabelReference) -> list:
        edges = []
        for label, emitter in self.emitted_by.items():
            if not ref.matches(label):
                continue
            if emitter is rule:
                rule.warn(f"Rule references label '{label}' that it emits itself")
                continue

            if emitter.name not in ref.emitters:
                ref.emitters.append(emitter.name)
            if emitter.action in TERMINAL_ACTIONS:
                rule.warn(
                    f"Label '{label}' is created in a terminal rule ({emitter.action.upper()}) "
                    f"- this may affect rule evaluation"
                )
            if emitter.priority > rule.priority:
                rule.warn(
                    f"Label '{label}' is emitted by '{emitter.name}' (priority {emitter.priority}), "
                    f"which is evaluated after this rule"
                )
            edges.append(make_edge(emitter.node_id, rule.node_id, LABEL_DEPENDENCY, label))
        return edges

    def ordered_rules(self) -> List[AclRule]:
        return sorted(self.parsed, key=lambda r: (r.priority, r.index))

    def resolve(self) -> Graph:
        """Build rule nodes (priority order) and label-dependency edges."""
        self._parse()
        self._build_emitter_map()

        ordered = self.ordered_rules()
        edges = []
        for rule in ordered:
            for ref in rule.references:
                edges.extend(self._link(rule, ref))

        return Graph(nodes=[rule.to_node() for rule in ordered], edges=merge_edges(edges))
