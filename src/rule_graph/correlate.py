#!/usr/bin/env python3
"""
Cross-Layer Correlator
Finds edges between web-ACL rules and listener rules that share headers,
IP addresses, ports or policies, and marks terminal actions against the
listener layer root.

Every relation compares each ACL rule with each listener rule, so cost grows
with |acl| x |alb|. That is fine for rule sets in the hundreds.
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Set, Tuple

from .conditions import AlbRule, condition_field, condition_values
from .labels import AclRule
from .models import (
    ALB,
    CONDITIONAL_ACTION,
    HEADER_SHARED,
    IP_SHARED,
    LAYER_ROOT,
    POLICY_SHARED,
    PORT_SHARED,
    Edge,
    Node,
    make_edge,
)
from .walker import MAX_DEPTH, find_values, iter_objects


ALB_ROOT_ID = "layer-alb"

ALB_CONDITIONAL_ACTIONS = {
    'redirect': 'Redirect',
    'fixed-response': 'Fixed Response',
}
ACL_CONDITIONAL_ACTIONS = {
    'allow': 'Allow',
    'block': 'Deny',
    'deny': 'Deny',
}


def normalize(values: Iterable[Any]) -> Set[str]:
    return {str(v).strip().lower() for v in values if v is not None and str(v).strip()}


def _leaf_values(conditions: Any, field_name: str, max_depth: int) -> List[str]:
    found = []
    for _, obj in iter_objects(conditions, max_depth):
        if condition_field(obj).lower() == field_name:
            found.extend(condition_values(obj))
    return found


def acl_headers(rule: AclRule) -> Set[str]:
    """Request headers inserted by the rule's action."""
    return normalize(h['name'] for h in rule.insert_headers)


def alb_headers(rule: AlbRule, max_depth: int = MAX_DEPTH) -> Set[str]:
    """Header names a listener rule matches on."""
    names = find_values(rule.conditions, 'HttpHeaderConfig', 'HttpHeaderName', max_depth)
    names += find_values(rule.raw, 'SingleHeader', 'Name', max_depth)
    return normalize(names)


def acl_ips(rule: AclRule, max_depth: int = MAX_DEPTH) -> Set[str]:
    return normalize(find_values(rule.statement, 'IPSetReferenceStatement', 'Addresses', max_depth))


def alb_ips(rule: AlbRule, max_depth: int = MAX_DEPTH) -> Set[str]:
    values = find_values(rule.conditions, 'SourceIpConfig', 'Values', max_depth)
    values += _leaf_values(rule.conditions, 'source-ip', max_depth)
    return normalize(values)


def acl_ports(rule: AclRule, max_depth: int = MAX_DEPTH) -> Set[str]:
    return normalize(find_values(rule.statement, 'PortMatchStatement', 'Ports', max_depth))


def alb_ports(rule: AlbRule, max_depth: int = MAX_DEPTH) -> Set[str]:
    values = find_values(rule.conditions, 'PortConfig', 'Values', max_depth)
    values += _leaf_values(rule.conditions, 'port', max_depth)
    return normalize(values)


def policies(raw: Any) -> Set[str]:
    """Policy name and ARN attached to a rule of either layer."""
    if not isinstance(raw, Mapping):
        return set()
    return normalize([raw.get('PolicyArn'), raw.get('PolicyName')])


class CrossLayerCorrelator:
    """Edges between the web-ACL layer and the listener layer."""

    def __init__(self, acl_rules: List[AclRule], alb_rules: List[AlbRule], max_depth: int = MAX_DEPTH):
        self.acl_rules = acl_rules
        self.alb_rules = alb_rules
        self.max_depth = max_depth

    def shared_edges(self) -> List[Edge]:
        edges = []
        relations = (
            (HEADER_SHARED, acl_headers, lambda r: alb_headers(r, self.max_depth)),
            (IP_SHARED, lambda r: acl_ips(r, self.max_depth), lambda r: alb_ips(r, self.max_depth)),
            (PORT_SHARED, lambda r: acl_ports(r, self.max_depth), lambda r: alb_ports(r, self.max_depth)),
            (POLICY_SHARED, lambda r: policies(r.raw), lambda r: policies(r.raw)),
        )

        for kind, acl_extract, alb_extract in relations:
            alb_sets = [(rule, alb_extract(rule)) for rule in self.alb_rules]
            for acl_rule in self.acl_rules:
                acl_set = acl_extract(acl_rule)
                if not acl_set:
                    continue
                for alb_rule, alb_set in alb_sets:
                    shared = acl_set & alb_set
                    if shared:
                        edges.append(make_edge(acl_rule.node_id, alb_rule.node_id, kind, ", ".join(sorted(shared))))
        return edges

    def conditional_edges(self) -> List[Edge]:
        edges = []
        for rule in self.alb_rules:
            label = ALB_CONDITIONAL_ACTIONS.get(rule.action)
            if label:
                edges.append(make_edge(rule.node_id, ALB_ROOT_ID, CONDITIONAL_ACTION, label))
        for rule in self.acl_rules:
            label = ACL_CONDITIONAL_ACTIONS.get(rule.action)
            if label:
                edges.append(make_edge(rule.node_id, ALB_ROOT_ID, CONDITIONAL_ACTION, label))
        return edges

    def correlate(self) -> Tuple[List[Node], List[Edge]]:
        """Cross-layer edges, plus the listener root node when any edge points at it."""
        conditional = self.conditional_edges()
        nodes = []
        if conditional:
            nodes.append(Node(
                id=ALB_ROOT_ID,
                kind=LAYER_ROOT,
                layer=ALB,
                data={'name': 'Listener', 'warnings': []},
            ))
        return nodes, self.shared_edges() + conditional
