#!/usr/bin/env python3
"""
Statement Walker
Generic traversal over nested rule statements and conditions.
Unknown statement types are walked like any other mapping.
"""

from collections.abc import Mapping
from typing import Any, Callable, Iterator, Tuple


MAX_DEPTH = 256

Path = Tuple[Any, ...]


def _children(value: Any):
    if isinstance(value, Mapping):
        return list(value.items())
    if isinstance(value, (list, tuple)):
        return list(enumerate(value))
    return []


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def iter_objects(tree: Any, max_depth: int = MAX_DEPTH) -> Iterator[Tuple[Path, Mapping]]:
    """Yield (path, mapping) for every mapping in the tree, pre-order.

    The path holds the keys and list indices leading to the mapping. Descent
    stops once a path reaches max_depth.
    """
    stack = [((), tree)]

    while stack:
        path, value = stack.pop()
        if isinstance(value, Mapping):
            yield path, value
        if len(path) >= max_depth:
            continue
        # reversed so siblings come off the stack in document order
        for key, child in reversed(_children(value)):
            if _is_container(child):
                stack.append((path + (key,), child))


def walk(tree: Any, visitor: Callable[[Mapping], None], max_depth: int = MAX_DEPTH) -> int:
    """Call visitor on every mapping in the tree. Returns the number visited."""
    visited = 0
    for _, obj in iter_objects(tree, max_depth):
        visitor(obj)
        visited += 1
    return visited


def exceeds_depth(tree: Any, max_depth: int = MAX_DEPTH) -> bool:
    """True if part of the tree lies below max_depth and would not be walked."""
    stack = [(0, tree)]

    while stack:
        depth, value = stack.pop()
        for _, child in _children(value):
            if not _is_container(child):
                continue
            if depth + 1 > max_depth:
                return True
            stack.append((depth + 1, child))
    return False


def find_values(tree: Any, statement_key: str, value_key: str, max_depth: int = MAX_DEPTH) -> list:
    """Collect obj[statement_key][value_key] wherever it appears in the tree.

    List values are flattened; scalars are collected as-is.
    """
    found = []
    for _, obj in iter_objects(tree, max_depth):
        inner = obj.get(statement_key)
        if not isinstance(inner, Mapping) or value_key not in inner:
            continue
        value = inner[value_key]
        if isinstance(value, (list, tuple)):
            found.extend(v for v in value if v is not None)
        elif value is not None:
            found.append(value)
    return found
