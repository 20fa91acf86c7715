"""Read rule documents (exports or uploads) into plain rule arrays."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List

from .exceptions import RuleDocumentError


# Where rule arrays live in the export formats we accept
RULE_CONTAINERS = ('Rules', 'rules')
WRAPPERS = ('WebACL', 'webACL', 'RuleGroup')


def extract_rules(document: Any) -> List[Any]:
    """Return the top-level rule array of a parsed document.

    Accepts a bare array, {"Rules": [...]}, or a web ACL / rule group export
    wrapping one ({"WebACL": {"Rules": [...]}}).
    """
    if isinstance(document, list):
        return document

    if isinstance(document, Mapping):
        for key in RULE_CONTAINERS:
            if isinstance(document.get(key), list):
                return document[key]
        for wrapper in WRAPPERS:
            inner = document.get(wrapper)
            if isinstance(inner, Mapping):
                for key in RULE_CONTAINERS:
                    if isinstance(inner.get(key), list):
                        return inner[key]

    raise RuleDocumentError("Document has no top-level rule array")


def load_rule_document(path: Path) -> List[Any]:
    """Load a JSON rule document from disk and return its rules."""
    path = Path(path)
    try:
        with open(path) as f:
            document = json.load(f)
    except OSError as e:
        raise RuleDocumentError(f"Cannot read {path}: {e.strerror or e}") from e
    except json.JSONDecodeError as e:
        raise RuleDocumentError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno})") from e

    return extract_rules(document)
