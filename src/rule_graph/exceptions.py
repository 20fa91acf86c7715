"""Errors raised at the document boundary."""


class RuleDocumentError(ValueError):
    """A rule document could not be read or has no top-level rule array."""
