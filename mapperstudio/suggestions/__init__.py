"""Suggestion payload extraction."""

from .extractors import (
    AUDIT_EXTRACTORS,
    CONTEXT_EXTRACTORS,
    PayloadExtractor,
    parse_missing_targets,
    parse_suggestions,
    parse_suggestions_from_audit,
    resolve_suggestions,
)

__all__ = [
    "AUDIT_EXTRACTORS",
    "CONTEXT_EXTRACTORS",
    "PayloadExtractor",
    "parse_missing_targets",
    "parse_suggestions",
    "parse_suggestions_from_audit",
    "resolve_suggestions",
]
