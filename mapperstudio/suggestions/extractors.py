"""
Suggestion payload extraction.

The backend hands suggestions back in more than one place: the response
context JSON, or (as a best-effort fallback) the payload of an audit
event, nested under one of several keys. Each location is described by a
named ``PayloadExtractor``; extractors are tried in order and each one
either yields a list or ``None``.

Nothing in here raises on bad input. Unparseable text, wrong types and
missing keys all end up as "no suggestions".
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from mapperstudio.mapper.mapping import MappingSuggestion

logger = logging.getLogger(__name__)

SUGGESTIONS_KEY = "mapping_suggestions"
MISSING_TARGETS_KEY = "missing_required_target_fields"


@dataclass(frozen=True)
class PayloadExtractor:
    """Looks up a list at a fixed key path inside a JSON object."""

    name: str
    keys: Tuple[str, ...]

    def extract(self, payload: Any) -> Optional[List[Any]]:
        """The list at ``keys``, or None when absent or not a list."""
        node = payload
        for key in self.keys:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return node if isinstance(node, list) else None


CONTEXT_EXTRACTORS: Tuple[PayloadExtractor, ...] = (
    PayloadExtractor("context", (SUGGESTIONS_KEY,)),
)

AUDIT_EXTRACTORS: Tuple[PayloadExtractor, ...] = (
    PayloadExtractor("inputParams", ("inputParams", SUGGESTIONS_KEY)),
    PayloadExtractor("input_params", ("input_params", SUGGESTIONS_KEY)),
    PayloadExtractor("top-level", (SUGGESTIONS_KEY,)),
)

MISSING_TARGET_EXTRACTORS: Tuple[PayloadExtractor, ...] = (
    PayloadExtractor("context", (MISSING_TARGETS_KEY,)),
)


def load_json_object(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object from text (or pass a dict through).

    Returns:
        The object, or None for empty, malformed or non-object input
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, (str, bytes)) or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring unparseable payload: {e}")
        return None
    return value if isinstance(value, dict) else None


def extract_first(
    payload: Any, extractors: Sequence[PayloadExtractor]
) -> Optional[Tuple[str, List[Any]]]:
    """First extractor that yields a list, with its name."""
    for extractor in extractors:
        found = extractor.extract(payload)
        if found is not None:
            return extractor.name, found
    return None


def coerce_suggestions(items: Iterable[Any]) -> List[MappingSuggestion]:
    """Turn raw list items into suggestions, skipping non-objects."""
    suggestions = []
    for item in items:
        if isinstance(item, MappingSuggestion):
            suggestions.append(item)
        elif isinstance(item, dict):
            suggestions.append(MappingSuggestion.from_dict(item))
        else:
            logger.debug(f"Skipping non-object suggestion entry: {item!r}")
    return suggestions


def parse_suggestions(context_json: Any) -> List[MappingSuggestion]:
    """Suggestions carried in a response's context JSON."""
    found = extract_first(load_json_object(context_json), CONTEXT_EXTRACTORS)
    if found is None:
        return []
    return coerce_suggestions(found[1])


def _audit_payload(event: Any) -> Any:
    if isinstance(event, dict):
        return event.get("payloadJson", event.get("payload_json"))
    return getattr(event, "payload_json", None)


def parse_suggestions_from_audit(events: Sequence[Any]) -> List[MappingSuggestion]:
    """
    Suggestions from the newest audit event that carries any.

    Events are scanned newest first; rows with a missing or broken
    payload are skipped.
    """
    for event in reversed(list(events)):
        payload = load_json_object(_audit_payload(event))
        if payload is None:
            continue
        found = extract_first(payload, AUDIT_EXTRACTORS)
        if found is not None:
            name, items = found
            logger.debug(f"Suggestions recovered from audit payload ({name})")
            return coerce_suggestions(items)
    return []


def parse_missing_targets(context_json: Any) -> List[str]:
    """Required target fields the backend reports as still unmapped."""
    found = extract_first(load_json_object(context_json), MISSING_TARGET_EXTRACTORS)
    if found is None:
        return []
    return [str(item) for item in found[1] if isinstance(item, str) and item.strip()]


def resolve_suggestions(context_json: Any, audit_events: Sequence[Any] = ()) -> List[MappingSuggestion]:
    """Context suggestions first; the audit log only when the context has none."""
    suggestions = parse_suggestions(context_json)
    if suggestions:
        return suggestions
    return parse_suggestions_from_audit(audit_events)


def suggestions_signature(suggestions: Sequence[MappingSuggestion]) -> str:
    """Order-sensitive structural signature of a suggestion list."""
    payload = json.dumps([s.to_dict() for s in suggestions], sort_keys=True)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()
