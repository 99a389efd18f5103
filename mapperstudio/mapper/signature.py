"""Structural signatures used to skip re-deriving unchanged projections."""
import hashlib
import json
from typing import Any, Iterable, Sequence, Tuple

from mapperstudio.mapper.mapping import MappingRecord, safe_confidence
from mapperstudio.paths import to_canonical


def _digest(items: Iterable[Any]) -> str:
    payload = json.dumps(sorted(items), separators=(",", ":"))
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def edge_key(record: MappingRecord) -> Tuple[str, str, str, bool, float, str]:
    """Minimal projected fields of one record."""
    return (
        record.id,
        record.canonical_source,
        record.canonical_target,
        record.selected is not False,
        safe_confidence(record.confidence),
        record.transform_type.value,
    )


def edge_signature(records: Sequence[MappingRecord]) -> str:
    """Order-insensitive hash over the edge-relevant fields of all records."""
    return _digest(list(edge_key(r)) for r in records)


def node_signature(
    source_paths: Iterable[str],
    target_paths: Iterable[str],
) -> str:
    """Order-insensitive hash over ``(role, canonical path)`` pairs."""
    keys = {("source", to_canonical(p)) for p in source_paths}
    keys |= {("target", to_canonical(p)) for p in target_paths}
    return _digest(list(key) for key in keys if key[1])


def combine(*parts: str) -> str:
    """Fold several signatures into one."""
    return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()
