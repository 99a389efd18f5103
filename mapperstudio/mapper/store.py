"""
Mapping Record Store - the single source of truth for a mapping session.

Every other view (diagram projection, table, export snapshot) is derived
from the ordered record list held here, and every edit writes back here.

Rules enforced by the store itself, regardless of call site:
- ``replace_all`` is the only way to bring in machine-derived records; it
  resets the confirmation gate and clears the orphan sets.
- Every other mutation flips the touched records to EDITED with
  ``manual_override`` set, clears the confirmation gate and prunes the
  orphan sets.
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from mapperstudio.graph.orphans import OrphanRegistry
from mapperstudio.mapper.mapping import (
    EDITABLE_FIELDS,
    MappingOrigin,
    MappingRecord,
    MappingSuggestion,
    TransformType,
    new_record_id,
    safe_confidence,
)
from mapperstudio.mapper.provenance import ProvenanceTracker
from mapperstudio.mapper.signature import edge_signature, node_signature
from mapperstudio.paths import to_canonical

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[MappingRecord], bool]

MANUAL_ROW_DEFAULTS: Dict[str, Any] = {
    "source_path": "",
    "target_path": "",
    "confidence": 1.0,
    "transform_type": TransformType.DIRECT,
    "reason": "Manually added mapping",
    "notes": "",
    "selected": True,
}


def _clean_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown or read-only mapping fields: {sorted(unknown)}")

    cleaned = dict(patch)
    for key in ("source_path", "target_path"):
        if key in cleaned:
            cleaned[key] = to_canonical(cleaned[key])
    if "transform_type" in cleaned:
        cleaned["transform_type"] = TransformType.parse(cleaned["transform_type"])
    if "confidence" in cleaned:
        cleaned["confidence"] = safe_confidence(cleaned["confidence"])
    if "selected" in cleaned:
        cleaned["selected"] = bool(cleaned["selected"])
    return cleaned


def _edited(record: MappingRecord, **changes: Any) -> MappingRecord:
    return replace(
        record,
        **changes,
        mapping_origin=MappingOrigin.EDITED,
        manual_override=True,
    )


class MappingRecordStore:
    """Ordered list of mapping records plus the state that must follow it."""

    def __init__(
        self,
        tracker: Optional[ProvenanceTracker] = None,
        orphans: Optional[OrphanRegistry] = None,
    ):
        """
        Initialize store.

        Args:
            tracker: Confirmation gate to reset/clear on mutation
            orphans: Orphan node sets to clear/prune on mutation
        """
        self.tracker = tracker if tracker is not None else ProvenanceTracker()
        self.orphans = orphans if orphans is not None else OrphanRegistry()
        self._records: List[MappingRecord] = []
        self.revision = 0
        self._edge_signature = edge_signature([])
        self._node_signature = node_signature([], [])

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list(self) -> List[MappingRecord]:
        """Snapshot of the current records, in order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MappingRecord]:
        return iter(list(self._records))

    def get(self, idx: int) -> MappingRecord:
        return self._records[idx]

    def index_of(self, record_id: str) -> Optional[int]:
        """Position of a record by id, or None."""
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                return idx
        return None

    def index_of_pair(self, source_path: str, target_path: str) -> Optional[int]:
        """Position of the first record joining exactly these two paths."""
        source, target = to_canonical(source_path), to_canonical(target_path)
        for idx, record in enumerate(self._records):
            if record.canonical_source == source and record.canonical_target == target:
                return idx
        return None

    @property
    def edge_signature(self) -> str:
        """Edge-relevant signature, recomputed once per mutation."""
        return self._edge_signature

    @property
    def node_signature(self) -> str:
        """Record-derived ``(role, path)`` signature, recomputed once per mutation."""
        return self._node_signature

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def replace_all(self, rows: Iterable[Union[MappingSuggestion, MappingRecord]]) -> None:
        """
        Replace the whole record list.

        Suggestions become fresh LLM_DERIVED records; records (e.g. from a
        saved snapshot) are kept with their own provenance.
        """
        records = []
        for row in rows:
            if isinstance(row, MappingSuggestion):
                records.append(MappingRecord.from_suggestion(row))
            elif isinstance(row, MappingRecord):
                records.append(row)
            else:
                raise TypeError(f"Cannot store {type(row).__name__} as a mapping record")

        self._records = records
        self.tracker.reset()
        self.orphans.clear()
        self._commit()
        logger.info(f"Mapping store replaced with {len(records)} records")

    def upsert_by_index(self, idx: int, patch: Dict[str, Any]) -> MappingRecord:
        """
        Patch the record at ``idx``, or append one when ``idx == len(store)``.

        Raises:
            IndexError: If idx is outside ``0..len(store)``
            ValueError: If the patch names unknown or read-only fields
        """
        cleaned = _clean_patch(patch)
        if idx == len(self._records):
            return self.append_manual(cleaned)
        if idx < 0 or idx > len(self._records):
            raise IndexError(f"No mapping row at index {idx}")

        record = _edited(self._records[idx], **cleaned)
        self._records[idx] = record
        self._after_edit()
        return record

    def remove_at(self, idx: int) -> MappingRecord:
        """
        Remove a row outright.

        Raises:
            IndexError: If there is no row at idx
        """
        if idx < 0 or idx >= len(self._records):
            raise IndexError(f"No mapping row at index {idx}")
        removed = _edited(self._records.pop(idx))
        self._after_edit()
        return removed

    def append_manual(self, partial: Optional[Dict[str, Any]] = None) -> MappingRecord:
        """Append a reviewer-authored record (EDITED, selected, confidence 1)."""
        values = dict(MANUAL_ROW_DEFAULTS)
        values.update(_clean_patch(partial or {}))
        record = MappingRecord(
            id=new_record_id("manual"),
            mapping_origin=MappingOrigin.EDITED,
            manual_override=True,
            **values,
        )
        self._records.append(record)
        self._after_edit()
        return record

    def update_where(self, predicate: RecordPredicate, **changes: Any) -> List[MappingRecord]:
        """Apply the same patch to every matching record; returns the updated records."""
        cleaned = _clean_patch(changes)
        return self.patch_where(predicate, lambda record: cleaned)

    def patch_where(
        self,
        predicate: RecordPredicate,
        make_patch: Callable[[MappingRecord], Dict[str, Any]],
    ) -> List[MappingRecord]:
        """
        Patch every matching record with a patch built from that record.

        All matches are written in a single commit.

        Returns:
            The updated records
        """
        updated = []
        for idx, record in enumerate(self._records):
            if predicate(record):
                self._records[idx] = _edited(record, **_clean_patch(make_patch(record)))
                updated.append(self._records[idx])
        if updated:
            self._after_edit()
        return updated

    def remove_where(self, predicate: RecordPredicate) -> List[MappingRecord]:
        """Hard-delete every matching record; returns what was removed."""
        kept, removed = [], []
        for record in self._records:
            (removed if predicate(record) else kept).append(record)
        if removed:
            self._records = kept
            self._after_edit()
        return [_edited(r) for r in removed]

    def _after_edit(self) -> None:
        self.tracker.invalidate()
        self.orphans.prune(self._records)
        self._commit()

    def _commit(self) -> None:
        self.revision += 1
        self._edge_signature = edge_signature(self._records)
        self._node_signature = node_signature(
            (r.source_path for r in self._records),
            (r.target_path for r in self._records),
        )
