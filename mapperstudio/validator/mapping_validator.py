"""Mapping validation before confirmation."""
from typing import Iterable, List, Sequence

from mapperstudio.mapper.mapping import MappingRecord
from mapperstudio.paths import to_canonical


class MappingValidator:
    """Review-time checks on the current mapping set."""

    def validate(
        self,
        records: Sequence[MappingRecord],
        missing_targets: Iterable[str] = (),
    ) -> List[str]:
        """Validate mappings; returns human-readable issues."""
        errors = []

        # Selected rows that cannot become an edge
        for idx, record in enumerate(records, 1):
            if record.selected is False:
                continue
            if not record.canonical_source:
                errors.append(f"Row {idx}: missing source path (target {record.target_path or '-'})")
            if not record.canonical_target:
                errors.append(f"Row {idx}: missing target path (source {record.source_path or '-'})")

        # Confidence outside [0, 1]
        for idx, record in enumerate(records, 1):
            if record.display_confidence != record.confidence:
                errors.append(f"Row {idx}: confidence {record.confidence} outside [0, 1]")

        # Same pair wired twice
        seen = {}
        for idx, record in enumerate(records, 1):
            if not record.is_active:
                continue
            pair = (record.canonical_source, record.canonical_target)
            if pair in seen:
                errors.append(
                    f"Row {idx}: duplicates row {seen[pair]} ({pair[0]} -> {pair[1]})"
                )
            else:
                seen[pair] = idx

        # Required targets nobody maps
        mapped = {r.canonical_target for r in records if r.is_active}
        for path in missing_targets:
            canonical = to_canonical(path)
            if canonical and canonical not in mapped:
                errors.append(f"Required target not mapped: {canonical}")

        return errors
