"""Diagram nodes that exist without a backing mapping record."""
from typing import Iterable, List, Tuple

from mapperstudio.mapper.mapping import MappingRecord
from mapperstudio.paths import to_canonical


class OrphanRegistry:
    """
    Two ordered sets of canonical paths kept outside the record store.

    ``sources`` holds source fields added by the reviewer but not wired
    yet; ``targets`` holds targets whose edge was disconnected.
    """

    def __init__(self):
        """Initialize registry."""
        self._sources: List[str] = []
        self._targets: List[str] = []

    @property
    def sources(self) -> Tuple[str, ...]:
        return tuple(self._sources)

    @property
    def targets(self) -> Tuple[str, ...]:
        return tuple(self._targets)

    @staticmethod
    def _add(bucket: List[str], path: str) -> bool:
        canonical = to_canonical(path)
        if not canonical or canonical in bucket:
            return False
        bucket.append(canonical)
        return True

    @staticmethod
    def _discard(bucket: List[str], path: str) -> bool:
        canonical = to_canonical(path)
        if canonical in bucket:
            bucket.remove(canonical)
            return True
        return False

    def add_source(self, path: str) -> bool:
        return self._add(self._sources, path)

    def add_target(self, path: str) -> bool:
        return self._add(self._targets, path)

    def discard_source(self, path: str) -> bool:
        return self._discard(self._sources, path)

    def discard_target(self, path: str) -> bool:
        return self._discard(self._targets, path)

    def rename_source(self, old_path: str, new_path: str) -> bool:
        """Rename an orphan source in place, keeping its position in the set."""
        return self._rename(self._sources, old_path, new_path)

    def rename_target(self, old_path: str, new_path: str) -> bool:
        return self._rename(self._targets, old_path, new_path)

    @staticmethod
    def _rename(bucket: List[str], old_path: str, new_path: str) -> bool:
        old, new = to_canonical(old_path), to_canonical(new_path)
        if old not in bucket or not new:
            return False
        index = bucket.index(old)
        if new in bucket:
            bucket.pop(index)
        else:
            bucket[index] = new
        return True

    def clear(self) -> None:
        self._sources.clear()
        self._targets.clear()

    def prune(self, records: Iterable[MappingRecord]) -> None:
        """
        Drop entries that a record now supplies.

        A source leaves once an active record (selected, non-empty target)
        uses it; a target leaves once any record, active or not, uses it.
        """
        records = list(records)
        wired_sources = {r.canonical_source for r in records if r.is_active}
        used_targets = {r.canonical_target for r in records if r.canonical_target}
        self._sources = [p for p in self._sources if p not in wired_sources]
        self._targets = [p for p in self._targets if p not in used_targets]
