"""Tabular view and row editing of the mapping set."""
from typing import List, Optional, Sequence

import click
import pandas as pd
from colorama import Fore

from mapperstudio.mapper.mapping import MappingRecord, SourceType
from mapperstudio.mapper.store import MappingRecordStore
from mapperstudio.paths import (
    PathType,
    format_path,
    from_json_path,
    from_xml_path,
    leaf,
    rename_leaf,
    sanitize_token,
)

BAND_COLORS = {"high": Fore.GREEN, "mid": Fore.YELLOW, "low": Fore.RED}


def parse_row_selection(selection: str, row_count: int) -> List[int]:
    """
    Parse "1,3,5" or "all" into zero-based row indices.

    Raises:
        ValueError: On non-numeric input or numbers outside 1..row_count
    """
    selection = (selection or "").strip()
    if not selection:
        return []
    if selection.lower() == "all":
        return list(range(row_count))

    indices = [int(x.strip()) - 1 for x in selection.split(",") if x.strip()]
    invalid = [i + 1 for i in indices if i < 0 or i >= row_count]
    if invalid:
        raise ValueError(f"Invalid row numbers: {invalid}")
    return indices


def records_to_frame(records: Sequence[MappingRecord], path_type: PathType) -> pd.DataFrame:
    """One row per record, in store order, numbered from 1."""
    rows = []
    for record in records:
        rows.append(
            {
                "use": "x" if record.selected is not False else "",
                "source": leaf(record.canonical_source, "-"),
                "source path": format_path(record.canonical_source, path_type),
                "target": record.target_path or "-",
                "transform": record.transform_type.value,
                "confidence": f"{round(record.display_confidence * 100)}%",
                "origin": record.mapping_origin.value,
                "notes": record.notes or record.reason,
            }
        )
    frame = pd.DataFrame(
        rows,
        columns=["use", "source", "source path", "target", "transform", "confidence", "origin", "notes"],
    )
    frame.index = range(1, len(frame) + 1)
    return frame


class MappingTableEditor:
    """Row-level edits of the record store, as the mapping table offers them."""

    def __init__(self, store: MappingRecordStore, source_type: SourceType = SourceType.JSON):
        """Initialize editor."""
        self.store = store
        self.source_type = SourceType(source_type)

    @property
    def path_type(self) -> PathType:
        return self.source_type.path_type

    def render(self) -> str:
        """Table text for the terminal."""
        records = self.store.list()
        if not records:
            return "(no mappings)"
        return records_to_frame(records, self.path_type).to_string()

    def show(self) -> None:
        records = self.store.list()
        click.echo(self.render())
        if records:
            bands = [r.confidence_band for r in records]
            summary = ", ".join(
                f"{BAND_COLORS[b]}{bands.count(b)} {b}{Fore.RESET}" for b in ("high", "mid", "low")
            )
            click.echo(f"\nConfidence: {summary}")

    def set_source_path(self, idx: int, raw: str) -> MappingRecord:
        """Source path typed in the side's own notation."""
        if self.path_type is PathType.XML_PATH:
            path = from_xml_path(raw)
        else:
            path = from_json_path(raw)
        return self.store.upsert_by_index(idx, {"source_path": path})

    def rename_source_field(self, idx: int, token: str) -> MappingRecord:
        """Replace just the leaf of the source path."""
        record = self.store.get(idx)
        return self.store.upsert_by_index(
            idx, {"source_path": rename_leaf(record.canonical_source, token)}
        )

    def set_target_field(self, idx: int, raw: str) -> MappingRecord:
        return self.store.upsert_by_index(idx, {"target_path": sanitize_token(raw)})

    def set_notes(self, idx: int, notes: str) -> MappingRecord:
        return self.store.upsert_by_index(idx, {"notes": notes})

    def set_transform(self, idx: int, transform: str) -> MappingRecord:
        return self.store.upsert_by_index(idx, {"transform_type": transform})

    def set_selected(self, indices: Sequence[int], selected: bool) -> None:
        for idx in indices:
            self.store.upsert_by_index(idx, {"selected": selected})

    def toggle_use(self, idx: int) -> MappingRecord:
        record = self.store.get(idx)
        return self.store.upsert_by_index(idx, {"selected": record.selected is False})

    def add_row(
        self, source_path: str = "", target_path: str = "", notes: Optional[str] = None
    ) -> MappingRecord:
        """Append a blank reviewer row (optionally pre-filled)."""
        partial = {"source_path": source_path, "target_path": target_path}
        if notes:
            partial["notes"] = notes
        return self.store.append_manual(partial)

    def remove_rows(self, indices: Sequence[int]) -> List[MappingRecord]:
        """Remove rows outright; highest index first so positions stay valid."""
        return [self.store.remove_at(idx) for idx in sorted(set(indices), reverse=True)]
