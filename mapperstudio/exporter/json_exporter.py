"""JSON snapshot exporter."""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from mapperstudio.exporter.snapshot import MappingExportRequest
from mapperstudio.mapper.mapping import MappingRecord, SourceType, TargetType

logger = logging.getLogger(__name__)


class JsonExporter:
    """Write and read mapping snapshots as local JSON files."""

    def __init__(self, snapshot_dir: Path):
        """Initialize exporter."""
        self.snapshot_dir = Path(snapshot_dir)

    def export(
        self,
        request: MappingExportRequest,
        records: List[MappingRecord],
        output_file: Optional[Path] = None,
    ) -> Path:
        """
        Export a snapshot to JSON.

        Both the backend-facing request and the full records (ids, origin
        and override flags included) are kept so a load restores the
        session exactly.
        """
        if output_file is None:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_file = (
                self.snapshot_dir
                / f"{request.project_code}_{request.mapping_version}_{stamp}.json"
            )
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "metadata": {
                "created_at": datetime.now().isoformat(),
                "project_code": request.project_code,
                "mapping_version": request.mapping_version,
                "total_mappings": len(records),
                "selected_mappings": sum(1 for r in records if r.selected is not False),
            },
            "request": request.to_dict(),
            "records": [r.to_dict() for r in records],
        }

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Snapshot written to {output_file}")
        return output_file

    def list_snapshots(self) -> List[Path]:
        """Saved snapshot files, oldest name first."""
        if not self.snapshot_dir.exists():
            return []
        return sorted(self.snapshot_dir.glob("*.json"))

    def load(self, snapshot_file: Path) -> Tuple[Dict[str, Any], List[MappingRecord]]:
        """
        Read a snapshot back.

        Returns:
            (metadata including source/target type, records)

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a snapshot
        """
        snapshot_file = Path(snapshot_file)
        if not snapshot_file.is_absolute() and not snapshot_file.exists():
            snapshot_file = self.snapshot_dir / snapshot_file

        with open(snapshot_file, "r") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Not a mapping snapshot: {snapshot_file}")

        request = data.get("request") or {}
        rows = data.get("records")
        if rows is None:
            # Request-only files (e.g. hand-written) still load
            rows = request.get("mappings", [])
        records = [MappingRecord.from_dict(row) for row in rows if isinstance(row, dict)]

        metadata = dict(data.get("metadata") or {})
        metadata["source_type"] = SourceType(request.get("sourceType", SourceType.JSON.value))
        metadata["target_type"] = TargetType(request.get("targetType", TargetType.JSON.value))
        metadata.setdefault("project_code", request.get("projectCode", ""))
        metadata.setdefault("mapping_version", request.get("mappingVersion", ""))

        logger.info(f"Loaded {len(records)} mappings from {snapshot_file}")
        return metadata, records
