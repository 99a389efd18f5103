"""
Export snapshot and the confirmation-gated export flow.

``build_export_request`` freezes the current record list into the
``(projectCode, mappingVersion, sourceType, targetType, pathType,
mappings[])`` shape the backend persists and renders. ``MappingExporter``
sends it; save-and-download is refused before any network call unless
the reviewer confirmed a non-empty mapping set.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from mapperstudio.api.models import MappingSaveResponse
from mapperstudio.api.studio_client import StudioClient
from mapperstudio.config import app_config
from mapperstudio.mapper.mapping import (
    MappingOrigin,
    MappingRecord,
    SourceType,
    TargetType,
    safe_confidence,
)
from mapperstudio.mapper.provenance import ConfirmationRequiredError, ProvenanceTracker
from mapperstudio.paths import PathType

logger = logging.getLogger(__name__)

EXCEL_COMMANDS = frozenset(
    f"{verb} {kind}" for verb in ("generate", "download", "export") for kind in ("excel", "xlsx")
)


def is_generate_excel_command(message: str) -> bool:
    """True for the chat shortcuts that ask for the workbook."""
    normalized = re.sub(r"\s+", " ", (message or "").strip().lower())
    return normalized in EXCEL_COMMANDS


@dataclass
class MappingExportRow:
    """One record as sent to the persist/export collaborator."""

    source_path: str
    target_path: str
    transform_type: str
    confidence: float
    reason: str = ""
    notes: str = ""
    mapping_origin: str = MappingOrigin.LLM_DERIVED.value
    selected: bool = True
    manual_override: bool = False
    target_artifact_name: Optional[str] = None
    target_artifact_type: Optional[str] = None

    @classmethod
    def from_record(cls, record: MappingRecord) -> "MappingExportRow":
        origin = MappingOrigin.resolve(record.mapping_origin, record.manual_override)
        return cls(
            source_path=record.source_path,
            target_path=record.target_path,
            transform_type=record.transform_type.value,
            confidence=safe_confidence(record.confidence),
            reason=record.reason,
            notes=record.notes,
            mapping_origin=origin.value,
            selected=record.selected is not False,
            manual_override=bool(record.manual_override),
            target_artifact_name=record.target_artifact_name,
            target_artifact_type=record.target_artifact_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sourcePath": self.source_path,
            "targetPath": self.target_path,
            "transformType": self.transform_type,
            "confidence": self.confidence,
            "reason": self.reason,
            "notes": self.notes,
            "mappingOrigin": self.mapping_origin,
            "selected": self.selected,
            "manualOverride": self.manual_override,
            "targetArtifactName": self.target_artifact_name,
            "targetArtifactType": self.target_artifact_type,
        }


@dataclass
class MappingExportRequest:
    """Full mapping snapshot handed to save/confirm/export."""

    project_code: str
    mapping_version: str
    source_type: SourceType
    target_type: TargetType
    path_type: PathType
    mappings: List[MappingExportRow] = field(default_factory=list)

    @property
    def workbook_name(self) -> str:
        return f"{self.project_code}_{self.mapping_version}_mappings.xlsx"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "projectCode": self.project_code,
            "mappingVersion": self.mapping_version,
            "sourceType": self.source_type.value,
            "targetType": self.target_type.value,
            "pathType": self.path_type.value,
            "mappings": [m.to_dict() for m in self.mappings],
        }


def build_export_request(
    records: Sequence[MappingRecord],
    source_type: SourceType,
    target_type: TargetType,
    project_code: str = "",
    mapping_version: str = "",
) -> MappingExportRequest:
    """
    Snapshot the record list for the persist/export collaborator.

    Blank project code or version fall back to the configured defaults.
    Every record is included, unselected ones flagged ``selected=False``.
    """
    source_type = SourceType(source_type)
    path_type = PathType.XML_PATH if source_type is SourceType.XML else PathType.JSON_PATH
    return MappingExportRequest(
        project_code=(project_code or "").strip() or app_config.project_code,
        mapping_version=(mapping_version or "").strip() or app_config.mapping_version,
        source_type=source_type,
        target_type=TargetType(target_type),
        path_type=path_type,
        mappings=[MappingExportRow.from_record(r) for r in records],
    )


class MappingExporter:
    """Sends snapshots to the backend, gating export on confirmation."""

    def __init__(self, client: StudioClient, tracker: ProvenanceTracker):
        """Initialize exporter."""
        self.client = client
        self.tracker = tracker

    def save(self, request: MappingExportRequest) -> MappingSaveResponse:
        """
        Persist the snapshot (no confirmation needed).

        Raises:
            ValueError: If the snapshot has no mappings
            StudioApiError: If the backend call fails
        """
        if not request.mappings:
            raise ValueError("No mappings available to save.")
        result = self.client.save_mappings(request)
        logger.info(
            f"Saved {result.saved_count} mappings for {result.project_code} v{result.mapping_version}"
        )
        return result

    def save_and_download(
        self,
        request: MappingExportRequest,
        records: Sequence[MappingRecord],
        output_dir: Optional[Path] = None,
    ) -> Path:
        """
        Save, confirm and download the workbook, in that order.

        Args:
            request: Snapshot built from ``records``
            records: Current record list, checked against the gate
            output_dir: Where the workbook is written

        Returns:
            Path of the written workbook

        Raises:
            ConfirmationRequiredError: Gate closed or nothing to export;
                no request is sent in that case
            StudioApiError: If any backend call fails
        """
        self.tracker.require_export_ready(records)
        if not request.mappings:
            raise ConfirmationRequiredError("No mappings available to export.")

        self.client.save_mappings(request)
        self.client.confirm_mappings(request)
        content = self.client.export_workbook(request)

        output_dir = Path(output_dir or app_config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / request.workbook_name
        with open(output_file, "wb") as f:
            f.write(content)

        logger.info(f"Workbook written to {output_file} ({len(content)} bytes)")
        return output_file
