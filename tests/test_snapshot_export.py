"""
Unit tests for the export snapshot and gated export

Tests:
- Snapshot contents (path type, defaults, origins)
- Save requires mappings
- Save-and-download refused locally without confirmation
- Save/confirm/export ordering and workbook file
- Local JSON snapshots
"""

from unittest.mock import MagicMock

import pytest

from mapperstudio.api.models import MappingConfirmResponse, MappingSaveResponse
from mapperstudio.config import app_config
from mapperstudio.exporter.json_exporter import JsonExporter
from mapperstudio.exporter.snapshot import (
    MappingExporter,
    build_export_request,
    is_generate_excel_command,
)
from mapperstudio.mapper.mapping import (
    MappingOrigin,
    MappingRecord,
    SourceType,
    TargetType,
)
from mapperstudio.mapper.provenance import ConfirmationRequiredError, ProvenanceTracker
from mapperstudio.paths import PathType


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def records():
    """One LLM record, one edited and unselected record"""
    return [
        MappingRecord(id="r1", source_path="a.b", target_path="x.y", confidence=0.9),
        MappingRecord(
            id="r2",
            source_path="a.c",
            target_path="x.z",
            confidence=float("nan"),
            selected=False,
            notes="not needed",
            mapping_origin=MappingOrigin.EDITED,
            manual_override=True,
        ),
    ]


@pytest.fixture
def client():
    """Mocked backend client"""
    mock = MagicMock()
    mock.save_mappings.return_value = MappingSaveResponse("P", "2.0", saved_count=2)
    mock.confirm_mappings.return_value = MappingConfirmResponse("P", "2.0", confirmed=True)
    mock.export_workbook.return_value = b"xlsx-bytes"
    return mock


# ============================================================================
# SNAPSHOT
# ============================================================================


class TestBuildExportRequest:
    """Tests for build_export_request"""

    def test_path_type_follows_source(self, records):
        xml = build_export_request(records, SourceType.XML, TargetType.JSON, "P", "1")
        json_ = build_export_request(records, SourceType.JSON, TargetType.XSD, "P", "1")
        db = build_export_request(records, SourceType.DATABASE, TargetType.XML, "P", "1")
        assert xml.path_type is PathType.XML_PATH
        assert json_.path_type is PathType.JSON_PATH
        assert db.path_type is PathType.JSON_PATH

    def test_blank_project_and_version_use_defaults(self, records):
        request = build_export_request(records, SourceType.JSON, TargetType.JSON, "  ", "")
        assert request.project_code == app_config.project_code
        assert request.mapping_version == app_config.mapping_version

    def test_rows(self, records):
        request = build_export_request(records, SourceType.JSON, TargetType.XSD_WSDL, "P", "2.0")
        data = request.to_dict()

        assert data["targetType"] == "XSD+WSDL"
        assert data["pathType"] == "JSON_PATH"
        assert len(data["mappings"]) == 2
        first, second = data["mappings"]
        assert first["mappingOrigin"] == "LLM_DERIVED"
        assert first["selected"] is True
        assert second["selected"] is False
        assert second["mappingOrigin"] == "EDITED"
        assert second["manualOverride"] is True
        assert second["confidence"] == 0.0
        assert second["notes"] == "not needed"

    def test_workbook_name(self, records):
        request = build_export_request(records, SourceType.JSON, TargetType.JSON, "CAR", "1.0.0")
        assert request.workbook_name == "CAR_1.0.0_mappings.xlsx"


# ============================================================================
# GATED EXPORT
# ============================================================================


class TestMappingExporter:
    """Tests for MappingExporter"""

    def test_export_without_confirmation_makes_no_call(self, client, records, tmp_path):
        """Export is refused locally while the gate is closed"""
        tracker = ProvenanceTracker()
        exporter = MappingExporter(client, tracker)
        request = build_export_request(records[:1], SourceType.JSON, TargetType.JSON, "P", "2.0")

        with pytest.raises(ConfirmationRequiredError):
            exporter.save_and_download(request, records[:1], tmp_path)

        client.save_mappings.assert_not_called()
        client.confirm_mappings.assert_not_called()
        client.export_workbook.assert_not_called()
        assert list(tmp_path.iterdir()) == []

    def test_export_with_no_records_makes_no_call(self, client, tmp_path):
        tracker = ProvenanceTracker()
        tracker.confirm()
        exporter = MappingExporter(client, tracker)
        request = build_export_request([], SourceType.JSON, TargetType.JSON, "P", "2.0")

        with pytest.raises(ConfirmationRequiredError, match="No mappings"):
            exporter.save_and_download(request, [], tmp_path)
        client.save_mappings.assert_not_called()

    def test_save_confirm_export_in_order(self, client, records, tmp_path):
        tracker = ProvenanceTracker()
        tracker.confirm()
        exporter = MappingExporter(client, tracker)
        request = build_export_request(records, SourceType.JSON, TargetType.JSON, "P", "2.0")

        output_file = exporter.save_and_download(request, records, tmp_path)

        assert [c[0] for c in client.method_calls] == [
            "save_mappings",
            "confirm_mappings",
            "export_workbook",
        ]
        assert output_file == tmp_path / "P_2.0_mappings.xlsx"
        assert output_file.read_bytes() == b"xlsx-bytes"

    def test_save_requires_mappings(self, client):
        exporter = MappingExporter(client, ProvenanceTracker())
        request = build_export_request([], SourceType.JSON, TargetType.JSON, "P", "2.0")
        with pytest.raises(ValueError, match="No mappings available to save"):
            exporter.save(request)
        client.save_mappings.assert_not_called()

    def test_save_does_not_need_confirmation(self, client, records):
        exporter = MappingExporter(client, ProvenanceTracker())
        request = build_export_request(records, SourceType.JSON, TargetType.JSON, "P", "2.0")
        assert exporter.save(request).saved_count == 2


class TestExcelCommands:
    """Tests for chat workbook shortcuts"""

    @pytest.mark.parametrize(
        "message",
        ["generate excel", "  Download   XLSX ", "export excel", "EXPORT xlsx"],
    )
    def test_recognized(self, message):
        assert is_generate_excel_command(message) is True

    @pytest.mark.parametrize("message", ["generate", "excel please", "", None, "make excel"])
    def test_not_recognized(self, message):
        assert is_generate_excel_command(message) is False


# ============================================================================
# LOCAL SNAPSHOTS
# ============================================================================


class TestJsonExporter:
    """Tests for JsonExporter"""

    def test_export_and_load(self, records, tmp_path):
        exporter = JsonExporter(tmp_path / "snapshots")
        request = build_export_request(records, SourceType.XML, TargetType.XSD, "P", "2.0")

        output_file = exporter.export(request, records)
        assert exporter.list_snapshots() == [output_file]

        metadata, loaded = exporter.load(output_file)
        assert metadata["source_type"] is SourceType.XML
        assert metadata["target_type"] is TargetType.XSD
        assert metadata["project_code"] == "P"
        assert [r.id for r in loaded] == ["r1", "r2"]
        assert loaded[1].mapping_origin is MappingOrigin.EDITED
        assert loaded[1].selected is False

    def test_load_by_name(self, records, tmp_path):
        exporter = JsonExporter(tmp_path)
        request = build_export_request(records, SourceType.JSON, TargetType.JSON, "P", "2.0")
        output_file = exporter.export(request, records, tmp_path / "named.json")
        _, loaded = exporter.load(output_file.name)
        assert len(loaded) == 2

    def test_list_without_directory(self, tmp_path):
        assert JsonExporter(tmp_path / "nope").list_snapshots() == []

    def test_load_rejects_non_snapshot(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2]")
        with pytest.raises(ValueError):
            JsonExporter(tmp_path).load(bad)
