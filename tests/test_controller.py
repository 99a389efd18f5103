"""
Unit tests for the graph edit controller

Tests:
- Connect / reconnect
- Disconnect (soft delete, orphan target, note)
- Rename of record-backed and orphan nodes
- Adding and removing unattached sources
- Selection cursor and Backspace/Delete
- Stale references are ignored
"""

import random

import pytest

from mapperstudio.graph.controller import GraphEditController
from mapperstudio.graph.models import NodeRole, Position
from mapperstudio.mapper.mapping import (
    MappingOrigin,
    MappingRecord,
    SourceType,
    TargetType,
    TransformType,
)
from mapperstudio.mapper.store import MappingRecordStore


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def store():
    """Store with one LLM-derived record a.b -> x.y"""
    s = MappingRecordStore()
    s.replace_all(
        [
            MappingRecord(
                id="r1",
                source_path="a.b",
                target_path="x.y",
                confidence=0.88,
                reason="Suggested",
            )
        ]
    )
    return s


@pytest.fixture
def controller(store):
    """Controller over the single-record store"""
    return GraphEditController(store)


def assert_edges_reference_nodes(controller):
    projection = controller.projection
    for edge in projection.edges:
        assert projection.has_node(edge.source)
        assert projection.has_node(edge.target)


# ============================================================================
# CONNECT
# ============================================================================


class TestConnect:
    """Tests for connect"""

    def test_connect_new_pair_appends_manual_record(self, controller, store):
        store_len = len(store)
        controller.add_unattached_source()
        record = controller.connect("s:source.newField1", "t:x.y")

        assert len(store) == store_len + 1
        assert record.source_path == "source.newField1"
        assert record.target_path == "x.y"
        assert record.transform_type is TransformType.DIRECT
        assert record.confidence == 1.0
        assert record.reason == "Manually connected"
        assert record.selected is True
        assert record.mapping_origin is MappingOrigin.EDITED
        assert controller.projection.has_edge(f"e|{record.id}")

    def test_connect_existing_pair_reactivates(self, controller, store):
        controller.disconnect("e|r1")
        record = controller.connect("s:a.b", "t:x.y")

        assert len(store) == 1
        assert record.id == "r1"
        assert record.selected is True
        assert controller.projection.has_edge("e|r1")

    def test_disconnect_then_reconnect_is_edited(self, controller, store):
        controller.disconnect("e|r1")
        controller.connect("s:a.b", "t:x.y")
        record = store.get(0)
        assert record.mapping_origin is MappingOrigin.EDITED
        assert record.manual_override is True
        assert record.reason == "Manually connected"

    def test_connect_clears_confirmation(self, controller, store):
        store.tracker.confirm()
        controller.add_unattached_source()
        controller.connect("s:source.newField1", "t:x.y")
        assert store.tracker.manual_confirmed is False

    def test_connect_with_stale_or_swapped_ids_is_noop(self, controller, store):
        revision = store.revision
        assert controller.connect("s:missing", "t:x.y") is None
        assert controller.connect("t:x.y", "s:a.b") is None
        assert controller.connect("garbage", "") is None
        assert store.revision == revision


# ============================================================================
# DISCONNECT
# ============================================================================


class TestDisconnect:
    """Tests for disconnect"""

    def test_disconnect_scenario(self, controller, store):
        """Disconnect soft-deletes and keeps the target visible"""
        assert controller.disconnect("e|r1") == 1

        record = store.get(0)
        assert record.selected is False
        assert "x.y" in store.orphans.targets
        assert controller.projection.has_node("t:x.y")
        assert not controller.projection.has_edge("e|r1")

    def test_disconnect_marks_edited_and_notes(self, controller, store):
        controller.disconnect("e|r1")
        record = store.get(0)
        assert record.mapping_origin is MappingOrigin.EDITED
        assert record.notes == "Disconnected in flow"
        assert record.reason == "Suggested"

    def test_disconnect_keeps_existing_notes(self, controller, store):
        store.upsert_by_index(0, {"notes": "keep me"})
        controller.refresh()
        controller.disconnect("e|r1")
        assert store.get(0).notes == "keep me"

    def test_disconnect_hits_every_record_of_the_pair(self, store):
        store.append_manual({"source_path": "a.b", "target_path": "x.y"})
        controller = GraphEditController(store)
        assert len(controller.projection.edges) == 2

        assert controller.disconnect("e|r1") == 2
        assert all(r.selected is False for r in store.list())
        assert controller.projection.edges == []

    def test_disconnect_commits_once(self, store):
        store.append_manual({"source_path": "a.b", "target_path": "x.y", "notes": "manual"})
        controller = GraphEditController(store)
        revision = store.revision

        controller.disconnect("e|r1")

        assert store.revision == revision + 1
        assert [r.notes for r in store.list()] == ["Disconnected in flow", "manual"]

    def test_disconnect_stale_edge_is_noop(self, controller, store):
        revision = store.revision
        assert controller.disconnect("e|nope") == 0
        assert store.revision == revision


# ============================================================================
# RENAME
# ============================================================================


class TestRenameNode:
    """Tests for rename_node"""

    def test_rename_target_scenario(self):
        """Rename rewrites every record on that target path"""
        s = MappingRecordStore()
        s.replace_all(
            [
                MappingRecord(id="r1", source_path="src.name", target_path="customer.legalName"),
                MappingRecord(id="r2", source_path="src.alias", target_path="customer.legalName"),
                MappingRecord(id="r3", source_path="src.id", target_path="customer.id"),
            ]
        )
        controller = GraphEditController(s)

        new_id = controller.rename_node("t:customer.legalName", "full name")

        assert new_id == "t:customer.full_name"
        records = s.list()
        assert records[0].target_path == "customer.full_name"
        assert records[1].target_path == "customer.full_name"
        assert records[0].mapping_origin is MappingOrigin.EDITED
        assert records[1].mapping_origin is MappingOrigin.EDITED
        assert records[2].target_path == "customer.id"
        assert records[2].mapping_origin is MappingOrigin.LLM_DERIVED
        assert not controller.projection.has_node("t:customer.legalName")
        assert controller.projection.has_node("t:customer.full_name")

    def test_rename_source_only_touches_source_side(self, controller, store):
        controller.rename_node("s:a.b", "renamed")
        record = store.get(0)
        assert record.source_path == "a.renamed"
        assert record.target_path == "x.y"

    def test_rename_keeps_position(self, controller):
        controller.move_node("s:a.b", 222, 111)
        new_id = controller.rename_node("s:a.b", "c")
        assert controller.projection.node(new_id).position == Position(222.0, 111.0)

    def test_rename_orphan_source(self, controller):
        controller.add_unattached_source()
        new_id = controller.rename_node("s:source.newField1", "customerId")
        assert new_id == "s:source.customerId"
        assert controller.orphans.sources == ("source.customerId",)

    def test_rename_orphan_target(self, controller):
        controller.disconnect("e|r1")
        controller.rename_node("t:x.y", "z")
        assert controller.store.get(0).target_path == "x.z"
        assert controller.projection.has_node("t:x.z")

    def test_rename_follows_selection(self, controller):
        controller.select_node("s:a.b")
        new_id = controller.rename_node("s:a.b", "q")
        assert controller.selected_node_id == new_id

    def test_rename_missing_only_target_is_ignored(self):
        """A node backed only by the missing-target list cannot be renamed"""
        s = MappingRecordStore()
        controller = GraphEditController(s, missing_targets=["customer.legalName"])
        controller.move_node("t:customer.legalName", 480, 90)
        revision = s.revision

        assert controller.rename_node("t:customer.legalName", "full name") is None

        node = controller.projection.node("t:customer.legalName")
        assert node.missing is True
        assert node.position == Position(480.0, 90.0)
        assert not controller.projection.has_node("t:customer.full_name")
        assert s.revision == revision

    def test_rename_noop_cases(self, controller, store):
        revision = store.revision
        assert controller.rename_node("s:a.b", "b") is None
        assert controller.rename_node("s:a.b", "!!!") is None
        assert controller.rename_node("s:unknown", "x") is None
        assert store.revision == revision


# ============================================================================
# UNATTACHED SOURCES
# ============================================================================


class TestUnattachedSources:
    """Tests for add_unattached_source and remove_orphan_source"""

    def test_add_twice_scenario(self, controller):
        assert controller.add_unattached_source() == "source.newField1"
        assert controller.add_unattached_source() == "source.newField2"
        assert controller.orphans.sources == ("source.newField1", "source.newField2")
        assert controller.projection.has_node("s:source.newField2")

    def test_add_produces_no_record(self, controller, store):
        controller.add_unattached_source()
        assert len(store) == 1

    def test_add_uses_smallest_free_number(self, store):
        store.append_manual({"source_path": "source.newField1"})
        store.append_manual({"source_path": "source.newField3"})
        controller = GraphEditController(store)
        assert controller.add_unattached_source() == "source.newField2"
        assert controller.add_unattached_source() == "source.newField4"

    def test_orphan_source_pruned_when_wired(self, controller):
        controller.add_unattached_source()
        controller.connect("s:source.newField1", "t:x.y")
        assert controller.orphans.sources == ()
        assert controller.projection.has_node("s:source.newField1")

    def test_remove_orphan_source(self, controller):
        controller.add_unattached_source()
        assert controller.remove_orphan_source("s:source.newField1") is True
        assert controller.orphans.sources == ()
        assert not controller.projection.has_node("s:source.newField1")

    def test_remove_refused_while_active_edge_exists(self, controller, store):
        assert controller.remove_orphan_source("s:a.b") is False
        assert len(store) == 1

    def test_remove_hard_deletes_inactive_records(self, controller, store):
        controller.disconnect("e|r1")
        assert controller.remove_orphan_source("s:a.b") is True
        assert len(store) == 0
        assert not controller.projection.has_node("s:a.b")

    def test_remove_target_node_is_refused(self, controller):
        controller.disconnect("e|r1")
        assert controller.remove_orphan_source("t:x.y") is False


# ============================================================================
# SELECTION
# ============================================================================


class TestSelection:
    """Tests for the selection cursor"""

    def test_node_and_edge_selection_are_exclusive(self, controller):
        assert controller.select_edge("e|r1")
        assert controller.select_node("s:a.b")
        assert controller.selected_edge_id is None
        assert controller.selected_node.path == "a.b"

        assert controller.select_edge("e|r1")
        assert controller.selected_node_id is None
        assert controller.selected_edge.record_id == "r1"

    def test_stale_selection_is_ignored(self, controller):
        assert controller.select_node("s:none") is False
        assert controller.select_edge("e|none") is False
        assert controller.selected_node_id is None

    def test_vanished_selection_is_cleared(self, controller):
        controller.select_edge("e|r1")
        controller.store.upsert_by_index(0, {"selected": False})
        controller.refresh()
        assert controller.selected_edge_id is None

    def test_delete_selected_edge(self, controller, store):
        controller.select_edge("e|r1")
        assert controller.delete_selection() is True
        assert store.get(0).selected is False
        assert controller.selected_edge_id is None

    def test_delete_selected_orphan_source(self, controller):
        controller.add_unattached_source()
        controller.select_node("s:source.newField1")
        assert controller.delete_selection() is True
        assert controller.selected_node_id is None

    def test_delete_selected_target_does_nothing(self, controller):
        controller.select_node("t:x.y")
        assert controller.delete_selection() is False

    def test_delete_without_selection(self, controller):
        controller.clear_selection()
        assert controller.delete_selection() is False


# ============================================================================
# SHAPES AND MISSING TARGETS
# ============================================================================


class TestShapes:
    """Tests for notation and missing targets"""

    def test_xml_source_json_target_labels(self, store):
        controller = GraphEditController(store, SourceType.XML, TargetType.JSON_SCHEMA)
        assert controller.projection.node("s:a.b").path_label == "/a/b"
        assert controller.projection.node("t:x.y").path_label == "$.x.y"

    def test_set_shape_types(self, controller):
        controller.set_shape_types(SourceType.JSON, TargetType.XSD)
        assert controller.projection.node("t:x.y").path_label == "/x/y"

    def test_missing_targets(self, controller):
        controller.set_missing_targets(["customer.legalName", "x.y"])
        assert controller.projection.node("t:customer.legalName").missing is True
        assert controller.projection.node("t:x.y").missing is False

        controller.add_unattached_source()
        controller.connect("s:source.newField1", "t:customer.legalName")
        assert controller.projection.node("t:customer.legalName").missing is False


# ============================================================================
# INVARIANTS
# ============================================================================


class TestInvariants:
    """Random gesture sequences keep the projection consistent"""

    def test_edges_always_reference_existing_nodes(self, controller):
        rng = random.Random(7)
        for _ in range(200):
            projection = controller.projection
            sources = projection.nodes_for(NodeRole.SOURCE)
            targets = projection.nodes_for(NodeRole.TARGET)
            action = rng.choice(["connect", "disconnect", "rename", "add", "remove"])

            if action == "connect" and sources and targets:
                controller.connect(rng.choice(sources).id, rng.choice(targets).id)
            elif action == "disconnect" and projection.edges:
                controller.disconnect(rng.choice(projection.edges).id)
            elif action == "rename" and projection.nodes:
                controller.rename_node(rng.choice(projection.nodes).id, rng.choice("abcdef"))
            elif action == "add":
                controller.add_unattached_source()
            elif action == "remove" and sources:
                controller.remove_orphan_source(rng.choice(sources).id)

            assert_edges_reference_nodes(controller)

    def test_edited_records_never_revert(self, controller, store):
        controller.rename_node("s:a.b", "z")
        controller.disconnect(controller.projection.edges[0].id)
        controller.connect("s:a.z", "t:x.y")
        assert all(r.mapping_origin is MappingOrigin.EDITED for r in store.list())
