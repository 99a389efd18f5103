"""
Graph Edit Controller - turns diagram gestures into record-store writes.

Gestures:
- connect(source node, target node)
- disconnect(edge)
- rename_node(node, new leaf)
- add_unattached_source()
- remove_orphan_source(node)
- delete_selection() for Backspace/Delete on the selected node or edge

Node and edge ids are resolved against the last projection handed to the
rendering surface. Anything that no longer exists there is ignored, since
UI events can arrive after the state they refer to has moved on.
"""

import logging
from typing import Iterable, List, Optional

from mapperstudio.graph.models import (
    GraphEdge,
    GraphNode,
    GraphProjection,
    NodeRole,
    node_id,
)
from mapperstudio.graph.projection import GraphProjector
from mapperstudio.mapper.mapping import MappingRecord, SourceType, TargetType
from mapperstudio.mapper.store import MappingRecordStore
from mapperstudio.paths import rename_leaf, to_canonical

logger = logging.getLogger(__name__)

CONNECT_REASON = "Manually connected"
DISCONNECT_NOTE = "Disconnected in flow"
NEW_SOURCE_PREFIX = "source.newField"


class GraphEditController:
    """Owns the diagram selection cursor and applies gestures to the store."""

    def __init__(
        self,
        store: MappingRecordStore,
        source_type: SourceType = SourceType.JSON,
        target_type: TargetType = TargetType.JSON,
        missing_targets: Iterable[str] = (),
        projector: Optional[GraphProjector] = None,
    ):
        """
        Initialize controller.

        Args:
            store: Record store the gestures write into
            source_type: Declared source shape (chooses source notation)
            target_type: Declared target shape (chooses target notation)
            missing_targets: Required target paths reported as unmapped
            projector: Projection cache (a fresh one by default)
        """
        self.store = store
        self.orphans = store.orphans
        self.source_type = SourceType(source_type)
        self.target_type = TargetType(target_type)
        self.missing_targets: List[str] = [to_canonical(p) for p in missing_targets]
        self.projector = projector if projector is not None else GraphProjector()
        self.selected_node_id: Optional[str] = None
        self.selected_edge_id: Optional[str] = None
        self.refresh()

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @property
    def projection(self) -> GraphProjection:
        return self.projector.current

    def refresh(self, force: bool = False) -> GraphProjection:
        """Re-derive the projection (a no-op when nothing structural changed)."""
        projection = self.projector.refresh(
            self.store.list(),
            self.orphans.sources,
            self.orphans.targets,
            self.missing_targets,
            self.source_type.path_type,
            self.target_type.path_type,
            records_edge_signature=self.store.edge_signature,
            force=force,
        )
        if self.selected_node_id and not projection.has_node(self.selected_node_id):
            self.selected_node_id = None
        if self.selected_edge_id and not projection.has_edge(self.selected_edge_id):
            self.selected_edge_id = None
        return projection

    def set_missing_targets(self, paths: Iterable[str]) -> GraphProjection:
        self.missing_targets = [p for p in (to_canonical(p) for p in paths) if p]
        return self.refresh()

    def set_shape_types(self, source_type: SourceType, target_type: TargetType) -> GraphProjection:
        self.source_type = SourceType(source_type)
        self.target_type = TargetType(target_type)
        return self.refresh()

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        return self.projector.move_node(node_id, x, y)

    # ------------------------------------------------------------------
    # Selection cursor (node or edge, never both)
    # ------------------------------------------------------------------

    @property
    def selected_node(self) -> Optional[GraphNode]:
        return self.projection.node(self.selected_node_id) if self.selected_node_id else None

    @property
    def selected_edge(self) -> Optional[GraphEdge]:
        return self.projection.edge(self.selected_edge_id) if self.selected_edge_id else None

    def select_node(self, node_id: str) -> bool:
        if not self.projection.has_node(node_id):
            logger.debug(f"Ignoring selection of unknown node {node_id}")
            return False
        self.selected_edge_id = None
        self.selected_node_id = node_id
        return True

    def select_edge(self, edge_id: str) -> bool:
        if not self.projection.has_edge(edge_id):
            logger.debug(f"Ignoring selection of unknown edge {edge_id}")
            return False
        self.selected_node_id = None
        self.selected_edge_id = edge_id
        return True

    def clear_selection(self) -> None:
        self.selected_node_id = None
        self.selected_edge_id = None

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def _node(self, nid: str, role: NodeRole) -> Optional[GraphNode]:
        node = self.projection.node(nid)
        if node is None or node.role is not role:
            logger.debug(f"Ignoring gesture on stale or mismatched node {nid}")
            return None
        return node

    def connect(self, source_node_id: str, target_node_id: str) -> Optional[MappingRecord]:
        """
        Wire a source node to a target node.

        An existing record with the exact pair is reactivated; otherwise a
        new DIRECT record with confidence 1 is appended.

        Returns:
            The active record now backing the edge, or None for stale ids
        """
        source = self._node(source_node_id, NodeRole.SOURCE)
        target = self._node(target_node_id, NodeRole.TARGET)
        if source is None or target is None:
            return None

        idx = self.store.index_of_pair(source.path, target.path)
        if idx is not None:
            record = self.store.upsert_by_index(
                idx, {"selected": True, "reason": CONNECT_REASON}
            )
            logger.info(f"Reconnected {source.path} -> {target.path}")
        else:
            record = self.store.append_manual(
                {
                    "source_path": source.path,
                    "target_path": target.path,
                    "confidence": 1.0,
                    "reason": CONNECT_REASON,
                    "selected": True,
                }
            )
            logger.info(f"Connected {source.path} -> {target.path}")

        self.refresh()
        return record

    def disconnect(self, edge_id: str) -> int:
        """
        Soft-delete every record joining the edge's two endpoints.

        The target stays on the diagram as an orphan.

        Returns:
            Number of records deselected (0 for a stale edge id)
        """
        edge = self.projection.edge(edge_id)
        if edge is None:
            logger.debug(f"Ignoring disconnect of unknown edge {edge_id}")
            return 0
        source_path = self.projection.node(edge.source).path
        target_path = self.projection.node(edge.target).path

        matched = self.store.patch_where(
            lambda r: r.canonical_source == source_path and r.canonical_target == target_path,
            lambda r: {"selected": False, "notes": r.notes or DISCONNECT_NOTE},
        )
        self.orphans.add_target(target_path)

        if self.selected_edge_id == edge_id:
            self.selected_edge_id = None
        self.refresh()
        logger.info(f"Disconnected {source_path} -> {target_path} ({len(matched)} records)")
        return len(matched)

    def rename_node(self, node_id_: str, new_leaf: str) -> Optional[str]:
        """
        Rename the last segment of a node's path on every record using it.

        Returns:
            Id of the renamed node, or None when nothing changed
        """
        node = self.projection.node(node_id_)
        if node is None:
            logger.debug(f"Ignoring rename of unknown node {node_id_}")
            return None

        new_path = rename_leaf(node.path, new_leaf)
        if not new_path or new_path == node.path:
            return None

        old_path = node.path
        if node.role is NodeRole.SOURCE:
            updated = self.store.update_where(
                lambda r: r.canonical_source == old_path, source_path=new_path
            )
            renamed = self.orphans.rename_source(old_path, new_path)
        else:
            updated = self.store.update_where(
                lambda r: r.canonical_target == old_path, target_path=new_path
            )
            renamed = self.orphans.rename_target(old_path, new_path)

        # Nodes backed only by the missing-target list have nothing to rename
        if not updated and not renamed:
            logger.debug(f"Nothing backs {node.id}; rename ignored")
            return None

        new_id = node_id(node.role, new_path)
        self.projector.positions.move(node.id, new_id)
        if self.selected_node_id == node.id:
            self.selected_node_id = new_id
        self.refresh()
        logger.info(f"Renamed {node.role.value} {old_path} -> {new_path}")
        return new_id

    def add_unattached_source(self) -> str:
        """Add ``source.newFieldN`` (smallest free N) as an orphan source."""
        existing = {r.canonical_source for r in self.store.list()}
        existing.update(self.orphans.sources)
        n = 1
        while f"{NEW_SOURCE_PREFIX}{n}" in existing:
            n += 1
        path = f"{NEW_SOURCE_PREFIX}{n}"
        self.orphans.add_source(path)
        self.refresh()
        return path

    def has_active_edges(self, source_path: str) -> bool:
        source_path = to_canonical(source_path)
        return any(
            r.is_active and r.canonical_source == source_path for r in self.store.list()
        )

    def remove_orphan_source(self, node_id_: str) -> bool:
        """
        Delete a source node that has no active edge.

        Any inactive records at that source path are removed outright.

        Returns:
            True if the node was removed
        """
        node = self._node(node_id_, NodeRole.SOURCE)
        if node is None:
            return False
        if self.has_active_edges(node.path):
            logger.debug(f"Refusing to remove {node.path}: it still has active edges")
            return False

        removed = self.store.remove_where(lambda r: r.canonical_source == node.path)
        self.orphans.discard_source(node.path)
        if self.selected_node_id == node.id:
            self.selected_node_id = None
        self.refresh()
        logger.info(f"Removed source node {node.path} ({len(removed)} records)")
        return True

    def delete_selection(self) -> bool:
        """Backspace/Delete: disconnect the selected edge or drop an unwired source."""
        if self.selected_edge_id:
            edge_id = self.selected_edge_id
            self.selected_edge_id = None
            return self.disconnect(edge_id) > 0
        node = self.selected_node
        if node is None or node.role is not NodeRole.SOURCE:
            return False
        return self.remove_orphan_source(node.id)
