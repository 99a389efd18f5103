"""
Graph Projection - derives the node/edge diagram from the record list.

``project_graph`` is a pure function of the records, the orphan sets, the
externally reported missing targets and the notation chosen per side.
The only state it touches is the caller's ``PositionCache``, which keeps
nodes where the reviewer left them across recomputation.

``GraphProjector`` wraps it with a structural signature so an unchanged
mapping set returns the previous projection untouched.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from mapperstudio.graph.models import (
    GraphEdge,
    GraphNode,
    GraphProjection,
    NodeRole,
    Position,
    edge_id,
    node_id,
)
from mapperstudio.mapper.mapping import MappingRecord
from mapperstudio.mapper.signature import combine, edge_signature, node_signature
from mapperstudio.paths import PathType, format_path, leaf, to_canonical

logger = logging.getLogger(__name__)

SOURCE_COLUMN_X = 40.0
TARGET_COLUMN_X = 500.0
ROW_TOP = 56.0
ROW_SPACING = 104.0


class PositionCache:
    """Node positions keyed by node identity, external to the projection."""

    def __init__(self):
        """Initialize cache."""
        self._positions: Dict[str, Position] = {}

    def get(self, node_id: str) -> Optional[Position]:
        return self._positions.get(node_id)

    def set(self, node_id: str, position: Position) -> None:
        self._positions[node_id] = position

    def resolve(self, node_id: str, default: Position) -> Position:
        """Known position, or record and return the default."""
        return self._positions.setdefault(node_id, default)

    def move(self, old_id: str, new_id: str) -> None:
        """Carry a position over to a renamed node."""
        if old_id in self._positions and new_id not in self._positions:
            self._positions[new_id] = self._positions.pop(old_id)

    def retain(self, node_ids: Iterable[str]) -> None:
        """Forget positions of nodes that are gone."""
        keep = set(node_ids)
        self._positions = {k: v for k, v in self._positions.items() if k in keep}

    def __len__(self) -> int:
        return len(self._positions)


def _unique(paths: Iterable[str]) -> List[str]:
    seen = {}
    for path in paths:
        canonical = to_canonical(path)
        if canonical and canonical not in seen:
            seen[canonical] = None
    return list(seen)


def _edge_label(record: MappingRecord) -> str:
    return f"{round(record.display_confidence * 100)}% {record.transform_type.value}"


def project_graph(
    records: Sequence[MappingRecord],
    orphan_sources: Iterable[str] = (),
    orphan_targets: Iterable[str] = (),
    missing_targets: Iterable[str] = (),
    source_path_type: PathType = PathType.JSON_PATH,
    target_path_type: PathType = PathType.JSON_PATH,
    positions: Optional[PositionCache] = None,
) -> GraphProjection:
    """
    Derive nodes and edges from the current mapping state.

    Args:
        records: Current mapping records, in store order
        orphan_sources: Source paths shown without a record
        orphan_targets: Target paths shown without a record
        missing_targets: Required target paths reported as unmapped
        source_path_type: Notation for source node labels
        target_path_type: Notation for target node labels
        positions: Position cache to read from and fill in

    Returns:
        GraphProjection whose edges only reference nodes it contains
    """
    positions = positions if positions is not None else PositionCache()
    missing = _unique(missing_targets)

    source_paths = _unique(
        [r.source_path for r in records] + list(orphan_sources)
    )
    target_paths = _unique(
        [r.target_path for r in records] + missing + list(orphan_targets)
    )

    active = [r for r in records if r.is_active]
    actively_mapped = {r.canonical_target for r in active}
    missing_set = set(missing)

    nodes: List[GraphNode] = []
    for idx, path in enumerate(source_paths):
        nid = node_id(NodeRole.SOURCE, path)
        nodes.append(
            GraphNode(
                id=nid,
                role=NodeRole.SOURCE,
                path=path,
                label=leaf(path, "-"),
                path_label=format_path(path, source_path_type),
                position=positions.resolve(
                    nid, Position(SOURCE_COLUMN_X, ROW_TOP + idx * ROW_SPACING)
                ),
            )
        )
    for idx, path in enumerate(target_paths):
        nid = node_id(NodeRole.TARGET, path)
        nodes.append(
            GraphNode(
                id=nid,
                role=NodeRole.TARGET,
                path=path,
                label=leaf(path, "-"),
                path_label=format_path(path, target_path_type),
                position=positions.resolve(
                    nid, Position(TARGET_COLUMN_X, ROW_TOP + idx * ROW_SPACING)
                ),
                missing=path in missing_set and path not in actively_mapped,
            )
        )

    edges: List[GraphEdge] = []
    seen_edges = set()
    for idx, record in enumerate(active):
        eid = edge_id(record.id or str(idx))
        if eid in seen_edges:
            eid = f"{eid}#{idx}"
        seen_edges.add(eid)
        edges.append(
            GraphEdge(
                id=eid,
                record_id=record.id,
                source=node_id(NodeRole.SOURCE, record.canonical_source),
                target=node_id(NodeRole.TARGET, record.canonical_target),
                label=_edge_label(record),
            )
        )

    positions.retain(n.id for n in nodes)
    return GraphProjection(nodes=nodes, edges=edges)


def projection_signature(
    records: Sequence[MappingRecord],
    orphan_sources: Iterable[str],
    orphan_targets: Iterable[str],
    missing_targets: Iterable[str],
    source_path_type: PathType,
    target_path_type: PathType,
    records_edge_signature: Optional[str] = None,
) -> str:
    """Structural signature of every input that shapes the projection."""
    orphan_sources = list(orphan_sources)
    orphan_targets = list(orphan_targets)
    missing_targets = list(missing_targets)
    nodes = node_signature(
        [r.source_path for r in records] + orphan_sources,
        [r.target_path for r in records] + orphan_targets + missing_targets,
    )
    return combine(
        records_edge_signature or edge_signature(records),
        nodes,
        node_signature([], missing_targets),
        PathType.from_value(source_path_type).value,
        PathType.from_value(target_path_type).value,
    )


class GraphProjector:
    """Re-derives the projection only when its structural inputs change."""

    def __init__(self, positions: Optional[PositionCache] = None):
        """Initialize projector."""
        self.positions = positions if positions is not None else PositionCache()
        self.current = GraphProjection()
        self.recompute_count = 0

    def refresh(
        self,
        records: Sequence[MappingRecord],
        orphan_sources: Iterable[str] = (),
        orphan_targets: Iterable[str] = (),
        missing_targets: Iterable[str] = (),
        source_path_type: PathType = PathType.JSON_PATH,
        target_path_type: PathType = PathType.JSON_PATH,
        records_edge_signature: Optional[str] = None,
        force: bool = False,
    ) -> GraphProjection:
        """
        Return the projection for the given state.

        The previous projection object is returned as-is when the
        signature is unchanged, so selections held against it stay valid.
        """
        orphan_sources = list(orphan_sources)
        orphan_targets = list(orphan_targets)
        missing_targets = list(missing_targets)
        signature = projection_signature(
            records,
            orphan_sources,
            orphan_targets,
            missing_targets,
            source_path_type,
            target_path_type,
            records_edge_signature,
        )
        if not force and signature == self.current.signature:
            return self.current

        projection = project_graph(
            records,
            orphan_sources,
            orphan_targets,
            missing_targets,
            source_path_type,
            target_path_type,
            self.positions,
        )
        projection.signature = signature
        self.current = projection
        self.recompute_count += 1
        logger.debug(
            f"Projection recomputed: {len(projection.nodes)} nodes, {len(projection.edges)} edges"
        )
        return projection

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        """Record a drag of a node that exists in the current projection."""
        if not self.current.has_node(node_id):
            return False
        position = Position(float(x), float(y))
        self.positions.set(node_id, position)
        self.current.with_position(node_id, position)
        return True
