"""Derived diagram types: nodes, edges and the projection that holds them."""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple


class NodeRole(str, Enum):
    """Which side of the mapping a node sits on."""

    SOURCE = "source"
    TARGET = "target"

    @property
    def prefix(self) -> str:
        return "s" if self is NodeRole.SOURCE else "t"


_PREFIXES = {"s": NodeRole.SOURCE, "t": NodeRole.TARGET}


def node_id(role: NodeRole, path: str) -> str:
    """Stable node identity: ``s:<path>`` or ``t:<path>``."""
    return f"{role.prefix}:{path}"


def parse_node_id(value: str) -> Optional[Tuple[NodeRole, str]]:
    """Split a node id back into role and path; None for anything else."""
    if not isinstance(value, str) or ":" not in value:
        return None
    prefix, path = value.split(":", 1)
    role = _PREFIXES.get(prefix)
    if role is None or not path:
        return None
    return role, path


def edge_id(record_id: str) -> str:
    """Stable edge identity derived from the backing record."""
    return f"e|{record_id}"


@dataclass(frozen=True)
class Position:
    """On-screen node position."""

    x: float
    y: float


@dataclass(frozen=True)
class GraphNode:
    """One visual endpoint; identity is role + canonical path."""

    id: str
    role: NodeRole
    path: str
    label: str
    path_label: str
    position: Position
    missing: bool = False


@dataclass(frozen=True)
class GraphEdge:
    """One active mapping record drawn between its two nodes."""

    id: str
    record_id: str
    source: str
    target: str
    label: str


@dataclass
class GraphProjection:
    """Nodes and edges derived from the record list at one point in time."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    signature: str = ""
    _node_index: Dict[str, GraphNode] = field(default_factory=dict, repr=False)
    _edge_index: Dict[str, GraphEdge] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self._node_index = {n.id: n for n in self.nodes}
        self._edge_index = {e.id: e for e in self.edges}

    def node(self, node_id: str) -> Optional[GraphNode]:
        return self._node_index.get(node_id)

    def edge(self, edge_id: str) -> Optional[GraphEdge]:
        return self._edge_index.get(edge_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_index

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edge_index

    def nodes_for(self, role: NodeRole) -> List[GraphNode]:
        return [n for n in self.nodes if n.role is role]

    def with_position(self, node_id: str, position: Position) -> None:
        """Swap in a moved node without re-deriving anything else."""
        for idx, node in enumerate(self.nodes):
            if node.id == node_id:
                moved = replace(node, position=position)
                self.nodes[idx] = moved
                self._node_index[node_id] = moved
                return
