# mlmd_viewer/graph/models.py
"""
Provenance graph models.

Core entities:
- NodeId: Tagged identifier (artifact or execution + integer id)
- Node: Fetched entity plus input/output event counters
- Edge: Directed lineage link annotated with its originating event
- ProvenanceGraph: Deduplicated nodes and the edge list
"""

from typing import Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field

from ..metadata.models import Artifact, EntityKind, Event, Execution

_PREFIXES = {
    EntityKind.ARTIFACT: "A",
    EntityKind.EXECUTION: "E",
}


@dataclass(frozen=True)
class NodeId:
    """
    Identity of a graph node.

    Equal iff same kind and same id. Displayed as "A7" / "E42".
    """
    kind: EntityKind
    id: int

    def __post_init__(self):
        if self.kind not in _PREFIXES:
            raise ValueError(f"graph nodes are artifacts or executions, not {self.kind.value}")

    @classmethod
    def artifact(cls, artifact_id: int) -> "NodeId":
        return cls(EntityKind.ARTIFACT, artifact_id)

    @classmethod
    def execution(cls, execution_id: int) -> "NodeId":
        return cls(EntityKind.EXECUTION, execution_id)

    @property
    def is_artifact(self) -> bool:
        return self.kind == EntityKind.ARTIFACT

    @property
    def sort_key(self) -> Tuple[str, int]:
        return (self.kind.value, self.id)

    def __str__(self) -> str:
        return f"{_PREFIXES[self.kind]}{self.id}"


@dataclass(frozen=True)
class Node:
    """
    Graph node.

    inputs/outputs count the node's own events by direction;
    UNKNOWN events count toward neither.
    """
    node_id: NodeId
    entity: Union[Artifact, Execution]
    inputs: int = 0
    outputs: int = 0

    @property
    def type_name(self) -> str:
        return self.entity.type_name or ""


@dataclass(frozen=True)
class Edge:
    """Lineage edge: source produced or supplied target."""
    source: NodeId
    target: NodeId
    event: Event


@dataclass
class ProvenanceGraph:
    """Result of a graph build from a single lineage seed."""
    seed: NodeId
    nodes: Dict[NodeId, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def get_node(self, node_id: NodeId) -> Optional[Node]:
        return self.nodes.get(node_id)

    def sorted_nodes(self) -> List[Node]:
        """Nodes ordered by (kind, id)."""
        return [self.nodes[k] for k in sorted(self.nodes, key=lambda n: n.sort_key)]

    def sorted_edges(self) -> List[Edge]:
        """Edges ordered by (source, target); insertion order among equals."""
        return sorted(self.edges, key=lambda e: (e.source.sort_key, e.target.sort_key))

    def get_edges_from(self, node_id: NodeId) -> List[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: NodeId) -> List[Edge]:
        return [e for e in self.edges if e.target == node_id]
