# mlmd_viewer/graph/builder.py
"""
Provenance graph builder.

Worklist traversal from one seed node over MLMD events:
- Each distinct NodeId is fetched and expanded exactly once
- Lineage edges are recorded only for produced/consumed events
- The build fails once more than MAX_GRAPH_NODES nodes are discovered

All traversal state lives inside build_graph, so concurrent
requests never share anything.
"""

from typing import Dict, List

from ..logging import get_logger
from ..metadata.models import EntityKind, Event
from .fetcher import fetch_entity
from .models import Edge, Node, NodeId, ProvenanceGraph

logger = get_logger(__name__)

# Hard ceiling on distinct entities per graph
MAX_GRAPH_NODES = 100


class TooManyNodes(Exception):
    """Raised when a build discovers more nodes than MAX_GRAPH_NODES."""

    def __init__(self, seed: NodeId, limit: int = MAX_GRAPH_NODES):
        self.seed = seed
        self.limit = limit
        super().__init__(
            f"provenance graph for {seed} has more than {limit} nodes; "
            "too large to visualize"
        )


def count_event_directions(events: List[Event]) -> Dict[str, int]:
    """Count input-typed and output-typed events."""
    inputs = sum(1 for e in events if e.type.is_input)
    outputs = sum(1 for e in events if e.type.is_output)
    return {"inputs": inputs, "outputs": outputs}


def build_graph(store, seed: NodeId) -> ProvenanceGraph:
    """
    Build the provenance graph around a seed artifact or execution.

    An artifact seed walks upstream: producing executions, their inputs,
    and so on. The seed itself also pulls in the executions that consumed
    it, without an edge. An execution seed walks downstream by the mirror
    rule.

    Args:
        store: Metadata store (get_entity/get_type/get_events_for)
        seed: Lineage seed

    Returns:
        ProvenanceGraph with at most MAX_GRAPH_NODES nodes

    Raises:
        NotFound: If the seed or any reached entity is missing
        InconsistentStoreError: If a reached entity's type is missing
        TooManyNodes: If the node ceiling is exceeded
    """
    graph = ProvenanceGraph(seed=seed)
    worklist: List[NodeId] = [seed]

    logger.info("graph_build_started", seed=str(seed))

    while worklist:
        curr = worklist.pop()
        if curr in graph.nodes:
            continue

        entity = fetch_entity(store, curr.kind, curr.id)
        events = store.get_events_for(curr.kind, curr.id)
        counts = count_event_directions(events)

        graph.nodes[curr] = Node(
            node_id=curr,
            entity=entity,
            inputs=counts["inputs"],
            outputs=counts["outputs"],
        )
        logger.debug(
            "graph_node_visited",
            node=str(curr),
            events=len(events),
            **counts,
        )
        if len(graph.nodes) > MAX_GRAPH_NODES:
            logger.warning("graph_node_limit_exceeded", seed=str(seed), limit=MAX_GRAPH_NODES)
            raise TooManyNodes(seed)

        for event in events:
            _expand(graph, worklist, seed, curr, event)

    logger.info(
        "graph_build_finished",
        seed=str(seed),
        node_count=graph.node_count,
        edge_count=graph.edge_count,
    )
    return graph


def _expand(
    graph: ProvenanceGraph,
    worklist: List[NodeId],
    seed: NodeId,
    curr: NodeId,
    event: Event,
) -> None:
    """Apply the neighbor/edge rule for one event of the current node."""
    artifact = NodeId.artifact(event.artifact_id)
    execution = NodeId.execution(event.execution_id)

    if seed.kind == EntityKind.ARTIFACT:
        if curr.kind == EntityKind.ARTIFACT:
            # Seed-identity events surface the seed's consumers, edge-less
            if event.artifact_id == seed.id or event.type.is_output:
                worklist.append(execution)
            if event.type.is_output:
                graph.edges.append(Edge(source=execution, target=curr, event=event))
        elif event.type.is_input:
            worklist.append(artifact)
            graph.edges.append(Edge(source=artifact, target=curr, event=event))
    else:
        if curr.kind == EntityKind.EXECUTION:
            if event.execution_id == seed.id or event.type.is_output:
                worklist.append(artifact)
            if event.type.is_output:
                graph.edges.append(Edge(source=curr, target=artifact, event=event))
        elif event.type.is_input:
            worklist.append(execution)
            graph.edges.append(Edge(source=curr, target=execution, event=event))
