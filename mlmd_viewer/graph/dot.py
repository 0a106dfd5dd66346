# mlmd_viewer/graph/dot.py
"""
Graphviz DOT serialization of a provenance graph.

Pure and deterministic: nodes are emitted sorted by NodeId and
edges by (source, target), so identical graphs render identically.
"""

from typing import List

from .models import Edge, Node, ProvenanceGraph


def quote(value: str) -> str:
    """Quote a DOT string, escaping backslashes, quotes and newlines."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "")
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


def node_url(node: Node, base_url: str = "") -> str:
    """Deep link to the entity's detail view."""
    collection = "artifacts" if node.node_id.is_artifact else "executions"
    return f"{base_url.rstrip('/')}/{collection}/{node.node_id.id}"


def node_label(node: Node) -> str:
    return "\n".join([
        str(node.node_id),
        node.type_name,
        f"in={node.inputs},out={node.outputs}",
    ])


def edge_label(edge: Edge) -> str:
    label = edge.event.type.name
    if edge.event.path:
        label += f"\n[{edge.event.path_display()}]"
    return label


def render_dot(graph: ProvenanceGraph, base_url: str = "") -> str:
    """
    Render a graph as a DOT digraph.

    Args:
        graph: Built provenance graph
        base_url: Prefix for node URL attributes

    Returns:
        DOT text, newline-terminated
    """
    lines: List[str] = ["digraph provenance {"]

    for node in graph.sorted_nodes():
        shape = "ellipse" if node.node_id.is_artifact else "box"
        lines.append(
            f"  {quote(str(node.node_id))} "
            f"[label={quote(node_label(node))}, shape={shape}, "
            f"URL={quote(node_url(node, base_url))}];"
        )

    for edge in graph.sorted_edges():
        lines.append(
            f"  {quote(str(edge.source))} -> {quote(str(edge.target))} "
            f"[label={quote(edge_label(edge))}];"
        )

    lines.append("}")
    return "\n".join(lines) + "\n"
