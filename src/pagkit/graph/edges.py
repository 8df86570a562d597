"""Edge factories and traversal helpers.

The traversal helpers answer "can a path leave *node* along *edge*, and
where does it land?" for the path kinds the store searches: any path,
directed paths, reverse-directed paths and semi-directed paths.
"""

from __future__ import annotations

from .types import Edge, Endpoint, Node

# =============================================================================
# Factories
# =============================================================================


def directed_edge(node1: Node, node2: Node) -> Edge:
    """``node1 --> node2``"""
    return Edge(node1, node2, Endpoint.TAIL, Endpoint.ARROW)


def undirected_edge(node1: Node, node2: Node) -> Edge:
    """``node1 --- node2``"""
    return Edge(node1, node2, Endpoint.TAIL, Endpoint.TAIL)


def bidirected_edge(node1: Node, node2: Node) -> Edge:
    """``node1 <-> node2``"""
    return Edge(node1, node2, Endpoint.ARROW, Endpoint.ARROW)


def partially_oriented_edge(node1: Node, node2: Node) -> Edge:
    """``node1 o-> node2``"""
    return Edge(node1, node2, Endpoint.CIRCLE, Endpoint.ARROW)


def nondirected_edge(node1: Node, node2: Node) -> Edge:
    """``node1 o-o node2``"""
    return Edge(node1, node2, Endpoint.CIRCLE, Endpoint.CIRCLE)


# =============================================================================
# Traversal
# =============================================================================


def traverse(node: Node, edge: Edge) -> Node | None:
    """The other end of *edge* if *node* is on it."""
    if node == edge.node1:
        return edge.node2
    if node == edge.node2:
        return edge.node1
    return None


def traverse_directed(node: Node, edge: Edge) -> Node | None:
    """The child reached from *node* if *edge* is ``node --> child``."""
    if node not in edge.nodes or not edge.is_directed():
        return None
    if edge.proximal_endpoint(node) == Endpoint.TAIL:
        return edge.distal_node(node)
    return None


def traverse_reverse_directed(node: Node, edge: Edge) -> Node | None:
    """The parent reached from *node* if *edge* is ``parent --> node``."""
    if node not in edge.nodes or not edge.is_directed():
        return None
    if edge.proximal_endpoint(node) == Endpoint.ARROW:
        return edge.distal_node(node)
    return None


def traverse_semi_directed(node: Node, edge: Edge) -> Node | None:
    """The far node if the mark at *node* could still be a tail.

    A semi-directed path may leave a node through a TAIL or CIRCLE mark;
    an arrowhead at *node* blocks it.
    """
    if node not in edge.nodes:
        return None
    if edge.proximal_endpoint(node) in (Endpoint.TAIL, Endpoint.CIRCLE):
        return edge.distal_node(node)
    return None
