"""Endpoint-marked causal graphs.

Edges carry a mark at each end (tail, arrow or circle), which covers DAGs,
patterns (CPDAGs) and PAGs with one representation.
"""

from .edges import (
    bidirected_edge,
    directed_edge,
    nondirected_edge,
    partially_oriented_edge,
    traverse,
    traverse_directed,
    traverse_reverse_directed,
    traverse_semi_directed,
    undirected_edge,
)
from .store import EndpointMatrixGraph
from .types import (
    Edge,
    Endpoint,
    IndependenceAssertion,
    Node,
    NodeRef,
    Triple,
    TripleKind,
    VariableKind,
)

__all__ = [
    # Enums
    "Endpoint",
    "VariableKind",
    "TripleKind",
    # Dataclasses
    "Node",
    "Edge",
    "Triple",
    "IndependenceAssertion",
    "NodeRef",
    # Store
    "EndpointMatrixGraph",
    # Edge helpers
    "directed_edge",
    "undirected_edge",
    "bidirected_edge",
    "partially_oriented_edge",
    "nondirected_edge",
    "traverse",
    "traverse_directed",
    "traverse_reverse_directed",
    "traverse_semi_directed",
]
