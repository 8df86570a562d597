"""Shared fixtures for graph tests.

Canonical DAGs: chain, fork, collider, sprinkler.
Partially oriented graphs: a pattern with one undirected edge and a small PAG.
"""

from __future__ import annotations

import pytest

from pagkit.graph import (
    EndpointMatrixGraph,
    Node,
    directed_edge,
    nondirected_edge,
    partially_oriented_edge,
    undirected_edge,
)

# =============================================================================
# Helper
# =============================================================================


def _directed(*pairs: tuple[str, str]) -> EndpointMatrixGraph:
    return EndpointMatrixGraph.from_edges(directed_edge(Node(a), Node(b)) for a, b in pairs)


# =============================================================================
# DAG fixtures
# =============================================================================


@pytest.fixture
def chain_graph() -> EndpointMatrixGraph:
    """A → B → C"""
    return _directed(("A", "B"), ("B", "C"))


@pytest.fixture
def fork_graph() -> EndpointMatrixGraph:
    """B → A, B → C (B is a common cause)"""
    return EndpointMatrixGraph.from_edges(
        [directed_edge(Node("B"), Node("A")), directed_edge(Node("B"), Node("C"))],
        nodes=["A", "B", "C"],
    )


@pytest.fixture
def collider_graph() -> EndpointMatrixGraph:
    """A → B, C → B (B is a collider)"""
    return EndpointMatrixGraph.from_edges(
        [directed_edge(Node("A"), Node("B")), directed_edge(Node("C"), Node("B"))],
        nodes=["A", "B", "C"],
    )


@pytest.fixture
def sprinkler_graph() -> EndpointMatrixGraph:
    """Season → Rain, Season → Sprinkler, Rain → Wet, Sprinkler → Wet, Wet → Slippery"""
    return _directed(
        ("Season", "Rain"),
        ("Season", "Sprinkler"),
        ("Rain", "Wet"),
        ("Sprinkler", "Wet"),
        ("Wet", "Slippery"),
    )


# =============================================================================
# Partially oriented fixtures
# =============================================================================


@pytest.fixture
def pattern_graph() -> EndpointMatrixGraph:
    """X --- Y, Y → Z"""
    x, y, z = Node("X"), Node("Y"), Node("Z")
    graph = EndpointMatrixGraph.from_edges([undirected_edge(x, y), directed_edge(y, z)])
    graph.is_pattern = True
    return graph


@pytest.fixture
def pag_graph() -> EndpointMatrixGraph:
    """A o-> B, C o-> B, B o-o D"""
    a, b, c, d = Node("A"), Node("B"), Node("C"), Node("D")
    graph = EndpointMatrixGraph.from_edges(
        [partially_oriented_edge(a, b), partially_oriented_edge(c, b), nondirected_edge(b, d)]
    )
    graph.is_pag = True
    return graph
