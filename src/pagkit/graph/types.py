"""Graph type system — endpoint marks, nodes, edges, triples.

Every other graph module imports from here. Edges are value objects: the
store keeps only an endpoint matrix and builds ``Edge`` views on demand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# =============================================================================
# Enums
# =============================================================================


class Endpoint(StrEnum):
    """Mark at one end of an edge."""

    TAIL = "tail"
    ARROW = "arrow"
    CIRCLE = "circle"


class VariableKind(StrEnum):
    """Measurement kind of the variable behind a node."""

    CONTINUOUS = "continuous"
    DISCRETE = "discrete"
    LATENT = "latent"


class TripleKind(StrEnum):
    """Classification recorded for a node triple."""

    AMBIGUOUS = "ambiguous"
    UNDERLINE = "underline"
    DOTTED_UNDERLINE = "dotted_underline"


# Textual marks, as drawn next to the node they belong to.
_LEFT_MARKS = {Endpoint.TAIL: "-", Endpoint.ARROW: "<", Endpoint.CIRCLE: "o"}
_RIGHT_MARKS = {Endpoint.TAIL: "-", Endpoint.ARROW: ">", Endpoint.CIRCLE: "o"}


# =============================================================================
# Dataclasses
# =============================================================================


@dataclass(frozen=True)
class Node:
    """A variable in a causal graph.

    Identity is by name: two nodes with the same name are the same node,
    whatever their kind or annotations.
    """

    name: str
    kind: VariableKind = field(default=VariableKind.CONTINUOUS, compare=False)
    attributes: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, eq=False)
class Edge:
    """An edge between two nodes with a mark at each end.

    ``endpoint1`` is the mark nearest ``node1`` and ``endpoint2`` the mark
    nearest ``node2``, so ``Edge(a, b, TAIL, ARROW)`` is ``a --> b``.
    """

    node1: Node
    node2: Node
    endpoint1: Endpoint
    endpoint2: Endpoint

    # ------------------------------------------------------------------
    # Endpoint queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> tuple[Node, Node]:
        return (self.node1, self.node2)

    def proximal_endpoint(self, node: Node) -> Endpoint:
        """The mark at *node*'s end of this edge."""
        if node == self.node1:
            return self.endpoint1
        if node == self.node2:
            return self.endpoint2
        raise ValueError(f"{node} is not on edge {self}")

    def distal_endpoint(self, node: Node) -> Endpoint:
        """The mark at the far end of this edge, seen from *node*."""
        if node == self.node1:
            return self.endpoint2
        if node == self.node2:
            return self.endpoint1
        raise ValueError(f"{node} is not on edge {self}")

    def distal_node(self, node: Node) -> Node:
        """The node at the other end of this edge."""
        if node == self.node1:
            return self.node2
        if node == self.node2:
            return self.node1
        raise ValueError(f"{node} is not on edge {self}")

    def points_towards(self, node: Node) -> bool:
        """True if the edge has an arrowhead at *node* and none at the other end."""
        return self.proximal_endpoint(node) == Endpoint.ARROW and self.distal_endpoint(
            node
        ) in (Endpoint.TAIL, Endpoint.CIRCLE)

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    def is_directed(self) -> bool:
        return {self.endpoint1, self.endpoint2} == {Endpoint.TAIL, Endpoint.ARROW}

    def is_undirected(self) -> bool:
        return self.endpoint1 == self.endpoint2 == Endpoint.TAIL

    def is_bidirected(self) -> bool:
        return self.endpoint1 == self.endpoint2 == Endpoint.ARROW

    def is_nondirected(self) -> bool:
        return self.endpoint1 == self.endpoint2 == Endpoint.CIRCLE

    def is_partially_oriented(self) -> bool:
        return {self.endpoint1, self.endpoint2} == {Endpoint.CIRCLE, Endpoint.ARROW}

    def reversed(self) -> Edge:
        """The same edge seen from the other end."""
        return Edge(self.node2, self.node1, self.endpoint2, self.endpoint1)

    # ------------------------------------------------------------------
    # Value semantics
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        if self.node1 == other.node1 and self.node2 == other.node2:
            return self.endpoint1 == other.endpoint1 and self.endpoint2 == other.endpoint2
        if self.node1 == other.node2 and self.node2 == other.node1:
            return self.endpoint1 == other.endpoint2 and self.endpoint2 == other.endpoint1
        return False

    def __hash__(self) -> int:
        return hash(frozenset({(self.node1, self.endpoint1), (self.node2, self.endpoint2)}))

    def __str__(self) -> str:
        return (
            f"{self.node1.name} {_LEFT_MARKS[self.endpoint1]}-"
            f"{_RIGHT_MARKS[self.endpoint2]} {self.node2.name}"
        )


@dataclass(frozen=True)
class Triple:
    """An ordered triple ``<x, y, z>`` of distinct nodes centred on ``y``."""

    x: Node
    y: Node
    z: Node

    def __post_init__(self) -> None:
        if len({self.x, self.y, self.z}) != 3:
            raise ValueError(f"Triple nodes must be distinct: {self}")

    def __str__(self) -> str:
        return f"<{self.x}, {self.y}, {self.z}>"


@dataclass
class IndependenceAssertion:
    """Result of a d-separation query."""

    x: frozenset[str]
    y: frozenset[str]
    z: frozenset[str]
    is_independent: bool
    method: str  # "d_separation", "possible_d_connection"


NodeRef = Node | str
"""A node or its name; graph queries accept either."""
