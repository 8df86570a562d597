"""EndpointMatrixGraph — node/edge store backed by an endpoint matrix.

Nodes live in an insertion-ordered list; their position in that list
indexes a square ``int8`` matrix. Cell ``[i, j]`` holds the mark at node
j's end of the edge between nodes i and j (0 = no edge), so every edge
occupies exactly two cells and a pair can never carry two edges.

Removing a node deletes its row and column and rebuilds the position map.
Removals also bump a generation counter; recorded triples carry the
generation at which they were last validated and are re-checked lazily
the next time a triple set is read.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from typing import Any

import networkx as nx
import numpy as np

from pagkit.errors import (
    OverDeterminedError,
    StructuralViolationError,
    UnknownNodeError,
    UnsupportedQueryError,
)

from .edges import (
    bidirected_edge,
    directed_edge,
    nondirected_edge,
    partially_oriented_edge,
    undirected_edge,
)
from .types import Edge, Endpoint, Node, NodeRef, Triple, TripleKind

logger = logging.getLogger(__name__)

_NO_EDGE = 0
_CODES: dict[Endpoint, int] = {Endpoint.TAIL: 1, Endpoint.ARROW: 2, Endpoint.CIRCLE: 3}
_MARKS: dict[int, Endpoint] = {code: mark for mark, code in _CODES.items()}
_TAIL = _CODES[Endpoint.TAIL]
_ARROW = _CODES[Endpoint.ARROW]
_CIRCLE = _CODES[Endpoint.CIRCLE]


class EndpointMatrixGraph:
    """Mutable causal graph with per-endpoint marks.

    Not safe for concurrent mutation; concurrent reads of an unchanging
    graph are fine since queries only read the matrix and index maps.
    """

    def __init__(self, nodes: Iterable[NodeRef] | None = None) -> None:
        self._nodes: list[Node] = []
        self._positions: dict[str, int] = {}
        self._matrix = np.zeros((0, 0), dtype=np.int8)
        self._triples: dict[TripleKind, dict[Triple, int]] = {kind: {} for kind in TripleKind}
        self._generation = 0
        self._highlighted: set[Edge] = set()
        self._attributes: dict[str, Any] = {}
        self.is_pag = False
        self.is_pattern = False

        for node in nodes or ():
            if not self.add_node(node):
                raise StructuralViolationError(f"Duplicate node name: {_name_of(node)}")

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[Edge],
        nodes: Iterable[NodeRef] | None = None,
    ) -> EndpointMatrixGraph:
        """Build a graph from explicit edges (useful for testing).

        Args:
            edges: Edges to add, in order.
            nodes: Optional node list fixing the node order. If absent,
                nodes are taken from the edges in order of appearance.
        """
        edges = list(edges)
        graph = cls(nodes)
        for edge in edges:
            for node in edge.nodes:
                if node.name not in graph._positions:
                    graph.add_node(node)
            if not graph.add_edge(edge):
                raise StructuralViolationError(f"Second edge between {edge.node1} and {edge.node2}")
        return graph

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        """Nodes in insertion order."""
        return list(self._nodes)

    @property
    def node_names(self) -> list[str]:
        return [node.name for node in self._nodes]

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, ref: object) -> bool:
        if isinstance(ref, Node | str):
            return _name_of(ref) in self._positions
        return False

    def contains_node(self, ref: NodeRef) -> bool:
        return ref in self

    def resolve(self, ref: NodeRef) -> Node:
        """This graph's node for *ref*.

        Raises:
            UnknownNodeError: If no node of that name exists.
        """
        return self._nodes[self._pos(ref)]

    def get_node(self, name: str) -> Node | None:
        """The node with the given name, or None."""
        pos = self._positions.get(name)
        return None if pos is None else self._nodes[pos]

    def add_node(self, ref: NodeRef) -> bool:
        """Add a node. Returns False if a node of that name already exists."""
        node = Node(ref) if isinstance(ref, str) else ref
        if node.name in self._positions:
            return False

        n = len(self._nodes)
        if n == self._matrix.shape[0]:
            self._grow(max(4, 2 * n))
        self._nodes.append(node)
        self._positions[node.name] = n
        return True

    def remove_node(self, ref: NodeRef) -> bool:
        """Remove a node and, implicitly, every edge touching it."""
        name = _name_of(ref)
        pos = self._positions.get(name)
        if pos is None:
            return False

        live = self._live
        self._matrix = np.delete(np.delete(live, pos, axis=0), pos, axis=1)
        del self._nodes[pos]
        self._positions = {node.name: i for i, node in enumerate(self._nodes)}
        self._highlighted = {
            e for e in self._highlighted if name not in (e.node1.name, e.node2.name)
        }
        self._generation += 1
        logger.debug("Removed node %s (triple generation %d)", name, self._generation)
        return True

    def remove_nodes(self, refs: Iterable[NodeRef]) -> bool:
        changed = False
        for ref in list(refs):
            changed = self.remove_node(ref) or changed
        return changed

    # ------------------------------------------------------------------
    # Edges: mutation
    # ------------------------------------------------------------------

    def add_edge(self, edge: Edge) -> bool:
        """Add an edge. Returns False if the pair is already adjacent."""
        i = self._pos(edge.node1)
        j = self._pos(edge.node2)
        if i == j:
            raise StructuralViolationError(f"Self loops are not representable: {edge}")
        if self._matrix[i, j] != _NO_EDGE or self._matrix[j, i] != _NO_EDGE:
            return False

        self._matrix[j, i] = _CODES[edge.endpoint1]
        self._matrix[i, j] = _CODES[edge.endpoint2]
        return True

    def add_directed_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.add_edge(directed_edge(self._node(node1), self._node(node2)))

    def add_undirected_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.add_edge(undirected_edge(self._node(node1), self._node(node2)))

    def add_bidirected_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.add_edge(bidirected_edge(self._node(node1), self._node(node2)))

    def add_partially_oriented_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.add_edge(partially_oriented_edge(self._node(node1), self._node(node2)))

    def add_nondirected_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.add_edge(nondirected_edge(self._node(node1), self._node(node2)))

    def remove_edge(self, node1: NodeRef, node2: NodeRef) -> bool:
        """Remove the edge between two nodes. Returns False if there is none."""
        i, j = self._pos(node1), self._pos(node2)
        edges = self._edges_between(i, j)
        if len(edges) > 1:
            raise OverDeterminedError(f"More than one edge between {node1} and {node2}")
        if not edges:
            return False

        self._matrix[i, j] = _NO_EDGE
        self._matrix[j, i] = _NO_EDGE
        pair = {self._nodes[i], self._nodes[j]}
        self._highlighted = {e for e in self._highlighted if set(e.nodes) != pair}
        self._generation += 1
        return True

    def remove_edges(self, edges: Iterable[Edge]) -> bool:
        """Remove each given edge that is present with exactly those marks."""
        changed = False
        for edge in list(edges):
            if self.contains_edge(edge):
                changed = self.remove_edge(edge.node1, edge.node2) or changed
        return changed

    def set_endpoint(self, from_node: NodeRef, to_node: NodeRef, endpoint: Endpoint) -> bool:
        """Set the mark at *to_node* on the edge between the two nodes.

        With no edge present, adds ``from_node --<endpoint> to_node`` with a
        tail at *from_node*. With one edge present, replaces only the mark at
        *to_node* and keeps the mark at *from_node*.
        """
        i, j = self._pos(from_node), self._pos(to_node)
        edges = self._edges_between(i, j)
        if len(edges) > 1:
            raise OverDeterminedError(
                f"Endpoint between {from_node} and {to_node} is over-determined"
            )
        if not edges:
            return self.add_edge(Edge(self._nodes[i], self._nodes[j], Endpoint.TAIL, endpoint))

        self._matrix[i, j] = _CODES[endpoint]
        return True

    def fully_connect(self, endpoint: Endpoint) -> None:
        """Replace all edges with ``endpoint``-``endpoint`` edges between every pair."""
        live = self._live
        live[:, :] = _CODES[endpoint]
        np.fill_diagonal(live, _NO_EDGE)

    def reorient_all_with(self, endpoint: Endpoint) -> None:
        """Set every mark of every existing edge to *endpoint*."""
        live = self._live
        live[live != _NO_EDGE] = _CODES[endpoint]

    def clear(self) -> None:
        """Remove every edge; nodes stay."""
        self._live[:, :] = _NO_EDGE
        self._highlighted.clear()
        self._generation += 1

    # ------------------------------------------------------------------
    # Edges: queries
    # ------------------------------------------------------------------

    def get_edge(self, node1: NodeRef, node2: NodeRef) -> Edge | None:
        """The edge between two nodes, oriented from *node1*, or None."""
        edges = self._edges_between(self._pos(node1), self._pos(node2))
        return edges[0] if edges else None

    def get_endpoint(self, node1: NodeRef, node2: NodeRef) -> Endpoint | None:
        """The mark at *node2*'s end of the edge from *node1*, or None."""
        return _MARKS.get(int(self._matrix[self._pos(node1), self._pos(node2)]))

    def edges(self) -> list[Edge]:
        """All edges, ordered by node position of their first node."""
        live = self._live
        rows, cols = np.nonzero(np.triu(live != _NO_EDGE, k=1))
        return [self._edge_at(int(i), int(j)) for i, j in zip(rows, cols)]

    def edges_of(self, ref: NodeRef) -> list[Edge]:
        """Edges touching a node, each oriented from that node."""
        i = self._pos(ref)
        return [self._edge_at(i, j) for j in self._adjacent_positions(i)]

    def contains_edge(self, edge: Edge) -> bool:
        """True if exactly this edge, marks included, is in the graph."""
        if edge.node1 not in self or edge.node2 not in self:
            return False
        return self.get_edge(edge.node1, edge.node2) == edge

    @property
    def num_edges(self) -> int:
        return int(np.count_nonzero(self._live)) // 2

    def num_edges_of(self, ref: NodeRef) -> int:
        return len(self._adjacent_positions(self._pos(ref)))

    def degree(self, ref: NodeRef) -> int:
        """Number of edges incident to a node, whatever their marks."""
        return self.num_edges_of(ref)

    def indegree(self, ref: NodeRef) -> int:
        return len(self._parent_positions(self._pos(ref)))

    def outdegree(self, ref: NodeRef) -> int:
        return len(self._child_positions(self._pos(ref)))

    @property
    def connectivity(self) -> int:
        """Maximum degree over all nodes (0 for an empty graph)."""
        if not self._nodes:
            return 0
        return int(np.count_nonzero(self._live, axis=0).max())

    def endpoint_matrix(self) -> list[list[Endpoint | None]]:
        """Marks as a nested list: ``[i][j]`` is the mark at node j's end."""
        return [[_MARKS.get(int(code)) for code in row] for row in self._live]

    # ------------------------------------------------------------------
    # Adjacency, parents, children
    # ------------------------------------------------------------------

    def get_adjacent_nodes(self, ref: NodeRef) -> list[Node]:
        return self._as_nodes(self._adjacent_positions(self._pos(ref)))

    def get_parents(self, ref: NodeRef) -> list[Node]:
        return self._as_nodes(self._parent_positions(self._pos(ref)))

    def get_children(self, ref: NodeRef) -> list[Node]:
        return self._as_nodes(self._child_positions(self._pos(ref)))

    def nodes_into(self, ref: NodeRef, endpoint: Endpoint) -> list[Node]:
        """Neighbours whose edge carries *endpoint* at this node's end."""
        i = self._pos(ref)
        return self._as_nodes(np.flatnonzero(self._live[:, i] == _CODES[endpoint]))

    def nodes_out_of(self, ref: NodeRef, endpoint: Endpoint) -> list[Node]:
        """Neighbours whose edge carries *endpoint* at the neighbour's end."""
        i = self._pos(ref)
        return self._as_nodes(np.flatnonzero(self._live[i, :] == _CODES[endpoint]))

    def is_adjacent_to(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self._matrix[self._pos(node1), self._pos(node2)] != _NO_EDGE

    def is_parent_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        """True if ``node1 --> node2``."""
        i, j = self._pos(node1), self._pos(node2)
        return self._matrix[j, i] == _TAIL and self._matrix[i, j] == _ARROW

    def is_child_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.is_parent_of(node2, node1)

    def is_directed_from_to(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.is_parent_of(node1, node2)

    def is_undirected_from_to(self, node1: NodeRef, node2: NodeRef) -> bool:
        i, j = self._pos(node1), self._pos(node2)
        return self._matrix[j, i] == _TAIL and self._matrix[i, j] == _TAIL

    def is_exogenous(self, ref: NodeRef) -> bool:
        """True if the node has no parents."""
        return self.indegree(ref) == 0

    # ------------------------------------------------------------------
    # Ancestry and paths
    # ------------------------------------------------------------------

    def get_ancestors(self, refs: Iterable[NodeRef]) -> frozenset[Node]:
        """The given nodes plus everything with a directed path into them."""
        return self._closure(refs, self._parent_positions)

    def get_descendants(self, refs: Iterable[NodeRef]) -> frozenset[Node]:
        """The given nodes plus everything reachable along directed paths."""
        return self._closure(refs, self._child_positions)

    def exists_directed_path_from_to(self, node1: NodeRef, node2: NodeRef) -> bool:
        """True if a directed path of length >= 1 leads from *node1* to *node2*."""
        return self._reaches(self._pos(node1), {self._pos(node2)}, self._child_positions)

    def exists_undirected_path(self, node1: NodeRef, node2: NodeRef) -> bool:
        """True if any path, ignoring marks, connects the two nodes."""
        return self._reaches(self._pos(node1), {self._pos(node2)}, self._adjacent_positions)

    def exists_semi_directed_path(
        self, node1: NodeRef, targets: Iterable[NodeRef]
    ) -> bool:
        """True if a semi-directed path leads from *node1* into *targets*.

        Each step leaves through a TAIL or CIRCLE mark, so the path could
        still turn out directed once circles are resolved.
        """
        goals = {self._pos(t) for t in targets}
        return self._reaches(self._pos(node1), goals, self._semi_directed_positions)

    def exists_directed_cycle(self) -> bool:
        return any(self.exists_directed_path_from_to(node, node) for node in self._nodes)

    def exists_trek(self, node1: NodeRef, node2: NodeRef) -> bool:
        """True if some node is an ancestor of both (either may be that node)."""
        return bool(self.get_ancestors([node1]) & self.get_ancestors([node2]))

    def is_ancestor_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        return _name_of(node1) == _name_of(node2) or self.is_proper_ancestor_of(node1, node2)

    def is_proper_ancestor_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.exists_directed_path_from_to(node1, node2)

    def is_descendant_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.is_ancestor_of(node2, node1)

    def is_proper_descendant_of(self, node1: NodeRef, node2: NodeRef) -> bool:
        return self.exists_directed_path_from_to(node2, node1)

    def possible_ancestor(self, node1: NodeRef, node2: NodeRef) -> bool:
        """True if *node1* is *node2* or reaches it by a semi-directed path."""
        if _name_of(node1) == _name_of(node2):
            return True
        return self.exists_semi_directed_path(node1, [node2])

    def causal_ordering(self) -> list[Node]:
        """Topological order of the directed part of the graph.

        Ties break by insertion order. Non-directed edges impose no order.
        """
        digraph = nx.DiGraph()
        digraph.add_nodes_from(self._positions)
        for edge in self.edges():
            if edge.is_directed():
                tail, head = (
                    (edge.node1, edge.node2)
                    if edge.endpoint2 == Endpoint.ARROW
                    else (edge.node2, edge.node1)
                )
                digraph.add_edge(tail.name, head.name)
        try:
            order = nx.lexicographical_topological_sort(digraph, key=self._positions.__getitem__)
            return [self._nodes[self._positions[name]] for name in order]
        except nx.NetworkXUnfeasible as err:
            raise UnsupportedQueryError("Graph has a directed cycle; no causal ordering") from err

    # ------------------------------------------------------------------
    # Colliders
    # ------------------------------------------------------------------

    def is_def_collider(self, node1: NodeRef, node2: NodeRef, node3: NodeRef) -> bool:
        """True if both edges of ``node1 - node2 - node3`` have an arrowhead at node2."""
        i, j, k = self._pos(node1), self._pos(node2), self._pos(node3)
        if self._matrix[i, j] == _NO_EDGE or self._matrix[j, k] == _NO_EDGE:
            raise StructuralViolationError(
                f"<{_name_of(node1)}, {_name_of(node2)}, {_name_of(node3)}> is not along a path"
            )
        return self._matrix[i, j] == _ARROW and self._matrix[k, j] == _ARROW

    def is_def_noncollider(self, node1: NodeRef, node2: NodeRef, node3: NodeRef) -> bool:
        """True if node2 is certainly not a collider on ``node1 - node2 - node3``.

        Holds when either edge points away from node2, when the triple is
        recorded as an underline triple, or when both marks at node2 are
        circles and the outer nodes are not adjacent.
        """
        i, j, k = self._pos(node1), self._pos(node2), self._pos(node3)
        m = self._matrix
        if m[j, i] == _ARROW and m[i, j] in (_TAIL, _CIRCLE):
            return True
        if m[j, k] == _ARROW and m[k, j] in (_TAIL, _CIRCLE):
            return True
        x, y, z = self._nodes[i], self._nodes[j], self._nodes[k]
        if self._has_live_triple(TripleKind.UNDERLINE, self._triple(x, y, z)):
            return True
        if self._has_live_triple(TripleKind.UNDERLINE, self._triple(z, y, x)):
            return True
        return m[i, j] == _CIRCLE and m[k, j] == _CIRCLE and m[i, k] == _NO_EDGE

    def def_visible(self, edge: Edge) -> bool:
        """True if the directed edge ``a --> b`` is definitely visible.

        Visible when some ``c *-> a`` exists with c not adjacent to b.

        Raises:
            StructuralViolationError: If the edge is not in the graph or is
                not directed.
        """
        if not self.contains_edge(edge) or not edge.is_directed():
            raise StructuralViolationError(f"{edge} is not a directed edge of this graph")
        a, b = (
            (edge.node1, edge.node2)
            if edge.endpoint2 == Endpoint.ARROW
            else (edge.node2, edge.node1)
        )
        ia, ib = self._pos(a), self._pos(b)
        for ic in self._adjacent_positions(ia):
            if ic == ib:
                continue
            if self._matrix[ic, ia] == _ARROW and self._matrix[ic, ib] == _NO_EDGE:
                return True
        return False

    # ------------------------------------------------------------------
    # Triples
    # ------------------------------------------------------------------

    def add_triple(self, kind: TripleKind, x: NodeRef, y: NodeRef, z: NodeRef) -> None:
        """Record ``<x, y, z>`` under *kind*.

        Raises:
            StructuralViolationError: If x-y and y-z are not both edges.
        """
        triple = self._triple(x, y, z)
        if not self._along_path(triple):
            raise StructuralViolationError(f"{triple} must lie along a path in the graph")
        self._triples[kind][triple] = self._generation

    def remove_triple(self, kind: TripleKind, x: NodeRef, y: NodeRef, z: NodeRef) -> None:
        self._triples[kind].pop(self._triple(x, y, z), None)

    def is_triple(self, kind: TripleKind, x: NodeRef, y: NodeRef, z: NodeRef) -> bool:
        self._purge_stale_triples()
        return self._triple(x, y, z) in self._triples[kind]

    def triples(self, kind: TripleKind) -> frozenset[Triple]:
        self._purge_stale_triples()
        return frozenset(self._triples[kind])

    def set_triples(self, kind: TripleKind, triples: Iterable[Triple]) -> None:
        """Replace the *kind* set. Nothing changes if any triple is invalid."""
        staged: dict[Triple, int] = {}
        for t in triples:
            triple = self._triple(t.x, t.y, t.z)
            if not self._along_path(triple):
                raise StructuralViolationError(f"{triple} must lie along a path in the graph")
            staged[triple] = self._generation
        self._triples[kind] = staged

    @property
    def ambiguous_triples(self) -> frozenset[Triple]:
        return self.triples(TripleKind.AMBIGUOUS)

    @property
    def underline_triples(self) -> frozenset[Triple]:
        return self.triples(TripleKind.UNDERLINE)

    @property
    def dotted_underline_triples(self) -> frozenset[Triple]:
        return self.triples(TripleKind.DOTTED_UNDERLINE)

    def sepset(self, node1: NodeRef, node2: NodeRef) -> list[Node]:
        raise UnsupportedQueryError("EndpointMatrixGraph does not record separating sets")

    # ------------------------------------------------------------------
    # Presentation metadata and attributes
    # ------------------------------------------------------------------

    def set_highlighted(self, edge: Edge, highlighted: bool = True) -> None:
        if highlighted:
            self._highlighted.add(edge)
        else:
            self._highlighted.discard(edge)

    def is_highlighted(self, edge: Edge) -> bool:
        return edge in self._highlighted

    @property
    def attributes(self) -> dict[str, Any]:
        return self._attributes

    def get_attribute(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def add_attribute(self, key: str, value: Any) -> None:
        self._attributes[key] = value

    def remove_attribute(self, key: str) -> None:
        self._attributes.pop(key, None)

    def transfer_attributes(self, other: EndpointMatrixGraph) -> None:
        self._attributes.update(other.attributes)

    # ------------------------------------------------------------------
    # Whole-graph operations
    # ------------------------------------------------------------------

    def copy(self) -> EndpointMatrixGraph:
        graph = EndpointMatrixGraph()
        graph._nodes = list(self._nodes)
        graph._positions = dict(self._positions)
        graph._matrix = self._matrix.copy()
        graph._triples = {kind: dict(ts) for kind, ts in self._triples.items()}
        graph._generation = self._generation
        graph._highlighted = set(self._highlighted)
        graph._attributes = dict(self._attributes)
        graph.is_pag = self.is_pag
        graph.is_pattern = self.is_pattern
        return graph

    def transfer_nodes_and_edges(self, other: EndpointMatrixGraph) -> None:
        """Copy all nodes and edges of *other* into this graph.

        Node annotations are not carried over. Either everything is
        transferred or, on failure, this graph is left untouched.

        Raises:
            StructuralViolationError: If a node name or adjacency collides.
        """
        staged = self.copy()
        for node in other.nodes:
            if not staged.add_node(replace(node, attributes={})):
                raise StructuralViolationError(f"Node {node} already exists")
        for edge in other.edges():
            if not staged.add_edge(edge):
                raise StructuralViolationError(f"Edge {edge} collides with an existing edge")
        self.__dict__.update(staged.__dict__)

    def subgraph(self, refs: Iterable[NodeRef]) -> EndpointMatrixGraph:
        """A new graph over the given nodes with every edge among them."""
        nodes = [self._node(ref) for ref in refs]
        graph = EndpointMatrixGraph(nodes)
        for edge in self.edges():
            if edge.node1 in graph and edge.node2 in graph:
                graph.add_edge(edge)
        return graph

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EndpointMatrixGraph):
            return NotImplemented
        return self.node_names == other.node_names and np.array_equal(self._live, other._live)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"EndpointMatrixGraph(nodes={self.num_nodes}, edges={self.num_edges})"

    def __str__(self) -> str:
        lines = ["Graph Nodes:", ";".join(self.node_names), "", "Graph Edges:"]
        lines += [f"{i}. {edge}" for i, edge in enumerate(self.edges(), start=1)]
        for kind in TripleKind:
            triples = self.triples(kind)
            if triples:
                lines += ["", f"{kind.value.replace('_', ' ').capitalize()} triples:"]
                lines += sorted(str(t) for t in triples)
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @property
    def _live(self) -> np.ndarray:
        n = len(self._nodes)
        return self._matrix[:n, :n]

    def _grow(self, capacity: int) -> None:
        grown = np.zeros((capacity, capacity), dtype=np.int8)
        n = len(self._nodes)
        grown[:n, :n] = self._matrix[:n, :n]
        self._matrix = grown

    def _pos(self, ref: NodeRef) -> int:
        try:
            return self._positions[_name_of(ref)]
        except KeyError:
            raise UnknownNodeError(f"No node named {_name_of(ref)!r} in graph") from None

    def _node(self, ref: NodeRef) -> Node:
        return self._nodes[self._pos(ref)]

    def _as_nodes(self, positions: Iterable[int]) -> list[Node]:
        return [self._nodes[int(p)] for p in positions]

    def _edge_at(self, i: int, j: int) -> Edge:
        return Edge(
            self._nodes[i],
            self._nodes[j],
            _MARKS[int(self._matrix[j, i])],
            _MARKS[int(self._matrix[i, j])],
        )

    def _edges_between(self, i: int, j: int) -> list[Edge]:
        if self._matrix[i, j] == _NO_EDGE and self._matrix[j, i] == _NO_EDGE:
            return []
        return [self._edge_at(i, j)]

    def _adjacent_positions(self, i: int) -> np.ndarray:
        return np.flatnonzero(self._live[:, i] != _NO_EDGE)

    def _parent_positions(self, i: int) -> np.ndarray:
        live = self._live
        return np.flatnonzero((live[i, :] == _TAIL) & (live[:, i] == _ARROW))

    def _child_positions(self, i: int) -> np.ndarray:
        live = self._live
        return np.flatnonzero((live[:, i] == _TAIL) & (live[i, :] == _ARROW))

    def _semi_directed_positions(self, i: int) -> np.ndarray:
        column = self._live[:, i]
        return np.flatnonzero((column == _TAIL) | (column == _CIRCLE))

    def _closure(
        self,
        refs: Iterable[NodeRef],
        step: Callable[[int], np.ndarray],
    ) -> frozenset[Node]:
        seen = {self._pos(ref) for ref in refs}
        queue = deque(seen)
        while queue:
            for nxt in step(queue.popleft()):
                nxt = int(nxt)
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return frozenset(self._nodes[p] for p in seen)

    def _reaches(
        self,
        start: int,
        goals: set[int],
        step: Callable[[int], np.ndarray],
    ) -> bool:
        seen: set[int] = set()
        queue = deque([start])
        while queue:
            for nxt in step(queue.popleft()):
                nxt = int(nxt)
                if nxt in goals:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return False

    def _triple(self, x: NodeRef, y: NodeRef, z: NodeRef) -> Triple:
        try:
            return Triple(_loose_node(self, x), _loose_node(self, y), _loose_node(self, z))
        except ValueError as err:
            raise StructuralViolationError(str(err)) from err

    def _along_path(self, triple: Triple) -> bool:
        if any(node not in self for node in (triple.x, triple.y, triple.z)):
            return False
        return self.is_adjacent_to(triple.x, triple.y) and self.is_adjacent_to(triple.y, triple.z)

    def _has_live_triple(self, kind: TripleKind, triple: Triple) -> bool:
        # Read-only; path queries must not rewrite the triple registry.
        return triple in self._triples[kind] and self._along_path(triple)

    def _purge_stale_triples(self) -> None:
        current = self._generation
        for kind, triples in self._triples.items():
            for triple, validated_at in list(triples.items()):
                if validated_at == current:
                    continue
                if self._along_path(triple):
                    triples[triple] = current
                else:
                    del triples[triple]
                    logger.debug("Dropped stale %s triple %s", kind.value, triple)

    def iter_pairs(self) -> Iterator[tuple[Node, Node]]:
        """Every unordered pair of distinct nodes, in position order."""
        for i, a in enumerate(self._nodes):
            for b in self._nodes[i + 1 :]:
                yield a, b


def _name_of(ref: NodeRef) -> str:
    return ref if isinstance(ref, str) else ref.name


def _loose_node(graph: EndpointMatrixGraph, ref: NodeRef) -> Node:
    """Resolve *ref* if present, else build a detached node of that name."""
    if isinstance(ref, Node):
        return ref
    return graph.get_node(ref) or Node(ref)
