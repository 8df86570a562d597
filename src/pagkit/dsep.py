"""DSeparationEngine — structural independence on endpoint-marked graphs.

``is_d_connected`` is a breadth-first search over ordered node pairs
``(a, b)`` ("reached b coming from a"); whether a pair may be extended
depends on the direction of arrival, so visited state is keyed by the pair.

``possibly_d_connected`` is the weaker test for partially oriented graphs:
it only extends through definite colliders that are possible ancestors of
the conditioning set and definite non-colliders outside it.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from .combinatorics import as_items, choices, depth_choices
from .errors import InvalidQueryError
from .graph.store import EndpointMatrixGraph
from .graph.types import Endpoint, IndependenceAssertion, Node, NodeRef

logger = logging.getLogger(__name__)


@dataclass
class DSeparationEngine:
    """Answers d-separation queries on an EndpointMatrixGraph."""

    graph: EndpointMatrixGraph

    # ------------------------------------------------------------------
    # Core queries
    # ------------------------------------------------------------------

    def ancestor_closure(self, z: Iterable[NodeRef]) -> frozenset[Node]:
        """*z* plus every node with a directed path into *z*."""
        return self.graph.get_ancestors(z)

    def is_d_connected(self, x: NodeRef, y: NodeRef, z: Iterable[NodeRef] = ()) -> bool:
        """True if some path between *x* and *y* is active given *z*."""
        return self.is_d_connected_sets([x], [y], z)

    def is_d_separated(self, x: NodeRef, y: NodeRef, z: Iterable[NodeRef] = ()) -> bool:
        return not self.is_d_connected(x, y, z)

    def is_d_connected_sets(
        self,
        xs: Iterable[NodeRef],
        ys: Iterable[NodeRef],
        z: Iterable[NodeRef] = (),
    ) -> bool:
        """True if some node of *xs* is d-connected to some node of *ys* given *z*.

        Raises:
            InvalidQueryError: If *xs* and *ys* share a node.
        """
        graph = self.graph
        sources = self._resolve(xs)
        targets = self._resolve(ys)
        if sources & targets:
            raise InvalidQueryError(
                f"Endpoint sets overlap: {sorted(n.name for n in sources & targets)}"
            )
        given = self._resolve(z)
        closure = self.ancestor_closure(given)

        visited: set[tuple[Node, Node]] = set()
        queue: deque[tuple[Node, Node]] = deque()
        for x in sources:
            for b in graph.get_adjacent_nodes(x):
                if b in targets:
                    return True
                if (x, b) not in visited:
                    visited.add((x, b))
                    queue.append((x, b))

        while queue:
            a, b = queue.popleft()
            for c in graph.get_adjacent_nodes(b):
                if c == a:
                    continue
                collider = (
                    graph.get_endpoint(a, b) == Endpoint.ARROW
                    and graph.get_endpoint(c, b) == Endpoint.ARROW
                )
                legal = b in closure if collider else b not in given
                if not legal:
                    continue
                if c in targets:
                    return True
                if (b, c) not in visited:
                    visited.add((b, c))
                    queue.append((b, c))

        return False

    def is_d_separated_sets(
        self,
        xs: Iterable[NodeRef],
        ys: Iterable[NodeRef],
        z: Iterable[NodeRef] = (),
    ) -> bool:
        return not self.is_d_connected_sets(xs, ys, z)

    def possibly_d_connected(
        self,
        x: NodeRef,
        y: NodeRef,
        z: Iterable[NodeRef] = (),
    ) -> bool:
        """True if a possibly-d-connecting path between *x* and *y* may exist.

        Searches in stages. Each stage extends the pairs found in the
        previous one; each ordered pair is expanded at most once, and the
        search gives up after a stage that adds nothing.
        """
        graph = self.graph
        source, target = graph.resolve(x), graph.resolve(y)
        if source == target:
            raise InvalidQueryError(f"Cannot test {source} against itself")
        given = self._resolve(z)

        names = graph.node_names
        index = {name: i for i, name in enumerate(names)}
        staged = np.zeros((len(names), len(names)), dtype=bool)

        frontier: list[tuple[Node, Node]] = []
        for b in graph.get_adjacent_nodes(source):
            if b == target:
                return True
            staged[index[source.name], index[b.name]] = True
            frontier.append((source, b))

        stage = 1
        while frontier:
            next_frontier: list[tuple[Node, Node]] = []
            for a, b in frontier:
                for c in graph.get_adjacent_nodes(b):
                    if c == a or staged[index[b.name], index[c.name]]:
                        continue
                    if not self._possibly_active(a, b, c, given):
                        continue
                    if c == target:
                        logger.debug("Possible d-connection %s ~ %s at stage %d", x, y, stage)
                        return True
                    staged[index[b.name], index[c.name]] = True
                    next_frontier.append((b, c))
            frontier = next_frontier
            stage += 1

        return False

    def separation(
        self,
        x: Iterable[NodeRef],
        y: Iterable[NodeRef],
        z: Iterable[NodeRef] = (),
        *,
        possible: bool = False,
    ) -> IndependenceAssertion:
        """Test *x* against *y* given *z* and package the answer.

        With ``possible=True`` the weaker possible-d-connection test is used;
        it needs single-node *x* and *y*.
        """
        xs, ys, zs = self._resolve(x), self._resolve(y), self._resolve(z)
        if possible:
            if len(xs) != 1 or len(ys) != 1:
                raise InvalidQueryError("Possible d-connection compares exactly two nodes")
            (xn,), (yn,) = xs, ys
            independent = not self.possibly_d_connected(xn, yn, zs)
            method = "possible_d_connection"
        else:
            independent = self.is_d_separated_sets(xs, ys, zs)
            method = "d_separation"
        return IndependenceAssertion(
            x=frozenset(n.name for n in xs),
            y=frozenset(n.name for n in ys),
            z=frozenset(n.name for n in zs),
            is_independent=independent,
            method=method,
        )

    # ------------------------------------------------------------------
    # Exhaustive enumeration
    # ------------------------------------------------------------------

    def find_all_d_separations(
        self,
        max_conditioning_size: int = 3,
    ) -> list[IndependenceAssertion]:
        """Find all d-separation relations up to a conditioning set size bound.

        Enumerates every unordered pair of nodes and, for each, every subset
        of the remaining nodes with at most ``max_conditioning_size``
        members, smallest first.
        """
        results: list[IndependenceAssertion] = []
        for x, y in self.graph.iter_pairs():
            remaining = [n for n in self.graph.nodes if n != x and n != y]
            for choice in depth_choices(len(remaining), max_conditioning_size):
                z = as_items(choice, remaining)
                if self.is_d_separated(x, y, z):
                    results.append(
                        IndependenceAssertion(
                            x=frozenset({x.name}),
                            y=frozenset({y.name}),
                            z=frozenset(n.name for n in z),
                            is_independent=True,
                            method="d_separation",
                        )
                    )

        logger.info(
            "Found %d d-separations over %d nodes (max conditioning size %d)",
            len(results),
            self.graph.num_nodes,
            max_conditioning_size,
        )
        return results

    def find_minimal_conditioning_set(
        self,
        x: NodeRef,
        y: NodeRef,
    ) -> frozenset[str] | None:
        """Find the smallest conditioning set that d-separates x and y.

        Returns None if no subset of the remaining nodes separates them.
        """
        xn, yn = self.graph.resolve(x), self.graph.resolve(y)
        remaining = [n for n in self.graph.nodes if n != xn and n != yn]

        for size in range(len(remaining) + 1):
            for choice in choices(len(remaining), size):
                z = as_items(choice, remaining)
                if self.is_d_separated(xn, yn, z):
                    return frozenset(n.name for n in z)

        return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve(self, refs: Iterable[NodeRef]) -> frozenset[Node]:
        if isinstance(refs, Node | str):
            refs = [refs]
        return frozenset(self.graph.resolve(ref) for ref in refs)

    def _possibly_active(self, a: Node, b: Node, c: Node, given: frozenset[Node]) -> bool:
        graph = self.graph
        if graph.is_def_noncollider(a, b, c) and b not in given:
            return True
        if graph.is_def_collider(a, b, c):
            return any(graph.possible_ancestor(b, node) for node in given)
        return False
