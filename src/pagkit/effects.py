"""EffectBoundEstimator — bounds on causal effects over an equivalence class.

Edges adjacent to x whose orientation the graph leaves open ("siblings")
could each be parents of x in some member of the class. For every subset of
siblings, y is regressed on x, the definite parents of x and that subset;
the spread of the resulting |coefficient on x| values bounds the effect of
x on y across the class.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .combinatorics import as_items, depth_choices
from .errors import EnumerationLimitError, SingularRegressionError
from .graph.store import EndpointMatrixGraph
from .graph.types import Node, NodeRef
from .regression import Regression, RegressionResult
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class NodeEffect:
    """Minimum effect of ``node`` on some target."""

    node: Node
    effect: float


class EffectBoundEstimator:
    """Enumerates candidate parent sets of x and regresses y on each.

    Args:
        graph: Pattern or PAG over the variables the regression knows.
        regression: Fits ``y ~ regressors``; matched to nodes by name.
        max_siblings: Refuse to enumerate when x has more siblings than this.
        max_subset_size: None walks every sibling subset; an int only tries
            subsets up to that size.
        workers: Threads used to run regressions for one (x, y) pair.
        interrupt: Once set, enumeration stops and the effects gathered so
            far are returned.
    """

    def __init__(
        self,
        graph: EndpointMatrixGraph,
        regression: Regression,
        max_siblings: int = 12,
        max_subset_size: int | None = None,
        workers: int = 1,
        interrupt: threading.Event | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.graph = graph
        self.regression = regression
        self.max_siblings = max_siblings
        self.max_subset_size = max_subset_size
        self.workers = workers
        self.interrupt = interrupt

    @classmethod
    def from_settings(
        cls,
        graph: EndpointMatrixGraph,
        regression: Regression,
        settings: Settings | None = None,
        interrupt: threading.Event | None = None,
    ) -> EffectBoundEstimator:
        """Build an estimator with limits taken from *settings* (or the global settings)."""
        settings = settings or get_settings()
        return cls(
            graph,
            regression,
            max_siblings=settings.max_siblings,
            max_subset_size=settings.max_subset_size,
            workers=settings.workers,
            interrupt=interrupt,
        )

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def siblings(self, x: NodeRef) -> list[Node]:
        """Neighbours of *x* that are neither definite parents nor children."""
        xn = self.graph.resolve(x)
        settled = set(self.graph.get_parents(xn)) | set(self.graph.get_children(xn))
        return [n for n in self.graph.get_adjacent_nodes(xn) if n not in settled]

    def effects(self, x: NodeRef, y: NodeRef) -> list[float]:
        """Every |effect| of *x* on *y* over the candidate parent sets, ascending.

        Candidates whose regressors include *y*, or whose regression is
        singular, contribute nothing.

        Raises:
            EnumerationLimitError: If *x* has more than ``max_siblings`` siblings.
        """
        xn, yn = self.graph.resolve(x), self.graph.resolve(y)
        if xn == yn:
            return []

        parents = self.graph.get_parents(xn)
        siblings = self.siblings(xn)
        if len(siblings) > self.max_siblings:
            raise EnumerationLimitError(
                f"{xn} has {len(siblings)} siblings; the limit is {self.max_siblings} "
                f"({2 ** len(siblings)} candidate parent sets)"
            )
        if self.max_subset_size is not None and self.max_subset_size < len(siblings):
            logger.warning(
                "Only trying sibling subsets of size <= %d for %s (of %d siblings)",
                self.max_subset_size,
                xn,
                len(siblings),
            )

        def evaluate(choice: tuple[int, ...]) -> float | None:
            if self.interrupt is not None and self.interrupt.is_set():
                return None
            regressors = list(dict.fromkeys([xn, *parents, *as_items(choice, siblings)]))
            if yn in regressors:
                return None
            try:
                result = self.regression.regress(yn, regressors)
            except SingularRegressionError as err:
                logger.debug("Skipping %s ~ %s: %s", yn, [str(r) for r in regressors], err)
                return None
            return abs(_coefficient_on_first(result))

        candidates = depth_choices(len(siblings), self.max_subset_size, interrupt=self.interrupt)
        if self.workers > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                values = list(pool.map(evaluate, candidates))
        else:
            values = [evaluate(choice) for choice in candidates]

        return sorted(v for v in values if v is not None)

    def minimum_effect(self, x: NodeRef, y: NodeRef) -> float | None:
        """Smallest |effect| of *x* on *y*, or None when there is no estimate."""
        effects = self.effects(x, y)
        return effects[0] if effects else None

    def maximum_effect(self, x: NodeRef, y: NodeRef) -> float | None:
        effects = self.effects(x, y)
        return effects[-1] if effects else None

    def effect_bounds(self, x: NodeRef, y: NodeRef) -> tuple[float, float] | None:
        """``(min, max)`` of the |effects| of *x* on *y*, or None."""
        effects = self.effects(x, y)
        return (effects[0], effects[-1]) if effects else None

    def ranked_minimum_effects(self, y: NodeRef) -> list[NodeEffect]:
        """Every other node ranked by its minimum effect on *y*, largest first.

        Nodes with no estimate, or with too many siblings to enumerate, are
        left out. Ties keep graph order.
        """
        yn = self.graph.resolve(y)
        ranked: list[NodeEffect] = []
        for xn in self.graph.nodes:
            if xn == yn:
                continue
            try:
                effect = self.minimum_effect(xn, yn)
            except EnumerationLimitError as err:
                logger.warning("Leaving %s out of the ranking for %s: %s", xn, yn, err)
                continue
            if effect is not None:
                ranked.append(NodeEffect(xn, effect))
        ranked.sort(key=lambda ne: ne.effect, reverse=True)
        logger.info("Ranked %d candidate causes of %s", len(ranked), yn)
        return ranked

    def true_effect(self, x: NodeRef, y: NodeRef, true_graph: EndpointMatrixGraph) -> float:
        """|effect| of *x* on *y* when the parents of *x* are read off *true_graph*.

        *true_graph* is matched to this estimator's variables by name.
        Returns NaN when *y* is itself a parent of *x* there.
        """
        xn, yn = true_graph.resolve(x), true_graph.resolve(y)
        regressors: list[Node] = [xn, *true_graph.get_parents(xn)]
        if yn in regressors:
            return float("nan")
        return abs(_coefficient_on_first(self.regression.regress(yn, regressors)))


def true_effect_against_bounds(min_effect: float, max_effect: float, true_effect: float) -> float:
    """Distance from *true_effect* to the interval spanned by the two bounds.

    Zero when it lies inside; the bounds may be given in either order.
    """
    low, high = sorted((min_effect, max_effect))
    if low <= true_effect <= high:
        return 0.0
    return min(abs(true_effect - low), abs(true_effect - high))


def _coefficient_on_first(result: RegressionResult) -> float:
    coefficients: Sequence[float] = result.coefficients
    return coefficients[0] if result.zero_intercept_assumed else coefficients[1]
