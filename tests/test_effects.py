"""Tests for EffectBoundEstimator.

Data is simulated from linear models with known coefficients so every
regression can be recomputed directly.
"""

from __future__ import annotations

import logging
import math
import threading

import numpy as np
import pytest

from pagkit.effects import EffectBoundEstimator, NodeEffect, true_effect_against_bounds
from pagkit.errors import EnumerationLimitError
from pagkit.graph import EndpointMatrixGraph
from pagkit.regression import OLSRegression
from pagkit.settings import Settings

# =============================================================================
# Helpers / Fixtures
# =============================================================================


class RecordingRegression:
    """OLSRegression that remembers every regressor set it was asked for."""

    def __init__(self, columns, zero_intercept: bool = False):
        self._ols = OLSRegression(columns, zero_intercept=zero_intercept)
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self._lock = threading.Lock()

    def regress(self, target, regressors, rows=None):
        with self._lock:
            self.calls.append((str(target), tuple(str(r) for r in regressors)))
        return self._ols.regress(target, regressors, rows)


class StoppingRegression(RecordingRegression):
    """Sets *stop* as soon as the first regression is requested."""

    def __init__(self, columns, stop: threading.Event):
        super().__init__(columns)
        self._stop = stop

    def regress(self, target, regressors, rows=None):
        self._stop.set()
        return super().regress(target, regressors, rows)


@pytest.fixture
def chain_data() -> dict[str, list[float]]:
    """X → Y → Z with Y = 0.8 X + e, Z = 1.5 Y + e"""
    rng = np.random.default_rng(0)
    x = rng.normal(size=2000)
    y = 0.8 * x + rng.normal(size=2000)
    z = 1.5 * y + rng.normal(size=2000)
    return {"X": x.tolist(), "Y": y.tolist(), "Z": z.tolist()}


@pytest.fixture
def pattern() -> EndpointMatrixGraph:
    """X --- Y, Y → Z"""
    graph = EndpointMatrixGraph(["X", "Y", "Z"])
    graph.add_undirected_edge("X", "Y")
    graph.add_directed_edge("Y", "Z")
    return graph


@pytest.fixture
def true_dag() -> EndpointMatrixGraph:
    graph = EndpointMatrixGraph(["X", "Y", "Z"])
    graph.add_directed_edge("X", "Y")
    graph.add_directed_edge("Y", "Z")
    return graph


@pytest.fixture
def star_data() -> tuple[EndpointMatrixGraph, dict[str, list[float]]]:
    """X with eight undecided neighbours S0..S7 and a child Y: 256 candidate parent sets."""
    names = ["X", *(f"S{i}" for i in range(8)), "Y"]
    graph = EndpointMatrixGraph(names)
    for i in range(8):
        graph.add_undirected_edge("X", f"S{i}")
    graph.add_directed_edge("X", "Y")
    rng = np.random.default_rng(2)
    columns = {name: rng.normal(size=300).tolist() for name in names}
    return graph, columns


def _ols_coef(columns, target, regressors) -> float:
    return abs(OLSRegression(columns).regress(target, regressors).coefficients[1])


# =============================================================================
# Effects
# =============================================================================


class TestEffects:
    def test_one_sibling_no_parents_gives_two_sorted_entries(self, pattern, chain_data):
        effects = EffectBoundEstimator(pattern, OLSRegression(chain_data)).effects("X", "Z")
        assert len(effects) == 2
        assert all(e >= 0 for e in effects)
        assert effects == sorted(effects)

    def test_end_to_end_minimum_effect(self, pattern, chain_data):
        regression = RecordingRegression(chain_data)
        estimator = EffectBoundEstimator(pattern, regression)

        minimum = estimator.minimum_effect("X", "Z")

        assert regression.calls == [("Z", ("X",)), ("Z", ("X", "Y"))]
        expected = min(
            _ols_coef(chain_data, "Z", ["X"]),
            _ols_coef(chain_data, "Z", ["X", "Y"]),
        )
        assert minimum == pytest.approx(expected)

    def test_parents_always_included(self, pattern, chain_data):
        regression = RecordingRegression(chain_data)
        EffectBoundEstimator(pattern, regression).effects("Z", "X")
        assert regression.calls == [("X", ("Z", "Y"))]

    def test_candidate_containing_target_skipped(self, pattern, chain_data):
        regression = RecordingRegression(chain_data)
        effects = EffectBoundEstimator(pattern, regression).effects("X", "Y")
        assert len(effects) == 1
        assert regression.calls == [("Y", ("X",))]

    def test_same_node_gives_nothing(self, pattern, chain_data):
        assert EffectBoundEstimator(pattern, OLSRegression(chain_data)).effects("X", "X") == []

    def test_bounds(self, pattern, chain_data):
        estimator = EffectBoundEstimator(pattern, OLSRegression(chain_data))
        effects = estimator.effects("X", "Z")
        assert estimator.effect_bounds("X", "Z") == (effects[0], effects[-1])
        assert estimator.maximum_effect("X", "Z") == effects[-1]

    def test_no_estimate(self, chain_data):
        graph = EndpointMatrixGraph(["X", "Y"])
        graph.add_undirected_edge("X", "Y")
        estimator = EffectBoundEstimator(graph, OLSRegression(chain_data))
        assert estimator.effects("X", "Y") != []
        graph.remove_edge("X", "Y")
        graph.add_directed_edge("Y", "X")
        assert estimator.minimum_effect("X", "Y") is None
        assert estimator.effect_bounds("X", "Y") is None

    def test_zero_intercept_uses_first_coefficient(self, pattern, chain_data):
        estimator = EffectBoundEstimator(pattern, OLSRegression(chain_data, zero_intercept=True))
        direct = OLSRegression(chain_data, zero_intercept=True).regress("Z", ["X"])
        assert abs(direct.coefficients[0]) in estimator.effects("X", "Z")


class TestFailuresAndLimits:
    def test_singular_candidate_skipped(self, chain_data):
        columns = dict(chain_data, W=list(chain_data["X"]))
        graph = EndpointMatrixGraph(["X", "W", "Z"])
        graph.add_undirected_edge("X", "W")
        graph.add_undirected_edge("X", "Z")
        # Siblings of X: W and Z; {W} is collinear with X, anything with Z is skipped.
        effects = EffectBoundEstimator(graph, OLSRegression(columns)).effects("X", "Z")
        assert len(effects) == 1

    def test_too_many_siblings(self, chain_data):
        graph = EndpointMatrixGraph(["X", "A", "B", "C", "D"])
        for other in "ABCD":
            graph.add_undirected_edge("X", other)
        estimator = EffectBoundEstimator(graph, OLSRegression(chain_data), max_siblings=3)
        with pytest.raises(EnumerationLimitError):
            estimator.effects("X", "A")

    def test_depth_limit_warns(self, pattern, chain_data, caplog):
        estimator = EffectBoundEstimator(pattern, OLSRegression(chain_data), max_subset_size=0)
        with caplog.at_level(logging.WARNING, logger="pagkit.effects"):
            effects = estimator.effects("X", "Z")
        assert len(effects) == 1
        assert "sibling subsets" in caplog.text

    def test_interrupt_set_before_start(self, pattern, chain_data):
        stop = threading.Event()
        stop.set()
        regression = RecordingRegression(chain_data)
        estimator = EffectBoundEstimator(pattern, regression, interrupt=stop)
        assert estimator.effects("X", "Z") == []
        assert regression.calls == []

    @pytest.mark.parametrize("workers", [1, 4])
    def test_interrupt_during_enumeration(self, star_data, workers):
        graph, columns = star_data
        stop = threading.Event()
        regression = StoppingRegression(columns, stop)
        estimator = EffectBoundEstimator(graph, regression, workers=workers, interrupt=stop)

        effects = estimator.effects("X", "Y")

        # Only regressions already running when the event was set may finish.
        assert 1 <= len(regression.calls) <= workers
        assert len(effects) == len(regression.calls)

    def test_threaded_matches_sequential(self, pattern, chain_data):
        sequential = EffectBoundEstimator(pattern, OLSRegression(chain_data))
        threaded = EffectBoundEstimator(pattern, OLSRegression(chain_data), workers=4)
        assert threaded.effects("X", "Z") == sequential.effects("X", "Z")

    def test_invalid_workers(self, pattern, chain_data):
        with pytest.raises(ValueError):
            EffectBoundEstimator(pattern, OLSRegression(chain_data), workers=0)

    def test_from_settings(self, pattern, chain_data):
        settings = Settings(max_siblings=0, max_subset_size=None, workers=1)
        estimator = EffectBoundEstimator.from_settings(pattern, OLSRegression(chain_data), settings)
        with pytest.raises(EnumerationLimitError):
            estimator.effects("X", "Z")


# =============================================================================
# Ranking and ground truth
# =============================================================================


class TestRanking:
    def test_ranked_descending(self, pattern, chain_data):
        ranked = EffectBoundEstimator(pattern, OLSRegression(chain_data)).ranked_minimum_effects("Z")
        assert [entry.node.name for entry in ranked] == ["Y", "X"]
        assert all(isinstance(entry, NodeEffect) for entry in ranked)
        assert ranked[0].effect >= ranked[1].effect
        assert ranked[0].effect == pytest.approx(1.5, abs=0.1)

    def test_over_limit_node_left_out(self, chain_data, caplog):
        # X has four siblings; each of A..D has only X.
        graph = EndpointMatrixGraph(["X", "A", "B", "C", "D", "Y"])
        for other in "ABCD":
            graph.add_undirected_edge("X", other)
            graph.add_directed_edge(other, "Y")
        rng = np.random.default_rng(3)
        columns = {name: rng.normal(size=300).tolist() for name in "XABCD"}
        columns["Y"] = chain_data["Y"][:300]
        estimator = EffectBoundEstimator(graph, OLSRegression(columns), max_siblings=3)

        with caplog.at_level(logging.WARNING, logger="pagkit.effects"):
            ranked = estimator.ranked_minimum_effects("Y")

        assert sorted(entry.node.name for entry in ranked) == ["A", "B", "C", "D"]
        assert "Leaving X out of the ranking" in caplog.text


class TestTrueEffect:
    def test_true_effect_uses_true_parents(self, pattern, true_dag, chain_data):
        estimator = EffectBoundEstimator(pattern, OLSRegression(chain_data))
        expected = _ols_coef(chain_data, "Z", ["Y", "X"])
        assert estimator.true_effect("Y", "Z", true_dag) == pytest.approx(expected)

    def test_target_among_parents_is_nan(self, pattern, true_dag, chain_data):
        estimator = EffectBoundEstimator(pattern, OLSRegression(chain_data))
        assert math.isnan(estimator.true_effect("Y", "X", true_dag))

    @pytest.mark.parametrize(
        "low, high, true, expected",
        [
            (1.0, 3.0, 2.0, 0.0),
            (3.0, 1.0, 2.0, 0.0),
            (1.0, 3.0, 1.0, 0.0),
            (1.0, 3.0, 5.0, 2.0),
            (3.0, 1.0, 0.25, 0.75),
        ],
    )
    def test_distance_to_bounds(self, low, high, true, expected):
        assert true_effect_against_bounds(low, high, true) == pytest.approx(expected)
