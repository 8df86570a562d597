"""Tests for the pagkit CLI.

Uses typer.testing.CliRunner with graph documents and CSV data written to tmp_path.
"""

from __future__ import annotations

import logging

import numpy as np
import pytest
import yaml
from typer.testing import CliRunner

from pagkit.cli import app
from pagkit.observability import shutdown_logging
from pagkit.settings import reset_settings

runner = CliRunner()


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Quiet logging, fresh settings, and no handler left behind on the root logger."""
    monkeypatch.setenv("PAGKIT_LOG_LEVEL", "WARNING")
    for var in ("PAGKIT_MAX_SIBLINGS", "PAGKIT_MAX_SUBSET_SIZE", "PAGKIT_WORKERS"):
        monkeypatch.delenv(var, raising=False)
    level = logging.getLogger().level
    reset_settings()
    yield
    reset_settings()
    shutdown_logging()
    logging.getLogger().setLevel(level)


def _write_graph(path, doc: dict):
    path.write_text(yaml.safe_dump(doc))
    return path


@pytest.fixture
def chain_file(tmp_path):
    return _write_graph(tmp_path / "chain.yaml", {"edges": ["A --> B", "B --> C"]})


@pytest.fixture
def pag_file(tmp_path):
    return _write_graph(
        tmp_path / "pag.yaml",
        {"edges": ["A o-> B", "C o-> B", "B o-o D"], "pag": True},
    )


@pytest.fixture
def pattern_file(tmp_path):
    return _write_graph(
        tmp_path / "pattern.yaml",
        {"edges": ["X --- Y", "Y --> Z"], "pattern": True},
    )


@pytest.fixture
def data_file(tmp_path):
    rng = np.random.default_rng(1)
    x = rng.normal(size=500)
    y = 0.8 * x + rng.normal(size=500)
    z = 1.5 * y + rng.normal(size=500)
    lines = ["X,Y,Z"] + [f"{a!r},{b!r},{c!r}" for a, b, c in zip(x, y, z)]
    path = tmp_path / "data.csv"
    path.write_text("\n".join(lines) + "\n")
    return path


# =========================================================================
# App structure
# =========================================================================


class TestAppStructure:
    def test_app_has_all_subcommands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "graph" in result.output
        assert "effects" in result.output

    def test_graph_help(self):
        result = runner.invoke(app, ["graph", "--help"])
        assert result.exit_code == 0
        for command in ("inspect", "dsep", "separations"):
            assert command in result.output

    def test_effects_help(self):
        result = runner.invoke(app, ["effects", "--help"])
        assert result.exit_code == 0
        assert "bounds" in result.output
        assert "rank" in result.output


# =========================================================================
# graph
# =========================================================================


class TestInspect:
    def test_summary(self, chain_file):
        result = runner.invoke(app, ["graph", "inspect", str(chain_file)])
        assert result.exit_code == 0
        assert "Kind:         graph" in result.stdout
        assert "Nodes:        3" in result.stdout
        assert "Edges:        2" in result.stdout
        assert "Connectivity: 2" in result.stdout
        assert "Cyclic:       no" in result.stdout
        assert "1. A --> B" in result.stdout
        assert "2. B --> C" in result.stdout

    def test_pag_kind(self, pag_file):
        result = runner.invoke(app, ["graph", "inspect", str(pag_file)])
        assert result.exit_code == 0
        assert "Kind:         PAG" in result.stdout

    def test_cyclic(self, tmp_path):
        path = _write_graph(tmp_path / "cycle.yaml", {"edges": ["A --> B", "B --> C", "C --> A"]})
        result = runner.invoke(app, ["graph", "inspect", str(path)])
        assert "Cyclic:       yes" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["graph", "inspect", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Error: No such file" in result.output

    def test_malformed_document(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("edges:\n  - A ==> B\n")
        result = runner.invoke(app, ["graph", "inspect", str(path)])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDsep:
    def test_separated_given_middle(self, chain_file):
        result = runner.invoke(app, ["graph", "dsep", str(chain_file), "A", "C", "-z", "B"])
        assert result.exit_code == 0
        assert "A and C are d-separated given {B}" in result.stdout

    def test_connected_unconditionally(self, chain_file):
        result = runner.invoke(app, ["graph", "dsep", str(chain_file), "A", "C"])
        assert result.exit_code == 0
        assert "A and C are d-connected given {}" in result.stdout

    def test_possible(self, pag_file):
        result = runner.invoke(app, ["graph", "dsep", str(pag_file), "A", "C", "--possible"])
        assert result.exit_code == 0
        assert "A and C are not possibly d-connected given {}" in result.stdout

        result = runner.invoke(
            app, ["graph", "dsep", str(pag_file), "A", "C", "--given", "D", "--possible"]
        )
        assert "A and C are possibly d-connected given {D}" in result.stdout

    def test_unknown_node(self, chain_file):
        result = runner.invoke(app, ["graph", "dsep", str(chain_file), "A", "Q"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    @pytest.mark.parametrize("possible", [[], ["--possible"]])
    def test_same_node_reported(self, chain_file, possible):
        result = runner.invoke(app, ["graph", "dsep", str(chain_file), "A", "A", *possible])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)


class TestSeparations:
    def test_lists_separations(self, chain_file):
        result = runner.invoke(app, ["graph", "separations", str(chain_file)])
        assert result.exit_code == 0
        assert "{A} _||_ {C} | {B}" in result.stdout
        assert "1 d-separation(s)" in result.stdout

    def test_none_found(self, tmp_path):
        path = _write_graph(tmp_path / "full.yaml", {"edges": ["A --> B", "B --> C", "A --> C"]})
        result = runner.invoke(app, ["graph", "separations", str(path)])
        assert result.exit_code == 0
        assert "No d-separations found." in result.stdout


# =========================================================================
# effects
# =========================================================================


class TestBounds:
    def test_bounds(self, pattern_file, data_file):
        result = runner.invoke(app, ["effects", "bounds", str(pattern_file), str(data_file), "X", "Z"])
        assert result.exit_code == 0
        assert "Candidates: 2" in result.stdout
        assert "Minimum:" in result.stdout
        assert "Maximum:" in result.stdout

    def test_no_estimate(self, pattern_file, data_file):
        result = runner.invoke(app, ["effects", "bounds", str(pattern_file), str(data_file), "X", "X"])
        assert result.exit_code == 0
        assert "No estimate for X -> X." in result.stdout

    def test_sibling_limit_from_env(self, pattern_file, data_file, monkeypatch):
        monkeypatch.setenv("PAGKIT_MAX_SIBLINGS", "0")
        result = runner.invoke(app, ["effects", "bounds", str(pattern_file), str(data_file), "X", "Z"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "siblings" in result.output

    def test_missing_column(self, tmp_path, pattern_file):
        data = tmp_path / "short.csv"
        data.write_text("X,Y\n1,2\n3,4\n5,7\n")
        result = runner.invoke(app, ["effects", "bounds", str(pattern_file), str(data), "X", "Z"])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestRank:
    def test_rank(self, pattern_file, data_file):
        result = runner.invoke(app, ["effects", "rank", str(pattern_file), str(data_file), "Z"])
        assert result.exit_code == 0
        rows = [line.split() for line in result.stdout.splitlines()[2:] if line.strip()]
        assert [row[0] for row in rows] == ["Y", "X"]
