"""Tests for graph documents, the edge-string codec, CSV columns and the networkx bridge."""

import networkx as nx
import pytest
import yaml

from pagkit.errors import FormatError, UnknownNodeError, UnsupportedQueryError
from pagkit.graph import EndpointMatrixGraph, Endpoint, Node, TripleKind, VariableKind
from pagkit.io import (
    dump_graph,
    format_edge,
    from_networkx,
    graph_from_dict,
    load_graph,
    parse_edge,
    read_columns,
    to_networkx,
)


class TestEdgeCodec:
    @pytest.mark.parametrize(
        "text, marks",
        [
            ("A --> B", (Endpoint.TAIL, Endpoint.ARROW)),
            ("A <-- B", (Endpoint.ARROW, Endpoint.TAIL)),
            ("A o-> B", (Endpoint.CIRCLE, Endpoint.ARROW)),
            ("A <-> B", (Endpoint.ARROW, Endpoint.ARROW)),
            ("A --- B", (Endpoint.TAIL, Endpoint.TAIL)),
            ("A o-o B", (Endpoint.CIRCLE, Endpoint.CIRCLE)),
        ],
    )
    def test_parse(self, text, marks):
        edge = parse_edge(text)
        assert (edge.endpoint1, edge.endpoint2) == marks
        assert format_edge(edge) == text

    @pytest.mark.parametrize("text", ["A -> B", "A --> ", "A ==> B", "A --x B"])
    def test_malformed(self, text):
        with pytest.raises(FormatError):
            parse_edge(text)

    def test_resolves_against_graph(self):
        graph = EndpointMatrixGraph([Node("A", VariableKind.LATENT), "B"])
        edge = parse_edge("A --> B", graph)
        assert edge.node1.kind == VariableKind.LATENT
        with pytest.raises(UnknownNodeError):
            parse_edge("A --> Q", graph)


class TestGraphDocuments:
    def test_load(self, tmp_path):
        path = tmp_path / "g.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "nodes": ["X", {"name": "L", "kind": "latent"}],
                    "edges": ["X o-> Y", "Y <-> L", "Y --> Z"],
                    "triples": {"ambiguous": [["X", "Y", "Z"]]},
                    "attributes": {"source": "fci"},
                    "pag": True,
                }
            )
        )
        graph = load_graph(path)
        assert graph.node_names == ["X", "L", "Y", "Z"]
        assert graph.get_node("L").kind == VariableKind.LATENT
        assert graph.get_edge("L", "Y").is_bidirected()
        assert graph.is_triple(TripleKind.AMBIGUOUS, "X", "Y", "Z")
        assert graph.get_attribute("source") == "fci"
        assert graph.is_pag and not graph.is_pattern

    def test_dump_then_load_preserves_graph(self, tmp_path, pag_graph):
        pag_graph.add_triple(TripleKind.UNDERLINE, "A", "B", "D")
        path = tmp_path / "pag.yaml"
        dump_graph(pag_graph, path)
        loaded = load_graph(path)
        assert loaded == pag_graph
        assert loaded.underline_triples == pag_graph.underline_triples
        assert loaded.is_pag

    def test_second_edge_between_pair(self):
        with pytest.raises(FormatError):
            graph_from_dict({"edges": ["A --> B", "B --> A"]})

    def test_triple_not_on_path(self):
        with pytest.raises(FormatError):
            graph_from_dict({"edges": ["A --> B"], "triples": {"underline": [["A", "B", "C"]]}})

    def test_unknown_triple_kind(self):
        with pytest.raises(FormatError):
            graph_from_dict({"edges": ["A --> B", "B --> C"], "triples": {"dashed": [["A", "B", "C"]]}})

    def test_bad_node_entry(self):
        with pytest.raises(FormatError):
            graph_from_dict({"nodes": [{"kind": "latent"}]})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- A --> B\n")
        with pytest.raises(FormatError):
            load_graph(path)


class TestReadColumns:
    def test_reads_numeric_columns(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("X,Y\n1,2.5\n3,-4\n")
        assert read_columns(path) == {"X": [1.0, 3.0], "Y": [2.5, -4.0]}

    def test_non_numeric_cell(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("X,Y\n1,abc\n")
        with pytest.raises(FormatError):
            read_columns(path)

    def test_ragged_row(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("X,Y\n1\n")
        with pytest.raises(FormatError):
            read_columns(path)


class TestNetworkxBridge:
    def test_to_networkx(self, sprinkler_graph):
        digraph = to_networkx(sprinkler_graph)
        assert set(digraph.edges()) == {
            ("Season", "Rain"),
            ("Season", "Sprinkler"),
            ("Rain", "Wet"),
            ("Sprinkler", "Wet"),
            ("Wet", "Slippery"),
        }

    def test_to_networkx_rejects_undirected(self, pattern_graph):
        with pytest.raises(UnsupportedQueryError):
            to_networkx(pattern_graph)

    def test_from_networkx(self):
        digraph = nx.DiGraph([("A", "B"), ("B", "C")])
        graph = from_networkx(digraph)
        assert graph.node_names == ["A", "B", "C"]
        assert graph.is_parent_of("A", "B")
        assert graph.is_parent_of("B", "C")
        assert from_networkx(to_networkx(graph)) == graph
