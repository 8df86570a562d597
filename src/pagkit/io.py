"""Reading and writing graphs and data.

Graph documents are YAML:

    nodes: [X, Y, {name: L, kind: latent}]
    edges:
      - X --> Y
      - Y o-o L
    triples:
      underline: [[X, Y, L]]
    pag: true

Edge strings put a three-character connector between two node names. The
first character is the mark at the left node (``-`` tail, ``<`` arrow,
``o`` circle), the second is always ``-`` and the third is the mark at the
right node (``-``, ``>`` or ``o``).
"""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import Any

import networkx as nx
import yaml

from .errors import FormatError, StructuralViolationError, UnsupportedQueryError
from .graph.store import EndpointMatrixGraph
from .graph.types import Edge, Endpoint, Node, TripleKind, VariableKind

logger = logging.getLogger(__name__)

_EDGE_RE = re.compile(r"^\s*(\S+)\s+([-<o])-([->o])\s+(\S+)\s*$")
_LEFT = {"-": Endpoint.TAIL, "<": Endpoint.ARROW, "o": Endpoint.CIRCLE}
_RIGHT = {"-": Endpoint.TAIL, ">": Endpoint.ARROW, "o": Endpoint.CIRCLE}


# =============================================================================
# Edge strings
# =============================================================================


def parse_edge(text: str, graph: EndpointMatrixGraph | None = None) -> Edge:
    """Parse ``"A --> B"`` style text into an Edge.

    With *graph*, node names resolve to the graph's nodes (and must exist);
    otherwise fresh nodes are created.
    """
    match = _EDGE_RE.match(text)
    if match is None:
        raise FormatError(f"Not an edge: {text!r}")
    left, mark1, mark2, right = match.groups()
    if graph is not None:
        node1, node2 = graph.resolve(left), graph.resolve(right)
    else:
        node1, node2 = Node(left), Node(right)
    return Edge(node1, node2, _LEFT[mark1], _RIGHT[mark2])


def format_edge(edge: Edge) -> str:
    return str(edge)


# =============================================================================
# Graph documents
# =============================================================================


def graph_from_dict(doc: dict[str, Any]) -> EndpointMatrixGraph:
    """Build a graph from a parsed graph document."""
    if not isinstance(doc, dict):
        raise FormatError(f"Graph document must be a mapping, got {type(doc).__name__}")

    graph = EndpointMatrixGraph()
    for entry in doc.get("nodes") or []:
        node = _node_from_entry(entry)
        if not graph.add_node(node):
            raise FormatError(f"Duplicate node: {node}")

    for text in doc.get("edges") or []:
        edge = parse_edge(str(text))
        for node in edge.nodes:
            if node not in graph:
                graph.add_node(node)
        if not graph.add_edge(edge):
            raise FormatError(f"Second edge between {edge.node1} and {edge.node2}: {text!r}")

    for kind_name, triples in (doc.get("triples") or {}).items():
        try:
            kind = TripleKind(kind_name)
        except ValueError:
            raise FormatError(f"Unknown triple kind: {kind_name!r}") from None
        for triple in triples or []:
            if not isinstance(triple, list | tuple) or len(triple) != 3:
                raise FormatError(f"A triple needs three node names, got {triple!r}")
            try:
                graph.add_triple(kind, *(str(n) for n in triple))
            except StructuralViolationError as err:
                raise FormatError(str(err)) from err

    for key, value in (doc.get("attributes") or {}).items():
        graph.add_attribute(str(key), value)
    graph.is_pag = bool(doc.get("pag", False))
    graph.is_pattern = bool(doc.get("pattern", False))
    return graph


def graph_to_dict(graph: EndpointMatrixGraph) -> dict[str, Any]:
    nodes: list[Any] = [
        node.name
        if node.kind == VariableKind.CONTINUOUS
        else {"name": node.name, "kind": node.kind.value}
        for node in graph.nodes
    ]
    doc: dict[str, Any] = {
        "nodes": nodes,
        "edges": [format_edge(edge) for edge in graph.edges()],
    }
    triples = {
        kind.value: sorted([t.x.name, t.y.name, t.z.name] for t in graph.triples(kind))
        for kind in TripleKind
        if graph.triples(kind)
    }
    if triples:
        doc["triples"] = triples
    if graph.attributes:
        doc["attributes"] = dict(graph.attributes)
    if graph.is_pag:
        doc["pag"] = True
    if graph.is_pattern:
        doc["pattern"] = True
    return doc


def load_graph(path: Path | str) -> EndpointMatrixGraph:
    path = Path(path)
    try:
        doc = yaml.safe_load(path.read_text())
    except yaml.YAMLError as err:
        raise FormatError(f"{path}: {err}") from err
    graph = graph_from_dict(doc or {})
    logger.debug("Loaded %s: %d nodes, %d edges", path, graph.num_nodes, graph.num_edges)
    return graph


def dump_graph(graph: EndpointMatrixGraph, path: Path | str) -> None:
    Path(path).write_text(yaml.safe_dump(graph_to_dict(graph), sort_keys=False))


def _node_from_entry(entry: Any) -> Node:
    if isinstance(entry, str):
        return Node(entry)
    if isinstance(entry, dict) and "name" in entry:
        try:
            kind = VariableKind(entry.get("kind", VariableKind.CONTINUOUS))
        except ValueError:
            raise FormatError(f"Unknown variable kind in {entry!r}") from None
        return Node(str(entry["name"]), kind)
    raise FormatError(f"Node entries are names or {{name, kind}} maps, got {entry!r}")


# =============================================================================
# Tabular data
# =============================================================================


def read_columns(path: Path | str) -> dict[str, list[float]]:
    """Read a headed CSV file of numbers into ``name -> values`` columns."""
    path = Path(path)
    with path.open(newline="") as fh:
        reader = csv.reader(fh)
        try:
            header = [name.strip() for name in next(reader)]
        except StopIteration:
            raise FormatError(f"{path} is empty") from None
        columns: dict[str, list[float]] = {name: [] for name in header}
        for lineno, row in enumerate(reader, start=2):
            if not row:
                continue
            if len(row) != len(header):
                raise FormatError(f"{path}:{lineno}: expected {len(header)} fields, got {len(row)}")
            for name, cell in zip(header, row):
                try:
                    columns[name].append(float(cell))
                except ValueError:
                    raise FormatError(f"{path}:{lineno}: {cell!r} is not a number") from None
    return columns


# =============================================================================
# networkx bridge
# =============================================================================


def to_networkx(graph: EndpointMatrixGraph) -> nx.DiGraph:
    """The graph as a networkx DiGraph. Every edge must be directed."""
    digraph = nx.DiGraph()
    for node in graph.nodes:
        digraph.add_node(node.name, kind=node.kind.value)
    for edge in graph.edges():
        if not edge.is_directed():
            raise UnsupportedQueryError(f"Only directed edges convert to networkx, got {edge}")
        if edge.endpoint2 == Endpoint.ARROW:
            digraph.add_edge(edge.node1.name, edge.node2.name)
        else:
            digraph.add_edge(edge.node2.name, edge.node1.name)
    return digraph


def from_networkx(digraph: nx.DiGraph) -> EndpointMatrixGraph:
    """A directed EndpointMatrixGraph from a networkx DiGraph."""
    graph = EndpointMatrixGraph()
    for name, data in digraph.nodes(data=True):
        graph.add_node(Node(str(name), VariableKind(data.get("kind", VariableKind.CONTINUOUS))))
    for u, v in digraph.edges():
        if not graph.add_directed_edge(str(u), str(v)):
            raise StructuralViolationError(f"{u} and {v} are joined in both directions")
    return graph
