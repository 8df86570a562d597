"""CLI commands for inspecting graphs and testing d-separation."""

from __future__ import annotations

from pathlib import Path

import typer

from pagkit.cli._errors import reports_errors
from pagkit.dsep import DSeparationEngine
from pagkit.io import load_graph
from pagkit.observability import get_logger

app = typer.Typer(help="Inspect graph documents and query d-separation.")


def _fmt_set(names) -> str:
    return "{" + ", ".join(sorted(names)) + "}"


@app.command()
@reports_errors
def inspect(
    file: Path = typer.Argument(..., help="YAML graph document"),
) -> None:
    """Show node and edge counts, connectivity and the edge list."""
    graph = load_graph(file)
    kind = "PAG" if graph.is_pag else "pattern" if graph.is_pattern else "graph"

    typer.echo(f"Kind:         {kind}")
    typer.echo(f"Nodes:        {graph.num_nodes}")
    typer.echo(f"Edges:        {graph.num_edges}")
    typer.echo(f"Connectivity: {graph.connectivity}")
    typer.echo(f"Cyclic:       {'yes' if graph.exists_directed_cycle() else 'no'}")
    if graph.num_edges:
        typer.echo("")
        for i, edge in enumerate(graph.edges(), start=1):
            typer.echo(f"{i:>3}. {edge}")


@app.command()
@reports_errors
def dsep(
    file: Path = typer.Argument(..., help="YAML graph document"),
    x: str = typer.Argument(..., help="First node"),
    y: str = typer.Argument(..., help="Second node"),
    given: list[str] = typer.Option(None, "--given", "-z", help="Conditioning node (repeatable)"),
    possible: bool = typer.Option(
        False, "--possible", help="Use possible d-connection (for PAGs)"
    ),
) -> None:
    """Test whether X and Y are d-separated given the conditioning set."""
    engine = DSeparationEngine(load_graph(file))
    assertion = engine.separation([x], [y], given or [], possible=possible)

    z = _fmt_set(assertion.z)
    if possible:
        verdict = "not possibly d-connected" if assertion.is_independent else "possibly d-connected"
    else:
        verdict = "d-separated" if assertion.is_independent else "d-connected"
    typer.echo(f"{x} and {y} are {verdict} given {z}")


@app.command()
@reports_errors
def separations(
    file: Path = typer.Argument(..., help="YAML graph document"),
    max_size: int = typer.Option(3, "--max-size", "-k", help="Largest conditioning set"),
) -> None:
    """List every d-separation with conditioning sets up to --max-size."""
    engine = DSeparationEngine(load_graph(file))
    found = engine.find_all_d_separations(max_conditioning_size=max_size)
    get_logger(__name__).info("d_separations", file=str(file), max_size=max_size, count=len(found))
    if not found:
        typer.echo("No d-separations found.")
        return

    for a in found:
        typer.echo(f"{_fmt_set(a.x)} _||_ {_fmt_set(a.y)} | {_fmt_set(a.z)}")
    typer.echo(f"\n{len(found)} d-separation(s)")
