"""CLI commands for effect bounds over an equivalence class."""

from __future__ import annotations

from pathlib import Path

import typer

from pagkit.cli._errors import reports_errors
from pagkit.effects import EffectBoundEstimator
from pagkit.io import load_graph, read_columns
from pagkit.observability import get_logger
from pagkit.regression import OLSRegression

app = typer.Typer(help="Bound causal effects using a graph and observed data.")


def _estimator(graph_file: Path, data_file: Path, zero_intercept: bool) -> EffectBoundEstimator:
    graph = load_graph(graph_file)
    regression = OLSRegression(read_columns(data_file), zero_intercept=zero_intercept)
    return EffectBoundEstimator.from_settings(graph, regression)


@app.command()
@reports_errors
def bounds(
    graph_file: Path = typer.Argument(..., help="YAML graph document"),
    data_file: Path = typer.Argument(..., help="CSV file with one column per node"),
    x: str = typer.Argument(..., help="Cause"),
    y: str = typer.Argument(..., help="Effect"),
    zero_intercept: bool = typer.Option(False, "--zero-intercept", help="Fit without intercept"),
) -> None:
    """Print the smallest and largest |effect| of X on Y."""
    estimator = _estimator(graph_file, data_file, zero_intercept)
    effects = estimator.effects(x, y)
    get_logger(__name__).info("effect_bounds", x=x, y=y, candidates=len(effects))
    if not effects:
        typer.echo(f"No estimate for {x} -> {y}.")
        return

    typer.echo(f"Candidates: {len(effects)}")
    typer.echo(f"Minimum:    {effects[0]:.6g}")
    typer.echo(f"Maximum:    {effects[-1]:.6g}")


@app.command()
@reports_errors
def rank(
    graph_file: Path = typer.Argument(..., help="YAML graph document"),
    data_file: Path = typer.Argument(..., help="CSV file with one column per node"),
    y: str = typer.Argument(..., help="Effect"),
    zero_intercept: bool = typer.Option(False, "--zero-intercept", help="Fit without intercept"),
) -> None:
    """Rank every other node by its minimum effect on Y."""
    estimator = _estimator(graph_file, data_file, zero_intercept)
    ranked = estimator.ranked_minimum_effects(y)
    get_logger(__name__).info(
        "effects_ranked", target=y, ranking=[(e.node, round(e.effect, 6)) for e in ranked]
    )
    if not ranked:
        typer.echo(f"No estimates for causes of {y}.")
        return

    typer.echo(f"{'Node':<20} {'Min effect':>12}")
    typer.echo("-" * 33)
    for entry in ranked:
        typer.echo(f"{entry.node.name:<20} {entry.effect:>12.6g}")
