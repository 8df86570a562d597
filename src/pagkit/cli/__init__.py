"""pagkit CLI -- typer-based command interface.

Commands:
    pagkit graph inspect <file>             Summarize a graph document
    pagkit graph dsep <file> X Y [-z Z]     Test d-separation
    pagkit graph separations <file>         List every d-separation
    pagkit effects bounds <graph> <csv> X Y Bound the effect of X on Y
    pagkit effects rank <graph> <csv> Y     Rank candidate causes of Y
"""

from __future__ import annotations

import typer

from pagkit.cli import effects_cmd, graph_cmd
from pagkit.observability import ObservabilityConfig, setup_logging

app = typer.Typer(
    name="pagkit",
    help="Query endpoint-marked causal graphs: d-separation and effect bounds.",
    no_args_is_help=True,
)

app.add_typer(graph_cmd.app, name="graph")
app.add_typer(effects_cmd.app, name="effects")


@app.callback()
def _configure() -> None:
    # PAGKIT_LOG_* environment variables pick the formatter, destination and level.
    setup_logging(ObservabilityConfig())


def main() -> None:
    """Entry point for the pagkit CLI."""
    app()
