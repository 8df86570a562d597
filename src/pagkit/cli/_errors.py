"""CLI error handling and decorators."""

from __future__ import annotations

import functools
from typing import Any, Callable

import typer

from pagkit.errors import PagkitError


def handle_error(msg: str) -> None:
    """Print an error message and exit."""
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(1)


def reports_errors(f: Callable) -> Callable:
    """Decorator that turns library errors into a one-line message and exit status 1.

    Missing files are reported the same way; anything else propagates.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except PagkitError as err:
            handle_error(str(err))
        except FileNotFoundError as err:
            handle_error(f"No such file: {err.filename}")

    return wrapper
