"""Error taxonomy for pagkit.

Each class also derives from the builtin exception a caller would
naturally catch, so ``except ValueError`` keeps working for structural
mistakes and ``except NotImplementedError`` for unsupported queries.
"""

from __future__ import annotations


class PagkitError(Exception):
    """Base class for every error raised by pagkit."""


class StructuralViolationError(PagkitError, ValueError):
    """A node, edge or triple would break the graph's structural rules."""


class OverDeterminedError(PagkitError, RuntimeError):
    """More than one edge image was found between a node pair.

    The endpoint matrix cannot represent this state, so seeing it means
    the store's internal invariants are broken.
    """


class SingularRegressionError(PagkitError, ArithmeticError):
    """The regression capability could not solve for a regressor set."""


class UnsupportedQueryError(PagkitError, NotImplementedError):
    """The query has no meaningful answer for this graph representation."""


class UnknownNodeError(PagkitError, LookupError):
    """A node reference does not resolve to a node in the graph."""


class EnumerationLimitError(PagkitError, RuntimeError):
    """A candidate enumeration would exceed the configured cap."""


class FormatError(PagkitError, ValueError):
    """A graph document, edge string or data file could not be parsed."""


class InvalidQueryError(PagkitError, ValueError):
    """A query names the same node on both sides, or has the wrong arity."""
