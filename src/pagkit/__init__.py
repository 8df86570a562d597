"""pagkit: endpoint-marked causal graphs, d-separation and IDA-style effect bounds."""

from .combinatorics import choices, depth_choices, num_combinations, power_set_choices
from .dsep import DSeparationEngine
from .effects import EffectBoundEstimator, NodeEffect, true_effect_against_bounds
from .errors import (
    EnumerationLimitError,
    FormatError,
    InvalidQueryError,
    OverDeterminedError,
    PagkitError,
    SingularRegressionError,
    StructuralViolationError,
    UnknownNodeError,
    UnsupportedQueryError,
)
from .graph import (
    Edge,
    Endpoint,
    EndpointMatrixGraph,
    IndependenceAssertion,
    Node,
    Triple,
    TripleKind,
    VariableKind,
)
from .regression import OLSRegression, Regression, RegressionResult
from .settings import Settings, get_settings, reset_settings

__version__ = "0.1.0"

__all__ = [
    # Graph
    "Endpoint",
    "VariableKind",
    "TripleKind",
    "Node",
    "Edge",
    "Triple",
    "IndependenceAssertion",
    "EndpointMatrixGraph",
    # Algorithms
    "DSeparationEngine",
    "EffectBoundEstimator",
    "NodeEffect",
    "true_effect_against_bounds",
    "choices",
    "depth_choices",
    "power_set_choices",
    "num_combinations",
    # Regression
    "Regression",
    "RegressionResult",
    "OLSRegression",
    # Settings
    "Settings",
    "get_settings",
    "reset_settings",
    # Errors
    "PagkitError",
    "StructuralViolationError",
    "OverDeterminedError",
    "SingularRegressionError",
    "UnsupportedQueryError",
    "InvalidQueryError",
    "UnknownNodeError",
    "EnumerationLimitError",
    "FormatError",
]
