"""Regression capability — protocol plus an ordinary-least-squares adapter.

The effect estimator only needs ``regress(target, regressors)`` and the
coefficient vector it returns; everything else on ``RegressionResult`` is
for callers that want to look at the fit.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np
from scipy import stats

from .errors import SingularRegressionError, UnknownNodeError
from .graph.types import NodeRef

logger = logging.getLogger(__name__)


@dataclass
class RegressionResult:
    """A fitted linear model.

    ``coefficients``, ``standard_errors``, ``t_statistics`` and ``p_values``
    are aligned; with an intercept, position 0 is the intercept and the
    regressors follow in the order given.
    """

    target: str
    regressors: list[str]
    coefficients: list[float]
    standard_errors: list[float]
    t_statistics: list[float]
    p_values: list[float]
    residuals: list[float] = field(repr=False)
    r_squared: float
    sample_size: int
    zero_intercept_assumed: bool = False

    def coefficient_of(self, name: str) -> float:
        """Coefficient on regressor *name*."""
        try:
            i = self.regressors.index(name)
        except ValueError:
            raise UnknownNodeError(f"{name!r} is not a regressor of {self.target}") from None
        return self.coefficients[i if self.zero_intercept_assumed else i + 1]


@runtime_checkable
class Regression(Protocol):
    """Anything that can regress one variable on others."""

    def regress(
        self,
        target: NodeRef,
        regressors: Sequence[NodeRef],
        rows: Sequence[int] | None = None,
    ) -> RegressionResult: ...


class OLSRegression:
    """Ordinary least squares over column-oriented data.

    Args:
        columns: Mapping of variable name to its observed values; all
            columns must have the same length.
        zero_intercept: Fit through the origin instead of adding an
            intercept column.
    """

    def __init__(
        self,
        columns: Mapping[str, Sequence[float]],
        zero_intercept: bool = False,
    ) -> None:
        self._columns = {name: np.asarray(values, dtype=float) for name, values in columns.items()}
        lengths = {len(values) for values in self._columns.values()}
        if len(lengths) > 1:
            raise ValueError(f"Columns differ in length: {sorted(lengths)}")
        self.sample_size = lengths.pop() if lengths else 0
        self.zero_intercept = zero_intercept

    @property
    def variables(self) -> list[str]:
        return list(self._columns)

    def regress(
        self,
        target: NodeRef,
        regressors: Sequence[NodeRef],
        rows: Sequence[int] | None = None,
    ) -> RegressionResult:
        """Fit ``target ~ regressors`` on all rows, or only on *rows*.

        Raises:
            UnknownNodeError: If a variable has no column.
            SingularRegressionError: If the design matrix is rank deficient
                or leaves no residual degrees of freedom.
        """
        target_name = _name(target)
        names = [_name(r) for r in regressors]
        selection = slice(None) if rows is None else np.asarray(rows, dtype=int)

        y = self._column(target_name)[selection]
        parts = [self._column(name)[selection] for name in names]
        if not self.zero_intercept:
            parts.insert(0, np.ones_like(y))
        x = np.column_stack(parts) if parts else np.empty((len(y), 0))

        n, k = x.shape
        if k == 0:
            raise SingularRegressionError(f"{target_name}: no coefficients to fit")
        if n <= k:
            raise SingularRegressionError(
                f"{target_name} on {names}: {n} rows for {k} coefficients"
            )
        if np.linalg.matrix_rank(x) < k:
            raise SingularRegressionError(f"{target_name} on {names}: design matrix is singular")

        coef, *_ = np.linalg.lstsq(x, y, rcond=None)
        residuals = y - x @ coef
        dof = n - k
        ss_res = float(residuals @ residuals)
        sigma2 = ss_res / dof
        covariance = sigma2 * np.linalg.inv(x.T @ x)
        se = np.sqrt(np.clip(np.diag(covariance), 0.0, None))
        with np.errstate(divide="ignore", invalid="ignore"):
            t = coef / se
        p = 2.0 * stats.t.sf(np.abs(t), dof)

        centred = y if self.zero_intercept else y - y.mean()
        ss_tot = float(centred @ centred)
        r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else float("nan")

        logger.debug("Regressed %s on %s (n=%d, r2=%.4f)", target_name, names, n, r_squared)
        return RegressionResult(
            target=target_name,
            regressors=names,
            coefficients=coef.tolist(),
            standard_errors=se.tolist(),
            t_statistics=t.tolist(),
            p_values=p.tolist(),
            residuals=residuals.tolist(),
            r_squared=r_squared,
            sample_size=n,
            zero_intercept_assumed=self.zero_intercept,
        )

    def _column(self, name: str) -> np.ndarray:
        try:
            return self._columns[name]
        except KeyError:
            raise UnknownNodeError(f"No data column named {name!r}") from None


def _name(ref: NodeRef) -> str:
    return ref if isinstance(ref, str) else ref.name
