"""Subset enumeration over index universes.

``choices(a, b)`` yields every ``b``-element subset of ``range(a)`` as a
strictly increasing tuple. Order is fixed: the right-most index that can
still move is incremented and every index to its right is reset to
consecutive values, so ``choices(4, 2)`` yields (0, 1), (0, 2), (0, 3),
(1, 2), (1, 3), (2, 3).
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterator, Sequence
from typing import TypeVar

import numpy as np
from scipy.special import gammaln

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Counts below 2**53 are exactly representable as floats.
_EXACT_LOG_LIMIT = 53 * math.log(2)


def _check_bounds(a: int, b: int) -> None:
    if a < 0 or b < 0 or b > a:
        raise ValueError(f"Need 0 <= b <= a, got a={a}, b={b}")


def choices(
    a: int,
    b: int,
    *,
    interrupt: threading.Event | None = None,
) -> Iterator[tuple[int, ...]]:
    """Yield every ``b``-subset of ``range(a)``.

    Args:
        a: Universe size.
        b: Subset size.
        interrupt: Checked before each combination, the first included;
            once set, the generator stops as if exhausted.

    Raises:
        ValueError: Unless ``0 <= b <= a``.
    """
    _check_bounds(a, b)
    return _choices(a, b, interrupt)


def _choices(a: int, b: int, interrupt: threading.Event | None) -> Iterator[tuple[int, ...]]:
    choice = list(range(b))
    slack = a - b

    while True:
        if interrupt is not None and interrupt.is_set():
            logger.info("Subset enumeration (a=%d, b=%d) interrupted", a, b)
            return
        yield tuple(choice)
        for i in range(b - 1, -1, -1):
            if choice[i] < i + slack:
                choice[i] += 1
                for j in range(i + 1, b):
                    choice[j] = choice[j - 1] + 1
                break
        else:
            return


def depth_choices(
    a: int,
    depth: int | None = None,
    *,
    interrupt: threading.Event | None = None,
) -> Iterator[tuple[int, ...]]:
    """Yield every subset of ``range(a)`` with at most *depth* elements.

    Subsets come smallest first; ``depth=None`` walks the full power set.
    """
    limit = a if depth is None else min(depth, a)
    if limit < 0:
        raise ValueError(f"depth must be non-negative, got {depth}")
    for size in range(limit + 1):
        for choice in choices(a, size, interrupt=interrupt):
            yield choice
        if interrupt is not None and interrupt.is_set():
            return


def power_set_choices(
    a: int,
    *,
    interrupt: threading.Event | None = None,
) -> Iterator[tuple[int, ...]]:
    """All ``2**a`` subsets of ``range(a)``, smallest first."""
    return depth_choices(a, None, interrupt=interrupt)


def num_combinations(a: int, b: int) -> float:
    """C(a, b) as a float, computed through log-gamma.

    Exact while the count fits in a float's 53-bit mantissa; beyond that the
    log-gamma estimate is returned, saturating to ``inf`` instead of raising.
    """
    _check_bounds(a, b)
    log_count = float(gammaln(a + 1) - gammaln(b + 1) - gammaln(a - b + 1))
    if log_count < _EXACT_LOG_LIMIT:
        return float(math.comb(a, b))
    with np.errstate(over="ignore"):
        return float(np.exp(log_count))


def as_items(choice: Sequence[int], items: Sequence[T]) -> list[T]:
    """Map an index tuple onto the items it selects."""
    return [items[i] for i in choice]
