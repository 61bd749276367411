"""Value-equality helpers used for declarative prop diffing."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

import numpy as np


def deep_equal(a: Any, b: Any, *, max_depth: int = 100) -> bool:
    """
    Structural equality for prop values.

    Differs from ``==`` in the ways prop diffing needs:
    - NaN equals NaN
    - numpy arrays compare element-wise (NaN-aware)
    - lists and tuples of equal items are equal
    - cyclic structures terminate; nesting deeper than ``max_depth`` is
      treated as unequal

    Parameters
    ----------
    a, b : Any
        Values to compare
    max_depth : int
        Maximum nesting depth to descend

    Returns
    -------
    bool
        True if the values are deeply equal
    """
    return _deep_equal(a, b, depth=0, max_depth=max_depth, visiting=set())


def _deep_equal(a: Any, b: Any, *, depth: int, max_depth: int, visiting: set) -> bool:
    if depth > max_depth:
        return False

    if a is b:
        return True

    if a is None or b is None:
        return False

    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True

    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        try:
            return bool(np.array_equal(np.asarray(a), np.asarray(b), equal_nan=True))
        except TypeError:
            # Non-numeric dtypes cannot use equal_nan
            return bool(np.array_equal(np.asarray(a), np.asarray(b)))

    both_mappings = isinstance(a, Mapping) and isinstance(b, Mapping)
    both_sequences = (
        isinstance(a, (list, tuple))
        and isinstance(b, (list, tuple))
    )
    if not (both_mappings or both_sequences):
        try:
            return bool(a == b)
        except (TypeError, ValueError):
            return False

    # Cycle protection: a pair already on the stack is assumed equal
    pair = (id(a), id(b))
    if pair in visiting:
        return True
    visiting.add(pair)
    try:
        if both_sequences:
            if len(a) != len(b):
                return False
            return all(
                _deep_equal(x, y, depth=depth + 1, max_depth=max_depth, visiting=visiting)
                for x, y in zip(a, b)
            )

        if a.keys() != b.keys():
            return False
        return all(
            _deep_equal(a[key], b[key], depth=depth + 1, max_depth=max_depth, visiting=visiting)
            for key in a
        )
    finally:
        visiting.discard(pair)


__all__ = ["deep_equal"]
