"""Tests for value-equality helpers."""

import math

import numpy as np
import pytest

from src.shared.equality import deep_equal


class TestDeepEqual:
    """Test structural equality used for prop diffing."""

    @pytest.mark.parametrize(
        "a, b",
        [
            (1, 1),
            ("a", "a"),
            ({"a": [1, 2, {"b": 3}]}, {"a": [1, 2, {"b": 3}]}),
            ([1, 2], (1, 2)),
            (math.nan, math.nan),
            ({"x": math.nan}, {"x": float("nan")}),
            (None, None),
        ],
    )
    def test_equal(self, a, b):
        assert deep_equal(a, b)

    @pytest.mark.parametrize(
        "a, b",
        [
            (1, 2),
            ({"a": 1}, {"a": 1, "b": 2}),
            ([1, 2], [1, 2, 3]),
            (None, 0),
            ({}, None),
            ({"a": [1, {"b": 3}]}, {"a": [1, {"b": 4}]}),
        ],
    )
    def test_not_equal(self, a, b):
        assert not deep_equal(a, b)

    def test_numpy_arrays(self):
        assert deep_equal(np.array([1.0, np.nan]), np.array([1.0, np.nan]))
        assert not deep_equal(np.array([1.0, 2.0]), np.array([1.0, 3.0]))

    def test_cycles_terminate(self):
        a = {"name": "a"}
        a["self"] = a
        b = {"name": "a"}
        b["self"] = b

        assert deep_equal(a, b)

    def test_depth_limit_treats_deep_values_as_unequal(self):
        a = {"l1": {"l2": {"l3": 1}}}
        b = {"l1": {"l2": {"l3": 1}}}

        assert deep_equal(a, b)
        assert not deep_equal(a, b, max_depth=1)

