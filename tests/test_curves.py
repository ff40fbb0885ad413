import numpy as np
import pytest

from rangetreex.trees.curves import (
    _axes_to_transpose,
    _interleave,
    curve_ranks,
    hilbert_keys,
    morton_keys,
    quantize,
)


def _grid_points(side: int) -> np.ndarray:
    xs, ys = np.meshgrid(np.arange(side), np.arange(side), indexing="ij")
    return np.stack([xs.ravel(), ys.ravel()], axis=1).astype(np.float64)


def test_quantize_spans_the_grid():
    points = np.asarray([[0.0, 5.0], [1.0, 5.0], [0.5, 5.0]])

    grid = quantize(points, bits=4)

    assert grid.dtype == np.uint64
    assert grid[:, 0].tolist() == [0, 15, 7]
    # A constant column collapses to zero.
    assert grid[:, 1].tolist() == [0, 0, 0]


def test_quantize_rejects_vectors():
    with pytest.raises(ValueError):
        quantize(np.zeros(3))


def test_morton_keys_interleave_bits():
    points = _grid_points(2)

    keys = morton_keys(points, bits=1)

    # Row-major (x, y) grid; x carries the more significant bit.
    assert curve_ranks(keys).tolist() == [0, 1, 2, 3]
    assert len(set(keys)) == 4


def test_hilbert_keys_visit_neighbouring_cells():
    side = 8
    points = _grid_points(side)

    grid = points.astype(np.uint64)
    keys = _interleave(_axes_to_transpose(grid, 3), 3)
    ranks = curve_ranks(keys)
    ordered = points[np.argsort(ranks)]

    assert len(set(keys)) == side * side
    steps = np.abs(np.diff(ordered, axis=0)).sum(axis=1)
    assert np.all(steps == 1.0)


def test_curve_ranks_break_ties_by_position():
    ranks = curve_ranks([5, 1, 5, 0])

    assert ranks.tolist() == [2, 1, 3, 0]


def test_keys_handle_empty_input():
    empty = np.zeros((0, 3))

    assert morton_keys(empty) == []
    assert hilbert_keys(empty) == []
    assert curve_ranks([]).shape == (0,)


def test_hilbert_keys_are_distinct_for_distinct_cells():
    rng = np.random.default_rng(0)
    points = rng.uniform(-3.0, 3.0, size=(100, 3))

    keys = hilbert_keys(points)

    assert len(keys) == 100
    assert len(set(keys)) == 100
