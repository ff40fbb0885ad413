from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.random import Generator, default_rng

Array = np.ndarray

# Six reference points (rows) shared by the end-to-end scenarios.
SCENARIO_REFERENCE = np.asarray(
    [
        [0.0, 4.0, 0.0],
        [3.0, 4.0, 1.0],
        [3.0, 4.0, 2.0],
        [4.0, 5.0, 2.0],
        [3.0, 5.0, 3.0],
        [1.0, 2.0, 3.0],
    ],
    dtype=np.float64,
)

SCENARIO_QUERIES = np.asarray(
    [
        [5.0, 4.0, 3.0],
        [3.0, 2.0, 1.0],
        [1.0, 4.0, 7.0],
    ],
    dtype=np.float64,
)


def _ensure_rng(rng: Generator | None) -> Generator:
    return rng or default_rng()


def gaussian_points(
    rng: Generator | None,
    count: int,
    dimension: int,
    *,
    dtype: np.dtype | type[np.floating] = np.float64,
) -> Array:
    """Sample `count` Gaussian points with the requested dimensionality."""

    generator = _ensure_rng(rng)
    if count <= 0 or dimension <= 0:
        return np.zeros((max(count, 0), max(dimension, 0)), dtype=dtype)
    samples = generator.normal(loc=0.0, scale=1.0, size=(count, dimension))
    return np.asarray(samples, dtype=dtype)


def gaussian_dataset(
    rng: Generator | None,
    *,
    tree_points: int,
    queries: int,
    dimension: int,
    dtype: np.dtype | type[np.floating] = np.float64,
) -> Tuple[Array, Array]:
    """Return a tuple `(points, queries)` drawn from the same Gaussian."""

    generator = _ensure_rng(rng)
    points = gaussian_points(generator, tree_points, dimension, dtype=dtype)
    query_points = gaussian_points(generator, queries, dimension, dtype=dtype)
    return points, query_points


def brute_force_pairs(
    queries: Array,
    reference: Array,
    lower: float,
    upper: float,
    *,
    self_search: bool = False,
    ord: float = 2,
) -> list[list[int]]:
    """Reference indices within ``[lower, upper]`` of each query, ascending."""

    diff = queries[:, None, :] - reference[None, :, :]
    dists = np.linalg.norm(diff, ord=ord, axis=2)
    rows = []
    for q in range(queries.shape[0]):
        mask = (dists[q] >= lower) & (dists[q] <= upper)
        if self_search:
            mask[q] = False
        rows.append(np.flatnonzero(mask).tolist())
    return rows
