from __future__ import annotations

import numpy as np

from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree
from rangetreex.trees.partition import (
    SplitOutcome,
    all_identical,
    median_halves,
    partition_build,
    tight_hrect_bounds,
)

# A node counts as compact when its squared diameter is at most this multiple
# of the mean squared distance to its centroid.
_MEAN_SPLIT_RATIO = 10.0


def _random_direction(rng: np.random.Generator, dimension: int) -> np.ndarray:
    while True:
        direction = rng.standard_normal(dimension)
        norm = float(np.linalg.norm(direction))
        if norm > 0.0:
            return direction / norm


def build_rp_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "rp"
) -> SpatialTree:
    """Random-projection tree with the mean-split rule.

    Compact nodes are cut at the median of a random projection; spread-out
    nodes are cut at the median distance to their centroid.
    """

    rng = np.random.default_rng(seed)

    def split(node_indices: np.ndarray, _ctx) -> SplitOutcome:
        block = points[node_indices]
        if all_identical(block):
            return None
        centroid = block.mean(axis=0)
        sq_dist = np.sum((block - centroid) ** 2, axis=1)
        diameter_sq = 4.0 * float(sq_dist.max())
        if diameter_sq <= _MEAN_SPLIT_RATIO * float(sq_dist.mean()):
            direction = _random_direction(rng, block.shape[1])
            return median_halves(block @ direction), [None, None]
        return median_halves(sq_dist), [None, None]

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=split,
        make_bounds=lambda tree_points, arena: tight_hrect_bounds(tree_points, arena),
    )


def build_max_rp_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "max-rp"
) -> SpatialTree:
    """Random-projection tree cutting every node at the median of a random direction."""

    rng = np.random.default_rng(seed)

    def split(node_indices: np.ndarray, _ctx) -> SplitOutcome:
        block = points[node_indices]
        if all_identical(block):
            return None
        direction = _random_direction(rng, block.shape[1])
        return median_halves(block @ direction), [None, None]

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=split,
        make_bounds=lambda tree_points, arena: tight_hrect_bounds(tree_points, arena),
    )


__all__ = ["build_max_rp_tree", "build_rp_tree"]
