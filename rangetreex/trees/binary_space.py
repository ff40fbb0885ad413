from __future__ import annotations

import numpy as np

from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena
from rangetreex.trees.curves import curve_ranks, morton_keys
from rangetreex.trees.partition import (
    SplitOutcome,
    all_identical,
    box_center_bounds,
    median_halves,
    partition_build,
    tight_hrect_bounds,
)


def _midpoint_split(points: np.ndarray, node_indices: np.ndarray) -> SplitOutcome:
    block = points[node_indices]
    extent = np.ptp(block, axis=0)
    axis = int(np.argmax(extent))
    if extent[axis] <= 0.0:
        return None
    values = block[:, axis]
    lo = float(values.min())
    hi = float(values.max())
    mid = 0.5 * (lo + hi)
    left = values <= mid
    if left.all() or not left.any():
        groups = median_halves(values)
    else:
        groups = [np.flatnonzero(left), np.flatnonzero(~left)]
    return groups, [None, None]


def build_kd_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "kd"
) -> SpatialTree:
    """Axis-aligned tree splitting the widest dimension at its midpoint."""

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=lambda node_indices, _ctx: _midpoint_split(points, node_indices),
        make_bounds=lambda tree_points, arena: tight_hrect_bounds(tree_points, arena),
    )


def build_ball_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "ball"
) -> SpatialTree:
    """Midpoint splits like the kd variant, bounded by enclosing balls."""

    def make_bounds(tree_points: np.ndarray, arena: TreeArena):
        return box_center_bounds(tree_points, arena, metric)

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=lambda node_indices, _ctx: _midpoint_split(points, node_indices),
        make_bounds=make_bounds,
    )


def build_ub_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "ub"
) -> SpatialTree:
    """Universal B-tree: nodes are runs of the Z-order curve split at the median address."""

    ranks = curve_ranks(morton_keys(points))

    def split(node_indices: np.ndarray, _ctx) -> SplitOutcome:
        if all_identical(points[node_indices]):
            return None
        return median_halves(ranks[node_indices]), [None, None]

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=split,
        make_bounds=lambda tree_points, arena: tight_hrect_bounds(tree_points, arena),
    )


__all__ = ["build_ball_tree", "build_kd_tree", "build_ub_tree"]
