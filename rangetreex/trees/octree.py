from __future__ import annotations

from typing import Tuple

import numpy as np

from rangetreex.core.bounds import HRectBounds
from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena
from rangetreex.trees.partition import SplitOutcome, all_identical, median_halves, partition_build

Cell = Tuple[np.ndarray, float]


def _root_cell(points: np.ndarray) -> Cell:
    lower = points.min(axis=0)
    upper = points.max(axis=0)
    half = 0.5 * float(np.max(upper - lower)) if points.size else 0.0
    return 0.5 * (lower + upper), half


def _widest_median_split(block: np.ndarray, cell: Cell) -> SplitOutcome:
    # Points closer together than the cell arithmetic can resolve.
    axis = int(np.argmax(np.ptp(block, axis=0)))
    groups = median_halves(block[:, axis])
    return groups, [cell, cell]


def build_octree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "oct"
) -> SpatialTree:
    """Generalised octree: each cell splits into its ``2**d`` orthants, empty ones dropped.

    Cells whose points all fall into one orthant shrink in place until the
    points separate, so every internal node has at least two children.
    """

    def split(node_indices: np.ndarray, cell: Cell) -> SplitOutcome:
        block = points[node_indices]
        if all_identical(block):
            return None
        center, half = cell
        while True:
            above = block >= center
            codes, inverse = np.unique(above, axis=0, return_inverse=True)
            inverse = np.asarray(inverse).reshape(-1)
            if codes.shape[0] > 1:
                break
            shifted = center + np.where(codes[0], 0.5 * half, -0.5 * half)
            if not half > 0.0 or np.array_equal(shifted, center):
                return _widest_median_split(block, cell)
            center = shifted
            half *= 0.5
        groups = [np.flatnonzero(inverse == code) for code in range(codes.shape[0])]
        contexts = [
            (center + np.where(code, 0.5 * half, -0.5 * half), 0.5 * half) for code in codes
        ]
        return groups, contexts

    def make_bounds(tree_points: np.ndarray, arena: TreeArena) -> HRectBounds:
        count = arena.num_nodes
        dimension = tree_points.shape[1]
        lower = np.empty((count, dimension), dtype=np.float64)
        upper = np.empty((count, dimension), dtype=np.float64)
        for node in range(count):
            center, half = arena.contexts[node]
            begin = arena.node_begin[node]
            block = tree_points[begin : begin + arena.node_count[node]]
            # Cells are widened to their points so rounding in the cell
            # arithmetic never leaves a point outside.
            lower[node] = np.minimum(center - half, block.min(axis=0))
            upper[node] = np.maximum(center + half, block.max(axis=0))
        return HRectBounds(lower=lower, upper=upper)

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=split,
        make_bounds=make_bounds,
        root_context=_root_cell(points),
    )


__all__ = ["build_octree"]
