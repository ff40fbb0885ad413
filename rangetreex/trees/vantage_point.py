from __future__ import annotations

import numpy as np

from rangetreex.core.bounds import HollowBallBounds
from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena
from rangetreex.trees.partition import SplitOutcome, median_halves, partition_build


def _vantage_point(block: np.ndarray) -> np.ndarray:
    centroid = block.mean(axis=0)
    spread = np.sum((block - centroid) ** 2, axis=1)
    return block[int(np.argmax(spread))].copy()


def build_vp_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = "vp"
) -> SpatialTree:
    """Vantage-point tree.

    Every node picks the point farthest from its centroid as vantage point and
    splits its points at the median distance to it. A child is bounded by the
    annulus its points occupy around the parent's vantage point; the root uses
    its own vantage point.
    """

    def split(node_indices: np.ndarray, _ctx) -> SplitOutcome:
        block = points[node_indices]
        vantage = _vantage_point(block)
        dists = metric.to_point(block, vantage)
        if not np.any(dists > 0.0):
            return None
        return median_halves(dists), [vantage, vantage]

    def make_bounds(tree_points: np.ndarray, arena: TreeArena) -> HollowBallBounds:
        count = arena.num_nodes
        centers = np.empty((count, tree_points.shape[1]), dtype=np.float64)
        inner = np.empty(count, dtype=np.float64)
        outer = np.empty(count, dtype=np.float64)
        for node in range(count):
            begin = arena.node_begin[node]
            block = tree_points[begin : begin + arena.node_count[node]]
            center = arena.contexts[node]
            if center is None:
                center = _vantage_point(block)
            dists = metric.to_point(block, center)
            centers[node] = center
            inner[node] = float(dists.min())
            outer[node] = float(dists.max())
        return HollowBallBounds(centers=centers, inner=inner, outer=outer)

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=split,
        make_bounds=make_bounds,
    )


__all__ = ["build_vp_tree"]
