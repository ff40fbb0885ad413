from __future__ import annotations

import math
from typing import List

import numpy as np

from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena
from rangetreex.trees.partition import SplitOutcome, enclosing_ball_bounds, partition_build

COVER_BASE = 2.0


def cover_radius(max_distance: float, base: float = COVER_BASE) -> float:
    """Largest power of ``base`` strictly below ``max_distance``."""

    if max_distance <= 0.0:
        return 0.0
    radius = base ** math.floor(math.log(max_distance, base))
    while radius >= max_distance:
        radius /= base
    while radius * base < max_distance:
        radius *= base
    return radius


def _cover_groups(block: np.ndarray, metric: Metric, base: float) -> SplitOutcome:
    # Row 0 is the node's own point; it leads the self child so that the child
    # is centred on the same point.
    dists = metric.to_point(block, block[0])
    max_distance = float(dists.max())
    if max_distance <= 0.0:
        return None
    radius = cover_radius(max_distance, base)
    covered = dists <= radius
    groups: List[np.ndarray] = [np.flatnonzero(covered)]
    remaining = np.flatnonzero(~covered)
    while remaining.size:
        # Farthest uncovered point first; argmax keeps the lowest position on ties.
        pivot = remaining[int(np.argmax(dists[remaining]))]
        near = metric.to_point(block[remaining], block[pivot]) <= radius
        members = remaining[near]
        groups.append(np.concatenate(([pivot], members[members != pivot])))
        remaining = remaining[~near]
    return groups, [None] * len(groups)


def build_cover_tree(
    points: np.ndarray,
    *,
    leaf_size: int,
    metric: Metric,
    seed: int,
    tree_type: str = "cover",
    base: float = COVER_BASE,
) -> SpatialTree:
    """Cover tree built top-down.

    A node is centred on its first point. Its children cover the node's points
    with balls of the largest power of ``base`` below the node's radius: the
    node's own point keeps the first child and the remaining points are
    covered greedily, farthest first.
    """

    def make_bounds(tree_points: np.ndarray, arena: TreeArena):
        begins = np.asarray(arena.node_begin, dtype=np.int64)
        return enclosing_ball_bounds(tree_points, arena, tree_points[begins].copy(), metric)

    return partition_build(
        points,
        tree_type=tree_type,
        leaf_size=leaf_size,
        split=lambda node_indices, _ctx: _cover_groups(points[node_indices], metric, base),
        make_bounds=make_bounds,
    )


__all__ = ["COVER_BASE", "build_cover_tree", "cover_radius"]
