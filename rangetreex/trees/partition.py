"""Top-down contiguous-range partitioning shared by the splitting tree variants."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from rangetreex.core.bounds import BallBounds, HRectBounds, NodeBounds
from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena

# ``split(node_indices, context)`` returns ``None`` to keep the node as a leaf,
# or ``(groups, child_contexts)`` where ``groups`` are position arrays into
# ``node_indices`` that partition it into at least two non-empty parts.
SplitOutcome = Optional[Tuple[Sequence[np.ndarray], Sequence[Any]]]
SplitFn = Callable[[np.ndarray, Any], SplitOutcome]
BoundsFn = Callable[[np.ndarray, TreeArena], NodeBounds]


def _check_groups(groups: Sequence[np.ndarray], count: int) -> List[np.ndarray]:
    checked = [np.asarray(group, dtype=np.int64) for group in groups]
    if len(checked) < 2:
        raise RuntimeError("A split must produce at least two groups.")
    sizes = [group.shape[0] for group in checked]
    if min(sizes) == 0 or sum(sizes) != count:
        raise RuntimeError("Split groups must be non-empty and cover the node exactly once.")
    return checked


def partition_build(
    points: np.ndarray,
    *,
    tree_type: str,
    leaf_size: int,
    split: SplitFn,
    make_bounds: BoundsFn,
    root_context: Any = None,
) -> SpatialTree:
    """Build a tree by repeatedly splitting nodes holding more than ``leaf_size`` points.

    Nodes are processed depth-first, left child first, which fixes the order
    in which randomised split rules draw from their generator.
    """

    count = points.shape[0]
    order = np.arange(count, dtype=np.int64)
    arena = TreeArena()
    arena.add_node(0, count, root_context)
    stack = [0]
    while stack:
        node = stack.pop()
        begin = arena.node_begin[node]
        size = arena.node_count[node]
        if size <= leaf_size:
            continue
        node_indices = order[begin : begin + size]
        outcome = split(node_indices, arena.contexts[node])
        if outcome is None:
            continue
        groups, child_contexts = outcome
        groups = _check_groups(groups, size)
        order[begin : begin + size] = np.concatenate([node_indices[group] for group in groups])
        children: List[int] = []
        offset = begin
        for group, context in zip(groups, child_contexts):
            children.append(arena.add_node(offset, group.shape[0], context))
            offset += group.shape[0]
        arena.set_children(node, children)
        stack.extend(reversed(children))
    tree_points = points[order]
    bounds = make_bounds(tree_points, arena)
    return arena.to_tree(
        tree_type=tree_type,
        leaf_size=leaf_size,
        points=tree_points,
        indices=order,
        bounds=bounds,
    )


def all_identical(points: np.ndarray) -> bool:
    if points.shape[0] <= 1:
        return True
    return bool(np.all(points == points[0]))


def median_halves(values: np.ndarray) -> List[np.ndarray]:
    """Positions of the lower and upper half of ``values`` (stable order)."""

    order = np.argsort(values, kind="stable")
    half = values.shape[0] // 2
    return [np.sort(order[:half]), np.sort(order[half:])]


def tight_hrect_bounds(tree_points: np.ndarray, arena: TreeArena) -> HRectBounds:
    """Minimum bounding rectangle of every node's points."""

    dimension = tree_points.shape[1]
    lower = np.empty((arena.num_nodes, dimension), dtype=np.float64)
    upper = np.empty((arena.num_nodes, dimension), dtype=np.float64)
    for node in range(arena.num_nodes - 1, -1, -1):
        children = arena.node_children[node]
        if children:
            lower[node] = np.min(lower[children], axis=0)
            upper[node] = np.max(upper[children], axis=0)
        else:
            begin = arena.node_begin[node]
            block = tree_points[begin : begin + arena.node_count[node]]
            lower[node] = block.min(axis=0)
            upper[node] = block.max(axis=0)
    return HRectBounds(lower=lower, upper=upper)


def enclosing_ball_bounds(
    tree_points: np.ndarray,
    arena: TreeArena,
    centers: np.ndarray,
    metric: Metric,
) -> BallBounds:
    """Balls around the given centres that hold every point and every child ball."""

    radii = np.zeros(arena.num_nodes, dtype=np.float64)
    for node in range(arena.num_nodes - 1, -1, -1):
        begin = arena.node_begin[node]
        block = tree_points[begin : begin + arena.node_count[node]]
        radius = float(np.max(metric.to_point(block, centers[node])))
        for child in arena.node_children[node]:
            reach = metric.distance(centers[child], centers[node]) + radii[child]
            radius = max(radius, reach)
        radii[node] = radius
    return BallBounds(centers=np.ascontiguousarray(centers), radii=radii)


def box_center_bounds(tree_points: np.ndarray, arena: TreeArena, metric: Metric) -> BallBounds:
    """Enclosing balls centred on each node's bounding-box midpoint."""

    box = tight_hrect_bounds(tree_points, arena)
    centers = 0.5 * (box.lower + box.upper)
    return enclosing_ball_bounds(tree_points, arena, centers, metric)


__all__ = [
    "SplitFn",
    "SplitOutcome",
    "all_identical",
    "box_center_bounds",
    "enclosing_ball_bounds",
    "median_halves",
    "partition_build",
    "tight_hrect_bounds",
]
