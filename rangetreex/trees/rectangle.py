"""R-tree family built by one-point-at-a-time insertion.

All six variants share the insertion loop and the final flattening into a
:class:`~rangetreex.core.tree.SpatialTree`; they differ in how a subtree is
chosen for a new point and how an overflowing node is split:

``r``            least-enlargement descent, Guttman's quadratic split
``r-star``       overlap-aware descent above leaves, R* topological split
``x``            R* with supernodes for directory splits that overlap too much
``hilbert-r``    descent and splits ordered by Hilbert value
``r-plus``       hyperplane splits, straddling children are cut downwards
``r-plus-plus``  as ``r-plus`` but descending through disjoint partition cells
"""

from __future__ import annotations

import bisect
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree, TreeArena
from rangetreex.trees.curves import curve_ranks, hilbert_keys
from rangetreex.trees.partition import tight_hrect_bounds

MAX_CHILDREN = 5
MIN_CHILDREN = 2
MIN_LEAF_FILL_RATIO = 0.4
X_MAX_OVERLAP = 0.2

VARIANT_R = "r"
VARIANT_R_STAR = "r-star"
VARIANT_X = "x"
VARIANT_HILBERT = "hilbert-r"
VARIANT_R_PLUS = "r-plus"
VARIANT_R_PLUS_PLUS = "r-plus-plus"

RECTANGLE_VARIANTS = (
    VARIANT_R,
    VARIANT_R_STAR,
    VARIANT_X,
    VARIANT_HILBERT,
    VARIANT_R_PLUS,
    VARIANT_R_PLUS_PLUS,
)


def _volumes(lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    return np.prod(np.maximum(upper - lower, 0.0), axis=-1)


def _margins(lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    return np.sum(np.maximum(upper - lower, 0.0), axis=-1)


def _pairwise_overlap(
    lo_a: np.ndarray, hi_a: np.ndarray, lo_b: np.ndarray, hi_b: np.ndarray
) -> np.ndarray:
    extent = np.minimum(hi_a[:, None, :], hi_b[None, :, :]) - np.maximum(
        lo_a[:, None, :], lo_b[None, :, :]
    )
    return np.where(np.all(extent >= 0.0, axis=-1), np.prod(np.maximum(extent, 0.0), axis=-1), 0.0)


class _RNode:
    __slots__ = (
        "leaf",
        "entries",
        "children",
        "lower",
        "upper",
        "lhv",
        "capacity",
        "cell_lower",
        "cell_upper",
    )

    def __init__(self, dimension: int, *, leaf: bool) -> None:
        self.leaf = leaf
        self.entries: List[int] = []
        self.children: List[_RNode] = []
        self.lower = np.full(dimension, np.inf)
        self.upper = np.full(dimension, -np.inf)
        self.lhv = -1
        self.capacity = MAX_CHILDREN
        self.cell_lower = np.full(dimension, -np.inf)
        self.cell_upper = np.full(dimension, np.inf)

    def size(self) -> int:
        return len(self.entries) if self.leaf else len(self.children)


class _RectangleTreeBuilder:
    def __init__(self, points: np.ndarray, *, variant: str, leaf_size: int) -> None:
        if variant not in RECTANGLE_VARIANTS:
            raise ValueError(f"Unknown rectangle tree variant '{variant}'.")
        self.points = points
        self.variant = variant
        self.dimension = points.shape[1]
        self.leaf_capacity = leaf_size
        self.min_leaf_fill = max(1, int(math.floor(MIN_LEAF_FILL_RATIO * leaf_size)))
        self.keys: Optional[np.ndarray] = None
        if variant == VARIANT_HILBERT:
            self.keys = curve_ranks(hilbert_keys(points))

    # -- node helpers -------------------------------------------------------

    def _new_node(self, *, leaf: bool, like: Optional[_RNode] = None) -> _RNode:
        node = _RNode(self.dimension, leaf=leaf)
        if like is not None:
            node.cell_lower = like.cell_lower.copy()
            node.cell_upper = like.cell_upper.copy()
        return node

    def _refresh(self, node: _RNode) -> None:
        if node.leaf:
            if node.entries:
                block = self.points[node.entries]
                node.lower = block.min(axis=0)
                node.upper = block.max(axis=0)
                if self.keys is not None:
                    node.lhv = int(self.keys[node.entries].max())
            else:
                node.lower = np.full(self.dimension, np.inf)
                node.upper = np.full(self.dimension, -np.inf)
                node.lhv = -1
            return
        if node.children:
            node.lower = np.min([child.lower for child in node.children], axis=0)
            node.upper = np.max([child.upper for child in node.children], axis=0)
            node.lhv = max(child.lhv for child in node.children)
        else:
            node.lower = np.full(self.dimension, np.inf)
            node.upper = np.full(self.dimension, -np.inf)
            node.lhv = -1

    def _item_boxes(self, node: _RNode) -> Tuple[np.ndarray, np.ndarray]:
        if node.leaf:
            block = self.points[node.entries]
            return block, block
        lower = np.array([child.lower for child in node.children])
        upper = np.array([child.upper for child in node.children])
        return lower, upper

    def _min_fill(self, node: _RNode) -> int:
        return self.min_leaf_fill if node.leaf else MIN_CHILDREN

    def _make_parts(self, node: _RNode, groups: Sequence[Sequence[int]]) -> List[_RNode]:
        parts: List[_RNode] = []
        for group in groups:
            part = self._new_node(leaf=node.leaf, like=node)
            if node.leaf:
                part.entries = [node.entries[pos] for pos in group]
            else:
                part.children = [node.children[pos] for pos in group]
            self._refresh(part)
            parts.append(part)
        return parts

    # -- insertion ----------------------------------------------------------

    def build(self) -> _RNode:
        root = self._new_node(leaf=True)
        for index in range(self.points.shape[0]):
            parts = self._insert(root, index)
            if len(parts) > 1:
                root = self._new_node(leaf=False)
                root.children = parts
                self._refresh(root)
        return root

    def _insert(self, node: _RNode, index: int) -> List[_RNode]:
        if node.leaf:
            self._add_entry(node, index)
            self._refresh(node)
            if len(node.entries) > self.leaf_capacity:
                return self._split(node)
            return [node]
        position = self._choose_child(node, index)
        parts = self._insert(node.children[position], index)
        node.children[position : position + 1] = parts
        self._refresh(node)
        if len(node.children) > node.capacity:
            return self._split(node)
        return [node]

    def _add_entry(self, node: _RNode, index: int) -> None:
        if self.keys is None:
            node.entries.append(index)
            return
        ordered = [int(self.keys[entry]) for entry in node.entries]
        node.entries.insert(bisect.bisect_right(ordered, int(self.keys[index])), index)

    def _choose_child(self, node: _RNode, index: int) -> int:
        point = self.points[index]
        if self.variant == VARIANT_HILBERT:
            assert self.keys is not None
            key = int(self.keys[index])
            for position, child in enumerate(node.children):
                if child.lhv >= key:
                    return position
            return len(node.children) - 1
        if self.variant == VARIANT_R_PLUS_PLUS:
            for position, child in enumerate(node.children):
                if np.all(child.cell_lower <= point) and np.all(point < child.cell_upper):
                    return position
        lower, upper = self._item_boxes(node)
        grown_lower = np.minimum(lower, point)
        grown_upper = np.maximum(upper, point)
        volume = _volumes(lower, upper)
        volume_growth = _volumes(grown_lower, grown_upper) - volume
        margin_growth = _margins(grown_lower, grown_upper) - _margins(lower, upper)
        keys = [volume, margin_growth, volume_growth]
        if self.variant in (VARIANT_R_STAR, VARIANT_X) and node.children[0].leaf:
            before = _pairwise_overlap(lower, upper, lower, upper)
            after = _pairwise_overlap(grown_lower, grown_upper, lower, upper)
            np.fill_diagonal(before, 0.0)
            np.fill_diagonal(after, 0.0)
            keys.append(after.sum(axis=1) - before.sum(axis=1))
        return int(np.lexsort(keys)[0])

    # -- splitting ----------------------------------------------------------

    def _split(self, node: _RNode) -> List[_RNode]:
        if self.variant == VARIANT_HILBERT:
            half = node.size() // 2
            return self._make_parts(node, [range(half), range(half, node.size())])
        if self.variant in (VARIANT_R_PLUS, VARIANT_R_PLUS_PLUS):
            return self._plane_split(node)
        lower, upper = self._item_boxes(node)
        if self.variant == VARIANT_R:
            return self._make_parts(node, _quadratic_groups(lower, upper, self._min_fill(node)))
        groups, overlap_ratio = _rstar_groups(lower, upper, self._min_fill(node))
        if self.variant == VARIANT_X and not node.leaf and overlap_ratio > X_MAX_OVERLAP:
            node.capacity += MAX_CHILDREN
            return [node]
        return self._make_parts(node, groups)

    def _plane_split(self, node: _RNode) -> List[_RNode]:
        choice = self._leaf_cut(node) if node.leaf else self._directory_cut(node)
        if choice is None:
            if node.leaf:
                # Every point coincides; the leaf cannot be divided.
                return [node]
            lower, upper = self._item_boxes(node)
            return self._make_parts(node, _quadratic_groups(lower, upper, MIN_CHILDREN))
        axis, cut = choice
        return list(self._cut(node, axis, cut))

    def _leaf_cut(self, node: _RNode) -> Optional[Tuple[int, float]]:
        coords = self.points[node.entries]
        count = coords.shape[0]
        best: Optional[Tuple[Tuple[int, int], int, float]] = None
        for axis in range(self.dimension):
            column = np.sort(coords[:, axis])
            values = np.unique(column)
            if values.shape[0] < 2:
                continue
            cuts = values[1:]
            left = np.searchsorted(column, cuts, side="left")
            imbalance = np.abs(2 * left - count)
            pick = int(np.argmin(imbalance))
            score = (int(imbalance[pick]), axis)
            if best is None or score < best[0]:
                best = (score, axis, float(cuts[pick]))
        if best is None:
            return None
        return best[1], best[2]

    def _directory_cut(self, node: _RNode) -> Optional[Tuple[int, float]]:
        use_cells = self.variant == VARIANT_R_PLUS_PLUS
        if use_cells:
            lower = np.array([child.cell_lower for child in node.children])
            upper = np.array([child.cell_upper for child in node.children])
        else:
            lower, upper = self._item_boxes(node)
        count = lower.shape[0]
        best: Optional[Tuple[Tuple[int, int, int], int, float]] = None
        for axis in range(self.dimension):
            starts = lower[:, axis]
            ends = upper[:, axis]
            if use_cells:
                inside = (starts > node.cell_lower[axis]) & (starts < node.cell_upper[axis])
                candidates = np.unique(starts[inside & np.isfinite(starts)])
            else:
                candidates = np.unique(starts)[1:]
            for cut in candidates:
                on_left = int(np.count_nonzero(ends <= cut if use_cells else ends < cut))
                on_right = int(np.count_nonzero(starts >= cut))
                straddling = count - on_left - on_right
                left_size = on_left + straddling
                right_size = on_right + straddling
                if left_size == 0 or right_size == 0:
                    continue
                score = (straddling, max(left_size, right_size), axis)
                if best is None or score < best[0]:
                    best = (score, axis, float(cut))
        if best is None or best[0][1] > node.capacity:
            return None
        return best[1], best[2]

    def _side(self, child: _RNode, axis: int, cut: float) -> int:
        if self.variant == VARIANT_R_PLUS_PLUS:
            if child.cell_upper[axis] <= cut:
                return -1
            if child.cell_lower[axis] >= cut:
                return 1
            return 0
        if child.upper[axis] < cut:
            return -1
        if child.lower[axis] >= cut:
            return 1
        return 0

    def _cut(self, node: _RNode, axis: int, cut: float) -> Tuple[_RNode, _RNode]:
        left = self._new_node(leaf=node.leaf, like=node)
        right = self._new_node(leaf=node.leaf, like=node)
        left.cell_upper[axis] = min(left.cell_upper[axis], cut)
        right.cell_lower[axis] = max(right.cell_lower[axis], cut)
        if node.leaf:
            for entry in node.entries:
                if self.points[entry, axis] < cut:
                    left.entries.append(entry)
                else:
                    right.entries.append(entry)
        else:
            for child in node.children:
                side = self._side(child, axis, cut)
                if side < 0:
                    left.children.append(child)
                elif side > 0:
                    right.children.append(child)
                else:
                    child_left, child_right = self._cut(child, axis, cut)
                    left.children.append(child_left)
                    right.children.append(child_right)
        self._refresh(left)
        self._refresh(right)
        return left, right

    # -- flattening ---------------------------------------------------------

    def flatten(self, root: _RNode) -> Tuple[TreeArena, np.ndarray]:
        """Lay the insertion tree out as contiguous ranges.

        Empty nodes are dropped, single-child chains are skipped and any
        subtree holding at most ``leaf_size`` points becomes a single leaf.
        """

        counts: Dict[int, int] = {}

        def count(node: _RNode) -> int:
            total = len(node.entries) if node.leaf else sum(count(child) for child in node.children)
            counts[id(node)] = total
            return total

        def gather(node: _RNode, out: List[int]) -> None:
            if node.leaf:
                out.extend(node.entries)
                return
            for child in node.children:
                gather(child, out)

        count(root)
        order: List[int] = []
        arena = TreeArena()

        def emit(node: _RNode) -> int:
            while not node.leaf:
                live = [child for child in node.children if counts[id(child)] > 0]
                if len(live) != 1:
                    break
                node = live[0]
            total = counts[id(node)]
            node_id = arena.add_node(len(order), total)
            if node.leaf or total <= self.leaf_capacity:
                gather(node, order)
                return node_id
            kids = [emit(child) for child in node.children if counts[id(child)] > 0]
            arena.set_children(node_id, kids)
            return node_id

        emit(root)
        return arena, np.asarray(order, dtype=np.int64)


def _quadratic_groups(lower: np.ndarray, upper: np.ndarray, min_fill: int) -> List[List[int]]:
    """Guttman's quadratic split over item boxes."""

    count = lower.shape[0]
    joined_lower = np.minimum(lower[:, None, :], lower[None, :, :])
    joined_upper = np.maximum(upper[:, None, :], upper[None, :, :])
    volume = _volumes(lower, upper)
    waste = _volumes(joined_lower, joined_upper) - volume[:, None] - volume[None, :]
    if not np.any(waste > 0.0):
        # Degenerate boxes (points, flat sets) have no volume; fall back to margins.
        margin = _margins(lower, upper)
        waste = _margins(joined_lower, joined_upper) - margin[:, None] - margin[None, :]
    np.fill_diagonal(waste, -np.inf)
    first, second = np.unravel_index(int(np.argmax(waste)), waste.shape)
    groups: List[List[int]] = [[int(first)], [int(second)]]
    group_lower = [lower[first].copy(), lower[second].copy()]
    group_upper = [upper[first].copy(), upper[second].copy()]
    remaining = [pos for pos in range(count) if pos not in (first, second)]
    while remaining:
        for target in (0, 1):
            if len(groups[target]) + len(remaining) <= min_fill:
                groups[target].extend(remaining)
                remaining = []
                break
        if not remaining:
            break
        rem = np.asarray(remaining)
        growth = []
        for target in (0, 1):
            grown_lower = np.minimum(lower[rem], group_lower[target])
            grown_upper = np.maximum(upper[rem], group_upper[target])
            base_volume = float(_volumes(group_lower[target], group_upper[target]))
            base_margin = float(_margins(group_lower[target], group_upper[target]))
            growth.append(
                (
                    _volumes(grown_lower, grown_upper) - base_volume,
                    _margins(grown_lower, grown_upper) - base_margin,
                )
            )
        preference = np.abs(growth[0][0] - growth[1][0])
        if not np.any(preference > 0.0):
            preference = np.abs(growth[0][1] - growth[1][1])
        pick = int(np.argmax(preference))
        item = int(rem[pick])
        score = [
            (
                float(growth[target][0][pick]),
                float(growth[target][1][pick]),
                float(_volumes(group_lower[target], group_upper[target])),
                len(groups[target]),
                target,
            )
            for target in (0, 1)
        ]
        target = min(score)[-1]
        groups[target].append(item)
        group_lower[target] = np.minimum(group_lower[target], lower[item])
        group_upper[target] = np.maximum(group_upper[target], upper[item])
        remaining.remove(item)
    return [sorted(group) for group in groups]


def _rstar_groups(
    lower: np.ndarray, upper: np.ndarray, min_fill: int
) -> Tuple[List[List[int]], float]:
    """R* split: pick the axis with least total margin, then the least-overlap distribution.

    Returns the two position groups and the overlap of their boxes relative to
    the volume of the whole node.
    """

    count, dimension = lower.shape
    splits = range(min_fill, count - min_fill + 1)

    def sorted_orders(axis: int) -> Tuple[np.ndarray, np.ndarray]:
        by_lower = np.lexsort((upper[:, axis], lower[:, axis]))
        by_upper = np.lexsort((lower[:, axis], upper[:, axis]))
        return by_lower, by_upper

    def prefix_boxes(order: np.ndarray):
        lo = lower[order]
        hi = upper[order]
        head_lo = np.minimum.accumulate(lo, axis=0)
        head_hi = np.maximum.accumulate(hi, axis=0)
        tail_lo = np.minimum.accumulate(lo[::-1], axis=0)[::-1]
        tail_hi = np.maximum.accumulate(hi[::-1], axis=0)[::-1]
        return head_lo, head_hi, tail_lo, tail_hi

    best_axis = 0
    best_margin = np.inf
    for axis in range(dimension):
        total = 0.0
        for order in sorted_orders(axis):
            head_lo, head_hi, tail_lo, tail_hi = prefix_boxes(order)
            for split in splits:
                total += float(_margins(head_lo[split - 1], head_hi[split - 1]))
                total += float(_margins(tail_lo[split], tail_hi[split]))
        if total < best_margin:
            best_margin = total
            best_axis = axis

    best_key: Optional[Tuple[float, float]] = None
    best_groups: List[List[int]] = []
    best_overlap = 0.0
    for order in sorted_orders(best_axis):
        head_lo, head_hi, tail_lo, tail_hi = prefix_boxes(order)
        for split in splits:
            left_lo, left_hi = head_lo[split - 1], head_hi[split - 1]
            right_lo, right_hi = tail_lo[split], tail_hi[split]
            overlap = float(
                _pairwise_overlap(left_lo[None, :], left_hi[None, :], right_lo[None, :], right_hi[None, :])[0, 0]
            )
            area = float(_volumes(left_lo, left_hi) + _volumes(right_lo, right_hi))
            key = (overlap, area)
            if best_key is None or key < best_key:
                best_key = key
                best_groups = [sorted(order[:split].tolist()), sorted(order[split:].tolist())]
                best_overlap = overlap
    whole = float(_volumes(lower.min(axis=0), upper.max(axis=0)))
    if whole > 0.0:
        ratio = best_overlap / whole
    else:
        ratio = 0.0
    return best_groups, ratio


def _build_rectangle_tree(
    points: np.ndarray, *, leaf_size: int, variant: str, tree_type: str
) -> SpatialTree:
    builder = _RectangleTreeBuilder(points, variant=variant, leaf_size=leaf_size)
    root = builder.build()
    arena, order = builder.flatten(root)
    tree_points = points[order]
    return arena.to_tree(
        tree_type=tree_type,
        leaf_size=leaf_size,
        points=tree_points,
        indices=order,
        bounds=tight_hrect_bounds(tree_points, arena),
    )


def build_r_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = VARIANT_R
) -> SpatialTree:
    return _build_rectangle_tree(points, leaf_size=leaf_size, variant=VARIANT_R, tree_type=tree_type)


def build_r_star_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = VARIANT_R_STAR
) -> SpatialTree:
    return _build_rectangle_tree(
        points, leaf_size=leaf_size, variant=VARIANT_R_STAR, tree_type=tree_type
    )


def build_x_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = VARIANT_X
) -> SpatialTree:
    return _build_rectangle_tree(points, leaf_size=leaf_size, variant=VARIANT_X, tree_type=tree_type)


def build_hilbert_r_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = VARIANT_HILBERT
) -> SpatialTree:
    return _build_rectangle_tree(
        points, leaf_size=leaf_size, variant=VARIANT_HILBERT, tree_type=tree_type
    )


def build_r_plus_tree(
    points: np.ndarray, *, leaf_size: int, metric: Metric, seed: int, tree_type: str = VARIANT_R_PLUS
) -> SpatialTree:
    return _build_rectangle_tree(
        points, leaf_size=leaf_size, variant=VARIANT_R_PLUS, tree_type=tree_type
    )


def build_r_plus_plus_tree(
    points: np.ndarray,
    *,
    leaf_size: int,
    metric: Metric,
    seed: int,
    tree_type: str = VARIANT_R_PLUS_PLUS,
) -> SpatialTree:
    return _build_rectangle_tree(
        points, leaf_size=leaf_size, variant=VARIANT_R_PLUS_PLUS, tree_type=tree_type
    )


__all__ = [
    "MAX_CHILDREN",
    "MIN_CHILDREN",
    "RECTANGLE_VARIANTS",
    "X_MAX_OVERLAP",
    "build_hilbert_r_tree",
    "build_r_plus_plus_tree",
    "build_r_plus_tree",
    "build_r_star_tree",
    "build_r_tree",
    "build_x_tree",
]
