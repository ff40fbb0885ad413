from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from rangetreex.core.bounds import NodeBounds
from rangetreex.core.metrics import Metric

ROOT_NODE = 0


@dataclass(frozen=True)
class BoundView:
    """Read-only handle on one node's bounding volume."""

    bounds: NodeBounds
    node: int

    @property
    def kind(self) -> str:
        return self.bounds.kind

    def min_max_to_point(self, point: np.ndarray, metric: Metric) -> Tuple[float, float]:
        return self.bounds.point_min_max(self.node, np.asarray(point, dtype=np.float64), metric)

    def min_max_to(self, other: "BoundView", metric: Metric) -> Tuple[float, float]:
        return self.bounds.node_min_max(self.node, other.bounds, other.node, metric)

    def contains(self, points: np.ndarray, metric: Metric) -> bool:
        return self.bounds.contains(self.node, points, metric)

    def describe(self) -> Dict[str, Any]:
        return self.bounds.describe(self.node)


@dataclass(frozen=True)
class SpatialTree:
    """Immutable flat-arena spatial tree.

    ``points`` holds the reference set permuted into tree order and
    ``indices[i]`` is the original row of tree slot ``i``. Node ``k`` owns the
    slots ``node_begin[k] : node_begin[k] + node_count[k]``; its children are
    ``child_indices[child_indptr[k]:child_indptr[k + 1]]`` and partition that
    range in order. Node 0 is the root.
    """

    tree_type: str
    leaf_size: int
    points: np.ndarray
    indices: np.ndarray
    node_begin: np.ndarray
    node_count: np.ndarray
    child_indptr: np.ndarray
    child_indices: np.ndarray
    bounds: NodeBounds

    @property
    def num_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def dimension(self) -> int:
        return int(self.points.shape[1])

    @property
    def num_nodes(self) -> int:
        return int(self.node_begin.shape[0])

    @property
    def root(self) -> int:
        return ROOT_NODE

    def is_leaf(self, node: int) -> bool:
        return bool(self.child_indptr[node + 1] == self.child_indptr[node])

    def children(self, node: int) -> np.ndarray:
        return self.child_indices[self.child_indptr[node] : self.child_indptr[node + 1]]

    def node_range(self, node: int) -> Tuple[int, int]:
        begin = int(self.node_begin[node])
        return begin, begin + int(self.node_count[node])

    def point_indices(self, node: int) -> np.ndarray:
        start, stop = self.node_range(node)
        return self.indices[start:stop]

    def node_points(self, node: int) -> np.ndarray:
        start, stop = self.node_range(node)
        return self.points[start:stop]

    def bound(self, node: int) -> BoundView:
        return BoundView(bounds=self.bounds, node=int(node))

    def leaves(self) -> np.ndarray:
        return np.flatnonzero(self.child_indptr[1:] == self.child_indptr[:-1])

    def depth(self) -> int:
        """Number of levels, a lone root counts as one."""

        if self.num_nodes == 0:
            return 0
        levels = 0
        frontier = [ROOT_NODE]
        while frontier:
            levels += 1
            nxt: List[int] = []
            for node in frontier:
                nxt.extend(int(child) for child in self.children(node))
            frontier = nxt
        return levels

    def replace(self, **changes: Any) -> "SpatialTree":
        return dataclasses.replace(self, **changes)

    def summary(self) -> Dict[str, Any]:
        return {
            "tree_type": self.tree_type,
            "leaf_size": self.leaf_size,
            "num_points": self.num_points,
            "num_nodes": self.num_nodes,
            "num_leaves": int(self.leaves().shape[0]),
            "depth": self.depth(),
            "bound_kind": self.bounds.kind,
        }


@dataclass
class TreeArena:
    """Mutable node table used while a tree is being built.

    Node ids are handed out in creation order, so a child's id is always larger
    than its parent's. ``contexts`` carries per-node build state (a vantage
    point, an octree cell, ...) that the variant's bound builder consumes.
    """

    node_begin: List[int] = field(default_factory=list)
    node_count: List[int] = field(default_factory=list)
    node_children: List[List[int]] = field(default_factory=list)
    contexts: List[Any] = field(default_factory=list)

    @property
    def num_nodes(self) -> int:
        return len(self.node_begin)

    def add_node(self, begin: int, count: int, context: Any = None) -> int:
        self.node_begin.append(int(begin))
        self.node_count.append(int(count))
        self.node_children.append([])
        self.contexts.append(context)
        return len(self.node_begin) - 1

    def set_children(self, node: int, children: List[int]) -> None:
        self.node_children[node] = [int(child) for child in children]

    def csr(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        begin = np.asarray(self.node_begin, dtype=np.int64)
        count = np.asarray(self.node_count, dtype=np.int64)
        lengths = np.asarray([len(kids) for kids in self.node_children], dtype=np.int64)
        indptr = np.zeros(self.num_nodes + 1, dtype=np.int64)
        if lengths.size:
            np.cumsum(lengths, out=indptr[1:])
        if indptr[-1]:
            flat = np.concatenate(
                [np.asarray(kids, dtype=np.int64) for kids in self.node_children if kids]
            )
        else:
            flat = np.zeros(0, dtype=np.int64)
        return begin, count, indptr, flat

    def to_tree(
        self,
        *,
        tree_type: str,
        leaf_size: int,
        points: np.ndarray,
        indices: np.ndarray,
        bounds: NodeBounds,
    ) -> SpatialTree:
        begin, count, indptr, flat = self.csr()
        return SpatialTree(
            tree_type=str(getattr(tree_type, "value", tree_type)),
            leaf_size=int(leaf_size),
            points=np.ascontiguousarray(points, dtype=np.float64),
            indices=np.asarray(indices, dtype=np.int64),
            node_begin=begin,
            node_count=count,
            child_indptr=indptr,
            child_indices=flat,
            bounds=bounds,
        )


__all__ = ["ROOT_NODE", "BoundView", "SpatialTree", "TreeArena"]
