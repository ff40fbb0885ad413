from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree
from rangetreex.errors import ConfigurationError
from rangetreex.logging import get_logger

LOGGER = get_logger("trees.registry")


class TreeType(str, Enum):
    KD = "kd"
    COVER = "cover"
    R = "r"
    R_STAR = "r-star"
    BALL = "ball"
    X = "x"
    HILBERT_R = "hilbert-r"
    R_PLUS = "r-plus"
    R_PLUS_PLUS = "r-plus-plus"
    VP = "vp"
    RP = "rp"
    MAX_RP = "max-rp"
    UB = "ub"
    OCT = "oct"

    @classmethod
    def parse(cls, value: "str | TreeType") -> "TreeType":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        names = ", ".join(member.value for member in cls)
        raise ConfigurationError(f"Unknown tree type '{value}'. Expected one of: {names}.")

    def __str__(self) -> str:
        return self.value


TreeBuilder = Callable[..., SpatialTree]


@dataclass(frozen=True)
class _TreeSpec:
    tree_type: TreeType
    builder: TreeBuilder
    bound_kind: str


_TREE_REGISTRY: Dict[TreeType, _TreeSpec] = {}


def register_tree_type(tree_type: TreeType, builder: TreeBuilder, *, bound_kind: str) -> None:
    """Register or replace the builder for a tree variant."""

    _TREE_REGISTRY[tree_type] = _TreeSpec(tree_type=tree_type, builder=builder, bound_kind=bound_kind)
    LOGGER.debug("Registered tree type: %s", tree_type.value)


def registered_tree_types() -> Tuple[str, ...]:
    return tuple(spec.tree_type.value for spec in _TREE_REGISTRY.values())


def bound_kind(tree_type: "str | TreeType") -> str:
    return _TREE_REGISTRY[TreeType.parse(tree_type)].bound_kind


def build_tree(
    points: np.ndarray,
    tree_type: "str | TreeType",
    leaf_size: int,
    *,
    metric: Metric,
    seed: int = 0,
) -> SpatialTree:
    """Build a tree of the requested variant over ``points`` (rows are points)."""

    kind = TreeType.parse(tree_type)
    if leaf_size < 1:
        raise ConfigurationError(f"leaf_size must be >= 1 (got {leaf_size}).")
    spec = _TREE_REGISTRY.get(kind)
    if spec is None:
        raise ConfigurationError(f"No builder registered for tree type '{kind.value}'.")
    pts = np.ascontiguousarray(points, dtype=np.float64)
    return spec.builder(
        pts, leaf_size=int(leaf_size), metric=metric, seed=int(seed), tree_type=kind.value
    )


def _register_defaults() -> None:
    from rangetreex.trees import (
        binary_space,
        cover,
        octree,
        random_projection,
        rectangle,
        vantage_point,
    )

    register_tree_type(TreeType.KD, binary_space.build_kd_tree, bound_kind="hrect")
    register_tree_type(TreeType.COVER, cover.build_cover_tree, bound_kind="ball")
    register_tree_type(TreeType.R, rectangle.build_r_tree, bound_kind="hrect")
    register_tree_type(TreeType.R_STAR, rectangle.build_r_star_tree, bound_kind="hrect")
    register_tree_type(TreeType.BALL, binary_space.build_ball_tree, bound_kind="ball")
    register_tree_type(TreeType.X, rectangle.build_x_tree, bound_kind="hrect")
    register_tree_type(TreeType.HILBERT_R, rectangle.build_hilbert_r_tree, bound_kind="hrect")
    register_tree_type(TreeType.R_PLUS, rectangle.build_r_plus_tree, bound_kind="hrect")
    register_tree_type(TreeType.R_PLUS_PLUS, rectangle.build_r_plus_plus_tree, bound_kind="hrect")
    register_tree_type(TreeType.VP, vantage_point.build_vp_tree, bound_kind="hollow_ball")
    register_tree_type(TreeType.RP, random_projection.build_rp_tree, bound_kind="hrect")
    register_tree_type(TreeType.MAX_RP, random_projection.build_max_rp_tree, bound_kind="hrect")
    register_tree_type(TreeType.UB, binary_space.build_ub_tree, bound_kind="hrect")
    register_tree_type(TreeType.OCT, octree.build_octree, bound_kind="hrect")


_register_defaults()


__all__ = [
    "TreeType",
    "bound_kind",
    "build_tree",
    "register_tree_type",
    "registered_tree_types",
]
