from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from rangetreex import config as rx_config
from rangetreex.core.metrics import available_metrics, get_metric
from rangetreex.core.tree import SpatialTree
from rangetreex.diagnostics import log_operation
from rangetreex.errors import ConfigurationError
from rangetreex.logging import get_logger
from rangetreex.preprocess.random_basis import apply_basis, random_orthogonal_basis
from rangetreex.trees.registry import TreeType, build_tree

LOGGER = get_logger("model")

STRATEGY_NAIVE = "naive"
STRATEGY_SINGLE_TREE = "single_tree"
STRATEGY_DUAL_TREE = "dual_tree"


def validate_points(points: Any, *, name: str, allow_empty: bool = False) -> np.ndarray:
    """Coerce ``points`` to a C-contiguous ``(n, d)`` float64 array or raise."""

    try:
        arr = np.asarray(points, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a numeric matrix: {exc}") from exc
    if arr.ndim == 1:
        arr = arr[None, :]
    if arr.ndim != 2:
        raise ConfigurationError(f"{name} must be a 2-D array of row points (got ndim={arr.ndim}).")
    if arr.shape[1] == 0:
        raise ConfigurationError(f"{name} must have at least one dimension.")
    if arr.shape[0] == 0 and not allow_empty:
        raise ConfigurationError(f"{name} must contain at least one point.")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite values.")
    return np.ascontiguousarray(arr)


def strategy_name(naive: bool, single_tree: bool) -> str:
    if naive and single_tree:
        raise ConfigurationError("naive and single_tree modes are mutually exclusive.")
    if naive:
        return STRATEGY_NAIVE
    if single_tree:
        return STRATEGY_SINGLE_TREE
    return STRATEGY_DUAL_TREE


def _check_leaf_size(leaf_size: int) -> int:
    if isinstance(leaf_size, bool) or int(leaf_size) != leaf_size:
        raise ConfigurationError(f"leaf_size must be an integer (got {leaf_size!r}).")
    if leaf_size < 1:
        raise ConfigurationError(f"leaf_size must be >= 1 (got {leaf_size}).")
    return int(leaf_size)


def _check_metric(metric: str) -> str:
    name = str(metric).strip().lower()
    if name not in available_metrics():
        raise ConfigurationError(
            f"Unknown metric '{metric}'. Expected one of: {', '.join(available_metrics())}."
        )
    return name


@dataclass(frozen=True)
class RangeSearchModel:
    """An immutable, persistable range-search index.

    ``tree`` is ``None`` for naive models, which keep the (projected)
    reference set in ``reference`` instead. ``basis`` is the random rotation
    applied to references and to every query, or ``None``.
    """

    tree_type: str
    leaf_size: int
    metric: str
    naive: bool
    single_tree: bool
    seed: int
    basis: Optional[np.ndarray]
    tree: Optional[SpatialTree]
    reference: Optional[np.ndarray] = None

    @property
    def strategy(self) -> str:
        return strategy_name(self.naive, self.single_tree)

    @property
    def has_tree(self) -> bool:
        return self.tree is not None

    @property
    def reference_points(self) -> np.ndarray:
        """Projected reference points in original order."""

        if self.reference is not None:
            return self.reference
        if self.tree is None:
            raise RuntimeError("Model holds neither a tree nor a reference set.")
        points = np.empty_like(self.tree.points)
        points[self.tree.indices] = self.tree.points
        return points

    @property
    def dimension(self) -> int:
        if self.tree is not None:
            return self.tree.dimension
        return int(self.reference_points.shape[1])

    @property
    def num_points(self) -> int:
        if self.tree is not None:
            return self.tree.num_points
        return int(self.reference_points.shape[0])

    def with_strategy(
        self, *, naive: bool | None = None, single_tree: bool | None = None
    ) -> "RangeSearchModel":
        """Return a model answering queries with a different traversal.

        A tree is built from the stored reference set when leaving naive mode
        and dropped when entering it.
        """

        naive_flag = self.naive if naive is None else bool(naive)
        single_flag = self.single_tree if single_tree is None else bool(single_tree)
        if naive is not None and naive_flag and single_tree is None:
            single_flag = False
        if single_tree is not None and single_flag and naive is None:
            naive_flag = False
        target = strategy_name(naive_flag, single_flag)
        if naive_flag == self.naive and single_flag == self.single_tree:
            return self
        if target == STRATEGY_NAIVE:
            return dataclasses.replace(
                self,
                naive=True,
                single_tree=False,
                tree=None,
                reference=self.reference_points,
            )
        tree = self.tree
        if tree is None:
            tree = build_tree(
                self.reference_points,
                self.tree_type,
                self.leaf_size,
                metric=get_metric(self.metric),
                seed=self.seed,
            )
        return dataclasses.replace(
            self,
            naive=False,
            single_tree=single_flag,
            tree=tree,
            reference=None,
        )

    def describe(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "tree_type": self.tree_type,
            "leaf_size": self.leaf_size,
            "metric": self.metric,
            "strategy": self.strategy,
            "seed": self.seed,
            "random_basis": self.basis is not None,
            "dimension": self.dimension,
            "num_points": self.num_points,
        }
        if self.tree is not None:
            summary["tree"] = self.tree.summary()
        return summary


def build_model(
    reference: Any,
    *,
    tree_type: "str | TreeType | None" = None,
    leaf_size: int | None = None,
    naive: bool = False,
    single_tree: bool = False,
    random_basis: bool = False,
    metric: str | None = None,
    seed: int | None = None,
) -> RangeSearchModel:
    """Validate the inputs, then project and index the reference set.

    Unspecified ``tree_type``, ``leaf_size``, ``metric`` and ``seed`` come from
    the active runtime configuration.
    """

    config = rx_config.runtime_config()
    strategy = strategy_name(bool(naive), bool(single_tree))
    kind = TreeType.parse(config.tree_type if tree_type is None else tree_type)
    leaf = _check_leaf_size(config.leaf_size if leaf_size is None else leaf_size)
    metric_name = _check_metric(config.metric if metric is None else metric)
    if random_basis and metric_name != "euclidean":
        raise ConfigurationError(
            f"Random basis projection preserves only euclidean distances (metric={metric_name})."
        )
    seed_value = int(config.seed if seed is None else seed)
    points = validate_points(reference, name="reference")

    with log_operation(LOGGER, "build_model") as op_log:
        basis = None
        if random_basis:
            basis = random_orthogonal_basis(points.shape[1], np.random.default_rng(seed_value))
            points = apply_basis(points, basis)
        tree = None
        stored_reference = None
        if strategy == STRATEGY_NAIVE:
            stored_reference = points
        else:
            tree = build_tree(points, kind, leaf, metric=get_metric(metric_name), seed=seed_value)
        model = RangeSearchModel(
            tree_type=kind.value,
            leaf_size=leaf,
            metric=metric_name,
            naive=bool(naive),
            single_tree=bool(single_tree),
            seed=seed_value,
            basis=basis,
            tree=tree,
            reference=stored_reference,
        )
        op_log.add_metadata(
            tree_type=kind.value,
            strategy=strategy,
            points=points.shape[0],
            dimension=points.shape[1],
            leaf_size=leaf,
            random_basis=random_basis,
            nodes=tree.num_nodes if tree is not None else 0,
        )
    return model


def resolve_model(
    reference: Any = None,
    model: RangeSearchModel | None = None,
    **build_kwargs: Any,
) -> RangeSearchModel:
    """Return ``model`` or build one from ``reference``; exactly one must be given."""

    if reference is None and model is None:
        raise ConfigurationError("Either a reference set or a prebuilt model must be supplied.")
    if reference is not None and model is not None:
        raise ConfigurationError("Supply a reference set or a prebuilt model, not both.")
    if model is not None:
        return model
    return build_model(reference, **build_kwargs)


__all__ = [
    "STRATEGY_DUAL_TREE",
    "STRATEGY_NAIVE",
    "STRATEGY_SINGLE_TREE",
    "RangeSearchModel",
    "build_model",
    "resolve_model",
    "strategy_name",
    "validate_points",
]
