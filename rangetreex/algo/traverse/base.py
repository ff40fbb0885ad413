from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from rangetreex.algo._range_numba import metric_code, range_block_numba
from rangetreex.algo.results import RangeResultBuilder, RangeSearchResult
from rangetreex.algo.rules import RangeSearchRules
from rangetreex.core.metrics import Metric
from rangetreex.core.tree import SpatialTree


@dataclass(frozen=True)
class SearchContext:
    """Everything a traversal needs for one range query.

    ``queries`` are already projected into the model's basis. For self-search
    ``queries`` is the reference set in original order and the pair
    ``(i, i)`` is never reported.
    """

    strategy: str
    queries: np.ndarray
    reference: np.ndarray
    tree: Optional[SpatialTree]
    metric: Metric
    rules: RangeSearchRules
    self_search: bool
    seed: int = 0
    enable_numba: bool = False
    query_block_size: int = 256

    @property
    def num_queries(self) -> int:
        return int(self.queries.shape[0])

    def require_tree(self) -> SpatialTree:
        if self.tree is None:
            raise RuntimeError(f"Traversal strategy '{self.strategy}' requires a reference tree.")
        return self.tree


class TraversalStrategy:
    """Interface implemented by the naive, single-tree and dual-tree searches."""

    name: str = ""

    def search(self, context: SearchContext) -> RangeSearchResult:  # pragma: no cover - interface
        raise NotImplementedError


def collect_pairs(
    context: SearchContext,
    builder: RangeResultBuilder,
    query_points: np.ndarray,
    query_ids: np.ndarray,
    ref_points: np.ndarray,
    ref_ids: np.ndarray,
    *,
    accept: Optional[np.ndarray] = None,
) -> None:
    """Exact check of a query block against a reference block.

    Reference rows flagged in ``accept`` are reported without the interval
    test (their node was proven to lie inside the range).
    """

    if query_points.shape[0] == 0 or ref_points.shape[0] == 0:
        return
    if accept is None:
        accept = np.zeros(ref_points.shape[0], dtype=bool)
    code = metric_code(context.metric.name)
    if context.enable_numba and code >= 0:
        q_out, r_out, d_out = range_block_numba(
            np.ascontiguousarray(query_points, dtype=np.float64),
            np.ascontiguousarray(ref_points, dtype=np.float64),
            np.ascontiguousarray(query_ids, dtype=np.int64),
            np.ascontiguousarray(ref_ids, dtype=np.int64),
            np.ascontiguousarray(accept, dtype=np.uint8),
            float(context.rules.lower),
            float(context.rules.upper),
            code,
            bool(context.self_search),
        )
        builder.add_block(q_out, r_out, d_out)
        return
    dists = context.metric.pairwise(query_points, ref_points)
    mask = ((dists >= context.rules.lower) & (dists <= context.rules.upper)) | accept[None, :]
    if context.self_search:
        mask &= query_ids[:, None] != ref_ids[None, :]
    rows, cols = np.nonzero(mask)
    builder.add_block(query_ids[rows], ref_ids[cols], dists[rows, cols])


__all__ = ["SearchContext", "TraversalStrategy", "collect_pairs"]
