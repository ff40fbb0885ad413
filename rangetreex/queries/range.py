from __future__ import annotations

import math
from typing import Any, Tuple

from rangetreex import config as rx_config
from rangetreex.algo.results import RangeSearchResult
from rangetreex.algo.rules import RangeSearchRules
from rangetreex.algo.traverse import SearchContext, select_traversal_strategy
from rangetreex.core.metrics import get_metric
from rangetreex.diagnostics import log_operation
from rangetreex.errors import ConfigurationError, InvalidRangeError
from rangetreex.logging import get_logger
from rangetreex.model import RangeSearchModel, validate_points
from rangetreex.preprocess.random_basis import apply_basis

LOGGER = get_logger("queries.range")


def validate_range(lower: Any, upper: Any) -> Tuple[float, float]:
    """Check ``0 <= lower <= upper`` and return both bounds as floats."""

    try:
        lo = float(lower)
        hi = float(upper)
    except (TypeError, ValueError) as exc:
        raise InvalidRangeError(lower, upper, "bounds must be numbers") from exc
    if math.isnan(lo) or math.isnan(hi):
        raise InvalidRangeError(lo, hi, "bounds must not be NaN")
    if lo < 0.0:
        raise InvalidRangeError(lo, hi, "min must be >= 0")
    if hi < lo:
        raise InvalidRangeError(lo, hi, "max must be >= min")
    return lo, hi


def range_search(
    model: RangeSearchModel,
    queries: Any = None,
    *,
    lower: float = 0.0,
    upper: float,
) -> RangeSearchResult:
    """Report every reference point whose distance to a query lies in ``[lower, upper]``.

    ``queries=None`` searches the reference set against itself and never
    reports a point as its own match. Rows of the result follow the query
    order; within a row, reference indices ascend.
    """

    lo, hi = validate_range(lower, upper)
    self_search = queries is None
    if self_search:
        query_points = model.reference_points
    else:
        raw = validate_points(queries, name="queries", allow_empty=True)
        if raw.shape[1] != model.dimension:
            raise ConfigurationError(
                f"Query dimension {raw.shape[1]} does not match model dimension {model.dimension}."
            )
        query_points = apply_basis(raw, model.basis)

    config = rx_config.runtime_config()
    context = SearchContext(
        strategy=model.strategy,
        queries=query_points,
        reference=model.reference_points,
        tree=model.tree,
        metric=get_metric(model.metric),
        rules=RangeSearchRules(lower=lo, upper=hi),
        self_search=self_search,
        seed=model.seed,
        enable_numba=config.enable_numba,
        query_block_size=config.query_block_size,
    )
    with log_operation(LOGGER, "range_search") as op_log:
        strategy = select_traversal_strategy(context)
        result = strategy.search(context)
        op_log.add_metadata(
            strategy=strategy.name,
            tree_type=model.tree_type,
            queries=context.num_queries,
            references=model.num_points,
            self_search=self_search,
            lower=lo,
            upper=hi,
            pairs=result.num_pairs,
        )
    return result


__all__ = ["range_search", "validate_range"]
