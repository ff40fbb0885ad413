from __future__ import annotations

import numpy as np

from rangetreex.algo.results import RangeResultBuilder, RangeSearchResult

from .base import SearchContext, TraversalStrategy, collect_pairs


class NaiveTraversal(TraversalStrategy):
    """Exhaustive search over query blocks; needs no tree."""

    name = "naive"

    def search(self, context: SearchContext) -> RangeSearchResult:
        builder = RangeResultBuilder(context.num_queries)
        reference = context.reference
        ref_ids = np.arange(reference.shape[0], dtype=np.int64)
        block = max(1, int(context.query_block_size))
        for start in range(0, context.num_queries, block):
            stop = min(start + block, context.num_queries)
            collect_pairs(
                context,
                builder,
                context.queries[start:stop],
                np.arange(start, stop, dtype=np.int64),
                reference,
                ref_ids,
            )
        return builder.finalize()


__all__ = ["NaiveTraversal"]
