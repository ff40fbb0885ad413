from __future__ import annotations

from typing import List

import numpy as np

from rangetreex.algo.results import RangeResultBuilder, RangeSearchResult
from rangetreex.algo.rules import PRUNE, REPORT_ALL

from .base import SearchContext, TraversalStrategy, collect_pairs


class SingleTreeTraversal(TraversalStrategy):
    """Depth-first search of the reference tree for one query point at a time."""

    name = "single_tree"

    def search(self, context: SearchContext) -> RangeSearchResult:
        tree = context.require_tree()
        bounds = tree.bounds
        metric = context.metric
        rules = context.rules
        builder = RangeResultBuilder(context.num_queries)
        for query in range(context.num_queries):
            point = context.queries[query]
            starts: List[int] = []
            stops: List[int] = []
            accepted: List[bool] = []
            stack = [tree.root]
            while stack:
                node = stack.pop()
                dmin, dmax = bounds.point_min_max(node, point, metric)
                decision = rules.decide(dmin, dmax)
                if decision == PRUNE:
                    continue
                if decision == REPORT_ALL or tree.is_leaf(node):
                    start, stop = tree.node_range(node)
                    starts.append(start)
                    stops.append(stop)
                    accepted.append(decision == REPORT_ALL)
                    continue
                stack.extend(int(child) for child in tree.children(node))
            if not starts:
                continue
            slots = np.concatenate(
                [np.arange(start, stop, dtype=np.int64) for start, stop in zip(starts, stops)]
            )
            accept = np.repeat(
                np.asarray(accepted, dtype=bool),
                np.asarray(stops, dtype=np.int64) - np.asarray(starts, dtype=np.int64),
            )
            collect_pairs(
                context,
                builder,
                point[None, :],
                np.asarray([query], dtype=np.int64),
                tree.points[slots],
                tree.indices[slots],
                accept=accept,
            )
        return builder.finalize()


__all__ = ["SingleTreeTraversal"]
