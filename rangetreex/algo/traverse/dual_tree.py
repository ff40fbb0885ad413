from __future__ import annotations

from typing import List, Tuple

import numpy as np

from rangetreex.algo.results import RangeResultBuilder, RangeSearchResult
from rangetreex.algo.rules import PRUNE, REPORT_ALL
from rangetreex.core.tree import SpatialTree
from rangetreex.logging import get_logger
from rangetreex.trees.registry import build_tree

from .base import SearchContext, TraversalStrategy, collect_pairs

LOGGER = get_logger("algo.traverse.dual_tree")


class DualTreeTraversal(TraversalStrategy):
    """Simultaneous recursion over (query node, reference node) pairs."""

    name = "dual_tree"

    def query_tree(self, context: SearchContext) -> SpatialTree:
        reference_tree = context.require_tree()
        if context.self_search:
            return reference_tree
        LOGGER.debug(
            "Building %s query tree over %d points.",
            reference_tree.tree_type,
            context.num_queries,
        )
        return build_tree(
            context.queries,
            reference_tree.tree_type,
            reference_tree.leaf_size,
            metric=context.metric,
            seed=context.seed,
        )

    def search(self, context: SearchContext) -> RangeSearchResult:
        builder = RangeResultBuilder(context.num_queries)
        if context.num_queries == 0:
            return builder.finalize()
        reference_tree = context.require_tree()
        query_tree = self.query_tree(context)
        metric = context.metric
        rules = context.rules
        stack: List[Tuple[int, int]] = [(query_tree.root, reference_tree.root)]
        while stack:
            q_node, r_node = stack.pop()
            dmin, dmax = query_tree.bounds.node_min_max(
                q_node, reference_tree.bounds, r_node, metric
            )
            decision = rules.decide(dmin, dmax)
            if decision == PRUNE:
                continue
            q_leaf = query_tree.is_leaf(q_node)
            r_leaf = reference_tree.is_leaf(r_node)
            if decision == REPORT_ALL or (q_leaf and r_leaf):
                ref_count = int(reference_tree.node_count[r_node])
                collect_pairs(
                    context,
                    builder,
                    query_tree.node_points(q_node),
                    query_tree.point_indices(q_node),
                    reference_tree.node_points(r_node),
                    reference_tree.point_indices(r_node),
                    accept=np.full(ref_count, decision == REPORT_ALL, dtype=bool),
                )
                continue
            q_children = [q_node] if q_leaf else [int(c) for c in query_tree.children(q_node)]
            r_children = [r_node] if r_leaf else [int(c) for c in reference_tree.children(r_node)]
            for q_child in q_children:
                for r_child in r_children:
                    stack.append((q_child, r_child))
        return builder.finalize()


__all__ = ["DualTreeTraversal"]
