"""Range-search kernels: result assembly, pruning rules and traversal strategies."""

from .results import RangeResultBuilder, RangeSearchResult
from .rules import PRUNE, RECURSE, REPORT_ALL, RangeSearchRules
from .traverse import (
    DualTreeTraversal,
    NaiveTraversal,
    SearchContext,
    SingleTreeTraversal,
    TraversalStrategy,
    register_traversal_strategy,
    registered_traversal_strategies,
    select_traversal_strategy,
)

__all__ = [
    "PRUNE",
    "RECURSE",
    "REPORT_ALL",
    "DualTreeTraversal",
    "NaiveTraversal",
    "RangeResultBuilder",
    "RangeSearchResult",
    "RangeSearchRules",
    "SearchContext",
    "SingleTreeTraversal",
    "TraversalStrategy",
    "register_traversal_strategy",
    "registered_traversal_strategies",
    "select_traversal_strategy",
]
