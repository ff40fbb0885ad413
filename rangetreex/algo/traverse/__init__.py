from .base import SearchContext, TraversalStrategy, collect_pairs
from .dual_tree import DualTreeTraversal
from .naive import NaiveTraversal
from .registry import (
    register_traversal_strategy,
    registered_traversal_strategies,
    select_traversal_strategy,
)
from .single_tree import SingleTreeTraversal

__all__ = [
    "DualTreeTraversal",
    "NaiveTraversal",
    "SearchContext",
    "SingleTreeTraversal",
    "TraversalStrategy",
    "collect_pairs",
    "register_traversal_strategy",
    "registered_traversal_strategies",
    "select_traversal_strategy",
]
