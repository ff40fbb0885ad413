from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

from rangetreex.logging import get_logger

from .base import SearchContext, TraversalStrategy
from .dual_tree import DualTreeTraversal
from .naive import NaiveTraversal
from .single_tree import SingleTreeTraversal

LOGGER = get_logger("algo.traverse.registry")


@dataclass(frozen=True)
class _TraversalStrategySpec:
    name: str
    predicate: Callable[[SearchContext], bool]
    factory: Callable[[], TraversalStrategy]


_TRAVERSAL_REGISTRY: list[_TraversalStrategySpec] = []


def register_traversal_strategy(
    name: str,
    *,
    predicate: Callable[[SearchContext], bool],
    factory: Callable[[], TraversalStrategy],
) -> None:
    """Register or replace a traversal strategy selection rule."""

    global _TRAVERSAL_REGISTRY
    _TRAVERSAL_REGISTRY = [spec for spec in _TRAVERSAL_REGISTRY if spec.name != name]
    _TRAVERSAL_REGISTRY.append(
        _TraversalStrategySpec(name=name, predicate=predicate, factory=factory)
    )
    LOGGER.debug("Registered traversal strategy: %s", name)


def registered_traversal_strategies() -> Tuple[str, ...]:
    return tuple(spec.name for spec in _TRAVERSAL_REGISTRY)


def select_traversal_strategy(context: SearchContext) -> TraversalStrategy:
    for spec in _TRAVERSAL_REGISTRY:
        if spec.predicate(context):
            return spec.factory()
    raise RuntimeError(f"No traversal strategy registered for '{context.strategy}'.")


register_traversal_strategy(
    "naive",
    predicate=lambda context: context.strategy == "naive",
    factory=NaiveTraversal,
)
register_traversal_strategy(
    "single_tree",
    predicate=lambda context: context.strategy == "single_tree" and context.tree is not None,
    factory=SingleTreeTraversal,
)
register_traversal_strategy(
    "dual_tree",
    predicate=lambda context: context.strategy == "dual_tree" and context.tree is not None,
    factory=DualTreeTraversal,
)


__all__ = [
    "register_traversal_strategy",
    "registered_traversal_strategies",
    "select_traversal_strategy",
]
