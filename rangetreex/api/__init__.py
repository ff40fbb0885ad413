"""Public ergonomic façade for rangetreex."""

from .range_search import RangeSearch
from .runtime import Runtime

__all__ = [
    "RangeSearch",
    "Runtime",
]
