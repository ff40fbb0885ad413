from __future__ import annotations

from .app import RangeSearchCLIOptions, app, main, run_range_search

__all__ = [
    "RangeSearchCLIOptions",
    "app",
    "main",
    "run_range_search",
]
