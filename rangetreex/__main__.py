#!/usr/bin/env python
"""Quick-start guide for rangetreex library usage.

Run with: python -m rangetreex

This module intentionally avoids importing rangetreex internals to provide
a fast, clean startup for displaying help text.
"""

from __future__ import annotations

QUICKSTART = """\
================================================================================
                              RANGETREEX
        Exact range search over kd, ball, cover, R-family and more trees
================================================================================

INSTALLATION
------------
    pip install rangetreex

BASIC USAGE
-----------
    import numpy as np
    from rangetreex import RangeSearch

    # Index a reference set (rows are points)
    points = np.random.randn(10000, 3)
    engine = RangeSearch().fit(points, tree_type="kd", leaf_size=20)

    # Every reference point whose distance lies in [lower, upper]
    result = engine.search(points[:100], lower=0.5, upper=1.0)
    result.neighbors(0)      # reference indices, ascending
    result.distances_of(0)   # matching distances

    # Self-search: the reference set against itself, (i, i) excluded
    result = engine.search(upper=0.25)

TREE TYPES AND STRATEGIES
-------------------------
    kd, cover, r, r-star, ball, x, hilbert-r, r-plus, r-plus-plus,
    vp, rp, max-rp, ub, oct

    RangeSearch().fit(points, tree_type="vp")             # dual-tree (default)
    RangeSearch().fit(points, single_tree=True)           # single-tree
    RangeSearch().fit(points, naive=True)                 # brute force
    RangeSearch().fit(points, random_basis=True, seed=7)  # rotated basis

RUNTIME CONFIGURATION
---------------------
    from rangetreex import Runtime

    runtime = Runtime(metric="manhattan", leaf_size=10, enable_numba=True)
    engine = RangeSearch(runtime).fit(points)

    # Or through the environment:
    #   RANGETREEX_METRIC, RANGETREEX_TREE_TYPE, RANGETREEX_LEAF_SIZE,
    #   RANGETREEX_SEED, RANGETREEX_ENABLE_NUMBA, RANGETREEX_LOG_LEVEL

PERSISTENCE
-----------
    engine.save("model.json")
    engine = RangeSearch.load("model.json")

COMMAND LINE
------------
    python -m cli.range_search -r reference.csv -q queries.csv -U 0.5 \\
        -n neighbors.csv -d distances.csv -M model.json
    python -m cli.range_search -m model.json -q queries.csv -L 0.1 -U 0.5 -n out.csv

API REFERENCE
-------------
    from rangetreex import RangeSearch, Runtime, TreeType
    help(RangeSearch)   # Build, query and persist models
    help(Runtime)       # Configuration options

================================================================================
"""


def main() -> None:
    """Print quick-start guide."""
    print(QUICKSTART)


if __name__ == "__main__":
    main()
