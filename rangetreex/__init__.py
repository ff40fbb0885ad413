"""Rangetreex: exact range search over spatial trees.

Quick Start
-----------
>>> import numpy as np
>>> from rangetreex import RangeSearch
>>>
>>> points = np.random.randn(10000, 3)
>>> engine = RangeSearch().fit(points, tree_type="kd", leaf_size=20)
>>> result = engine.search(points[:100], lower=0.5, upper=1.0)
>>> result.neighbors(0), result.distances_of(0)

Self-search (each point against the rest of the reference set)
--------------------------------------------------------------
>>> result = engine.search(upper=0.25)

Classes
-------
RangeSearch : Build, query and persist a range-search model.
Runtime : Configuration for metric, tree defaults and kernels.
TreeType : The supported spatial tree variants.
"""

from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("rangetreex")
except Exception:  # pragma: no cover - best effort during local development
    __version__ = "0.0.1"

# Primary user-facing API
from .api import RangeSearch, Runtime
from .model import RangeSearchModel, build_model, resolve_model
from .queries import range_search
from .core.persistence import deserialize_model, load_model, save_model, serialize_model

# Internal/advanced APIs
from .algo import RangeSearchResult
from .core import available_metrics, get_metric
from .trees import TreeType, build_tree
from .errors import (
    ConfigurationError,
    DeserializationError,
    InvalidRangeError,
    RangeSearchError,
)

__all__ = [
    # Primary API
    "__version__",
    "RangeSearch",
    "Runtime",
    "RangeSearchModel",
    "build_model",
    "resolve_model",
    "range_search",
    "serialize_model",
    "deserialize_model",
    "save_model",
    "load_model",
    # Internal
    "RangeSearchResult",
    "TreeType",
    "build_tree",
    "available_metrics",
    "get_metric",
    # Errors
    "RangeSearchError",
    "ConfigurationError",
    "InvalidRangeError",
    "DeserializationError",
]
