from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from rangetreex import config as rx_config


def _ensure_2d(array: np.ndarray) -> np.ndarray:
    arr = np.asarray(array, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr[None, :]
    return arr


@dataclass(frozen=True)
class Metric:
    """An Lp distance. ``p`` is 1, 2 or ``inf``.

    Every tree bound reduces to a per-dimension gap vector combined through
    :meth:`norm`, so a metric only needs to know how to take the norm of
    difference vectors along the last axis.
    """

    name: str
    p: float

    def norm(self, vectors: np.ndarray) -> np.ndarray:
        arr = np.abs(np.asarray(vectors, dtype=np.float64))
        if np.isinf(self.p):
            if arr.shape[-1] == 0:
                return np.zeros(arr.shape[:-1], dtype=np.float64)
            return np.max(arr, axis=-1)
        # Sum dimensions left to right, the same order as the numba kernels, so
        # both paths round identically at the range boundaries.
        acc = np.zeros(arr.shape[:-1], dtype=np.float64)
        for k in range(arr.shape[-1]):
            column = arr[..., k]
            if self.p == 2.0:
                acc += column * column
            elif self.p == 1.0:
                acc += column
            else:
                acc += np.power(column, self.p)
        if self.p == 2.0:
            return np.sqrt(acc)
        if self.p == 1.0:
            return acc
        return np.power(acc, 1.0 / self.p)

    def pairwise(self, lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        lhs_arr = _ensure_2d(lhs)
        rhs_arr = _ensure_2d(rhs)
        if lhs_arr.shape[0] == 0 or rhs_arr.shape[0] == 0:
            return np.zeros((lhs_arr.shape[0], rhs_arr.shape[0]), dtype=np.float64)
        diff = lhs_arr[:, None, :] - rhs_arr[None, :, :]
        return self.norm(diff)

    def pointwise(self, lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        lhs_arr = np.asarray(lhs, dtype=np.float64)
        rhs_arr = np.asarray(rhs, dtype=np.float64)
        if lhs_arr.shape != rhs_arr.shape:
            raise ValueError("Pointwise metric operands must have identical shapes.")
        return self.norm(lhs_arr - rhs_arr)

    def distance(self, lhs: np.ndarray, rhs: np.ndarray) -> float:
        return float(self.pointwise(lhs, rhs))

    def to_point(self, points: np.ndarray, query: np.ndarray) -> np.ndarray:
        """Distances from every row of ``points`` to a single ``query`` vector."""

        return self.norm(_ensure_2d(points) - np.asarray(query, dtype=np.float64)[None, :])


class MetricRegistry:
    """Minimal registry for runtime-selectable metrics."""

    def __init__(self) -> None:
        self._metrics: Dict[str, Metric] = {}

    def register(self, metric: Metric, *, overwrite: bool = False) -> None:
        name = metric.name.lower()
        if not overwrite and name in self._metrics:
            raise ValueError(f"Metric '{metric.name}' already registered.")
        self._metrics[name] = metric

    def get(self, name: str) -> Metric:
        key = name.lower()
        if key not in self._metrics:
            raise KeyError(f"Metric '{name}' not registered.")
        return self._metrics[key]

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._metrics.keys()))


def _load_registry() -> MetricRegistry:
    registry = MetricRegistry()
    registry.register(Metric(name="euclidean", p=2.0))
    registry.register(Metric(name="manhattan", p=1.0))
    registry.register(Metric(name="chebyshev", p=float("inf")))
    return registry


_REGISTRY = _load_registry()


def get_metric(name: str | None = None) -> Metric:
    """Return a registered metric, defaulting to the runtime-selected metric."""

    if name is None:
        name = rx_config.runtime_config().metric
    return _REGISTRY.get(name)


def available_metrics() -> Tuple[str, ...]:
    return _REGISTRY.names()


__all__ = [
    "Metric",
    "MetricRegistry",
    "available_metrics",
    "get_metric",
]
