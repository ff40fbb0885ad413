"""Per-node bounding volumes stored as flat arrays.

Each bound family answers two questions for the traversal rules: the minimum
and maximum distance between a node and a point, and between two nodes of the
same family. Those two functions are the only variant-specific knowledge the
naive, single-tree and dual-tree strategies need.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np

from rangetreex.core.metrics import Metric

# Absolute slack for containment checks; bound arithmetic and point distances
# round differently.
_CONTAINS_ATOL = 1e-9


class NodeBounds:
    """Common interface of every bound family."""

    kind: str = ""

    @property
    def num_nodes(self) -> int:
        raise NotImplementedError

    def point_min_max(self, node: int, point: np.ndarray, metric: Metric) -> Tuple[float, float]:
        raise NotImplementedError

    def node_min_max(
        self, node: int, other: "NodeBounds", other_node: int, metric: Metric
    ) -> Tuple[float, float]:
        raise NotImplementedError

    def contains(self, node: int, points: np.ndarray, metric: Metric) -> bool:
        raise NotImplementedError

    def encloses(self, node: int, child: int, metric: Metric) -> bool:
        """Whether the child's volume lies inside the node's volume."""

        raise NotImplementedError

    def to_payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    def describe(self, node: int) -> Dict[str, Any]:
        raise NotImplementedError

    def _require_same_kind(self, other: "NodeBounds") -> None:
        if other.kind != self.kind:
            raise TypeError(
                f"Cannot compare '{self.kind}' bounds with '{other.kind}' bounds."
            )


@dataclass(frozen=True)
class HRectBounds(NodeBounds):
    """Axis-aligned hyper-rectangles, ``lower[node] <= x <= upper[node]``."""

    lower: np.ndarray
    upper: np.ndarray
    kind = "hrect"

    @property
    def num_nodes(self) -> int:
        return int(self.lower.shape[0])

    def point_min_max(self, node: int, point: np.ndarray, metric: Metric) -> Tuple[float, float]:
        lo = self.lower[node]
        hi = self.upper[node]
        gap = np.maximum(np.maximum(lo - point, point - hi), 0.0)
        far = np.maximum(np.abs(point - lo), np.abs(point - hi))
        return float(metric.norm(gap)), float(metric.norm(far))

    def node_min_max(
        self, node: int, other: NodeBounds, other_node: int, metric: Metric
    ) -> Tuple[float, float]:
        self._require_same_kind(other)
        assert isinstance(other, HRectBounds)
        lo_a = self.lower[node]
        hi_a = self.upper[node]
        lo_b = other.lower[other_node]
        hi_b = other.upper[other_node]
        gap = np.maximum(np.maximum(lo_b - hi_a, lo_a - hi_b), 0.0)
        far = np.maximum(np.abs(hi_b - lo_a), np.abs(hi_a - lo_b))
        return float(metric.norm(gap)), float(metric.norm(far))

    def contains(self, node: int, points: np.ndarray, metric: Metric) -> bool:
        pts = np.asarray(points, dtype=np.float64)
        if pts.size == 0:
            return True
        return bool(
            np.all(pts >= self.lower[node] - _CONTAINS_ATOL)
            and np.all(pts <= self.upper[node] + _CONTAINS_ATOL)
        )

    def encloses(self, node: int, child: int, metric: Metric) -> bool:
        return bool(
            np.all(self.lower[child] >= self.lower[node] - _CONTAINS_ATOL)
            and np.all(self.upper[child] <= self.upper[node] + _CONTAINS_ATOL)
        )

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, "lower": self.lower.tolist(), "upper": self.upper.tolist()}

    def describe(self, node: int) -> Dict[str, Any]:
        return {"kind": self.kind, "lower": self.lower[node], "upper": self.upper[node]}


@dataclass(frozen=True)
class BallBounds(NodeBounds):
    """Balls ``|x - centers[node]| <= radii[node]`` under the active metric."""

    centers: np.ndarray
    radii: np.ndarray
    kind = "ball"

    @property
    def num_nodes(self) -> int:
        return int(self.centers.shape[0])

    def point_min_max(self, node: int, point: np.ndarray, metric: Metric) -> Tuple[float, float]:
        dc = float(metric.norm(point - self.centers[node]))
        radius = float(self.radii[node])
        return max(0.0, dc - radius), dc + radius

    def node_min_max(
        self, node: int, other: NodeBounds, other_node: int, metric: Metric
    ) -> Tuple[float, float]:
        self._require_same_kind(other)
        assert isinstance(other, BallBounds)
        dcc = float(metric.norm(other.centers[other_node] - self.centers[node]))
        spread = float(self.radii[node]) + float(other.radii[other_node])
        return max(0.0, dcc - spread), dcc + spread

    def contains(self, node: int, points: np.ndarray, metric: Metric) -> bool:
        pts = np.asarray(points, dtype=np.float64)
        if pts.size == 0:
            return True
        dists = metric.to_point(pts, self.centers[node])
        return bool(np.all(dists <= self.radii[node] + _CONTAINS_ATOL))

    def encloses(self, node: int, child: int, metric: Metric) -> bool:
        dcc = float(metric.norm(self.centers[child] - self.centers[node]))
        return dcc + float(self.radii[child]) <= float(self.radii[node]) + _CONTAINS_ATOL

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, "centers": self.centers.tolist(), "radii": self.radii.tolist()}

    def describe(self, node: int) -> Dict[str, Any]:
        return {"kind": self.kind, "center": self.centers[node], "radius": float(self.radii[node])}


@dataclass(frozen=True)
class HollowBallBounds(NodeBounds):
    """Annuli ``inner[node] <= |x - centers[node]| <= outer[node]``.

    Vantage-point trees describe each child by its distance band around the
    parent's vantage point, which is exactly an annulus.
    """

    centers: np.ndarray
    inner: np.ndarray
    outer: np.ndarray
    kind = "hollow_ball"

    @property
    def num_nodes(self) -> int:
        return int(self.centers.shape[0])

    def point_min_max(self, node: int, point: np.ndarray, metric: Metric) -> Tuple[float, float]:
        dc = float(metric.norm(point - self.centers[node]))
        outer = float(self.outer[node])
        inner = float(self.inner[node])
        return max(0.0, dc - outer, inner - dc), dc + outer

    def node_min_max(
        self, node: int, other: NodeBounds, other_node: int, metric: Metric
    ) -> Tuple[float, float]:
        self._require_same_kind(other)
        assert isinstance(other, HollowBallBounds)
        dcc = float(metric.norm(other.centers[other_node] - self.centers[node]))
        outer_a = float(self.outer[node])
        outer_b = float(other.outer[other_node])
        inner_a = float(self.inner[node])
        inner_b = float(other.inner[other_node])
        lower = max(
            0.0,
            dcc - outer_a - outer_b,
            inner_a - (dcc + outer_b),
            inner_b - (dcc + outer_a),
        )
        return lower, dcc + outer_a + outer_b

    def contains(self, node: int, points: np.ndarray, metric: Metric) -> bool:
        pts = np.asarray(points, dtype=np.float64)
        if pts.size == 0:
            return True
        dists = metric.to_point(pts, self.centers[node])
        return bool(
            np.all(dists <= self.outer[node] + _CONTAINS_ATOL)
            and np.all(dists >= self.inner[node] - _CONTAINS_ATOL)
        )

    def encloses(self, node: int, child: int, metric: Metric) -> bool:
        # Child annuli are centred on a different vantage point; only the
        # outer balls nest.
        dcc = float(metric.norm(self.centers[child] - self.centers[node]))
        return dcc + float(self.outer[child]) <= float(self.outer[node]) + _CONTAINS_ATOL

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "centers": self.centers.tolist(),
            "inner": self.inner.tolist(),
            "outer": self.outer.tolist(),
        }

    def describe(self, node: int) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "center": self.centers[node],
            "inner": float(self.inner[node]),
            "outer": float(self.outer[node]),
        }


def _as_float_matrix(value: Any, *, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"Bound field '{name}' must be a 2-D array.")
    return np.ascontiguousarray(arr)


def _as_float_vector(value: Any, *, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"Bound field '{name}' must be a 1-D array.")
    return arr


def bounds_from_payload(payload: Dict[str, Any], *, dimension: int) -> NodeBounds:
    """Rebuild a bound family from :meth:`NodeBounds.to_payload` output."""

    kind = payload.get("kind")
    if kind == HRectBounds.kind:
        lower = _as_float_matrix(payload["lower"], name="lower").reshape(-1, dimension)
        upper = _as_float_matrix(payload["upper"], name="upper").reshape(-1, dimension)
        if lower.shape != upper.shape:
            raise ValueError("hrect lower/upper shapes differ.")
        return HRectBounds(lower=lower, upper=upper)
    if kind == BallBounds.kind:
        centers = _as_float_matrix(payload["centers"], name="centers").reshape(-1, dimension)
        radii = _as_float_vector(payload["radii"], name="radii")
        if radii.shape[0] != centers.shape[0]:
            raise ValueError("ball centers/radii lengths differ.")
        return BallBounds(centers=centers, radii=radii)
    if kind == HollowBallBounds.kind:
        centers = _as_float_matrix(payload["centers"], name="centers").reshape(-1, dimension)
        inner = _as_float_vector(payload["inner"], name="inner")
        outer = _as_float_vector(payload["outer"], name="outer")
        if not (inner.shape[0] == outer.shape[0] == centers.shape[0]):
            raise ValueError("hollow_ball field lengths differ.")
        return HollowBallBounds(centers=centers, inner=inner, outer=outer)
    raise ValueError(f"Unknown bound kind '{kind}'.")


__all__ = [
    "NodeBounds",
    "HRectBounds",
    "BallBounds",
    "HollowBallBounds",
    "bounds_from_payload",
]
