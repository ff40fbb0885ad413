"""Core data structures: metrics, bounding volumes, the flat tree arena and persistence."""

from .bounds import BallBounds, HollowBallBounds, HRectBounds, NodeBounds, bounds_from_payload
from .metrics import Metric, MetricRegistry, available_metrics, get_metric
from .tree import ROOT_NODE, BoundView, SpatialTree, TreeArena

__all__ = [
    "BallBounds",
    "BoundView",
    "HRectBounds",
    "HollowBallBounds",
    "Metric",
    "MetricRegistry",
    "NodeBounds",
    "ROOT_NODE",
    "SpatialTree",
    "TreeArena",
    "available_metrics",
    "bounds_from_payload",
    "get_metric",
]
