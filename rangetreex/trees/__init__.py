"""Spatial tree variants sharing the flat-arena layout."""

from .registry import TreeType, bound_kind, build_tree, register_tree_type, registered_tree_types

__all__ = [
    "TreeType",
    "bound_kind",
    "build_tree",
    "register_tree_type",
    "registered_tree_types",
]
