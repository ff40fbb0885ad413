"""JSON persistence for :class:`~rangetreex.model.RangeSearchModel`.

Floats are written with Python's shortest round-trip ``repr`` (the ``json``
default), so a reloaded model holds bit-identical arrays and answers every
query exactly like the model that was saved.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import numpy as np

from rangetreex.core.bounds import bounds_from_payload
from rangetreex.core.metrics import available_metrics
from rangetreex.core.tree import SpatialTree
from rangetreex.diagnostics import log_operation
from rangetreex.errors import ConfigurationError, DeserializationError
from rangetreex.logging import get_logger
from rangetreex.telemetry.schemas import (
    RANGE_MODEL_FIELDS,
    RANGE_MODEL_SCHEMA_ID,
    RANGE_MODEL_SCHEMA_VERSION,
    RANGE_MODEL_TREE_FIELDS,
)

if TYPE_CHECKING:
    from rangetreex.model import RangeSearchModel

LOGGER = get_logger("core.persistence")


def _matrix_payload(array: Optional[np.ndarray]) -> Optional[list]:
    if array is None:
        return None
    return np.asarray(array, dtype=np.float64).tolist()


def _tree_payload(tree: SpatialTree) -> Dict[str, Any]:
    return {
        "points": tree.points.tolist(),
        "indices": tree.indices.tolist(),
        "node_begin": tree.node_begin.tolist(),
        "node_count": tree.node_count.tolist(),
        "child_indptr": tree.child_indptr.tolist(),
        "child_indices": tree.child_indices.tolist(),
        "bounds": tree.bounds.to_payload(),
    }


def model_to_payload(model: "RangeSearchModel") -> Dict[str, Any]:
    return {
        "schema_id": RANGE_MODEL_SCHEMA_ID,
        "version": RANGE_MODEL_SCHEMA_VERSION,
        "tree_type": model.tree_type,
        "leaf_size": int(model.leaf_size),
        "metric": model.metric,
        "naive": bool(model.naive),
        "single_tree": bool(model.single_tree),
        "seed": int(model.seed),
        "dimension": int(model.dimension),
        "num_points": int(model.num_points),
        "basis": _matrix_payload(model.basis),
        "reference": _matrix_payload(model.reference),
        "tree": None if model.tree is None else _tree_payload(model.tree),
    }


def serialize_model(model: "RangeSearchModel") -> bytes:
    """Encode ``model`` as UTF-8 JSON; equal models produce equal bytes."""

    with log_operation(LOGGER, "serialize_model") as op_log:
        text = json.dumps(model_to_payload(model), sort_keys=True, allow_nan=False)
        data = text.encode("utf-8")
        op_log.add_metadata(tree_type=model.tree_type, bytes=len(data))
    return data


def _float_matrix(value: Any, *, name: str, dimension: int) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.size == 0:
        arr = arr.reshape(0, dimension)
    if arr.ndim != 2 or arr.shape[1] != dimension:
        raise DeserializationError(f"Field '{name}' must be a matrix with {dimension} columns.")
    return np.ascontiguousarray(arr)


def _int_vector(value: Any, *, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.int64)
    if arr.ndim != 1:
        raise DeserializationError(f"Field '{name}' must be a flat integer list.")
    return arr


def _check_tree_layout(tree: SpatialTree, num_points: int) -> None:
    nodes = tree.num_nodes
    if tree.num_points != num_points:
        raise DeserializationError("Tree point count does not match the model header.")
    if not np.array_equal(np.sort(tree.indices), np.arange(num_points)):
        raise DeserializationError("Tree indices are not a permutation of the reference set.")
    if nodes == 0 or tree.node_count.shape[0] != nodes:
        raise DeserializationError("Tree node arrays are empty or misaligned.")
    if tree.child_indptr.shape[0] != nodes + 1 or tree.child_indptr[0] != 0:
        raise DeserializationError("Tree child_indptr is malformed.")
    if np.any(np.diff(tree.child_indptr) < 0) or tree.child_indptr[-1] != tree.child_indices.shape[0]:
        raise DeserializationError("Tree child_indptr is malformed.")
    if tree.child_indices.size and (
        tree.child_indices.min() < 1 or tree.child_indices.max() >= nodes
    ):
        raise DeserializationError("Tree child_indices reference missing nodes.")
    if tree.node_begin[0] != 0 or tree.node_count[0] != num_points:
        raise DeserializationError("Tree root does not cover the reference set.")
    if np.any(tree.node_count < 1) or np.any(tree.node_begin + tree.node_count > num_points):
        raise DeserializationError("Tree node ranges fall outside the reference set.")
    if tree.bounds.num_nodes != nodes:
        raise DeserializationError("Tree bounds do not cover every node.")
    parents = np.bincount(tree.child_indices, minlength=nodes)
    if parents[0] != 0 or np.any(parents[1:] != 1):
        raise DeserializationError("Every non-root node must have exactly one parent.")
    for node in range(nodes):
        kids = tree.child_indices[tree.child_indptr[node] : tree.child_indptr[node + 1]]
        if kids.size == 0:
            continue
        if np.any(kids <= node):
            raise DeserializationError(f"Node {node} lists a child that does not follow it.")
        counts = tree.node_count[kids]
        starts = tree.node_begin[node] + np.concatenate(([0], np.cumsum(counts)[:-1]))
        if not np.array_equal(tree.node_begin[kids], starts) or int(counts.sum()) != int(
            tree.node_count[node]
        ):
            raise DeserializationError(f"Children of node {node} do not partition its range.")


def _tree_from_payload(
    payload: Any, *, tree_type: str, leaf_size: int, dimension: int, num_points: int
) -> SpatialTree:
    if not isinstance(payload, dict):
        raise DeserializationError("Field 'tree' must be an object.")
    missing = [name for name in RANGE_MODEL_TREE_FIELDS if name not in payload]
    if missing:
        raise DeserializationError(f"Tree payload is missing fields: {', '.join(missing)}.")
    try:
        bounds = bounds_from_payload(payload["bounds"], dimension=dimension)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise DeserializationError(f"Invalid tree bounds: {exc}") from exc
    tree = SpatialTree(
        tree_type=tree_type,
        leaf_size=leaf_size,
        points=_float_matrix(payload["points"], name="points", dimension=dimension),
        indices=_int_vector(payload["indices"], name="indices"),
        node_begin=_int_vector(payload["node_begin"], name="node_begin"),
        node_count=_int_vector(payload["node_count"], name="node_count"),
        child_indptr=_int_vector(payload["child_indptr"], name="child_indptr"),
        child_indices=_int_vector(payload["child_indices"], name="child_indices"),
        bounds=bounds,
    )
    _check_tree_layout(tree, num_points)
    return tree


def model_from_payload(payload: Any) -> "RangeSearchModel":
    from rangetreex.model import RangeSearchModel, strategy_name
    from rangetreex.trees.registry import TreeType, bound_kind

    if not isinstance(payload, dict):
        raise DeserializationError("Model payload must be a JSON object.")
    schema_id = payload.get("schema_id")
    if schema_id != RANGE_MODEL_SCHEMA_ID:
        raise DeserializationError(f"Unknown model schema '{schema_id}'.")
    version = payload.get("version")
    if version != RANGE_MODEL_SCHEMA_VERSION:
        raise DeserializationError(
            f"Unsupported model version {version!r} (expected {RANGE_MODEL_SCHEMA_VERSION})."
        )
    missing = [name for name in RANGE_MODEL_FIELDS if name not in payload]
    if missing:
        raise DeserializationError(f"Model payload is missing fields: {', '.join(missing)}.")

    try:
        tree_type = TreeType.parse(payload["tree_type"]).value
        strategy = strategy_name(bool(payload["naive"]), bool(payload["single_tree"]))
    except ConfigurationError as exc:
        raise DeserializationError(str(exc)) from exc
    if payload["metric"] not in available_metrics():
        raise DeserializationError(f"Unknown metric {payload['metric']!r} in model payload.")
    try:
        leaf_size = int(payload["leaf_size"])
        seed = int(payload["seed"])
        dimension = int(payload["dimension"])
        num_points = int(payload["num_points"])
        metric = str(payload["metric"])
        basis = None
        if payload["basis"] is not None:
            basis = _float_matrix(payload["basis"], name="basis", dimension=dimension)
            if basis.shape[0] != dimension:
                raise DeserializationError("Field 'basis' must be a square matrix.")
        reference = None
        if payload["reference"] is not None:
            reference = _float_matrix(payload["reference"], name="reference", dimension=dimension)
            if reference.shape[0] != num_points:
                raise DeserializationError("Reference point count does not match the header.")
        tree = None
        if payload["tree"] is not None:
            tree = _tree_from_payload(
                payload["tree"],
                tree_type=tree_type,
                leaf_size=leaf_size,
                dimension=dimension,
                num_points=num_points,
            )
            if tree.bounds.kind != bound_kind(tree_type):
                raise DeserializationError(
                    f"Bound kind '{tree.bounds.kind}' does not belong to tree type '{tree_type}'."
                )
    except (TypeError, ValueError, KeyError) as exc:
        raise DeserializationError(f"Malformed model payload: {exc}") from exc

    if leaf_size < 1 or dimension < 1 or num_points < 1:
        raise DeserializationError("Model header holds non-positive sizes.")
    if (strategy == "naive") != (tree is None) or (tree is None) == (reference is None):
        raise DeserializationError("Model must hold a tree, or a reference set when naive.")
    return RangeSearchModel(
        tree_type=tree_type,
        leaf_size=leaf_size,
        metric=metric,
        naive=bool(payload["naive"]),
        single_tree=bool(payload["single_tree"]),
        seed=seed,
        basis=basis,
        tree=tree,
        reference=reference,
    )


def deserialize_model(data: bytes | str) -> "RangeSearchModel":
    """Decode bytes produced by :func:`serialize_model`."""

    with log_operation(LOGGER, "deserialize_model") as op_log:
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
            payload = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DeserializationError(f"Model data is not valid JSON: {exc}") from exc
        model = model_from_payload(payload)
        op_log.add_metadata(tree_type=model.tree_type, points=model.num_points)
    return model


def save_model(model: "RangeSearchModel", path: str | Path) -> Path:
    target = Path(path)
    target.write_bytes(serialize_model(model))
    LOGGER.info("Saved %s model to %s", model.tree_type, target)
    return target


def load_model(path: str | Path) -> "RangeSearchModel":
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Model file '{source}' does not exist.")
    return deserialize_model(source.read_bytes())


__all__ = [
    "deserialize_model",
    "load_model",
    "model_from_payload",
    "model_to_payload",
    "save_model",
    "serialize_model",
]
