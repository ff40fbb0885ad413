from __future__ import annotations

from typing import Dict, Tuple

RANGE_MODEL_SCHEMA_VERSION = 1
RANGE_MODEL_SCHEMA_ID = "rangetreex.range_model.v1"
RANGE_MODEL_FIELDS: Tuple[str, ...] = (
    "schema_id",
    "version",
    "tree_type",
    "leaf_size",
    "metric",
    "naive",
    "single_tree",
    "seed",
    "dimension",
    "num_points",
    "basis",
    "reference",
    "tree",
)
RANGE_MODEL_TREE_FIELDS: Tuple[str, ...] = (
    "points",
    "indices",
    "node_begin",
    "node_count",
    "child_indptr",
    "child_indices",
    "bounds",
)
RANGE_MODEL_SCHEMA: Dict[str, object] = {
    "id": RANGE_MODEL_SCHEMA_ID,
    "version": RANGE_MODEL_SCHEMA_VERSION,
    "description": "Persisted range-search model: build parameters, projection basis and tree arena.",
    "required": RANGE_MODEL_FIELDS,
    "tree_required": RANGE_MODEL_TREE_FIELDS,
}

RESULT_FILE_SCHEMA_ID = "rangetreex.range_result_files.v1"
RESULT_FILE_SCHEMA: Dict[str, object] = {
    "id": RESULT_FILE_SCHEMA_ID,
    "description": "One line per query; comma-separated neighbour indices and distances.",
    "delimiter": ",",
}


__all__ = [
    "RANGE_MODEL_FIELDS",
    "RANGE_MODEL_SCHEMA",
    "RANGE_MODEL_SCHEMA_ID",
    "RANGE_MODEL_SCHEMA_VERSION",
    "RANGE_MODEL_TREE_FIELDS",
    "RESULT_FILE_SCHEMA",
    "RESULT_FILE_SCHEMA_ID",
]
