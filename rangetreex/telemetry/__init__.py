from .schemas import (
    RANGE_MODEL_FIELDS,
    RANGE_MODEL_SCHEMA,
    RANGE_MODEL_SCHEMA_ID,
    RANGE_MODEL_SCHEMA_VERSION,
    RANGE_MODEL_TREE_FIELDS,
    RESULT_FILE_SCHEMA,
    RESULT_FILE_SCHEMA_ID,
)

__all__ = [
    "RANGE_MODEL_FIELDS",
    "RANGE_MODEL_SCHEMA",
    "RANGE_MODEL_SCHEMA_ID",
    "RANGE_MODEL_SCHEMA_VERSION",
    "RANGE_MODEL_TREE_FIELDS",
    "RESULT_FILE_SCHEMA",
    "RESULT_FILE_SCHEMA_ID",
]
