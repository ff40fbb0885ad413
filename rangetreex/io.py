"""Point-set loading and the line-per-query result file format."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import numpy as np

from rangetreex.algo.results import RangeSearchResult
from rangetreex.errors import ConfigurationError
from rangetreex.logging import get_logger
from rangetreex.telemetry.schemas import RESULT_FILE_SCHEMA

LOGGER = get_logger("io")

_TEXT_SUFFIXES = {".csv", ".txt"}
_DELIMITER = str(RESULT_FILE_SCHEMA["delimiter"])


def load_points(path: str | Path) -> np.ndarray:
    """Read an ``(n, d)`` float64 matrix from ``.npy`` or comma-separated text."""

    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Point file '{source}' does not exist.")
    suffix = source.suffix.lower()
    if suffix != ".npy" and suffix not in _TEXT_SUFFIXES:
        raise ConfigurationError(f"Unsupported point file '{source}'; expected .npy, .csv or .txt.")
    try:
        if suffix == ".npy":
            points = np.load(source, allow_pickle=False)
        else:
            points = np.loadtxt(source, delimiter=_DELIMITER, dtype=np.float64, ndmin=2)
    except ValueError as exc:
        raise ConfigurationError(f"Could not parse point file '{source}': {exc}") from exc
    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1:
        points = points[:, None]
    LOGGER.debug("Loaded %d points of dimension %d from %s", points.shape[0], points.shape[1], source)
    return points


def save_points(points: np.ndarray, path: str | Path) -> Path:
    target = Path(path)
    arr = np.asarray(points, dtype=np.float64)
    if target.suffix.lower() == ".npy":
        np.save(target, arr, allow_pickle=False)
    else:
        lines = [_DELIMITER.join(repr(float(v)) for v in row) for row in arr]
        target.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return target


def _write_rows(rows: Iterable[Iterable[str]], path: str | Path) -> Path:
    target = Path(path)
    target.write_text(
        "".join(_DELIMITER.join(row) + "\n" for row in rows),
        encoding="utf-8",
    )
    return target


def write_neighbors(result: RangeSearchResult, path: str | Path) -> Path:
    """One line per query holding its reference indices; empty when nothing matched."""

    rows = (
        (str(int(idx)) for idx in result.neighbors(q)) for q in range(result.num_queries)
    )
    target = _write_rows(rows, path)
    LOGGER.info("Wrote neighbors for %d queries to %s", result.num_queries, target)
    return target


def write_distances(result: RangeSearchResult, path: str | Path) -> Path:
    rows = (
        (repr(float(dist)) for dist in result.distances_of(q))
        for q in range(result.num_queries)
    )
    target = _write_rows(rows, path)
    LOGGER.info("Wrote distances for %d queries to %s", result.num_queries, target)
    return target


def _read_rows(path: str | Path) -> List[List[str]]:
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Result file '{source}' does not exist.")
    lines = source.read_text(encoding="utf-8").split("\n")
    # Every row ends with a newline, so the final split item is always empty.
    if lines and lines[-1] == "":
        lines.pop()
    return [line.split(_DELIMITER) if line.strip() else [] for line in lines]


def read_neighbors(path: str | Path) -> List[List[int]]:
    rows = _read_rows(path)
    try:
        return [[int(value) for value in row] for row in rows]
    except ValueError as exc:
        raise ConfigurationError(f"Malformed neighbors file '{path}': {exc}") from exc


def read_distances(path: str | Path) -> List[List[float]]:
    rows = _read_rows(path)
    try:
        return [[float(value) for value in row] for row in rows]
    except ValueError as exc:
        raise ConfigurationError(f"Malformed distances file '{path}': {exc}") from exc


def read_result(neighbors_path: str | Path, distances_path: str | Path) -> RangeSearchResult:
    neighbors = read_neighbors(neighbors_path)
    distances = read_distances(distances_path)
    try:
        return RangeSearchResult.from_lists(neighbors, distances)
    except ValueError as exc:
        raise ConfigurationError(f"Result files disagree: {exc}") from exc


__all__ = [
    "load_points",
    "read_distances",
    "read_neighbors",
    "read_result",
    "save_points",
    "write_distances",
    "write_neighbors",
]
