"""Space-filling curve keys over a quantised grid.

Keys are arbitrary-precision Python integers so any dimension fits; callers
usually only need the resulting order, which :func:`curve_ranks` provides as
a dense ``int64`` array.
"""

from __future__ import annotations

from typing import List

import numpy as np

DEFAULT_BITS = 16


def quantize(points: np.ndarray, bits: int = DEFAULT_BITS) -> np.ndarray:
    """Map every coordinate onto ``[0, 2**bits - 1]`` using the set's bounding box."""

    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2:
        raise ValueError("quantize expects a 2-D point array.")
    if pts.shape[0] == 0:
        return np.zeros(pts.shape, dtype=np.uint64)
    lower = pts.min(axis=0)
    span = pts.max(axis=0) - lower
    scale = float((1 << bits) - 1)
    safe = np.where(span > 0.0, span, 1.0)
    grid = np.floor((pts - lower) / safe * scale)
    grid = np.clip(grid, 0.0, scale)
    grid[:, span <= 0.0] = 0.0
    return grid.astype(np.uint64)


def _interleave(grid: np.ndarray, bits: int) -> List[int]:
    count, dimension = grid.shape
    if count == 0:
        return []
    if dimension == 0:
        return [0] * count
    planes = np.empty((count, bits * dimension), dtype=np.uint8)
    for level in range(bits):
        shift = np.uint64(bits - 1 - level)
        planes[:, level * dimension : (level + 1) * dimension] = (
            (grid >> shift) & np.uint64(1)
        ).astype(np.uint8)
    packed = np.packbits(planes, axis=1)
    return [int.from_bytes(row.tobytes(), "big") for row in packed]


def morton_keys(points: np.ndarray, bits: int = DEFAULT_BITS) -> List[int]:
    """Z-order keys: coordinate bits interleaved from the most significant down."""

    return _interleave(quantize(points, bits), bits)


def _axes_to_transpose(grid: np.ndarray, bits: int) -> np.ndarray:
    # Skilling, "Programming the Hilbert curve" (2004), vectorised over rows.
    x = grid.copy()
    dimension = x.shape[1]
    q = 1 << (bits - 1)
    while q > 1:
        p = np.uint64(q - 1)
        mask_q = np.uint64(q)
        for axis in range(dimension):
            hit = (x[:, axis] & mask_q) != 0
            x[hit, 0] ^= p
            miss = ~hit
            t = (x[miss, 0] ^ x[miss, axis]) & p
            x[miss, 0] ^= t
            x[miss, axis] ^= t
        q >>= 1
    for axis in range(1, dimension):
        x[:, axis] ^= x[:, axis - 1]
    t = np.zeros(x.shape[0], dtype=np.uint64)
    q = 1 << (bits - 1)
    while q > 1:
        hit = (x[:, dimension - 1] & np.uint64(q)) != 0
        t[hit] ^= np.uint64(q - 1)
        q >>= 1
    x ^= t[:, None]
    return x


def hilbert_keys(points: np.ndarray, bits: int = DEFAULT_BITS) -> List[int]:
    """Hilbert curve keys for every row of ``points``."""

    grid = quantize(points, bits)
    if grid.shape[0] == 0 or grid.shape[1] == 0:
        return [0] * grid.shape[0]
    return _interleave(_axes_to_transpose(grid, bits), bits)


def curve_ranks(keys: List[int]) -> np.ndarray:
    """Dense rank of every key, ties broken by position."""

    order = sorted(range(len(keys)), key=lambda i: (keys[i], i))
    ranks = np.empty(len(keys), dtype=np.int64)
    ranks[np.asarray(order, dtype=np.int64)] = np.arange(len(keys), dtype=np.int64)
    return ranks


__all__ = [
    "DEFAULT_BITS",
    "curve_ranks",
    "hilbert_keys",
    "morton_keys",
    "quantize",
]
