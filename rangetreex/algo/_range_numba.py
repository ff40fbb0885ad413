from __future__ import annotations

import math

import numba as nb
import numpy as np

I64 = np.int64
U8 = np.uint8

# Metric codes understood by the kernels.
P_EUCLIDEAN = 0
P_MANHATTAN = 1
P_CHEBYSHEV = 2

_METRIC_CODES = {
    "euclidean": P_EUCLIDEAN,
    "manhattan": P_MANHATTAN,
    "chebyshev": P_CHEBYSHEV,
}


def metric_code(name: str) -> int:
    """Kernel code for a registered metric, ``-1`` when the kernels cannot evaluate it."""

    return _METRIC_CODES.get(name.lower(), -1)


@nb.njit(cache=True)
def _distance(a: np.ndarray, b: np.ndarray, p_code: int) -> float:
    acc = 0.0
    for k in range(a.shape[0]):
        diff = abs(a[k] - b[k])
        if p_code == P_EUCLIDEAN:
            acc += diff * diff
        elif p_code == P_MANHATTAN:
            acc += diff
        elif diff > acc:
            acc = diff
    if p_code == P_EUCLIDEAN:
        return math.sqrt(acc)
    return acc


@nb.njit(cache=True)
def range_block_numba(
    lhs: np.ndarray,
    rhs: np.ndarray,
    lhs_ids: np.ndarray,
    rhs_ids: np.ndarray,
    accept: np.ndarray,
    lower: float,
    upper: float,
    p_code: int,
    exclude_self: bool,
):
    """Exact base case over a block of query rows against a block of reference rows.

    ``accept[j]`` marks reference rows already known to be in range; their
    distances are still computed because they are part of the output.
    """

    m = lhs.shape[0]
    n = rhs.shape[0]
    dists = np.empty((m, n), dtype=np.float64)
    keep = np.zeros((m, n), dtype=U8)
    total = 0
    for i in range(m):
        for j in range(n):
            d = _distance(lhs[i], rhs[j], p_code)
            dists[i, j] = d
            if exclude_self and lhs_ids[i] == rhs_ids[j]:
                continue
            if accept[j] != 0 or (d >= lower and d <= upper):
                keep[i, j] = 1
                total += 1
    out_q = np.empty(total, dtype=I64)
    out_r = np.empty(total, dtype=I64)
    out_d = np.empty(total, dtype=np.float64)
    pos = 0
    for i in range(m):
        for j in range(n):
            if keep[i, j] != 0:
                out_q[pos] = lhs_ids[i]
                out_r[pos] = rhs_ids[j]
                out_d[pos] = dists[i, j]
                pos += 1
    return out_q, out_r, out_d


__all__ = [
    "P_CHEBYSHEV",
    "P_EUCLIDEAN",
    "P_MANHATTAN",
    "metric_code",
    "range_block_numba",
]
