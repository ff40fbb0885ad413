from __future__ import annotations

import numpy as np


def random_orthogonal_basis(dimension: int, rng: np.random.Generator) -> np.ndarray:
    """Draw a ``dimension x dimension`` orthogonal matrix uniformly (Haar measure).

    The QR factor of a Gaussian matrix is made unique by folding the signs of
    ``diag(R)`` into ``Q``.
    """

    if dimension < 1:
        raise ValueError(f"dimension must be >= 1 (got {dimension}).")
    gaussian = rng.standard_normal((dimension, dimension))
    q, r = np.linalg.qr(gaussian)
    signs = np.sign(np.diag(r))
    signs[signs == 0.0] = 1.0
    return np.ascontiguousarray(q * signs[None, :])


def apply_basis(points: np.ndarray, basis: np.ndarray | None) -> np.ndarray:
    """Rotate row points into ``basis``; ``None`` leaves them unchanged."""

    pts = np.asarray(points, dtype=np.float64)
    if basis is None:
        return pts
    if pts.shape[1] != basis.shape[0]:
        raise ValueError(
            f"Point dimension {pts.shape[1]} does not match basis dimension {basis.shape[0]}."
        )
    return np.ascontiguousarray(pts @ basis)


__all__ = ["apply_basis", "random_orthogonal_basis"]
