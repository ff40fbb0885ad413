from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class RangeSearchResult:
    """Per-query matches in CSR form.

    Row ``q`` spans ``indptr[q]:indptr[q + 1]`` of ``indices`` (original
    reference indices, ascending) and ``distances``.
    """

    indptr: np.ndarray
    indices: np.ndarray
    distances: np.ndarray

    @property
    def num_queries(self) -> int:
        return int(self.indptr.shape[0]) - 1

    @property
    def num_pairs(self) -> int:
        return int(self.indices.shape[0])

    def __len__(self) -> int:
        return self.num_queries

    def neighbors(self, query: int) -> np.ndarray:
        return self.indices[self.indptr[query] : self.indptr[query + 1]]

    def distances_of(self, query: int) -> np.ndarray:
        return self.distances[self.indptr[query] : self.indptr[query + 1]]

    def to_lists(self) -> Tuple[List[List[int]], List[List[float]]]:
        neighbors = [self.neighbors(q).tolist() for q in range(self.num_queries)]
        distances = [self.distances_of(q).tolist() for q in range(self.num_queries)]
        return neighbors, distances

    def triples(self) -> List[Tuple[int, int, float]]:
        counts = np.diff(self.indptr)
        queries = np.repeat(np.arange(self.num_queries, dtype=np.int64), counts)
        return [
            (int(q), int(r), float(d))
            for q, r, d in zip(queries, self.indices, self.distances)
        ]

    @classmethod
    def empty(cls, num_queries: int) -> "RangeSearchResult":
        return cls(
            indptr=np.zeros(num_queries + 1, dtype=np.int64),
            indices=np.zeros(0, dtype=np.int64),
            distances=np.zeros(0, dtype=np.float64),
        )

    @classmethod
    def from_lists(
        cls, neighbors: Sequence[Sequence[int]], distances: Sequence[Sequence[float]]
    ) -> "RangeSearchResult":
        if len(neighbors) != len(distances):
            raise ValueError("neighbors and distances must have the same number of rows.")
        builder = RangeResultBuilder(len(neighbors))
        for query, (row_idx, row_dist) in enumerate(zip(neighbors, distances)):
            if len(row_idx) != len(row_dist):
                raise ValueError(f"Row {query} has mismatched neighbor/distance counts.")
            refs = np.asarray(row_idx, dtype=np.int64)
            builder.add_block(np.full(refs.shape[0], query, dtype=np.int64), refs, row_dist)
        return builder.finalize()


class RangeResultBuilder:
    """Accumulates ``(query, reference, distance)`` blocks during traversal."""

    def __init__(self, num_queries: int) -> None:
        self.num_queries = int(num_queries)
        self._queries: List[np.ndarray] = []
        self._refs: List[np.ndarray] = []
        self._dists: List[np.ndarray] = []
        self._pairs = 0

    @property
    def num_pairs(self) -> int:
        return self._pairs

    def add_block(self, queries: np.ndarray, refs: np.ndarray, dists: np.ndarray) -> None:
        queries = np.asarray(queries, dtype=np.int64).reshape(-1)
        refs = np.asarray(refs, dtype=np.int64).reshape(-1)
        dists = np.asarray(dists, dtype=np.float64).reshape(-1)
        if not (queries.shape == refs.shape == dists.shape):
            raise ValueError("Result blocks must have aligned query/reference/distance arrays.")
        if queries.size == 0:
            return
        self._queries.append(queries)
        self._refs.append(refs)
        self._dists.append(dists)
        self._pairs += int(queries.size)

    def finalize(self) -> RangeSearchResult:
        if not self._queries:
            return RangeSearchResult.empty(self.num_queries)
        queries = np.concatenate(self._queries)
        refs = np.concatenate(self._refs)
        dists = np.concatenate(self._dists)
        order = np.lexsort((refs, queries))
        counts = np.bincount(queries, minlength=self.num_queries)
        indptr = np.zeros(self.num_queries + 1, dtype=np.int64)
        np.cumsum(counts, out=indptr[1:])
        return RangeSearchResult(indptr=indptr, indices=refs[order], distances=dists[order])


__all__ = ["RangeResultBuilder", "RangeSearchResult"]
