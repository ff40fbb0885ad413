from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from rangetreex.algo.results import RangeSearchResult
from rangetreex.api.runtime import Runtime
from rangetreex.core.persistence import load_model, save_model
from rangetreex.errors import ConfigurationError
from rangetreex.model import RangeSearchModel, build_model
from rangetreex.queries.range import range_search


@dataclass(frozen=True)
class RangeSearch:
    """Thin façade around model building, range queries and persistence.

    Every call activates ``runtime`` first; ``fit`` and ``with_strategy``
    return new instances rather than mutating this one.

    Activation replaces the process-wide runtime context. Threads sharing one
    runtime may search concurrently, but instances holding different runtimes
    must not be used from several threads at once: each call can switch the
    numba and query-block settings seen by the others.
    """

    runtime: Runtime = field(default_factory=Runtime)
    model: RangeSearchModel | None = None

    def fit(
        self,
        reference: Any,
        *,
        tree_type: str | None = None,
        leaf_size: int | None = None,
        naive: bool = False,
        single_tree: bool = False,
        random_basis: bool = False,
        metric: str | None = None,
        seed: int | None = None,
    ) -> "RangeSearch":
        self.runtime.activate()
        model = build_model(
            reference,
            tree_type=tree_type,
            leaf_size=leaf_size,
            naive=naive,
            single_tree=single_tree,
            random_basis=random_basis,
            metric=metric,
            seed=seed,
        )
        return replace(self, model=model)

    def search(
        self,
        queries: Any = None,
        *,
        lower: float = 0.0,
        upper: float,
    ) -> RangeSearchResult:
        model = self._require_model()
        self.runtime.activate()
        return range_search(model, queries, lower=lower, upper=upper)

    def with_strategy(
        self, *, naive: bool | None = None, single_tree: bool | None = None
    ) -> "RangeSearch":
        model = self._require_model()
        self.runtime.activate()
        return replace(self, model=model.with_strategy(naive=naive, single_tree=single_tree))

    def save(self, path: str | Path) -> Path:
        return save_model(self._require_model(), path)

    @classmethod
    def load(cls, path: str | Path, *, runtime: Runtime | None = None) -> "RangeSearch":
        active = runtime or Runtime()
        active.activate()
        return cls(runtime=active, model=load_model(path))

    def _require_model(self) -> RangeSearchModel:
        if self.model is None:
            raise ConfigurationError("RangeSearch requires a model; call fit() or load() first.")
        return self.model


__all__ = ["RangeSearch"]
