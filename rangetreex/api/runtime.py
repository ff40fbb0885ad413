from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from rangetreex import config as rx_config


def _apply_if_present(target: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = value


def _active_runtime_config() -> rx_config.RuntimeConfig:
    active = rx_config.current_runtime_context()
    if active is not None:
        return active.config
    return rx_config.RuntimeConfig.from_env()


_ATTR_TO_FIELD = {
    "metric": "metric",
    "tree_type": "tree_type",
    "leaf_size": "leaf_size",
    "seed": "seed",
    "enable_numba": "enable_numba",
    "diagnostics": "enable_diagnostics",
    "log_level": "log_level",
    "query_block_size": "query_block_size",
}


@dataclass(frozen=True)
class Runtime:
    """Declarative runtime configuration that can activate a rangetreex context.

    Fields left as ``None`` fall back to the environment (or to ``base`` when
    one is given to :meth:`to_config`).
    """

    metric: str | None = None
    tree_type: str | None = None
    leaf_size: int | None = None
    seed: int | None = None
    enable_numba: bool | None = None
    diagnostics: bool | None = None
    log_level: str | None = None
    query_block_size: int | None = None

    def to_config(self, base: rx_config.RuntimeConfig | None = None) -> rx_config.RuntimeConfig:
        base_config = base if base is not None else rx_config.RuntimeConfig.from_env()
        updates: Dict[str, Any] = {}
        for attr, field_name in _ATTR_TO_FIELD.items():
            _apply_if_present(updates, field_name, getattr(self, attr))
        if "metric" in updates:
            updates["metric"] = rx_config._parse_metric(str(updates["metric"]))
        if "tree_type" in updates:
            updates["tree_type"] = rx_config._parse_tree_type(str(updates["tree_type"]))
        if "log_level" in updates:
            updates["log_level"] = rx_config._parse_log_level(str(updates["log_level"]))
        for key in ("leaf_size", "query_block_size"):
            if key in updates and int(updates[key]) < 1:
                raise ValueError(f"{key} must be >= 1 (got {updates[key]}).")
        if not updates:
            return base_config
        return replace(base_config, **updates)

    def activate(self) -> rx_config.RuntimeContext:
        """Install this runtime as the active global context and return it."""

        config = self.to_config()
        return rx_config.configure_runtime(config)

    def describe(self) -> Dict[str, Any]:
        config = self.to_config()
        return {
            "metric": config.metric,
            "tree_type": config.tree_type,
            "leaf_size": config.leaf_size,
            "seed": config.seed,
            "enable_numba": config.enable_numba,
            "enable_diagnostics": config.enable_diagnostics,
            "log_level": config.log_level,
            "query_block_size": config.query_block_size,
        }

    def with_updates(self, **kwargs: Any) -> "Runtime":
        return replace(self, **kwargs)

    @classmethod
    def from_active(cls) -> "Runtime":
        return cls.from_config(_active_runtime_config())

    @classmethod
    def from_config(cls, config: rx_config.RuntimeConfig) -> "Runtime":
        return cls(
            metric=config.metric,
            tree_type=config.tree_type,
            leaf_size=config.leaf_size,
            seed=config.seed,
            enable_numba=config.enable_numba,
            diagnostics=config.enable_diagnostics,
            log_level=config.log_level,
            query_block_size=config.query_block_size,
        )


__all__ = ["Runtime"]
