from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

_SUPPORTED_METRICS = {"euclidean", "manhattan", "chebyshev"}
_SUPPORTED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_DEFAULT_METRIC = "euclidean"
_DEFAULT_TREE_TYPE = "kd"
_DEFAULT_LEAF_SIZE = 20
_DEFAULT_SEED = 0
_DEFAULT_QUERY_BLOCK = 256


def _bool_from_env(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_optional_int(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value '{raw}'") from exc


def _parse_metric(value: str | None) -> str:
    if value is None or value.strip() == "":
        return _DEFAULT_METRIC
    metric = value.strip().lower()
    if metric not in _SUPPORTED_METRICS:
        raise ValueError(f"Unsupported metric '{metric}'. Expected one of {_SUPPORTED_METRICS}.")
    return metric


def _parse_tree_type(value: str | None) -> str:
    if value is None or value.strip() == "":
        return _DEFAULT_TREE_TYPE
    # Validated against the tree registry when a model is built.
    return value.strip().lower()


def _parse_log_level(value: str | None) -> str:
    if value is None or value.strip() == "":
        return "INFO"
    level = value.strip().upper()
    if level not in _SUPPORTED_LOG_LEVELS:
        raise ValueError(f"Unsupported log level '{value}'. Expected one of {_SUPPORTED_LOG_LEVELS}.")
    return level


def _parse_positive_int(raw: str | None, *, name: str, default: int) -> int:
    value = _parse_optional_int(raw)
    if value is None:
        return default
    if value < 1:
        raise ValueError(f"{name} must be >= 1 (got {value}).")
    return value


@dataclass(frozen=True)
class RuntimeConfig:
    metric: str = _DEFAULT_METRIC
    tree_type: str = _DEFAULT_TREE_TYPE
    leaf_size: int = _DEFAULT_LEAF_SIZE
    seed: int = _DEFAULT_SEED
    enable_numba: bool = False
    enable_diagnostics: bool = True
    log_level: str = "INFO"
    query_block_size: int = _DEFAULT_QUERY_BLOCK

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        metric = _parse_metric(os.getenv("RANGETREEX_METRIC"))
        tree_type = _parse_tree_type(os.getenv("RANGETREEX_TREE_TYPE"))
        leaf_size = _parse_positive_int(
            os.getenv("RANGETREEX_LEAF_SIZE"),
            name="RANGETREEX_LEAF_SIZE",
            default=_DEFAULT_LEAF_SIZE,
        )
        seed = _parse_optional_int(os.getenv("RANGETREEX_SEED"))
        enable_numba = _bool_from_env(os.getenv("RANGETREEX_ENABLE_NUMBA"), default=False)
        enable_diagnostics = _bool_from_env(
            os.getenv("RANGETREEX_ENABLE_DIAGNOSTICS"), default=True
        )
        log_level = _parse_log_level(os.getenv("RANGETREEX_LOG_LEVEL"))
        query_block_size = _parse_positive_int(
            os.getenv("RANGETREEX_QUERY_BLOCK"),
            name="RANGETREEX_QUERY_BLOCK",
            default=_DEFAULT_QUERY_BLOCK,
        )
        return cls(
            metric=metric,
            tree_type=tree_type,
            leaf_size=leaf_size,
            seed=_DEFAULT_SEED if seed is None else seed,
            enable_numba=enable_numba,
            enable_diagnostics=enable_diagnostics,
            log_level=log_level,
            query_block_size=query_block_size,
        )


def _configure_logging(level: str) -> None:
    logger = logging.getLogger("rangetreex")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)


@dataclass
class RuntimeContext:
    """Active runtime configuration plus one-time side effects."""

    config: RuntimeConfig
    _activated: bool = field(default=False, init=False, repr=False)

    def activate(self) -> None:
        if self._activated:
            return
        _configure_logging(self.config.log_level)
        self._activated = True


_CONTEXT_CACHE: Optional[RuntimeContext] = None


def runtime_context() -> RuntimeContext:
    """Return the cached runtime context, constructing it from the environment if needed."""

    global _CONTEXT_CACHE
    if _CONTEXT_CACHE is None:
        context = RuntimeContext(config=RuntimeConfig.from_env())
        context.activate()
        _CONTEXT_CACHE = context
    return _CONTEXT_CACHE


def current_runtime_context() -> RuntimeContext | None:
    return _CONTEXT_CACHE


def runtime_config() -> RuntimeConfig:
    return runtime_context().config


def configure_runtime(config: RuntimeConfig) -> RuntimeContext:
    """Force the active runtime context to use ``config`` instead of env defaults."""

    context = RuntimeContext(config=config)
    return set_runtime_context(context)


def set_runtime_context(context: RuntimeContext) -> RuntimeContext:
    global _CONTEXT_CACHE
    context.activate()
    _CONTEXT_CACHE = context
    return context


def reset_runtime_context() -> None:
    """Clear the cached runtime context (used in tests)."""

    global _CONTEXT_CACHE
    _CONTEXT_CACHE = None


def reset_runtime_config_cache() -> None:
    reset_runtime_context()


def describe_runtime() -> Dict[str, Any]:
    """Return a serialisable view of the active runtime configuration."""

    config = runtime_config()
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


__all__ = [
    "RuntimeConfig",
    "RuntimeContext",
    "runtime_context",
    "current_runtime_context",
    "runtime_config",
    "configure_runtime",
    "set_runtime_context",
    "reset_runtime_context",
    "reset_runtime_config_cache",
    "describe_runtime",
]
