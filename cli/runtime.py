from __future__ import annotations

from typing import Any, Mapping

from rangetreex.api import Runtime as ApiRuntime


def _get_arg(source: Any, name: str, default: Any = None) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def runtime_from_args(
    args: Any,
    *,
    extra_overrides: Mapping[str, Any] | None = None,
) -> ApiRuntime:
    """Translate parsed CLI options into a :class:`rangetreex.Runtime`.

    Only options the user actually supplied become overrides; everything else
    falls through to the environment-driven defaults.
    """

    runtime_kwargs: dict[str, Any] = {}
    metric = _get_arg(args, "metric")
    if metric:
        runtime_kwargs["metric"] = metric
    tree_type = _get_arg(args, "tree_type")
    if tree_type is not None:
        runtime_kwargs["tree_type"] = getattr(tree_type, "value", tree_type)
    leaf_size = _get_arg(args, "leaf_size")
    if leaf_size is not None:
        runtime_kwargs["leaf_size"] = int(leaf_size)
    seed = _get_arg(args, "seed")
    if seed is not None:
        runtime_kwargs["seed"] = int(seed)
    enable_numba = _get_arg(args, "enable_numba")
    if enable_numba is not None:
        runtime_kwargs["enable_numba"] = bool(enable_numba)
    diagnostics = _get_arg(args, "diagnostics")
    if diagnostics is not None:
        runtime_kwargs["diagnostics"] = bool(diagnostics)
    log_level = _get_arg(args, "log_level")
    if log_level:
        runtime_kwargs["log_level"] = log_level
    if extra_overrides:
        runtime_kwargs.update(extra_overrides)
    return ApiRuntime(**runtime_kwargs)


__all__ = ["runtime_from_args"]
