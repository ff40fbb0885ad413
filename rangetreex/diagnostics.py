from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator

import psutil

from rangetreex import config as rx_config


@dataclass
class _ResourceSnapshot:
    cpu_user: float
    cpu_system: float
    rss: int


def _take_snapshot(process: psutil.Process) -> _ResourceSnapshot:
    times = process.cpu_times()
    return _ResourceSnapshot(
        cpu_user=float(times.user),
        cpu_system=float(times.system),
        rss=int(process.memory_info().rss),
    )


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


@dataclass
class OperationLog:
    """Accumulates metadata for a single instrumented operation."""

    op: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_metadata(self, **fields: Any) -> None:
        self.metadata.update(fields)


@contextmanager
def log_operation(logger: logging.Logger, op: str) -> Iterator[OperationLog]:
    """Time an operation and emit one ``op=<name> ...`` line when it finishes.

    CPU and RSS deltas are sampled through psutil unless diagnostics are
    disabled in the runtime configuration, in which case they render as ``NA``.
    Exceptions propagate; the line is still emitted with ``status=error``.
    """

    diagnostics = rx_config.runtime_config().enable_diagnostics
    process = psutil.Process() if diagnostics else None
    before = _take_snapshot(process) if process is not None else None
    op_log = OperationLog(op=op)
    status = "ok"
    start = time.perf_counter()
    try:
        yield op_log
    except Exception:
        status = "error"
        raise
    finally:
        wall_ms = (time.perf_counter() - start) * 1000.0
        if process is not None and before is not None:
            after = _take_snapshot(process)
            cpu_user = f"{(after.cpu_user - before.cpu_user) * 1000.0:.3f}"
            cpu_system = f"{(after.cpu_system - before.cpu_system) * 1000.0:.3f}"
            rss_delta = str(after.rss - before.rss)
        else:
            cpu_user = cpu_system = rss_delta = "NA"
        parts = [
            f"op={op}",
            f"status={status}",
            f"wall_ms={wall_ms:.3f}",
            f"cpu_user_ms={cpu_user}",
            f"cpu_system_ms={cpu_system}",
            f"rss_delta={rss_delta}",
        ]
        parts.extend(f"{key}={_format_value(value)}" for key, value in op_log.metadata.items())
        logger.info(" ".join(parts))


__all__ = ["OperationLog", "log_operation"]
