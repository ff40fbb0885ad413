from __future__ import annotations

import logging

ROOT_LOGGER_NAME = "rangetreex"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger namespaced under ``rangetreex``."""

    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = ["ROOT_LOGGER_NAME", "get_logger"]
