from __future__ import annotations


class RangeSearchError(Exception):
    """Base class for every error raised by rangetreex."""


class ConfigurationError(RangeSearchError, ValueError):
    """Invalid, missing or mutually exclusive build/search inputs."""


class InvalidRangeError(RangeSearchError, ValueError):
    """A malformed ``[min, max]`` search interval."""

    def __init__(self, lower: float, upper: float, reason: str) -> None:
        super().__init__(f"Invalid search range [{lower!r}, {upper!r}]: {reason}")
        self.lower = lower
        self.upper = upper


class DeserializationError(RangeSearchError):
    """A persisted model is corrupt or was written by an incompatible version."""


__all__ = [
    "RangeSearchError",
    "ConfigurationError",
    "InvalidRangeError",
    "DeserializationError",
]
