from __future__ import annotations

from dataclasses import dataclass

PRUNE = 0
REPORT_ALL = 1
RECURSE = 2

# Bound arithmetic and exact distances round differently; decisions only
# commit when they hold with this much relative margin.
RELATIVE_SLACK = 1e-12


def _slack(value: float) -> float:
    return RELATIVE_SLACK * max(1.0, abs(value))


@dataclass(frozen=True)
class RangeSearchRules:
    """Prune / report-all / recurse decisions for the closed interval ``[lower, upper]``."""

    lower: float
    upper: float

    def decide(self, min_distance: float, max_distance: float) -> int:
        if max_distance + _slack(max_distance) < self.lower:
            return PRUNE
        if min_distance - _slack(min_distance) > self.upper:
            return PRUNE
        if (
            max_distance + _slack(max_distance) <= self.upper
            and min_distance - _slack(min_distance) >= self.lower
        ):
            return REPORT_ALL
        return RECURSE

    def contains(self, distance: float) -> bool:
        return self.lower <= distance <= self.upper


__all__ = ["PRUNE", "RECURSE", "RELATIVE_SLACK", "REPORT_ALL", "RangeSearchRules"]
