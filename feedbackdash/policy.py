"""
Performance banding policies.

A policy maps a numeric average (usually 1.0 - 5.0, or the sentinel 0)
to a named band. Several dashboard views used different threshold sets,
so each one is a named PerformancePolicy instead of a hard-coded constant:

    DEFAULT_POLICY          Excellent >= 4.5, Good >= 4.0, Average >= 3.0, else Poor
    HIGH_PERFORMER_POLICY   Excellent >= 4.0, Average >= 3.0, else Poor
    COURSE_RATING_POLICY    High >= 4.5, Medium >= 3.5, else Low
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from feedbackdash.errors import ConfigurationError


@dataclass(frozen=True)
class PerformancePolicy:
    """
    Named threshold set.

    thresholds: (minimum, label) pairs. Order does not matter, they are
    checked from the highest minimum down. A value below every minimum
    gets the floor label.
    """

    name: str
    thresholds: Tuple[Tuple[float, str], ...]
    floor: str

    def __post_init__(self) -> None:
        if not self.thresholds:
            raise ConfigurationError(f"Policy {self.name!r} needs at least one threshold")
        for minimum, label in self.thresholds:
            if isinstance(minimum, bool) or not isinstance(minimum, (int, float)):
                raise ConfigurationError(f"Policy {self.name!r}: threshold for {label!r} is not a number")
        ordered = tuple(sorted(self.thresholds, key=lambda t: t[0], reverse=True))
        object.__setattr__(self, "thresholds", ordered)

    @property
    def labels(self) -> list[str]:
        """All band labels, best first, floor last."""
        return [label for _, label in self.thresholds] + [self.floor]

    def band(self, value: float) -> str:
        for minimum, label in self.thresholds:
            if value >= minimum:
                return label
        return self.floor


def make_policy(name: str, thresholds: Sequence[Tuple[float, str]], floor: str) -> PerformancePolicy:
    return PerformancePolicy(name=name, thresholds=tuple(thresholds), floor=floor)


DEFAULT_POLICY = make_policy("default", [(4.5, "Excellent"), (4.0, "Good"), (3.0, "Average")], "Poor")

HIGH_PERFORMER_POLICY = make_policy("high-performer", [(4.0, "Excellent"), (3.0, "Average")], "Poor")

COURSE_RATING_POLICY = make_policy("course-rating", [(4.5, "High"), (3.5, "Medium")], "Low")

POLICIES = {p.name: p for p in (DEFAULT_POLICY, HIGH_PERFORMER_POLICY, COURSE_RATING_POLICY)}


def performance_band(avg_rating: float, policy: PerformancePolicy = DEFAULT_POLICY) -> str:
    """
    Band for one average. The sentinel 0 ("no data") falls into the floor band,
    so callers should check feedback counts before showing it.
    """
    return policy.band(avg_rating)


def count_by_band(values: Iterable[float], policy: PerformancePolicy = DEFAULT_POLICY) -> dict[str, int]:
    """
    Count values per band. Every label of the policy is present (zero-filled),
    best band first.
    """
    counts = {label: 0 for label in policy.labels}
    for v in values:
        counts[policy.band(v)] += 1
    return counts
