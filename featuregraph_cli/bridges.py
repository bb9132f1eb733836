"""Bridge detection over the threshold-filtered subgraph."""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterable, List, Mapping, Sequence

from .models import FileScore

BRIDGE_AVG_FACTOR = Fraction(3, 2)
BRIDGE_MIN_DEGREE = 4


@dataclass
class Degree:
    in_degree: int = 0
    out_degree: int = 0

    @property
    def total(self) -> int:
        return self.in_degree + self.out_degree


def compute_degrees(paths: Iterable[str], edges: Mapping[str, Sequence[str]]) -> Dict[str, Degree]:
    """In/out degree of each path, counting only edges whose ends are both in *paths*."""
    degrees = {path: Degree() for path in paths}
    for src, targets in edges.items():
        if src not in degrees:
            continue
        for dst in set(targets):
            if dst == src or dst not in degrees:
                continue
            degrees[src].out_degree += 1
            degrees[dst].in_degree += 1
    return degrees


def average_degree(degrees: Mapping[str, Degree]) -> Fraction:
    if not degrees:
        return Fraction(0)
    return Fraction(sum(d.total for d in degrees.values()), len(degrees))


def is_bridge(degree: Degree, avg_degree: Fraction) -> bool:
    # Exact arithmetic: 1.5 * (4/3) must compare equal to 2.
    if avg_degree > 0 and degree.total >= BRIDGE_AVG_FACTOR * avg_degree:
        return True
    return (
        degree.total >= BRIDGE_MIN_DEGREE
        and degree.in_degree >= 1
        and degree.out_degree >= 1
    )


def detect_bridges(scores: Sequence[FileScore], edges: Mapping[str, Sequence[str]]) -> List[str]:
    """Flag disproportionately connected files and return their paths.

    *scores* must already be filtered; *edges* are the forward import edges
    among them. Sets ``is_bridge`` on every entry of *scores*.
    """
    degrees = compute_degrees((s.path for s in scores), edges)
    avg_degree = average_degree(degrees)

    bridges: List[str] = []
    for score in scores:
        score.is_bridge = is_bridge(degrees[score.path], avg_degree)
        if score.is_bridge:
            bridges.append(score.path)
    return bridges
