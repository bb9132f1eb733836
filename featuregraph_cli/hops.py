"""Bounded breadth-first hop distances from a feature's seed files."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, Mapping, Optional, Sequence, Set

from .errors import AnalysisCancelled
from .models import FileScore

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked inside long-running loops."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelled()


def calculate_hops(
    graph: Mapping[str, Set[str]],
    seeds: Sequence[str],
    max_hops: int,
    cancel_token: Optional[CancellationToken] = None,
) -> Dict[str, int]:
    """Return the hop distance of every file reachable within *max_hops*.

    All seeds start at hop 0 in the order given. A file reached at exactly
    *max_hops* is recorded but not expanded. Neighbors are visited in sorted
    order so repeated runs assign identical hops.
    """
    hops: Dict[str, int] = {}
    queue = deque()
    for seed in seeds:
        if seed not in hops:
            hops[seed] = 0
            queue.append(seed)

    while queue:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        current = queue.popleft()
        depth = hops[current]
        if depth >= max_hops:
            continue
        for neighbor in sorted(graph.get(current, ())):
            if neighbor not in hops:
                hops[neighbor] = depth + 1
                queue.append(neighbor)

    logger.debug("Hop search reached %d files (max_hops=%d)", len(hops), max_hops)
    return hops


def apply_hops(scores: Iterable[FileScore], hops: Mapping[str, int]) -> None:
    """Annotate *scores* in place; unreached files keep ``hops=None``."""
    for score in scores:
        score.hops = hops.get(score.path)


def ascii_hop_tree(graph: Mapping[str, Set[str]], seeds: Sequence[str], max_hops: int) -> str:
    """Render the BFS spanning tree around *seeds* as indented text."""
    hops = calculate_hops(graph, seeds, max_hops)
    children: Dict[str, list] = {}
    placed: Set[str] = set(seeds)
    for path in sorted(hops, key=lambda p: (hops[p], p)):
        for neighbor in sorted(graph.get(path, ())):
            if neighbor not in placed and hops.get(neighbor) == hops[path] + 1:
                placed.add(neighbor)
                children.setdefault(path, []).append(neighbor)

    lines = []

    def _walk(path: str, depth: int) -> None:
        prefix = "  " * depth
        marker = "* " if depth == 0 else "|- "
        lines.append(f"{prefix}{marker}{path}")
        for child in children.get(path, []):
            _walk(child, depth + 1)

    for seed in dict.fromkeys(seeds):
        _walk(seed, 0)
    return "\n".join(lines)
