"""Assemble the final feature subgraph from scored, hop-annotated files."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Set

from . import __version__
from .bridges import detect_bridges
from .models import EdgeKind, FeaturePayload, FeatureSubGraph, FileScore
from .scorer import rank_scores

logger = logging.getLogger(__name__)


def filter_by_threshold(scores: Sequence[FileScore], threshold: float) -> List[FileScore]:
    return [s for s in scores if s.score >= threshold]


def induced_edges(
    paths: Set[str],
    import_graph: Mapping[str, Set[str]],
) -> Dict[str, List[str]]:
    """Forward import edges whose endpoints both lie in *paths*."""
    edges: Dict[str, List[str]] = {}
    for src in sorted(paths):
        targets = sorted(t for t in import_graph.get(src, ()) if t in paths and t != src)
        if targets:
            edges[src] = targets
    return edges


def edge_key(src: str, dst: str) -> str:
    return f"{src}->{dst}"


def assemble_subgraph(
    payload: FeaturePayload,
    scores: Sequence[FileScore],
    import_graph: Mapping[str, Set[str]],
    commit_hash: Optional[str] = None,
    tool_version: str = __version__,
) -> FeatureSubGraph:
    """Filter, wire, bridge-flag and stamp the feature subgraph.

    Bridge flags are written onto the surviving ``FileScore`` objects.
    """
    relevant = filter_by_threshold(scores, payload.relevance_threshold)
    paths = {s.path for s in relevant}

    edges = induced_edges(paths, import_graph)
    edge_types: Dict[str, EdgeKind] = {
        edge_key(src, dst): "import"
        for src, targets in edges.items()
        for dst in targets
    }

    bridges = detect_bridges(relevant, edges)
    logger.info(
        "Feature '%s': %d/%d files over threshold %s, %d edges, %d bridges",
        payload.feature_id, len(relevant), len(scores),
        payload.relevance_threshold, len(edge_types), len(bridges),
    )

    return FeatureSubGraph(
        feature_id=payload.feature_id,
        feature_name=payload.display_name,
        seeds=list(payload.seeds),
        keywords=list(payload.keywords),
        files=rank_scores(relevant),
        edges=edges,
        edge_types=edge_types,
        timestamp=datetime.now(timezone.utc).isoformat(),
        tool_version=tool_version,
        commit_hash=commit_hash,
    )
