"""Condensed feature summary handed back to calling agents."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .models import FeatureSubGraph, FileScore

TOP_REASONS = 3


def top_reasons(score: FileScore, limit: int = TOP_REASONS) -> List[str]:
    """Details of the heaviest reasons; ties keep discovery order."""
    ranked = sorted(enumerate(score.reasons), key=lambda item: (-item[1].weight, item[0]))
    return [reason.detail for _, reason in ranked[:limit]]


def to_agent_output(
    subgraph: FeatureSubGraph,
    max_hops: Optional[int] = None,
    include_graph_json: bool = True,
) -> Dict[str, Any]:
    """Plain structured summary: aggregate counts, per-file top reasons and edges.

    ``maxHops`` reports the payload bound when given, otherwise the deepest
    hop actually present in the subgraph.
    """
    files = subgraph.files
    seeds = set(subgraph.seeds)
    hop_values = [f.hops for f in files if f.hops is not None]
    avg_score = round(sum(f.score for f in files) / len(files), 2) if files else 0

    output: Dict[str, Any] = {
        "featureId": subgraph.feature_id,
        "featureName": subgraph.feature_name,
        "summary": {
            "totalFiles": len(files),
            "seedFiles": sum(1 for f in files if f.path in seeds),
            "avgScore": avg_score,
            "maxHops": max_hops if max_hops is not None else max(hop_values, default=0),
            "bridgeFiles": sum(1 for f in files if f.is_bridge),
            "totalEdges": subgraph.num_edges,
        },
        "files": [
            {
                "path": f.path,
                "score": f.score,
                "kind": f.kind,
                "hops": f.hops,
                "isBridge": f.is_bridge,
                "topReasons": top_reasons(f),
            }
            for f in files
        ],
        "relationships": [
            {"from": src, "to": dst, "type": subgraph.edge_types.get(f"{src}->{dst}", "import")}
            for src, targets in subgraph.edges.items()
            for dst in targets
        ],
    }
    if include_graph_json:
        output["graphJson"] = json.dumps(subgraph.to_dict())
    return output
