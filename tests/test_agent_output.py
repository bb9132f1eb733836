"""Tests for the condensed agent summary."""

import json

from featuregraph_cli.agent_output import to_agent_output, top_reasons
from featuregraph_cli.engine import FeatureEngine
from featuregraph_cli.models import FeaturePayload, FileScore, RelevanceReason


def _subgraph(files):
    payload = FeaturePayload(feature_id="shared", seeds=["src/a.ts", "src/b.ts"], relevance_threshold=0)
    return FeatureEngine().run(payload, files)


def test_summary_counts(shared_util_files):
    output = to_agent_output(_subgraph(shared_util_files), max_hops=3)

    assert output["featureId"] == "shared"
    assert output["featureName"] == "shared"
    assert output["summary"] == {
        "totalFiles": 3,
        "seedFiles": 2,
        "avgScore": round((33 + 33 + 20) / 3, 2),
        "maxHops": 3,
        "bridgeFiles": 1,
        "totalEdges": 2,
    }


def test_files_and_relationships(shared_util_files):
    output = to_agent_output(_subgraph(shared_util_files))

    util = next(f for f in output["files"] if f["path"] == "src/util.ts")
    assert util["isBridge"] is True
    assert util["hops"] == 1
    assert len(util["topReasons"]) == 2
    assert {"from": "src/a.ts", "to": "src/util.ts", "type": "import"} in output["relationships"]
    assert output["summary"]["maxHops"] == 1


def test_graph_json_is_optional(shared_util_files):
    subgraph = _subgraph(shared_util_files)

    with_graph = to_agent_output(subgraph)
    without = to_agent_output(subgraph, include_graph_json=False)

    assert json.loads(with_graph["graphJson"])["featureId"] == "shared"
    assert "graphJson" not in without


def test_top_reasons_heaviest_first():
    """Heaviest three; equal weights keep discovery order."""
    score = FileScore(path="a", reasons=[
        RelevanceReason(type="keyword-text", detail="text", weight=1),
        RelevanceReason(type="called-by", detail="first call", weight=4),
        RelevanceReason(type="calls", detail="second call", weight=4),
        RelevanceReason(type="keyword-name", detail="name", weight=2),
    ])
    assert top_reasons(score) == ["first call", "second call", "name"]
    assert top_reasons(score, limit=1) == ["first call"]
