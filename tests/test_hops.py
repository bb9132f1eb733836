"""Tests for bounded hop calculation."""

import pytest

from featuregraph_cli.errors import AnalysisCancelled
from featuregraph_cli.graph import build_dependency_graph
from featuregraph_cli.hops import CancellationToken, apply_hops, ascii_hop_tree, calculate_hops
from featuregraph_cli.models import FileScore


def test_hops_stop_at_bound(chain_files):
    """Files beyond max_hops are never reached."""
    graph = build_dependency_graph(chain_files)

    assert calculate_hops(graph, ["src/a.ts"], 1) == {"src/a.ts": 0, "src/b.ts": 1}
    assert calculate_hops(graph, ["src/a.ts"], 3) == {
        "src/a.ts": 0,
        "src/b.ts": 1,
        "src/c.ts": 2,
        "src/d.ts": 3,
    }


def test_zero_hops_keeps_only_seeds(chain_files):
    graph = build_dependency_graph(chain_files)
    assert calculate_hops(graph, ["src/b.ts"], 0) == {"src/b.ts": 0}


def test_hops_follow_reverse_edges(chain_files):
    """Importers of a seed are one hop away too."""
    graph = build_dependency_graph(chain_files)
    hops = calculate_hops(graph, ["src/d.ts"], 2)
    assert hops == {"src/d.ts": 0, "src/c.ts": 1, "src/b.ts": 2}


def test_every_seed_starts_at_zero(chain_files):
    graph = build_dependency_graph(chain_files)
    hops = calculate_hops(graph, ["src/a.ts", "src/d.ts"], 1)
    assert hops == {"src/a.ts": 0, "src/d.ts": 0, "src/b.ts": 1, "src/c.ts": 1}


def test_unknown_seed_is_hop_zero():
    """A seed missing from the graph still gets hop 0 and no neighbors."""
    assert calculate_hops({}, ["src/ghost.ts"], 3) == {"src/ghost.ts": 0}


def test_cancellation_stops_search(chain_files):
    graph = build_dependency_graph(chain_files)
    token = CancellationToken()
    token.cancel()

    assert token.cancelled
    with pytest.raises(AnalysisCancelled):
        calculate_hops(graph, ["src/a.ts"], 3, cancel_token=token)


def test_apply_hops_marks_unreached_as_none():
    scores = [FileScore(path="src/a.ts"), FileScore(path="src/z.ts", hops=5)]
    apply_hops(scores, {"src/a.ts": 0})

    assert scores[0].hops == 0
    assert scores[1].hops is None


def test_ascii_hop_tree():
    graph = {
        "a": {"b", "c"},
        "b": {"a", "d"},
        "c": {"a"},
        "d": {"b"},
    }
    assert ascii_hop_tree(graph, ["a"], 2).splitlines() == [
        "* a",
        "  |- b",
        "    |- d",
        "  |- c",
    ]
