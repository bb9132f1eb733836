"""Render targets for feature subgraphs: JSON, DOT and standalone HTML."""

from __future__ import annotations

import html
import json
import posixpath
from pathlib import Path
from typing import Any, Dict, List

from .models import FeatureSubGraph


def to_render_graph(subgraph: FeatureSubGraph) -> Dict[str, Any]:
    """Nodes + typed edges + per-node metadata for a visual front end."""
    seeds = set(subgraph.seeds)
    nodes: List[Dict[str, Any]] = []
    for score in subgraph.files:
        nodes.append({
            "id": score.path,
            "label": posixpath.basename(score.path),
            "type": "file",
            "data": {
                "path": score.path,
                "score": score.score,
                "reasons": [r.to_dict() for r in score.reasons],
                "hops": score.hops,
                "isSeed": score.path in seeds,
                "isBridge": score.is_bridge,
                "kind": score.kind,
            },
        })

    edges: List[Dict[str, Any]] = []
    for src, targets in subgraph.edges.items():
        for dst in targets:
            edge_type = subgraph.edge_types.get(f"{src}->{dst}", "import")
            edges.append({
                "id": f"edge-{len(edges)}",
                "label": edge_type,
                "from": src,
                "to": dst,
                "type": edge_type,
            })

    return {
        "id": subgraph.feature_id,
        "title": subgraph.feature_name,
        "nodes": nodes,
        "edges": edges,
        "metadata": {
            "graphType": "feature-subgraph",
            "featureId": subgraph.feature_id,
            "seeds": list(subgraph.seeds),
            "keywords": list(subgraph.keywords),
            "timestamp": subgraph.timestamp,
            "toolVersion": subgraph.tool_version,
            "commitHash": subgraph.commit_hash,
        },
    }


def export_json(subgraph: FeatureSubGraph, output_file: Path) -> None:
    output_file.write_text(json.dumps(subgraph.to_dict(), indent=2), encoding="utf-8")


def export_dot(subgraph: FeatureSubGraph, output_file: Path) -> None:
    output_file.write_text(to_dot(subgraph), encoding="utf-8")


def to_dot(subgraph: FeatureSubGraph) -> str:
    seeds = set(subgraph.seeds)
    lines = [f'digraph "{_esc(subgraph.feature_name)}" {{']
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, style=rounded];")

    for score in subgraph.files:
        hops = "-" if score.hops is None else str(score.hops)
        label = f"{_esc(posixpath.basename(score.path))}\\nscore={score.score:g} hops={hops}"
        attrs = [f'label="{label}"', f'tooltip="{_esc(score.path)}"']
        if score.path in seeds:
            attrs.append('style="rounded,filled"')
            attrs.append('fillcolor="#ffe08a"')
        if score.is_bridge:
            attrs.append("penwidth=2.5")
            attrs.append('color="#d9480f"')
        lines.append(f'  "{_esc(score.path)}" [{", ".join(attrs)}];')

    for src, targets in subgraph.edges.items():
        for dst in targets:
            edge_type = subgraph.edge_types.get(f"{src}->{dst}", "import")
            lines.append(f'  "{_esc(src)}" -> "{_esc(dst)}" [label="{_esc(edge_type)}"];')

    lines.append("}")
    return "\n".join(lines)


def export_html(subgraph: FeatureSubGraph, output_file: Path) -> None:
    output_file.write_text(to_html(subgraph), encoding="utf-8")


def to_html(subgraph: FeatureSubGraph) -> str:
    """Standalone HTML listing of nodes and edges."""
    graph_payload = to_render_graph(subgraph)
    title = html.escape(subgraph.feature_name)
    # "</" inside the JSON would close the script tag early.
    data = json.dumps(graph_payload).replace("</", "<\\/")
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Feature: {title}</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    #container {{ display: grid; grid-template-columns: 1fr 1fr; gap: 18px; }}
    .panel {{ border: 1px solid #ddd; border-radius: 8px; padding: 10px; }}
    ul {{ list-style: none; padding: 0; margin: 0; }}
    li {{ margin: 4px 0; }}
    .seed {{ font-weight: bold; }}
    .bridge {{ color: #d9480f; }}
  </style>
</head>
<body>
  <h1>Feature: {title}</h1>
  <div id="container">
    <div class="panel">
      <h2>Files</h2>
      <ul id="nodes"></ul>
    </div>
    <div class="panel">
      <h2>Edges</h2>
      <ul id="edges"></ul>
    </div>
  </div>
  <script>
    const graph = {data};
    const nodesEl = document.getElementById('nodes');
    const edgesEl = document.getElementById('edges');
    graph.nodes.forEach(n => {{
      const li = document.createElement('li');
      const hops = n.data.hops === null ? '-' : n.data.hops;
      li.textContent = `${{n.id}}  score=${{n.data.score}} hops=${{hops}} kind=${{n.data.kind}}`;
      if (n.data.isSeed) li.classList.add('seed');
      if (n.data.isBridge) li.classList.add('bridge');
      li.title = n.data.reasons.map(r => r.detail).join('\\n');
      nodesEl.appendChild(li);
    }});
    graph.edges.forEach(e => {{
      const li = document.createElement('li');
      li.textContent = `${{e.from}} --${{e.type}}--> ${{e.to}}`;
      edgesEl.appendChild(li);
    }});
  </script>
</body>
</html>
"""


EXPORTERS = {
    "json": export_json,
    "dot": export_dot,
    "html": export_html,
}


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
