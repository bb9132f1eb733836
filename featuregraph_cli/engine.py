"""Feature engine coordinating graph building, scoring, hops and assembly."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Set, Tuple

from . import __version__
from .assembler import assemble_subgraph
from .config import DEFAULT_SCORE_SCALE
from .errors import PayloadValidationError, RenderError
from .graph import (
    build_api_index,
    build_dependency_graph,
    build_import_graph,
    build_route_graph,
    link_imported_by,
)
from .hops import CancellationToken, apply_hops, calculate_hops
from .models import AnalyzedFile, FeaturePayload, FeatureSubGraph, ScoringWeights
from .parser import AnalysisReport, SourceAnalyzer, analyze_project
from .scorer import RelevanceScorer, ScoringContext

logger = logging.getLogger(__name__)

Renderer = Callable[[FeatureSubGraph], None]


def validate_payload(payload: FeaturePayload) -> FeaturePayload:
    """Reject incomplete payloads and return a normalized copy.

    Raises:
        PayloadValidationError: missing feature id, no seeds, or negative
            hop / threshold values.
    """
    if not payload.feature_id or not str(payload.feature_id).strip():
        raise PayloadValidationError("featureId is required")
    seeds = [s for s in (payload.seeds or []) if s]
    if not seeds:
        raise PayloadValidationError("At least one seed file is required")
    if payload.max_hops is None or payload.max_hops < 0:
        raise PayloadValidationError(f"maxHops must be >= 0, got {payload.max_hops}")
    if payload.relevance_threshold is None or payload.relevance_threshold < 0:
        raise PayloadValidationError(
            f"relevanceThreshold must be >= 0, got {payload.relevance_threshold}"
        )
    return replace(
        payload,
        seeds=list(dict.fromkeys(seeds)),
        keywords=[k for k in (payload.keywords or []) if k and k.strip()],
    )


def git_commit_hash(root: Path) -> Optional[str]:
    """Return ``HEAD`` of the git checkout at *root*, or None outside git."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git unavailable for %s: %s", root, exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


class FeatureEngine:
    """Runs the feature pipeline over already-analyzed files.

    The engine keeps no state between calls; every ``run`` builds its own
    graphs and score maps, so one engine can serve concurrent requests.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        score_scale: str = DEFAULT_SCORE_SCALE,
        tool_version: str = __version__,
    ):
        self.scorer = RelevanceScorer(weights, score_scale=score_scale)
        self.tool_version = tool_version

    @property
    def weights(self) -> ScoringWeights:
        return self.scorer.weights

    def run(
        self,
        payload: FeaturePayload,
        files: Sequence[AnalyzedFile],
        call_graph: Optional[Mapping[str, Set[str]]] = None,
        commit_hash: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FeatureSubGraph:
        """Score, hop-annotate and assemble the subgraph for *payload*."""
        payload = validate_payload(payload)
        files = link_imported_by(files)

        known = {f.path for f in files}
        missing = [s for s in payload.seeds if s not in known]
        if missing:
            logger.warning("Seed(s) not among analyzed files: %s", ", ".join(missing))

        import_graph = build_import_graph(files)
        dependency_graph = build_dependency_graph(files)
        route_graph = build_route_graph(files)
        api_index = build_api_index(files)

        context = ScoringContext(
            seeds=payload.seeds,
            keywords=payload.keywords,
            import_graph=import_graph,
            call_graph=call_graph,
            route_graph=route_graph or None,
            api_calls=api_index or None,
        )
        scores = self.scorer.score_files(files, context)

        hops = calculate_hops(dependency_graph, payload.seeds, payload.max_hops, cancel_token)
        apply_hops(scores, hops)

        return assemble_subgraph(
            payload,
            scores,
            import_graph,
            commit_hash=commit_hash,
            tool_version=self.tool_version,
        )

    def render_feature(
        self,
        payload: FeaturePayload,
        files: Sequence[AnalyzedFile],
        renderer: Optional[Renderer] = None,
        **kwargs,
    ) -> Optional[FeatureSubGraph]:
        """Build the subgraph, hand it to *renderer*, return it if requested.

        Raises:
            RenderError: the renderer failed; the built subgraph is attached.
        """
        subgraph = self.run(payload, files, **kwargs)
        if renderer is not None:
            try:
                renderer(subgraph)
            except Exception as exc:
                logger.error("Render failed for feature '%s': %s", subgraph.feature_id, exc)
                raise RenderError(str(exc), subgraph=subgraph) from exc
        return subgraph if payload.return_graph else None


def analyze_feature(
    root: Path,
    payload: FeaturePayload,
    engine: Optional[FeatureEngine] = None,
    analyzer: Optional[SourceAnalyzer] = None,
    with_commit: bool = True,
    cancel_token: Optional[CancellationToken] = None,
) -> Tuple[FeatureSubGraph, AnalysisReport]:
    """Collect, analyze and run the engine for a project on disk.

    Returns ``(subgraph, report)`` where *report* lists skipped files.
    """
    payload = validate_payload(payload)
    engine = engine or FeatureEngine()
    report: AnalysisReport = analyze_project(
        root,
        analyzer=analyzer,
        include_globs=payload.include_globs,
        exclude_globs=payload.exclude_globs,
    )
    commit = git_commit_hash(root) if with_commit else None
    subgraph = engine.run(payload, report.files, commit_hash=commit, cancel_token=cancel_token)
    return subgraph, report


def seeds_relative_to(root: Path, seeds: List[str]) -> List[str]:
    """Express seed paths as project-relative POSIX paths."""
    resolved_root = root.resolve()
    result = []
    for seed in seeds:
        path = Path(seed)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(resolved_root)
            except ValueError:
                raise PayloadValidationError(f"Seed {seed} is outside {root}") from None
        result.append(path.as_posix())
    return result
