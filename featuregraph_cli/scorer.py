"""Relevance scoring: turn independent pieces of evidence into a file score."""

from __future__ import annotations

import logging
import math
import posixpath
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Set

from .config import DEFAULT_SCORE_SCALE, PERCENT_SCALE_CEILING, SCORE_SCALES
from .models import AnalyzedFile, FileScore, RelevanceReason, ScoringWeights

logger = logging.getLogger(__name__)

Graph = Mapping[str, Set[str]]


@dataclass
class ScoringContext:
    """Everything the scorer needs besides the file itself.

    ``call_graph``, ``route_graph`` and ``api_calls`` are optional
    collaborators; when absent their evidence types never appear.
    """
    seeds: Sequence[str]
    keywords: Sequence[str]
    import_graph: Graph
    call_graph: Optional[Graph] = None
    route_graph: Optional[Graph] = None
    api_calls: Optional[Mapping[str, Set[str]]] = None
    _seed_set: Set[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._seed_set = set(self.seeds)
        self.keywords = [k.strip() for k in self.keywords if k and k.strip()]

    def is_seed(self, path: str) -> bool:
        return path in self._seed_set


class RelevanceScorer:
    """Scores analyzed files against a feature's seeds and keywords."""

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        score_scale: str = DEFAULT_SCORE_SCALE,
    ):
        if score_scale not in SCORE_SCALES:
            raise ValueError(f"score_scale must be one of {SCORE_SCALES}, got {score_scale!r}")
        self.weights = weights or ScoringWeights()
        self.score_scale = score_scale

    def score_file(self, file: AnalyzedFile, context: ScoringContext) -> FileScore:
        reasons: List[RelevanceReason] = []

        if context.is_seed(file.path):
            reasons.append(RelevanceReason(
                type="seed",
                detail="This is a seed file",
                weight=self.weights.seed,
                source=file.path,
            ))

        self._check_adjacency(
            file.path, context.seeds, context.import_graph, reasons,
            inbound=("imported-by", "Imported by seed"),
            outbound=("import", "Imports seed"),
        )
        if context.call_graph is not None:
            self._check_adjacency(
                file.path, context.seeds, context.call_graph, reasons,
                inbound=("called-by", "Called by seed"),
                outbound=("calls", "Calls seed"),
            )
        if context.route_graph is not None:
            self._check_routes(file, context, reasons)
        if context.api_calls is not None:
            self._check_network_api(file, context, reasons)
        self._check_keywords(file, context.keywords, reasons)

        raw = sum(r.weight for r in reasons)
        return FileScore(
            path=file.path,
            score=self.scale(raw),
            raw_score=raw,
            reasons=reasons,
            kind=infer_file_kind(file),
        )

    def score_files(self, files: Iterable[AnalyzedFile], context: ScoringContext) -> List[FileScore]:
        scores = [self.score_file(f, context) for f in files]
        logger.debug(
            "Scored %d files, %d with evidence",
            len(scores), sum(1 for s in scores if s.reasons),
        )
        return scores

    def scale(self, raw: float) -> float:
        """Map a raw score onto the configured scale.

        Percent scores are capped at 100 and rounded half up, so 12.5 becomes 13.
        """
        if self.score_scale == "raw":
            return raw
        return math.floor(min(100.0, raw / PERCENT_SCALE_CEILING * 100) + 0.5)

    # ------------------------------------------------------------------
    # Structural evidence
    # ------------------------------------------------------------------

    def _check_adjacency(
        self,
        path: str,
        seeds: Sequence[str],
        graph: Graph,
        reasons: List[RelevanceReason],
        inbound: tuple,
        outbound: tuple,
    ) -> None:
        in_type, in_label = inbound
        out_type, out_label = outbound

        for seed in seeds:
            if seed != path and path in graph.get(seed, ()):
                reasons.append(RelevanceReason(
                    type=in_type,
                    detail=f"{in_label}: {posixpath.basename(seed)}",
                    weight=self.weights.weight_for(in_type),
                    source=seed,
                    target=path,
                ))

        targets = graph.get(path, ())
        for seed in seeds:
            if seed != path and seed in targets:
                reasons.append(RelevanceReason(
                    type=out_type,
                    detail=f"{out_label}: {posixpath.basename(seed)}",
                    weight=self.weights.weight_for(out_type),
                    source=path,
                    target=seed,
                ))

    def _check_routes(self, file: AnalyzedFile, context: ScoringContext, reasons: List[RelevanceReason]) -> None:
        for route in file.routes:
            related = context.route_graph.get(route, ())
            for seed in context.seeds:
                if seed != file.path and seed in related:
                    reasons.append(RelevanceReason(
                        type="route",
                        detail=f"Same route chain: {route}",
                        weight=self.weights.route,
                        source=file.path,
                        target=seed,
                    ))

    def _check_network_api(self, file: AnalyzedFile, context: ScoringContext, reasons: List[RelevanceReason]) -> None:
        mine = set(file.api_calls)
        if not mine:
            return
        for seed in context.seeds:
            if seed == file.path:
                continue
            for endpoint in sorted(mine & context.api_calls.get(seed, set())):
                reasons.append(RelevanceReason(
                    type="network-api",
                    detail=f"Shares API endpoint with {posixpath.basename(seed)}: {endpoint}",
                    weight=self.weights.network_api,
                    source=file.path,
                    target=seed,
                ))

    # ------------------------------------------------------------------
    # Textual evidence
    # ------------------------------------------------------------------

    def _check_keywords(self, file: AnalyzedFile, keywords: Sequence[str], reasons: List[RelevanceReason]) -> None:
        if not keywords:
            return

        file_name = posixpath.basename(file.path).lower()
        seen: Set[str] = set()
        for keyword in keywords:
            lowered = keyword.lower()
            if lowered in seen:
                continue
            seen.add(lowered)
            if lowered in file_name:
                reasons.append(RelevanceReason(
                    type="keyword-name",
                    detail=f'Filename contains: "{keyword}"',
                    weight=self.weights.keyword_name,
                    matched_keyword=keyword,
                    match_count=1,
                ))

        symbols = list(dict.fromkeys([*file.exports, *file.symbols]))
        seen.clear()
        for keyword in keywords:
            lowered = keyword.lower()
            if lowered in seen:
                continue
            seen.add(lowered)
            matches = [s for s in symbols if lowered in s.lower()]
            if matches:
                reasons.append(RelevanceReason(
                    type="keyword-symbol",
                    detail=f'{len(matches)} symbol(s) match "{keyword}": {", ".join(matches[:5])}',
                    weight=self.weights.keyword_symbol * len(matches),
                    matched_keyword=keyword,
                    match_count=len(matches),
                ))

        if not file.content:
            return
        content = file.content.lower()
        seen.clear()
        for keyword in keywords:
            lowered = keyword.lower()
            if lowered in seen:
                continue
            seen.add(lowered)
            count = content.count(lowered)
            if count:
                reasons.append(RelevanceReason(
                    type="keyword-text",
                    detail=f'{count} occurrence(s) of "{keyword}"',
                    weight=self.weights.keyword_text * count,
                    matched_keyword=keyword,
                    match_count=count,
                ))


def rank_scores(scores: Iterable[FileScore]) -> List[FileScore]:
    """Highest score first; equal scores fall back to ascending path."""
    return sorted(scores, key=lambda s: (-s.score, s.path))


def infer_file_kind(file: AnalyzedFile) -> str:
    """Best-effort role of a file from its name."""
    base = posixpath.basename(file.path)
    name = base.lower()
    stem, ext = posixpath.splitext(name)

    if "config" in name:
        return "config"
    if "route" in name or "router" in name or file.routes:
        return "route"
    if ext in (".tsx", ".jsx") and base[:1].isupper():
        return "component"
    if "service" in name or "api" in name or "client" in name:
        return "service"
    if "util" in name or "helper" in name or "lib" in name:
        return "utility"
    if "type" in name or name.endswith(".d.ts") or "interface" in name:
        return "types"
    if stem.startswith("use") and ext in (".ts", ".tsx"):
        return "hook"
    if "test" in name or "spec" in name:
        return "test"
    return "file"
