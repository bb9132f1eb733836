"""Core data models shared by the analyzer, scorer, and subgraph assembler."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Literal, Optional

from .config import DEFAULT_MAX_HOPS, DEFAULT_RELEVANCE_THRESHOLD
from .errors import PayloadValidationError

ReasonType = Literal[
    "seed",
    "import",
    "imported-by",
    "called-by",
    "calls",
    "route",
    "keyword-name",
    "keyword-text",
    "keyword-symbol",
    "bridge",
    "network-api",
]

REASON_TYPES = (
    "seed",
    "import",
    "imported-by",
    "called-by",
    "calls",
    "route",
    "keyword-name",
    "keyword-text",
    "keyword-symbol",
    "bridge",
    "network-api",
)

EdgeKind = Literal["import", "call", "route", "api"]


@dataclass
class AnalyzedFile:
    """One source file as seen by the engine."""
    path: str
    content: str = ""
    imports: List[str] = field(default_factory=list)
    imported_by: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    symbols: List[str] = field(default_factory=list)
    routes: List[str] = field(default_factory=list)
    api_calls: List[str] = field(default_factory=list)


@dataclass
class RelevanceReason:
    """A single piece of scoring evidence."""
    type: ReasonType
    detail: str
    weight: float
    source: Optional[str] = None
    target: Optional[str] = None
    matched_keyword: Optional[str] = None
    match_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "detail": self.detail,
            "weight": self.weight,
        }
        if self.source is not None:
            payload["source"] = self.source
        if self.target is not None:
            payload["target"] = self.target
        if self.matched_keyword is not None:
            payload["matchedKeyword"] = self.matched_keyword
        if self.match_count is not None:
            payload["matchCount"] = self.match_count
        return payload


@dataclass
class FileScore:
    path: str
    score: float = 0
    raw_score: float = 0
    reasons: List[RelevanceReason] = field(default_factory=list)
    kind: str = "file"
    hops: Optional[int] = None
    is_bridge: bool = False

    @property
    def is_seed(self) -> bool:
        return any(r.type == "seed" for r in self.reasons)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "path": self.path,
            "score": self.score,
            "rawScore": self.raw_score,
            "reasons": [r.to_dict() for r in self.reasons],
            "kind": self.kind,
            "isBridge": self.is_bridge,
        }
        if self.hops is not None:
            payload["hops"] = self.hops
        return payload


@dataclass
class FeaturePayload:
    """Input request describing the feature to analyze.

    ``include_globs`` and ``exclude_globs`` drive file collection upstream;
    the engine itself never reads them.
    """
    feature_id: str
    seeds: List[str]
    keywords: List[str] = field(default_factory=list)
    feature_name: Optional[str] = None
    include_globs: Optional[List[str]] = None
    exclude_globs: Optional[List[str]] = None
    max_hops: int = DEFAULT_MAX_HOPS
    relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD
    return_graph: bool = False

    @property
    def display_name(self) -> str:
        return self.feature_name or self.feature_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeaturePayload":
        """Build a payload from the camelCase shape agents send."""
        for key in ("seeds", "keywords"):
            value = data.get(key)
            if value is not None and not isinstance(value, (list, tuple)):
                raise PayloadValidationError(f"{key} must be a list of strings, got {type(value).__name__}")
        return cls(
            feature_id=data.get("featureId", ""),
            seeds=list(data.get("seeds") or []),
            keywords=list(data.get("keywords") or []),
            feature_name=data.get("featureName"),
            include_globs=data.get("includeGlobs"),
            exclude_globs=data.get("excludeGlobs"),
            max_hops=data.get("maxHops", DEFAULT_MAX_HOPS),
            relevance_threshold=data.get("relevanceThreshold", DEFAULT_RELEVANCE_THRESHOLD),
            return_graph=bool(data.get("returnGraph", False)),
        )


@dataclass
class FeatureSubGraph:
    """Filtered, scored, hop-annotated files plus the edges among them."""
    feature_id: str
    feature_name: str
    seeds: List[str]
    keywords: List[str]
    files: List[FileScore]
    edges: Dict[str, List[str]]
    edge_types: Dict[str, EdgeKind]
    timestamp: str
    tool_version: str
    commit_hash: Optional[str] = None

    @property
    def num_edges(self) -> int:
        return sum(len(targets) for targets in self.edges.values())

    @property
    def bridges(self) -> List[FileScore]:
        return [f for f in self.files if f.is_bridge]

    def file(self, path: str) -> Optional[FileScore]:
        for item in self.files:
            if item.path == path:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "featureId": self.feature_id,
            "featureName": self.feature_name,
            "seeds": list(self.seeds),
            "keywords": list(self.keywords),
            "files": [f.to_dict() for f in self.files],
            "edges": {src: list(dst) for src, dst in self.edges.items()},
            "edgeTypes": dict(self.edge_types),
            "timestamp": self.timestamp,
            "toolVersion": self.tool_version,
        }
        if self.commit_hash:
            payload["commitHash"] = self.commit_hash
        return payload


@dataclass
class ScoringWeights:
    seed: float = 10
    import_: float = 3
    imported_by: float = 3
    called_by: float = 4
    calls: float = 4
    route: float = 4
    keyword_name: float = 2
    keyword_text: float = 1
    keyword_symbol: float = 1
    bridge: float = 2
    network_api: float = 3

    def weight_for(self, reason_type: str) -> float:
        return getattr(self, _weight_attr(reason_type))

    def to_dict(self) -> Dict[str, float]:
        return {_reason_name(k): v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringWeights":
        """Build weights from a mapping keyed by reason type or attribute name.

        Unknown keys raise ``KeyError`` so typos in config files surface.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, float] = {}
        for key, value in data.items():
            attr = _weight_attr(key)
            if attr not in known:
                raise KeyError(f"Unknown scoring weight: {key}")
            values[attr] = float(value)
        return cls(**values)


def _weight_attr(reason_type: str) -> str:
    name = reason_type.replace("-", "_")
    return "import_" if name == "import" else name


def _reason_name(attr: str) -> str:
    return "import" if attr == "import_" else attr.replace("_", "-")
