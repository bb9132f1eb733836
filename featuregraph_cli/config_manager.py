"""Configuration manager for FeatureGraph using TOML files.

Two files are consulted, later ones winning:

1. ``~/.featuregraph/config.toml`` (user defaults, written by ``fg config``)
2. ``<project root>/.featuregraph.toml`` (per-project overrides)

Both may contain a ``[weights]`` table keyed by reason type and a
``[defaults]`` table with ``max_hops``, ``relevance_threshold`` and
``score_scale``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config
from .errors import ConfigError
from .models import REASON_TYPES, ScoringWeights

logger = logging.getLogger(__name__)

DEFAULT_KEYS = ("max_hops", "relevance_threshold", "score_scale")


@dataclass
class EngineSettings:
    """Resolved scoring weights and feature defaults."""
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    max_hops: int = config.DEFAULT_MAX_HOPS
    relevance_threshold: float = config.DEFAULT_RELEVANCE_THRESHOLD
    score_scale: str = config.DEFAULT_SCORE_SCALE


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc


def load_full_config() -> Dict[str, Any]:
    """Load the entire user TOML config (all sections)."""
    return _read_toml(config.CONFIG_FILE)


def load_project_config(project_root: Optional[Path]) -> Dict[str, Any]:
    if project_root is None:
        return {}
    return _read_toml(project_root / config.PROJECT_CONFIG_NAME)


def _save_full_config(data: Dict[str, Any]) -> None:
    config.ensure_base_dirs()
    with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
        toml.dump(data, f)


def load_settings(project_root: Optional[Path] = None) -> EngineSettings:
    """Merge user and project configuration into ``EngineSettings``.

    Raises:
        ConfigError: on unreadable files, unknown weights or bad defaults.
    """
    weights: Dict[str, Any] = {}
    defaults: Dict[str, Any] = {}
    for source in (load_full_config(), load_project_config(project_root)):
        weights.update(source.get("weights", {}))
        defaults.update(source.get("defaults", {}))

    try:
        resolved = ScoringWeights.from_dict(weights)
    except KeyError as exc:
        raise ConfigError(f"{exc.args[0]}. Known weights: {', '.join(REASON_TYPES)}") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid weight value: {exc}") from exc

    unknown = set(defaults) - set(DEFAULT_KEYS)
    if unknown:
        raise ConfigError(f"Unknown [defaults] keys: {', '.join(sorted(unknown))}")

    settings = EngineSettings(weights=resolved)
    try:
        if "max_hops" in defaults:
            settings.max_hops = int(defaults["max_hops"])
        if "relevance_threshold" in defaults:
            settings.relevance_threshold = float(defaults["relevance_threshold"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid [defaults] value: {exc}") from exc
    if settings.max_hops < 0:
        raise ConfigError(f"Invalid [defaults] value: max_hops must be >= 0, got {settings.max_hops}")
    if settings.relevance_threshold < 0:
        raise ConfigError(
            f"Invalid [defaults] value: relevance_threshold must be >= 0, got {settings.relevance_threshold:g}"
        )
    if "score_scale" in defaults:
        scale = str(defaults["score_scale"])
        if scale not in config.SCORE_SCALES:
            raise ConfigError(f"score_scale must be one of {config.SCORE_SCALES}, got '{scale}'")
        settings.score_scale = scale
    return settings


def save_weight(reason_type: str, value: float) -> None:
    """Persist a single weight override to the user config.

    Preserves other sections in the file.
    """
    if reason_type not in REASON_TYPES:
        raise ConfigError(f"Unknown scoring weight: {reason_type}")
    data = load_full_config()
    data.setdefault("weights", {})[reason_type] = value
    _save_full_config(data)


def save_default(key: str, value: Any) -> None:
    if key not in DEFAULT_KEYS:
        raise ConfigError(f"Unknown default '{key}'. Choose one of: {', '.join(DEFAULT_KEYS)}")
    data = load_full_config()
    data.setdefault("defaults", {})[key] = value
    _save_full_config(data)


def reset_config() -> bool:
    """Remove ``[weights]`` and ``[defaults]`` from the user config."""
    data = load_full_config()
    if not data:
        return False
    data.pop("weights", None)
    data.pop("defaults", None)
    _save_full_config(data)
    return True
