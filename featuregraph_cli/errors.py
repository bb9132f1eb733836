"""
Exception hierarchy for feature analysis.

Everything the engine raises inherits from FeatureGraphError so the CLI
can catch it in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import FeatureSubGraph


class FeatureGraphError(Exception):
    """Base exception for all feature analysis errors."""

    def __init__(self, message: str, stage: str = "engine"):
        self.stage = stage
        super().__init__(f"[{stage}] {message}")


class PayloadValidationError(FeatureGraphError):
    """The feature payload was rejected before any work was done."""

    def __init__(self, message: str):
        super().__init__(message, stage="payload")


class AnalysisError(FeatureGraphError):
    """Errors raised while collecting or analyzing source files."""

    def __init__(self, message: str):
        super().__init__(message, stage="analyzer")


class FileAnalysisError(AnalysisError):
    """A single file could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class AnalysisCancelled(FeatureGraphError):
    """The analysis was cancelled through its cancellation token."""

    def __init__(self, message: str = "Analysis cancelled"):
        super().__init__(message, stage="hops")


class RenderError(FeatureGraphError):
    """A render target failed after the subgraph was already built.

    The valid subgraph is kept on ``subgraph`` so the caller can still use
    it; this is not an analysis failure.
    """

    def __init__(self, message: str, subgraph: Optional["FeatureSubGraph"] = None):
        self.subgraph = subgraph
        super().__init__(message, stage="render")


class ConfigError(FeatureGraphError):
    """A configuration file holds an unknown key or an invalid value."""

    def __init__(self, message: str):
        super().__init__(message, stage="config")
