"""FeatureGraph CLI: feature-scoped relevance graphs over a codebase."""

__version__ = "1.0.0"
