"""Configuration paths and engine defaults for FeatureGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("FEATUREGRAPH_HOME", str(Path.home() / ".featuregraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = ".featuregraph.toml"

DEFAULT_MAX_HOPS = 3
DEFAULT_RELEVANCE_THRESHOLD = 30
DEFAULT_SCORE_SCALE = "percent"
SCORE_SCALES = ("percent", "raw")

# Raw weighted sum that maps to 100 in the "percent" scale.
PERCENT_SCALE_CEILING = 30

DEFAULT_INCLUDE_GLOBS = ["**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "**/*.py"]
DEFAULT_EXCLUDE_GLOBS = ["**/node_modules/**"]

SKIP_DIRS = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs", "out",
    ".featuregraph",
}


def ensure_base_dirs() -> None:
    """Create the base directory for user configuration if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
