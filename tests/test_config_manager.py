"""Tests for TOML-backed weights and defaults."""

from pathlib import Path

import pytest

from featuregraph_cli import config
from featuregraph_cli.config_manager import (
    load_full_config,
    load_settings,
    reset_config,
    save_default,
    save_weight,
)
from featuregraph_cli.errors import ConfigError
from featuregraph_cli.models import ScoringWeights


def test_defaults_without_config_files(temp_dir: Path):
    settings = load_settings(temp_dir)

    assert settings.weights == ScoringWeights()
    assert settings.max_hops == config.DEFAULT_MAX_HOPS
    assert settings.relevance_threshold == config.DEFAULT_RELEVANCE_THRESHOLD
    assert settings.score_scale == "percent"


def test_saved_weight_is_loaded():
    save_weight("imported-by", 5)
    save_weight("import", 2.5)

    weights = load_settings().weights
    assert weights.imported_by == 5
    assert weights.import_ == 2.5
    assert load_full_config()["weights"] == {"imported-by": 5, "import": 2.5}


def test_unknown_weight_rejected():
    with pytest.raises(ConfigError):
        save_weight("vibes", 1)


def test_project_config_overrides_user(temp_dir: Path):
    """The project's .featuregraph.toml wins over the user config."""
    save_weight("seed", 20)
    save_default("max_hops", 5)
    (temp_dir / config.PROJECT_CONFIG_NAME).write_text(
        "[weights]\nseed = 12\n\n[defaults]\nscore_scale = \"raw\"\n",
        encoding="utf-8",
    )

    settings = load_settings(temp_dir)
    assert settings.weights.seed == 12
    assert settings.max_hops == 5
    assert settings.score_scale == "raw"


@pytest.mark.parametrize("content", [
    "[weights]\nmystery = 3\n",
    "[defaults]\ncolour = \"blue\"\n",
    "[defaults]\nscore_scale = \"log\"\n",
    "[weights]\nseed = \"heavy\"\n",
    "[defaults]\nmax_hops = \"three\"\n",
    "[defaults]\nmax_hops = -1\n",
    "[defaults]\nrelevance_threshold = \"high\"\n",
    "[defaults]\nrelevance_threshold = -5\n",
    "this is not toml = = =\n",
])
def test_bad_project_config_raises(temp_dir: Path, content: str):
    (temp_dir / config.PROJECT_CONFIG_NAME).write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(temp_dir)


def test_non_numeric_default_names_the_section(temp_dir: Path):
    (temp_dir / config.PROJECT_CONFIG_NAME).write_text("[defaults]\nmax_hops = \"three\"\n", encoding="utf-8")
    with pytest.raises(ConfigError, match=r"Invalid \[defaults\] value"):
        load_settings(temp_dir)


def test_reset_config():
    assert reset_config() is False

    save_weight("seed", 99)
    assert reset_config() is True
    assert load_settings().weights.seed == 10
