"""Pytest configuration and fixtures for FeatureGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Optional

import pytest

from featuregraph_cli.models import AnalyzedFile


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the user config at a throwaway directory for every test.

    Keeps ``fg config set-weight`` and friends away from the real
    ``~/.featuregraph/config.toml``.
    """
    base_dir = tmp_path / ".featuregraph-home"
    monkeypatch.setattr("featuregraph_cli.config.BASE_DIR", base_dir)
    monkeypatch.setattr("featuregraph_cli.config.CONFIG_FILE", base_dir / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample TypeScript project.

    ``src/auth/login.ts`` imports ``session.ts`` and ``utils/format.ts``;
    ``routes.ts`` imports ``login.ts``; ``api/client.ts`` and
    ``unrelated.ts`` are disconnected.
    """
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def make_file() -> Callable[..., AnalyzedFile]:
    """Factory for already-resolved ``AnalyzedFile`` records."""

    def _make(
        path: str,
        imports: Optional[List[str]] = None,
        content: str = "",
        exports: Optional[List[str]] = None,
        symbols: Optional[List[str]] = None,
        routes: Optional[List[str]] = None,
        api_calls: Optional[List[str]] = None,
    ) -> AnalyzedFile:
        return AnalyzedFile(
            path=path,
            content=content,
            imports=list(imports or []),
            exports=list(exports or []),
            symbols=list(symbols or []),
            routes=list(routes or []),
            api_calls=list(api_calls or []),
        )

    return _make


@pytest.fixture
def login_files(make_file) -> List[AnalyzedFile]:
    """login.ts imports session.ts; unrelated.ts stands alone."""
    return [
        make_file("src/auth/login.ts", imports=["src/auth/session.ts"]),
        make_file("src/auth/session.ts"),
        make_file("src/unrelated.ts"),
    ]


@pytest.fixture
def shared_util_files(make_file) -> List[AnalyzedFile]:
    """a.ts and b.ts both import util.ts."""
    return [
        make_file("src/a.ts", imports=["src/util.ts"]),
        make_file("src/b.ts", imports=["src/util.ts"]),
        make_file("src/util.ts"),
    ]


@pytest.fixture
def chain_files(make_file) -> List[AnalyzedFile]:
    """a.ts -> b.ts -> c.ts -> d.ts."""
    return [
        make_file("src/a.ts", imports=["src/b.ts"]),
        make_file("src/b.ts", imports=["src/c.ts"]),
        make_file("src/c.ts", imports=["src/d.ts"]),
        make_file("src/d.ts"),
    ]
