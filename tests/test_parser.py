"""Tests for source analyzers, import resolution and file collection."""

import logging
import sys
from pathlib import Path

import pytest

from featuregraph_cli.errors import AnalysisError
from featuregraph_cli.parser import (
    PythonAstAnalyzer,
    RegexSourceAnalyzer,
    TreeSitterAnalyzer,
    analyze_project,
    analyze_sources,
    collect_files,
    get_analyzer,
    resolve_import,
)

JS_IMPORTS = '''import { a } from "./a";
import type { T } from '../types';
import "./side-effect";
const lazy = import("./lazy");
const x = require("lodash");
export { foo, bar as baz } from "./reexport";
'''

JS_EXPORTS = '''export function login() {}
export const SESSION_KEY = "k";
export default class AuthService {}
export interface User {}
const helper = 1;
export { helper as formatHelper };
'''

PY_APP = '''import os
import pkg.models as m
from . import utils
from .helpers import (
    slugify,
    titleize,
)
from pkg.core import Engine
'''

PY_PROJECT = {
    "pkg/__init__.py": "",
    "pkg/app.py": PY_APP,
    "pkg/utils.py": "",
    "pkg/helpers.py": "def slugify(text):\n    return text\n",
    "pkg/models.py": "",
    "pkg/core.py": "class Engine:\n    pass\n",
}


def test_js_imports_in_source_order():
    """All import forms are found, in the order they appear."""
    imports = RegexSourceAnalyzer().extract_imports("src/x.ts", JS_IMPORTS)
    assert imports == ["./a", "../types", "./side-effect", "./lazy", "lodash", "./reexport"]


def test_js_exports_and_symbols():
    """Exports include declarations and export lists; symbols add locals."""
    analyzer = RegexSourceAnalyzer()
    exports = analyzer.extract_exports("src/auth.ts", JS_EXPORTS)
    symbols = analyzer.extract_symbols("src/auth.ts", JS_EXPORTS)

    assert exports == ["login", "SESSION_KEY", "AuthService", "User", "formatHelper"]
    assert "helper" in symbols
    assert "helper" not in exports


def test_routes_and_api_calls():
    """Route declarations and normalized network endpoints are extracted."""
    source = (
        'router.get("/login", handler);\n'
        'fetch("https://api.example.com/api/session?x=1");\n'
        "axios.post(`/api/users/${id}`);\n"
    )
    record = RegexSourceAnalyzer().analyze("src/server.ts", source)

    assert record.routes == ["/login"]
    assert record.api_calls == ["/api/session", "/api/users"]


@pytest.mark.parametrize("analyzer", [RegexSourceAnalyzer(), PythonAstAnalyzer()])
def test_python_imports_resolve_to_project_files(analyzer):
    """Relative, absolute and parenthesized imports resolve; stdlib is dropped."""
    files = {f.path: f for f in analyze_sources(PY_PROJECT, analyzer)}

    assert set(files["pkg/app.py"].imports) == {
        "pkg/models.py",
        "pkg/__init__.py",
        "pkg/utils.py",
        "pkg/helpers.py",
        "pkg/core.py",
    }
    assert files["pkg/helpers.py"].imported_by == ["pkg/app.py"]


def test_ast_analyzer_honors_dunder_all():
    """``__all__`` limits exports but not symbols."""
    source = "__all__ = ['public']\n\ndef public():\n    pass\n\ndef other():\n    pass\n"
    record = PythonAstAnalyzer().analyze("mod.py", source)

    assert record.exports == ["public"]
    assert "other" in record.symbols


def test_syntax_error_is_skipped_with_warning():
    """A file the AST analyzer cannot parse is reported, not fatal."""
    warnings = []
    files = analyze_sources(
        {"bad.py": "def broken(:\n", "good.py": "x = 1\n"},
        PythonAstAnalyzer(),
        warnings,
    )

    assert [f.path for f in files] == ["good.py"]
    assert len(warnings) == 1
    assert "bad.py" in warnings[0]


def test_deeply_nested_python_is_skipped():
    """Parser stack exhaustion on one file does not stop the others."""
    warnings = []
    files = analyze_sources(
        {"deep.py": "x = " + "-" * 200000 + "1\n", "good.py": "y = 2\n"},
        PythonAstAnalyzer(),
        warnings,
    )

    assert [f.path for f in files] == ["good.py"]
    assert len(warnings) == 1
    assert "deep.py" in warnings[0]


class _CorruptingAnalyzer(RegexSourceAnalyzer):
    def analyze(self, path, source):
        if path == "bad.ts":
            raise UnicodeError("corrupt")
        return super().analyze(path, source)


def test_analyzer_exceptions_are_skipped_with_warning():
    warnings = []
    files = analyze_sources(
        {"bad.ts": "export const a = 1;\n", "good.ts": 'import { a } from "./bad";\n'},
        _CorruptingAnalyzer(),
        warnings,
    )

    assert [f.path for f in files] == ["good.ts"]
    assert files[0].imports == []
    assert len(warnings) == 1
    assert "bad.ts" in warnings[0]
    assert "UnicodeError: corrupt" in warnings[0]


def test_regex_analyzer_tolerates_syntax_errors():
    files = analyze_sources({"bad.py": "def broken(:\n"}, RegexSourceAnalyzer())
    assert [f.path for f in files] == ["bad.py"]


def test_resolve_js_specifiers():
    """Relative, alias, index and ESM ``.js`` specifiers map to known files."""
    known = {
        "src/auth/login.ts",
        "src/auth/session.ts",
        "src/utils/format.ts",
        "src/components/index.tsx",
    }
    importer = "src/auth/login.ts"

    assert resolve_import("./session", importer, known) == "src/auth/session.ts"
    assert resolve_import("./session.js", importer, known) == "src/auth/session.ts"
    assert resolve_import("@/utils/format", importer, known) == "src/utils/format.ts"
    assert resolve_import("../components", importer, known) == "src/components/index.tsx"
    assert resolve_import("react", importer, known) is None


def test_collect_files_skips_vendor_and_build_dirs(temp_dir: Path):
    """node_modules, dist and non-source files are never collected."""
    (temp_dir / "src").mkdir()
    (temp_dir / "src" / "a.ts").write_text("export const a = 1;\n")
    (temp_dir / "src" / "styles.css").write_text("body {}\n")
    (temp_dir / "node_modules" / "lib").mkdir(parents=True)
    (temp_dir / "node_modules" / "lib" / "index.js").write_text("module.exports = {};\n")
    (temp_dir / "dist").mkdir()
    (temp_dir / "dist" / "bundle.js").write_text("\n")
    (temp_dir / "main.py").write_text("print('hi')\n")

    assert collect_files(temp_dir) == ["main.py", "src/a.ts"]
    assert collect_files(temp_dir, include_globs=["src/*.ts"]) == ["src/a.ts"]
    assert collect_files(temp_dir, exclude_globs=["**/*.py"]) == ["src/a.ts"]


def test_collect_files_rejects_missing_root(temp_dir: Path):
    with pytest.raises(AnalysisError):
        collect_files(temp_dir / "missing")


def test_get_analyzer():
    assert isinstance(get_analyzer("python"), PythonAstAnalyzer)
    assert isinstance(get_analyzer("tree-sitter"), TreeSitterAnalyzer)
    with pytest.raises(AnalysisError):
        get_analyzer("clang")


def test_analyze_project_reports_unreadable_files(temp_dir: Path):
    """Undecodable files become warnings; the rest is analyzed."""
    (temp_dir / "ok.ts").write_text('import { b } from "./b";\n')
    (temp_dir / "b.ts").write_text("export const b = 1;\n")
    (temp_dir / "binary.ts").write_bytes(b"\xff\xfe\x00\x81")

    report = analyze_project(temp_dir)

    assert report.paths == ["b.ts", "ok.ts"]
    assert len(report.warnings) == 1
    assert "binary.ts" in report.warnings[0]


def test_analyze_sample_project(sample_project_path: Path):
    """The sample project's import edges are fully resolved."""
    report = analyze_project(sample_project_path)
    files = {f.path: f for f in report.files}

    assert set(files) == {
        "src/api/client.ts",
        "src/auth/login.ts",
        "src/auth/session.ts",
        "src/routes.ts",
        "src/unrelated.ts",
        "src/utils/format.ts",
    }
    assert files["src/auth/login.ts"].imports == ["src/auth/session.ts", "src/utils/format.ts"]
    assert files["src/auth/login.ts"].imported_by == ["src/routes.ts"]
    assert files["src/utils/format.ts"].imported_by == ["src/auth/login.ts", "src/auth/session.ts"]
    assert files["src/routes.ts"].routes == ["/login"]
    assert files["src/api/client.ts"].api_calls == ["/api/profile"]


class TestTreeSitterAnalyzer:
    """Tree-sitter extraction should agree with the regex rules on common forms."""

    @pytest.fixture
    def analyzer(self):
        pytest.importorskip("tree_sitter")
        pytest.importorskip("tree_sitter_typescript")
        pytest.importorskip("tree_sitter_javascript")
        return TreeSitterAnalyzer()

    def test_imports_in_source_order(self, analyzer):
        imports = analyzer.extract_imports("src/x.ts", JS_IMPORTS)
        assert imports == ["./a", "../types", "./side-effect", "./lazy", "lodash", "./reexport"]

    def test_exports_and_symbols(self, analyzer):
        record = analyzer.analyze("src/auth.ts", JS_EXPORTS)

        assert set(record.exports) == {"login", "SESSION_KEY", "AuthService", "User", "formatHelper"}
        assert "helper" in record.symbols
        assert "helper" not in record.exports

    def test_javascript_grammar(self, analyzer):
        record = analyzer.analyze("src/util.js", 'const fs = require("fs");\nexport function read() {}\n')

        assert record.imports == ["fs"]
        assert record.exports == ["read"]

    def test_python_goes_through_ast(self, analyzer):
        record = analyzer.analyze("mod.py", "__all__ = ['public']\n\ndef public():\n    pass\n")
        assert record.exports == ["public"]

    def test_matches_regex_on_sample_project(self, analyzer, sample_project_path: Path):
        regex = {f.path: f.imports for f in analyze_project(sample_project_path).files}
        tree = analyze_project(sample_project_path, analyzer)

        assert tree.warnings == []
        assert {f.path: f.imports for f in tree.files} == regex


def test_missing_grammar_is_logged_and_files_skipped(monkeypatch, caplog):
    """Without grammars, JS/TS files become warnings and Python still works."""
    monkeypatch.setitem(sys.modules, "tree_sitter_typescript", None)
    monkeypatch.setitem(sys.modules, "tree_sitter_javascript", None)

    with caplog.at_level(logging.WARNING, logger="featuregraph_cli.parser"):
        analyzer = TreeSitterAnalyzer()
    assert "not installed" in caplog.text

    warnings = []
    files = analyze_sources({"a.ts": "export const a = 1;\n", "b.py": "x = 1\n"}, analyzer, warnings)

    assert [f.path for f in files] == ["b.py"]
    assert len(warnings) == 1
    assert "a.ts" in warnings[0]
