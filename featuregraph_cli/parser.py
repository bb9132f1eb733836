"""Source analysis: collect files and extract imports, exports, routes and API calls.

Interchangeable analyzers share the ``SourceAnalyzer`` interface:

- ``RegexSourceAnalyzer`` pattern-matches JS/TS and Python sources.
- ``PythonAstAnalyzer`` uses the built-in ``ast`` module for ``.py`` files
  and the regex rules for everything else.
- ``TreeSitterAnalyzer`` parses JS/TS with Tree-sitter grammars (optional
  ``tree-sitter`` extra) and Python with ``ast``.

Import specifiers are resolved to project-relative POSIX paths; anything
that does not land on a collected file (third-party packages, stdlib) is
dropped.
"""

from __future__ import annotations

import ast
import fnmatch
import importlib
import logging
import posixpath
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

from .config import DEFAULT_EXCLUDE_GLOBS, DEFAULT_INCLUDE_GLOBS, SKIP_DIRS
from .errors import AnalysisError, FileAnalysisError
from .graph import link_imported_by
from .models import AnalyzedFile

logger = logging.getLogger(__name__)

JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
PY_EXTENSIONS = (".py",)

# ---------------------------------------------------------------------------
# JS / TS patterns
# ---------------------------------------------------------------------------
_JS_FROM_RE = re.compile(
    r"""\b(?:import|export)\s+(?:type\s+)?[^;'"`]*?\bfrom\s+['"]([^'"]+)['"]"""
)
_JS_SIDE_EFFECT_RE = re.compile(r"""\bimport\s+['"]([^'"]+)['"]""")
_JS_CALL_IMPORT_RE = re.compile(r"""\b(?:require|import)\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_EXPORT_DECL_RE = re.compile(
    r"\bexport\s+(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\s*\*?|class|interface|type|enum|namespace)\s+([A-Za-z_$][\w$]*)"
)
_JS_EXPORT_LIST_RE = re.compile(r"\bexport\s+(?:type\s+)?\{([^}]*)\}")
_JS_SYMBOL_RE = re.compile(
    r"^\s*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\s*\*?|class|interface|type|enum)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)

# ---------------------------------------------------------------------------
# Python patterns (regex analyzer only)
# ---------------------------------------------------------------------------
_PY_IMPORT_RE = re.compile(
    r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]+as[ \t]+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:[ \t]+as[ \t]+\w+)?)*)", re.MULTILINE
)
_PY_FROM_RE = re.compile(
    r"^[ \t]*from\s+(\.*[\w.]*)\s+import\s+(?:\(([^)]*)\)|([\w \t,*]+))", re.MULTILINE
)
_PY_DEF_RE = re.compile(r"^(?:async\s+def|def|class)\s+([A-Za-z_]\w*)", re.MULTILINE)
_PY_CONST_RE = re.compile(r"^([A-Z][A-Z0-9_]*)\s*[:=]", re.MULTILINE)

# ---------------------------------------------------------------------------
# Routes and network calls (both languages)
# ---------------------------------------------------------------------------
_ROUTE_RES = (
    re.compile(r"""\b(?:app|router|server|api)\.(?:get|post|put|patch|delete|all|use|route)\(\s*['"`](/[^'"`]*)['"`]"""),
    re.compile(r"""\bpath\s*[:=]\s*['"`](/[^'"`]*)['"`]"""),
    re.compile(r"""@\w+\.(?:route|get|post|put|patch|delete|api_route)\(\s*['"](/[^'"]*)['"]"""),
)
_API_CALL_RES = (
    re.compile(r"""\bfetch\(\s*['"`]([^'"`]+)['"`]"""),
    re.compile(r"""\baxios\.(?:get|post|put|patch|delete|request)\(\s*['"`]([^'"`]+)['"`]"""),
    re.compile(r"""\b(?:requests|httpx|client|session|http)\.(?:get|post|put|patch|delete)\(\s*['"`]([^'"`]+)['"`]"""),
)


# ===================================================================
# Analyzer interface
# ===================================================================

class SourceAnalyzer(ABC):
    """Extracts raw import specifiers and exported names from one file."""

    name = "base"

    @abstractmethod
    def extract_imports(self, path: str, source: str) -> List[str]:
        """Return import specifiers in source order, unresolved."""
        ...

    @abstractmethod
    def extract_exports(self, path: str, source: str) -> List[str]:
        """Return exported identifier names."""
        ...

    def extract_symbols(self, path: str, source: str) -> List[str]:
        return self.extract_exports(path, source)

    def extract_routes(self, path: str, source: str) -> List[str]:
        return _unique(m for pattern in _ROUTE_RES for m in pattern.findall(source))

    def extract_api_calls(self, path: str, source: str) -> List[str]:
        endpoints = (
            _normalize_endpoint(m)
            for pattern in _API_CALL_RES
            for m in pattern.findall(source)
        )
        return _unique(e for e in endpoints if e)

    def analyze(self, path: str, source: str) -> AnalyzedFile:
        """Build an ``AnalyzedFile`` whose imports are still raw specifiers."""
        return AnalyzedFile(
            path=path,
            content=source,
            imports=self.extract_imports(path, source),
            exports=self.extract_exports(path, source),
            symbols=self.extract_symbols(path, source),
            routes=self.extract_routes(path, source),
            api_calls=self.extract_api_calls(path, source),
        )


class RegexSourceAnalyzer(SourceAnalyzer):
    """Pattern-based extraction for JS/TS and Python."""

    name = "regex"

    def extract_imports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return self._python_imports(source)
        found = []
        for pattern in (_JS_FROM_RE, _JS_SIDE_EFFECT_RE, _JS_CALL_IMPORT_RE):
            found.extend((m.start(), m.group(1)) for m in pattern.finditer(source))
        return _unique(spec for _, spec in sorted(found))

    def extract_exports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return [n for n in _PY_DEF_RE.findall(source) if not n.startswith("_")]
        names = list(_JS_EXPORT_DECL_RE.findall(source))
        for block in _JS_EXPORT_LIST_RE.findall(source):
            for item in block.split(","):
                item = item.strip()
                if not item:
                    continue
                names.append(item.split(" as ")[-1].strip())
        return _unique(names)

    def extract_symbols(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return _unique([*_PY_DEF_RE.findall(source), *_PY_CONST_RE.findall(source)])
        return _unique([*_JS_SYMBOL_RE.findall(source), *self.extract_exports(path, source)])

    @staticmethod
    def _python_imports(source: str) -> List[str]:
        found = []
        for m in _PY_IMPORT_RE.finditer(source):
            for part in m.group(1).split(","):
                found.append((m.start(), part.split(" as ")[0].strip()))
        for m in _PY_FROM_RE.finditer(source):
            module = m.group(1)
            found.append((m.start(), module))
            names = m.group(2) or m.group(3) or ""
            for name in names.split(","):
                name = name.split(" as ")[0].strip()
                if name and name != "*":
                    found.append((m.start(), _join_module(module, name)))
        return _unique(spec for _, spec in sorted(found, key=lambda item: item[0]))


class PythonAstAnalyzer(RegexSourceAnalyzer):
    """``ast``-based extraction for Python; other languages use the regex rules."""

    name = "python"

    def analyze(self, path: str, source: str) -> AnalyzedFile:
        if not path.endswith(PY_EXTENSIONS):
            return super().analyze(path, source)
        try:
            tree = ast.parse(source)
        except SyntaxError as exc:
            raise FileAnalysisError(path, f"syntax error at line {exc.lineno}: {exc.msg}") from exc
        except (ValueError, RecursionError, MemoryError) as exc:
            raise FileAnalysisError(path, f"cannot parse: {type(exc).__name__}: {exc}") from exc

        return AnalyzedFile(
            path=path,
            content=source,
            imports=self._ast_imports(tree),
            exports=self._ast_exports(tree),
            symbols=self._ast_symbols(tree),
            routes=self.extract_routes(path, source),
            api_calls=self.extract_api_calls(path, source),
        )

    def extract_imports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return self._ast_imports(ast.parse(source))
        return super().extract_imports(path, source)

    def extract_exports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return self._ast_exports(ast.parse(source))
        return super().extract_exports(path, source)

    @staticmethod
    def _ast_imports(tree: ast.Module) -> List[str]:
        found: List[str] = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                found.extend(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom):
                module = "." * node.level + (node.module or "")
                found.append(module)
                for alias in node.names:
                    if alias.name != "*":
                        found.append(_join_module(module, alias.name))
        return _unique(found)

    @staticmethod
    def _ast_exports(tree: ast.Module) -> List[str]:
        for stmt in tree.body:
            if isinstance(stmt, ast.Assign) and any(
                isinstance(t, ast.Name) and t.id == "__all__" for t in stmt.targets
            ):
                try:
                    return [str(v) for v in ast.literal_eval(stmt.value)]
                except ValueError:
                    break
        return [n for n in PythonAstAnalyzer._ast_symbols(tree) if not n.startswith("_")]

    @staticmethod
    def _ast_symbols(tree: ast.Module) -> List[str]:
        names: List[str] = []
        for stmt in tree.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                names.append(stmt.name)
            elif isinstance(stmt, ast.Assign):
                names.extend(t.id for t in stmt.targets if isinstance(t, ast.Name) and t.id != "__all__")
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                names.append(stmt.target.id)
        return _unique(names)


# ===================================================================
# Tree-sitter analyzer (JS / TS)
# ===================================================================

# Extension -> (grammar module, function returning the Language capsule)
_TS_GRAMMARS: Dict[str, Tuple[str, str]] = {
    ".js": ("tree_sitter_javascript", "language"),
    ".jsx": ("tree_sitter_javascript", "language"),
    ".mjs": ("tree_sitter_javascript", "language"),
    ".cjs": ("tree_sitter_javascript", "language"),
    ".ts": ("tree_sitter_typescript", "language_typescript"),
    ".tsx": ("tree_sitter_typescript", "language_tsx"),
}

_TS_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
    "function_expression",
    "function",
    "class_declaration",
    "abstract_class_declaration",
    "class",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
    "lexical_declaration",
    "variable_declaration",
    "internal_module",
}


class TreeSitterAnalyzer(PythonAstAnalyzer):
    """Concrete-syntax-tree extraction for JS/TS built on Tree-sitter.

    Grammars come from the ``tree-sitter-javascript`` and
    ``tree-sitter-typescript`` packages (``pip install featuregraph-cli[tree-sitter]``).
    A grammar that cannot be loaded is logged once; files needing it are
    reported as analysis failures. Python files go through ``ast``.
    """

    name = "tree-sitter"

    def __init__(self) -> None:
        self._parsers: Dict[str, Any] = {}
        self._init_parsers()

    def _init_parsers(self) -> None:
        try:
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError:
            logger.warning(
                "tree-sitter is not installed -- JS/TS files cannot be analyzed. "
                "Install with: pip install 'featuregraph-cli[tree-sitter]'"
            )
            return

        loaded: Dict[Tuple[str, str], Any] = {}
        for ext, grammar in _TS_GRAMMARS.items():
            if grammar not in loaded:
                loaded[grammar] = self._load_grammar(grammar, Language, TSParser)
            if loaded[grammar] is not None:
                self._parsers[ext] = loaded[grammar]

    @staticmethod
    def _load_grammar(grammar: Tuple[str, str], language_cls: Any, parser_cls: Any) -> Any:
        mod_name, func_name = grammar
        try:
            mod = importlib.import_module(mod_name)
            parser = parser_cls(language_cls(getattr(mod, func_name)()))
        except ImportError:
            logger.warning(
                "Grammar package '%s' not installed. Install with: pip install %s",
                mod_name, mod_name.replace("_", "-"),
            )
            return None
        except Exception as exc:
            logger.warning("Could not load tree-sitter grammar %s.%s: %s", mod_name, func_name, exc)
            return None
        logger.debug("Loaded tree-sitter grammar %s.%s", mod_name, func_name)
        return parser

    def analyze(self, path: str, source: str) -> AnalyzedFile:
        if path.endswith(PY_EXTENSIONS):
            return super().analyze(path, source)
        imports, exports, symbols = self._extract(path, source)
        return AnalyzedFile(
            path=path,
            content=source,
            imports=imports,
            exports=exports,
            symbols=symbols,
            routes=self.extract_routes(path, source),
            api_calls=self.extract_api_calls(path, source),
        )

    def extract_imports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return super().extract_imports(path, source)
        return self._extract(path, source)[0]

    def extract_exports(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return super().extract_exports(path, source)
        return self._extract(path, source)[1]

    def extract_symbols(self, path: str, source: str) -> List[str]:
        if path.endswith(PY_EXTENSIONS):
            return super().extract_symbols(path, source)
        return self._extract(path, source)[2]

    def _extract(self, path: str, source: str) -> Tuple[List[str], List[str], List[str]]:
        ext = posixpath.splitext(path)[1]
        parser = self._parsers.get(ext)
        if parser is None:
            raise FileAnalysisError(path, f"no tree-sitter grammar loaded for '{ext}'")
        root = parser.parse(source.encode("utf-8")).root_node

        imports: List[str] = []
        exports: List[str] = []
        for node in _ts_walk(root):
            if node.type in ("import_statement", "export_statement"):
                spec = _ts_string(node.child_by_field_name("source"))
                if spec:
                    imports.append(spec)
                if node.type == "export_statement":
                    exports.extend(_ts_exported_names(node))
            elif node.type == "call_expression" and _ts_is_dynamic_import(node):
                args = node.child_by_field_name("arguments")
                if args is not None and args.named_children:
                    spec = _ts_string(args.named_children[0])
                    if spec:
                        imports.append(spec)

        symbols: List[str] = []
        for child in root.named_children:
            decl = child.child_by_field_name("declaration") if child.type == "export_statement" else child
            if decl is not None and decl.type in _TS_DECLARATIONS:
                symbols.extend(_ts_declared_names(decl))

        exports = _unique(exports)
        return _unique(imports), exports, _unique([*symbols, *exports])


def _ts_walk(root: Any):
    """Pre-order traversal, i.e. source order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _ts_text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


def _ts_string(node: Any) -> Optional[str]:
    if node is None or node.type != "string":
        return None
    return _ts_text(node)[1:-1]


def _ts_is_dynamic_import(node: Any) -> bool:
    func = node.child_by_field_name("function")
    if func is None:
        return False
    return func.type == "import" or (func.type == "identifier" and _ts_text(func) == "require")


def _ts_declared_names(node: Any) -> List[str]:
    if node.type == "identifier":
        return [_ts_text(node)]
    if node.type in ("lexical_declaration", "variable_declaration"):
        names = []
        for child in node.named_children:
            if child.type == "variable_declarator":
                name = child.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    names.append(_ts_text(name))
        return names
    name = node.child_by_field_name("name")
    return [_ts_text(name)] if name is not None else []


def _ts_exported_names(node: Any) -> List[str]:
    names: List[str] = []
    decl = node.child_by_field_name("declaration")
    if decl is None:
        decl = node.child_by_field_name("value")
    if decl is not None:
        names.extend(_ts_declared_names(decl))
    for child in node.named_children:
        if child.type != "export_clause":
            continue
        for spec in child.named_children:
            if spec.type != "export_specifier":
                continue
            alias = spec.child_by_field_name("alias")
            if alias is None:
                alias = spec.child_by_field_name("name")
            if alias is not None:
                names.append(_ts_text(alias))
    return names


ANALYZERS = {
    RegexSourceAnalyzer.name: RegexSourceAnalyzer,
    PythonAstAnalyzer.name: PythonAstAnalyzer,
    TreeSitterAnalyzer.name: TreeSitterAnalyzer,
}


def get_analyzer(name: str = "regex") -> SourceAnalyzer:
    try:
        return ANALYZERS[name]()
    except KeyError:
        raise AnalysisError(f"Unknown analyzer '{name}'. Choose one of: {', '.join(ANALYZERS)}") from None


# ===================================================================
# File collection
# ===================================================================

@dataclass
class AnalysisReport:
    """Analyzed files plus the non-fatal problems met along the way."""
    files: List[AnalyzedFile] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]


def glob_match(rel_path: str, pattern: str) -> bool:
    if fnmatch.fnmatchcase(rel_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:])


def collect_files(
    root: Path,
    include_globs: Optional[Sequence[str]] = None,
    exclude_globs: Optional[Sequence[str]] = None,
) -> List[str]:
    """Return sorted project-relative POSIX paths under *root*."""
    if not root.is_dir():
        raise AnalysisError(f"Project root is not a directory: {root}")
    include = list(include_globs or DEFAULT_INCLUDE_GLOBS)
    exclude = list(exclude_globs or DEFAULT_EXCLUDE_GLOBS)

    collected: List[str] = []
    for file_path in root.rglob("*"):
        if not file_path.is_file():
            continue
        rel = file_path.relative_to(root)
        if any(part in SKIP_DIRS for part in rel.parts[:-1]):
            continue
        rel_posix = rel.as_posix()
        if not any(glob_match(rel_posix, p) for p in include):
            continue
        if any(glob_match(rel_posix, p) for p in exclude):
            continue
        collected.append(rel_posix)
    return sorted(collected)


def analyze_sources(
    sources: Mapping[str, str],
    analyzer: Optional[SourceAnalyzer] = None,
    warnings: Optional[List[str]] = None,
) -> List[AnalyzedFile]:
    """Analyze in-memory sources keyed by project-relative path.

    Files that fail to analyze are skipped and reported in *warnings*.
    """
    analyzer = analyzer or RegexSourceAnalyzer()
    warnings = warnings if warnings is not None else []
    known = set(sources)

    analyzed: List[AnalyzedFile] = []
    for path in sorted(sources):
        try:
            record = analyzer.analyze(path, sources[path])
        except Exception as exc:
            # One bad file never aborts the run, whatever the analyzer raised.
            err = exc if isinstance(exc, FileAnalysisError) else FileAnalysisError(
                path, f"{type(exc).__name__}: {exc}"
            )
            logger.warning("Skipping %s: %s", path, err.reason)
            warnings.append(str(err))
            continue
        resolved = [resolve_import(spec, path, known) for spec in record.imports]
        record.imports = _unique(r for r in resolved if r is not None)
        analyzed.append(record)

    return link_imported_by(analyzed)


def analyze_project(
    root: Path,
    analyzer: Optional[SourceAnalyzer] = None,
    include_globs: Optional[Sequence[str]] = None,
    exclude_globs: Optional[Sequence[str]] = None,
) -> AnalysisReport:
    """Collect and analyze every matching file under *root*."""
    report = AnalysisReport()
    sources: Dict[str, str] = {}
    for rel in collect_files(root, include_globs, exclude_globs):
        try:
            sources[rel] = (root / rel).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            err = FileAnalysisError(rel, f"unreadable: {exc}")
            logger.warning("Skipping %s: %s", rel, err.reason)
            report.warnings.append(str(err))

    report.files = analyze_sources(sources, analyzer, report.warnings)
    logger.info(
        "Analyzed %d files under %s (%d skipped)",
        len(report.files), root, len(report.warnings),
    )
    return report


# ===================================================================
# Import resolution
# ===================================================================

def resolve_import(spec: str, importer: str, known: Set[str]) -> Optional[str]:
    """Map an import specifier to a collected path, or ``None`` if external."""
    if not spec:
        return None
    if importer.endswith(PY_EXTENSIONS):
        return _resolve_python(spec, importer, known)
    return _resolve_js(spec, importer, known)


def _resolve_js(spec: str, importer: str, known: Set[str]) -> Optional[str]:
    spec = spec.split("?", 1)[0]
    if spec.startswith("."):
        base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), spec))
    elif spec.startswith("@/"):
        base = "src/" + spec[2:]
    elif spec.startswith("/"):
        base = spec.lstrip("/")
    else:
        # Bare specifiers only resolve when they name a project path.
        base = spec
    return _first_known(_js_candidates(base), known)


def _js_candidates(base: str) -> List[str]:
    candidates = [base]
    stem, ext = posixpath.splitext(base)
    if ext in (".js", ".jsx", ".mjs", ".cjs"):
        # ESM TypeScript imports "./x.js" for "./x.ts".
        candidates.extend(stem + e for e in (".ts", ".tsx"))
    candidates.extend(base + e for e in JS_EXTENSIONS)
    candidates.extend(f"{base}/index{e}" for e in JS_EXTENSIONS)
    return candidates


def _resolve_python(spec: str, importer: str, known: Set[str]) -> Optional[str]:
    level = len(spec) - len(spec.lstrip("."))
    module = spec[level:]
    parts = [p for p in module.split(".") if p]

    if level:
        base_dir = posixpath.dirname(importer)
        for _ in range(level - 1):
            base_dir = posixpath.dirname(base_dir)
        bases = [base_dir]
    else:
        # Absolute imports: project root, then the importer's own tree.
        bases = [""]
        top = importer.split("/")[0]
        if "/" in importer:
            bases.append(top)
        if not parts:
            return None

    for base in bases:
        stem = posixpath.join(base, *parts) if parts else base
        found = _first_known([f"{stem}.py", posixpath.join(stem, "__init__.py")], known)
        if found is not None:
            return found
    return None


def _first_known(candidates: Sequence[str], known: Set[str]) -> Optional[str]:
    for candidate in candidates:
        candidate = candidate.lstrip("/")
        if candidate.startswith("./"):
            candidate = candidate[2:]
        if candidate in known:
            return candidate
    return None


# ===================================================================
# Shared helpers
# ===================================================================

def _join_module(module: str, name: str) -> str:
    if not module or module.endswith("."):
        return module + name
    return f"{module}.{name}"


def _normalize_endpoint(url: str) -> str:
    if "${" in url or "{" in url:
        url = url.split("${", 1)[0].split("{", 1)[0]
    if url.startswith(("http://", "https://")):
        parsed = urlparse(url)
        url = parsed.path or "/"
    return url.split("?", 1)[0].rstrip("/") or "/"


def _unique(items) -> List[str]:
    return list(dict.fromkeys(items))
