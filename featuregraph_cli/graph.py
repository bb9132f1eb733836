"""Dependency graph construction over analyzed files."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Set

from .models import AnalyzedFile


def in_scope_imports(file: AnalyzedFile, known_paths: Set[str]) -> List[str]:
    """Return *file*'s imports that point inside the analyzed set, deduplicated."""
    seen: Set[str] = set()
    result: List[str] = []
    for target in file.imports:
        if target in known_paths and target != file.path and target not in seen:
            seen.add(target)
            result.append(target)
    return result


def build_import_graph(files: Iterable[AnalyzedFile]) -> Dict[str, Set[str]]:
    """Directional graph: ``graph[a]`` holds every in-scope file *a* imports."""
    files = list(files)
    known = {f.path for f in files}
    return {f.path: set(in_scope_imports(f, known)) for f in files}


def build_dependency_graph(files: Iterable[AnalyzedFile]) -> Dict[str, Set[str]]:
    """Symmetric adjacency map used for hop search.

    For every import A -> B both ``graph[A]`` and ``graph[B]`` gain the other
    endpoint. Every analyzed file has an entry, possibly empty.
    """
    forward = build_import_graph(files)
    graph: Dict[str, Set[str]] = {path: set() for path in forward}
    for src, targets in forward.items():
        for dst in targets:
            graph[src].add(dst)
            graph[dst].add(src)
    return graph


def link_imported_by(files: Iterable[AnalyzedFile]) -> List[AnalyzedFile]:
    """Return copies of *files* with ``imports`` trimmed to the analyzed set
    and ``imported_by`` filled from the forward edges.

    Input records are left untouched.
    """
    files = list(files)
    known = {f.path for f in files}
    trimmed = {f.path: in_scope_imports(f, known) for f in files}

    importers: Dict[str, List[str]] = {f.path: [] for f in files}
    for f in files:
        for target in trimmed[f.path]:
            importers[target].append(f.path)

    return [
        replace(
            f,
            imports=trimmed[f.path],
            imported_by=sorted(importers[f.path]),
        )
        for f in files
    ]


def build_route_graph(files: Iterable[AnalyzedFile]) -> Dict[str, Set[str]]:
    """Map each declared route to the files that declare it."""
    routes: Dict[str, Set[str]] = {}
    for f in files:
        for route in f.routes:
            routes.setdefault(route, set()).add(f.path)
    return routes


def build_api_index(files: Iterable[AnalyzedFile]) -> Dict[str, Set[str]]:
    """Map each file to the API endpoints it calls."""
    return {f.path: set(f.api_calls) for f in files if f.api_calls}
