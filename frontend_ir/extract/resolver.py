"""Module specifier resolution against the scanned file set."""

from __future__ import annotations

import os
from pathlib import Path
import posixpath
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .parsing import is_declaration_file
from .tsconfig import CompilerOptions

PROBE_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs")
_JS_TO_TS = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith(".")


class ModuleResolver:
    """Resolves import specifiers to project-relative source paths.

    Only files present in ``known_files`` are valid targets. Targets outside the
    project or in declaration files resolve to ``None``.
    """

    def __init__(self, project_root: Path, options: CompilerOptions, known_files: Iterable[str]) -> None:
        self._root = Path(project_root).resolve()
        self._options = options
        self._known: Set[str] = set(known_files)
        self._cache: Dict[Tuple[str, str], Optional[str]] = {}

    def resolve(self, specifier: str, from_file: str) -> Optional[str]:
        key = (specifier, from_file)
        if key not in self._cache:
            self._cache[key] = self._resolve(specifier, from_file)
        return self._cache[key]

    def _resolve(self, specifier: str, from_file: str) -> Optional[str]:
        if not specifier:
            return None
        if is_relative_specifier(specifier):
            directory = posixpath.dirname(from_file)
            return self._probe(posixpath.join(directory, specifier))
        if specifier.startswith("/"):
            return None

        for target in self._path_mapping_candidates(specifier):
            resolved = self._probe(target)
            if resolved is not None:
                return resolved

        if self._options.base_url is not None:
            base = self._relative_to_root(self._options.base_url)
            if base is not None:
                return self._probe(posixpath.join(base, specifier))
        return None

    def _path_mapping_candidates(self, specifier: str) -> List[str]:
        base_dir = self._options.paths_base
        if not self._options.paths or base_dir is None:
            return []
        base = self._relative_to_root(base_dir)
        if base is None:
            return []

        matches: List[Tuple[int, str, List[str]]] = []
        for pattern, targets in self._options.paths.items():
            if "*" not in pattern:
                if pattern == specifier:
                    # Exact patterns beat every wildcard.
                    matches.append((len(pattern) + 1_000_000, "", targets))
                continue
            prefix, _, suffix = pattern.partition("*")
            if (
                specifier.startswith(prefix)
                and specifier.endswith(suffix)
                and len(specifier) >= len(prefix) + len(suffix)
            ):
                captured = specifier[len(prefix) : len(specifier) - len(suffix)]
                matches.append((len(prefix), captured, targets))

        candidates: List[str] = []
        for _, captured, targets in sorted(matches, key=lambda item: -item[0]):
            for target in targets:
                candidates.append(posixpath.join(base, target.replace("*", captured)))
        return candidates

    def _relative_to_root(self, directory: Path) -> Optional[str]:
        try:
            rel = Path(os.path.relpath(Path(directory).resolve(), self._root)).as_posix()
        except ValueError:
            return None
        if rel == "..":
            return None
        if rel.startswith("../"):
            return None
        return "" if rel == "." else rel

    def _probe(self, candidate: str) -> Optional[str]:
        normalized = posixpath.normpath(candidate) if candidate else "."
        if normalized == ".." or normalized.startswith("../"):
            return None
        if normalized == ".":
            normalized = ""

        hit = self._first_known(self._candidates(normalized))
        if hit is None or is_declaration_file(hit):
            return None
        return hit

    def _candidates(self, path: str) -> Iterable[str]:
        if path:
            yield path
            stem, ext = posixpath.splitext(path)
            for replacement in _JS_TO_TS.get(ext, ()):
                yield stem + replacement
            for extension in PROBE_EXTENSIONS:
                yield path + extension
        prefix = f"{path}/" if path else ""
        for extension in PROBE_EXTENSIONS:
            yield f"{prefix}index{extension}"

    def _first_known(self, candidates: Iterable[str]) -> Optional[str]:
        for candidate in candidates:
            if candidate in self._known:
                return candidate
        return None


__all__ = ["ModuleResolver", "PROBE_EXTENSIONS", "is_relative_specifier"]
