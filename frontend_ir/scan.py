"""Deterministic discovery of candidate source files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .errors import ConfigError
from .logging import get_logger

logger = get_logger("scan")

INVENTORY_SCHEMA = "file-inventory-v1"

SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

DEFAULT_EXCLUDES = (
    "node_modules/",
    "dist/",
    "build/",
    ".next/",
    ".cache/",
    "coverage/",
    ".git/",
    ".turbo/",
    ".svelte-kit/",
    ".angular/",
    ".nx/",
    "out/",
    "*.min.js",
    "*.d.ts",
    "*.d.mts",
    "*.d.cts",
)

DEFAULT_TEST_EXCLUDES = (
    "__tests__/",
    "test/",
    "tests/",
    "*.test.*",
    "*.spec.*",
)


@dataclass
class ExcludeRule:
    """A glob exclusion, either matched per path segment or against the whole relative path."""

    pattern: str
    directory_only: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False
        if self.has_slash:
            collapsed = self.pattern.replace("**/", "")
            return fnmatchcase(rel_path, self.pattern.replace("**", "*")) or fnmatchcase(
                rel_path, collapsed.replace("**", "*")
            )
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


def build_exclude_rule(pattern: str) -> Optional[ExcludeRule]:
    """Normalize fast-glob style (``**/dist/**``) and gitignore style (``dist/``) patterns."""
    pattern = pattern.strip().replace("\\", "/")
    if not pattern or pattern.startswith("#"):
        return None

    directory_only = False
    if pattern.endswith("/**"):
        pattern = pattern[:-3]
        directory_only = True
    if pattern.endswith("/"):
        pattern = pattern.rstrip("/")
        directory_only = True
    while pattern.startswith("**/"):
        pattern = pattern[3:]
    pattern = pattern.lstrip("/")
    if not pattern:
        return None

    return ExcludeRule(pattern=pattern, directory_only=directory_only, has_slash="/" in pattern)


@dataclass
class FileInventory:
    """Sorted, project-relative posix paths of in-scope source files."""

    source_root: str
    files: List[str] = field(default_factory=list)
    files_found: int = 0
    schema: str = INVENTORY_SCHEMA

    @property
    def truncated(self) -> bool:
        return self.files_found > len(self.files)

    def to_dict(self) -> dict:
        return {"schema": self.schema, "sourceRoot": self.source_root, "files": list(self.files)}


def _is_excluded(rel_path: str, is_dir: bool, rules: Sequence[ExcludeRule]) -> bool:
    return any(rule.matches(rel_path, is_dir) for rule in rules)


def _iter_files(root: Path, rules: Sequence[ExcludeRule]) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in dirnames:
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _is_excluded(rel_path, True, rules):
                continue
            if (current_dir / name).is_symlink():
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in filenames:
            if not filename.lower().endswith(SOURCE_SUFFIXES):
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _is_excluded(rel_path, False, rules):
                continue
            yield rel_path


class SourceScanner:
    """Walks a project to list the files handed to the extractor."""

    def __init__(
        self,
        exclude: Sequence[str] = (),
        *,
        include_tests: bool = False,
        max_files: Optional[int] = None,
    ) -> None:
        patterns = list(DEFAULT_EXCLUDES) + list(exclude)
        if not include_tests:
            patterns.extend(DEFAULT_TEST_EXCLUDES)
        self.rules = [rule for rule in (build_exclude_rule(p) for p in patterns) if rule is not None]
        self.max_files = max_files if max_files and max_files > 0 else None

    def scan(self, root: str | Path) -> FileInventory:
        """Return the sorted inventory, truncated to ``max_files`` after sorting."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise ConfigError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise ConfigError(f"Project path is not a directory: {root}")

        files = sorted(_iter_files(root_path, self.rules))
        found = len(files)
        if self.max_files is not None and found > self.max_files:
            logger.info("Truncating %d source files to the first %d", found, self.max_files)
            files = files[: self.max_files]
        logger.debug("Scanned %d source files under %s", len(files), root_path)
        return FileInventory(source_root=str(root_path), files=files, files_found=found)


def scan_source_files(
    root: str | Path,
    exclude: Sequence[str] = (),
    *,
    include_tests: bool = False,
    max_files: Optional[int] = None,
) -> List[str]:
    return SourceScanner(exclude, include_tests=include_tests, max_files=max_files).scan(root).files


__all__ = [
    "DEFAULT_EXCLUDES",
    "DEFAULT_TEST_EXCLUDES",
    "ExcludeRule",
    "FileInventory",
    "SOURCE_SUFFIXES",
    "SourceScanner",
    "build_exclude_rule",
    "scan_source_files",
]
