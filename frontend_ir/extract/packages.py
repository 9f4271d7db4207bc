"""Package hierarchy mirroring the source directory layout."""

from __future__ import annotations

import posixpath
from typing import Dict, Iterable

from ..ir.ids import package_id, to_posix_path
from ..ir.models import IrPackage

ROOT_PACKAGE_NAME = "(root)"


def directory_of(rel_file: str) -> str:
    parent = posixpath.dirname(to_posix_path(rel_file))
    return "" if parent == "." else parent


def package_qualified_name(rel_dir: str) -> str:
    return rel_dir.replace("/", ".") if rel_dir else ROOT_PACKAGE_NAME


def _ensure(packages: Dict[str, IrPackage], rel_dir: str) -> IrPackage:
    existing = packages.get(rel_dir)
    if existing is not None:
        return existing
    parts = rel_dir.split("/") if rel_dir else []
    parent_dir = "/".join(parts[:-1])
    package = IrPackage(
        id=package_id(rel_dir),
        name=parts[-1] if parts else ROOT_PACKAGE_NAME,
        qualified_name=package_qualified_name(rel_dir),
        parent_id=package_id(parent_dir) if parts else None,
    )
    packages[rel_dir] = package
    if parts:
        _ensure(packages, parent_dir)
    return package


def build_package_map(files: Iterable[str]) -> Dict[str, IrPackage]:
    """Map every containing directory (and its ancestors) to an :class:`IrPackage`.

    The root directory is keyed by the empty string and has no parent.
    """
    packages: Dict[str, IrPackage] = {}
    for rel_file in sorted(files):
        _ensure(packages, directory_of(rel_file))
    return packages


__all__ = ["ROOT_PACKAGE_NAME", "build_package_map", "directory_of", "package_qualified_name"]
