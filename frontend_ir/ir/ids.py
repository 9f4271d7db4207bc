"""Content-addressed identifiers for IR elements."""

from __future__ import annotations

import hashlib
from typing import Optional

_HASH_LENGTH = 16


def hash_id(prefix: str, value: str) -> str:
    """Return ``prefix`` followed by a truncated sha1 digest of ``value``."""
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()[:_HASH_LENGTH]
    return f"{prefix}{digest}"


def package_id(rel_dir: str) -> str:
    return hash_id("pkg:", rel_dir or "(root)")


def classifier_id(kind: str, qualified_name: str) -> str:
    return hash_id("c:", f"{kind}:{qualified_name}")


def module_id(rel_file: str) -> str:
    return hash_id("m:", rel_file)


def member_id(prefix: str, owner_id: str, name: str) -> str:
    return hash_id(prefix, f"{owner_id}:{name}")


def relation_id(
    kind: str, source_id: str, target_id: str, discriminator: Optional[str] = None
) -> str:
    key = f"{kind}:{source_id}->{target_id}"
    if discriminator:
        key = f"{key}:{discriminator}"
    return hash_id("r:", key)


def to_posix_path(path: str) -> str:
    return path.replace("\\", "/")


__all__ = [
    "classifier_id",
    "hash_id",
    "member_id",
    "module_id",
    "package_id",
    "relation_id",
    "to_posix_path",
]
