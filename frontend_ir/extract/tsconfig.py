"""tsconfig.json loading: comments, trailing commas and ``extends`` chains."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
import re
from typing import Any, Dict, List, Optional, Set

from ..errors import ConfigError
from ..logging import get_logger

logger = get_logger("tsconfig")

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


@dataclass
class CompilerOptions:
    """The subset of compiler options that drives module resolution."""

    base_url: Optional[Path] = None
    paths: Dict[str, List[str]] = field(default_factory=dict)
    paths_base: Optional[Path] = None
    allow_js: bool = False
    jsx: Optional[str] = None
    config_path: Optional[Path] = None


def strip_json_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments outside of string literals."""
    out: List[str] = []
    index = 0
    length = len(text)
    in_string = False
    while index < length:
        char = text[index]
        if in_string:
            out.append(char)
            if char == "\\" and index + 1 < length:
                out.append(text[index + 1])
                index += 2
                continue
            if char == '"':
                in_string = False
            index += 1
            continue
        if char == '"':
            in_string = True
            out.append(char)
            index += 1
            continue
        if text.startswith("//", index):
            newline = text.find("\n", index)
            index = length if newline == -1 else newline
            continue
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = length if end == -1 else end + 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


def parse_jsonc(text: str) -> Any:
    cleaned = _TRAILING_COMMA.sub(r"\1", strip_json_comments(text))
    return json.loads(cleaned)


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        payload = parse_jsonc(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Unable to read tsconfig at {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid tsconfig at {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"tsconfig at {path} must contain a JSON object")
    return payload


def _locate_extends(config_dir: Path, reference: str) -> Optional[Path]:
    if reference.startswith("."):
        candidate = (config_dir / reference).resolve()
        if candidate.is_file():
            return candidate
        with_suffix = candidate.with_name(candidate.name + ".json")
        return with_suffix if with_suffix.is_file() else None

    # Package references such as "@tsconfig/node18/tsconfig.json".
    for parent in [config_dir, *config_dir.parents]:
        base = parent / "node_modules" / reference
        for candidate in (base, base.with_name(base.name + ".json"), base / "tsconfig.json"):
            if candidate.is_file():
                return candidate
    return None


def _merge_chain(path: Path, seen: Set[Path]) -> Dict[str, Any]:
    """Return compiler options with relative paths anchored to their declaring file."""
    resolved = path.resolve()
    if resolved in seen:
        logger.warning("Ignoring circular tsconfig extends at %s", path)
        return {}
    seen.add(resolved)

    payload = _read_config(path)
    merged: Dict[str, Any] = {}
    extends = payload.get("extends")
    references = [extends] if isinstance(extends, str) else list(extends or [])
    for reference in references:
        if not isinstance(reference, str):
            continue
        parent_path = _locate_extends(path.parent, reference)
        if parent_path is None:
            logger.debug("tsconfig extends %s not found from %s", reference, path)
            continue
        merged.update(_merge_chain(parent_path, seen))

    options = payload.get("compilerOptions") or {}
    if not isinstance(options, dict):
        raise ConfigError(f"compilerOptions in {path} must be an object")
    for key, value in options.items():
        merged[key] = value
        if key == "baseUrl" and isinstance(value, str):
            merged["__baseUrl"] = (path.parent / value).resolve()
        if key == "paths":
            merged["__pathsDir"] = path.parent.resolve()
    return merged


def load_tsconfig(project_root: Path, explicit: Optional[Path | str] = None) -> CompilerOptions:
    """Load compiler options for ``project_root``.

    An explicit path must exist and parse; a missing or broken default
    ``tsconfig.json`` (or ``jsconfig.json``) yields default options.
    """
    root = Path(project_root)
    if explicit is not None:
        explicit = Path(explicit)
        config_path = explicit if explicit.is_absolute() else root / explicit
        if not config_path.is_file():
            raise ConfigError(f"tsconfig not found: {config_path}")
    else:
        config_path = None
        for name in ("tsconfig.json", "jsconfig.json"):
            candidate = root / name
            if candidate.is_file():
                config_path = candidate
                break
        if config_path is None:
            logger.debug("No tsconfig found under %s; using defaults", root)
            return CompilerOptions()

    try:
        merged = _merge_chain(config_path, set())
    except ConfigError as exc:
        if explicit is not None:
            raise
        logger.warning("%s; using default compiler options", exc)
        return CompilerOptions()
    base_url = merged.get("__baseUrl")
    paths = merged.get("paths") or {}
    cleaned_paths: Dict[str, List[str]] = {}
    if isinstance(paths, dict):
        for pattern, targets in paths.items():
            if isinstance(targets, list):
                cleaned_paths[str(pattern)] = [str(target) for target in targets if isinstance(target, str)]
    # paths are relative to baseUrl when set, otherwise to the declaring tsconfig.
    paths_base = base_url or merged.get("__pathsDir")
    jsx = merged.get("jsx")
    return CompilerOptions(
        base_url=base_url,
        paths=cleaned_paths,
        paths_base=paths_base,
        allow_js=bool(merged.get("allowJs", False) or merged.get("checkJs", False)),
        jsx=jsx if isinstance(jsx, str) else None,
        config_path=config_path,
    )


__all__ = ["CompilerOptions", "load_tsconfig", "parse_jsonc", "strip_json_comments"]
