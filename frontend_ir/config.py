"""Configuration loading for frontend-ir (.frontend-ir.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".frontend-ir.yml"

MODES = ("auto", "ts", "react", "angular", "js")


@dataclass
class ExtractConfig:
    """Extraction defaults; every field can be overridden on the command line."""

    mode: str = "auto"
    tsconfig: Optional[str] = None
    exclude: List[str] = field(default_factory=list)
    include_tests: bool = False
    include_deps: bool = False
    framework_edges: bool = True
    max_files: Optional[int] = None
    report: Optional[str] = None
    fail_on_unresolved: bool = False


@dataclass
class FrontendIrConfig:
    """Represents the settings defined in .frontend-ir.yml."""

    root: Path
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    out: Optional[Path] = None


def load_config(config_path: Path) -> FrontendIrConfig:
    """Load configuration from disk; a missing file yields the defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return FrontendIrConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    extract = ExtractConfig()
    extract_data = _as_dict(data.get("extract"))
    if extract_data:
        mode = _as_str(extract_data.get("mode"))
        if mode is not None:
            mode = mode.strip().lower()
            if mode not in MODES:
                raise ConfigError(
                    f"Unsupported extract.mode '{mode}' in {CONFIG_FILENAME}; expected one of {', '.join(MODES)}"
                )
            extract.mode = mode
        extract.tsconfig = _as_str(extract_data.get("tsconfig"))
        extract.exclude = _as_str_list(extract_data.get("exclude"))
        extract.include_tests = _as_bool(extract_data.get("include_tests")) or False
        extract.include_deps = _as_bool(extract_data.get("include_deps")) or False
        framework_edges = _as_bool(extract_data.get("framework_edges"))
        extract.framework_edges = True if framework_edges is None else framework_edges
        max_files = _as_int(extract_data.get("max_files"))
        extract.max_files = max_files if max_files and max_files > 0 else None
        extract.report = _as_str(extract_data.get("report"))
        extract.fail_on_unresolved = _as_bool(extract_data.get("fail_on_unresolved")) or False

    out_str = _as_str(data.get("out"))
    out = root / out_str if out_str else None

    return FrontendIrConfig(root=root, extract=extract, out=out)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = ["CONFIG_FILENAME", "MODES", "ExtractConfig", "FrontendIrConfig", "load_config"]
