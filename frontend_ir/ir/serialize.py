"""Deterministic JSON emission for IR models."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from enum import Enum
import json
import os
from pathlib import Path
import tempfile
from typing import Any, Dict

from ..errors import ExtractionError
from .canonical import canonicalize_model
from .models import IrModel

_LEGACY_KEYS = ("stereotypes",)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema" / "ir-schema-v1.json"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_json_value(value: Any) -> Any:
    """Convert dataclasses, enums and containers into plain JSON values.

    Dataclass fields become camelCase keys and ``None`` fields are omitted.
    """
    if is_dataclass(value) and not isinstance(value, type):
        payload: Dict[str, Any] = {}
        for item in fields(value):
            raw = getattr(value, item.name)
            if raw is None:
                continue
            payload[_camel(item.name)] = to_json_value(raw)
        return payload
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    return value


def stable_dumps(value: Any) -> str:
    """Dump ``value`` with recursively sorted keys, two-space indent and a final newline."""
    return json.dumps(to_json_value(value), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _strip_legacy(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {key: _strip_legacy(item) for key, item in payload.items() if key not in _LEGACY_KEYS}
    if isinstance(payload, list):
        return [_strip_legacy(item) for item in payload]
    return payload


def model_to_dict(model: IrModel, *, strip_stereotypes: bool = False) -> Dict[str, Any]:
    payload = to_json_value(canonicalize_model(model))
    # Stripping happens after canonical ordering so it cannot reorder anything.
    if strip_stereotypes:
        payload = _strip_legacy(payload)
    return payload


def serialize_model(model: IrModel, *, strip_stereotypes: bool = False) -> str:
    return stable_dumps(model_to_dict(model, strip_stereotypes=strip_stereotypes))


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a sibling temp file and an atomic rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise ExtractionError(f"Failed to write {path}: {exc}") from exc


def load_ir_schema() -> Dict[str, Any]:
    """Return the published IR v1 JSON Schema."""
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def write_ir_json(path: Path, model: IrModel, *, strip_stereotypes: bool = False) -> str:
    text = serialize_model(model, strip_stereotypes=strip_stereotypes)
    write_text_atomic(path, text)
    return text


__all__ = [
    "SCHEMA_PATH",
    "load_ir_schema",
    "model_to_dict",
    "serialize_model",
    "stable_dumps",
    "to_json_value",
    "write_ir_json",
    "write_text_atomic",
]
