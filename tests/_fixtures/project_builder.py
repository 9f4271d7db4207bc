"""Helper utilities for constructing throwaway frontend projects in tests."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import List, Mapping, Optional

from frontend_ir.ir.models import IrClassifier, IrModel, IrRelation, RelationKind
from frontend_ir.pipeline import ExtractRequest, ExtractResult, extract_project
from frontend_ir.scan import FileInventory, SourceScanner


class ProjectBuilder:
    """Utility for writing files into a throwaway project and extracting it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "project"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def write_json(self, relative: str, payload: object) -> None:
        self.write({relative: json.dumps(payload, indent=2)})

    def scan(self, **kwargs) -> FileInventory:
        """Return a fresh inventory of the project contents."""
        return SourceScanner(**kwargs).scan(self.root)

    def extract(self, **kwargs) -> ExtractResult:
        """Run the full pipeline over the project."""
        return extract_project(ExtractRequest(project_root=self.root, **kwargs))

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


def classifier_named(model: IrModel, name: str, kind: Optional[str] = None) -> IrClassifier:
    matches = [
        classifier
        for classifier in model.classifiers
        if classifier.name == name and (kind is None or classifier.kind.value == kind)
    ]
    assert len(matches) == 1, f"expected one classifier named {name}, found {len(matches)}"
    return matches[0]


def relations(
    model: IrModel,
    kind: RelationKind,
    source: Optional[str] = None,
    target: Optional[str] = None,
) -> List[IrRelation]:
    """Relations of ``kind``, optionally filtered by source/target classifier name."""
    names = {classifier.id: classifier.name for classifier in model.classifiers}
    return [
        relation
        for relation in model.relations
        if relation.kind == kind
        and (source is None or names.get(relation.source_id) == source)
        and (target is None or names.get(relation.target_id) == target)
    ]


def tag_map(element) -> dict:
    return {tagged.key: tagged.value for tagged in element.tagged_values}


__all__ = ["ProjectBuilder", "classifier_named", "relations", "tag_map"]
