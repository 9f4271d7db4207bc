"""Angular template coupling: pipes, component elements and directives used by a template."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..ir.models import IrClassifier, RelationKind
from ..logging import get_logger
from ..report import FindingKind
from .angular import decorator_metadata
from .context import DeclarationRecord, DeclarationShape, ExtractionContext
from .parsing import line_of, object_property, string_value

logger = get_logger("templates")

_PIPE_USE = re.compile(r"\|\s*([A-Za-z_]\w*)")
_ELEMENT_USE = re.compile(r"<\s*([a-z][a-z0-9-]*)\b")
_ATTRIBUTE_USE = re.compile(r"\[\s*([A-Za-z_][\w-]*)\s*\]")
_STRUCTURAL_USE = re.compile(r"\*\s*([A-Za-z_][\w-]*)\s*=")
_ELEMENT_SELECTOR = re.compile(r"^[a-z][a-z0-9-]*$")
_ATTRIBUTE_SELECTOR = re.compile(r"^\[\s*([a-zA-Z_][\w-]*)")


@dataclass
class TemplateIndex:
    """Template-visible names of the pipes, components and directives in the project."""

    pipes: Dict[str, IrClassifier] = field(default_factory=dict)
    elements: Dict[str, IrClassifier] = field(default_factory=dict)
    attributes: Dict[str, IrClassifier] = field(default_factory=dict)

    def lookup(self, ref_kind: str, name: str) -> Optional[IrClassifier]:
        if ref_kind == "pipe":
            return self.pipes.get(name)
        if ref_kind == "element":
            return self.elements.get(name)
        return self.attributes.get(name)


def _selectors(selector: str) -> List[str]:
    return [part.strip() for part in selector.split(",") if part.strip()]


def build_template_index(records: List[DeclarationRecord]) -> TemplateIndex:
    index = TemplateIndex()
    for record in records:
        classifier = record.classifier
        selector = classifier.get_tag("angular.selector") or ""
        if record.shape == DeclarationShape.ANGULAR_PIPE:
            index.pipes.setdefault(classifier.get_tag("angular.pipeName") or classifier.name, classifier)
        elif record.shape == DeclarationShape.ANGULAR_COMPONENT:
            for part in _selectors(selector):
                if _ELEMENT_SELECTOR.match(part):
                    index.elements.setdefault(part, classifier)
        elif record.shape == DeclarationShape.ANGULAR_DIRECTIVE:
            for part in _selectors(selector):
                match = _ATTRIBUTE_SELECTOR.match(part)
                if match:
                    index.attributes.setdefault(match.group(1), classifier)
    return index


def scan_template(template: str) -> List[Tuple[str, str]]:
    """``(refKind, name)`` pairs used by ``template``, first occurrence order, without duplicates."""
    found: List[Tuple[str, str]] = []
    for ref_kind, pattern in (
        ("pipe", _PIPE_USE),
        ("element", _ELEMENT_USE),
        ("attr", _ATTRIBUTE_USE),
        ("struct", _STRUCTURAL_USE),
    ):
        for match in pattern.finditer(template):
            entry = (ref_kind, match.group(1))
            if entry not in found:
                found.append(entry)
    return found


def _template_source(ctx: ExtractionContext, record: DeclarationRecord) -> Optional[Tuple[str, Tuple[str, str]]]:
    """Template text plus the tag naming where it came from."""
    parsed = record.file
    metadata = decorator_metadata(record.decorator, parsed)
    if metadata is None:
        return None
    inline = string_value(object_property(metadata, "template", parsed), parsed)
    if inline is not None:
        return inline, ("template.inline", "true")
    url = string_value(object_property(metadata, "templateUrl", parsed), parsed)
    if url is None:
        return None

    rel_template = posixpath.normpath(posixpath.join(parsed.directory, url))
    path = ctx.program.root / rel_template
    try:
        return path.read_text(encoding="utf-8", errors="replace"), ("template.file", rel_template)
    except OSError:
        ctx.add_finding(
            FindingKind.NOTE,
            f"Component templateUrl not found: {url}",
            file=parsed.rel_path,
            line=line_of(record.decorator),
            tags={"owner": record.classifier.name, "templateUrl": url},
        )
        return None


def extract_angular_templates(ctx: ExtractionContext) -> None:
    """TEMPLATE_USES edges from each component to what its template references."""
    records = [record for record in ctx.declarations if record.decorator is not None]
    index = build_template_index(records)
    edges = 0
    for record in records:
        if record.shape != DeclarationShape.ANGULAR_COMPONENT:
            continue
        loaded = _template_source(ctx, record)
        if loaded is None or not ctx.options.include_framework_edges:
            continue
        template, origin_tag = loaded
        for ref_kind, name in scan_template(template):
            target = index.lookup(ref_kind, name)
            # Native elements and library directives have no classifier.
            if target is None:
                continue
            relation = ctx.add_relation(
                RelationKind.TEMPLATE_USES,
                record.classifier.id,
                target.id,
                name=name,
                tags=[
                    ("origin", "template"),
                    ("role", "uses"),
                    ("template.refKind", ref_kind),
                    ("template.refName", name),
                    origin_tag,
                ],
                source=ctx.source_ref(record.file.rel_path, record.decorator),
                discriminator=f"{ref_kind}:{name}",
            )
            if relation is not None:
                edges += 1
    logger.debug("Angular templates: %d template edges", edges)


__all__ = ["TemplateIndex", "build_template_index", "extract_angular_templates", "scan_template"]
