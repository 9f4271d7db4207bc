"""Per-run extraction state shared by every pass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from tree_sitter import Node

from ..ir.ids import module_id, relation_id
from ..ir.models import (
    ClassifierKind,
    IrClassifier,
    IrModel,
    IrPackage,
    IrRelation,
    IrSourceRef,
    IrStereotype,
    IrTaggedValue,
    RelationKind,
)
from ..report import ExtractionReport, FindingKind, Severity
from .packages import build_package_map, directory_of, package_qualified_name
from .parsing import ParsedFile, ParsedProgram, line_of
from .resolver import ModuleResolver
from .symbols import SymbolTable

# Self edges of these kinds carry no information.
_NO_SELF_EDGES = {RelationKind.DEPENDENCY, RelationKind.RENDER, RelationKind.DI, RelationKind.TEMPLATE_USES}


class DeclarationShape(str, Enum):
    """Closed set of declaration forms recognised by the declaration pass."""

    CLASS = "CLASS"
    ABSTRACT_CLASS = "ABSTRACT_CLASS"
    INTERFACE = "INTERFACE"
    ENUM = "ENUM"
    TYPE_ALIAS = "TYPE_ALIAS"
    FUNCTION = "FUNCTION"
    ARROW_FUNCTION = "ARROW_FUNCTION"
    REACT_FUNCTION_COMPONENT = "REACT_FUNCTION_COMPONENT"
    REACT_CLASS_COMPONENT = "REACT_CLASS_COMPONENT"
    REACT_CONTEXT = "REACT_CONTEXT"
    ANGULAR_COMPONENT = "ANGULAR_COMPONENT"
    ANGULAR_INJECTABLE = "ANGULAR_INJECTABLE"
    ANGULAR_MODULE = "ANGULAR_MODULE"
    ANGULAR_DIRECTIVE = "ANGULAR_DIRECTIVE"
    ANGULAR_PIPE = "ANGULAR_PIPE"


@dataclass
class DeclarationRecord:
    """One declared classifier and the syntax it came from."""

    shape: DeclarationShape
    file: ParsedFile
    node: Node
    name: str
    scope: Tuple[str, ...]
    classifier: IrClassifier
    wrapper: Node
    function_node: Optional[Node] = None
    decorator: Optional[Node] = None


@dataclass
class ExtractionOptions:
    """Mode flags for one extraction run."""

    react: bool = False
    angular: bool = False
    force_allow_js: bool = False
    import_graph: bool = False
    include_deps: bool = False
    include_framework_edges: bool = True
    max_files: Optional[int] = None


class ExtractionContext:
    """Owns the model under construction, the symbol table and the report."""

    def __init__(
        self,
        program: ParsedProgram,
        options: ExtractionOptions,
        report: Optional[ExtractionReport] = None,
    ) -> None:
        self.program = program
        self.options = options
        self.report = report
        self.resolver = ModuleResolver(program.root, program.options, program.files.keys())
        self.symbols = SymbolTable(self.resolver)
        self.packages: Dict[str, IrPackage] = build_package_map(program.files.keys())
        self.classifiers: Dict[str, IrClassifier] = {}
        self.relations: Dict[str, IrRelation] = {}
        self.declarations: List[DeclarationRecord] = []
        self._modules: Dict[str, IrClassifier] = {}

    # Naming -----------------------------------------------------------------

    def package_for(self, rel_file: str) -> IrPackage:
        rel_dir = directory_of(rel_file)
        package = self.packages.get(rel_dir)
        if package is None:
            self.packages.update(
                {key: value for key, value in build_package_map([rel_file]).items() if key not in self.packages}
            )
            package = self.packages[rel_dir]
        return package

    def qualified_name(self, rel_file: str, scope: Iterable[str], name: str) -> str:
        parsed = self.program.get(rel_file)
        rel_dir = directory_of(rel_file)
        stem = parsed.stem if parsed is not None else PurePosixPath(rel_file).stem
        parts: List[str] = [package_qualified_name(rel_dir)] if rel_dir else []
        parts.extend([stem, *scope, name])
        return ".".join(parts)

    def source_ref(self, rel_file: str, node: Optional[Node]) -> IrSourceRef:
        if node is None:
            return IrSourceRef(file=rel_file, line=1)
        return IrSourceRef(file=rel_file, line=line_of(node), col=node.start_point[1] + 1)

    # Classifiers ------------------------------------------------------------

    def add_classifier(self, classifier: IrClassifier) -> IrClassifier:
        """Register ``classifier``; a repeated id returns the existing instance."""
        existing = self.classifiers.get(classifier.id)
        if existing is not None:
            return existing
        self.classifiers[classifier.id] = classifier
        return classifier

    def ensure_file_module(self, rel_file: str) -> IrClassifier:
        """Return the MODULE classifier that stands for ``rel_file``, creating it once."""
        module = self._modules.get(rel_file)
        if module is not None:
            return module
        module = IrClassifier(
            id=module_id(rel_file),
            name=rel_file.rsplit("/", 1)[-1],
            kind=ClassifierKind.MODULE,
            qualified_name=rel_file,
            package_id=self.package_for(rel_file).id,
            stereotypes=[IrStereotype(name="SourceFile")],
            tagged_values=[IrTaggedValue(key="source.file", value=rel_file)],
            source=IrSourceRef(file=rel_file, line=1),
        )
        module = self.add_classifier(module)
        self._modules[rel_file] = module
        return module

    # Relations --------------------------------------------------------------

    def add_relation(
        self,
        kind: RelationKind,
        source_id: str,
        target_id: str,
        *,
        tags: Iterable[Tuple[str, str]] = (),
        source: Optional[IrSourceRef] = None,
        discriminator: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Optional[IrRelation]:
        """Add or merge a relation; merging unions tags and keeps the earliest source."""
        if source_id == target_id and kind in _NO_SELF_EDGES:
            return None
        rel_id = relation_id(kind.value, source_id, target_id, discriminator)
        tagged = [IrTaggedValue(key=key, value=value) for key, value in tags]
        existing = self.relations.get(rel_id)
        if existing is None:
            relation = IrRelation(
                id=rel_id,
                kind=kind,
                source_id=source_id,
                target_id=target_id,
                name=name,
                tagged_values=_unique(tagged),
                source=source,
            )
            self.relations[rel_id] = relation
            return relation

        existing.tagged_values = _unique([*existing.tagged_values, *tagged])
        if existing.name is None:
            existing.name = name
        if source is not None and (existing.source is None or _ref_key(source) < _ref_key(existing.source)):
            existing.source = source
        return existing

    # Findings ---------------------------------------------------------------

    def add_finding(
        self,
        kind: FindingKind,
        message: str,
        *,
        file: Optional[str] = None,
        line: Optional[int] = None,
        tags: Optional[Dict[str, str]] = None,
        severity: Severity = Severity.WARNING,
    ) -> None:
        if self.report is None:
            return
        self.report.add_finding(kind, message, severity=severity, file=file, line=line, tags=tags)

    # Assembly ---------------------------------------------------------------

    def records_for(self, rel_file: str) -> List[DeclarationRecord]:
        return [record for record in self.declarations if record.file.rel_path == rel_file]

    def build_model(self) -> IrModel:
        return IrModel(
            packages=list(self.packages.values()),
            classifiers=list(self.classifiers.values()),
            relations=list(self.relations.values()),
        )


def _unique(values: List[IrTaggedValue]) -> List[IrTaggedValue]:
    seen = set()
    result: List[IrTaggedValue] = []
    for value in values:
        key = (value.key, value.value)
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


def _ref_key(ref: IrSourceRef) -> Tuple[str, int, int]:
    return (ref.file, ref.line or 0, ref.col or 0)


__all__ = ["DeclarationRecord", "DeclarationShape", "ExtractionContext", "ExtractionOptions"]
