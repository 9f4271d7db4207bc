"""IR data model shared by every extraction pass.

The model mirrors the IR v1 JSON schema shipped in ``ir/schema``. Field names
are snake_case here and converted to camelCase by the serializer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from ..errors import ModelIntegrityError

SCHEMA_VERSION = "1.0"


class ClassifierKind(str, Enum):
    """Kinds of structural entities emitted into the IR."""

    CLASS = "CLASS"
    INTERFACE = "INTERFACE"
    ENUM = "ENUM"
    TYPE_ALIAS = "TYPE_ALIAS"
    FUNCTION = "FUNCTION"
    COMPONENT = "COMPONENT"
    SERVICE = "SERVICE"
    MODULE = "MODULE"


class RelationKind(str, Enum):
    """Kinds of directed edges between classifiers."""

    INHERITANCE = "INHERITANCE"
    IMPLEMENTATION = "IMPLEMENTATION"
    ASSOCIATION = "ASSOCIATION"
    DEPENDENCY = "DEPENDENCY"
    RENDER = "RENDER"
    DI = "DI"
    ROUTE_TO = "ROUTE_TO"
    TEMPLATE_USES = "TEMPLATE_USES"


class TypeRefKind(str, Enum):
    NAMED = "NAMED"
    PRIMITIVE = "PRIMITIVE"
    GENERIC = "GENERIC"
    ARRAY = "ARRAY"
    UNION = "UNION"
    INTERSECTION = "INTERSECTION"
    UNKNOWN = "UNKNOWN"


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    PROTECTED = "PROTECTED"
    PACKAGE = "PACKAGE"
    PRIVATE = "PRIVATE"


@dataclass
class IrTaggedValue:
    key: str
    value: str


@dataclass
class IrStereotype:
    name: str
    qualified_name: Optional[str] = None


@dataclass(frozen=True, order=True)
class IrSourceRef:
    """Location of the syntax that produced an element (project relative, 1-based)."""

    file: str
    line: Optional[int] = None
    col: Optional[int] = None


@dataclass
class IrTypeRef:
    """Uniform type reference descriptor."""

    kind: TypeRefKind
    name: Optional[str] = None
    type_args: List["IrTypeRef"] = field(default_factory=list)
    element_type: Optional["IrTypeRef"] = None

    @classmethod
    def unknown(cls, name: str = "unknown") -> "IrTypeRef":
        return cls(kind=TypeRefKind.UNKNOWN, name=name)

    @classmethod
    def named(cls, name: str) -> "IrTypeRef":
        return cls(kind=TypeRefKind.NAMED, name=name)

    @classmethod
    def primitive(cls, name: str) -> "IrTypeRef":
        return cls(kind=TypeRefKind.PRIMITIVE, name=name)


@dataclass
class IrParameter:
    name: str
    type: IrTypeRef


@dataclass
class IrAttribute:
    name: str
    type: IrTypeRef
    id: Optional[str] = None
    visibility: Optional[Visibility] = None
    is_static: Optional[bool] = None
    is_final: Optional[bool] = None
    stereotypes: List[IrStereotype] = field(default_factory=list)
    tagged_values: List[IrTaggedValue] = field(default_factory=list)
    source: Optional[IrSourceRef] = None


@dataclass
class IrOperation:
    name: str
    return_type: IrTypeRef
    id: Optional[str] = None
    parameters: List[IrParameter] = field(default_factory=list)
    visibility: Optional[Visibility] = None
    is_static: Optional[bool] = None
    is_abstract: Optional[bool] = None
    is_constructor: Optional[bool] = None
    stereotypes: List[IrStereotype] = field(default_factory=list)
    tagged_values: List[IrTaggedValue] = field(default_factory=list)
    source: Optional[IrSourceRef] = None


@dataclass
class IrClassifier:
    """A named structural entity: class, interface, component, module and so on."""

    id: str
    name: str
    kind: ClassifierKind
    qualified_name: Optional[str] = None
    package_id: Optional[str] = None
    visibility: Optional[Visibility] = None
    attributes: List[IrAttribute] = field(default_factory=list)
    operations: List[IrOperation] = field(default_factory=list)
    stereotypes: List[IrStereotype] = field(default_factory=list)
    tagged_values: List[IrTaggedValue] = field(default_factory=list)
    source: Optional[IrSourceRef] = None

    def has_stereotype(self, name: str) -> bool:
        return any(stereotype.name == name for stereotype in self.stereotypes)

    def add_stereotype(self, name: str) -> None:
        if not self.has_stereotype(name):
            self.stereotypes.append(IrStereotype(name=name))

    def set_tag(self, key: str, value: str) -> None:
        set_tagged_value(self.tagged_values, key, value)

    def get_tag(self, key: str) -> Optional[str]:
        for tagged in self.tagged_values:
            if tagged.key == key:
                return tagged.value
        return None

    def find_attribute(self, name: str) -> Optional[IrAttribute]:
        return next((attribute for attribute in self.attributes if attribute.name == name), None)


@dataclass
class IrPackage:
    id: str
    name: str
    qualified_name: Optional[str] = None
    parent_id: Optional[str] = None
    tagged_values: List[IrTaggedValue] = field(default_factory=list)


@dataclass
class IrRelation:
    id: str
    kind: RelationKind
    source_id: str
    target_id: str
    name: Optional[str] = None
    tagged_values: List[IrTaggedValue] = field(default_factory=list)
    source: Optional[IrSourceRef] = None

    def get_tag(self, key: str) -> Optional[str]:
        for tagged in self.tagged_values:
            if tagged.key == key:
                return tagged.value
        return None


@dataclass
class IrModel:
    schema_version: str = SCHEMA_VERSION
    packages: List[IrPackage] = field(default_factory=list)
    classifiers: List[IrClassifier] = field(default_factory=list)
    relations: List[IrRelation] = field(default_factory=list)
    tagged_values: List[IrTaggedValue] = field(default_factory=list)

    def classifier_by_id(self) -> Dict[str, IrClassifier]:
        return {classifier.id: classifier for classifier in self.classifiers}


def set_tagged_value(tagged_values: List[IrTaggedValue], key: str, value: str) -> None:
    """Upsert ``key`` in a tagged-value list, replacing any previous value."""
    for tagged in tagged_values:
        if tagged.key == key:
            tagged.value = value
            return
    tagged_values.append(IrTaggedValue(key=key, value=value))


def tags(pairs: Iterable[tuple[str, str]]) -> List[IrTaggedValue]:
    return [IrTaggedValue(key=key, value=value) for key, value in pairs]


def validate_model(model: IrModel) -> None:
    """Check referential integrity of relations and package ownership."""
    classifier_ids: Set[str] = {classifier.id for classifier in model.classifiers}
    package_ids: Set[str] = {package.id for package in model.packages}

    problems: List[str] = []
    for relation in model.relations:
        if relation.source_id not in classifier_ids:
            problems.append(f"relation {relation.id} has unknown sourceId {relation.source_id}")
        if relation.target_id not in classifier_ids:
            problems.append(f"relation {relation.id} has unknown targetId {relation.target_id}")
    for classifier in model.classifiers:
        if classifier.package_id is not None and classifier.package_id not in package_ids:
            problems.append(
                f"classifier {classifier.id} references unknown package {classifier.package_id}"
            )
    for package in model.packages:
        if package.parent_id is not None and package.parent_id not in package_ids:
            problems.append(f"package {package.id} references unknown parent {package.parent_id}")

    if problems:
        raise ModelIntegrityError("; ".join(problems[:10]))


__all__ = [
    "SCHEMA_VERSION",
    "ClassifierKind",
    "IrAttribute",
    "IrClassifier",
    "IrModel",
    "IrOperation",
    "IrPackage",
    "IrParameter",
    "IrRelation",
    "IrSourceRef",
    "IrStereotype",
    "IrTaggedValue",
    "IrTypeRef",
    "RelationKind",
    "TypeRefKind",
    "Visibility",
    "set_tagged_value",
    "tags",
    "validate_model",
]
