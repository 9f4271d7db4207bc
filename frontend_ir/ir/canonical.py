"""Order-independent canonical form of an :class:`IrModel`."""

from __future__ import annotations

from dataclasses import replace
from typing import List

from .models import (
    IrAttribute,
    IrClassifier,
    IrModel,
    IrOperation,
    IrPackage,
    IrParameter,
    IrRelation,
    IrStereotype,
    IrTaggedValue,
    IrTypeRef,
)


def _sort_tagged(values: List[IrTaggedValue]) -> List[IrTaggedValue]:
    return sorted(
        (IrTaggedValue(key=value.key, value=value.value) for value in values),
        key=lambda tagged: (tagged.key, tagged.value),
    )


def _sort_stereotypes(values: List[IrStereotype]) -> List[IrStereotype]:
    return sorted(
        (replace(stereotype) for stereotype in values),
        key=lambda stereotype: (stereotype.name, stereotype.qualified_name or ""),
    )


def _canonical_type(type_ref: IrTypeRef) -> IrTypeRef:
    # typeArgs are positional and keep their order.
    return IrTypeRef(
        kind=type_ref.kind,
        name=type_ref.name,
        type_args=[_canonical_type(arg) for arg in type_ref.type_args],
        element_type=_canonical_type(type_ref.element_type) if type_ref.element_type else None,
    )


def _member_key(member) -> tuple[str, str]:
    return (member.id or member.name, member.name)


def _canonical_attribute(attribute: IrAttribute) -> IrAttribute:
    return replace(
        attribute,
        type=_canonical_type(attribute.type),
        stereotypes=_sort_stereotypes(attribute.stereotypes),
        tagged_values=_sort_tagged(attribute.tagged_values),
    )


def _canonical_operation(operation: IrOperation) -> IrOperation:
    parameters = sorted(
        (IrParameter(name=param.name, type=_canonical_type(param.type)) for param in operation.parameters),
        key=lambda param: param.name,
    )
    return replace(
        operation,
        return_type=_canonical_type(operation.return_type),
        parameters=parameters,
        stereotypes=_sort_stereotypes(operation.stereotypes),
        tagged_values=_sort_tagged(operation.tagged_values),
    )


def _canonical_classifier(classifier: IrClassifier) -> IrClassifier:
    return replace(
        classifier,
        attributes=sorted(
            (_canonical_attribute(attribute) for attribute in classifier.attributes),
            key=_member_key,
        ),
        operations=sorted(
            (_canonical_operation(operation) for operation in classifier.operations),
            key=_member_key,
        ),
        stereotypes=_sort_stereotypes(classifier.stereotypes),
        tagged_values=_sort_tagged(classifier.tagged_values),
    )


def _canonical_package(package: IrPackage) -> IrPackage:
    return replace(package, tagged_values=_sort_tagged(package.tagged_values))


def _canonical_relation(relation: IrRelation) -> IrRelation:
    return replace(relation, tagged_values=_sort_tagged(relation.tagged_values))


def canonicalize_model(model: IrModel) -> IrModel:
    """Return a sorted copy of ``model``; the input is left untouched."""
    return IrModel(
        schema_version=model.schema_version,
        packages=sorted((_canonical_package(p) for p in model.packages), key=lambda p: p.id),
        classifiers=sorted(
            (_canonical_classifier(c) for c in model.classifiers), key=lambda c: c.id
        ),
        relations=sorted((_canonical_relation(r) for r in model.relations), key=lambda r: r.id),
        tagged_values=_sort_tagged(model.tagged_values),
    )


__all__ = ["canonicalize_model"]
