"""Intermediate representation model, identifiers and serialization."""

from .canonical import canonicalize_model
from .ids import hash_id
from .models import (
    ClassifierKind,
    IrAttribute,
    IrClassifier,
    IrModel,
    IrOperation,
    IrPackage,
    IrParameter,
    IrRelation,
    IrSourceRef,
    IrStereotype,
    IrTaggedValue,
    IrTypeRef,
    RelationKind,
    TypeRefKind,
    Visibility,
    validate_model,
)
from .serialize import SCHEMA_PATH, load_ir_schema, serialize_model, stable_dumps, write_ir_json

__all__ = [
    "SCHEMA_PATH",
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
    "canonicalize_model",
    "hash_id",
    "load_ir_schema",
    "serialize_model",
    "stable_dumps",
    "validate_model",
    "write_ir_json",
]
