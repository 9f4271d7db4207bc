"""Canonical ordering, deterministic serialization and model integrity."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from frontend_ir.errors import ModelIntegrityError
from frontend_ir.ir.canonical import canonicalize_model
from frontend_ir.ir.ids import classifier_id, hash_id, member_id, relation_id
from frontend_ir.ir.models import (
    ClassifierKind,
    IrAttribute,
    IrClassifier,
    IrModel,
    IrPackage,
    IrRelation,
    IrStereotype,
    IrTaggedValue,
    IrTypeRef,
    RelationKind,
    validate_model,
)
from frontend_ir.ir.serialize import model_to_dict, serialize_model, write_ir_json


def _package() -> IrPackage:
    return IrPackage(id="pkg:root", name="(root)", qualified_name="(root)")


def _classifier(name: str, *, attributes=(), tags=(), stereotypes=()) -> IrClassifier:
    return IrClassifier(
        id=classifier_id("CLASS", name),
        name=name,
        kind=ClassifierKind.CLASS,
        qualified_name=name,
        package_id="pkg:root",
        attributes=list(attributes),
        stereotypes=list(stereotypes),
        tagged_values=[IrTaggedValue(key=key, value=value) for key, value in tags],
    )


def _models() -> tuple[IrModel, IrModel]:
    user = _classifier("User", tags=[("b", "2"), ("a", "1")], stereotypes=[IrStereotype(name="Z"), IrStereotype(name="A")])
    order = _classifier(
        "Order",
        attributes=[
            IrAttribute(id=member_id("a:", "x", "total"), name="total", type=IrTypeRef.primitive("number")),
            IrAttribute(id=member_id("a:", "x", "buyer"), name="buyer", type=IrTypeRef.named("User")),
        ],
    )
    relation = IrRelation(
        id=relation_id("ASSOCIATION", order.id, user.id),
        kind=RelationKind.ASSOCIATION,
        source_id=order.id,
        target_id=user.id,
        tagged_values=[IrTaggedValue(key="member", value="buyer")],
    )
    first = IrModel(packages=[_package()], classifiers=[user, order], relations=[relation])

    order_reversed = _classifier("Order", attributes=list(reversed(order.attributes)))
    user_reversed = _classifier(
        "User", tags=[("a", "1"), ("b", "2")], stereotypes=[IrStereotype(name="A"), IrStereotype(name="Z")]
    )
    second = IrModel(packages=[_package()], classifiers=[order_reversed, user_reversed], relations=[relation])
    return first, second


def test_serialization_is_independent_of_insertion_order() -> None:
    first, second = _models()
    assert serialize_model(first) == serialize_model(second)


def test_canonicalize_sorts_without_mutating_input() -> None:
    first, _ = _models()
    original_order = [classifier.name for classifier in first.classifiers]

    canonical = canonicalize_model(first)

    assert [classifier.name for classifier in first.classifiers] == original_order
    assert [classifier.id for classifier in canonical.classifiers] == sorted(c.id for c in first.classifiers)
    user = next(c for c in canonical.classifiers if c.name == "User")
    assert [tag.key for tag in user.tagged_values] == ["a", "b"]
    assert [stereotype.name for stereotype in user.stereotypes] == ["A", "Z"]


def test_serialized_json_has_sorted_keys_and_trailing_newline() -> None:
    first, _ = _models()
    text = serialize_model(first)

    assert text.endswith("}\n")
    payload = json.loads(text)
    assert list(payload) == sorted(payload)
    assert payload["schemaVersion"] == "1.0"
    assert '\n  "classifiers"' in text


def test_strip_stereotypes_removes_every_stereotype_key() -> None:
    first, _ = _models()
    payload = model_to_dict(first, strip_stereotypes=True)
    assert all("stereotypes" not in classifier for classifier in payload["classifiers"])


def test_write_ir_json_leaves_no_temp_files(tmp_path: Path) -> None:
    first, _ = _models()
    target = tmp_path / "out" / "model.ir.json"

    text = write_ir_json(target, first)

    assert target.read_text(encoding="utf-8") == text
    assert [path.name for path in target.parent.iterdir()] == ["model.ir.json"]


def test_validate_model_rejects_dangling_relation() -> None:
    first, _ = _models()
    first.relations.append(
        IrRelation(id="r:bad", kind=RelationKind.DEPENDENCY, source_id="c:missing", target_id=first.classifiers[0].id)
    )
    with pytest.raises(ModelIntegrityError, match="c:missing"):
        validate_model(first)


def test_validate_model_rejects_unknown_package() -> None:
    first, _ = _models()
    first.classifiers[0].package_id = "pkg:nowhere"
    with pytest.raises(ModelIntegrityError, match="pkg:nowhere"):
        validate_model(first)


def test_ids_are_prefixed_content_hashes() -> None:
    assert hash_id("c:", "CLASS:User") == classifier_id("CLASS", "User")
    assert classifier_id("CLASS", "User").startswith("c:")
    assert len(classifier_id("CLASS", "User")) == len("c:") + 16
    assert relation_id("DEPENDENCY", "a", "b", "import:./x") != relation_id("DEPENDENCY", "a", "b", "require:./x")
