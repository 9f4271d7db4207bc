"""Second pass: attributes, operations and structural relations."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node

from ..ir.ids import member_id
from ..ir.models import (
    IrAttribute,
    IrClassifier,
    IrOperation,
    IrParameter,
    IrTypeRef,
    RelationKind,
    TypeRefKind,
    Visibility,
)
from ..logging import get_logger
from .context import DeclarationRecord, DeclarationShape, ExtractionContext
from .parsing import ParsedFile, walk
from .typerefs import collapse_whitespace, referenced_type_names, type_ref_from_node

logger = get_logger("members")

CLASS_SHAPES = {
    DeclarationShape.CLASS,
    DeclarationShape.ABSTRACT_CLASS,
    DeclarationShape.REACT_CLASS_COMPONENT,
    DeclarationShape.ANGULAR_COMPONENT,
    DeclarationShape.ANGULAR_INJECTABLE,
    DeclarationShape.ANGULAR_MODULE,
    DeclarationShape.ANGULAR_DIRECTIVE,
    DeclarationShape.ANGULAR_PIPE,
}
FUNCTION_SHAPES = {
    DeclarationShape.FUNCTION,
    DeclarationShape.ARROW_FUNCTION,
    DeclarationShape.REACT_FUNCTION_COMPONENT,
}
_FUNCTION_VALUES = {"arrow_function", "function_expression", "function"}
_VISIBILITY = {
    "public": Visibility.PUBLIC,
    "protected": Visibility.PROTECTED,
    "private": Visibility.PRIVATE,
}


def link_type_references(
    ctx: ExtractionContext,
    record: DeclarationRecord,
    type_node: Optional[Node],
    *,
    member: str,
    origin: str,
    direct: bool = True,
) -> None:
    """Emit ASSOCIATION for direct references and, with ``include_deps``, DEPENDENCY for all."""
    if type_node is None:
        return
    parsed = record.file
    source = ctx.source_ref(parsed.rel_path, type_node)
    for name, is_direct in referenced_type_names(type_node, parsed, direct):
        symbol = ctx.symbols.resolve(parsed.rel_path, name, record.scope)
        if symbol is None:
            continue
        if is_direct:
            ctx.add_relation(
                RelationKind.ASSOCIATION,
                record.classifier.id,
                symbol.classifier_id,
                tags=[("member", member)],
                source=source,
            )
        if ctx.options.include_deps:
            ctx.add_relation(
                RelationKind.DEPENDENCY,
                record.classifier.id,
                symbol.classifier_id,
                tags=[("origin", origin)],
                source=source,
            )


def link_usages(ctx: ExtractionContext, record: DeclarationRecord, body: Optional[Node]) -> None:
    """DEPENDENCY edges for ``new X()``, ``X()`` and ``X.m()`` inside ``body``."""
    if body is None or not ctx.options.include_deps:
        return
    parsed = record.file
    for node in walk(body):
        if node.type == "new_expression":
            target = node.child_by_field_name("constructor")
        elif node.type == "call_expression":
            target = node.child_by_field_name("function")
            if target is not None and target.type == "member_expression":
                target = target.child_by_field_name("object")
        else:
            continue
        if target is None or target.type not in {"identifier", "member_expression"}:
            continue
        symbol = ctx.symbols.resolve(parsed.rel_path, parsed.text(target), record.scope)
        if symbol is None:
            continue
        ctx.add_relation(
            RelationKind.DEPENDENCY,
            record.classifier.id,
            symbol.classifier_id,
            tags=[("origin", "usage")],
            source=ctx.source_ref(parsed.rel_path, node),
        )


# Member helpers ---------------------------------------------------------------


def _modifiers(node: Node, parsed: ParsedFile) -> Tuple[Visibility, bool, bool, bool]:
    visibility = Visibility.PUBLIC
    is_static = is_readonly = is_abstract = False
    for child in node.children:
        if child.type == "accessibility_modifier":
            visibility = _VISIBILITY.get(parsed.text(child).strip(), Visibility.PUBLIC)
        elif child.type == "static":
            is_static = True
        elif child.type == "readonly":
            is_readonly = True
        elif child.type == "abstract":
            is_abstract = True
    name = node.child_by_field_name("name")
    if name is not None and name.type == "private_property_identifier":
        visibility = Visibility.PRIVATE
    return visibility, is_static, is_readonly, is_abstract


def _annotation_type(annotation: Optional[Node]) -> Optional[Node]:
    if annotation is None:
        return None
    if annotation.type == "type_annotation":
        named = [child for child in annotation.named_children if child.type != "comment"]
        return named[0] if named else None
    return annotation


def _pattern_name(pattern: Optional[Node], parsed: ParsedFile, index: int) -> str:
    if pattern is None:
        return f"arg{index}"
    if pattern.type in {"identifier", "this"}:
        return parsed.text(pattern)
    if pattern.type == "rest_pattern":
        inner = next((child for child in pattern.named_children if child.type == "identifier"), None)
        if inner is not None:
            return parsed.text(inner)
    if pattern.type == "assignment_pattern":
        return _pattern_name(pattern.child_by_field_name("left"), parsed, index)
    return f"arg{index}"


def iter_parameters(function: Node, parsed: ParsedFile) -> Iterator[Tuple[str, Optional[Node], Node]]:
    """Yield ``(name, type_node, parameter_node)`` for each declared parameter."""
    parameters = function.child_by_field_name("parameters")
    if parameters is None:
        single = function.child_by_field_name("parameter")
        if single is not None:
            yield parsed.text(single), None, single
        return
    index = 0
    for child in parameters.named_children:
        if child.type == "comment":
            continue
        if child.type in {"required_parameter", "optional_parameter"}:
            name = _pattern_name(child.child_by_field_name("pattern"), parsed, index)
            type_node = _annotation_type(child.child_by_field_name("type"))
        else:
            name = _pattern_name(child, parsed, index)
            type_node = None
        index += 1
        if name == "this":
            continue
        yield name, type_node, child


def _type_or_unknown(type_node: Optional[Node], parsed: ParsedFile) -> IrTypeRef:
    return type_ref_from_node(type_node, parsed) if type_node is not None else IrTypeRef.unknown()


def _add_attribute(classifier: IrClassifier, attribute: IrAttribute) -> bool:
    if any(existing.id == attribute.id for existing in classifier.attributes):
        return False
    classifier.attributes.append(attribute)
    return True


def _add_operation(classifier: IrClassifier, operation: IrOperation) -> bool:
    if any(existing.id == operation.id for existing in classifier.operations):
        return False
    classifier.operations.append(operation)
    return True


def _build_operation(
    ctx: ExtractionContext,
    record: DeclarationRecord,
    name: str,
    function: Node,
    *,
    origin_node: Node,
    visibility: Optional[Visibility] = None,
    is_static: Optional[bool] = None,
    is_abstract: Optional[bool] = None,
    is_constructor: Optional[bool] = None,
) -> IrOperation:
    parsed = record.file
    parameters: List[IrParameter] = []
    for param_name, type_node, _ in iter_parameters(function, parsed):
        parameters.append(IrParameter(name=param_name, type=_type_or_unknown(type_node, parsed)))
        link_type_references(ctx, record, type_node, member=name, origin="signature")

    return_node = _annotation_type(function.child_by_field_name("return_type"))
    if is_constructor:
        return_type = IrTypeRef.named(record.classifier.name)
    else:
        return_type = _type_or_unknown(return_node, parsed)
        link_type_references(ctx, record, return_node, member=name, origin="signature")

    operation = IrOperation(
        id=member_id("o:", record.classifier.id, name),
        name=name,
        return_type=return_type,
        parameters=parameters,
        visibility=visibility,
        is_static=is_static,
        is_abstract=is_abstract,
        is_constructor=is_constructor,
        source=ctx.source_ref(parsed.rel_path, origin_node),
    )
    _add_operation(record.classifier, operation)
    link_usages(ctx, record, function.child_by_field_name("body"))
    return operation


def _build_attribute(
    ctx: ExtractionContext,
    record: DeclarationRecord,
    name: str,
    type_node: Optional[Node],
    origin_node: Node,
    *,
    visibility: Optional[Visibility] = None,
    is_static: Optional[bool] = None,
    is_final: Optional[bool] = None,
) -> IrAttribute:
    parsed = record.file
    attribute = IrAttribute(
        id=member_id("a:", record.classifier.id, name),
        name=name,
        type=_type_or_unknown(type_node, parsed),
        visibility=visibility,
        is_static=is_static,
        is_final=is_final,
        source=ctx.source_ref(parsed.rel_path, origin_node),
    )
    _add_attribute(record.classifier, attribute)
    link_type_references(ctx, record, type_node, member=name, origin="typeRef")
    return attribute


# Heritage ---------------------------------------------------------------------


def _heritage_name(node: Node, parsed: ParsedFile) -> Optional[str]:
    if node.type == "generic_type":
        return parsed.text(node.child_by_field_name("name"))
    if node.type in {"identifier", "type_identifier", "member_expression", "nested_type_identifier"}:
        return parsed.text(node)
    return None


def _link_supertype(
    ctx: ExtractionContext, record: DeclarationRecord, node: Node, kind: RelationKind
) -> None:
    parsed = record.file
    name = _heritage_name(node, parsed)
    if not name:
        return
    symbol = ctx.symbols.resolve(parsed.rel_path, name, record.scope)
    if symbol is None or symbol.classifier_id == record.classifier.id:
        return
    ctx.add_relation(
        kind,
        record.classifier.id,
        symbol.classifier_id,
        source=ctx.source_ref(parsed.rel_path, node),
    )


def _class_heritage(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    for heritage in record.node.named_children:
        if heritage.type != "class_heritage":
            continue
        for clause in heritage.named_children:
            if clause.type == "extends_clause":
                values = clause.children_by_field_name("value") or [
                    child for child in clause.named_children if child.type != "type_arguments"
                ]
                for value in values:
                    _link_supertype(ctx, record, value, RelationKind.INHERITANCE)
                link_type_references(
                    ctx,
                    record,
                    clause.child_by_field_name("type_arguments"),
                    member="extends",
                    origin="typeRef",
                    direct=False,
                )
            elif clause.type == "implements_clause":
                for type_node in clause.named_children:
                    _link_supertype(ctx, record, type_node, RelationKind.IMPLEMENTATION)


def _interface_heritage(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    for clause in record.node.named_children:
        if clause.type != "extends_type_clause":
            continue
        for type_node in clause.children_by_field_name("type") or clause.named_children:
            _link_supertype(ctx, record, type_node, RelationKind.INHERITANCE)


# Declaration kinds -------------------------------------------------------------


def _constructor_properties(ctx: ExtractionContext, record: DeclarationRecord, constructor: Node) -> None:
    parsed = record.file
    for name, type_node, parameter in iter_parameters(constructor, parsed):
        visibility, _, is_readonly, _ = _modifiers(parameter, parsed)
        has_modifier = any(child.type in {"accessibility_modifier", "readonly"} for child in parameter.children)
        if not has_modifier:
            continue
        _build_attribute(
            ctx,
            record,
            name,
            type_node,
            parameter,
            visibility=visibility,
            is_static=False,
            is_final=is_readonly,
        )


def _class_members(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    parsed = record.file
    body = record.node.child_by_field_name("body")
    if body is None:
        return
    for member in body.named_children:
        name_node = member.child_by_field_name("name")
        if name_node is None:
            continue
        name = parsed.text(name_node)
        visibility, is_static, is_readonly, is_abstract = _modifiers(member, parsed)

        if member.type == "public_field_definition":
            value = member.child_by_field_name("value")
            type_node = _annotation_type(member.child_by_field_name("type"))
            if value is not None and value.type in _FUNCTION_VALUES and type_node is None:
                _build_operation(
                    ctx, record, name, value, origin_node=member, visibility=visibility, is_static=is_static
                )
                continue
            _build_attribute(
                ctx,
                record,
                name,
                type_node,
                member,
                visibility=visibility,
                is_static=is_static,
                is_final=is_readonly,
            )
            link_usages(ctx, record, value)
        elif member.type == "method_definition":
            is_constructor = name == "constructor"
            _build_operation(
                ctx,
                record,
                name,
                member,
                origin_node=member,
                visibility=visibility,
                is_static=is_static,
                is_constructor=True if is_constructor else None,
            )
            if is_constructor:
                _constructor_properties(ctx, record, member)
        elif member.type in {"method_signature", "abstract_method_signature"}:
            _build_operation(
                ctx,
                record,
                name,
                member,
                origin_node=member,
                visibility=visibility,
                is_static=is_static,
                is_abstract=True if member.type == "abstract_method_signature" or is_abstract else None,
            )


def _interface_members(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    parsed = record.file
    body = record.node.child_by_field_name("body")
    if body is None:
        return
    for member in body.named_children:
        name_node = member.child_by_field_name("name")
        if name_node is None:
            continue
        name = parsed.text(name_node)
        _, _, is_readonly, _ = _modifiers(member, parsed)
        if member.type == "property_signature":
            _build_attribute(
                ctx,
                record,
                name,
                _annotation_type(member.child_by_field_name("type")),
                member,
                visibility=Visibility.PUBLIC,
                is_final=is_readonly or None,
            )
        elif member.type == "method_signature":
            _build_operation(
                ctx, record, name, member, origin_node=member, visibility=Visibility.PUBLIC, is_abstract=True
            )


def _enum_members(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    parsed = record.file
    body = record.node.child_by_field_name("body")
    if body is None:
        return
    for member in body.named_children:
        if member.type == "enum_assignment":
            name_node = member.child_by_field_name("name")
            value = member.child_by_field_name("value")
        elif member.type in {"property_identifier", "string"}:
            name_node, value = member, None
        else:
            continue
        name = parsed.text(name_node).strip("'\"")
        primitive = "string" if value is not None and value.type in {"string", "template_string"} else "number"
        attribute = IrAttribute(
            id=member_id("a:", record.classifier.id, name),
            name=name,
            type=IrTypeRef(kind=TypeRefKind.PRIMITIVE, name=primitive),
            visibility=Visibility.PUBLIC,
            is_static=True,
            is_final=True,
            source=ctx.source_ref(parsed.rel_path, member),
        )
        _add_attribute(record.classifier, attribute)


def _type_alias(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    value = record.node.child_by_field_name("value")
    if value is None:
        return
    record.classifier.set_tag("ts.typeAlias", collapse_whitespace(record.file.text(value)))
    link_type_references(ctx, record, value, member=record.name, origin="typeRef", direct=False)


def _function(ctx: ExtractionContext, record: DeclarationRecord) -> None:
    function = record.function_node or record.node
    _build_operation(ctx, record, record.name, function, origin_node=record.node, visibility=Visibility.PUBLIC)


def extract_members_and_relations(ctx: ExtractionContext) -> None:
    """Fill members of every declared classifier and emit structural relations."""
    for record in ctx.declarations:
        if record.shape in CLASS_SHAPES:
            _class_heritage(ctx, record)
            _class_members(ctx, record)
        elif record.shape == DeclarationShape.INTERFACE:
            _interface_heritage(ctx, record)
            _interface_members(ctx, record)
        elif record.shape == DeclarationShape.ENUM:
            _enum_members(ctx, record)
        elif record.shape == DeclarationShape.TYPE_ALIAS:
            _type_alias(ctx, record)
        elif record.shape in FUNCTION_SHAPES:
            _function(ctx, record)
    logger.debug(
        "Member pass: %d declarations, %d relations", len(ctx.declarations), len(ctx.relations)
    )


__all__ = [
    "CLASS_SHAPES",
    "FUNCTION_SHAPES",
    "extract_members_and_relations",
    "iter_parameters",
    "link_type_references",
    "link_usages",
]
