"""Type annotation to :class:`IrTypeRef` conversion and referenced-name collection."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node

from ..ir.models import IrTypeRef, TypeRefKind
from .parsing import ParsedFile

PRIMITIVE_TYPES = {
    "any",
    "bigint",
    "boolean",
    "never",
    "null",
    "number",
    "object",
    "string",
    "symbol",
    "undefined",
    "unknown",
    "void",
}
ARRAY_GENERICS = {"Array", "ReadonlyArray"}
_WRAPPERS = {"type_annotation", "parenthesized_type", "readonly_type", "opting_type_annotation", "omitting_type_annotation"}
_OPAQUE = {"object_type", "function_type", "constructor_type", "tuple_type", "type_query", "conditional_type", "mapped_type_clause", "template_literal_type", "index_type_query", "lookup_type"}


def _inner(node: Node) -> Optional[Node]:
    named = [child for child in node.named_children if child.type != "comment"]
    return named[0] if named else None


def _literal_primitive(node: Node, parsed: ParsedFile) -> str:
    child = _inner(node)
    if child is None:
        return parsed.text(node)
    if child.type in {"string", "template_string"}:
        return "string"
    if child.type == "number" or child.type == "unary_expression":
        return "number"
    if child.type in {"true", "false"}:
        return "boolean"
    return parsed.text(child)


def _flatten(node: Node, node_type: str) -> List[Node]:
    members: List[Node] = []
    for child in node.named_children:
        if child.type == node_type:
            members.extend(_flatten(child, node_type))
        elif child.type != "comment":
            members.append(child)
    return members


def type_ref_from_node(node: Optional[Node], parsed: ParsedFile) -> IrTypeRef:
    """Describe the written type; anything without a name becomes ``UNKNOWN``."""
    if node is None:
        return IrTypeRef.unknown()
    if node.type in _WRAPPERS:
        return type_ref_from_node(_inner(node), parsed)
    if node.type == "predefined_type":
        return IrTypeRef.primitive(parsed.text(node))
    if node.type == "literal_type":
        return IrTypeRef.primitive(_literal_primitive(node, parsed))
    if node.type in {"type_identifier", "identifier", "nested_type_identifier"}:
        name = parsed.text(node)
        if name in PRIMITIVE_TYPES:
            return IrTypeRef.primitive(name)
        return IrTypeRef.named(name)
    if node.type == "generic_type":
        name = parsed.text(node.child_by_field_name("name"))
        arguments = node.child_by_field_name("type_arguments")
        args = [type_ref_from_node(arg, parsed) for arg in (arguments.named_children if arguments else [])]
        if name in ARRAY_GENERICS and len(args) == 1:
            return IrTypeRef(kind=TypeRefKind.ARRAY, element_type=args[0])
        return IrTypeRef(kind=TypeRefKind.GENERIC, name=name, type_args=args)
    if node.type == "array_type":
        return IrTypeRef(kind=TypeRefKind.ARRAY, element_type=type_ref_from_node(_inner(node), parsed))
    if node.type == "union_type":
        return IrTypeRef(
            kind=TypeRefKind.UNION,
            type_args=[type_ref_from_node(member, parsed) for member in _flatten(node, "union_type")],
        )
    if node.type == "intersection_type":
        return IrTypeRef(
            kind=TypeRefKind.INTERSECTION,
            type_args=[type_ref_from_node(member, parsed) for member in _flatten(node, "intersection_type")],
        )
    if node.type == "this_type":
        return IrTypeRef.unknown("this")
    if node.type == "function_type":
        return IrTypeRef.unknown("function")
    if node.type == "object_type":
        return IrTypeRef.unknown("object")
    if node.type == "tuple_type":
        return IrTypeRef.unknown("tuple")
    return IrTypeRef.unknown()


def referenced_type_names(node: Optional[Node], parsed: ParsedFile, direct: bool = True) -> Iterator[Tuple[str, bool]]:
    """Yield ``(name, direct)`` for every named type written under ``node``.

    Array elements and union or intersection members are direct references;
    generic type arguments and names nested in object, function or tuple
    types are not.
    """
    if node is None:
        return
    if node.type in {"type_identifier", "nested_type_identifier"}:
        name = parsed.text(node)
        if name not in PRIMITIVE_TYPES:
            yield name, direct
        return
    if node.type == "generic_type":
        name_node = node.child_by_field_name("name")
        name = parsed.text(name_node)
        if name not in ARRAY_GENERICS:
            yield from referenced_type_names(name_node, parsed, direct)
        arguments = node.child_by_field_name("type_arguments")
        if arguments is not None:
            args_direct = direct and name in ARRAY_GENERICS
            for argument in arguments.named_children:
                yield from referenced_type_names(argument, parsed, args_direct)
        return
    if node.type in {"predefined_type", "literal_type"}:
        return
    child_direct = direct and node.type not in _OPAQUE
    for child in node.named_children:
        yield from referenced_type_names(child, parsed, child_direct)


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


__all__ = [
    "ARRAY_GENERICS",
    "PRIMITIVE_TYPES",
    "collapse_whitespace",
    "referenced_type_names",
    "type_ref_from_node",
]
