"""First pass: one classifier per qualifying declaration plus the symbol table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from tree_sitter import Node

from ..ir.ids import classifier_id
from ..ir.models import ClassifierKind, IrClassifier, Visibility
from ..logging import get_logger
from .angular import ANGULAR_SHAPES, angular_decorator
from .context import DeclarationRecord, DeclarationShape, ExtractionContext
from .parsing import ParsedFile, unwrap_parens
from .react import (
    class_component_base,
    component_function,
    fc_props_type,
    function_returns_jsx,
    is_create_context,
    is_pascal_case,
)
from .symbols import DeclaredSymbol, SymbolKey, collect_bindings

logger = get_logger("declarations")

SHAPE_KINDS: Dict[DeclarationShape, ClassifierKind] = {
    DeclarationShape.CLASS: ClassifierKind.CLASS,
    DeclarationShape.ABSTRACT_CLASS: ClassifierKind.CLASS,
    DeclarationShape.INTERFACE: ClassifierKind.INTERFACE,
    DeclarationShape.ENUM: ClassifierKind.ENUM,
    DeclarationShape.TYPE_ALIAS: ClassifierKind.TYPE_ALIAS,
    DeclarationShape.FUNCTION: ClassifierKind.FUNCTION,
    DeclarationShape.ARROW_FUNCTION: ClassifierKind.FUNCTION,
    DeclarationShape.REACT_FUNCTION_COMPONENT: ClassifierKind.COMPONENT,
    DeclarationShape.REACT_CLASS_COMPONENT: ClassifierKind.COMPONENT,
    DeclarationShape.REACT_CONTEXT: ClassifierKind.SERVICE,
    DeclarationShape.ANGULAR_COMPONENT: ClassifierKind.COMPONENT,
    DeclarationShape.ANGULAR_INJECTABLE: ClassifierKind.SERVICE,
    DeclarationShape.ANGULAR_MODULE: ClassifierKind.MODULE,
    DeclarationShape.ANGULAR_DIRECTIVE: ClassifierKind.CLASS,
    DeclarationShape.ANGULAR_PIPE: ClassifierKind.CLASS,
}

_CLASS_NODES = {"class_declaration", "abstract_class_declaration", "class"}
_NAMESPACE_NODES = {"internal_module", "module"}
_FUNCTION_VALUES = {"arrow_function", "function_expression", "function"}


@dataclass
class _Candidate:
    """A declaration node before its shape is decided."""

    node: Node
    wrapper: Node
    scope: Tuple[str, ...]
    exported: bool


def _iter_candidates(container: Node, parsed: ParsedFile, scope: Tuple[str, ...]) -> Iterator[_Candidate]:
    for statement in container.named_children:
        node = statement
        exported = False
        if statement.type == "export_statement":
            exported = True
            node = statement.child_by_field_name("declaration") or statement.child_by_field_name("value")
            if node is None:
                node = next((c for c in statement.named_children if c.type in _CLASS_NODES), None)
            if node is None:
                continue
        if node.type == "ambient_declaration":
            inner = [child for child in node.named_children if child.type != "comment"]
            if not inner:
                continue
            node = inner[0]
        if node.type == "expression_statement":
            inner = [child for child in node.named_children if child.type != "comment"]
            if len(inner) != 1 or inner[0].type not in _NAMESPACE_NODES:
                continue
            node = inner[0]
        if node.type in _NAMESPACE_NODES:
            name = parsed.text(node.child_by_field_name("name")).strip("'\"")
            body = node.child_by_field_name("body")
            if name and body is not None:
                yield from _iter_candidates(body, parsed, scope + tuple(name.split(".")))
            continue
        yield _Candidate(node, statement, scope, exported)


def _class_shape(ctx: ExtractionContext, candidate: _Candidate, parsed: ParsedFile) -> Tuple[DeclarationShape, Optional[Node]]:
    if ctx.options.angular:
        found = angular_decorator(candidate.node, candidate.wrapper, parsed)
        if found is not None:
            name, decorator = found
            return ANGULAR_SHAPES[name], decorator
    if ctx.options.react and class_component_base(candidate.node, parsed) is not None:
        return DeclarationShape.REACT_CLASS_COMPONENT, None
    if candidate.node.type == "abstract_class_declaration":
        return DeclarationShape.ABSTRACT_CLASS, None
    return DeclarationShape.CLASS, None


def _variable_shape(
    ctx: ExtractionContext, declarator: Node, parsed: ParsedFile
) -> Tuple[Optional[DeclarationShape], Optional[Node]]:
    """Shape of ``const X = ...``; ``None`` when the binding is not a classifier."""
    name = parsed.text(declarator.child_by_field_name("name"))
    value = unwrap_parens(declarator.child_by_field_name("value"))
    if value is None:
        return None, None
    if ctx.options.react:
        if is_create_context(value, parsed):
            return DeclarationShape.REACT_CONTEXT, None
        if is_pascal_case(name):
            function = component_function(value, parsed)
            is_fc, _ = fc_props_type(declarator.child_by_field_name("type"), parsed)
            if function is not None or is_fc:
                if function is None and value.type in _FUNCTION_VALUES:
                    function = value
                return DeclarationShape.REACT_FUNCTION_COMPONENT, function
    if value.type in _FUNCTION_VALUES:
        return DeclarationShape.ARROW_FUNCTION, value
    return None, None


def _shape_of(
    ctx: ExtractionContext, candidate: _Candidate, parsed: ParsedFile
) -> Iterator[Tuple[DeclarationShape, Node, str, Optional[Node], Optional[Node]]]:
    """Yield ``(shape, node, name, function_node, decorator)`` for each declared name."""
    node = candidate.node
    if node.type in _CLASS_NODES:
        name = parsed.text(node.child_by_field_name("name"))
        if name:
            shape, decorator = _class_shape(ctx, candidate, parsed)
            yield shape, node, name, None, decorator
    elif node.type == "interface_declaration":
        yield DeclarationShape.INTERFACE, node, parsed.text(node.child_by_field_name("name")), None, None
    elif node.type == "enum_declaration":
        yield DeclarationShape.ENUM, node, parsed.text(node.child_by_field_name("name")), None, None
    elif node.type == "type_alias_declaration":
        yield DeclarationShape.TYPE_ALIAS, node, parsed.text(node.child_by_field_name("name")), None, None
    elif node.type in {"function_declaration", "generator_function_declaration", "function_expression", "function"}:
        name = parsed.text(node.child_by_field_name("name"))
        if not name:
            return
        shape = DeclarationShape.FUNCTION
        if ctx.options.react and is_pascal_case(name) and function_returns_jsx(node):
            shape = DeclarationShape.REACT_FUNCTION_COMPONENT
        yield shape, node, name, node, None
    elif node.type in {"lexical_declaration", "variable_declaration"}:
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            shape, function = _variable_shape(ctx, declarator, parsed)
            if shape is not None:
                yield shape, declarator, parsed.text(name_node), function, None


def _declare(ctx: ExtractionContext, parsed: ParsedFile, candidate: _Candidate) -> None:
    exported_locals = set(ctx.symbols.bindings(parsed.rel_path).exports.values())
    for shape, node, name, function, decorator in _shape_of(ctx, candidate, parsed):
        if not name:
            continue
        kind = SHAPE_KINDS[shape]
        qualified_name = ctx.qualified_name(parsed.rel_path, candidate.scope, name)
        scoped_name = ".".join((*candidate.scope, name))
        exported = candidate.exported or scoped_name in exported_locals
        classifier = ctx.add_classifier(
            IrClassifier(
                id=classifier_id(kind.value, qualified_name),
                name=name,
                kind=kind,
                qualified_name=qualified_name,
                package_id=ctx.package_for(parsed.rel_path).id,
                visibility=Visibility.PUBLIC if exported else Visibility.PACKAGE,
                source=ctx.source_ref(parsed.rel_path, candidate.wrapper),
            )
        )
        if shape == DeclarationShape.ABSTRACT_CLASS:
            classifier.set_tag("ts.abstract", "true")
        if shape == DeclarationShape.REACT_FUNCTION_COMPONENT:
            classifier.set_tag("react.componentKind", "function")
        elif shape == DeclarationShape.REACT_CLASS_COMPONENT:
            classifier.set_tag("react.componentKind", "class")
        ctx.symbols.declare(
            SymbolKey(parsed.rel_path, scoped_name),
            DeclaredSymbol(classifier_id=classifier.id, kind=kind),
        )
        ctx.declarations.append(
            DeclarationRecord(
                shape=shape,
                file=parsed,
                node=node,
                name=name,
                scope=candidate.scope,
                classifier=classifier,
                wrapper=candidate.wrapper,
                function_node=function,
                decorator=decorator,
            )
        )


def declare_classifiers(ctx: ExtractionContext) -> None:
    """Create classifiers for every declaration in every non-declaration file."""
    for rel_path in sorted(ctx.program.files):
        ctx.symbols.set_bindings(rel_path, collect_bindings(ctx.program.files[rel_path]))

    for parsed in ctx.program.source_files():
        for candidate in _iter_candidates(parsed.root, parsed, ()):
            _declare(ctx, parsed, candidate)
    logger.debug("Declaration pass: %d classifiers", len(ctx.classifiers))


__all__ = ["SHAPE_KINDS", "DeclarationRecord", "DeclarationShape", "declare_classifiers"]
