"""React component detection, render edges and context wiring."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Node

from ..ir.ids import member_id
from ..ir.models import ClassifierKind, IrAttribute, IrClassifier, IrTaggedValue, RelationKind
from ..logging import get_logger
from ..report import FindingKind
from .context import DeclarationRecord, DeclarationShape, ExtractionContext
from .members import link_type_references
from .parsing import ParsedFile, line_of, unwrap_parens, walk
from .typerefs import collapse_whitespace, type_ref_from_node

logger = get_logger("react")

_PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9_]*$")
_JSX_ROOTS = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}
_FUNCTION_TYPES = {"arrow_function", "function_expression", "function"}
_COMPONENT_BASES = {"React.Component", "Component", "React.PureComponent", "PureComponent"}
_FC_TYPES = {"React.FC", "FC", "React.FunctionComponent", "FunctionComponent"}
_WRAPPER_CALLS = {"memo", "React.memo", "forwardRef", "React.forwardRef"}
_FRAGMENTS = {"Fragment", "React.Fragment"}
_CONTEXT_MEMBERS = {"Provider": "provider", "Consumer": "consumer"}


def is_pascal_case(name: str) -> bool:
    return bool(_PASCAL_CASE.match(name))


def is_jsx(node: Optional[Node]) -> bool:
    node = unwrap_parens(node)
    return node is not None and node.type in _JSX_ROOTS


def function_returns_jsx(function: Node) -> bool:
    """True when the expression body, or a top-level ``return`` of a block body, is JSX."""
    body = function.child_by_field_name("body")
    if body is None:
        return False
    if body.type != "statement_block":
        return is_jsx(body)
    for statement in body.named_children:
        if statement.type != "return_statement":
            continue
        value = next((child for child in statement.named_children if child.type != "comment"), None)
        if is_jsx(value):
            return True
    return False


def component_function(value: Optional[Node], parsed: ParsedFile) -> Optional[Node]:
    """Return the render function behind ``value`` (plain, ``memo`` or ``forwardRef`` wrapped)."""
    value = unwrap_parens(value)
    if value is None:
        return None
    if value.type in _FUNCTION_TYPES:
        return value if function_returns_jsx(value) else None
    if value.type == "call_expression" and parsed.text(value.child_by_field_name("function")) in _WRAPPER_CALLS:
        arguments = value.child_by_field_name("arguments")
        for argument in arguments.named_children if arguments is not None else []:
            inner = component_function(argument, parsed)
            if inner is not None:
                return inner
    return None


def fc_props_type(type_annotation: Optional[Node], parsed: ParsedFile) -> Tuple[bool, Optional[Node]]:
    """Detect ``React.FC<P>`` annotations; returns ``(is_fc, props_type_node)``."""
    if type_annotation is None:
        return False, None
    node = type_annotation
    if node.type == "type_annotation":
        node = node.named_children[0] if node.named_children else None
    if node is None:
        return False, None
    if node.type in {"type_identifier", "nested_type_identifier"}:
        return parsed.text(node) in _FC_TYPES, None
    if node.type != "generic_type":
        return False, None
    if parsed.text(node.child_by_field_name("name")) not in _FC_TYPES:
        return False, None
    arguments = node.child_by_field_name("type_arguments")
    args = arguments.named_children if arguments is not None else []
    return True, args[0] if args else None


def class_component_base(class_node: Node, parsed: ParsedFile) -> Optional[List[Node]]:
    """Return the type arguments of a ``React.Component`` superclass, or ``None``."""
    for heritage in class_node.named_children:
        if heritage.type != "class_heritage":
            continue
        for clause in heritage.named_children:
            if clause.type != "extends_clause":
                continue
            value = clause.child_by_field_name("value")
            if parsed.text(value) not in _COMPONENT_BASES:
                return None
            arguments = clause.child_by_field_name("type_arguments")
            return list(arguments.named_children) if arguments is not None else []
    return None


def is_create_context(value: Optional[Node], parsed: ParsedFile) -> bool:
    value = unwrap_parens(value)
    if value is None or value.type != "call_expression":
        return False
    callee = parsed.text(value.child_by_field_name("function"))
    return callee == "createContext" or callee.endswith(".createContext")


def jsx_tag_name(node: Node, parsed: ParsedFile) -> Optional[str]:
    """Tag name of a JSX element or self-closing element; ``None`` for fragments."""
    target = node
    if node.type == "jsx_element":
        target = node.child_by_field_name("open_tag") or next(
            (child for child in node.named_children if child.type == "jsx_opening_element"), None
        )
        if target is None:
            return None
    name = target.child_by_field_name("name")
    return parsed.text(name) if name is not None else None


def _props_and_state(record: DeclarationRecord, parsed: ParsedFile) -> Tuple[Optional[Node], Optional[Node]]:
    if record.classifier.get_tag("react.componentKind") == "class":
        args = class_component_base(record.node, parsed) or []
        return (args[0] if args else None, args[1] if len(args) > 1 else None)

    type_annotation = record.node.child_by_field_name("type") if record.node.type == "variable_declarator" else None
    _, props = fc_props_type(type_annotation, parsed)
    if props is not None:
        return props, None
    function = record.function_node
    if function is None:
        return None, None
    parameters = function.child_by_field_name("parameters")
    if parameters is None:
        # Single untyped arrow parameter.
        return None, None
    first = next(
        (child for child in parameters.named_children if child.type in {"required_parameter", "optional_parameter"}),
        None,
    )
    if first is None:
        return None, None
    annotation = first.child_by_field_name("type")
    return (annotation.named_children[0] if annotation is not None and annotation.named_children else None), None


def _upsert_role_attribute(ctx: ExtractionContext, record: DeclarationRecord, role: str, type_node: Node) -> None:
    parsed = record.file
    classifier = record.classifier
    type_ref = type_ref_from_node(type_node, parsed)
    attribute = classifier.find_attribute(role)
    if attribute is None:
        attribute = IrAttribute(
            id=member_id("a:", classifier.id, role),
            name=role,
            type=type_ref,
            source=ctx.source_ref(parsed.rel_path, type_node),
        )
        classifier.attributes.append(attribute)
    else:
        attribute.type = type_ref
    attribute.tagged_values = [tag for tag in attribute.tagged_values if tag.key != "react.role"]
    attribute.tagged_values.append(IrTaggedValue(key="react.role", value=role))
    classifier.set_tag(f"react.{role}Type", collapse_whitespace(parsed.text(type_node)))

    link_type_references(ctx, record, type_node, member=role, origin="typeRef")


def _annotate_components(ctx: ExtractionContext, components: List[DeclarationRecord]) -> None:
    for record in components:
        classifier = record.classifier
        classifier.add_stereotype("ReactComponent")
        classifier.set_tag("framework", "react")
        props, state = _props_and_state(record, record.file)
        if props is not None:
            _upsert_role_attribute(ctx, record, "props", props)
        if state is not None:
            _upsert_role_attribute(ctx, record, "state", state)


def _annotate_contexts(ctx: ExtractionContext, contexts: List[DeclarationRecord]) -> None:
    for record in contexts:
        classifier = record.classifier
        classifier.add_stereotype("ReactContext")
        classifier.set_tag("framework", "react")
        value = unwrap_parens(record.node.child_by_field_name("value"))
        type_args = value.child_by_field_name("type_arguments") if value is not None else None
        type_node = type_args.named_children[0] if type_args is not None and type_args.named_children else None
        if type_node is None:
            type_node = record.node.child_by_field_name("type")
        if type_node is not None:
            classifier.set_tag("react.contextType", collapse_whitespace(record.file.text(type_node)))


class _Owners:
    """Finds the innermost declaration enclosing a node of a file."""

    def __init__(self, records: List[DeclarationRecord]) -> None:
        self._spans = sorted(
            ((record.node.start_byte, record.node.end_byte, record) for record in records),
            key=lambda span: (span[0], -span[1]),
        )

    def owner_of(self, node: Node) -> Optional[DeclarationRecord]:
        best = None
        for start, end, record in self._spans:
            if start > node.start_byte:
                break
            if end >= node.end_byte:
                best = record
        return best


def _component_by_name(ctx: ExtractionContext) -> Dict[str, Optional[IrClassifier]]:
    index: Dict[str, Optional[IrClassifier]] = {}
    for record in ctx.declarations:
        if record.classifier.kind != ClassifierKind.COMPONENT or not record.classifier.has_stereotype("ReactComponent"):
            continue
        name = record.classifier.name
        # Ambiguous names resolve to nothing.
        index[name] = None if name in index and index[name] is not record.classifier else record.classifier
    return index


def _resolve_context(
    ctx: ExtractionContext, parsed: ParsedFile, name: str, scope: Sequence[str]
) -> Optional[IrClassifier]:
    symbol = ctx.symbols.resolve(parsed.rel_path, name, scope)
    if symbol is None:
        return None
    classifier = ctx.classifiers.get(symbol.classifier_id)
    if classifier is None or not classifier.has_stereotype("ReactContext"):
        return None
    return classifier


def _context_edge(
    ctx: ExtractionContext,
    parsed: ParsedFile,
    owner: DeclarationRecord,
    name: str,
    origin: str,
    node: Node,
) -> None:
    context = _resolve_context(ctx, parsed, name, owner.scope)
    if context is not None:
        if ctx.options.include_framework_edges:
            ctx.add_relation(
                RelationKind.DI,
                owner.classifier.id,
                context.id,
                tags=[("origin", origin)],
                source=ctx.source_ref(parsed.rel_path, node),
            )
        return
    if ctx.symbols.is_external(parsed.rel_path, name):
        return
    message = (
        f"useContext('{name}') but no matching context classifier was found"
        if origin == "useContext"
        else f"JSX {origin} for '{name}' but no matching context classifier was found"
    )
    ctx.add_finding(
        FindingKind.UNRESOLVED_CONTEXT,
        message,
        file=parsed.rel_path,
        line=line_of(node),
        tags={"owner": owner.classifier.name, "context": name, "origin": origin},
    )


def _render_edges(
    ctx: ExtractionContext, parsed: ParsedFile, owners: _Owners, by_name: Dict[str, Optional[IrClassifier]]
) -> None:
    for node in walk(parsed.root):
        if node.type == "call_expression":
            callee = parsed.text(node.child_by_field_name("function"))
            if callee not in {"useContext", "React.useContext"}:
                continue
            arguments = node.child_by_field_name("arguments")
            first = arguments.named_children[0] if arguments is not None and arguments.named_children else None
            owner = owners.owner_of(node)
            if first is None or owner is None or first.type not in {"identifier", "member_expression"}:
                continue
            _context_edge(ctx, parsed, owner, parsed.text(first), "useContext", node)
            continue

        if node.type not in {"jsx_element", "jsx_self_closing_element"}:
            continue
        tag = jsx_tag_name(node, parsed)
        if not tag or tag in _FRAGMENTS:
            continue
        owner = owners.owner_of(node)
        if owner is None:
            continue

        base, _, member = tag.rpartition(".")
        if base and member in _CONTEXT_MEMBERS:
            _context_edge(ctx, parsed, owner, base, _CONTEXT_MEMBERS[member], node)
            continue
        # Only components render; JSX in helpers and plain classes is ignored.
        if owner.classifier.kind != ClassifierKind.COMPONENT:
            continue
        if not is_pascal_case(tag.split(".", 1)[0]):
            continue

        symbol = ctx.symbols.resolve(parsed.rel_path, tag, owner.scope)
        target = ctx.classifiers.get(symbol.classifier_id) if symbol is not None else None
        external = symbol is None and ctx.symbols.is_external(parsed.rel_path, tag)
        if symbol is None and not external and "." not in tag:
            target = by_name.get(tag)
        if target is not None:
            if target.kind == ClassifierKind.COMPONENT and ctx.options.include_framework_edges:
                ctx.add_relation(
                    RelationKind.RENDER,
                    owner.classifier.id,
                    target.id,
                    tags=[("origin", "jsx")],
                    source=ctx.source_ref(parsed.rel_path, node),
                )
            continue
        if symbol is not None or external:
            continue
        if "." in tag and ctx.symbols.resolve(parsed.rel_path, tag.split(".", 1)[0], owner.scope) is not None:
            continue
        ctx.add_finding(
            FindingKind.UNRESOLVED_JSX_COMPONENT,
            f"JSX renders '{tag}' but no matching component classifier was found",
            file=parsed.rel_path,
            line=line_of(node),
            tags={"owner": owner.classifier.name, "component": tag, "origin": "jsx"},
        )


def extract_react(ctx: ExtractionContext) -> None:
    """Annotate components and contexts, then add RENDER and context DI edges."""
    components = [
        record
        for record in ctx.declarations
        if record.shape in {DeclarationShape.REACT_FUNCTION_COMPONENT, DeclarationShape.REACT_CLASS_COMPONENT}
    ]
    contexts = [record for record in ctx.declarations if record.shape == DeclarationShape.REACT_CONTEXT]
    _annotate_components(ctx, components)
    _annotate_contexts(ctx, contexts)

    by_name = _component_by_name(ctx)
    for parsed in ctx.program.source_files():
        owners = _Owners([record for record in ctx.records_for(parsed.rel_path) if record.shape != DeclarationShape.REACT_CONTEXT])
        _render_edges(ctx, parsed, owners, by_name)
    logger.debug("React pass: %d components, %d contexts", len(components), len(contexts))


__all__ = [
    "class_component_base",
    "component_function",
    "extract_react",
    "fc_props_type",
    "function_returns_jsx",
    "is_create_context",
    "is_jsx",
    "is_pascal_case",
    "jsx_tag_name",
]
