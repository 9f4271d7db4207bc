"""Angular decorators: classification, metadata tags and DI/module wiring."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from ..ir.ids import member_id
from ..ir.models import IrAttribute, IrTypeRef, RelationKind, set_tagged_value
from ..logging import get_logger
from ..report import FindingKind
from .context import DeclarationRecord, DeclarationShape, ExtractionContext
from .members import iter_parameters
from .parsing import ParsedFile, array_entries, line_of, object_property, string_value, strip_quotes, walk
from .symbols import DeclaredSymbol
from .typerefs import collapse_whitespace, referenced_type_names

logger = get_logger("angular")

ANGULAR_SHAPES: Dict[str, DeclarationShape] = {
    "Component": DeclarationShape.ANGULAR_COMPONENT,
    "Injectable": DeclarationShape.ANGULAR_INJECTABLE,
    "NgModule": DeclarationShape.ANGULAR_MODULE,
    "Directive": DeclarationShape.ANGULAR_DIRECTIVE,
    "Pipe": DeclarationShape.ANGULAR_PIPE,
}
STEREOTYPES: Dict[str, str] = {
    "Component": "AngularComponent",
    "Injectable": "AngularInjectable",
    "NgModule": "AngularNgModule",
    "Directive": "AngularDirective",
    "Pipe": "AngularPipe",
}
NGMODULE_ROLES = ("imports", "declarations", "exports", "bootstrap")
_PROVIDER_OWNERS = {"Component", "NgModule", "Directive"}
_BINDING_DECORATORS = {"Input": "input", "Output": "output"}
_BINDING_OWNERS = {"Component", "Directive"}


def _decorator_parts(decorator: Node, parsed: ParsedFile) -> Tuple[str, Optional[Node]]:
    """Return the decorator name (last dotted segment) and its call expression, if any."""
    expression = next((child for child in decorator.named_children if child.type != "comment"), None)
    if expression is None:
        return "", None
    if expression.type == "call_expression":
        name = parsed.text(expression.child_by_field_name("function"))
        return name.rsplit(".", 1)[-1], expression
    return parsed.text(expression).rsplit(".", 1)[-1], None


def _decorators(class_node: Node, wrapper: Optional[Node]) -> List[Node]:
    found = [child for child in class_node.children if child.type == "decorator"]
    if wrapper is not None and wrapper.type == "export_statement":
        found.extend(child for child in wrapper.children if child.type == "decorator")
    return found


def angular_decorator(class_node: Node, wrapper: Optional[Node], parsed: ParsedFile) -> Optional[Tuple[str, Node]]:
    """First recognised Angular decorator on a class, as ``(name, decorator_node)``."""
    for decorator in _decorators(class_node, wrapper):
        name, _ = _decorator_parts(decorator, parsed)
        if name in ANGULAR_SHAPES:
            return name, decorator
    return None


def decorator_metadata(decorator: Node, parsed: ParsedFile) -> Optional[Node]:
    """The object literal passed to a decorator call."""
    _, call = _decorator_parts(decorator, parsed)
    if call is None:
        return None
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return None
    return next((child for child in arguments.named_children if child.type == "object"), None)


def _reference_name(node: Node, parsed: ParsedFile) -> Optional[str]:
    """Identifier behind an array entry: ``X``, ``ns.X`` or ``X.forRoot(...)``."""
    if node.type in {"identifier", "member_expression"}:
        return parsed.text(node)
    if node.type == "call_expression":
        function = node.child_by_field_name("function")
        if function is not None and function.type == "member_expression":
            return _reference_name(function.child_by_field_name("object"), parsed)
    return None


class _Wiring:
    """Edges and findings for one decorated class."""

    def __init__(self, ctx: ExtractionContext, record: DeclarationRecord, decorator_name: str) -> None:
        self.ctx = ctx
        self.record = record
        self.parsed = record.file
        self.decorator_name = decorator_name

    def resolve(self, name: str) -> Optional[DeclaredSymbol]:
        return self.ctx.symbols.resolve(self.parsed.rel_path, name, self.record.scope)

    def edge(self, kind: RelationKind, name: str, node: Node, tags: List[Tuple[str, str]]) -> bool:
        symbol = self.resolve(name)
        if symbol is None:
            return False
        if self.ctx.options.include_framework_edges:
            self.ctx.add_relation(
                kind,
                self.record.classifier.id,
                symbol.classifier_id,
                tags=tags,
                source=self.ctx.source_ref(self.parsed.rel_path, node),
            )
        return True

    def unresolved(self, kind: FindingKind, message: str, name: str, node: Node, tags: Dict[str, str]) -> None:
        if self.ctx.symbols.is_external(self.parsed.rel_path, name):
            return
        self.ctx.add_finding(
            kind,
            message,
            file=self.parsed.rel_path,
            line=line_of(node),
            tags={"owner": self.record.classifier.name, **tags},
        )

    def constructor_injection(self) -> None:
        body = self.record.node.child_by_field_name("body")
        if body is None:
            return
        constructor = next(
            (
                member
                for member in body.named_children
                if member.type == "method_definition"
                and self.parsed.text(member.child_by_field_name("name")) == "constructor"
            ),
            None,
        )
        if constructor is None:
            return
        for param_name, type_node, parameter in iter_parameters(constructor, self.parsed):
            token = self._inject_token(parameter)
            name = token
            if name is None and type_node is not None:
                if type_node.type == "generic_type":
                    type_node = type_node.child_by_field_name("name")
                if type_node is not None and type_node.type in {"type_identifier", "nested_type_identifier"}:
                    name = self.parsed.text(type_node)
            if not name:
                continue
            tags = [("origin", "constructor"), ("param", param_name)]
            if token is not None:
                tags.append(("token", token))
            if not self.edge(RelationKind.DI, name, parameter, tags) and token is None:
                self.unresolved(
                    FindingKind.UNRESOLVED_INJECTION,
                    f"Constructor DI parameter '{param_name}' of {self.record.classifier.name} "
                    f"injects '{name}' which was not found as a classifier",
                    name,
                    parameter,
                    {"type": name, "origin": "constructor"},
                )

    def _inject_token(self, parameter: Node) -> Optional[str]:
        for decorator in (child for child in parameter.children if child.type == "decorator"):
            name, call = _decorator_parts(decorator, self.parsed)
            if name != "Inject" or call is None:
                continue
            arguments = call.child_by_field_name("arguments")
            first = arguments.named_children[0] if arguments is not None and arguments.named_children else None
            if first is None:
                return None
            return _reference_name(first, self.parsed) or strip_quotes(self.parsed.text(first))
        return None

    def inject_calls(self) -> None:
        body = self.record.node.child_by_field_name("body")
        if body is None:
            return
        for node in walk(body):
            if node.type != "call_expression" or self.parsed.text(node.child_by_field_name("function")) != "inject":
                continue
            arguments = node.child_by_field_name("arguments")
            first = arguments.named_children[0] if arguments is not None and arguments.named_children else None
            name = _reference_name(first, self.parsed) if first is not None else None
            if not name:
                continue
            if not self.edge(RelationKind.DI, name, node, [("origin", "injectFn")]):
                self.unresolved(
                    FindingKind.UNRESOLVED_INJECTION,
                    f"inject('{name}') in {self.record.classifier.name} was not found as a classifier",
                    name,
                    node,
                    {"type": name, "origin": "injectFn"},
                )

    def providers(self, metadata: Node) -> None:
        scope = "ngmodule" if self.decorator_name == "NgModule" else "component"
        for entry in array_entries(object_property(metadata, "providers", self.parsed)):
            tags: List[Tuple[str, str]] = [("origin", "provider"), ("role", "providers"), ("scope", scope)]
            if entry.type == "object":
                provide_node = object_property(entry, "provide", self.parsed)
                provide = _reference_name(provide_node, self.parsed) if provide_node is not None else None
                if provide is None and provide_node is not None:
                    provide = strip_quotes(self.parsed.text(provide_node))
                target = None
                for key in ("useClass", "useExisting"):
                    value = object_property(entry, key, self.parsed)
                    if value is not None:
                        target = _reference_name(value, self.parsed)
                        tags.append(("providerKind", key))
                        tags.append((key, target or self.parsed.text(value)))
                        break
                if provide:
                    tags.append(("provide", provide))
                if target is None:
                    if object_property(entry, "useValue", self.parsed) is not None or object_property(
                        entry, "useFactory", self.parsed
                    ) is not None:
                        continue
                    target = provide
                    tags.append(("providerKind", "provide"))
            else:
                target = _reference_name(entry, self.parsed)
                tags.append(("providerKind", "class"))
            if not target:
                continue
            if not self.edge(RelationKind.DI, target, entry, tags):
                self.unresolved(
                    FindingKind.UNRESOLVED_DECORATOR_REF,
                    f"{self.decorator_name} providers references '{target}' but it was not found as a classifier",
                    target,
                    entry,
                    {"role": "providers", "ref": target},
                )

    def references(self, metadata: Node, role: str, origin: str) -> None:
        for entry in array_entries(object_property(metadata, role, self.parsed)):
            name = _reference_name(entry, self.parsed)
            if not name:
                continue
            if not self.edge(RelationKind.DEPENDENCY, name, entry, [("origin", origin), ("role", role)]):
                self.unresolved(
                    FindingKind.UNRESOLVED_DECORATOR_REF,
                    f"{self.decorator_name} {role} references '{name}' but it was not found as a classifier",
                    name,
                    entry,
                    {"role": role, "ref": name},
                )

    def inputs_outputs(self) -> None:
        """Tag ``@Input``/``@Output`` members; field decorators are children, accessor ones precede the member."""
        body = self.record.node.child_by_field_name("body")
        if body is None:
            return
        pending: List[Node] = []
        for member in body.named_children:
            if member.type == "decorator":
                pending.append(member)
                continue
            decorators = pending + [child for child in member.children if child.type == "decorator"]
            pending = []
            name = self.parsed.text(member.child_by_field_name("name"))
            if not name:
                continue
            for decorator in decorators:
                decorator_name, call = _decorator_parts(decorator, self.parsed)
                role = _BINDING_DECORATORS.get(decorator_name)
                if role is not None:
                    self._binding(member, name, role, call)

    def _binding(self, member: Node, name: str, role: str, call: Optional[Node]) -> None:
        classifier = self.record.classifier
        attribute = classifier.find_attribute(name)
        if attribute is None:
            # Decorated setters surface as operations; the binding still needs an attribute.
            attribute = IrAttribute(
                id=member_id("a:", classifier.id, name),
                name=name,
                type=IrTypeRef.unknown(),
                source=self.ctx.source_ref(self.parsed.rel_path, member),
            )
            classifier.attributes.append(attribute)
        set_tagged_value(attribute.tagged_values, "angular.role", role)

        argument = None
        if call is not None:
            arguments = call.child_by_field_name("arguments")
            argument = arguments.named_children[0] if arguments is not None and arguments.named_children else None
        alias = string_value(argument, self.parsed)
        if argument is not None and argument.type == "object":
            alias = string_value(object_property(argument, "alias", self.parsed), self.parsed)
            required = object_property(argument, "required", self.parsed)
            if required is not None and required.type == "true":
                set_tagged_value(attribute.tagged_values, "angular.inputRequired", "true")
        if alias:
            set_tagged_value(attribute.tagged_values, f"angular.{role}Alias", alias)

        if role == "output":
            payload = self._event_payload(member)
            if payload is not None:
                payload_text = collapse_whitespace(self.parsed.text(payload))
                set_tagged_value(attribute.tagged_values, "angular.outputPayloadType", payload_text)
                self._payload_dependencies(name, payload, member)

    def _event_payload(self, member: Node) -> Optional[Node]:
        """``T`` from an ``EventEmitter<T>`` annotation or a ``new EventEmitter<T>()`` initializer."""
        annotation = member.child_by_field_name("type")
        candidates = [annotation.named_children[0] if annotation is not None and annotation.named_children else None]
        value = member.child_by_field_name("value")
        if value is not None and value.type == "new_expression":
            candidates.append(value)
        for candidate in candidates:
            if candidate is None:
                continue
            name_node = candidate.child_by_field_name("name" if candidate.type == "generic_type" else "constructor")
            if self.parsed.text(name_node).rsplit(".", 1)[-1] != "EventEmitter":
                continue
            type_arguments = candidate.child_by_field_name("type_arguments") or next(
                (child for child in candidate.named_children if child.type == "type_arguments"), None
            )
            if type_arguments is not None and type_arguments.named_children:
                return type_arguments.named_children[0]
        return None

    def _payload_dependencies(self, member_name: str, payload: Node, member: Node) -> None:
        if not self.ctx.options.include_deps:
            return
        for type_name, _ in referenced_type_names(payload, self.parsed):
            symbol = self.resolve(type_name)
            if symbol is not None:
                self.ctx.add_relation(
                    RelationKind.DEPENDENCY,
                    self.record.classifier.id,
                    symbol.classifier_id,
                    tags=[("origin", "output"), ("role", "eventPayload"), ("member", member_name)],
                    source=self.ctx.source_ref(self.parsed.rel_path, member),
                )
                continue
            self.unresolved(
                FindingKind.UNRESOLVED_TYPE,
                f"@Output payload type '{type_name}' on {self.record.classifier.name}.{member_name} "
                "was not found as a classifier",
                type_name,
                member,
                {"member": member_name, "type": type_name, "origin": "output"},
            )


def _annotate(record: DeclarationRecord, decorator_name: str, metadata: Optional[Node]) -> None:
    classifier = record.classifier
    parsed = record.file
    classifier.add_stereotype(STEREOTYPES[decorator_name])
    classifier.set_tag("framework", "angular")
    classifier.set_tag("angular.decorator", decorator_name)
    if metadata is None:
        return
    for key, tag in (("selector", "angular.selector"), ("templateUrl", "angular.templateUrl"), ("name", "angular.pipeName")):
        value = string_value(object_property(metadata, key, parsed), parsed)
        if value is not None and (key != "name" or decorator_name == "Pipe"):
            classifier.set_tag(tag, value)
    standalone = object_property(metadata, "standalone", parsed)
    if standalone is not None and standalone.type == "true":
        classifier.set_tag("angular.standalone", "true")
    provided_in = string_value(object_property(metadata, "providedIn", parsed), parsed)
    if provided_in is not None:
        classifier.set_tag("angular.providedIn", provided_in)


def extract_angular(ctx: ExtractionContext) -> None:
    """Decorate Angular classes and translate decorator metadata into relations."""
    decorated = [record for record in ctx.declarations if record.decorator is not None]
    for record in decorated:
        decorator_name, _ = _decorator_parts(record.decorator, record.file)
        metadata = decorator_metadata(record.decorator, record.file)
        _annotate(record, decorator_name, metadata)

        wiring = _Wiring(ctx, record, decorator_name)
        wiring.constructor_injection()
        wiring.inject_calls()
        if decorator_name in _BINDING_OWNERS:
            wiring.inputs_outputs()
        if metadata is None:
            continue
        if decorator_name in _PROVIDER_OWNERS:
            wiring.providers(metadata)
        if decorator_name == "NgModule":
            for role in NGMODULE_ROLES:
                wiring.references(metadata, role, "ngmodule")
        elif decorator_name == "Component" and record.classifier.get_tag("angular.standalone") == "true":
            wiring.references(metadata, "imports", "standalone")
    logger.debug("Angular pass: %d decorated classes", len(decorated))


__all__ = [
    "ANGULAR_SHAPES",
    "NGMODULE_ROLES",
    "STEREOTYPES",
    "angular_decorator",
    "decorator_metadata",
    "extract_angular",
]
