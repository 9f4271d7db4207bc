"""Route tables: React Router element trees and data routers, Angular route arrays."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

from ..ir.ids import classifier_id
from ..ir.models import ClassifierKind, IrClassifier, IrStereotype, IrTaggedValue, RelationKind
from ..logging import get_logger
from ..report import FindingKind
from .context import ExtractionContext
from .parsing import (
    ParsedFile,
    array_entries,
    line_of,
    object_property,
    string_value,
    strip_quotes,
    unwrap_parens,
    walk,
)
from .react import jsx_tag_name
from .resolver import is_relative_specifier

logger = get_logger("routing")

ANGULAR_GUARDS = ("canActivate", "canActivateChild", "canDeactivate", "canLoad", "canMatch")
_DATA_ROUTERS = {"createBrowserRouter", "createHashRouter", "createMemoryRouter", "useRoutes"}
_ANGULAR_ROUTER_CALLS = {"forRoot", "forChild"}
_FUNCTION_TYPES = {"arrow_function", "function_expression", "function"}
_JSX_ELEMENTS = {"jsx_element", "jsx_self_closing_element"}


def join_route_segments(*segments: str) -> str:
    """Join path segments with single slashes; empty segments disappear."""
    parts = (segment.strip("/") for segment in segments if segment)
    return "/".join(part for part in parts if part)


def full_route_path(parent: str, path: str) -> str:
    """Absolute child paths restart from the root, relative ones extend ``parent``."""
    if path.startswith("/"):
        return "/" + join_route_segments(path)
    return "/" + join_route_segments(parent, path)


def _reference(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    node = unwrap_parens(node)
    if node is None or node.type not in {"identifier", "member_expression"}:
        return None
    return parsed.text(node)


def _returned(function: Node) -> Optional[Node]:
    body = function.child_by_field_name("body")
    if body is None or body.type != "statement_block":
        return unwrap_parens(body)
    for statement in body.named_children:
        if statement.type == "return_statement":
            value = next((child for child in statement.named_children if child.type != "comment"), None)
            return unwrap_parens(value)
    return None


def _import_specifier(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    if node is None or node.type != "call_expression":
        return None
    function = node.child_by_field_name("function")
    if function is None or function.type != "import":
        return None
    arguments = node.child_by_field_name("arguments")
    first = arguments.named_children[0] if arguments is not None and arguments.named_children else None
    return string_value(first, parsed)


def lazy_target(node: Optional[Node], parsed: ParsedFile) -> Tuple[Optional[str], Optional[str]]:
    """Split ``() => import('./x').then(m => m.X)`` into ``('./x', 'X')``."""
    node = unwrap_parens(node)
    if node is None or node.type not in _FUNCTION_TYPES:
        return None, None
    expression = _returned(node)
    if expression is None or expression.type != "call_expression":
        return None, None
    function = expression.child_by_field_name("function")
    if function is None or function.type != "member_expression" or parsed.text(
        function.child_by_field_name("property")
    ) != "then":
        return _import_specifier(expression, parsed), None

    specifier = _import_specifier(function.child_by_field_name("object"), parsed)
    arguments = expression.child_by_field_name("arguments")
    callback = unwrap_parens(arguments.named_children[0]) if arguments is not None and arguments.named_children else None
    picked = _returned(callback) if callback is not None and callback.type in _FUNCTION_TYPES else None
    if picked is None or picked.type != "member_expression":
        return specifier, None
    return specifier, parsed.text(picked.child_by_field_name("property"))


def _local_array(name: str, parsed: ParsedFile) -> Optional[Node]:
    """The array literal a same-file ``const name = [...]`` is initialised with."""
    for node in walk(parsed.root):
        if node.type != "variable_declarator" or parsed.text(node.child_by_field_name("name")) != name:
            continue
        value = unwrap_parens(node.child_by_field_name("value"))
        if value is not None and value.type == "array":
            return value
    return None


def _first_argument(call: Node) -> Optional[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return None
    return next((child for child in arguments.named_children if child.type != "comment"), None)


def _argument_array(call: Node, parsed: ParsedFile) -> Optional[Node]:
    argument = unwrap_parens(_first_argument(call))
    if argument is None:
        return None
    if argument.type == "array":
        return argument
    if argument.type == "identifier":
        return _local_array(parsed.text(argument), parsed)
    return None


class _RouteTable:
    """Route classifiers, ROUTE_TO edges and findings for one file."""

    def __init__(self, ctx: ExtractionContext, parsed: ParsedFile, framework: str, stereotype: str) -> None:
        self.ctx = ctx
        self.parsed = parsed
        self.framework = framework
        self.stereotype = stereotype
        self.routes = 0

    def route(self, node: Node, name: str, key: str, tags: List[Tuple[str, str]]) -> IrClassifier:
        rel_path = self.parsed.rel_path
        qualified = f"{rel_path}#{self.framework}-route:{key}"
        position = f"{line_of(node)}:{node.start_point[1] + 1}"
        classifier = IrClassifier(
            id=classifier_id(ClassifierKind.MODULE.value, f"{qualified}@{position}"),
            name=name,
            kind=ClassifierKind.MODULE,
            qualified_name=qualified,
            package_id=self.ctx.package_for(rel_path).id,
            stereotypes=[IrStereotype(name=self.stereotype)],
            tagged_values=[IrTaggedValue(key="framework", value=self.framework)]
            + [IrTaggedValue(key=tag, value=value) for tag, value in tags],
            source=self.ctx.source_ref(rel_path, node),
        )
        registered = self.ctx.add_classifier(classifier)
        if registered is classifier:
            self.routes += 1
        return registered

    def link(
        self,
        route: IrClassifier,
        target: IrClassifier,
        role: str,
        node: Node,
        path: str,
        extra: Tuple[Tuple[str, str], ...] = (),
    ) -> None:
        if not self.ctx.options.include_framework_edges:
            return
        discriminator = ":".join([role, *(value for _, value in extra)])
        self.ctx.add_relation(
            RelationKind.ROUTE_TO,
            route.id,
            target.id,
            name=path or None,
            tags=[("origin", "router"), ("role", role), *extra],
            source=self.ctx.source_ref(self.parsed.rel_path, node),
            discriminator=discriminator,
        )

    def unresolved(self, kind: FindingKind, message: str, node: Node, tags: Dict[str, str]) -> None:
        self.ctx.add_finding(kind, message, file=self.parsed.rel_path, line=line_of(node), tags=tags)


# React ----------------------------------------------------------------------


def _react_components(ctx: ExtractionContext) -> Dict[str, Optional[IrClassifier]]:
    index: Dict[str, Optional[IrClassifier]] = {}
    for classifier in ctx.classifiers.values():
        if classifier.kind != ClassifierKind.COMPONENT:
            continue
        previous = index.get(classifier.name)
        if classifier.name not in index or (
            previous is not None
            and not previous.has_stereotype("ReactComponent")
            and classifier.has_stereotype("ReactComponent")
        ):
            index[classifier.name] = classifier
    return index


def _jsx_attributes(element: Node, parsed: ParsedFile) -> Dict[str, Optional[Node]]:
    opening = element if element.type == "jsx_self_closing_element" else element.child_by_field_name("open_tag")
    attributes: Dict[str, Optional[Node]] = {}
    for attribute in opening.named_children if opening is not None else []:
        if attribute.type != "jsx_attribute" or not attribute.named_children:
            continue
        parts = attribute.named_children
        attributes[parsed.text(parts[0])] = parts[1] if len(parts) > 1 else None
    return attributes


def _jsx_value(value: Optional[Node]) -> Optional[Node]:
    if value is not None and value.type == "jsx_expression":
        inner = [child for child in value.named_children if child.type != "comment"]
        return unwrap_parens(inner[0]) if inner else None
    return value


def _element_component(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    """``<X/>`` or ``X`` as the name of the rendered component."""
    node = unwrap_parens(node)
    if node is None:
        return None
    if node.type in _JSX_ELEMENTS:
        return jsx_tag_name(node, parsed)
    if node.type == "identifier":
        return parsed.text(node)
    return None


class _ReactRoutes:
    def __init__(self, ctx: ExtractionContext, parsed: ParsedFile, components: Dict[str, Optional[IrClassifier]]) -> None:
        self.ctx = ctx
        self.parsed = parsed
        self.components = components
        self.table = _RouteTable(ctx, parsed, "react", "ReactRoute")

    def add(
        self,
        node: Node,
        router_kind: str,
        path: str,
        index: bool,
        target: Optional[str],
        parent: Optional[Tuple[IrClassifier, str]],
    ) -> Tuple[IrClassifier, str]:
        base = parent[1] if parent is not None else ""
        full_path = full_route_path(base, path)
        name = f"Route({path})" if path else ("Route(index)" if index else "Route")
        route = self.table.route(
            node,
            name,
            path or ("index" if index else ""),
            [
                ("react.routerKind", router_kind),
                ("react.routePath", path),
                ("react.routeIndex", "true" if index else "false"),
                ("react.routeFullPath", full_path),
            ],
        )
        if parent is not None:
            self.table.link(parent[0], route, "child", node, path)
        if target:
            self._target(route, target, node, path)
        return route, full_path

    def _target(self, route: IrClassifier, name: str, node: Node, path: str) -> None:
        rel_path = self.parsed.rel_path
        symbol = self.ctx.symbols.resolve(rel_path, name)
        component = self.ctx.classifiers.get(symbol.classifier_id) if symbol is not None else None
        if component is None and symbol is None:
            if self.ctx.symbols.is_external(rel_path, name):
                return
            component = self.components.get(name)
        if component is not None and component.kind == ClassifierKind.COMPONENT:
            self.table.link(route, component, "component", node, path)
            return
        self.table.unresolved(
            FindingKind.UNRESOLVED_ROUTE_TARGET,
            f"React route points to component '{name}' but no matching component classifier was found",
            node,
            {"route": route.name, "role": "component", "target": name},
        )

    def jsx_routes(self) -> None:
        stack: List[Tuple[Node, Optional[Tuple[IrClassifier, str]]]] = [(self.parsed.root, None)]
        while stack:
            node, parent = stack.pop()
            if node.type in _JSX_ELEMENTS and jsx_tag_name(node, self.parsed) == "Route":
                attributes = _jsx_attributes(node, self.parsed)
                path = string_value(_jsx_value(attributes.get("path")), self.parsed) or ""
                index_value = _jsx_value(attributes.get("index"))
                index = "index" in attributes and (index_value is None or index_value.type == "true")
                target = _element_component(_jsx_value(attributes.get("element")), self.parsed) or _element_component(
                    _jsx_value(attributes.get("Component")), self.parsed
                )
                parent = self.add(node, "jsx", path, index, target, parent)
            stack.extend((child, parent) for child in reversed(node.children))

    def data_routes(self) -> None:
        for node in walk(self.parsed.root):
            if node.type != "call_expression":
                continue
            callee = self.parsed.text(node.child_by_field_name("function")).rsplit(".", 1)[-1]
            if callee in _DATA_ROUTERS:
                self._data_array(_argument_array(node, self.parsed), None)

    def _data_array(self, array: Optional[Node], parent: Optional[Tuple[IrClassifier, str]]) -> None:
        parsed = self.parsed
        for entry in array_entries(array):
            if entry.type != "object":
                continue
            path = string_value(object_property(entry, "path", parsed), parsed) or ""
            index_node = object_property(entry, "index", parsed)
            index = index_node is not None and index_node.type == "true"
            target = _element_component(object_property(entry, "element", parsed), parsed)
            if target is None:
                component = object_property(entry, "Component", parsed)
                target = parsed.text(component) if component is not None and component.type == "identifier" else None
            route = self.add(entry, "data", path, index, target, parent)
            self._data_array(unwrap_parens(object_property(entry, "children", parsed)), route)


def extract_react_routes(ctx: ExtractionContext) -> None:
    """Route classifiers for ``<Route>`` trees and ``createBrowserRouter`` style route objects."""
    components = _react_components(ctx)
    total = 0
    for parsed in ctx.program.source_files():
        routes = _ReactRoutes(ctx, parsed, components)
        routes.jsx_routes()
        routes.data_routes()
        total += routes.table.routes
    logger.debug("React routes: %d", total)


# Angular --------------------------------------------------------------------


def _by_simple_name(ctx: ExtractionContext) -> Dict[str, Optional[IrClassifier]]:
    index: Dict[str, Optional[IrClassifier]] = {}
    for classifier in ctx.classifiers.values():
        if classifier.has_stereotype("AngularRoute") or classifier.has_stereotype("SourceFile"):
            continue
        # Ambiguous names resolve to nothing.
        index[classifier.name] = None if classifier.name in index else classifier
    return index


def _resolve_entries(obj: Optional[Node], parsed: ParsedFile) -> Iterator[Tuple[str, str, Node]]:
    """``resolve: {key: Resolver}`` pairs as ``(key, resolver, pair)``."""
    if obj is None or obj.type != "object":
        return
    for pair in obj.named_children:
        if pair.type == "shorthand_property_identifier":
            yield parsed.text(pair), parsed.text(pair), pair
            continue
        if pair.type != "pair":
            continue
        name = _reference(pair.child_by_field_name("value"), parsed)
        if name:
            yield strip_quotes(parsed.text(pair.child_by_field_name("key"))), name, pair


class _AngularRoutes:
    def __init__(self, ctx: ExtractionContext, parsed: ParsedFile, by_name: Dict[str, Optional[IrClassifier]]) -> None:
        self.ctx = ctx
        self.parsed = parsed
        self.by_name = by_name
        self.table = _RouteTable(ctx, parsed, "angular", "AngularRoute")
        self._seen: Set[int] = set()

    def _lookup(self, name: str, rel_path: Optional[str] = None) -> Tuple[Optional[IrClassifier], bool]:
        """Resolve ``name`` as seen from ``rel_path``; the flag reports an external package binding."""
        rel_path = rel_path or self.parsed.rel_path
        symbol = self.ctx.symbols.resolve(rel_path, name)
        if symbol is not None:
            return self.ctx.classifiers.get(symbol.classifier_id), False
        if self.ctx.symbols.is_external(rel_path, name):
            return None, True
        return self.by_name.get(name.rsplit(".", 1)[-1]), False

    def _target(
        self,
        route: IrClassifier,
        role: str,
        name: str,
        node: Node,
        path: str,
        extra: Tuple[Tuple[str, str], ...] = (),
        lookup_from: Optional[str] = None,
    ) -> None:
        target, external = self._lookup(name, lookup_from)
        if target is not None:
            self.table.link(route, target, role, node, path, extra)
            if role.startswith("can"):
                target.add_stereotype("AngularGuard")
                target.set_tag("angular.guardRole", role)
            elif role == "resolve":
                target.add_stereotype("AngularResolver")
                target.set_tag("angular.resolveKey", dict(extra).get("resolveKey", ""))
            return
        if external:
            return
        lazy = role in {"loadChildren", "loadComponent"}
        self.table.unresolved(
            FindingKind.UNRESOLVED_LAZY_MODULE if lazy else FindingKind.UNRESOLVED_ROUTE_TARGET,
            f"Lazy route target '{name}' was not found as a classifier"
            if lazy
            else f"Route target '{name}' was not found as a classifier",
            node,
            {"role": role, "target": name, **dict(extra)},
        )

    def _lazy(self, route: IrClassifier, role: str, specifier: Optional[str], name: Optional[str], node: Node, path: str) -> None:
        if name is None:
            return
        extra = (("specifier", specifier),) if specifier else ()
        lookup_from = None
        if specifier:
            resolved = self.ctx.resolver.resolve(specifier, self.parsed.rel_path)
            if resolved is None and not is_relative_specifier(specifier):
                return
            lookup_from = resolved
        if lookup_from is not None and self.ctx.symbols.resolve(lookup_from, name) is not None:
            self._target(route, role, name, node, path, extra, lookup_from)
        else:
            self._target(route, role, name, node, path, extra)

    def routes_array(self, array: Optional[Node], parent: Optional[Tuple[IrClassifier, str]] = None) -> None:
        if array is None or array.start_byte in self._seen:
            return
        self._seen.add(array.start_byte)
        parsed = self.parsed
        for entry in array_entries(array):
            if entry.type != "object":
                continue
            path = string_value(object_property(entry, "path", parsed), parsed) or ""
            component = _reference(object_property(entry, "component", parsed), parsed)
            children_spec, children_name = lazy_target(object_property(entry, "loadChildren", parsed), parsed)
            component_spec, component_name = lazy_target(object_property(entry, "loadComponent", parsed), parsed)
            lazy = bool(children_spec or children_name or component_spec or component_name)
            target = component or component_name or children_name or "(unknown)"
            full_path = full_route_path(parent[1] if parent is not None else "", path)

            tags = [
                ("angular.routePath", path),
                ("angular.routeLazy", "true" if lazy else "false"),
                ("angular.routeFullPath", full_path),
            ]
            redirect = string_value(object_property(entry, "redirectTo", parsed), parsed)
            if redirect is not None:
                tags.append(("angular.redirectTo", redirect))
            route = self.table.route(entry, f"route:{path or '(root)'} -> {target}", f"{path}::{target}", tags)
            if parent is not None:
                self.table.link(parent[0], route, "child", entry, path)

            if component:
                self._target(route, "component", component, entry, path)
            self._lazy(route, "loadChildren", children_spec, children_name, entry, path)
            self._lazy(route, "loadComponent", component_spec, component_name, entry, path)
            for guard in ANGULAR_GUARDS:
                for item in array_entries(unwrap_parens(object_property(entry, guard, parsed))):
                    name = _reference(item, parsed)
                    if name:
                        self._target(route, guard, name, item, path)
            for key, name, pair in _resolve_entries(unwrap_parens(object_property(entry, "resolve", parsed)), parsed):
                self._target(route, "resolve", name, pair, path, (("resolveKey", key),))

            self.routes_array(unwrap_parens(object_property(entry, "children", parsed)), (route, full_path))

    def scan(self) -> None:
        parsed = self.parsed
        for node in walk(parsed.root):
            if node.type == "call_expression":
                function = node.child_by_field_name("function")
                if function is None:
                    continue
                if function.type == "member_expression":
                    owner = parsed.text(function.child_by_field_name("object")).rsplit(".", 1)[-1]
                    method = parsed.text(function.child_by_field_name("property"))
                    if owner == "RouterModule" and method in _ANGULAR_ROUTER_CALLS:
                        self.routes_array(_argument_array(node, parsed))
                elif parsed.text(function) == "provideRouter":
                    self.routes_array(_argument_array(node, parsed))
            elif node.type == "export_statement":
                self._exported_routes(node)

    def _exported_routes(self, export: Node) -> None:
        parsed = self.parsed
        declaration = export.child_by_field_name("declaration")
        if declaration is None or declaration.type not in {"lexical_declaration", "variable_declaration"}:
            return
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            value = unwrap_parens(declarator.child_by_field_name("value"))
            if value is None or value.type != "array":
                continue
            name = parsed.text(declarator.child_by_field_name("name"))
            if "route" in name.lower() or "Routes" in parsed.text(declarator.child_by_field_name("type")):
                self.routes_array(value)


def extract_angular_routes(ctx: ExtractionContext) -> None:
    """Route classifiers for ``RouterModule.forRoot/forChild``, ``provideRouter`` and exported route arrays."""
    by_name = _by_simple_name(ctx)
    total = 0
    for parsed in ctx.program.source_files():
        routes = _AngularRoutes(ctx, parsed, by_name)
        routes.scan()
        total += routes.table.routes
    logger.debug("Angular routes: %d", total)


__all__ = [
    "ANGULAR_GUARDS",
    "extract_angular_routes",
    "extract_react_routes",
    "full_route_path",
    "join_route_segments",
    "lazy_target",
]
