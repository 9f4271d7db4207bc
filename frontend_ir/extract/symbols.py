"""Symbol table and import/export binding resolution.

Declarations are keyed by file and scope-qualified name. Identifiers used in a
file resolve through local declarations first, then through the file's import
bindings, following re-exports across files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from tree_sitter import Node

from ..ir.models import ClassifierKind
from .parsing import ParsedFile, line_of, strip_quotes
from .resolver import ModuleResolver, is_relative_specifier


@dataclass(frozen=True)
class SymbolKey:
    file: str
    name: str


@dataclass(frozen=True)
class DeclaredSymbol:
    classifier_id: str
    kind: ClassifierKind


class BindingKind(str, Enum):
    NAMED = "named"
    DEFAULT = "default"
    NAMESPACE = "namespace"
    REQUIRE = "require"


@dataclass(frozen=True)
class ImportBinding:
    local: str
    specifier: str
    kind: BindingKind
    imported: Optional[str] = None
    line: int = 1


@dataclass
class FileBindings:
    imports: Dict[str, ImportBinding] = field(default_factory=dict)
    # exported name -> local (possibly dotted) name
    exports: Dict[str, str] = field(default_factory=dict)
    # exported name -> (specifier, imported name or None for ``export * as ns``)
    reexports: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)
    star_exports: List[str] = field(default_factory=list)


def _declared_name(node: Node, parsed: ParsedFile) -> Optional[str]:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return parsed.text(name_node)


def _require_specifier(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    """Return the literal argument of ``require("...")``, if ``node`` is such a call."""
    if node is None or node.type != "call_expression":
        return None
    function = node.child_by_field_name("function")
    if function is None or parsed.text(function) != "require":
        return None
    arguments = node.child_by_field_name("arguments")
    if arguments is None:
        return None
    literals = [child for child in arguments.named_children if child.type == "string"]
    if len(literals) != 1:
        return None
    return strip_quotes(parsed.text(literals[0]))


def _collect_import(node: Node, parsed: ParsedFile, bindings: FileBindings) -> None:
    source = node.child_by_field_name("source")
    line = line_of(node)
    for child in node.named_children:
        if child.type == "import_require_clause":
            name_node = next((c for c in child.named_children if c.type == "identifier"), None)
            spec_node = child.child_by_field_name("source") or next(
                (c for c in child.named_children if c.type == "string"), None
            )
            if name_node is not None and spec_node is not None:
                local = parsed.text(name_node)
                bindings.imports[local] = ImportBinding(
                    local, strip_quotes(parsed.text(spec_node)), BindingKind.REQUIRE, None, line
                )
            continue
        if child.type != "import_clause" or source is None:
            continue
        specifier = strip_quotes(parsed.text(source))
        for clause in child.named_children:
            if clause.type == "identifier":
                local = parsed.text(clause)
                bindings.imports[local] = ImportBinding(local, specifier, BindingKind.DEFAULT, "default", line)
            elif clause.type == "namespace_import":
                ident = next((c for c in clause.named_children if c.type == "identifier"), None)
                if ident is not None:
                    local = parsed.text(ident)
                    bindings.imports[local] = ImportBinding(local, specifier, BindingKind.NAMESPACE, None, line)
            elif clause.type == "named_imports":
                for spec in clause.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = parsed.text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    local = parsed.text(alias) if alias is not None else name
                    bindings.imports[local] = ImportBinding(local, specifier, BindingKind.NAMED, name, line)


def _exported_local(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    """Name bound by an exported declaration or default-exported expression."""
    if node is None:
        return None
    if node.type in {"identifier", "type_identifier"}:
        return parsed.text(node)
    if node.type in {"lexical_declaration", "variable_declaration"}:
        return None
    if node.type in {"internal_module", "module"}:
        return _declared_name(node, parsed)
    if node.type == "ambient_declaration":
        inner = node.named_children[0] if node.named_children else None
        return _exported_local(inner, parsed)
    return _declared_name(node, parsed)


def _collect_export(node: Node, parsed: ParsedFile, bindings: FileBindings) -> None:
    source = node.child_by_field_name("source")
    specifier = strip_quotes(parsed.text(source)) if source is not None else None
    is_default = any(child.type == "default" for child in node.children)
    declaration = node.child_by_field_name("declaration")
    value = node.child_by_field_name("value")

    if declaration is not None:
        if declaration.type in {"lexical_declaration", "variable_declaration"}:
            for declarator in declaration.named_children:
                if declarator.type == "variable_declarator":
                    name_node = declarator.child_by_field_name("name")
                    if name_node is not None and name_node.type == "identifier":
                        name = parsed.text(name_node)
                        bindings.exports[name] = name
            return
        local = _exported_local(declaration, parsed)
        if local:
            bindings.exports["default" if is_default else local] = local
        return

    if is_default:
        local = _exported_local(value, parsed)
        if local is None:
            # export default class Foo {} may surface as a class expression.
            for child in node.named_children:
                if child.type in {"class", "class_declaration", "function_declaration", "function_expression", "abstract_class_declaration"}:
                    local = _declared_name(child, parsed)
                    break
        if local:
            bindings.exports["default"] = local
        return

    for child in node.named_children:
        if child.type == "export_clause":
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                name = parsed.text(spec.child_by_field_name("name"))
                alias_node = spec.child_by_field_name("alias")
                exported = parsed.text(alias_node) if alias_node is not None else name
                if specifier is not None:
                    bindings.reexports[exported] = (specifier, name)
                else:
                    bindings.exports[exported] = name
            return
        if child.type == "namespace_export" and specifier is not None:
            ident = next((c for c in child.named_children if c.type in {"identifier", "string"}), None)
            if ident is not None:
                bindings.reexports[strip_quotes(parsed.text(ident))] = (specifier, None)
            return
    if specifier is not None and any(child.type == "*" for child in node.children):
        bindings.star_exports.append(specifier)


def _collect_require_declaration(node: Node, parsed: ParsedFile, bindings: FileBindings) -> None:
    for declarator in node.named_children:
        if declarator.type != "variable_declarator":
            continue
        specifier = _require_specifier(declarator.child_by_field_name("value"), parsed)
        if specifier is None:
            continue
        name_node = declarator.child_by_field_name("name")
        line = line_of(declarator)
        if name_node is None:
            continue
        if name_node.type == "identifier":
            local = parsed.text(name_node)
            bindings.imports[local] = ImportBinding(local, specifier, BindingKind.REQUIRE, None, line)
        elif name_node.type == "object_pattern":
            for prop in name_node.named_children:
                if prop.type == "shorthand_property_identifier_pattern":
                    local = parsed.text(prop)
                    bindings.imports[local] = ImportBinding(local, specifier, BindingKind.NAMED, local, line)
                elif prop.type == "pair_pattern":
                    key = parsed.text(prop.child_by_field_name("key"))
                    value = prop.child_by_field_name("value")
                    if value is not None and value.type == "identifier":
                        local = parsed.text(value)
                        bindings.imports[local] = ImportBinding(local, specifier, BindingKind.NAMED, key, line)


def _collect_commonjs_export(node: Node, parsed: ParsedFile, bindings: FileBindings) -> None:
    assignment = node.named_children[0] if node.named_children else None
    if assignment is None or assignment.type != "assignment_expression":
        return
    left = assignment.child_by_field_name("left")
    right = assignment.child_by_field_name("right")
    if left is None or right is None:
        return
    target = parsed.text(left)
    if target == "module.exports":
        if right.type == "identifier":
            bindings.exports["="] = parsed.text(right)
        elif right.type in {"class", "function_expression"}:
            local = _declared_name(right, parsed)
            if local:
                bindings.exports["="] = local
        elif right.type == "object":
            for prop in right.named_children:
                if prop.type == "shorthand_property_identifier":
                    name = parsed.text(prop)
                    bindings.exports[name] = name
                elif prop.type == "pair":
                    value = prop.child_by_field_name("value")
                    if value is not None and value.type == "identifier":
                        bindings.exports[strip_quotes(parsed.text(prop.child_by_field_name("key")))] = parsed.text(value)
    elif target.startswith("exports.") or target.startswith("module.exports."):
        if right.type == "identifier":
            bindings.exports[target.rsplit(".", 1)[1]] = parsed.text(right)


def collect_bindings(parsed: ParsedFile) -> FileBindings:
    """Collect top-level import and export bindings of one file."""
    bindings = FileBindings()
    for node in parsed.root.named_children:
        if node.type == "import_statement":
            _collect_import(node, parsed, bindings)
        elif node.type == "export_statement":
            _collect_export(node, parsed, bindings)
        elif node.type in {"lexical_declaration", "variable_declaration"}:
            _collect_require_declaration(node, parsed, bindings)
        elif node.type == "expression_statement":
            _collect_commonjs_export(node, parsed, bindings)
    return bindings


class SymbolTable:
    """Per-run mapping from declarations to classifiers plus binding resolution."""

    def __init__(self, resolver: ModuleResolver) -> None:
        self._resolver = resolver
        self._declared: Dict[SymbolKey, DeclaredSymbol] = {}
        self._bindings: Dict[str, FileBindings] = {}

    def __len__(self) -> int:
        return len(self._declared)

    def set_bindings(self, file: str, bindings: FileBindings) -> None:
        self._bindings[file] = bindings

    def bindings(self, file: str) -> FileBindings:
        return self._bindings.get(file) or FileBindings()

    def declare(self, key: SymbolKey, symbol: DeclaredSymbol) -> None:
        self._declared[key] = symbol

    def lookup(self, key: SymbolKey) -> Optional[DeclaredSymbol]:
        return self._declared.get(key)

    def resolve(self, file: str, name: str, scope: Sequence[str] = ()) -> Optional[DeclaredSymbol]:
        """Resolve a possibly dotted identifier used in ``file`` inside ``scope``."""
        if not name:
            return None
        return self._resolve_parts(file, name.split("."), tuple(scope), set())

    def import_binding(self, file: str, name: str) -> Optional[ImportBinding]:
        return self.bindings(file).imports.get(name.split(".", 1)[0])

    def is_external(self, file: str, name: str) -> bool:
        """True when ``name`` is bound by an import from a package outside the project."""
        binding = self.import_binding(file, name)
        if binding is None or is_relative_specifier(binding.specifier):
            return False
        return self._resolver.resolve(binding.specifier, file) is None

    def _resolve_parts(
        self, file: str, parts: List[str], scope: Tuple[str, ...], seen: Set[Tuple[str, str, Tuple[str, ...]]]
    ) -> Optional[DeclaredSymbol]:
        for depth in range(len(scope), -1, -1):
            qualified = ".".join((*scope[:depth], *parts))
            found = self._declared.get(SymbolKey(file, qualified))
            if found is not None:
                return found

        binding = self.bindings(file).imports.get(parts[0])
        if binding is None:
            return None
        target = self._resolver.resolve(binding.specifier, file)
        if target is None:
            return None
        rest = parts[1:]
        if binding.kind == BindingKind.NAMESPACE:
            if not rest:
                return None
            return self._resolve_export(target, rest[0], rest[1:], seen)
        if binding.kind == BindingKind.REQUIRE:
            whole = self._resolve_export(target, "=", rest, seen) or self._resolve_export(
                target, "default", rest, seen
            )
            if whole is not None or not rest:
                return whole
            return self._resolve_export(target, rest[0], rest[1:], seen)
        return self._resolve_export(target, binding.imported or parts[0], rest, seen)

    def _resolve_export(
        self,
        file: str,
        exported: str,
        rest: List[str],
        seen: Set[Tuple[str, str, Tuple[str, ...]]],
    ) -> Optional[DeclaredSymbol]:
        marker = (file, exported, tuple(rest))
        if marker in seen:
            return None
        seen.add(marker)

        bindings = self.bindings(file)
        local = bindings.exports.get(exported)
        if local is not None:
            return self._resolve_parts(file, local.split(".") + rest, (), seen)

        reexport = bindings.reexports.get(exported)
        if reexport is not None:
            specifier, imported = reexport
            target = self._resolver.resolve(specifier, file)
            if target is None:
                return None
            if imported is None:
                return self._resolve_export(target, rest[0], rest[1:], seen) if rest else None
            return self._resolve_export(target, imported, rest, seen)

        if exported in {"default", "="}:
            return None
        for specifier in bindings.star_exports:
            target = self._resolver.resolve(specifier, file)
            if target is None:
                continue
            found = self._resolve_export(target, exported, rest, seen)
            if found is not None:
                return found
        return None


__all__ = [
    "BindingKind",
    "DeclaredSymbol",
    "FileBindings",
    "ImportBinding",
    "SymbolKey",
    "SymbolTable",
    "collect_bindings",
]
