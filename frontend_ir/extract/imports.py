"""Import graph: DEPENDENCY relations between per-file MODULE classifiers."""

from __future__ import annotations

from typing import Iterator, Optional, Tuple

from tree_sitter import Node

from ..ir.models import RelationKind
from ..logging import get_logger
from ..report import FindingKind
from .context import ExtractionContext
from .parsing import ParsedFile, line_of, strip_quotes, walk
from .resolver import is_relative_specifier

logger = get_logger("imports")


def _string_literal(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    if node is None or node.type != "string":
        return None
    return strip_quotes(parsed.text(node))


def _first_argument(call: Node) -> Optional[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return None
    return next((child for child in arguments.named_children if child.type != "comment"), None)


def iter_module_specifiers(parsed: ParsedFile) -> Iterator[Tuple[str, str, Node]]:
    """Yield ``(specifier, origin, node)`` for every static module reference in a file."""
    for node in walk(parsed.root):
        if node.type in {"import_statement", "export_statement"}:
            specifier = _string_literal(node.child_by_field_name("source"), parsed)
            if specifier is not None:
                yield specifier, "import", node
        elif node.type == "import_require_clause":
            source = node.child_by_field_name("source") or next(
                (child for child in node.named_children if child.type == "string"), None
            )
            specifier = _string_literal(source, parsed)
            if specifier is not None:
                yield specifier, "require", node
        elif node.type == "call_expression":
            function = node.child_by_field_name("function")
            if function is None:
                continue
            if function.type == "identifier" and parsed.text(function) == "require":
                origin = "require"
            elif function.type == "import":
                origin = "import"
            else:
                continue
            specifier = _string_literal(_first_argument(node), parsed)
            if specifier is not None:
                yield specifier, origin, node


def extract_import_graph(ctx: ExtractionContext) -> None:
    """Resolve module specifiers and connect the files they join."""
    added = 0
    for parsed in ctx.program.source_files():
        from_rel = parsed.rel_path
        for specifier, origin, node in iter_module_specifiers(parsed):
            to_rel = ctx.resolver.resolve(specifier, from_rel)
            if to_rel is None:
                if is_relative_specifier(specifier):
                    label = f"import '{specifier}'" if origin == "import" else f"require('{specifier}')"
                    ctx.add_finding(
                        FindingKind.UNRESOLVED_IMPORT,
                        f"Unresolved {label} from {from_rel}",
                        file=from_rel,
                        line=line_of(node),
                        tags={"specifier": specifier, "origin": origin},
                    )
                continue
            source_module = ctx.ensure_file_module(from_rel)
            target_module = ctx.ensure_file_module(to_rel)
            relation = ctx.add_relation(
                RelationKind.DEPENDENCY,
                source_module.id,
                target_module.id,
                tags=[("origin", origin), ("specifier", specifier)],
                source=ctx.source_ref(from_rel, node),
                discriminator=f"{origin}:{specifier}",
            )
            if relation is not None:
                added += 1
    logger.debug("Import graph: %d module dependencies", added)


__all__ = ["extract_import_graph", "iter_module_specifiers"]
