"""Tree-sitter program construction and small syntax-tree helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, List, Optional

from tree_sitter import Language, Node, Parser, Tree
import tree_sitter_typescript

from ..errors import ExtractionError
from ..logging import get_logger
from .tsconfig import CompilerOptions

logger = get_logger("parsing")

_TYPESCRIPT_SUFFIXES = {".ts", ".mts", ".cts"}
_JSX_SUFFIXES = {".tsx", ".jsx"}


def grammar_for(path: str) -> str:
    """Return ``typescript`` for plain TypeScript files and ``tsx`` for everything else."""
    suffix = PurePosixPath(path).suffix.lower()
    return "typescript" if suffix in _TYPESCRIPT_SUFFIXES else "tsx"


def is_declaration_file(path: str) -> bool:
    lower = path.lower()
    return lower.endswith(".d.ts") or lower.endswith(".d.mts") or lower.endswith(".d.cts")


class SourceParser:
    """Lazily builds one tree-sitter parser per grammar."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}

    def _get_parser(self, grammar: str) -> Parser:
        parser = self._parsers.get(grammar)
        if parser is not None:
            return parser
        if grammar == "typescript":
            language = Language(tree_sitter_typescript.language_typescript())
        else:
            language = Language(tree_sitter_typescript.language_tsx())
        parser = Parser(language)
        self._parsers[grammar] = parser
        return parser

    def parse(self, source: bytes, grammar: str) -> Tree:
        return self._get_parser(grammar).parse(source)


@dataclass
class ParsedFile:
    """One scanned source file with its syntax tree."""

    rel_path: str
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def is_declaration(self) -> bool:
        return is_declaration_file(self.rel_path)

    @property
    def directory(self) -> str:
        parent = PurePosixPath(self.rel_path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def stem(self) -> str:
        return PurePosixPath(self.rel_path).stem

    @property
    def is_jsx(self) -> bool:
        return PurePosixPath(self.rel_path).suffix.lower() in _JSX_SUFFIXES

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


@dataclass
class ParsedProgram:
    """Immutable view of every in-scope file, parsed once up front."""

    root: Path
    files: Dict[str, ParsedFile] = field(default_factory=dict)
    options: CompilerOptions = field(default_factory=CompilerOptions)

    def source_files(self) -> List[ParsedFile]:
        """Non-declaration files in sorted path order."""
        return [self.files[path] for path in sorted(self.files) if not self.files[path].is_declaration]

    def get(self, rel_path: str) -> Optional[ParsedFile]:
        return self.files.get(rel_path)


def build_program(
    root: Path, rel_paths: List[str], options: Optional[CompilerOptions] = None
) -> ParsedProgram:
    """Read and parse ``rel_paths`` (project-relative posix paths)."""
    parser = SourceParser()
    program = ParsedProgram(root=Path(root), options=options or CompilerOptions())
    for rel_path in sorted(rel_paths):
        path = program.root / rel_path
        try:
            source = path.read_bytes()
        except OSError as exc:
            raise ExtractionError(f"Unable to read source file {rel_path}: {exc}") from exc
        tree = parser.parse(source, grammar_for(rel_path))
        if tree.root_node.has_error:
            logger.debug("Syntax errors while parsing %s; continuing with partial tree", rel_path)
        program.files[rel_path] = ParsedFile(rel_path=rel_path, source=source, tree=tree)
    logger.debug("Parsed %d source files", len(program.files))
    return program


def line_of(node: Node) -> int:
    return node.start_point[0] + 1


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def unwrap_parens(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type == "parenthesized_expression":
        inner = [child for child in node.named_children if child.type != "comment"]
        node = inner[0] if inner else None
    return node


def object_property(obj: Node, key: str, parsed: ParsedFile) -> Optional[Node]:
    """Value of the ``key`` pair of an object literal; shorthand properties return the identifier."""
    for entry in obj.named_children:
        if entry.type == "shorthand_property_identifier" and parsed.text(entry) == key:
            return entry
        if entry.type != "pair":
            continue
        if strip_quotes(parsed.text(entry.child_by_field_name("key"))) == key:
            return entry.child_by_field_name("value")
    return None


def string_value(node: Optional[Node], parsed: ParsedFile) -> Optional[str]:
    if node is None or node.type not in {"string", "template_string"}:
        return None
    return strip_quotes(parsed.text(node))


def array_entries(node: Optional[Node]) -> Iterator[Node]:
    """Elements of an array literal, skipping spreads and comments."""
    if node is None or node.type != "array":
        return
    for entry in node.named_children:
        if entry.type not in {"spread_element", "comment"}:
            yield entry


def walk(node: Node) -> Iterator[Node]:
    """Depth-first pre-order traversal."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


__all__ = [
    "ParsedFile",
    "ParsedProgram",
    "SourceParser",
    "array_entries",
    "build_program",
    "grammar_for",
    "is_declaration_file",
    "line_of",
    "object_property",
    "string_value",
    "strip_quotes",
    "unwrap_parens",
    "walk",
]
