"""Library entrypoint: scan a project, run every extraction pass and assemble the IR."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence

from . import TOOL_NAME, __version__
from .config import MODES
from .errors import ConfigError
from .extract import (
    ExtractionContext,
    ExtractionOptions,
    ParsedProgram,
    build_program,
    declare_classifiers,
    extract_angular,
    extract_angular_routes,
    extract_angular_templates,
    extract_import_graph,
    extract_members_and_relations,
    extract_react,
    extract_react_routes,
    load_tsconfig,
)
from .extract.imports import iter_module_specifiers
from .extract.parsing import walk
from .ir.canonical import canonicalize_model
from .ir.models import IrModel, validate_model
from .logging import get_logger, log_pass
from .report import ExtractionReport, ReportSnapshot
from .scan import SourceScanner

logger = get_logger("pipeline")

_JS_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs")
_JSX_NODES = {"jsx_element", "jsx_self_closing_element"}
_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


@dataclass
class ExtractRequest:
    """Everything an extraction run needs besides the source tree itself."""

    project_root: Path
    mode: str = "auto"
    tsconfig: Optional[str] = None
    exclude: List[str] = field(default_factory=list)
    include_tests: bool = False
    include_deps: bool = False
    include_framework_edges: bool = True
    max_files: Optional[int] = None


@dataclass
class ExtractResult:
    """Canonical model, finalized report and the number of ``unresolved*`` findings."""

    model: IrModel
    report: ReportSnapshot
    options: ExtractionOptions
    files: List[str] = field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        return self.report.unresolved_count


def _package_dependencies(root: Path) -> set[str]:
    manifest = root / "package.json"
    if not manifest.is_file():
        return set()
    try:
        payload = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable package.json: %s", exc)
        return set()
    names: set[str] = set()
    if isinstance(payload, dict):
        for section in _DEPENDENCY_SECTIONS:
            entries = payload.get(section)
            if isinstance(entries, dict):
                names.update(str(name) for name in entries)
    return names


def _imports(program: ParsedProgram) -> Iterable[str]:
    for parsed in program.source_files():
        for specifier, _, _ in iter_module_specifiers(parsed):
            yield specifier


def detect_react(program: ParsedProgram, dependencies: set[str]) -> bool:
    """React is present when declared as a dependency, set as the tsconfig ``jsx`` mode, or when JSX appears in a .jsx/.tsx file."""
    if "react" in dependencies:
        return True
    if (program.options.jsx or "").lower().startswith("react"):
        return True
    for parsed in program.source_files():
        if parsed.is_jsx and any(node.type in _JSX_NODES for node in walk(parsed.root)):
            return True
    return False


def detect_angular(program: ParsedProgram, dependencies: set[str]) -> bool:
    """Angular is present when ``@angular/core`` is a dependency or is imported."""
    if "@angular/core" in dependencies:
        return True
    return any(specifier == "@angular/core" for specifier in _imports(program))


def _resolve_options(request: ExtractRequest, program: ParsedProgram) -> ExtractionOptions:
    mode = request.mode
    options = ExtractionOptions(
        force_allow_js=mode != "ts",
        import_graph=mode == "js" or request.include_deps,
        include_deps=request.include_deps,
        include_framework_edges=request.include_framework_edges,
        max_files=request.max_files,
    )
    if mode == "react":
        options.react = True
    elif mode == "angular":
        options.angular = True
    elif mode == "auto":
        dependencies = _package_dependencies(program.root)
        options.react = detect_react(program, dependencies)
        options.angular = detect_angular(program, dependencies)
        logger.debug("Framework detection: react=%s angular=%s", options.react, options.angular)
    return options


def _select_files(files: Sequence[str], *, allow_js: bool) -> List[str]:
    if allow_js:
        return list(files)
    return [path for path in files if PurePosixPath(path).suffix.lower() not in _JS_SUFFIXES]


def run_passes(ctx: ExtractionContext) -> IrModel:
    """Run the passes in order over an already-built context and return the raw model."""
    passes = [("declarations", declare_classifiers), ("members", extract_members_and_relations)]
    if ctx.options.react:
        passes.extend([("react", extract_react), ("react-routes", extract_react_routes)])
    if ctx.options.angular:
        passes.extend(
            [
                ("angular", extract_angular),
                ("angular-routes", extract_angular_routes),
                ("angular-templates", extract_angular_templates),
            ]
        )
    if ctx.options.import_graph:
        passes.append(("imports", extract_import_graph))
    for name, run in passes:
        with log_pass(logger, name):
            run(ctx)
    model = ctx.build_model()
    validate_model(model)
    return model


def extract_project(request: ExtractRequest) -> ExtractResult:
    """Generate a canonical IR model for ``request.project_root``; nothing is written."""
    if request.mode not in MODES:
        raise ConfigError(f"Unsupported mode '{request.mode}'; expected one of {', '.join(MODES)}")
    root = Path(request.project_root).expanduser().resolve()
    if not root.is_dir():
        raise ConfigError(f"Project path not found or not a directory: {request.project_root}")

    report = ExtractionReport.create(TOOL_NAME, __version__, str(root))

    inventory = SourceScanner(
        request.exclude,
        include_tests=request.include_tests,
        max_files=request.max_files,
    ).scan(root)
    compiler_options = load_tsconfig(root, request.tsconfig)

    # Mode resolution needs parsed files for JSX/import detection; parse everything scanned first.
    scanned = build_program(root, inventory.files, compiler_options)
    options = _resolve_options(request, scanned)
    files = _select_files(inventory.files, allow_js=options.force_allow_js or compiler_options.allow_js)
    if len(files) == len(scanned.files):
        program = scanned
    else:
        program = ParsedProgram(
            root=scanned.root,
            files={path: scanned.files[path] for path in files},
            options=compiler_options,
        )
    report.files_scanned = inventory.files_found
    report.files_processed = len(program.source_files())

    ctx = ExtractionContext(program, options, report)
    model = canonicalize_model(run_passes(ctx))

    for classifier in model.classifiers:
        report.count_classifier(classifier.kind.value)
    for relation in model.relations:
        report.count_relation(relation.kind.value)
    snapshot = report.finalize()

    logger.info(
        "Extracted %d classifier(s) and %d relation(s) from %d file(s)",
        len(model.classifiers),
        len(model.relations),
        report.files_processed,
    )
    if snapshot.unresolved_count:
        logger.info("Unresolved references: %d", snapshot.unresolved_count)
    return ExtractResult(model=model, report=snapshot, options=options, files=files)


def generate_ir(project_root: str | Path, **kwargs) -> IrModel:
    """Shortcut returning only the canonical model."""
    return extract_project(ExtractRequest(project_root=Path(project_root), **kwargs)).model


__all__ = [
    "ExtractRequest",
    "ExtractResult",
    "detect_angular",
    "detect_react",
    "extract_project",
    "generate_ir",
    "run_passes",
]
