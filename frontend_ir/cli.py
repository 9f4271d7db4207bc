"""CLI entrypoints for frontend-ir commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import MODES, FrontendIrConfig, load_config
from .errors import FrontendIrError
from .ir.serialize import stable_dumps, write_ir_json, write_text_atomic
from .logging import configure_logging, get_logger
from .pipeline import ExtractRequest, extract_project
from .report import write_report
from .scan import SourceScanner

logger = get_logger("cli")

EXIT_UNRESOLVED = 3

_MODE_COMMANDS = {
    "extract-ts": "ts",
    "extract-react": "react",
    "extract-angular": "angular",
    "extract-js": "js",
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-p",
        "--project",
        default=".",
        help="Project root to analyze (defaults to current directory).",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="GLOB",
        help="Additional exclude glob, relative to the project root. Repeatable.",
    )
    parser.add_argument(
        "--include-tests",
        action="store_true",
        default=None,
        help="Keep test files and directories that are skipped by default.",
    )
    parser.add_argument(
        "--max-files",
        type=_positive_int,
        default=None,
        help="Keep only the first N files of the sorted inventory.",
    )


def _add_extract_options(parser: argparse.ArgumentParser) -> None:
    _add_source_options(parser)
    parser.add_argument(
        "-o",
        "--out",
        default=None,
        help="Output IR JSON file (defaults to model.ir.json in the working directory).",
    )
    parser.add_argument(
        "--tsconfig",
        default=None,
        help="Explicit tsconfig.json/jsconfig.json, relative to the project root.",
    )
    parser.add_argument(
        "--include-deps",
        action="store_true",
        default=None,
        help="Emit DEPENDENCY relations for type references, usages and imports.",
    )
    parser.add_argument(
        "--no-framework-edges",
        dest="framework_edges",
        action="store_false",
        default=None,
        help="Skip React RENDER and Angular DI/module edges (classification is kept).",
    )
    parser.add_argument(
        "--report",
        default=None,
        help="Write the extraction report (.md renders Markdown, anything else JSON).",
    )
    parser.add_argument(
        "--report-format",
        choices=("md", "json"),
        default=None,
        help="Force the report format regardless of the file extension.",
    )
    parser.add_argument(
        "--fail-on-unresolved",
        action="store_true",
        default=None,
        help=f"Exit with status {EXIT_UNRESOLVED} when any reference stays unresolved.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frontend-ir",
        description="Convert TypeScript/JavaScript, React and Angular sources into IR v1 JSON.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only print warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write DEBUG-level logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="List the source files an extraction would read.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_source_options(scan_parser)
    scan_parser.add_argument(
        "-o",
        "--out",
        default=None,
        help="Write the inventory JSON here instead of stdout.",
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract the IR graph from a project.",
    )
    _add_verbose_option(extract_parser, suppress_default=True)
    _add_extract_options(extract_parser)
    extract_parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help="Framework handling; auto detects React and Angular (default).",
    )

    for command, mode in _MODE_COMMANDS.items():
        mode_parser = subparsers.add_parser(
            command,
            help=f"Shortcut for `extract --mode {mode}`.",
        )
        _add_verbose_option(mode_parser, suppress_default=True)
        _add_extract_options(mode_parser)
        mode_parser.set_defaults(mode=mode)

    return parser


def _pick(value, fallback):
    return fallback if value is None else value


def _build_request(args: argparse.Namespace, config: FrontendIrConfig) -> ExtractRequest:
    defaults = config.extract
    return ExtractRequest(
        project_root=Path(args.project),
        mode=_pick(args.mode, defaults.mode),
        tsconfig=_pick(args.tsconfig, defaults.tsconfig),
        exclude=list(defaults.exclude) + list(args.exclude or []),
        include_tests=_pick(args.include_tests, defaults.include_tests),
        include_deps=_pick(args.include_deps, defaults.include_deps),
        include_framework_edges=_pick(args.framework_edges, defaults.framework_edges),
        max_files=_pick(args.max_files, defaults.max_files),
    )


def _run_scan(args: argparse.Namespace, config: FrontendIrConfig) -> None:
    scanner = SourceScanner(
        list(config.extract.exclude) + list(args.exclude or []),
        include_tests=_pick(args.include_tests, config.extract.include_tests),
        max_files=_pick(args.max_files, config.extract.max_files),
    )
    inventory = scanner.scan(args.project)
    text = stable_dumps(inventory.to_dict())
    if args.out:
        write_text_atomic(Path(args.out), text)
        logger.info("Scanned %d source file(s). Wrote: %s", len(inventory.files), args.out)
    else:
        sys.stdout.write(text)


def _run_extract(args: argparse.Namespace, config: FrontendIrConfig) -> int:
    request = _build_request(args, config)
    result = extract_project(request)

    out = Path(args.out) if args.out else (config.out or Path("model.ir.json"))
    write_ir_json(out, result.model)
    logger.info(
        "Extracted %d classifier(s), %d relation(s). Wrote: %s",
        len(result.model.classifiers),
        len(result.model.relations),
        _relativize(out),
    )

    report_path = _pick(args.report, config.extract.report)
    if report_path:
        written = write_report(Path(report_path), result.report, args.report_format)
        logger.info("Wrote report: %s (unresolved: %d)", _relativize(written), result.unresolved_count)

    fail_on_unresolved = _pick(args.fail_on_unresolved, config.extract.fail_on_unresolved)
    if fail_on_unresolved and result.unresolved_count > 0:
        return EXIT_UNRESOLVED
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint for frontend-ir commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=args.quiet,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        config = load_config(Path(args.project))
        if args.command == "scan":
            _run_scan(args, config)
            return
        exit_code = _run_extract(args, config)
    except FrontendIrError as exc:
        parser.exit(1, f"frontend-ir {args.command} failed: {exc}\n")
    except OSError as exc:
        parser.exit(1, f"frontend-ir {args.command} failed: {exc}\nRun with --verbose for more details.\n")

    if exit_code == EXIT_UNRESOLVED:
        parser.exit(
            EXIT_UNRESOLVED,
            "Unresolved references found and --fail-on-unresolved is set; the IR was still written.\n",
        )


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
