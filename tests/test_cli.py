"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json

import pytest

from frontend_ir.cli import EXIT_UNRESOLVED, _build_parser, main


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "extract"])
    assert args.verbose is True
    assert args.command == "extract"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["scan", "--verbose"])
    assert args.verbose is True
    assert args.command == "scan"


def test_cli_mode_shortcuts_set_mode() -> None:
    parser = _build_parser()
    assert parser.parse_args(["extract-react"]).mode == "react"
    assert parser.parse_args(["extract-angular"]).mode == "angular"
    assert parser.parse_args(["extract", "--mode", "js"]).mode == "js"
    assert parser.parse_args(["extract"]).mode is None


def test_cli_unset_flags_defer_to_config() -> None:
    args = _build_parser().parse_args(["extract"])
    assert args.framework_edges is None
    assert args.include_deps is None
    assert args.max_files is None

    args = _build_parser().parse_args(["extract", "--no-framework-edges", "--include-deps", "--max-files", "5"])
    assert args.framework_edges is False
    assert args.include_deps is True
    assert args.max_files == 5


def test_cli_rejects_non_positive_max_files() -> None:
    with pytest.raises(SystemExit) as excinfo:
        _build_parser().parse_args(["extract", "--max-files", "0"])
    assert excinfo.value.code == 2


def test_extract_respects_max_files(project_builder, tmp_path) -> None:
    project_builder.write({"a.ts": "export class A {}\n", "b.ts": "export class B {}\n"})
    out = tmp_path / "model.ir.json"

    main(["extract", "--project", str(project_builder.path()), "--out", str(out), "--max-files", "1"])

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert [classifier["name"] for classifier in payload["classifiers"]] == ["A"]
    assert payload["classifiers"][0]["source"]["file"] == "a.ts"
    assert out.read_text(encoding="utf-8").endswith("\n")


def test_extract_writes_report_next_to_ir(project_builder, tmp_path) -> None:
    project_builder.write({"src/a.ts": "import { B } from './b';\nexport class A { b?: B; }\n"})
    out = tmp_path / "model.ir.json"
    report = tmp_path / "report.md"

    main(["extract-ts", "-p", str(project_builder.path()), "-o", str(out), "--include-deps", "--report", str(report)])

    assert out.exists()
    text = report.read_text(encoding="utf-8")
    assert "# Extraction report" in text
    assert "unresolvedImport" in text


def test_fail_on_unresolved_exits_after_writing(project_builder, tmp_path) -> None:
    project_builder.write({"index.js": "const gone = require('./gone');\n"})
    out = tmp_path / "model.ir.json"

    with pytest.raises(SystemExit) as excinfo:
        main(["extract-js", "-p", str(project_builder.path()), "-o", str(out), "--fail-on-unresolved"])

    assert excinfo.value.code == EXIT_UNRESOLVED
    assert json.loads(out.read_text(encoding="utf-8"))["schemaVersion"]


def test_extract_missing_project_exits_with_error(tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["extract", "-p", str(tmp_path / "missing"), "-o", str(tmp_path / "out.json")])

    assert excinfo.value.code == 1
    assert "frontend-ir extract failed" in capsys.readouterr().err


def test_scan_prints_inventory(project_builder, capsys) -> None:
    project_builder.write({"src/app.tsx": "export const App = () => <div />;\n", "dist/app.js": "x;\n"})

    main(["scan", "-p", str(project_builder.path())])

    payload = json.loads(capsys.readouterr().out)
    assert payload["files"] == ["src/app.tsx"]
    assert payload["schema"] == "file-inventory-v1"


def test_config_file_supplies_defaults(project_builder, tmp_path) -> None:
    project_builder.write(
        {
            ".frontend-ir.yml": "extract:\n  mode: ts\n  exclude: [legacy/]\n",
            "src/a.ts": "export class A {}\n",
            "legacy/old.ts": "export class Old {}\n",
        }
    )
    out = tmp_path / "model.ir.json"

    main(["extract", "-p", str(project_builder.path()), "-o", str(out)])

    names = [classifier["name"] for classifier in json.loads(out.read_text(encoding="utf-8"))["classifiers"]]
    assert names == ["A"]


def test_log_file_receives_debug_pass_timings(project_builder, tmp_path) -> None:
    project_builder.write({"a.ts": "export class A {}\n"})
    log_file = tmp_path / "logs" / "run.log"

    main(["--quiet", "--log-file", str(log_file), "extract", "-p", str(project_builder.path()), "-o", str(tmp_path / "ir.json")])

    text = log_file.read_text(encoding="utf-8")
    assert "Pass declarations finished" in text
    assert "Extracted 1 classifier(s)" in text


def test_fail_on_unresolved_counts_framework_findings_without_report(project_builder, tmp_path, capsys) -> None:
    project_builder.write(
        {
            "src/Toolbar.tsx": """
                import { useContext } from 'react';
                export function Toolbar() {
                  const theme = useContext(Missing);
                  return <span>{theme}</span>;
                }
            """,
        }
    )
    out = tmp_path / "model.ir.json"

    with pytest.raises(SystemExit) as excinfo:
        main(["extract-react", "-p", str(project_builder.path()), "-o", str(out), "--fail-on-unresolved"])

    assert excinfo.value.code == EXIT_UNRESOLVED == 3
    names = [classifier["name"] for classifier in json.loads(out.read_text(encoding="utf-8"))["classifiers"]]
    assert "Toolbar" in names
    assert not list(tmp_path.glob("*.md"))
    assert "--fail-on-unresolved" in capsys.readouterr().err
