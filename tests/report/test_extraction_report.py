"""Report lifecycle, counts and renderings."""

from __future__ import annotations

import json

import pytest

from frontend_ir.errors import ReportFinalizedError
from frontend_ir.report import (
    ExtractionReport,
    FindingKind,
    Severity,
    render_markdown,
    write_report,
)


def _report() -> ExtractionReport:
    report = ExtractionReport.create("frontend-ir", "0.0.0", "/tmp/project")
    report.files_scanned = 3
    report.files_processed = 2
    report.add_finding(
        FindingKind.UNRESOLVED_IMPORT,
        "Unresolved import './gone' from src/a.ts",
        file="src/a.ts",
        line=4,
        tags={"specifier": "./gone"},
    )
    report.add_finding(FindingKind.NOTE, "Parsed with recovered syntax errors", severity=Severity.INFO)
    report.count_classifier("CLASS", 2)
    report.count_relation("ASSOCIATION")
    return report


def test_finalize_returns_immutable_snapshot() -> None:
    report = _report()

    snapshot = report.finalize()

    assert report.finalized
    assert snapshot.unresolved_count == 1
    assert snapshot.classifiers_by_kind == {"CLASS": 2}
    assert snapshot.relations_by_kind == {"ASSOCIATION": 1}
    assert snapshot.findings_by_kind == {"note": 1, "unresolvedImport": 1}
    assert snapshot.findings_by_severity == {"info": 1, "warning": 1}
    assert snapshot.findings[0].location.render() == "src/a.ts:4"


def test_report_rejects_changes_after_finalize() -> None:
    report = _report()
    report.finalize()

    with pytest.raises(ReportFinalizedError):
        report.add_finding(FindingKind.NOTE, "late")
    with pytest.raises(ReportFinalizedError):
        report.count_classifier("CLASS")
    with pytest.raises(ReportFinalizedError):
        report.finalize()


def test_markdown_rendering_lists_unresolved(tmp_path) -> None:
    snapshot = _report().finalize()

    text = render_markdown(snapshot)

    assert text.startswith("# Extraction report")
    assert "## Top unresolved" in text
    assert "### unresolvedImport" in text
    assert "| warning | unresolvedImport | src/a.ts:4 |" in text

    written = write_report(tmp_path / "report.md", snapshot)
    assert written.read_text(encoding="utf-8") == text


def test_json_rendering_uses_camel_case(tmp_path) -> None:
    snapshot = _report().finalize()

    path = write_report(tmp_path / "report.out", snapshot)
    payload = json.loads(path.read_text(encoding="utf-8"))

    assert payload["schema"] == "extraction-report-v1"
    assert payload["tool"] == {"name": "frontend-ir", "version": "0.0.0"}
    assert payload["filesScanned"] == 3
    assert payload["unresolvedCount"] == 1
    assert payload["counts"]["classifiersByKind"] == {"CLASS": 2}
    assert [finding["kind"] for finding in payload["findings"]] == ["note", "unresolvedImport"]
    assert payload["findings"][1]["location"] == {"file": "src/a.ts", "line": 4}


def test_format_override_wins_over_suffix(tmp_path) -> None:
    snapshot = _report().finalize()

    path = write_report(tmp_path / "report.md", snapshot, "json")

    assert json.loads(path.read_text(encoding="utf-8"))["unresolvedCount"] == 1
