"""Markdown and JSON renderings of a finalized extraction report."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from ..ir.serialize import stable_dumps, write_text_atomic
from .extraction import Finding, FindingKind, ReportSnapshot

_TOP_LIMIT = 20


def _escape(text: str) -> str:
    return text.replace("|", "\\|")


def _count_table(lines: List[str], counts: Dict[str, int]) -> None:
    lines.append("| Kind | Count |")
    lines.append("|---|---:|")
    for kind in sorted(counts):
        lines.append(f"| {kind} | {counts[kind]} |")
    if not counts:
        lines.append("| (none) | 0 |")
    lines.append("")


def _top_messages(findings: List[Finding], kind: FindingKind) -> List[tuple[str, int]]:
    counter = Counter(finding.message for finding in findings if finding.kind == kind)
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:_TOP_LIMIT]


def render_markdown(snapshot: ReportSnapshot) -> str:
    unresolved = [finding for finding in snapshot.findings if finding.is_unresolved]
    lines: List[str] = [
        "# Extraction report",
        "",
        f"- Tool: **{snapshot.tool['name']}** {snapshot.tool['version']}",
        f"- Project root: `{snapshot.project_root}`",
        f"- Started: {snapshot.started_at}",
        f"- Finished: {snapshot.finished_at}",
        f"- Files scanned: **{snapshot.files_scanned}**",
        f"- Files processed: **{snapshot.files_processed}**",
        f"- Findings: **{len(snapshot.findings)}** (unresolved: **{len(unresolved)}**)",
        "",
        "## Counts",
        "",
        "### Classifiers by kind",
        "",
    ]
    _count_table(lines, snapshot.classifiers_by_kind)
    lines.extend(["### Relations by kind", ""])
    _count_table(lines, snapshot.relations_by_kind)
    lines.extend(["## Findings summary", ""])
    _count_table(lines, snapshot.findings_by_kind)

    if unresolved:
        lines.extend(["## Top unresolved", ""])
        for kind in FindingKind:
            top = _top_messages(unresolved, kind)
            if not top:
                continue
            lines.extend([f"### {kind.value}", "", "| Count | Message |", "|---:|---|"])
            lines.extend(f"| {count} | {_escape(message)} |" for message, count in top)
            lines.append("")

    lines.extend(
        ["## All findings", "", "| Severity | Kind | Location | Message |", "|---|---|---|---|"]
    )
    ordered = sorted(snapshot.findings, key=Finding.sort_key)
    for finding in ordered:
        location = finding.location.render() if finding.location else ""
        lines.append(
            f"| {finding.severity.value} | {finding.kind.value} | {location} | {_escape(finding.message)} |"
        )
    if not ordered:
        lines.append("| (none) | (none) |  |  |")
    lines.append("")
    return "\n".join(lines)


def render_json(snapshot: ReportSnapshot) -> str:
    return stable_dumps(snapshot.to_dict())


def write_report(path: Path, snapshot: ReportSnapshot, fmt: Optional[str] = None) -> Path:
    """Write ``snapshot`` as Markdown (``.md``/``.markdown``) or JSON (anything else)."""
    path = Path(path)
    chosen = (fmt or "").lower() or ("md" if path.suffix.lower() in {".md", ".markdown"} else "json")
    text = render_markdown(snapshot) if chosen in {"md", "markdown"} else render_json(snapshot)
    write_text_atomic(path, text)
    return path


__all__ = ["render_json", "render_markdown", "write_report"]
