"""Append-only collector for non-fatal extraction findings."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import ReportFinalizedError

REPORT_SCHEMA = "extraction-report-v1"
UNRESOLVED_PREFIX = "unresolved"


class FindingKind(str, Enum):
    UNRESOLVED_IMPORT = "unresolvedImport"
    UNRESOLVED_CONTEXT = "unresolvedContext"
    UNRESOLVED_JSX_COMPONENT = "unresolvedJsxComponent"
    UNRESOLVED_DECORATOR_REF = "unresolvedDecoratorRef"
    UNRESOLVED_INJECTION = "unresolvedInjection"
    UNRESOLVED_ROUTE_TARGET = "unresolvedRouteTarget"
    UNRESOLVED_LAZY_MODULE = "unresolvedLazyModule"
    UNRESOLVED_TYPE = "unresolvedType"
    NOTE = "note"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class FindingLocation:
    file: str
    line: Optional[int] = None

    def render(self) -> str:
        return f"{self.file}:{self.line}" if self.line else self.file


@dataclass(frozen=True)
class Finding:
    kind: FindingKind
    severity: Severity
    message: str
    location: Optional[FindingLocation] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_unresolved(self) -> bool:
        return self.kind.value.startswith(UNRESOLVED_PREFIX)

    def sort_key(self) -> Tuple[str, str, str]:
        location = self.location.render() if self.location else ""
        return (self.kind.value, location, self.message)


@dataclass(frozen=True)
class ReportSnapshot:
    """Immutable result of :meth:`ExtractionReport.finalize`."""

    schema: str
    tool: Dict[str, str]
    project_root: str
    started_at: str
    finished_at: str
    files_scanned: int
    files_processed: int
    classifiers_by_kind: Dict[str, int]
    relations_by_kind: Dict[str, int]
    findings: Tuple[Finding, ...]

    @property
    def findings_by_kind(self) -> Dict[str, int]:
        return dict(sorted(Counter(finding.kind.value for finding in self.findings).items()))

    @property
    def findings_by_severity(self) -> Dict[str, int]:
        return dict(sorted(Counter(finding.severity.value for finding in self.findings).items()))

    @property
    def unresolved_count(self) -> int:
        return sum(1 for finding in self.findings if finding.is_unresolved)

    def to_dict(self) -> Dict[str, object]:
        return {
            "schema": self.schema,
            "tool": dict(self.tool),
            "projectRoot": self.project_root,
            "startedAtIso": self.started_at,
            "finishedAtIso": self.finished_at,
            "filesScanned": self.files_scanned,
            "filesProcessed": self.files_processed,
            "counts": {
                "classifiersByKind": dict(self.classifiers_by_kind),
                "relationsByKind": dict(self.relations_by_kind),
                "findingsByKind": self.findings_by_kind,
                "findingsBySeverity": self.findings_by_severity,
            },
            "unresolvedCount": self.unresolved_count,
            "findings": sorted(self.findings, key=Finding.sort_key),
        }


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ExtractionReport:
    """Collects findings for one extraction run; finalized exactly once."""

    def __init__(self, tool_name: str, tool_version: str, project_root: str) -> None:
        self.tool_name = tool_name
        self.tool_version = tool_version
        self.project_root = project_root
        self.started_at = _utc_now()
        self.files_scanned = 0
        self.files_processed = 0
        self._findings: List[Finding] = []
        self._classifier_counts: Counter[str] = Counter()
        self._relation_counts: Counter[str] = Counter()
        self._snapshot: Optional[ReportSnapshot] = None

    @classmethod
    def create(cls, tool_name: str, tool_version: str, project_root: str) -> "ExtractionReport":
        return cls(tool_name, tool_version, project_root)

    @property
    def finalized(self) -> bool:
        return self._snapshot is not None

    @property
    def findings(self) -> Tuple[Finding, ...]:
        return tuple(self._findings)

    def _check_open(self) -> None:
        if self._snapshot is not None:
            raise ReportFinalizedError("Extraction report has already been finalized")

    def add_finding(
        self,
        kind: FindingKind,
        message: str,
        *,
        severity: Severity = Severity.WARNING,
        file: Optional[str] = None,
        line: Optional[int] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> Finding:
        self._check_open()
        finding = Finding(
            kind=kind,
            severity=severity,
            message=message,
            location=FindingLocation(file=file, line=line) if file else None,
            tags=dict(tags or {}),
        )
        self._findings.append(finding)
        return finding

    def count_classifier(self, kind: str, amount: int = 1) -> None:
        self._check_open()
        self._classifier_counts[kind] += amount

    def count_relation(self, kind: str, amount: int = 1) -> None:
        self._check_open()
        self._relation_counts[kind] += amount

    def finalize(self) -> ReportSnapshot:
        self._check_open()
        self._snapshot = ReportSnapshot(
            schema=REPORT_SCHEMA,
            tool={"name": self.tool_name, "version": self.tool_version},
            project_root=self.project_root,
            started_at=self.started_at,
            finished_at=_utc_now(),
            files_scanned=self.files_scanned,
            files_processed=self.files_processed,
            classifiers_by_kind=dict(sorted(self._classifier_counts.items())),
            relations_by_kind=dict(sorted(self._relation_counts.items())),
            findings=tuple(self._findings),
        )
        return self._snapshot


__all__ = [
    "REPORT_SCHEMA",
    "ExtractionReport",
    "Finding",
    "FindingKind",
    "FindingLocation",
    "ReportSnapshot",
    "Severity",
]
