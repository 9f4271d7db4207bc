"""Extraction report model and renderers."""

from .extraction import (
    REPORT_SCHEMA,
    ExtractionReport,
    Finding,
    FindingKind,
    FindingLocation,
    ReportSnapshot,
    Severity,
)
from .render import render_json, render_markdown, write_report

__all__ = [
    "REPORT_SCHEMA",
    "ExtractionReport",
    "Finding",
    "FindingKind",
    "FindingLocation",
    "ReportSnapshot",
    "Severity",
    "render_json",
    "render_markdown",
    "write_report",
]
