"""Exception hierarchy shared by the extraction pipeline and its front-ends."""

from __future__ import annotations


class FrontendIrError(RuntimeError):
    """Base class for errors that abort an extraction run."""


class ConfigError(FrontendIrError):
    """Raised when the project configuration cannot be located or parsed."""


class ExtractionError(FrontendIrError):
    """Raised when source input cannot be read or parsed."""


class ModelIntegrityError(FrontendIrError):
    """Raised when an assembled IR model references missing elements."""


class ReportFinalizedError(FrontendIrError):
    """Raised when a finding is added to a report that was already finalized."""


__all__ = [
    "ConfigError",
    "ExtractionError",
    "FrontendIrError",
    "ModelIntegrityError",
    "ReportFinalizedError",
]
