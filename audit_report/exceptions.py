"""Custom exceptions for the audit report renderer."""

from typing import Optional


class AuditReportError(Exception):
    """Base exception for audit report errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(AuditReportError):
    """Exception raised for invalid render options or output formats."""

    pass


class ReportDataError(AuditReportError):
    """Exception raised when input data cannot be turned into a report model."""

    pass


class MediaError(AuditReportError):
    """Exception raised during image fetching or transcoding."""

    pass


class LayoutError(AuditReportError):
    """Exception raised when the document tree cannot be assembled."""

    pass


class PackagingError(AuditReportError):
    """Exception raised while packaging the DOCX archive."""

    pass


class RenderingError(AuditReportError):
    """Exception raised during PDF rendering."""

    pass
