"""
audit-report - electrical safety audit report renderer.

Turns the audit form state (branch details, rich-text observations,
snapshot images, power readings, connected load) into an editable Word
document and a fixed-layout PDF built from one shared document tree.

Quick Start:
    from audit_report import ReportData, render_docx, render_pdf

    data = ReportData.from_dict(state)
    docx_bytes = render_docx(data)
    pdf_bytes = render_pdf(data)
"""

from .version import __version__, __version_info__

from .exceptions import (
    AuditReportError,
    ConfigurationError,
    LayoutError,
    MediaError,
    PackagingError,
    RenderingError,
    ReportDataError,
)
from .config import RenderOptions
from .models import LoadItem, PowerParameters, ReportData, SnapshotGroup
from .api import (
    RenderResult,
    build_document,
    render,
    render_docx,
    render_pdf,
    render_to_file,
    suggested_filename,
)

__all__ = [
    "__version__",
    "__version_info__",
    "AuditReportError",
    "ConfigurationError",
    "LayoutError",
    "MediaError",
    "PackagingError",
    "RenderingError",
    "ReportDataError",
    "RenderOptions",
    "LoadItem",
    "PowerParameters",
    "ReportData",
    "SnapshotGroup",
    "RenderResult",
    "build_document",
    "render",
    "render_docx",
    "render_pdf",
    "render_to_file",
    "suggested_filename",
]
