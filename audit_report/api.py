"""

Simple high-level API for audit-report.

Main entry point for users: hand over the report state, get the document
bytes back.

Usage example:
>>> from audit_report import render, render_pdf, ReportData
>>>
>>> data = ReportData.from_dict({"branchName": "Kochi", "client": "Acme Corp"})
>>>
>>> # Raw bytes
>>> pdf_bytes = render_pdf(data)
>>>
>>> # Bytes plus download name and media type
>>> result = render(data, "docx")
>>> result.filename
'Audit_Report_Kochi.docx'

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .config import RenderOptions, resolve_options
from .engine.builder import build_document
from .engine.formatting import suggested_filename
from .exceptions import AuditReportError, ConfigurationError, PackagingError, RenderingError, ReportDataError
from .export.docx_exporter import DOCXExporter
from .media.image_fetcher import ImageFetcher
from .models.report import ReportData
from .renderers.pdf_renderer import PDFRenderer

logger = logging.getLogger(__name__)

__all__ = [
    "RenderResult",
    "build_document",
    "render",
    "render_docx",
    "render_pdf",
    "render_to_file",
    "suggested_filename",
]

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MEDIA_TYPE = "application/pdf"

FORMATS = {
    "docx": DOCX_MEDIA_TYPE,
    "pdf": PDF_MEDIA_TYPE,
}

ReportInput = Union[ReportData, Mapping[str, Any]]
OptionsInput = Union[RenderOptions, Mapping[str, Any], None]


@dataclass(frozen=True)
class RenderResult:
    content: bytes
    filename: str
    media_type: str


def _coerce_report(data: ReportInput) -> ReportData:
    if isinstance(data, ReportData):
        return data
    if isinstance(data, Mapping):
        return ReportData.from_dict(data)
    raise ReportDataError("Unsupported report data type", type(data).__name__)


def _render(data: ReportInput, fmt: str, options: OptionsInput) -> bytes:
    label = fmt.upper()
    try:
        report = _coerce_report(data)
        opts = resolve_options(options)
        # świeży fetcher na każde wywołanie: cache nie jest współdzielony między renderami
        fetcher = ImageFetcher(timeout=opts.fetch_timeout)
        tree = build_document(report, fetcher=fetcher, options=opts)
        if fmt == "docx":
            content = DOCXExporter(tree, opts).export()
        else:
            content = PDFRenderer(opts).render(tree)
    except AuditReportError as e:
        logger.error(f"{label} rendering failed: {e}")
        raise
    except Exception as e:
        logger.error(f"{label} rendering failed unexpectedly: {e}")
        error_cls = PackagingError if fmt == "docx" else RenderingError
        raise error_cls(f"Unexpected failure while rendering {label}", str(e)) from e

    logger.debug(
        f"{label} render finished: {fetcher.stats['fetched']} images fetched, "
        f"{fetcher.stats['failed']} unavailable"
    )
    return content


def render_docx(data: ReportInput, options: OptionsInput = None) -> bytes:
    """
    Render the report as an editable Word document.

    Args:
        data: ReportData or the UI's camelCase state mapping
        options: RenderOptions or a plain dict of option values

    Returns:
        DOCX file content

    Raises:
        ReportDataError, ConfigurationError, LayoutError, PackagingError
    """
    return _render(data, "docx", options)


def render_pdf(data: ReportInput, options: OptionsInput = None) -> bytes:
    """
    Render the report as a fixed-layout PDF.

    Args:
        data: ReportData or the UI's camelCase state mapping
        options: RenderOptions or a plain dict of option values

    Returns:
        PDF file content

    Raises:
        ReportDataError, ConfigurationError, LayoutError, RenderingError
    """
    return _render(data, "pdf", options)


def render(data: ReportInput, fmt: str, options: OptionsInput = None) -> RenderResult:
    """Render to ``fmt`` ("docx" or "pdf") with the suggested download name."""
    fmt = (fmt or "").lower().strip()
    if fmt not in FORMATS:
        raise ConfigurationError("Unsupported output format", fmt or "<empty>")
    try:
        report = _coerce_report(data)
    except ReportDataError as e:
        logger.error(f"{fmt.upper()} rendering failed: {e}")
        raise
    content = _render(report, fmt, options)
    return RenderResult(
        content=content,
        filename=suggested_filename(report.branch_name, fmt),
        media_type=FORMATS[fmt],
    )


def render_to_file(data: ReportInput, fmt: str, output_dir: Union[str, Path],
                   options: OptionsInput = None) -> Path:
    """
    Render and write the document under its suggested filename.

    Returns:
        Path of the written file
    """
    result = render(data, fmt, options)
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / result.filename
    path.write_bytes(result.content)
    logger.info(f"Saved {fmt.upper()} report: {path} ({len(result.content)} bytes)")
    return path
