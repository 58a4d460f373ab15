"""
Tests for the high-level rendering API.
"""

import logging
from unittest.mock import patch

import pytest

import audit_report
from audit_report import (
    ConfigurationError,
    PackagingError,
    RenderingError,
    RenderOptions,
    ReportDataError,
    render,
    render_docx,
    render_pdf,
    render_to_file,
)
from audit_report.api import DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE
from audit_report.config import resolve_options
from tests.conftest import docx_names


class TestRender:
    """Test cases for render, render_docx and render_pdf."""

    def test_render_docx_from_mapping(self):
        """Test that the camelCase state is accepted directly."""
        content = render_docx({"client": "Acme Corp", "powerParameters": {"frequency": "50.00"}})

        assert content[:2] == b"PK"
        assert "word/document.xml" in docx_names(content)

    def test_render_pdf_from_report(self, minimal_report):
        """Test PDF bytes from a ReportData instance."""
        content = render_pdf(minimal_report)

        assert content.startswith(b"%PDF-")

    def test_render_result(self, full_report):
        """Test filename and media type of the result."""
        result = render(full_report, "PDF")

        assert result.filename == "Audit_Report_Main_Branch.pdf"
        assert result.media_type == PDF_MEDIA_TYPE
        assert result.content.startswith(b"%PDF-")

    def test_render_result_docx_draft_name(self, minimal_report):
        """Test the fallback filename without a branch name."""
        result = render(minimal_report, "docx")

        assert result.filename == "Audit_Report_Draft.docx"
        assert result.media_type == DOCX_MEDIA_TYPE

    def test_unsupported_format(self, minimal_report):
        """Test that only docx and pdf are accepted."""
        with pytest.raises(ConfigurationError):
            render(minimal_report, "odt")
        with pytest.raises(ConfigurationError):
            render(minimal_report, "")

    def test_invalid_input(self):
        """Test that unsupported input types are rejected."""
        with pytest.raises(ReportDataError):
            render_pdf("not a report")
        with pytest.raises(ReportDataError):
            render_docx({"snapshots": 42})

    def test_invalid_input_logged_once(self, caplog):
        """Test that rejected input is logged once by every entry point."""
        for call in (lambda: render_pdf("not a report"), lambda: render("not a report", "pdf")):
            caplog.clear()
            with caplog.at_level(logging.ERROR, logger="audit_report.api"):
                with pytest.raises(ReportDataError):
                    call()

            errors = [r for r in caplog.records if r.levelno == logging.ERROR]
            assert len(errors) == 1
            assert "PDF rendering failed" in errors[0].message

    def test_options_mapping(self, minimal_report):
        """Test options given as a plain dict."""
        content = render_pdf(minimal_report, {"compress": False, "include_organization_logo": False})

        assert b"(Acme Corp) Tj" in content

    def test_unknown_option(self, minimal_report):
        """Test that unknown option names are rejected."""
        with pytest.raises(ConfigurationError):
            render_pdf(minimal_report, {"colour": "red"})

    def test_broken_images_do_not_fail_render(self):
        """Test graceful degradation for every broken image slot."""
        state = {
            "logo": "https://invalid.example/logo.png",
            "signature": "data:image/png;base64,AAAA",
            "snapshots": [{"images": ["/nonexistent.png"], "description": "x"}],
        }
        with patch("audit_report.media.image_fetcher.requests.get", side_effect=OSError("offline")):
            assert render_docx(state)[:2] == b"PK"
            assert render_pdf(state).startswith(b"%PDF-")

    def test_unexpected_failure_wrapped(self, minimal_report, caplog):
        """Test that unexpected errors surface as the format's error type."""
        with patch("audit_report.api.PDFRenderer.render", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR, logger="audit_report.api"):
                with pytest.raises(RenderingError) as exc_info:
                    render_pdf(minimal_report)

        assert "boom" in str(exc_info.value)
        assert any("PDF rendering failed" in record.message for record in caplog.records)

    def test_unexpected_docx_failure_wrapped(self, minimal_report):
        """Test the DOCX counterpart of error wrapping."""
        with patch("audit_report.api.DOCXExporter.export", side_effect=RuntimeError("zip")):
            with pytest.raises(PackagingError):
                render_docx(minimal_report)

    def test_same_input_same_structure(self, full_report):
        """Test that rendering twice yields the same document structure."""
        first = render_docx(full_report)
        second = render_docx(full_report)

        assert docx_names(first) == docx_names(second)
        assert render_pdf(full_report) == render_pdf(full_report)


class TestRenderToFile:
    """Test cases for render_to_file."""

    def test_writes_file(self, temp_dir, full_report):
        """Test output under the suggested name."""
        path = render_to_file(full_report, "docx", temp_dir / "out")

        assert path == temp_dir / "out" / "Audit_Report_Main_Branch.docx"
        assert path.read_bytes()[:2] == b"PK"

    def test_invalid_input_logged(self, temp_dir, caplog):
        """Test that a rejected report is logged before the error propagates."""
        with caplog.at_level(logging.ERROR, logger="audit_report.api"):
            with pytest.raises(ReportDataError):
                render_to_file({"snapshots": 42}, "docx", temp_dir)

        assert [r.message for r in caplog.records if r.levelno == logging.ERROR][0].startswith(
            "DOCX rendering failed"
        )
        assert not list(temp_dir.iterdir())


class TestRenderOptions:
    """Test cases for option resolution."""

    def test_defaults(self):
        """Test default values."""
        options = resolve_options(None)

        assert options.compress is True
        assert options.include_organization_logo is True
        assert options.fetch_timeout is None

    def test_invalid_values(self):
        """Test validation of numeric options."""
        with pytest.raises(ConfigurationError):
            resolve_options({"fetch_timeout": 0})
        with pytest.raises(ConfigurationError):
            resolve_options(RenderOptions(snapshot_image_max_height=-1))
        with pytest.raises(ConfigurationError):
            resolve_options(["compress"])

    def test_to_dict(self):
        """Test option export."""
        assert RenderOptions(compress=False).to_dict()["compress"] is False


def test_version():
    """Test that the package exposes its version."""
    assert audit_report.__version__.count(".") == 2
    assert audit_report.__version_info__[0] == int(audit_report.__version__.split(".")[0])
