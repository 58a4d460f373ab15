"""
Tests for line breaking of styled runs.
"""

from unittest.mock import MagicMock

import pytest

from audit_report import config
from audit_report.models.document_tree import StyledRun
from audit_report.renderers import font_registry
from audit_report.renderers.render_utils import pdf_y, resolve_font_variant, to_color
from audit_report.renderers.text_renderer import draw_line, wrap_runs


class TestWrapRuns:
    """Test cases for wrap_runs."""

    def test_empty(self):
        """Test that no runs produce no lines."""
        assert wrap_runs([], 100) == []

    def test_short_text_single_line(self):
        """Test text that fits."""
        lines = wrap_runs([StyledRun(text="Short line")], 300)

        assert len(lines) == 1
        assert lines[0].text == "Short line"

    def test_wrapping_respects_width(self):
        """Test that long text is broken into lines within the width."""
        lines = wrap_runs([StyledRun(text="insulation resistance " * 40)], 150)

        assert len(lines) > 1
        assert all(line.width <= 150 for line in lines)
        assert " ".join(line.text for line in lines) == ("insulation resistance " * 40).strip()

    def test_hard_break(self):
        """Test that newlines force a new line."""
        lines = wrap_runs([StyledRun(text="first\nsecond")], 300)

        assert [line.text for line in lines] == ["first", "second"]

    def test_long_token_split(self):
        """Test that a word wider than the line is split."""
        lines = wrap_runs([StyledRun(text="X" * 300)], 100)

        assert len(lines) > 1
        assert all(line.width <= 100 for line in lines)
        assert "".join(line.text for line in lines) == "X" * 300

    def test_mixed_styles(self):
        """Test fragments keep their fonts."""
        lines = wrap_runs([StyledRun(text="Reg. office: ", bold=True), StyledRun(text="Kottayam")], 400)

        fonts = [fragment.font for fragment in lines[0].fragments]
        assert fonts == [config.FONT_BOLD, config.FONT_REGULAR]

    def test_unicode_tokens_switch_font(self):
        """Test that only the words outside WinAnsi use the TrueType face."""
        lines = wrap_runs([StyledRun(text="Total ₹ 500")], 400)

        fonts = [fragment.font for fragment in lines[0].fragments]
        assert fonts == [config.FONT_REGULAR, "DejaVuSans", config.FONT_REGULAR]
        assert lines[0].text == "Total ₹ 500"

    def test_line_height_follows_largest_size(self):
        """Test that line height comes from the biggest fragment."""
        lines = wrap_runs([StyledRun(text="small "), StyledRun(text="big", size=16)], 400)

        assert lines[0].size == 16
        assert lines[0].height == 16 * config.LINE_HEIGHT_FACTOR


class TestDrawLine:
    """Test cases for draw_line."""

    def test_center_alignment(self):
        """Test horizontal offset for centered text."""
        line = wrap_runs([StyledRun(text="Centered")], 200)[0]
        canvas = MagicMock()

        draw_line(canvas, line, 10, 100, 200, "center")

        x = canvas.drawString.call_args.args[0]
        assert abs(x - (10 + (200 - line.width) / 2)) < 0.001

    def test_highlight_and_underline(self):
        """Test that highlight draws a rectangle and underline a line."""
        line = wrap_runs([StyledRun(text="India", underline=True, highlight="FFFF00")], 200)[0]
        canvas = MagicMock()

        draw_line(canvas, line, 0, 100, 200)

        canvas.rect.assert_called_once()
        canvas.line.assert_called_once()
        canvas.drawString.assert_called_once_with(0, 100, "India")


class TestRenderUtils:
    """Test cases for renderer helpers."""

    def test_to_color(self):
        """Test hex parsing with fallback."""
        assert to_color("#FF0000").hexval() == "0xff0000"
        assert to_color("bogus").hexval() == "0x000000"
        assert to_color(None, "FFFFFF").hexval() == "0xffffff"

    def test_font_variants(self):
        """Test standard font selection."""
        assert resolve_font_variant(True, True) == "Helvetica-BoldOblique"
        assert resolve_font_variant() == "Helvetica"
        assert resolve_font_variant(True, False, "Café €5") == "Helvetica-Bold"

    def test_unicode_font_variants(self):
        """Test that text outside WinAnsi resolves to the bundled TrueType family."""
        assert resolve_font_variant(False, False, "₹") == "DejaVuSans"
        assert resolve_font_variant(True, False, "✓") == "DejaVuSans-Bold"
        assert resolve_font_variant(True, True, "Ω").startswith("DejaVuSans-Bold")
        assert resolve_font_variant(False, True, "Ω").startswith("DejaVuSans")

    def test_unicode_font_missing(self, monkeypatch):
        """Test the standard font is kept when no TrueType face is available."""
        monkeypatch.setattr(font_registry, "register_default_fonts", lambda: {})

        assert resolve_font_variant(False, False, "₹") == "Helvetica"

    def test_pdf_y(self):
        """Test top-down to bottom-up conversion."""
        assert pdf_y(0) == config.PAGE_HEIGHT
        assert pdf_y(100, 20) == pytest.approx(config.PAGE_HEIGHT - 120)
