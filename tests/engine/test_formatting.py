"""
Tests for value formatting helpers.
"""

import pytest

from audit_report.engine.formatting import (
    format_reading,
    format_text,
    line_voltage_from_phase,
    parse_number,
    sanitize_filename_part,
    strip_unit,
    sub_total_kw,
    suggested_filename,
    total_kw,
)


class TestFormatReading:
    """Test cases for value cell formatting."""

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "1.2.3", "nan", "inf"])
    def test_blank_or_malformed_is_dash(self, value):
        """Test that unusable readings render as a dash."""
        assert format_reading(value) == "-"

    def test_plain_number_kept_verbatim(self):
        """Test that valid readings are not reformatted."""
        assert format_reading("50.00") == "50.00"
        assert format_reading(" 0.92 ") == "0.92"

    def test_unit_suffix_removed(self):
        """Test that a unit typed with the value is dropped."""
        assert format_reading("230 V") == "230"
        assert format_reading("1.2V") == "1.2"
        assert format_reading("12 kW") == "12"

    def test_format_text(self):
        """Test free-text cells."""
        assert format_text("  ") == "-"
        assert format_text(" Fan ") == "Fan"


class TestParseNumber:
    """Test cases for numeric parsing."""

    def test_numbers(self):
        """Test accepted number forms."""
        assert parse_number("230") == 230.0
        assert parse_number("-1.5") == -1.5
        assert parse_number(".5") == 0.5
        assert parse_number("1,200") == 1200.0
        assert parse_number(7) == 7.0

    def test_rejected(self):
        """Test values that are not numbers."""
        assert parse_number(None) is None
        assert parse_number(True) is None
        assert parse_number("12abc") is None
        assert parse_number(float("nan")) is None

    def test_strip_unit_only_after_digits(self):
        """Test that words ending in a unit letter are left alone."""
        assert strip_unit("50 Hz") == "50"
        assert strip_unit("w") == "w"
        assert strip_unit("new") == "new"


class TestDerivedValues:
    """Test cases for derived readings."""

    def test_line_voltage(self):
        """Test phase to line voltage conversion."""
        assert line_voltage_from_phase("230.0") == "398.4"
        assert line_voltage_from_phase("240") == "415.7"
        assert line_voltage_from_phase("") == ""
        assert line_voltage_from_phase("abc") == ""

    def test_sub_total(self):
        """Test kW sub totals with three decimals."""
        assert sub_total_kw("100", "10") == "1.000"
        assert sub_total_kw("60", "5") == "0.300"
        assert sub_total_kw("", "5") == "0.000"

    def test_total(self):
        """Test totals with two decimals."""
        assert total_kw(["1.000", "0.300"]) == "1.30"
        assert total_kw([]) == "0.00"
        assert total_kw(["1.000", "bad"]) == "1.00"


class TestSuggestedFilename:
    """Test cases for download filenames."""

    def test_branch_name(self):
        """Test that spaces become underscores."""
        assert suggested_filename("Main Branch", "pdf") == "Audit_Report_Main_Branch.pdf"

    def test_extension_with_dot(self):
        """Test that a leading dot in the extension is accepted."""
        assert suggested_filename("Kochi", ".docx") == "Audit_Report_Kochi.docx"

    def test_blank_branch(self):
        """Test the fallback for a missing branch name."""
        assert suggested_filename("", "pdf") == "Audit_Report_Draft.pdf"
        assert suggested_filename(None, "docx") == "Audit_Report_Draft.docx"

    def test_unsafe_characters_removed(self):
        """Test that path separators and punctuation are stripped."""
        assert sanitize_filename_part("../Kochi #1/East") == "Kochi_1East"
        assert sanitize_filename_part("///") == "Draft"
