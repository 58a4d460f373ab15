"""
Tests for the rich-markup parser.
"""

from audit_report.models.document_tree import LIST_NONE, LIST_ORDERED, LIST_UNORDERED
from audit_report.parser import normalize_color, parse_rich_text
from audit_report.parser.html_parser import parse_style


class TestParseRichText:
    """Test cases for parse_rich_text."""

    def test_blank_input_produces_nothing(self):
        """Test that empty and whitespace-only markup yields no paragraphs."""
        assert parse_rich_text(None) == []
        assert parse_rich_text("") == []
        assert parse_rich_text("   \n ") == []
        assert parse_rich_text("<p> </p><p></p>") == []

    def test_plain_text(self):
        """Test that text without tags becomes one paragraph."""
        paragraphs = parse_rich_text("Earthing   resistance\nchecked")

        assert len(paragraphs) == 1
        assert paragraphs[0].text == "Earthing resistance checked"
        assert paragraphs[0].list_kind == LIST_NONE

    def test_inline_formatting(self):
        """Test bold, italic and underline runs."""
        paragraphs = parse_rich_text("<p>A <b>bold</b>, <i>italic</i> and <u>underlined</u> word</p>")

        runs = paragraphs[0].runs
        by_text = {run.text: run for run in runs}
        assert by_text["bold"].bold is True
        assert by_text["italic"].italic is True
        assert by_text["underlined"].underline is True
        assert by_text["A "].bold is False
        assert paragraphs[0].text == "A bold, italic and underlined word"

    def test_nested_formatting_combines(self):
        """Test that nested tags accumulate formatting."""
        paragraphs = parse_rich_text("<p><strong>very <em>important</em></strong></p>")

        important = paragraphs[0].runs[-1]
        assert important.text == "important"
        assert important.bold is True
        assert important.italic is True

    def test_span_styles(self):
        """Test colour and weight from inline style attributes."""
        paragraphs = parse_rich_text(
            '<p><span style="color: rgb(255, 0, 0); font-weight: 700">red</span> plain</p>'
        )

        red = paragraphs[0].runs[0]
        assert red.text == "red"
        assert red.color == "FF0000"
        assert red.bold is True
        assert paragraphs[0].runs[1].color is None

    def test_alignment(self):
        """Test text-align and the align attribute."""
        paragraphs = parse_rich_text(
            '<p style="text-align: center">one</p><div align="right">two</div><p>three</p>'
        )

        assert [p.alignment for p in paragraphs] == ["center", "right", "left"]

    def test_line_break(self):
        """Test that <br> becomes a newline inside the paragraph."""
        paragraphs = parse_rich_text("<p>first<br>second</p>")

        assert len(paragraphs) == 1
        assert paragraphs[0].text == "first\nsecond"

    def test_entities(self):
        """Test that HTML entities are decoded."""
        paragraphs = parse_rich_text("<p>R &amp; D &lt;5&nbsp;A&gt;</p>")

        assert paragraphs[0].text == "R & D <5 A>"

    def test_ordered_list(self):
        """Test ordered list numbering."""
        paragraphs = parse_rich_text("<ol><li>One</li><li>Two</li><li>Three</li></ol>")

        assert [p.list_kind for p in paragraphs] == [LIST_ORDERED] * 3
        assert [p.list_index for p in paragraphs] == [1, 2, 3]
        assert len({p.list_id for p in paragraphs}) == 1
        assert paragraphs[1].marker == "2. "

    def test_unordered_list(self):
        """Test bullet list items."""
        paragraphs = parse_rich_text("<ul><li>Fan</li><li>Lamp</li></ul>")

        assert [p.list_kind for p in paragraphs] == [LIST_UNORDERED] * 2
        assert paragraphs[0].marker == "• "

    def test_separate_lists_restart_numbering(self):
        """Test that two list containers get separate ids and numbering."""
        paragraphs = parse_rich_text("<ol><li>a</li><li>b</li></ol><p>gap</p><ol><li>c</li></ol>")

        first, second, gap, third = paragraphs
        assert gap.list_kind == LIST_NONE
        assert third.list_index == 1
        assert third.list_id != first.list_id
        assert second.list_id == first.list_id

    def test_paragraph_inside_list_item(self):
        """Test that <li><p>..</p></li> keeps the item marker."""
        paragraphs = parse_rich_text("<ul><li><p>Item text</p></li><li><p>Next</p></li></ul>")

        assert len(paragraphs) == 2
        assert all(p.list_kind == LIST_UNORDERED for p in paragraphs)
        assert [p.list_index for p in paragraphs] == [1, 2]

    def test_second_paragraph_of_item_is_unmarked(self):
        """Test that only the first block of a list item carries the marker."""
        paragraphs = parse_rich_text("<ol><li><p>Head</p><p>More</p></li></ol>")

        assert paragraphs[0].list_kind == LIST_ORDERED
        assert paragraphs[1].list_kind == LIST_NONE

    def test_heading_is_bold(self):
        """Test that heading tags produce bold text."""
        paragraphs = parse_rich_text("<h3>Title</h3><p>Body</p>")

        assert paragraphs[0].runs[0].bold is True
        assert paragraphs[1].runs[0].bold is False

    def test_malformed_markup_is_tolerated(self):
        """Test unclosed and mismatched tags."""
        paragraphs = parse_rich_text("<p><b>bold <i>both</b> tail")

        assert len(paragraphs) == 1
        assert paragraphs[0].text == "bold both tail"
        assert paragraphs[0].runs[-1].bold is False


class TestNormalizeColor:
    """Test cases for colour normalization."""

    def test_hex_forms(self):
        """Test long and short hex colours."""
        assert normalize_color("#ff8800") == "FF8800"
        assert normalize_color("abc") == "AABBCC"

    def test_named_color(self):
        """Test CSS colour names."""
        assert normalize_color("Navy") == "000080"

    def test_rgb_functions(self):
        """Test rgb() and rgba() notation."""
        assert normalize_color("rgb(0, 128, 255)") == "0080FF"
        assert normalize_color("rgba(255,255,255,0.5)") == "FFFFFF"
        assert normalize_color("rgb(100%, 0%, 0%)") == "FF0000"

    def test_invalid_returns_default(self):
        """Test unparseable values."""
        assert normalize_color("not-a-colour") is None
        assert normalize_color("", "000000") == "000000"
        assert normalize_color("rgb(a, b, c)", "111111") == "111111"


class TestParseStyle:
    """Test cases for inline style parsing."""

    def test_declarations(self):
        """Test that properties are lowercased and values kept."""
        styles = parse_style("Color: Red; font-weight:bold;; invalid")

        assert styles == {"color": "Red", "font-weight": "bold"}

    def test_empty(self):
        """Test missing style attribute."""
        assert parse_style(None) == {}
