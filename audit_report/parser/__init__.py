"""Rich-markup parsing into styled paragraphs."""

from .html_parser import RichTextParser, normalize_color, parse_rich_text

__all__ = ["RichTextParser", "normalize_color", "parse_rich_text"]
