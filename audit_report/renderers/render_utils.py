"""Utility helpers shared across renderer components."""

from __future__ import annotations

from typing import Optional

from reportlab.lib.colors import Color, HexColor
from reportlab.pdfbase import pdfmetrics

from .. import config
from .font_registry import unicode_font

_FONT_VARIANTS = {
    (False, False): config.FONT_REGULAR,
    (True, False): config.FONT_BOLD,
    (False, True): config.FONT_ITALIC,
    (True, True): config.FONT_BOLD_ITALIC,
}


def to_color(value: Optional[str], fallback: str = config.DEFAULT_TEXT_COLOR) -> Color:
    """6-hex (with or without '#') to a ReportLab color; invalid values use the fallback."""
    token = str(value or "").strip().lstrip("#")
    if len(token) != 6 or any(ch not in "0123456789abcdefABCDEF" for ch in token):
        token = fallback.lstrip("#")
    return HexColor(f"#{token}")


def is_winansi(text: str) -> bool:
    try:
        text.encode("cp1252")
    except UnicodeEncodeError:
        return False
    return True


def resolve_font_variant(bold: bool = False, italic: bool = False, text: str = "") -> str:
    """Standard font for WinAnsi text, the registered Unicode face for anything else."""
    if text and not is_winansi(text):
        font = unicode_font(bold, italic)
        if font:
            return font
    return _FONT_VARIANTS[(bool(bold), bool(italic))]


def string_width(text: str, font_name: str, size: float) -> float:
    return pdfmetrics.stringWidth(text, font_name, size)


def line_height(size: float) -> float:
    return size * config.LINE_HEIGHT_FACTOR


def pdf_y(top: float, height: float = 0.0) -> float:
    """Top-down layout coordinate to the canvas's bottom-up y of the box's lower edge."""
    return config.PAGE_HEIGHT - top - height
