"""
TrueType faces for text the standard PDF fonts cannot encode.

The built-in Helvetica family only covers WinAnsi (cp1252). Runs containing
anything else, such as the rupee sign, check marks or Greek letters, are
drawn with a registered Unicode family instead. Fonts bundled with the
package are searched first, then the usual system font directories.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from ..config import FONTS_DIR

logger = logging.getLogger(__name__)

SEARCH_DIRECTORIES: List[Path] = [
    FONTS_DIR,
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".fonts",
    Path.home() / ".local/share/fonts",
    Path("C:/Windows/Fonts"),
    Path("/System/Library/Fonts"),
    Path("/Library/Fonts"),
]

# (bold, italic) -> (registered name, candidate file names)
FONT_VARIANTS: Dict[Tuple[bool, bool], Tuple[str, Tuple[str, ...]]] = {
    (False, False): ("DejaVuSans", ("DejaVuSans.ttf", "DejaVuSans-Regular.ttf")),
    (True, False): ("DejaVuSans-Bold", ("DejaVuSans-Bold.ttf",)),
    (False, True): ("DejaVuSans-Oblique", ("DejaVuSans-Oblique.ttf", "DejaVuSans-Italic.ttf")),
    (True, True): ("DejaVuSans-BoldOblique", ("DejaVuSans-BoldOblique.ttf", "DejaVuSans-BoldItalic.ttf")),
}

# missing face -> next closest style
_FALLBACK_STYLE = {
    (True, True): (True, False),
    (False, True): (False, False),
    (True, False): (False, False),
}


@lru_cache()
def _build_font_index() -> Dict[str, Path]:
    index: Dict[str, Path] = {}
    for root in SEARCH_DIRECTORIES:
        if not root.exists():
            continue
        try:
            for candidate in root.rglob("*.ttf"):
                index.setdefault(candidate.name.lower(), candidate)
        except OSError as e:
            logger.debug(f"Nie udało się przeskanować katalogu fontów {root}: {e}")
    return index


def _locate_font_file(candidates: Iterable[str]) -> Optional[Path]:
    index = _build_font_index()
    for name in candidates:
        path = index.get(name.lower())
        if path:
            return path
    return None


@lru_cache()
def register_default_fonts() -> Dict[Tuple[bool, bool], str]:
    """
    Register every face of the Unicode family found on disk.

    Returns:
        Mapping of (bold, italic) to the registered ReportLab font name
    """
    registered: Dict[Tuple[bool, bool], str] = {}
    for style, (font_id, candidates) in FONT_VARIANTS.items():
        font_path = _locate_font_file(candidates)
        if not font_path:
            logger.debug(f"Brak pliku fontu {font_id} (szukano {candidates})")
            continue
        try:
            pdfmetrics.registerFont(TTFont(font_id, str(font_path)))
        except (TTFError, OSError) as e:
            logger.warning(f"Could not register font {font_id}: {e}")
            continue
        registered[style] = font_id
        logger.debug(f"Registered font {font_id} ({font_path})")

    if not registered:
        logger.warning("No Unicode TrueType font found; text outside WinAnsi will not render")
    return registered


def unicode_font(bold: bool = False, italic: bool = False) -> Optional[str]:
    """Registered Unicode face closest to the requested style, or None."""
    fonts = register_default_fonts()
    style: Optional[Tuple[bool, bool]] = (bool(bold), bool(italic))
    while style is not None:
        if style in fonts:
            return fonts[style]
        style = _FALLBACK_STYLE.get(style)
    return None
