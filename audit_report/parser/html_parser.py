"""
Rich-markup parser - converts editor HTML into styled paragraphs.

Obsługuje:
- block tags p, div, h1-h6, li, blockquote (one paragraph each)
- list containers ul/ol with per-container numbering
- inline bold/italic/underline and span colour/weight/style
- line breaks, alignment and HTML entities
"""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional, Tuple

from ..models.document_tree import (
    LIST_NONE,
    LIST_ORDERED,
    LIST_UNORDERED,
    Paragraph,
    StyledRun,
)

logger = logging.getLogger(__name__)

BLOCK_TAGS = {"p", "div", "li", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
LIST_TAGS = {"ul", "ol"}
INLINE_TAGS = {"b", "strong", "i", "em", "u", "ins", "span", "font"}
VOID_TAGS = {"br", "img", "hr", "input", "meta", "link", "wbr"}

ALIGNMENT_ALIASES = {
    "left": "left",
    "start": "left",
    "center": "center",
    "centre": "center",
    "middle": "center",
    "right": "right",
    "end": "right",
    "justify": "justify",
    "both": "justify",
}

COLOR_NAMES = {
    "black": "000000",
    "white": "FFFFFF",
    "red": "FF0000",
    "green": "008000",
    "blue": "0000FF",
    "yellow": "FFFF00",
    "cyan": "00FFFF",
    "magenta": "FF00FF",
    "gray": "808080",
    "grey": "808080",
    "orange": "FFA500",
    "purple": "800080",
    "brown": "A52A2A",
    "pink": "FFC0CB",
    "navy": "000080",
    "teal": "008080",
    "maroon": "800000",
    "olive": "808000",
}

_WHITESPACE_RE = re.compile(r"[ \t\r\n\f\v]+")
_HEX_RE = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6})$")
_RGB_RE = re.compile(r"^rgba?\(\s*([^,\s)]+)\s*,\s*([^,\s)]+)\s*,\s*([^,\s)]+)\s*(?:,\s*[^)]*)?\)$")


def normalize_color(value: Optional[str], default: Optional[str] = None) -> Optional[str]:
    """
    Normalize a CSS colour to 6-hex-digit uppercase form.

    Args:
        value: ``#rgb``, ``#rrggbb``, ``rgb()``/``rgba()`` or a colour name
        default: Returned when the value cannot be parsed

    Returns:
        Colour such as ``"FF0000"`` or ``default``
    """
    if not value:
        return default
    color = value.strip().lower()

    match = _HEX_RE.match(color)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            # Rozszerz RGB do RRGGBB
            digits = "".join(c * 2 for c in digits)
        return digits.upper()

    if color in COLOR_NAMES:
        return COLOR_NAMES[color]

    match = _RGB_RE.match(color)
    if match:
        channels = []
        for component in match.groups():
            channel = _parse_channel(component)
            if channel is None:
                return default
            channels.append(channel)
        return "".join(f"{c:02X}" for c in channels)

    return default


def _parse_channel(component: str) -> Optional[int]:
    try:
        if component.endswith("%"):
            value = float(component[:-1]) * 255.0 / 100.0
        else:
            value = float(component)
    except ValueError:
        return None
    return max(0, min(255, int(round(value))))


def parse_style(style_str: Optional[str]) -> Dict[str, str]:
    """Parse an inline ``style`` attribute into lowercase property/value pairs."""
    styles: Dict[str, str] = {}
    if not style_str:
        return styles
    for declaration in style_str.split(";"):
        if ":" not in declaration:
            continue
        prop, value = declaration.split(":", 1)
        prop = prop.strip().lower()
        value = value.strip()
        if prop and value:
            styles[prop] = value
    return styles


class RichTextParser(HTMLParser):
    """Parser HTML który ekstraktuje paragrafy i formatowanie z edytora."""

    def __init__(self, default_color: Optional[str] = None):
        super().__init__(convert_charrefs=True)
        self.default_color = default_color
        self.paragraphs: List[Paragraph] = []
        self.current_paragraph: Optional[Paragraph] = None
        # (tag, formatting) - formatting is the combined state at that depth
        self.formatting_stack: List[Tuple[str, Dict[str, Any]]] = []
        # (tag, alignment, list_kind, formatting depth) for open block elements
        self.block_stack: List[Tuple[str, str, str, int]] = []
        # per-container state: kind, emitted item count, list id
        self.list_stack: List[Dict[str, Any]] = []
        self._list_counter = 0

    # ------------------------------------------------------------------
    # HTMLParser hooks
    # ------------------------------------------------------------------
    def handle_starttag(self, tag: str, attrs: list) -> None:
        tag = tag.lower()
        attributes = {name.lower(): value for name, value in attrs}
        styles = parse_style(attributes.get("style"))

        if tag == "br":
            self._append_text("\n", raw=True)
            return

        if tag in LIST_TAGS:
            self._flush_paragraph()
            self._list_counter += 1
            self.list_stack.append({
                "kind": LIST_ORDERED if tag == "ol" else LIST_UNORDERED,
                "count": 0,
                "id": self._list_counter,
            })
            return

        if tag in BLOCK_TAGS:
            self._flush_paragraph()
            alignment = self._resolve_alignment(attributes, styles)
            list_kind = LIST_NONE
            if tag == "li":
                list_kind = self.list_stack[-1]["kind"] if self.list_stack else LIST_UNORDERED
            elif self.block_stack and self.block_stack[-1][2] != LIST_NONE:
                # <li><p>..</p></li>: first inner block carries the item marker
                list_kind = self.block_stack[-1][2]
            self.block_stack.append((tag, alignment, list_kind, len(self.formatting_stack)))
            self._start_paragraph()
            if tag in HEADING_TAGS:
                self._push_formatting(tag, {"bold": True})
            return

        if tag in VOID_TAGS:
            return

        formatting: Dict[str, Any] = {}
        if tag in ("b", "strong"):
            formatting["bold"] = True
        elif tag in ("i", "em"):
            formatting["italic"] = True
        elif tag in ("u", "ins"):
            formatting["underline"] = True
        elif tag == "font" and attributes.get("color"):
            formatting["color"] = normalize_color(attributes["color"], self.default_color)
        formatting.update(self._formatting_from_styles(styles))
        self._push_formatting(tag, formatting)

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        self.handle_starttag(tag, attrs)
        if tag.lower() not in VOID_TAGS:
            self.handle_endtag(tag)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()

        if tag in LIST_TAGS:
            self._flush_paragraph()
            if self.list_stack:
                self.list_stack.pop()
            self._resume_parent_block()
            return

        if tag in BLOCK_TAGS:
            self._flush_paragraph()
            for index in range(len(self.block_stack) - 1, -1, -1):
                if self.block_stack[index][0] == tag:
                    # inline formatting left open inside the block ends with it
                    del self.formatting_stack[self.block_stack[index][3]:]
                    del self.block_stack[index:]
                    break
            self._resume_parent_block()
            return

        if tag in VOID_TAGS:
            return

        self._pop_formatting(tag)

    def handle_data(self, data: str) -> None:
        self._append_text(data)

    def close(self) -> None:
        super().close()
        self._flush_paragraph()

    # ------------------------------------------------------------------
    # Paragraph state
    # ------------------------------------------------------------------
    def _start_paragraph(self) -> None:
        alignment = "left"
        list_kind = LIST_NONE
        if self.block_stack:
            _, alignment, list_kind, _ = self.block_stack[-1]
        self.current_paragraph = Paragraph(runs=[], alignment=alignment, list_kind=list_kind)

    def _resume_parent_block(self) -> None:
        """Text after a closed child block continues in the parent's alignment, unmarked."""
        if self.block_stack:
            alignment = self.block_stack[-1][1]
            self.current_paragraph = Paragraph(runs=[], alignment=alignment)
        else:
            self.current_paragraph = None

    def _flush_paragraph(self) -> None:
        paragraph = self.current_paragraph
        self.current_paragraph = None
        if paragraph is None:
            return

        runs = _clean_runs(paragraph.runs)
        if not runs:
            return
        paragraph.runs = runs

        if paragraph.list_kind != LIST_NONE:
            if self.list_stack:
                state = self.list_stack[-1]
                state["count"] += 1
                paragraph.list_index = state["count"]
                paragraph.list_id = state["id"]
            else:
                # li bez kontenera - traktuj jak punktor
                self._list_counter += 1
                paragraph.list_index = 1
                paragraph.list_id = self._list_counter
            # marker only on the first paragraph of an item
            for index in range(len(self.block_stack) - 1, -1, -1):
                tag, alignment, kind, depth = self.block_stack[index]
                if kind == LIST_NONE:
                    break
                self.block_stack[index] = (tag, alignment, LIST_NONE, depth)
                if tag == "li":
                    break

        self.paragraphs.append(paragraph)

    def _append_text(self, text: str, raw: bool = False) -> None:
        if not raw:
            text = _WHITESPACE_RE.sub(" ", text).replace("\xa0", " ")
        if not text:
            return
        if self.current_paragraph is None:
            self._start_paragraph()

        formatting = self.formatting_stack[-1][1] if self.formatting_stack else {}
        run = StyledRun(
            text=text,
            bold=bool(formatting.get("bold")),
            italic=bool(formatting.get("italic")),
            underline=bool(formatting.get("underline")),
            color=formatting.get("color"),
        )
        runs = self.current_paragraph.runs
        if runs and runs[-1].same_style(run):
            runs[-1].text += text
        else:
            runs.append(run)

    # ------------------------------------------------------------------
    # Formatting stack
    # ------------------------------------------------------------------
    def _push_formatting(self, tag: str, formatting: Dict[str, Any]) -> None:
        combined: Dict[str, Any] = {}
        if self.formatting_stack:
            combined.update(self.formatting_stack[-1][1])
        combined.update(formatting)
        self.formatting_stack.append((tag, combined))

    def _pop_formatting(self, tag: str) -> None:
        # Zdejmij do pasującego tagu (toleruje źle zagnieżdżone tagi)
        for index in range(len(self.formatting_stack) - 1, -1, -1):
            if self.formatting_stack[index][0] == tag:
                del self.formatting_stack[index:]
                return

    def _formatting_from_styles(self, styles: Dict[str, str]) -> Dict[str, Any]:
        formatting: Dict[str, Any] = {}
        if "color" in styles:
            formatting["color"] = normalize_color(styles["color"], self.default_color)
        weight = styles.get("font-weight", "").lower()
        if weight:
            if weight in ("bold", "bolder") or (weight.isdigit() and int(weight) >= 600):
                formatting["bold"] = True
            elif weight in ("normal", "lighter") or weight.isdigit():
                formatting["bold"] = False
        font_style = styles.get("font-style", "").lower()
        if font_style:
            formatting["italic"] = font_style in ("italic", "oblique")
        decoration = styles.get("text-decoration", "") + " " + styles.get("text-decoration-line", "")
        if "underline" in decoration.lower():
            formatting["underline"] = True
        return formatting

    def _resolve_alignment(self, attributes: Dict[str, Optional[str]], styles: Dict[str, str]) -> str:
        value = styles.get("text-align") or attributes.get("align") or ""
        alignment = ALIGNMENT_ALIASES.get(value.strip().lower())
        if alignment:
            return alignment
        if self.block_stack:
            return self.block_stack[-1][1]
        return "left"


def _clean_runs(runs: List[StyledRun]) -> List[StyledRun]:
    """Collapse whitespace across run boundaries and trim paragraph edges."""
    cleaned: List[StyledRun] = []
    previous_ends_with_space = False
    for run in runs:
        text = run.text
        if not cleaned:
            text = text.lstrip(" \n")
        elif previous_ends_with_space:
            text = text.lstrip(" ")
        text = text.replace(" \n", "\n").replace("\n ", "\n")
        if not text:
            continue
        run.text = text
        previous_ends_with_space = text.endswith(" ") or text.endswith("\n")
        cleaned.append(run)

    while cleaned:
        last = cleaned[-1]
        last.text = last.text.rstrip(" \n")
        if last.text:
            break
        cleaned.pop()

    if not "".join(run.text for run in cleaned).strip():
        return []
    return cleaned


def parse_rich_text(html: Optional[str], default_color: Optional[str] = None) -> List[Paragraph]:
    """
    Parse editor HTML into paragraphs.

    Args:
        html: Markup produced by the rich-text editor (may be plain text)
        default_color: Colour used when an inline colour cannot be parsed

    Returns:
        Paragraphs in document order; empty only for blank input
    """
    if not html or not html.strip():
        return []

    parser = RichTextParser(default_color=default_color)
    parser.feed(html)
    parser.close()

    logger.debug("Parsed rich text into %d paragraph(s)", len(parser.paragraphs))
    return parser.paragraphs
