"""Line breaking and drawing of styled runs on the PDF canvas."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from reportlab.pdfgen.canvas import Canvas

from .. import config
from ..models.document_tree import StyledRun
from .render_utils import line_height, resolve_font_variant, string_width, to_color

_TOKEN_RE = re.compile(r"\S+\s*|\s+")


@dataclass(slots=True)
class TextFragment:
    text: str
    font: str
    size: float
    color: str
    underline: bool = False
    highlight: Optional[str] = None
    width: float = 0.0

    def same_style(self, font: str, size: float, color: str, underline: bool,
                   highlight: Optional[str]) -> bool:
        return (self.font, self.size, self.color, self.underline, self.highlight) == (
            font, size, color, underline, highlight
        )


@dataclass(slots=True)
class TextLine:
    fragments: List[TextFragment] = field(default_factory=list)
    size: float = config.BODY_SIZE

    @property
    def width(self) -> float:
        return sum(fragment.width for fragment in self.fragments)

    @property
    def height(self) -> float:
        return line_height(self.size)

    @property
    def baseline_offset(self) -> float:
        return (self.height + self.size * 0.7) / 2

    @property
    def text(self) -> str:
        return "".join(fragment.text for fragment in self.fragments)


def _split_long_token(token: str, font: str, size: float, max_width: float) -> List[str]:
    """Hard-break a token wider than the line, character by character."""
    pieces: List[str] = []
    current = ""
    for char in token:
        if current and string_width(current + char, font, size) > max_width:
            pieces.append(current)
            current = char
        else:
            current += char
    if current:
        pieces.append(current)
    return pieces


class LineBreaker:
    """Greedy word wrap of styled runs into lines no wider than ``max_width``."""

    def __init__(self, max_width: float, default_size: float = config.BODY_SIZE,
                 default_color: str = config.DEFAULT_TEXT_COLOR):
        self.max_width = max(max_width, 1.0)
        self.default_size = default_size
        self.default_color = default_color
        self.lines: List[TextLine] = []
        self._current: List[TextFragment] = []

    def wrap(self, runs: Sequence[StyledRun]) -> List[TextLine]:
        if not runs:
            return []
        for run in runs:
            self._add_run(run)
        if self._current or not self.lines:
            self._finish_line()
        return self.lines

    def _add_run(self, run: StyledRun) -> None:
        size = run.size or self.default_size
        color = run.color or self.default_color

        for part_index, part in enumerate(run.text.split("\n")):
            if part_index:
                self._finish_line()
            for token in _TOKEN_RE.findall(part):
                if not self._current and not token.strip():
                    continue
                font = resolve_font_variant(run.bold, run.italic, token)
                fit_width = string_width(token.rstrip(), font, size)
                if self._current and self._current_width() + fit_width > self.max_width:
                    self._finish_line()
                    if not token.strip():
                        continue

                if not self._current and fit_width > self.max_width:
                    pieces = _split_long_token(token, font, size, self.max_width)
                    for piece in pieces[:-1]:
                        self._append(piece, font, size, color, run)
                        self._finish_line()
                    token = pieces[-1]
                self._append(token, font, size, color, run)

    def _append(self, text: str, font: str, size: float, color: str, run: StyledRun) -> None:
        if self._current and self._current[-1].same_style(font, size, color, run.underline, run.highlight):
            last = self._current[-1]
            last.text += text
            last.width = string_width(last.text, font, size)
            return
        self._current.append(TextFragment(
            text=text, font=font, size=size, color=color, underline=run.underline,
            highlight=run.highlight, width=string_width(text, font, size),
        ))

    def _current_width(self) -> float:
        return sum(fragment.width for fragment in self._current)

    def _finish_line(self) -> None:
        if self._current:
            last = self._current[-1]
            stripped = last.text.rstrip()
            if stripped != last.text:
                last.text = stripped
                last.width = string_width(stripped, last.font, last.size)
        fragments = [fragment for fragment in self._current if fragment.text]
        size = max((fragment.size for fragment in fragments), default=self.default_size)
        self.lines.append(TextLine(fragments=fragments, size=size))
        self._current = []


def wrap_runs(runs: Sequence[StyledRun], max_width: float, default_size: float = config.BODY_SIZE,
              default_color: str = config.DEFAULT_TEXT_COLOR) -> List[TextLine]:
    return LineBreaker(max_width, default_size, default_color).wrap(runs)


def draw_line(canvas: Canvas, line: TextLine, x: float, baseline: float, width: float,
              alignment: str = "left") -> None:
    """Draw one line; ``baseline`` is in canvas (bottom-up) coordinates."""
    if alignment == "center":
        x += (width - line.width) / 2
    elif alignment == "right":
        x += width - line.width

    for fragment in line.fragments:
        if fragment.highlight:
            canvas.setFillColor(to_color(fragment.highlight))
            canvas.rect(x, baseline - fragment.size * 0.25, fragment.width, fragment.size * 1.15,
                        fill=1, stroke=0)
        canvas.setFont(fragment.font, fragment.size)
        canvas.setFillColor(to_color(fragment.color))
        canvas.drawString(x, baseline, fragment.text)
        if fragment.underline:
            canvas.setStrokeColor(to_color(fragment.color))
            canvas.setLineWidth(max(fragment.size / 16, 0.5))
            canvas.line(x, baseline - fragment.size * 0.12, x + fragment.width, baseline - fragment.size * 0.12)
        x += fragment.width
