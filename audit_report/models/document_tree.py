"""
Format-agnostic document tree shared by the DOCX and PDF emitters.

The builder produces these nodes; emitters only read them. Table column
widths are absolute twips and every row carries one cell per column, with
row spans expressed as a leading cell (``row_span > 1``) followed by
``merged`` continuation cells in the rows below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional, Union

from ..exceptions import LayoutError
from ..media.image_fetcher import FetchedImage

ALIGNMENTS = ("left", "center", "right", "justify")
LIST_NONE = "none"
LIST_ORDERED = "ordered"
LIST_UNORDERED = "unordered"
BULLET_GLYPH = "•"


@dataclass(slots=True)
class StyledRun:
    text: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    color: Optional[str] = None
    size: Optional[float] = None
    highlight: Optional[str] = None

    def same_style(self, other: "StyledRun") -> bool:
        return (
            self.bold == other.bold
            and self.italic == other.italic
            and self.underline == other.underline
            and self.color == other.color
            and self.size == other.size
            and self.highlight == other.highlight
        )


@dataclass(slots=True)
class Paragraph:
    runs: List[StyledRun] = field(default_factory=list)
    alignment: str = "left"
    list_kind: str = LIST_NONE
    list_index: int = 0
    list_id: int = 0
    style: str = "normal"
    anchor: Optional[str] = None
    space_before: float = 0.0
    space_after: float = 4.0
    size: Optional[float] = None

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    @property
    def marker(self) -> str:
        """Leading list marker ("3. " or bullet) or an empty string."""
        if self.list_kind == LIST_ORDERED:
            return f"{self.list_index}. "
        if self.list_kind == LIST_UNORDERED:
            return f"{BULLET_GLYPH} "
        return ""

    def runs_with_marker(self) -> List[StyledRun]:
        """Runs with the list marker merged into the first run's text."""
        marker = self.marker
        if not marker:
            return list(self.runs)
        if not self.runs:
            return [StyledRun(text=marker)]
        first = self.runs[0]
        merged = StyledRun(
            text=marker + first.text,
            bold=first.bold,
            italic=first.italic,
            underline=first.underline,
            color=first.color,
            size=first.size,
            highlight=first.highlight,
        )
        return [merged] + list(self.runs[1:])


@dataclass(slots=True)
class ImageContent:
    """An image placed inline; ``image=None`` renders ``placeholder`` text instead."""

    image: Optional[FetchedImage]
    width: float
    height: float
    placeholder: str = ""
    alignment: str = "left"


@dataclass(slots=True)
class PageReference:
    """Cross-reference to the page holding ``anchor``, resolved by the viewer."""

    anchor: str
    placeholder: str = "-"
    alignment: str = "center"


CellContent = Union[Paragraph, ImageContent, PageReference]


@dataclass(slots=True)
class TableCell:
    content: List[CellContent] = field(default_factory=list)
    fill: Optional[str] = None
    row_span: int = 1
    merged: bool = False
    vertical_align: str = "center"
    link: Optional[str] = None

    @property
    def text(self) -> str:
        parts = []
        for item in self.content:
            if isinstance(item, Paragraph):
                parts.append(item.marker + item.text)
            elif isinstance(item, PageReference):
                parts.append(item.placeholder)
            elif isinstance(item, ImageContent) and item.image is None:
                parts.append(item.placeholder)
        return "\n".join(parts)


@dataclass(slots=True)
class TableRow:
    cells: List[TableCell] = field(default_factory=list)
    is_header: bool = False


@dataclass(slots=True)
class Table:
    column_widths: List[int]
    rows: List[TableRow] = field(default_factory=list)
    kind: str = "grid"
    header_rows: int = 0
    borders: bool = True

    @property
    def width(self) -> int:
        return sum(self.column_widths)

    def validate(self, content_width: int) -> None:
        """
        Check the table against the fixed-width layout rules.

        Raises:
            LayoutError: On width or row/column schema mismatches
        """
        if not self.column_widths or any(w <= 0 for w in self.column_widths):
            raise LayoutError(f"Table '{self.kind}' has invalid column widths", str(self.column_widths))
        if self.width != content_width:
            raise LayoutError(
                f"Table '{self.kind}' width does not match content width",
                f"{self.width} != {content_width}",
            )

        columns = len(self.column_widths)
        open_spans = [0] * columns
        for row_index, row in enumerate(self.rows):
            if len(row.cells) != columns:
                raise LayoutError(
                    f"Table '{self.kind}' row {row_index} has {len(row.cells)} cells",
                    f"expected {columns}",
                )
            for col, cell in enumerate(row.cells):
                if cell.merged:
                    if open_spans[col] <= 0:
                        raise LayoutError(
                            f"Table '{self.kind}' has a merged cell without a span",
                            f"row {row_index}, column {col}",
                        )
                    open_spans[col] -= 1
                    continue
                if open_spans[col] > 0:
                    raise LayoutError(
                        f"Table '{self.kind}' span interrupted",
                        f"row {row_index}, column {col}",
                    )
                if cell.row_span < 1 or row_index + cell.row_span > len(self.rows):
                    raise LayoutError(
                        f"Table '{self.kind}' span runs past the table",
                        f"row {row_index}, column {col}, span {cell.row_span}",
                    )
                open_spans[col] = cell.row_span - 1


@dataclass(slots=True)
class PageBreak:
    pass


@dataclass(slots=True)
class Spacer:
    height: float


Block = Union[Paragraph, Table, ImageContent, PageBreak, Spacer]


@dataclass(slots=True)
class Bookmark:
    anchor: str
    title: str
    number: int
    bookmark_id: int

    @property
    def heading(self) -> str:
        return f"{self.number}.0 {self.title}"


@dataclass(slots=True)
class PageHeader:
    """Logo row repeated on every page plus the cover-only title lines."""

    left_logo: Optional[ImageContent] = None
    right_logo: Optional[ImageContent] = None
    first_page_lines: List[Paragraph] = field(default_factory=list)


@dataclass(slots=True)
class PageFooter:
    title: str


@dataclass(slots=True)
class DocumentMetadata:
    title: str
    author: str
    subject: str = ""
    created: Optional[datetime] = None


@dataclass(slots=True)
class DocumentTree:
    header: PageHeader
    footer: PageFooter
    body: List[Block]
    bookmarks: List[Bookmark]
    metadata: DocumentMetadata

    def iter_tables(self) -> Iterator[Table]:
        for block in self.body:
            if isinstance(block, Table):
                yield block

    def table(self, kind: str) -> Optional[Table]:
        for table in self.iter_tables():
            if table.kind == kind:
                return table
        return None

    def iter_paragraphs(self) -> Iterator[Paragraph]:
        for block in self.body:
            if isinstance(block, Paragraph):
                yield block

    def headings(self) -> List[str]:
        return [p.text for p in self.iter_paragraphs() if p.style == "heading"]

    def iter_images(self) -> Iterator[ImageContent]:
        for logo in (self.header.left_logo, self.header.right_logo):
            if logo is not None:
                yield logo
        for block in self.body:
            if isinstance(block, ImageContent):
                yield block
            elif isinstance(block, Table):
                for row in block.rows:
                    for cell in row.cells:
                        for item in cell.content:
                            if isinstance(item, ImageContent):
                                yield item
