"""
Table layout for the PDF emitter.

Row heights grow to fit their content, rows bound together by a vertical
span are kept on one page where possible, and header rows are repeated at
the top of every page the table continues on. A row taller than a page is
cut at the bottom margin: its cells continue on the next page with their
fills and borders redrawn and the remaining lines flowed into them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .. import config
from ..models.document_tree import ImageContent, PageReference, Paragraph, StyledRun, Table, TableCell
from ..utils.units import twips_to_points
from .layout import LAYER_BORDER, LAYER_FILL, Frame, LayoutBlock, LayoutPage
from .render_utils import line_height
from .text_renderer import TextLine, wrap_runs

if TYPE_CHECKING:
    from .pdf_renderer import PDFLayoutEngine

logger = logging.getLogger(__name__)

CELL_PADDING = 4.0
LIST_INDENT = 12.0
VERTICAL_OFFSETS = {"top": 0.0, "center": 0.5, "bottom": 1.0}
# smallest slice of a row worth starting above a page break
MIN_PIECE = line_height(config.TABLE_SIZE) + 2 * CELL_PADDING
MAX_REFLOW_PASSES = 20
EPSILON = 0.01


@dataclass(slots=True)
class CellItem:
    kind: str  # "lines" | "image" | "page_ref"
    height: float
    payload: object
    alignment: str = "left"
    indent: float = 0.0
    space_after: float = 0.0


@dataclass(slots=True)
class CellLayout:
    cell: TableCell
    items: List[CellItem] = field(default_factory=list)

    @property
    def content_height(self) -> float:
        if not self.items:
            return line_height(config.TABLE_SIZE)
        return sum(item.height for item in self.items) + sum(item.space_after for item in self.items[:-1])


def paragraph_lines(paragraph: Paragraph, width: float, default_size: float) -> Tuple[List[TextLine], float]:
    """Wrap a paragraph (list marker included); returns lines and the left indent."""
    indent = LIST_INDENT if paragraph.marker else 0.0
    lines = wrap_runs(paragraph.runs_with_marker(), width - indent, paragraph.size or default_size)
    return lines, indent


def measure_cell(cell: TableCell, width: float) -> CellLayout:
    inner = max(width - 2 * CELL_PADDING, 1.0)
    layout = CellLayout(cell=cell)
    if cell.merged:
        return layout

    for item in cell.content:
        if isinstance(item, Paragraph):
            lines, indent = paragraph_lines(item, inner, config.TABLE_SIZE)
            if not lines:
                continue
            layout.items.append(CellItem(
                kind="lines", height=sum(line.height for line in lines), payload=lines,
                alignment=item.alignment, indent=indent, space_after=item.space_after,
            ))
        elif isinstance(item, ImageContent):
            if item.image is None:
                lines = wrap_runs([StyledRun(text=item.placeholder or config.IMAGE_UNAVAILABLE_TEXT,
                                             italic=True)], inner, config.TABLE_SIZE)
                layout.items.append(CellItem(kind="lines", height=sum(l.height for l in lines),
                                             payload=lines, alignment=item.alignment))
            else:
                layout.items.append(CellItem(kind="image", height=item.height, payload=item,
                                             alignment=item.alignment))
        elif isinstance(item, PageReference):
            layout.items.append(CellItem(kind="page_ref", height=line_height(config.TABLE_SIZE),
                                         payload=item, alignment=item.alignment))
    return layout


def span_groups(table: Table, start: int) -> List[List[int]]:
    """Consecutive row indices that no vertical span crosses."""
    groups: List[List[int]] = []
    row = start
    while row < len(table.rows):
        end = row
        index = row
        while index <= end:
            for cell in table.rows[index].cells:
                if not cell.merged:
                    end = max(end, index + cell.row_span - 1)
            index += 1
        groups.append(list(range(row, end + 1)))
        row = end + 1
    return groups


Piece = Tuple[int, float, float]  # (page offset from the table's first page, top, height)


@dataclass(slots=True)
class Placement:
    rows: Dict[int, List[Piece]]
    headers: List[Tuple[int, float]]
    extra_pages: int
    cursor: float


@dataclass(slots=True)
class PlacedUnit:
    segment: int
    top: float
    item: CellItem
    line: Optional[TextLine] = None


def _units(cell_layout: CellLayout):
    """Smallest unbreakable pieces of cell content: single lines, images, page references."""
    for item in cell_layout.items:
        if item.kind == "lines":
            last = len(item.payload) - 1
            for index, line in enumerate(item.payload):
                yield item, line, line.height, index == last
        else:
            yield item, None, item.height, True


class TableRenderer:
    """Lays a Table out onto the pages of a PDFLayoutEngine."""

    def __init__(self, engine: "PDFLayoutEngine"):
        self.engine = engine

    def layout(self, table: Table) -> None:
        widths = [twips_to_points(width) for width in table.column_widths]
        xs = [config.MARGIN_LEFT]
        for width in widths[:-1]:
            xs.append(xs[-1] + width)

        cells = [[measure_cell(cell, widths[col]) for col, cell in enumerate(row.cells)] for row in table.rows]
        heights = self._row_heights(table, cells)

        header_rows = list(range(min(table.header_rows, len(table.rows))))
        header_height = sum(heights[r] for r in header_rows)
        groups = span_groups(table, len(header_rows))
        capacity = config.PDF_BOTTOM_LIMIT - config.PDF_CONTENT_TOP - header_height

        first_group = sum(heights[r] for r in groups[0]) if groups else 0.0
        self.engine.ensure_space(header_height + (first_group if first_group <= capacity else MIN_PIECE))

        # rows split over a page break lose the partial line at each break; grow and re-place
        for _ in range(MAX_REFLOW_PASSES):
            placement = self._place(groups, heights, header_height, bool(header_rows), capacity)
            grown = False
            for r in range(len(header_rows), len(table.rows)):
                for cell_layout in cells[r]:
                    span = cell_layout.cell.row_span
                    if cell_layout.cell.merged:
                        continue
                    segments = self._segments(range(r, r + span), placement.rows)
                    if len(segments) < 2:
                        continue
                    _, overflow = self._flow(cell_layout, segments)
                    if overflow > EPSILON:
                        heights[r + span - 1] += overflow
                        grown = True
            if not grown:
                break

        pages = [self.engine.page]
        for _ in range(placement.extra_pages):
            pages.append(self.engine.new_page())
        self.engine.cursor = placement.cursor

        for page_index, top in placement.headers:
            pieces: Dict[int, List[Piece]] = {}
            for r in header_rows:
                pieces[r] = [(page_index, top, heights[r])]
                top += heights[r]
            for r in header_rows:
                self._emit_row_cells(table, r, cells, xs, widths, pieces, pages)
        for r in range(len(header_rows), len(table.rows)):
            self._emit_row_cells(table, r, cells, xs, widths, placement.rows, pages)

        logger.debug(
            f"Table '{table.kind}' laid out: {len(table.rows)} rows, "
            f"{len(placement.headers)} header repeats, {placement.extra_pages} page breaks"
        )

    # ------------------------------------------------------------------
    # Measuring
    # ------------------------------------------------------------------
    @staticmethod
    def _row_heights(table: Table, cells: List[List[CellLayout]]) -> List[float]:
        heights = [0.0] * len(table.rows)
        spanning: List[Tuple[int, CellLayout]] = []
        for r, row in enumerate(cells):
            for cell_layout in row:
                if cell_layout.cell.merged:
                    continue
                needed = cell_layout.content_height + 2 * CELL_PADDING
                if cell_layout.cell.row_span > 1:
                    spanning.append((r, cell_layout))
                else:
                    heights[r] = max(heights[r], needed)
            heights[r] = max(heights[r], line_height(config.TABLE_SIZE) + 2 * CELL_PADDING)

        for r, cell_layout in spanning:
            last = r + cell_layout.cell.row_span - 1
            needed = cell_layout.content_height + 2 * CELL_PADDING
            available = sum(heights[r:last + 1])
            if needed > available:
                heights[last] += needed - available
        return heights

    # ------------------------------------------------------------------
    # Placing
    # ------------------------------------------------------------------
    def _place(self, groups: List[List[int]], heights: List[float], header_height: float,
               with_header: bool, capacity: float) -> Placement:
        """
        Assign every body row one or more page pieces, starting at the engine cursor.

        Span groups move to a fresh page when they do not fit; a row taller
        than a whole page is cut at the bottom margin and continues below the
        repeated header on the next page.
        """
        limit = config.PDF_BOTTOM_LIMIT
        rows: Dict[int, List[Piece]] = {}
        headers: List[Tuple[int, float]] = []
        page = 0
        cursor = self.engine.cursor
        body_top = cursor
        rows_on_page = 0

        def place_header() -> None:
            nonlocal cursor, body_top
            if with_header:
                headers.append((page, cursor))
                cursor += header_height
            body_top = cursor

        def next_page() -> None:
            nonlocal page, cursor, rows_on_page
            page += 1
            cursor = config.PDF_CONTENT_TOP
            rows_on_page = 0
            place_header()

        place_header()
        for group in groups:
            group_height = sum(heights[r] for r in group)
            if rows_on_page and cursor + group_height > limit:
                next_page()
            for r in group:
                # grupa wyższa niż strona: dzielimy po wierszach
                if rows_on_page and cursor + heights[r] > limit and heights[r] <= capacity:
                    next_page()
                pieces = rows[r] = []
                remaining = heights[r]
                while cursor + remaining > limit + EPSILON:
                    room = limit - cursor
                    if cursor <= body_top + EPSILON:
                        room = max(room, MIN_PIECE)
                    if room >= MIN_PIECE:
                        pieces.append((page, cursor, room))
                        remaining -= room
                    next_page()
                pieces.append((page, cursor, remaining))
                cursor += remaining
                rows_on_page += 1
        return Placement(rows=rows, headers=headers, extra_pages=page, cursor=cursor)

    @staticmethod
    def _segments(rows: range, pieces: Dict[int, List[Piece]]) -> List[Piece]:
        """Join a cell's row pieces into one (page, top, height) segment per page."""
        segments: List[Piece] = []
        for r in rows:
            for page, top, height in pieces[r]:
                if segments and segments[-1][0] == page:
                    last_page, last_top, last_height = segments[-1]
                    segments[-1] = (last_page, last_top, last_height + height)
                else:
                    segments.append((page, top, height))
        return segments

    @staticmethod
    def _flow(cell_layout: CellLayout, segments: List[Piece]) -> Tuple[List[PlacedUnit], float]:
        """
        Position cell content inside its segments.

        Lines that do not fit above a segment's bottom padding continue at the
        top of the next segment. Returns the placed units and how far the
        content runs past the last segment.
        """
        _, top, height = segments[0]
        offset = 0.0
        if len(segments) == 1:
            free = height - 2 * CELL_PADDING - cell_layout.content_height
            offset = max(free, 0.0) * VERTICAL_OFFSETS.get(cell_layout.cell.vertical_align, 0.5)

        placed: List[PlacedUnit] = []
        index = 0
        cursor = top + CELL_PADDING + offset
        end = cursor
        for item, line, unit_height, closes_item in _units(cell_layout):
            while index + 1 < len(segments) and cursor + unit_height > _inner_bottom(segments[index]) + EPSILON:
                index += 1
                cursor = segments[index][1] + CELL_PADDING
            placed.append(PlacedUnit(segment=index, top=cursor, item=item, line=line))
            cursor += unit_height
            end = cursor
            if closes_item:
                cursor += item.space_after
        overflow = max(end - _inner_bottom(segments[-1]), 0.0) if placed else 0.0
        return placed, overflow

    # ------------------------------------------------------------------
    # Emitting
    # ------------------------------------------------------------------
    def _emit_row_cells(self, table: Table, r: int, cells: List[List[CellLayout]], xs: List[float],
                        widths: List[float], pieces: Dict[int, List[Piece]], pages: List[LayoutPage]) -> None:
        for col, cell_layout in enumerate(cells[r]):
            cell = cell_layout.cell
            if cell.merged:
                continue
            segments = self._segments(range(r, r + cell.row_span), pieces)
            for page_index, top, height in segments:
                frame = Frame(xs[col], top, widths[col], height)
                if cell.fill:
                    pages[page_index].add(LayoutBlock("fill", frame, cell.fill, layer=LAYER_FILL))
                if table.borders:
                    pages[page_index].add(LayoutBlock("border", frame, config.BORDER_COLOR, layer=LAYER_BORDER))

            placed, _ = self._flow(cell_layout, segments)
            for unit in placed:
                self._emit_unit(pages[segments[unit.segment][0]], xs[col], widths[col], unit)
            if cell.link:
                page_index, top, height = segments[0]
                pages[page_index].add(LayoutBlock("link", Frame(xs[col], top, widths[col], height), cell.link))

    @staticmethod
    def _emit_unit(page: LayoutPage, x: float, width: float, unit: PlacedUnit) -> None:
        item = unit.item
        inner_x = x + CELL_PADDING
        inner_width = width - 2 * CELL_PADDING
        if item.kind == "lines":
            page.add(LayoutBlock(
                "text",
                Frame(inner_x + item.indent, unit.top, inner_width - item.indent, unit.line.height),
                unit.line,
                style={"alignment": item.alignment},
            ))
        elif item.kind == "image":
            image: ImageContent = item.payload
            image_x = aligned_x(inner_x, inner_width, image.width, item.alignment)
            page.add(LayoutBlock("image", Frame(image_x, unit.top, image.width, image.height), image.image))
        elif item.kind == "page_ref":
            reference: PageReference = item.payload
            page.add(LayoutBlock(
                "page_ref",
                Frame(inner_x, unit.top, inner_width, item.height),
                reference.anchor,
                style={"alignment": item.alignment, "placeholder": reference.placeholder,
                       "size": config.TABLE_SIZE},
            ))


def _inner_bottom(segment: Piece) -> float:
    _, top, height = segment
    return top + height - CELL_PADDING


def aligned_x(x: float, available: float, width: float, alignment: Optional[str]) -> float:
    if alignment == "center":
        return x + (available - width) / 2
    if alignment == "right":
        return x + available - width
    return x
