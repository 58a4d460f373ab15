"""
Layout/table builder.

Turns a ``ReportData`` value into a ``DocumentTree``: cover header, general
information grid, table of contents, the numbered sections, signatory
block and organization footer. Rich-markup fields go through the parser,
images through the fetcher; the emitters never see raw form data.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from .. import config
from ..config import RenderOptions
from ..media.image_fetcher import ImageFetcher, scale_to_fit
from ..models.document_tree import (
    LIST_NONE,
    LIST_UNORDERED,
    Block,
    DocumentMetadata,
    DocumentTree,
    ImageContent,
    PageBreak,
    PageFooter,
    PageHeader,
    Paragraph,
    Spacer,
    StyledRun,
    Table,
    TableCell,
    TableRow,
)
from ..models.report import ReportData
from ..parser.html_parser import parse_rich_text
from ..utils.units import px_to_points, twips_to_points
from .bookmarks import BookmarkResolver, anchor_for
from .formatting import format_reading, format_text

logger = logging.getLogger(__name__)

CELL_PADDING = 4.0  # points, each side

TOC_COLUMNS = (("Sl. No", 1), ("Description", 6), ("Page No", 2))
INFO_COLUMNS = (3, 7)
POWER_COLUMNS = (("Parameter", 3), ("Test Point", 2), ("Value", 2), ("Remarks", 3))
LOAD_COLUMNS = (
    ("Sl. No", 1),
    ("Type of Load", 4),
    ("Power (W)", 2),
    ("Quantity (Nos)", 2),
    ("Sub Total (KW)", 2),
)
SNAPSHOT_COLUMNS = (("Sl. No", 1), ("Image", 5), ("Description", 4))

INFO_ROWS = (
    ("Reference no", "ref_no"),
    ("Dated", "date"),
    ("Inspection date", "inspection_date"),
    ("Client", "client"),
    ("Created by", "created_by"),
    ("Approved by", "approved_by"),
)

# (parameter label, [(test point label, tag), ...])
POWER_ROWS: Tuple[Tuple[str, Tuple[Tuple[str, str], ...]], ...] = (
    ("Line Voltage (V)", (("RY", "ry"), ("YB", "yb"), ("BR", "br"))),
    ("Phase Voltage (V)", (("R-N", "rn"), ("Y-N", "yn"), ("B-N", "bn"))),
    ("Neutral to Earth (V)", (("N-E", "ne"),)),
    ("Current (A)", (("R", "r"), ("Y", "y"), ("B", "b"), ("N", "n"))),
    ("Frequency (Hz)", (("", "frequency"),)),
    ("Power Factor", (("", "powerFactor"),)),
)

TOTAL_LOAD_LABEL = "Connected load in KW"


def allocate_widths(weights: Sequence[int], total: int = config.CONTENT_WIDTH_TWIPS) -> List[int]:
    """
    Split ``total`` twips across columns by weight.

    The rounding remainder goes to the widest column so the widths always
    sum to ``total`` exactly.
    """
    weight_sum = sum(weights)
    widths = [total * weight // weight_sum for weight in weights]
    widest = max(range(len(widths)), key=lambda i: widths[i])
    widths[widest] += total - sum(widths)
    return widths


def text_paragraph(text: str, bold: bool = False, alignment: str = "left",
                   color: Optional[str] = None, size: Optional[float] = None,
                   space_after: float = 0.0) -> Paragraph:
    return Paragraph(
        runs=[StyledRun(text=text, bold=bold, color=color, size=size)] if text else [],
        alignment=alignment,
        space_after=space_after,
        size=size,
    )


def text_cell(text: str, bold: bool = False, alignment: str = "left", fill: Optional[str] = None,
              color: Optional[str] = None, row_span: int = 1) -> TableCell:
    return TableCell(
        content=[text_paragraph(text, bold=bold, alignment=alignment, color=color)],
        fill=fill,
        row_span=row_span,
    )


def merged_cell(fill: Optional[str] = None) -> TableCell:
    return TableCell(content=[], fill=fill, merged=True)


def header_row(columns: Sequence[str], fill: str) -> TableRow:
    return TableRow(
        cells=[
            text_cell(label, bold=True, alignment="center", fill=fill, color=config.HEADER_TEXT_COLOR)
            for label in columns
        ],
        is_header=True,
    )


def row_fill(index: int) -> Optional[str]:
    return config.ALT_ROW_FILL if index % 2 == 1 else None


class ReportBuilder:
    """
    Builds the format-agnostic document tree for one report.

    A builder instance is single-use: it owns the bookmark resolver and
    list numbering counters for the document it builds.
    """

    def __init__(self, data: ReportData, fetcher: Optional[ImageFetcher] = None,
                 options: Optional[RenderOptions] = None):
        self.data = data
        self.options = options or RenderOptions()
        self.fetcher = fetcher or ImageFetcher(timeout=self.options.fetch_timeout)
        self.bookmarks = BookmarkResolver()
        self._list_counter = 0

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def build(self) -> DocumentTree:
        data = self.data

        observations = self._parse_entries(data.general_observations)
        highlights = self._bulleted(self._parse_entries(data.major_highlights))
        conclusions = self._bulleted(self._parse_entries(data.conclusions))

        present = {
            "observations": bool(observations),
            "highlights": bool(highlights),
            "snapshots": bool(data.snapshots),
            "power_parameters": True,
            "connected_load": bool(data.connected_load),
            "conclusions": bool(conclusions),
        }
        for key, title in config.SECTIONS:
            if present[key]:
                self.bookmarks.register(key, title)

        body: List[Block] = []
        body.extend(self._build_cover())
        body.append(PageBreak())

        for key, _ in config.SECTIONS:
            if not present[key]:
                continue
            body.append(self._heading(key))
            if key == "observations":
                body.extend(observations)
            elif key == "highlights":
                body.extend(highlights)
            elif key == "snapshots":
                body.append(self._build_snapshot_table())
            elif key == "power_parameters":
                body.append(self._build_power_table())
            elif key == "connected_load":
                body.append(self._build_load_table())
            elif key == "conclusions":
                body.extend(conclusions)

        body.extend(self._build_signatory())
        body.extend(self._build_organization_footer())

        tree = DocumentTree(
            header=self._build_header(),
            footer=PageFooter(title=config.FOOTER_TITLE),
            body=body,
            bookmarks=self.bookmarks.bookmarks,
            metadata=DocumentMetadata(
                title=config.FOOTER_TITLE,
                author=data.created_by.strip() or config.ORGANIZATION_NAME,
                subject=f"Branch: {data.branch_name.strip() or config.EMPTY_VALUE}",
                created=datetime.now(timezone.utc).replace(microsecond=0),
            ),
        )

        for table in tree.iter_tables():
            table.validate(config.CONTENT_WIDTH_TWIPS)

        logger.debug(
            f"Built document tree: {len(body)} blocks, {len(tree.bookmarks)} sections, "
            f"{sum(1 for _ in tree.iter_tables())} tables"
        )
        return tree

    # ------------------------------------------------------------------
    # Rich text
    # ------------------------------------------------------------------
    def _parse_entries(self, entries: Sequence[str]) -> List[Paragraph]:
        """Parse each entry independently; blank entries produce nothing."""
        paragraphs: List[Paragraph] = []
        for entry in entries:
            if not entry or not entry.strip():
                continue
            paragraphs.extend(self._renumber_lists(parse_rich_text(entry, config.DEFAULT_TEXT_COLOR)))
        return paragraphs

    def _renumber_lists(self, paragraphs: List[Paragraph]) -> List[Paragraph]:
        """Map parser-local list ids to ids unique within the document."""
        mapping: Dict[int, int] = {}
        for paragraph in paragraphs:
            if paragraph.list_kind == LIST_NONE:
                continue
            if paragraph.list_id not in mapping:
                self._list_counter += 1
                mapping[paragraph.list_id] = self._list_counter
            paragraph.list_id = mapping[paragraph.list_id]
        return paragraphs

    def _bulleted(self, paragraphs: List[Paragraph]) -> List[Paragraph]:
        """Plain paragraphs become bullet items; existing list items keep their numbering."""
        if not paragraphs:
            return paragraphs
        self._list_counter += 1
        bullet_id = self._list_counter
        for paragraph in paragraphs:
            if paragraph.list_kind == LIST_NONE:
                paragraph.list_kind = LIST_UNORDERED
                paragraph.list_index = 1
                paragraph.list_id = bullet_id
        return paragraphs

    # ------------------------------------------------------------------
    # Header and cover
    # ------------------------------------------------------------------
    def _build_header(self) -> PageHeader:
        box = self.options.logo_box
        left_logo = self._image_block(self.data.logo, box, box, alignment="left") if self.data.logo else None
        if left_logo is not None and left_logo.image is None:
            left_logo = None

        right_logo = None
        if self.options.include_organization_logo:
            right_logo = self._image_block(str(config.ORGANIZATION_LOGO_PATH), box, box, alignment="right")
            if right_logo.image is None:
                right_logo = None

        lines = [
            text_paragraph(config.DOCUMENT_TITLE, bold=True, alignment="center",
                           size=config.TITLE_SIZE, space_after=6),
            text_paragraph(config.BRANCH_LABEL + (self.data.branch_name.strip() or config.EMPTY_VALUE),
                           bold=True, alignment="center", size=config.SUBTITLE_SIZE, space_after=2),
            text_paragraph(config.BRANCH_CODE_LABEL + (self.data.branch_code.strip() or config.EMPTY_VALUE),
                           bold=True, alignment="center", size=config.SUBTITLE_SIZE, space_after=10),
        ]
        return PageHeader(left_logo=left_logo, right_logo=right_logo, first_page_lines=lines)

    def _build_cover(self) -> List[Block]:
        blocks: List[Block] = [
            Paragraph(
                runs=[StyledRun(text=config.REPORT_HEADING, bold=True, size=config.REPORT_HEADING_SIZE)],
                style="title",
                space_before=10,
                space_after=8,
                size=config.REPORT_HEADING_SIZE,
            )
        ]
        info = self._build_info_table()
        if info is not None:
            blocks.append(info)
            blocks.append(Spacer(height=12))

        blocks.append(
            Paragraph(
                runs=[StyledRun(text=config.TOC_TITLE, bold=True, size=config.REPORT_HEADING_SIZE)],
                alignment="center",
                style="title",
                space_before=6,
                space_after=8,
                size=config.REPORT_HEADING_SIZE,
            )
        )
        blocks.append(self._build_toc_table())
        return blocks

    def _build_info_table(self) -> Optional[Table]:
        populated = [
            (label, getattr(self.data, attr).strip())
            for label, attr in INFO_ROWS
            if getattr(self.data, attr).strip()
        ]
        if not populated:
            return None

        table = Table(column_widths=allocate_widths(INFO_COLUMNS), kind="info")
        for index, (label, value) in enumerate(populated):
            fill = config.INFO_FILL if index % 2 == 0 else None
            table.rows.append(TableRow(cells=[
                text_cell(label, bold=True, fill=fill),
                text_cell(value, fill=fill),
            ]))
        return table

    def _build_toc_table(self) -> Table:
        table = Table(
            column_widths=allocate_widths([weight for _, weight in TOC_COLUMNS]),
            kind="toc",
            header_rows=1,
        )
        table.rows.append(header_row([label for label, _ in TOC_COLUMNS], config.TOC_FILL))
        for index, bookmark in enumerate(self.bookmarks.bookmarks):
            fill = row_fill(index)
            description = text_cell(bookmark.title, fill=fill)
            description.link = bookmark.anchor
            table.rows.append(TableRow(cells=[
                text_cell(str(bookmark.number), alignment="center", fill=fill),
                description,
                TableCell(content=[self.bookmarks.page_reference(bookmark.anchor)], fill=fill),
            ]))
        return table

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------
    def _heading(self, key: str) -> Paragraph:
        bookmark = self.bookmarks.get(anchor_for(key))
        return Paragraph(
            runs=[StyledRun(text=bookmark.heading, bold=True, size=config.HEADING_SIZE)],
            style="heading",
            anchor=bookmark.anchor,
            space_before=12,
            space_after=6,
            size=config.HEADING_SIZE,
        )

    def _build_snapshot_table(self) -> Table:
        widths = allocate_widths([weight for _, weight in SNAPSHOT_COLUMNS])
        table = Table(column_widths=widths, kind="snapshots", header_rows=1)
        table.rows.append(header_row([label for label, _ in SNAPSHOT_COLUMNS], config.SNAPSHOT_FILL))

        max_width = twips_to_points(widths[1]) - 2 * CELL_PADDING
        max_height = self.options.snapshot_image_max_height

        for group_index, group in enumerate(self.data.snapshots):
            fill = row_fill(group_index)
            description = self._parse_entries([group.description])
            span = max(1, len(group.images))

            number_cell = text_cell(str(group_index + 1), alignment="center", fill=fill, row_span=span)
            description_cell = TableCell(content=list(description), fill=fill, row_span=span,
                                         vertical_align="top")

            if not group.images:
                table.rows.append(TableRow(cells=[
                    number_cell,
                    text_cell(config.NO_IMAGE_TEXT, alignment="center", fill=fill),
                    description_cell,
                ]))
                continue

            for image_index, ref in enumerate(group.images):
                image_cell = TableCell(
                    content=[self._image_block(ref, max_width, max_height, alignment="center")],
                    fill=fill,
                )
                if image_index == 0:
                    cells = [number_cell, image_cell, description_cell]
                else:
                    cells = [merged_cell(fill), image_cell, merged_cell(fill)]
                table.rows.append(TableRow(cells=cells))

        return table

    def _build_power_table(self) -> Table:
        params = self.data.power_parameters
        table = Table(
            column_widths=allocate_widths([weight for _, weight in POWER_COLUMNS]),
            kind="power_parameters",
            header_rows=1,
        )
        table.rows.append(header_row([label for label, _ in POWER_COLUMNS], config.POWER_FILL))

        for group_index, (parameter, points) in enumerate(POWER_ROWS):
            fill = row_fill(group_index)
            for point_index, (point_label, tag) in enumerate(points):
                if point_index == 0:
                    first = text_cell(parameter, bold=True, fill=fill, row_span=len(points))
                else:
                    first = merged_cell(fill)
                table.rows.append(TableRow(cells=[
                    first,
                    text_cell(point_label, alignment="center", fill=fill),
                    text_cell(format_reading(params.value(tag)), alignment="center", fill=fill),
                    text_cell(params.remark(tag).strip(), fill=fill),
                ]))
        return table

    def _build_load_table(self) -> Table:
        table = Table(
            column_widths=allocate_widths([weight for _, weight in LOAD_COLUMNS]),
            kind="connected_load",
            header_rows=1,
        )
        table.rows.append(header_row([label for label, _ in LOAD_COLUMNS], config.LOAD_FILL))

        for index, item in enumerate(self.data.connected_load):
            fill = row_fill(index)
            table.rows.append(TableRow(cells=[
                text_cell(str(index + 1), alignment="center", fill=fill),
                text_cell(format_text(item.type), fill=fill),
                text_cell(format_reading(item.power), alignment="center", fill=fill),
                text_cell(format_reading(item.qty), alignment="center", fill=fill),
                text_cell(format_reading(item.sub_total), alignment="center", fill=fill),
            ]))

        table.rows.append(TableRow(cells=[
            text_cell(""),
            text_cell(TOTAL_LOAD_LABEL, bold=True),
            text_cell(""),
            text_cell(""),
            text_cell(self.data.total_load_kw, bold=True, alignment="center"),
        ]))
        return table

    # ------------------------------------------------------------------
    # Closing blocks
    # ------------------------------------------------------------------
    def _build_signatory(self) -> List[Block]:
        box_width, box_height = config.SIGNATURE_BOX
        blocks: List[Block] = [
            Spacer(height=24),
            text_paragraph(f"For {config.ORGANIZATION_NAME}", bold=True, space_after=6),
        ]

        signature = None
        if self.data.signature:
            signature = self._image_block(self.data.signature, box_width, box_height)
        if signature is not None and signature.image is not None:
            blocks.append(signature)
        else:
            blocks.append(Spacer(height=box_height))

        blocks.append(text_paragraph(config.SIGNATORY_NAME, bold=True, space_after=2))
        for line in config.SIGNATORY_LINES:
            blocks.append(text_paragraph(line, space_after=2))
        return blocks

    def _build_organization_footer(self) -> List[Block]:
        color = config.ORG_TEXT_COLOR
        size = config.FOOTER_SIZE
        blocks: List[Block] = [
            Spacer(height=20),
            Paragraph(runs=[
                StyledRun(text=config.REG_OFFICE_LABEL, bold=True, color=color, size=size),
                StyledRun(text=config.REG_OFFICE_TEXT, color=color, size=size),
            ], size=size, space_after=3),
            Paragraph(runs=[
                StyledRun(text=config.MARKETING_OFFICE_LABEL, bold=True, color=color, size=size),
                StyledRun(text=config.MARKETING_OFFICE_TEXT, color=color, size=size),
            ], size=size, space_after=3),
            Paragraph(runs=[
                StyledRun(text=config.EMAIL_TEXT + config.WEBSITE_LABEL, color=color, size=size),
                StyledRun(text=config.WEBSITE_URL, color=config.LINK_COLOR, size=size),
            ], size=size, space_after=8),
        ]

        country_runs: List[StyledRun] = []
        for index, country in enumerate(config.SERVICED_COUNTRIES):
            if index:
                country_runs.append(StyledRun(text="     ", bold=True, size=config.COUNTRIES_SIZE,
                                              highlight=config.COUNTRIES_HIGHLIGHT))
            country_runs.append(StyledRun(text=country, bold=True, size=config.COUNTRIES_SIZE,
                                          highlight=config.COUNTRIES_HIGHLIGHT))
        blocks.append(Paragraph(runs=country_runs, size=config.COUNTRIES_SIZE))
        return blocks

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------
    def _image_block(self, ref: str, max_width: float, max_height: float,
                     alignment: str = "left") -> ImageContent:
        """Fetch and scale an image into a box; failures become a placeholder."""
        image = self.fetcher.fetch(ref)
        if image is None:
            return ImageContent(
                image=None,
                width=max_width,
                height=0.0,
                placeholder=config.IMAGE_UNAVAILABLE_TEXT,
                alignment=alignment,
            )
        width, height = scale_to_fit(
            px_to_points(image.width), px_to_points(image.height), max_width, max_height,
            allow_upscale=True,
        )
        return ImageContent(image=image, width=width, height=height, alignment=alignment)


def build_document(data: ReportData, fetcher: Optional[ImageFetcher] = None,
                   options: Optional[RenderOptions] = None) -> DocumentTree:
    """
    Build the document tree for a report.

    Args:
        data: Report data
        fetcher: Image fetcher (a fresh one per call when omitted)
        options: Render options

    Returns:
        DocumentTree consumed by the DOCX and PDF emitters
    """
    return ReportBuilder(data, fetcher=fetcher, options=options).build()
