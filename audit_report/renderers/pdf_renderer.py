"""
PDF emitter.

Rendering runs in two passes over the document tree:

1. ``PDFLayoutEngine`` flows the body into pages of positioned blocks and
   records the page of every section anchor.
2. ``PDFRenderer`` compiles those pages onto a ReportLab canvas. With the
   page count known it stamps the header logos and the "Page X of Y"
   footer on each page, writes resolved page numbers into the table of
   contents, and registers bookmarks, outline entries and TOC links.
"""

from __future__ import annotations

import io
import logging
from typing import Dict, Optional

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen.canvas import Canvas

from .. import config
from ..config import RenderOptions
from ..exceptions import RenderingError
from ..media.image_fetcher import FetchedImage
from ..models.document_tree import (
    DocumentTree,
    ImageContent,
    PageBreak,
    Paragraph,
    Spacer,
    StyledRun,
    Table,
)
from .layout import Frame, LayoutBlock, LayoutPage, PDFLayout
from .render_utils import line_height, pdf_y, to_color
from .table_renderer import TableRenderer, aligned_x, paragraph_lines
from .text_renderer import draw_line, wrap_runs

logger = logging.getLogger(__name__)

# heading must be followed by at least this much content on its page
KEEP_WITH_NEXT = 3 * line_height(config.BODY_SIZE)
IMAGE_SPACING = 4.0


class PDFLayoutEngine:
    """Flows document blocks top-down into A4 pages."""

    def __init__(self, tree: DocumentTree):
        self.tree = tree
        self.result = PDFLayout()
        self.page: Optional[LayoutPage] = None
        self.cursor = 0.0
        self.page_top = config.PDF_CONTENT_TOP
        self.tables = TableRenderer(self)

    def run(self) -> PDFLayout:
        self.new_page()
        for paragraph in self.tree.header.first_page_lines:
            self.flow_paragraph(paragraph)

        for block in self.tree.body:
            if isinstance(block, Paragraph):
                self.flow_paragraph(block)
            elif isinstance(block, Table):
                self.tables.layout(block)
            elif isinstance(block, ImageContent):
                self.flow_image(block)
            elif isinstance(block, Spacer):
                self.flow_spacer(block)
            elif isinstance(block, PageBreak):
                if self.page.blocks:
                    self.new_page()
            else:
                logger.warning(f"Skipping unsupported block type: {type(block).__name__}")
        return self.result

    # ------------------------------------------------------------------
    # Page management
    # ------------------------------------------------------------------
    def new_page(self) -> LayoutPage:
        self.page = LayoutPage(number=len(self.result.pages) + 1)
        self.result.pages.append(self.page)
        self.cursor = config.PDF_CONTENT_TOP
        self.page_top = self.cursor
        return self.page

    @property
    def at_page_top(self) -> bool:
        return self.cursor <= self.page_top + 0.01

    def fits(self, height: float) -> bool:
        return self.cursor + height <= config.PDF_BOTTOM_LIMIT

    def ensure_space(self, height: float) -> None:
        """Start a new page unless ``height`` fits; a fresh page always takes the block."""
        if not self.fits(height) and not self.at_page_top:
            self.new_page()

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------
    def flow_paragraph(self, paragraph: Paragraph) -> None:
        width = config.CONTENT_WIDTH
        lines, indent = paragraph_lines(paragraph, width, config.BODY_SIZE)

        if not self.at_page_top:
            self.cursor += paragraph.space_before

        if paragraph.anchor:
            first = lines[0].height if lines else line_height(paragraph.size or config.BODY_SIZE)
            self.ensure_space(first + KEEP_WITH_NEXT)
            self.page.add(LayoutBlock(
                "bookmark",
                Frame(config.MARGIN_LEFT, self.cursor, width, first),
                (paragraph.anchor, paragraph.text),
            ))
            self.result.anchors[paragraph.anchor] = self.page.number

        for line in lines:
            self.ensure_space(line.height)
            self.page.add(LayoutBlock(
                "text",
                Frame(config.MARGIN_LEFT + indent, self.cursor, width - indent, line.height),
                line,
                style={"alignment": paragraph.alignment},
            ))
            self.cursor += line.height

        self.cursor += paragraph.space_after

    def flow_image(self, content: ImageContent) -> None:
        if content.image is None:
            self.flow_paragraph(Paragraph(
                runs=[StyledRun(text=content.placeholder or config.IMAGE_UNAVAILABLE_TEXT, italic=True)],
                alignment=content.alignment,
            ))
            return
        self.ensure_space(content.height)
        x = aligned_x(config.MARGIN_LEFT, config.CONTENT_WIDTH, content.width, content.alignment)
        self.page.add(LayoutBlock("image", Frame(x, self.cursor, content.width, content.height), content.image))
        self.cursor += content.height + IMAGE_SPACING

    def flow_spacer(self, spacer: Spacer) -> None:
        if self.at_page_top:
            return
        if self.fits(spacer.height):
            self.cursor += spacer.height
        else:
            self.new_page()


class PDFRenderer:
    """Compiles a paginated layout onto a ReportLab canvas."""

    def __init__(self, options: Optional[RenderOptions] = None):
        self.options = options or RenderOptions()
        self._image_readers: Dict[int, ImageReader] = {}

    def render(self, tree: DocumentTree) -> bytes:
        """
        Render the document tree to PDF.

        Args:
            tree: Document tree produced by the builder

        Returns:
            PDF file content

        Raises:
            RenderingError: When the canvas cannot be drawn or saved
        """
        layout = PDFLayoutEngine(tree).run()
        total_pages = layout.page_count

        buffer = io.BytesIO()
        canvas = Canvas(
            buffer,
            pagesize=(config.PAGE_WIDTH, config.PAGE_HEIGHT),
            pageCompression=1 if self.options.compress else 0,
            invariant=1 if self.options.invariant else 0,
        )
        metadata = tree.metadata
        canvas.setTitle(metadata.title)
        canvas.setAuthor(metadata.author)
        canvas.setSubject(metadata.subject)
        canvas.setCreator("audit-report")

        try:
            for page in layout.pages:
                self._draw_header(canvas, tree)
                for block in page.ordered_blocks():
                    self._draw_block(canvas, block, layout)
                self._draw_footer(canvas, tree.footer.title, page.number, total_pages)
                canvas.showPage()
            if layout.anchors:
                canvas.showOutline()
            canvas.save()
        except (OSError, ValueError, KeyError) as e:
            raise RenderingError("Failed to draw PDF", str(e)) from e

        content = buffer.getvalue()
        logger.info(f"PDF rendered: {total_pages} pages, {len(content)} bytes")
        return content

    # ------------------------------------------------------------------
    # Page furniture
    # ------------------------------------------------------------------
    def _draw_header(self, canvas: Canvas, tree: DocumentTree) -> None:
        """Logo row, repeated on every page."""
        header = tree.header
        top = config.PDF_HEADER_TOP
        if header.left_logo is not None and header.left_logo.image is not None:
            logo = header.left_logo
            self._draw_image(canvas, logo.image, Frame(config.MARGIN_LEFT, top, logo.width, logo.height))
        if header.right_logo is not None and header.right_logo.image is not None:
            logo = header.right_logo
            x = config.PAGE_WIDTH - config.MARGIN_RIGHT - logo.width
            self._draw_image(canvas, logo.image, Frame(x, top, logo.width, logo.height))

    @staticmethod
    def _draw_footer(canvas: Canvas, title: str, page_number: int, total_pages: int) -> None:
        y = config.PDF_FOOTER_OFFSET
        canvas.setFont(config.FONT_REGULAR, config.FOOTER_SIZE)
        canvas.setFillColor(to_color(config.FOOTER_TEXT_COLOR))
        canvas.drawString(config.MARGIN_LEFT, y, title)
        canvas.drawCentredString(config.PAGE_WIDTH / 2, y, "|")
        canvas.drawRightString(config.PAGE_WIDTH - config.MARGIN_RIGHT, y, f"Page {page_number} of {total_pages}")

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def _draw_block(self, canvas: Canvas, block: LayoutBlock, layout: PDFLayout) -> None:
        frame = block.frame
        if block.kind == "text":
            line = block.content
            draw_line(canvas, line, frame.x, pdf_y(frame.top + line.baseline_offset), frame.width,
                      block.style.get("alignment", "left"))
        elif block.kind == "image":
            self._draw_image(canvas, block.content, frame)
        elif block.kind == "fill":
            canvas.setFillColor(to_color(block.content))
            canvas.rect(frame.x, pdf_y(frame.top, frame.height), frame.width, frame.height, fill=1, stroke=0)
        elif block.kind == "border":
            canvas.setStrokeColor(to_color(block.content))
            canvas.setLineWidth(0.5)
            canvas.rect(frame.x, pdf_y(frame.top, frame.height), frame.width, frame.height, fill=0, stroke=1)
        elif block.kind == "page_ref":
            self._draw_page_reference(canvas, block, layout)
        elif block.kind == "link":
            x1, y1 = frame.x, pdf_y(frame.top, frame.height)
            canvas.linkRect("", block.content, (x1, y1, x1 + frame.width, y1 + frame.height),
                            relative=0, thickness=0)
        elif block.kind == "bookmark":
            anchor, title = block.content
            canvas.bookmarkPage(anchor, fit="FitH", top=pdf_y(frame.top) + 4)
            canvas.addOutlineEntry(title, anchor, level=0)
        else:
            logger.warning(f"Unknown layout block kind: {block.kind}")

    @staticmethod
    def _draw_page_reference(canvas: Canvas, block: LayoutBlock, layout: PDFLayout) -> None:
        page = layout.page_of(block.content)
        text = str(page) if page is not None else block.style.get("placeholder", config.EMPTY_VALUE)
        size = block.style.get("size", config.TABLE_SIZE)
        line = wrap_runs([StyledRun(text=text, size=size)], block.frame.width, size)[0]
        draw_line(canvas, line, block.frame.x, pdf_y(block.frame.top + line.baseline_offset),
                  block.frame.width, block.style.get("alignment", "center"))

    def _draw_image(self, canvas: Canvas, image: FetchedImage, frame: Frame) -> None:
        key = id(image)
        reader = self._image_readers.get(key)
        try:
            if reader is None:
                reader = ImageReader(io.BytesIO(image.data))
                self._image_readers[key] = reader
            canvas.drawImage(reader, frame.x, pdf_y(frame.top, frame.height),
                             width=frame.width, height=frame.height, mask="auto")
        except (OSError, ValueError) as e:
            logger.warning(f"Image unavailable: could not draw embedded image ({e})")
            canvas.setFont(config.FONT_ITALIC, config.TABLE_SIZE)
            canvas.setFillColor(to_color(config.DEFAULT_TEXT_COLOR))
            canvas.drawString(frame.x, pdf_y(frame.top + config.TABLE_SIZE), config.IMAGE_UNAVAILABLE_TEXT)


def render_pdf_document(tree: DocumentTree, options: Optional[RenderOptions] = None) -> bytes:
    """Serialize a document tree to PDF bytes."""
    return PDFRenderer(options).render(tree)
