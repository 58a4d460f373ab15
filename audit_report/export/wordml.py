"""
WordprocessingML writer - converts document tree nodes to XML elements.

Used by DOCXExporter for the document body and the header/footer parts.
Images and list numbering are resolved through the exporter, which owns
the package relationships.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Iterable, Optional

from .. import config
from ..models.document_tree import (
    LIST_NONE,
    Block,
    ImageContent,
    PageBreak,
    PageFooter,
    PageHeader,
    PageReference,
    Paragraph,
    Spacer,
    StyledRun,
    Table,
    TableCell,
)
from ..utils.units import points_to_emu, points_to_twips

if TYPE_CHECKING:
    from .docx_exporter import DOCXExporter

logger = logging.getLogger(__name__)

# Namespaces
W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
WP_NS = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
PIC_NS = "http://schemas.openxmlformats.org/drawingml/2006/picture"
XML_NS = "http://www.w3.org/XML/1998/namespace"

for _prefix, _uri in (("w", W_NS), ("r", R_NS), ("wp", WP_NS), ("a", A_NS), ("pic", PIC_NS)):
    ET.register_namespace(_prefix, _uri)

JC_VALUES = {"left": "left", "center": "center", "right": "right", "justify": "both"}
VALIGN_VALUES = {"top": "top", "center": "center", "bottom": "bottom"}

CELL_MARGIN_TWIPS = 80


def w(tag: str) -> str:
    return f"{{{W_NS}}}{tag}"


def sub(parent: ET.Element, tag: str, **attrs: str) -> ET.Element:
    """SubElement in the w: namespace with w:-qualified attributes."""
    element = ET.SubElement(parent, w(tag))
    for name, value in attrs.items():
        element.set(w(name), str(value))
    return element


def half_points(size: float) -> str:
    return str(int(round(size * 2)))


class WordMLWriter:
    """Writes blocks into a WordprocessingML container element for one part."""

    def __init__(self, exporter: "DOCXExporter", part_name: str):
        self.exporter = exporter
        self.part_name = part_name

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def write_blocks(self, parent: ET.Element, blocks: Iterable[Block]) -> None:
        for block in blocks:
            if isinstance(block, Paragraph):
                self.write_paragraph(parent, block)
            elif isinstance(block, Table):
                self.write_table(parent, block)
            elif isinstance(block, ImageContent):
                self.write_image_paragraph(parent, block)
            elif isinstance(block, PageBreak):
                p = sub(parent, "p")
                r = sub(p, "r")
                sub(r, "br", type="page")
            elif isinstance(block, Spacer):
                p = sub(parent, "p")
                ppr = sub(p, "pPr")
                sub(ppr, "spacing", before=str(points_to_twips(block.height)), after="0")
            else:
                logger.warning(f"Skipping unsupported block type: {type(block).__name__}")

    def write_paragraph(self, parent: ET.Element, paragraph: Paragraph,
                        in_table: bool = False, link: Optional[str] = None) -> ET.Element:
        p = sub(parent, "p")
        ppr = sub(p, "pPr")
        if paragraph.style == "heading":
            sub(ppr, "pStyle", val="Heading2")
            sub(ppr, "keepNext")
        elif paragraph.style == "title":
            sub(ppr, "pStyle", val="ReportTitle")
            sub(ppr, "keepNext")

        if paragraph.list_kind != LIST_NONE:
            num_id = self.exporter.numbering_id(paragraph.list_id, paragraph.list_kind)
            numpr = sub(ppr, "numPr")
            sub(numpr, "ilvl", val="0")
            sub(numpr, "numId", val=str(num_id))

        space_after = 0.0 if in_table else paragraph.space_after
        sub(ppr, "spacing",
            before=str(points_to_twips(paragraph.space_before)),
            after=str(points_to_twips(space_after)))
        if paragraph.alignment != "left":
            sub(ppr, "jc", val=JC_VALUES.get(paragraph.alignment, "left"))

        bookmark_id = None
        if paragraph.anchor:
            bookmark_id = str(self.exporter.bookmark_id(paragraph.anchor))
            sub(p, "bookmarkStart", id=bookmark_id, name=paragraph.anchor)

        container = p
        if link:
            container = sub(p, "hyperlink", anchor=link, history="1")
        for run in paragraph.runs:
            self.write_run(container, run, default_size=paragraph.size)

        if bookmark_id is not None:
            sub(p, "bookmarkEnd", id=bookmark_id)
        return p

    def write_run(self, parent: ET.Element, run: StyledRun, default_size: Optional[float] = None) -> None:
        r = sub(parent, "r")
        self._run_properties(r, run, default_size)

        lines = run.text.split("\n")
        for index, line in enumerate(lines):
            if index:
                sub(r, "br")
            if line:
                t = sub(r, "t")
                t.text = line
                t.set(f"{{{XML_NS}}}space", "preserve")

    def _run_properties(self, r: ET.Element, run: StyledRun, default_size: Optional[float]) -> None:
        size = run.size or default_size
        if not (run.bold or run.italic or run.underline or run.color or size or run.highlight):
            return
        rpr = sub(r, "rPr")
        if run.bold:
            sub(rpr, "b")
        if run.italic:
            sub(rpr, "i")
        if run.color:
            sub(rpr, "color", val=run.color)
        if size:
            sub(rpr, "sz", val=half_points(size))
            sub(rpr, "szCs", val=half_points(size))
        if run.underline:
            sub(rpr, "u", val="single")
        if run.highlight:
            sub(rpr, "shd", val="clear", color="auto", fill=run.highlight)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    def write_table(self, parent: ET.Element, table: Table) -> ET.Element:
        tbl = sub(parent, "tbl")
        tblpr = sub(tbl, "tblPr")
        sub(tblpr, "tblW", w=str(table.width), type="dxa")
        borders = sub(tblpr, "tblBorders")
        for edge in ("top", "left", "bottom", "right", "insideH", "insideV"):
            if table.borders:
                sub(borders, edge, val="single", sz="4", space="0", color=config.BORDER_COLOR)
            else:
                sub(borders, edge, val="nil")
        sub(tblpr, "tblLayout", type="fixed")
        margins = sub(tblpr, "tblCellMar")
        for edge in ("left", "right"):
            sub(margins, edge, w=str(CELL_MARGIN_TWIPS), type="dxa")
        sub(tblpr, "tblLook", val="0000", firstRow="0", lastRow="0", firstColumn="0",
            lastColumn="0", noHBand="1", noVBand="1")

        grid = sub(tbl, "tblGrid")
        for width in table.column_widths:
            sub(grid, "gridCol", w=str(width))

        for row_index, row in enumerate(table.rows):
            tr = sub(tbl, "tr")
            trpr = sub(tr, "trPr")
            sub(trpr, "cantSplit")
            if row.is_header or row_index < table.header_rows:
                sub(trpr, "tblHeader")
            for col, cell in enumerate(row.cells):
                self.write_cell(tr, cell, table.column_widths[col])
        return tbl

    def write_cell(self, tr: ET.Element, cell: TableCell, width: int) -> None:
        tc = sub(tr, "tc")
        tcpr = sub(tc, "tcPr")
        sub(tcpr, "tcW", w=str(width), type="dxa")
        if cell.merged:
            sub(tcpr, "vMerge")
        elif cell.row_span > 1:
            sub(tcpr, "vMerge", val="restart")
        if cell.fill:
            sub(tcpr, "shd", val="clear", color="auto", fill=cell.fill)
        sub(tcpr, "vAlign", val=VALIGN_VALUES.get(cell.vertical_align, "center"))

        written = 0
        if not cell.merged:
            for item in cell.content:
                if isinstance(item, Paragraph):
                    self.write_paragraph(tc, item, in_table=True, link=cell.link)
                elif isinstance(item, ImageContent):
                    self.write_image_paragraph(tc, item, in_table=True)
                elif isinstance(item, PageReference):
                    self.write_page_reference(tc, item)
                else:
                    continue
                written += 1
        if not written:
            # każda komórka musi kończyć się paragrafem
            p = sub(tc, "p")
            ppr = sub(p, "pPr")
            sub(ppr, "spacing", before="0", after="0")

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------
    def write_page_reference(self, parent: ET.Element, reference: PageReference) -> ET.Element:
        """PAGEREF field with a cached placeholder, refreshed by the viewer."""
        p = sub(parent, "p")
        ppr = sub(p, "pPr")
        sub(ppr, "spacing", before="0", after="0")
        sub(ppr, "jc", val=JC_VALUES.get(reference.alignment, "center"))
        self.write_field(p, f" PAGEREF {reference.anchor} \\h ", reference.placeholder)
        return p

    def write_field(self, parent: ET.Element, instruction: str, cached: str,
                    size: Optional[float] = None, color: Optional[str] = None) -> None:
        def field_run() -> ET.Element:
            r = sub(parent, "r")
            if size or color:
                rpr = sub(r, "rPr")
                if color:
                    sub(rpr, "color", val=color)
                if size:
                    sub(rpr, "sz", val=half_points(size))
                    sub(rpr, "szCs", val=half_points(size))
            return r

        sub(field_run(), "fldChar", fldCharType="begin", dirty="true")
        instr = sub(field_run(), "instrText")
        instr.text = instruction
        instr.set(f"{{{XML_NS}}}space", "preserve")
        sub(field_run(), "fldChar", fldCharType="separate")
        t = sub(field_run(), "t")
        t.text = cached
        sub(field_run(), "fldChar", fldCharType="end")

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------
    def write_image_paragraph(self, parent: ET.Element, content: ImageContent,
                              in_table: bool = False) -> ET.Element:
        p = sub(parent, "p")
        ppr = sub(p, "pPr")
        sub(ppr, "spacing", before="0", after="0" if in_table else "80")
        if content.alignment != "left":
            sub(ppr, "jc", val=JC_VALUES.get(content.alignment, "left"))

        if content.image is None:
            if content.placeholder:
                self.write_run(p, StyledRun(text=content.placeholder, italic=True))
            return p

        r = sub(p, "r")
        self.write_drawing(r, content)
        return p

    def write_drawing(self, r: ET.Element, content: ImageContent) -> None:
        rel_id = self.exporter.embed_image(content.image, self.part_name)
        doc_pr_id = self.exporter.next_drawing_id()
        cx = str(points_to_emu(content.width))
        cy = str(points_to_emu(content.height))
        name = f"Picture {doc_pr_id}"

        drawing = sub(r, "drawing")
        inline = ET.SubElement(drawing, f"{{{WP_NS}}}inline",
                               {"distT": "0", "distB": "0", "distL": "0", "distR": "0"})
        ET.SubElement(inline, f"{{{WP_NS}}}extent", {"cx": cx, "cy": cy})
        ET.SubElement(inline, f"{{{WP_NS}}}docPr", {"id": str(doc_pr_id), "name": name})
        frame_pr = ET.SubElement(inline, f"{{{WP_NS}}}cNvGraphicFramePr")
        ET.SubElement(frame_pr, f"{{{A_NS}}}graphicFrameLocks", {"noChangeAspect": "1"})

        graphic = ET.SubElement(inline, f"{{{A_NS}}}graphic")
        graphic_data = ET.SubElement(graphic, f"{{{A_NS}}}graphicData", {"uri": PIC_NS})
        pic = ET.SubElement(graphic_data, f"{{{PIC_NS}}}pic")

        nv_pic = ET.SubElement(pic, f"{{{PIC_NS}}}nvPicPr")
        ET.SubElement(nv_pic, f"{{{PIC_NS}}}cNvPr",
                      {"id": str(doc_pr_id), "name": f"image{doc_pr_id}.{content.image.extension}"})
        ET.SubElement(nv_pic, f"{{{PIC_NS}}}cNvPicPr")

        blip_fill = ET.SubElement(pic, f"{{{PIC_NS}}}blipFill")
        ET.SubElement(blip_fill, f"{{{A_NS}}}blip", {f"{{{R_NS}}}embed": rel_id})
        stretch = ET.SubElement(blip_fill, f"{{{A_NS}}}stretch")
        ET.SubElement(stretch, f"{{{A_NS}}}fillRect")

        sp_pr = ET.SubElement(pic, f"{{{PIC_NS}}}spPr")
        xfrm = ET.SubElement(sp_pr, f"{{{A_NS}}}xfrm")
        ET.SubElement(xfrm, f"{{{A_NS}}}off", {"x": "0", "y": "0"})
        ET.SubElement(xfrm, f"{{{A_NS}}}ext", {"cx": cx, "cy": cy})
        geom = ET.SubElement(sp_pr, f"{{{A_NS}}}prstGeom", {"prst": "rect"})
        ET.SubElement(geom, f"{{{A_NS}}}avLst")

    # ------------------------------------------------------------------
    # Header / footer content
    # ------------------------------------------------------------------
    def write_header(self, parent: ET.Element, header: PageHeader, first_page: bool) -> None:
        logos = [header.left_logo, header.right_logo]
        if any(logo is not None for logo in logos):
            half = config.CONTENT_WIDTH_TWIPS // 2
            widths = [half, config.CONTENT_WIDTH_TWIPS - half]
            tbl = sub(parent, "tbl")
            tblpr = sub(tbl, "tblPr")
            sub(tblpr, "tblW", w=str(config.CONTENT_WIDTH_TWIPS), type="dxa")
            borders = sub(tblpr, "tblBorders")
            for edge in ("top", "left", "bottom", "right", "insideH", "insideV"):
                sub(borders, edge, val="nil")
            sub(tblpr, "tblLayout", type="fixed")
            grid = sub(tbl, "tblGrid")
            for width in widths:
                sub(grid, "gridCol", w=str(width))
            tr = sub(tbl, "tr")
            for logo, width, alignment in zip(logos, widths, ("left", "right")):
                tc = sub(tr, "tc")
                tcpr = sub(tc, "tcPr")
                sub(tcpr, "tcW", w=str(width), type="dxa")
                sub(tcpr, "vAlign", val="center")
                if logo is not None:
                    self.write_image_paragraph(tc, logo, in_table=True)
                else:
                    sub(tc, "p")

        if first_page:
            for line in header.first_page_lines:
                self.write_paragraph(parent, line)
        else:
            sub(parent, "p")

    def write_footer(self, parent: ET.Element, footer: PageFooter) -> None:
        """Title on the left, "Page X of Y" on a right tab stop."""
        size = config.FOOTER_SIZE
        color = config.FOOTER_TEXT_COLOR
        p = sub(parent, "p")
        ppr = sub(p, "pPr")
        tabs = sub(ppr, "tabs")
        sub(tabs, "tab", val="center", pos=str(config.CONTENT_WIDTH_TWIPS // 2))
        sub(tabs, "tab", val="right", pos=str(config.CONTENT_WIDTH_TWIPS))
        sub(ppr, "spacing", before="0", after="0")

        self.write_run(p, StyledRun(text=footer.title, color=color, size=size))
        self._tab(p)
        self.write_run(p, StyledRun(text="|", color=color, size=size))
        self._tab(p)
        self.write_run(p, StyledRun(text="Page ", color=color, size=size))
        self.write_field(p, " PAGE ", "1", size=size, color=color)
        self.write_run(p, StyledRun(text=" of ", color=color, size=size))
        self.write_field(p, " NUMPAGES ", "1", size=size, color=color)

    @staticmethod
    def _tab(p: ET.Element) -> None:
        r = sub(p, "r")
        sub(r, "tab")

