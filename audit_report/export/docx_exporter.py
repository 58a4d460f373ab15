"""

DOCX exporter - creates DOCX packages from the report document tree.

Uses WordMLWriter to generate WordML XML and packages everything
into a DOCX package (ZIP) with relationships and [Content_Types].xml.

"""

from __future__ import annotations

import hashlib
import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .. import config
from ..config import RenderOptions
from ..exceptions import PackagingError
from ..media.image_fetcher import FetchedImage
from ..models.document_tree import LIST_ORDERED, Block, DocumentTree, Paragraph, Table
from .wordml import R_NS, WordMLWriter, sub, w

logger = logging.getLogger(__name__)

# OPC namespaces
OPC_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CONTENT_TYPES_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
CORE_NS = "http://schemas.openxmlformats.org/package/2006/metadata/core-properties"
DC_NS = "http://purl.org/dc/elements/1.1/"
DCTERMS_NS = "http://purl.org/dc/terms/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
EXTENDED_NS = "http://schemas.openxmlformats.org/officeDocument/2006/extended-properties"

REL_TYPES = {
    "document": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument",
    "core": "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties",
    "app": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/extended-properties",
    "styles": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles",
    "settings": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/settings",
    "numbering": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/numbering",
    "header": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/header",
    "footer": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/footer",
    "image": "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image",
}

CONTENT_TYPE_MAP = {
    "word/document.xml": "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml",
    "word/styles.xml": "application/vnd.openxmlformats-officedocument.wordprocessingml.styles+xml",
    "word/settings.xml": "application/vnd.openxmlformats-officedocument.wordprocessingml.settings+xml",
    "word/numbering.xml": "application/vnd.openxmlformats-officedocument.wordprocessingml.numbering+xml",
    "docProps/core.xml": "application/vnd.openxmlformats-package.core-properties+xml",
    "docProps/app.xml": "application/vnd.openxmlformats-officedocument.extended-properties+xml",
}
HEADER_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.header+xml"
FOOTER_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.footer+xml"

DOCUMENT_PART = "word/document.xml"
FIRST_HEADER_PART = "word/header1.xml"
DEFAULT_HEADER_PART = "word/header2.xml"
FOOTER_PART = "word/footer1.xml"

ABSTRACT_ORDERED = 0
ABSTRACT_BULLET = 1

for _prefix, _uri in (("cp", CORE_NS), ("dc", DC_NS), ("dcterms", DCTERMS_NS), ("xsi", XSI_NS)):
    ET.register_namespace(_prefix, _uri)


class DOCXExporter:
    """

    DOCX Exporter - creates DOCX packages from a DocumentTree.

    One exporter instance produces one package. Every part, relationship
    and media file is registered through the exporter so relationship ids
    stay unique per source part.

    """

    def __init__(self, tree: DocumentTree, options: Optional[RenderOptions] = None):
        """
        Initializes DOCX exporter.

        Args:
            tree: Document tree produced by the builder
            options: Render options (compression)
        """
        self.tree = tree
        self.options = options or RenderOptions()

        self._parts: Dict[str, bytes] = {}
        self._media: Dict[str, bytes] = {}
        self._media_by_digest: Dict[str, str] = {}
        self._relationships: Dict[str, List[Tuple[str, str, str, str]]] = {}
        self._rel_id_counters: Dict[str, int] = {}
        self._content_types: Dict[str, str] = {}
        self._default_content_types: Dict[str, str] = {
            "rels": "application/vnd.openxmlformats-package.relationships+xml",
            "xml": "application/xml",
        }

        self._numbering: Dict[int, Tuple[int, str]] = {}
        self._bookmark_ids: Dict[str, int] = {b.anchor: b.bookmark_id for b in tree.bookmarks}
        self._drawing_id = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def export(self) -> bytes:
        """
        Build the complete package.

        Returns:
            DOCX file content

        Raises:
            PackagingError: When the package cannot be assembled
        """
        self._add_relationship("_rels/.rels", REL_TYPES["document"], DOCUMENT_PART)
        self._add_relationship("_rels/.rels", REL_TYPES["core"], "docProps/core.xml")
        self._add_relationship("_rels/.rels", REL_TYPES["app"], "docProps/app.xml")

        doc_rels = self._get_relationship_path(DOCUMENT_PART)
        self._add_relationship(doc_rels, REL_TYPES["styles"], "styles.xml")
        self._add_relationship(doc_rels, REL_TYPES["settings"], "settings.xml")
        self._add_relationship(doc_rels, REL_TYPES["numbering"], "numbering.xml")
        first_header_id = self._add_relationship(doc_rels, REL_TYPES["header"], "header1.xml")
        default_header_id = self._add_relationship(doc_rels, REL_TYPES["header"], "header2.xml")
        footer_id = self._add_relationship(doc_rels, REL_TYPES["footer"], "footer1.xml")

        self._add_part(DOCUMENT_PART, self._generate_document_xml(
            first_header_id, default_header_id, footer_id
        ))
        self._add_part(FIRST_HEADER_PART, self._generate_header_xml(FIRST_HEADER_PART, first_page=True),
                       HEADER_CONTENT_TYPE)
        self._add_part(DEFAULT_HEADER_PART, self._generate_header_xml(DEFAULT_HEADER_PART, first_page=False),
                       HEADER_CONTENT_TYPE)
        self._add_part(FOOTER_PART, self._generate_footer_xml(), FOOTER_CONTENT_TYPE)

        # numbering po dokumencie: listy rejestrowane podczas generowania treści
        self._add_part("word/numbering.xml", self._generate_numbering_xml())
        self._add_part("word/styles.xml", self._generate_styles_xml())
        self._add_part("word/settings.xml", self._generate_settings_xml())
        self._add_part("docProps/core.xml", self._generate_core_xml())
        self._add_part("docProps/app.xml", self._generate_app_xml())

        content = self._write_package()
        logger.info(
            f"DOCX package assembled: {len(self._parts)} parts, {len(self._media)} media, "
            f"{len(content)} bytes"
        )
        return content

    # ------------------------------------------------------------------
    # Callbacks used by WordMLWriter
    # ------------------------------------------------------------------
    def embed_image(self, image: FetchedImage, part_name: str) -> str:
        """
        Register an image for ``part_name`` and return its relationship id.

        Identical image data is stored once; each embed still gets its own
        relationship.
        """
        digest = hashlib.md5(image.data).hexdigest()
        media_name = self._media_by_digest.get(digest)
        if media_name is None:
            media_name = f"word/media/image{len(self._media) + 1}.{image.extension}"
            if media_name in self._media:
                raise PackagingError("Duplicate media part", media_name)
            self._media[media_name] = image.data
            self._media_by_digest[digest] = media_name
            self._default_content_types[image.extension] = image.content_type

        target = media_name[len("word/"):]
        return self._add_relationship(self._get_relationship_path(part_name), REL_TYPES["image"], target)

    def numbering_id(self, list_id: int, list_kind: str) -> int:
        """numId for a document list; every list gets its own w:num."""
        entry = self._numbering.get(list_id)
        if entry is None:
            entry = (len(self._numbering) + 1, list_kind)
            self._numbering[list_id] = entry
        return entry[0]

    def bookmark_id(self, anchor: str) -> int:
        try:
            return self._bookmark_ids[anchor]
        except KeyError:
            raise PackagingError("Bookmark without a registered section", anchor) from None

    def next_drawing_id(self) -> int:
        self._drawing_id += 1
        return self._drawing_id

    # ------------------------------------------------------------------
    # Parts
    # ------------------------------------------------------------------
    def _generate_document_xml(self, first_header_id: str, default_header_id: str, footer_id: str) -> bytes:
        root = ET.Element(w("document"))
        body = sub(root, "body")
        WordMLWriter(self, DOCUMENT_PART).write_blocks(body, self._terminated(self.tree.body))

        sect_pr = sub(body, "sectPr")
        for kind, rel_id in (("first", first_header_id), ("default", default_header_id)):
            ref = sub(sect_pr, "headerReference", type=kind)
            ref.set(f"{{{R_NS}}}id", rel_id)
        for kind in ("first", "default"):
            ref = sub(sect_pr, "footerReference", type=kind)
            ref.set(f"{{{R_NS}}}id", footer_id)
        sub(sect_pr, "pgSz", w=str(config.PAGE_WIDTH_TWIPS), h=str(config.PAGE_HEIGHT_TWIPS))
        sub(sect_pr, "pgMar",
            top=str(config.MARGIN_TOP_TWIPS), right=str(config.MARGIN_RIGHT_TWIPS),
            bottom=str(config.MARGIN_BOTTOM_TWIPS), left=str(config.MARGIN_LEFT_TWIPS),
            header=str(config.HEADER_DISTANCE_TWIPS), footer=str(config.FOOTER_DISTANCE_TWIPS),
            gutter="0")
        sub(sect_pr, "titlePg")
        return self._serialize(root)

    @staticmethod
    def _terminated(blocks: List[Block]) -> List[Block]:
        """Body must not end in a table directly before sectPr."""
        if blocks and isinstance(blocks[-1], Table):
            return list(blocks) + [Paragraph()]
        return blocks

    def _generate_header_xml(self, part_name: str, first_page: bool) -> bytes:
        root = ET.Element(w("hdr"))
        WordMLWriter(self, part_name).write_header(root, self.tree.header, first_page=first_page)
        return self._serialize(root)

    def _generate_footer_xml(self) -> bytes:
        root = ET.Element(w("ftr"))
        WordMLWriter(self, FOOTER_PART).write_footer(root, self.tree.footer)
        return self._serialize(root)

    def _generate_styles_xml(self) -> bytes:
        """Generuje styles.xml: domyślna czcionka, Normal, Heading2, ReportTitle."""
        root = ET.Element(w("styles"))
        defaults = sub(root, "docDefaults")
        rpr = sub(sub(defaults, "rPrDefault"), "rPr")
        sub(rpr, "rFonts", ascii=config.DOCX_FONT, hAnsi=config.DOCX_FONT, cs=config.DOCX_FONT,
            eastAsia=config.DOCX_FONT)
        sub(rpr, "color", val=config.DEFAULT_TEXT_COLOR)
        sub(rpr, "sz", val=str(int(config.BODY_SIZE * 2)))
        sub(rpr, "szCs", val=str(int(config.BODY_SIZE * 2)))
        ppr = sub(sub(defaults, "pPrDefault"), "pPr")
        sub(ppr, "spacing", after="80", line="276", lineRule="auto")

        normal = sub(root, "style", type="paragraph", default="1", styleId="Normal")
        sub(normal, "name", val="Normal")
        sub(normal, "qFormat")

        for style_id, name, size in (
            ("Heading2", "heading 2", config.HEADING_SIZE),
            ("ReportTitle", "Report Title", config.REPORT_HEADING_SIZE),
        ):
            style = sub(root, "style", type="paragraph", styleId=style_id)
            sub(style, "name", val=name)
            sub(style, "basedOn", val="Normal")
            sub(style, "next", val="Normal")
            sub(style, "qFormat")
            spr = sub(style, "pPr")
            sub(spr, "keepNext")
            if style_id == "Heading2":
                sub(spr, "outlineLvl", val="1")
            srpr = sub(style, "rPr")
            sub(srpr, "b")
            sub(srpr, "sz", val=str(int(size * 2)))
            sub(srpr, "szCs", val=str(int(size * 2)))

        table_style = sub(root, "style", type="table", default="1", styleId="TableNormal")
        sub(table_style, "name", val="Normal Table")
        return self._serialize(root)

    def _generate_numbering_xml(self) -> bytes:
        """
        Generuje numbering.xml.

        Two abstract definitions (decimal and bullet); each list in the
        document gets its own w:num, and ordered lists restart at 1.
        """
        root = ET.Element(w("numbering"))
        for abstract_id, fmt, text in (
            (ABSTRACT_ORDERED, "decimal", "%1."),
            (ABSTRACT_BULLET, "bullet", "•"),
        ):
            abstract = sub(root, "abstractNum", abstractNumId=str(abstract_id))
            sub(abstract, "multiLevelType", val="singleLevel")
            lvl = sub(abstract, "lvl", ilvl="0")
            sub(lvl, "start", val="1")
            sub(lvl, "numFmt", val=fmt)
            sub(lvl, "lvlText", val=text)
            sub(lvl, "lvlJc", val="left")
            lvl_ppr = sub(lvl, "pPr")
            sub(lvl_ppr, "ind", left="720", hanging="360")

        for num_id, kind in sorted(self._numbering.values()):
            num = sub(root, "num", numId=str(num_id))
            abstract_id = ABSTRACT_ORDERED if kind == LIST_ORDERED else ABSTRACT_BULLET
            sub(num, "abstractNumId", val=str(abstract_id))
            if kind == LIST_ORDERED:
                override = sub(num, "lvlOverride", ilvl="0")
                sub(override, "startOverride", val="1")
        return self._serialize(root)

    def _generate_settings_xml(self) -> bytes:
        """updateFields: viewer refreshes PAGEREF/NUMPAGES on open."""
        root = ET.Element(w("settings"))
        sub(root, "defaultTabStop", val="720")
        sub(root, "updateFields", val="true")
        compat = sub(root, "compat")
        sub(compat, "compatSetting", name="compatibilityMode",
            uri="http://schemas.microsoft.com/office/word", val="15")
        return self._serialize(root)

    def _generate_core_xml(self) -> bytes:
        metadata = self.tree.metadata
        created = metadata.created or datetime.now(timezone.utc).replace(microsecond=0)
        stamp = created.strftime("%Y-%m-%dT%H:%M:%SZ")

        root = ET.Element(f"{{{CORE_NS}}}coreProperties")
        ET.SubElement(root, f"{{{DC_NS}}}title").text = metadata.title
        ET.SubElement(root, f"{{{DC_NS}}}subject").text = metadata.subject
        ET.SubElement(root, f"{{{DC_NS}}}creator").text = metadata.author
        for tag in ("created", "modified"):
            elem = ET.SubElement(root, f"{{{DCTERMS_NS}}}{tag}")
            elem.set(f"{{{XSI_NS}}}type", "dcterms:W3CDTF")
            elem.text = stamp
        return self._serialize(root)

    def _generate_app_xml(self) -> bytes:
        root = ET.Element(f"{{{EXTENDED_NS}}}Properties")
        ET.SubElement(root, f"{{{EXTENDED_NS}}}Application").text = "audit-report"
        ET.SubElement(root, f"{{{EXTENDED_NS}}}Company").text = config.ORGANIZATION_NAME
        return self._serialize(root, default_namespace=EXTENDED_NS)

    # ------------------------------------------------------------------
    # Package plumbing
    # ------------------------------------------------------------------
    def _add_part(self, part_name: str, content: bytes, content_type: Optional[str] = None) -> None:
        if part_name in self._parts or part_name in self._media:
            raise PackagingError("Duplicate part name", part_name)
        self._parts[part_name] = content
        content_type = content_type or CONTENT_TYPE_MAP.get(part_name)
        if content_type:
            self._content_types[part_name] = content_type

    def _add_relationship(self, rels_path: str, rel_type: str, target: str, target_mode: str = "Internal") -> str:
        rel_id = self._get_next_rel_id(rels_path)
        rels = self._relationships.setdefault(rels_path, [])
        if any(existing[0] == rel_id for existing in rels):
            raise PackagingError("Duplicate relationship id", f"{rels_path}: {rel_id}")
        rels.append((rel_id, rel_type, target, target_mode))
        return rel_id

    def _get_next_rel_id(self, source: str) -> str:
        """Generates next relationship ID for source."""
        self._rel_id_counters[source] = self._rel_id_counters.get(source, 0) + 1
        return f"rId{self._rel_id_counters[source]}"

    @staticmethod
    def _get_relationship_path(part_name: str) -> str:
        """Determines relationship file path for part."""
        # Example: word/document.xml -> word/_rels/document.xml.rels
        if "/" in part_name:
            dir_part, file_part = part_name.rsplit("/", 1)
            return f"{dir_part}/_rels/{file_part}.rels"
        return f"_rels/{part_name}.rels"

    def _generate_content_types_xml(self) -> bytes:
        """Generuje [Content_Types].xml."""
        ET.register_namespace("", CONTENT_TYPES_NS)
        root = ET.Element(f"{{{CONTENT_TYPES_NS}}}Types")

        for ext, content_type in sorted(self._default_content_types.items()):
            default_elem = ET.SubElement(root, f"{{{CONTENT_TYPES_NS}}}Default")
            default_elem.set("Extension", ext)
            default_elem.set("ContentType", content_type)

        for part_name, content_type in self._content_types.items():
            override_elem = ET.SubElement(root, f"{{{CONTENT_TYPES_NS}}}Override")
            override_elem.set("PartName", f"/{part_name}")
            override_elem.set("ContentType", content_type)

        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    @staticmethod
    def _generate_relationships_xml(relationships: List[Tuple[str, str, str, str]]) -> bytes:
        """Generuje XML relacji."""
        ET.register_namespace("", OPC_NS)
        root = ET.Element(f"{{{OPC_NS}}}Relationships")

        for rel_id, rel_type, target, target_mode in relationships:
            rel_elem = ET.SubElement(root, f"{{{OPC_NS}}}Relationship")
            rel_elem.set("Id", rel_id)
            rel_elem.set("Type", rel_type)
            rel_elem.set("Target", target)
            if target_mode == "External":
                rel_elem.set("TargetMode", "External")

        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    @staticmethod
    def _serialize(root: ET.Element, default_namespace: Optional[str] = None) -> bytes:
        return ET.tostring(root, encoding="utf-8", xml_declaration=True,
                           default_namespace=default_namespace)

    def _write_package(self) -> bytes:
        """Zapisuje pakiet DOCX do bufora ZIP."""
        files_to_write: Dict[str, bytes] = {
            "[Content_Types].xml": self._generate_content_types_xml(),
            "_rels/.rels": self._generate_relationships_xml(self._relationships["_rels/.rels"]),
        }
        files_to_write.update(self._parts)
        files_to_write.update(self._media)
        for rels_path, rels in self._relationships.items():
            if rels_path != "_rels/.rels" and rels:
                files_to_write[rels_path] = self._generate_relationships_xml(rels)

        compression = zipfile.ZIP_DEFLATED if self.options.compress else zipfile.ZIP_STORED
        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, "w", compression) as zip_file:
                for file_name, content in files_to_write.items():
                    zip_file.writestr(file_name, content)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise PackagingError("Failed to write DOCX package", str(e)) from e
        return buffer.getvalue()


def export_docx(tree: DocumentTree, options: Optional[RenderOptions] = None) -> bytes:
    """Serialize a document tree to DOCX bytes."""
    return DOCXExporter(tree, options).export()
