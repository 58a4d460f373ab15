"""
Tests for the DOCX exporter.
"""

import io
import zipfile

import pytest

from audit_report.config import RenderOptions
from audit_report.engine.builder import build_document
from audit_report.exceptions import PackagingError
from audit_report.export import DOCXExporter, export_docx
from audit_report.media.image_fetcher import ImageFetcher
from audit_report.models import ReportData
from tests.conftest import NS, W_NS, docx_names, docx_part, docx_table_rows, docx_text

REQUIRED_PARTS = [
    "[Content_Types].xml",
    "_rels/.rels",
    "word/document.xml",
    "word/_rels/document.xml.rels",
    "word/styles.xml",
    "word/settings.xml",
    "word/numbering.xml",
    "word/header1.xml",
    "word/header2.xml",
    "word/footer1.xml",
    "docProps/core.xml",
    "docProps/app.xml",
]


def export(data, options=None):
    tree = build_document(data, fetcher=ImageFetcher(), options=options)
    return DOCXExporter(tree, options).export()


def instructions(element):
    return [node.text for node in element.iter(f"{{{W_NS}}}instrText")]


@pytest.fixture
def full_docx(full_report):
    return export(full_report)


@pytest.fixture
def minimal_docx(minimal_report):
    return export(minimal_report)


class TestPackage:
    """Test cases for the OPC package structure."""

    def test_required_parts(self, minimal_docx):
        """Test that all parts are present."""
        names = docx_names(minimal_docx)

        for part in REQUIRED_PARTS:
            assert part in names

    def test_content_types(self, full_docx):
        """Test overrides for XML parts and defaults for media."""
        types = docx_part(full_docx, "[Content_Types].xml")
        overrides = {e.get("PartName") for e in types.findall("ct:Override", NS)}
        defaults = {e.get("Extension") for e in types.findall("ct:Default", NS)}

        assert "/word/document.xml" in overrides
        assert "/word/header1.xml" in overrides
        assert "/word/footer1.xml" in overrides
        assert {"rels", "xml", "png", "jpeg"} <= defaults

    def test_relationship_targets_exist(self, full_docx):
        """Test that every relationship points at a part in the archive."""
        names = set(docx_names(full_docx))
        for rels_name in [n for n in names if n.endswith(".rels") and n != "_rels/.rels"]:
            rels = docx_part(full_docx, rels_name)
            for rel in rels.findall("rel:Relationship", NS):
                assert "word/" + rel.get("Target") in names

    def test_relationship_ids_unique(self, full_docx):
        """Test rId uniqueness per relationship part."""
        rels = docx_part(full_docx, "word/_rels/document.xml.rels")
        ids = [rel.get("Id") for rel in rels.findall("rel:Relationship", NS)]

        assert len(ids) == len(set(ids))

    def test_media_deduplicated(self, full_docx):
        """Test that identical image data is stored once."""
        with zipfile.ZipFile(io.BytesIO(full_docx)) as archive:
            media = [n for n in archive.namelist() if n.startswith("word/media/")]
            blobs = [archive.read(n) for n in media]

        assert media
        assert len(blobs) == len(set(blobs))
        assert any(name.endswith(".jpeg") for name in media)

    def test_uncompressed_package(self, minimal_report):
        """Test the compress option."""
        blob = export(minimal_report, RenderOptions(compress=False))

        with zipfile.ZipFile(io.BytesIO(blob)) as archive:
            assert all(info.compress_type == zipfile.ZIP_STORED for info in archive.infolist())

    def test_core_properties(self, full_docx):
        """Test document metadata."""
        core = docx_part(full_docx, "docProps/core.xml")
        dc = "http://purl.org/dc/elements/1.1/"

        assert core.find(f"{{{dc}}}title").text == "Electrical Safety Audit Report"
        assert core.find(f"{{{dc}}}creator").text == "A. Engineer"


class TestDocumentBody:
    """Test cases for document.xml content."""

    def test_minimal_info_table(self, minimal_docx):
        """Test that the info grid holds only the client row."""
        document = docx_part(minimal_docx, "word/document.xml")

        assert docx_table_rows(document)[0] == [["Client", "Acme Corp"]]

    def test_minimal_sections(self, minimal_docx):
        """Test that only the power parameters section is rendered."""
        text = docx_text(docx_part(minimal_docx, "word/document.xml"))

        assert "1.0 Power Parameters" in text
        assert "Snapshots of Electrical Installation" not in text
        assert "Connected Load Detail" not in text
        assert "Conclusions" not in text

    def test_headings_bookmarked(self, full_docx):
        """Test bookmarks around section headings."""
        document = docx_part(full_docx, "word/document.xml")
        names = [b.get(f"{{{W_NS}}}name") for b in document.iter(f"{{{W_NS}}}bookmarkStart")]
        starts = {b.get(f"{{{W_NS}}}id") for b in document.iter(f"{{{W_NS}}}bookmarkStart")}
        ends = {b.get(f"{{{W_NS}}}id") for b in document.iter(f"{{{W_NS}}}bookmarkEnd")}

        assert names == [
            "section_observations",
            "section_highlights",
            "section_snapshots",
            "section_power_parameters",
            "section_connected_load",
            "section_conclusions",
        ]
        assert starts == ends

    def test_toc_page_references(self, full_docx):
        """Test PAGEREF fields and internal links in the TOC."""
        document = docx_part(full_docx, "word/document.xml")
        fields = [text.strip() for text in instructions(document)]
        anchors = [h.get(f"{{{W_NS}}}anchor") for h in document.iter(f"{{{W_NS}}}hyperlink")]

        assert "PAGEREF section_power_parameters \\h" in fields
        assert len([f for f in fields if f.startswith("PAGEREF")]) == 6
        assert "section_conclusions" in anchors

    def test_fields_updated_on_open(self, full_docx):
        """Test that settings ask the viewer to refresh fields."""
        settings = docx_part(full_docx, "word/settings.xml")
        update = settings.find("w:updateFields", NS)

        assert update is not None
        assert update.get(f"{{{W_NS}}}val") == "true"

    def test_power_table_vertical_merge(self, full_docx):
        """Test vMerge restart and continuation cells."""
        document = docx_part(full_docx, "word/document.xml")
        merges = [m.get(f"{{{W_NS}}}val") for m in document.iter(f"{{{W_NS}}}vMerge")]

        assert "restart" in merges
        assert "continue" in merges or None in merges

    def test_header_rows_repeat(self, full_docx):
        """Test that table header rows are marked to repeat."""
        document = docx_part(full_docx, "word/document.xml")

        assert len(list(document.iter(f"{{{W_NS}}}tblHeader"))) >= 4

    def test_load_table_values(self, full_docx):
        """Test connected load rows and the total."""
        document = docx_part(full_docx, "word/document.xml")
        load = [rows for rows in docx_table_rows(document) if rows[0][1:2] == ["Type of Load"]][0]

        assert load[1] == ["1", "LED lamp", "100", "10", "1.000"]
        assert load[-1][1] == "Connected load in KW"
        assert load[-1][4] == "1.30"

    def test_lists_numbered(self, full_docx):
        """Test that list paragraphs reference numbering definitions."""
        document = docx_part(full_docx, "word/document.xml")
        numbering = docx_part(full_docx, "word/numbering.xml")
        used = {n.get(f"{{{W_NS}}}val") for n in document.iter(f"{{{W_NS}}}numId")}
        defined = {n.get(f"{{{W_NS}}}numId") for n in numbering.findall("w:num", NS)}

        assert used
        assert used <= defined

    def test_images_embedded(self, full_docx):
        """Test drawings reference relationships of the document part."""
        document = docx_part(full_docx, "word/document.xml")
        rels = docx_part(full_docx, "word/_rels/document.xml.rels")
        rel_ids = {rel.get("Id") for rel in rels.findall("rel:Relationship", NS)}
        embeds = [b.get(f"{{{NS['r']}}}embed") for b in document.iter(f"{{{NS['a']}}}blip")]

        assert len(embeds) == 3  # two snapshot images and the signature
        assert set(embeds) <= rel_ids
        doc_pr_ids = [d.get("id") for d in document.iter(f"{{{NS['wp']}}}docPr")]
        assert len(doc_pr_ids) == len(set(doc_pr_ids))

    def test_section_properties(self, minimal_docx):
        """Test first-page header and A4 page size."""
        document = docx_part(minimal_docx, "word/document.xml")
        sect_pr = document.find("w:body/w:sectPr", NS)

        assert sect_pr.find("w:titlePg", NS) is not None
        assert sect_pr.find("w:pgSz", NS).get(f"{{{W_NS}}}w") == "11906"
        kinds = {h.get(f"{{{W_NS}}}type") for h in sect_pr.findall("w:headerReference", NS)}
        assert kinds == {"first", "default"}

    def test_body_does_not_end_with_table(self, minimal_docx):
        """Test that the last body element before sectPr is a paragraph."""
        body = docx_part(minimal_docx, "word/document.xml").find("w:body", NS)

        assert list(body)[-2].tag == f"{{{W_NS}}}p"


class TestHeaderFooter:
    """Test cases for header and footer parts."""

    def test_first_page_header_has_title(self, full_docx):
        """Test cover lines only in the first-page header."""
        first = docx_text(docx_part(full_docx, "word/header1.xml"))
        default = docx_text(docx_part(full_docx, "word/header2.xml"))

        assert "ELECTRICAL SAFETY AUDIT REPORT" in first
        assert "BRANCH: Main Branch" in first
        assert "ELECTRICAL SAFETY AUDIT REPORT" not in default

    def test_header_logos(self, full_docx):
        """Test both logos in every header."""
        names = docx_names(full_docx)
        for part in ("word/header1.xml", "word/header2.xml"):
            header = docx_part(full_docx, part)
            assert len(list(header.iter(f"{{{NS['a']}}}blip"))) == 2
            assert f"word/_rels/{part.split('/')[1]}.rels" in names

    def test_footer_page_fields(self, minimal_docx):
        """Test "Page X of Y" fields in the footer."""
        footer = docx_part(minimal_docx, "word/footer1.xml")
        fields = [text.strip() for text in instructions(footer)]

        assert fields == ["PAGE", "NUMPAGES"]
        assert "Electrical Safety Audit Report" in docx_text(footer)


class TestRobustness:
    """Test cases for degraded input and repeatability."""

    def test_broken_image_placeholder(self):
        """Test that an undecodable snapshot becomes placeholder text."""
        data = ReportData.from_dict({
            "snapshots": [{"images": ["data:image/png;base64,AAAA"], "description": "DB"}],
        })

        blob = export(data)

        assert "Image unavailable" in docx_text(docx_part(blob, "word/document.xml"))

    def test_repeatable_output(self, full_report):
        """Test that exporting one tree twice gives the same document."""
        tree = build_document(full_report, fetcher=ImageFetcher())

        first = export_docx(tree)
        second = export_docx(tree)

        with zipfile.ZipFile(io.BytesIO(first)) as a, zipfile.ZipFile(io.BytesIO(second)) as b:
            assert a.namelist() == b.namelist()
            for part in ("word/document.xml", "word/numbering.xml", "word/header1.xml", "docProps/core.xml"):
                assert a.read(part) == b.read(part)

    def test_unknown_bookmark(self, minimal_report):
        """Test that headings without a registered section are rejected."""
        tree = build_document(minimal_report, fetcher=ImageFetcher())
        tree.bookmarks.clear()

        with pytest.raises(PackagingError):
            DOCXExporter(tree).export()
