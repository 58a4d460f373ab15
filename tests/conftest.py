"""
Pytest configuration for audit-report
"""

import base64
import io
import logging
import sys
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
from PIL import Image

from audit_report.models.report import ReportData

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS = {
    "w": W_NS,
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "pic": "http://schemas.openxmlformats.org/drawingml/2006/picture",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
    "ct": "http://schemas.openxmlformats.org/package/2006/content-types",
}


@pytest.fixture(autouse=True)
def configure_logging():
    """Configure logging for tests to avoid file handler issues."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)  # Only show warnings and errors during tests
    console_handler.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))

    root_logger.addHandler(console_handler)
    root_logger.setLevel(logging.WARNING)

    yield

    root_logger.handlers.clear()


def make_image(fmt: str, size=(40, 20), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    """Encode a solid-colour image with Pillow."""
    img = Image.new(mode, size, color)
    output = io.BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def docx_part(blob: bytes, name: str) -> ET.Element:
    with zipfile.ZipFile(io.BytesIO(blob)) as archive:
        return ET.fromstring(archive.read(name))


def docx_names(blob: bytes):
    with zipfile.ZipFile(io.BytesIO(blob)) as archive:
        return archive.namelist()


def docx_text(element: ET.Element) -> str:
    return "".join(t.text or "" for t in element.iter(f"{{{W_NS}}}t"))


def docx_table_rows(document: ET.Element):
    """Text of every cell, per row, per table: [[[cell, ...], ...], ...]."""
    tables = []
    for tbl in document.iter(f"{{{W_NS}}}tbl"):
        rows = []
        for tr in tbl.findall("w:tr", NS):
            rows.append([docx_text(tc) for tc in tr.findall("w:tc", NS)])
        tables.append(rows)
    return tables


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for output files."""
    return Path(tmp_path)


@pytest.fixture
def png_bytes():
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image("JPEG")


@pytest.fixture
def gif_bytes():
    return make_image("GIF", mode="P", color=1)


@pytest.fixture
def webp_bytes():
    return make_image("WEBP", mode="RGBA", color=(10, 200, 10, 128))


@pytest.fixture
def png_data_url(png_bytes):
    return data_url(png_bytes)


@pytest.fixture
def minimal_report():
    """Only a client and a frequency reading."""
    return ReportData.from_dict({
        "client": "Acme Corp",
        "powerParameters": {"frequency": "50.00"},
    })


@pytest.fixture
def full_state(png_bytes, jpeg_bytes):
    """Form state with every section populated."""
    return {
        "branchName": "Main Branch",
        "branchCode": "MB-001",
        "refNo": "SEF/2024/17",
        "date": "2024-03-01",
        "inspectionDate": "2024-02-27",
        "client": "Acme Corp",
        "createdBy": "A. Engineer",
        "approvedBy": "B. Reviewer",
        "logo": data_url(png_bytes),
        "useDefaultSignature": True,
        "generalObservations": [
            "<p>Main panel is <b>well labelled</b>.</p>",
            "<ol><li>Earthing checked</li><li>RCCB tested</li></ol>",
        ],
        "majorHighlights": ["<p>Loose neutral in DB-2</p>", ""],
        "snapshots": [
            {
                "images": [data_url(png_bytes), data_url(jpeg_bytes, "image/jpeg")],
                "description": "<p>Distribution board <i>DB-1</i></p>",
            },
            {"images": [], "description": "Panel room"},
        ],
        "powerParameters": {
            "phaseVoltage": {"rn": "230.0", "yn": "231", "bn": ""},
            "neutralEarth": {"ne": "1.2 V"},
            "current": {"r": "12", "y": "abc", "b": "", "n": "0.5"},
            "frequency": "50.00",
            "powerFactor": "0.92",
            "remarks": {"ne": "Within limits"},
        },
        "connectedLoad": [
            {"type": "LED lamp", "power": "100", "qty": "10"},
            {"type": "Fan", "power": "60", "qty": "5"},
        ],
        "conclusions": ["<p>Installation is safe after fixing DB-2.</p>"],
    }


@pytest.fixture
def full_report(full_state):
    return ReportData.from_dict(full_state)
