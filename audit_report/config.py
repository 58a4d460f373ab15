"""
Fixed report configuration and per-call render options.

Page geometry is shared by both emitters: the DOCX section uses the twip
values directly and the PDF canvas converts the same values to points, so
a table column allocated in twips has the same width in both outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .exceptions import ConfigurationError
from .utils.units import mm_to_points, twips_to_points

# ----------------------------------------------------------------------
# Page geometry (A4 portrait)
# ----------------------------------------------------------------------
PAGE_WIDTH_TWIPS = 11906
PAGE_HEIGHT_TWIPS = 16838
MARGIN_LEFT_TWIPS = 1134  # 2 cm
MARGIN_RIGHT_TWIPS = 1134
MARGIN_TOP_TWIPS = 1418  # 2.5 cm
MARGIN_BOTTOM_TWIPS = 1418
HEADER_DISTANCE_TWIPS = 567
FOOTER_DISTANCE_TWIPS = 567
CONTENT_WIDTH_TWIPS = PAGE_WIDTH_TWIPS - MARGIN_LEFT_TWIPS - MARGIN_RIGHT_TWIPS

PAGE_WIDTH = twips_to_points(PAGE_WIDTH_TWIPS)
PAGE_HEIGHT = twips_to_points(PAGE_HEIGHT_TWIPS)
MARGIN_LEFT = twips_to_points(MARGIN_LEFT_TWIPS)
MARGIN_RIGHT = twips_to_points(MARGIN_RIGHT_TWIPS)
CONTENT_WIDTH = twips_to_points(CONTENT_WIDTH_TWIPS)

# PDF vertical bands, measured from the top edge
PDF_HEADER_TOP = mm_to_points(10)
PDF_CONTENT_TOP = mm_to_points(40)
PDF_BOTTOM_LIMIT = PAGE_HEIGHT - mm_to_points(25)
PDF_FOOTER_OFFSET = mm_to_points(10)

# ----------------------------------------------------------------------
# Fonts and sizes (points)
# ----------------------------------------------------------------------
FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"
FONT_BOLD_ITALIC = "Helvetica-BoldOblique"
DOCX_FONT = "Arial"

BODY_SIZE = 10.0
TABLE_SIZE = 10.0
HEADING_SIZE = 12.0
REPORT_HEADING_SIZE = 14.0
TITLE_SIZE = 16.0
SUBTITLE_SIZE = 12.0
FOOTER_SIZE = 9.0
COUNTRIES_SIZE = 12.0
LINE_HEIGHT_FACTOR = 1.4

# ----------------------------------------------------------------------
# Palette (6-hex, no leading '#')
# ----------------------------------------------------------------------
DEFAULT_TEXT_COLOR = "000000"
INFO_FILL = "D9E2F3"
TOC_FILL = "2DD4BF"
SNAPSHOT_FILL = "8B5CF6"
POWER_FILL = "F59E0B"
LOAD_FILL = "EF4444"
ALT_ROW_FILL = "F2F2F2"
HEADER_TEXT_COLOR = "FFFFFF"
FOOTER_TEXT_COLOR = "646464"
LINK_COLOR = "0000FF"
ORG_TEXT_COLOR = "374151"
COUNTRIES_HIGHLIGHT = "FFFF00"
BORDER_COLOR = "000000"

# ----------------------------------------------------------------------
# Fixed text
# ----------------------------------------------------------------------
DOCUMENT_TITLE = "ELECTRICAL SAFETY AUDIT REPORT"
FOOTER_TITLE = "Electrical Safety Audit Report"
REPORT_HEADING = "Electrical Audit Report"
TOC_TITLE = "Table of Contents"
BRANCH_LABEL = "BRANCH: "
BRANCH_CODE_LABEL = "BRANCH CODE: "

# (key, heading title) in rendering order
SECTIONS: Tuple[Tuple[str, str], ...] = (
    ("observations", "Audit - General observations"),
    ("highlights", "Major Highlights"),
    ("snapshots", "Snapshots of Electrical Installation"),
    ("power_parameters", "Power Parameters"),
    ("connected_load", "Connected Load Detail"),
    ("conclusions", "Conclusions"),
)

ORGANIZATION_NAME = "Sustenergy Foundation"
SIGNATORY_NAME = "Jayakumar.R"
SIGNATORY_LINES: Tuple[str, ...] = (
    "Principal Consultant.",
    "Certified Energy Manager – EM 0514 – Bureau of Energy efficiency, India",
    "Supervisor Grade A – SA 1387- All LT/MV/HT Electrical Installation, KSELB, Kerala State",
    "Certified Infrared Thermographer Level 1 – No 2017IN08N002 - Infrared Training Center, Sweden",
)

REG_OFFICE_LABEL = "Reg. office: - "
REG_OFFICE_TEXT = (
    "Mathuvala, Kudamaloor.P.O, Kottayam -17, Kerala state, India "
    "Ph:- +91 481 6454636 , +91 9020093636"
)
MARKETING_OFFICE_LABEL = "Marketing Office :- "
MARKETING_OFFICE_TEXT = "277 N Pathinaruparayil Arcade, Chalukunnu, Kottayam.P.O, Kerala State 686 001"
EMAIL_TEXT = "Email:- contact@sustenergyfoundation.org   "
WEBSITE_LABEL = "website:- "
WEBSITE_URL = "www.sustenergyfoundation.org"
SERVICED_COUNTRIES: Tuple[str, ...] = ("India", "Maldives", "Sri Lanka", "Nepal", "UAE")

NO_IMAGE_TEXT = "No Image"
IMAGE_UNAVAILABLE_TEXT = "Image unavailable"
EMPTY_VALUE = "-"

# ----------------------------------------------------------------------
# Bundled assets
# ----------------------------------------------------------------------
ASSETS_DIR = Path(__file__).parent / "assets"
DEFAULT_SIGNATURE_PATH = ASSETS_DIR / "default_signature.png"
ORGANIZATION_LOGO_PATH = ASSETS_DIR / "organization_logo.png"
FONTS_DIR = ASSETS_DIR / "fonts"

SIGNATURE_BOX = (mm_to_points(50), mm_to_points(25))


@dataclass
class RenderOptions:
    """Per-call tunables for both emitters."""

    fetch_timeout: Optional[float] = None
    include_organization_logo: bool = True
    compress: bool = True
    invariant: bool = True
    snapshot_image_max_height: float = 150.0
    logo_box: float = mm_to_points(25)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RenderOptions":
        """
        Build options from a plain dictionary.

        Args:
            mapping: Option names mapped to values

        Returns:
            RenderOptions instance

        Raises:
            ConfigurationError: If the mapping holds unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError("Unknown render options", ", ".join(unknown))

        options = cls(**dict(mapping))
        try:
            options.validate()
        except TypeError as e:
            raise ConfigurationError("Invalid render option value", str(e)) from e
        return options

    def validate(self) -> None:
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive", str(self.fetch_timeout))
        if self.snapshot_image_max_height <= 0:
            raise ConfigurationError(
                "snapshot_image_max_height must be positive", str(self.snapshot_image_max_height)
            )
        if self.logo_box <= 0:
            raise ConfigurationError("logo_box must be positive", str(self.logo_box))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def resolve_options(options: Union[RenderOptions, Mapping[str, Any], None]) -> RenderOptions:
    if options is None:
        return RenderOptions()
    if isinstance(options, RenderOptions):
        options.validate()
        return options
    if isinstance(options, Mapping):
        return RenderOptions.from_mapping(options)
    raise ConfigurationError("Unsupported options type", type(options).__name__)
