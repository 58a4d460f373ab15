"""Value formatting helpers for numeric readings and filenames."""

from __future__ import annotations

import math
import re
from typing import Iterable, Optional

EMPTY_VALUE = "-"

# longest first so "kW" wins over "W"
UNIT_SUFFIXES = ("kva", "kw", "hz", "va", "v", "a", "w")

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_FILENAME_STRIP_RE = re.compile(r"[^A-Za-z0-9_\-\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_unit(value: str) -> str:
    """Remove a trailing unit suffix typed by the user ("230 V" -> "230")."""
    text = value.strip()
    lowered = text.lower()
    for suffix in UNIT_SUFFIXES:
        if lowered.endswith(suffix) and len(text) > len(suffix):
            candidate = text[: -len(suffix)].rstrip()
            if candidate and (candidate[-1].isdigit() or candidate[-1] == "."):
                return candidate
    return text


def parse_number(value: object) -> Optional[float]:
    """
    Parse a decimal reading, tolerating unit suffixes.

    Returns:
        The number, or None for blank or malformed input
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = strip_unit(str(value)).replace(",", "")
    if not text or not _NUMBER_RE.match(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def format_reading(value: object) -> str:
    """Stringify a reading for a value cell: blank or malformed becomes "-"."""
    if value is None:
        return EMPTY_VALUE
    text = str(value).strip()
    if not text:
        return EMPTY_VALUE
    if parse_number(text) is None:
        return EMPTY_VALUE
    return strip_unit(text)


def format_text(value: object) -> str:
    """Stringify a free-text cell: blank becomes "-"."""
    if value is None:
        return EMPTY_VALUE
    text = str(value).strip()
    return text or EMPTY_VALUE


def line_voltage_from_phase(value: object) -> str:
    """Line voltage = phase voltage x sqrt(3), one decimal; "" for blank input."""
    number = parse_number(value)
    if number is None:
        return ""
    return f"{number * math.sqrt(3):.1f}"


def sub_total_kw(power: object, qty: object) -> str:
    """Sub total in kW = power (W) x qty / 1000, three decimals; bad operands count as 0."""
    watts = parse_number(power) or 0.0
    count = parse_number(qty) or 0.0
    return f"{watts * count / 1000:.3f}"


def total_kw(sub_totals: Iterable[object]) -> str:
    """Sum of sub totals, two decimals."""
    total = sum(parse_number(value) or 0.0 for value in sub_totals)
    return f"{total:.2f}"


def sanitize_filename_part(value: Optional[str], fallback: str = "Draft") -> str:
    """Keep [A-Za-z0-9_-], turn whitespace runs into underscores."""
    text = _FILENAME_STRIP_RE.sub("", value or "").strip()
    text = _WHITESPACE_RE.sub("_", text)
    return text or fallback


def suggested_filename(branch_name: Optional[str], extension: str) -> str:
    """
    Download filename for a rendered report.

    Args:
        branch_name: Branch name from the report (may be blank)
        extension: File extension with or without leading dot

    Returns:
        e.g. ``Audit_Report_Main_Branch.pdf``
    """
    ext = extension.lstrip(".")
    return f"Audit_Report_{sanitize_filename_part(branch_name or 'Draft')}.{ext}"
