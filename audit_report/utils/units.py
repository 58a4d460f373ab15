"""Unit conversions shared by the DOCX and PDF emitters."""

from __future__ import annotations

TWIPS_PER_POINT = 20
EMU_PER_POINT = 12700
POINTS_PER_MM = 72.0 / 25.4


def twips_to_points(value: float | None) -> float:
    if value is None:
        return 0.0
    return float(value) / TWIPS_PER_POINT


def points_to_twips(value: float | None) -> int:
    if value is None:
        return 0
    return int(round(float(value) * TWIPS_PER_POINT))


def points_to_emu(value: float | None) -> int:
    if value is None:
        return 0
    return int(round(float(value) * EMU_PER_POINT))


def mm_to_points(value: float | None) -> float:
    if value is None:
        return 0.0
    return float(value) * POINTS_PER_MM


def px_to_points(value: float | None, dpi: float = 96.0) -> float:
    if value is None:
        return 0.0
    return float(value) * 72.0 / dpi
