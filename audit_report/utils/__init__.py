"""Utility helpers: logging setup and unit conversions."""

from .logger import configure_logging, get_logger
from .units import (
    EMU_PER_POINT,
    TWIPS_PER_POINT,
    mm_to_points,
    points_to_emu,
    points_to_twips,
    twips_to_points,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "EMU_PER_POINT",
    "TWIPS_PER_POINT",
    "mm_to_points",
    "points_to_emu",
    "points_to_twips",
    "twips_to_points",
]
