"""
Image fetching and normalization.

Resolves an image reference (``data:`` URL, ``http(s)`` URL, local path or
raw bytes) to embeddable bytes. Anything that is not PNG or JPEG is
transcoded to PNG (first frame only). Failures never propagate: the caller
gets ``None`` and renders a placeholder instead.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image, UnidentifiedImageError

from ..exceptions import MediaError

logger = logging.getLogger(__name__)

ImageRef = Union[str, Path, bytes]

USER_AGENT = "Mozilla/5.0 (compatible; audit-report/0.3)"

FORMAT_SIGNATURES = {
    "png": [b"\x89PNG\r\n\x1a\n"],
    "jpeg": [b"\xff\xd8\xff"],
    "gif": [b"GIF87a", b"GIF89a"],
    "bmp": [b"BM"],
    "webp": [b"RIFF"],
}

CONTENT_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
}

HTML_MARKERS = (b"<!doctype html", b"<html", b"<head", b"<body", b"<?xml version")
_EMBEDDABLE_MODES = {"png": ("RGB", "RGBA", "L", "LA", "P", "1"), "jpeg": ("RGB", "L")}


@dataclass(slots=True)
class FetchedImage:
    """Normalized image ready for embedding."""

    data: bytes
    format: str
    width: int
    height: int

    @property
    def extension(self) -> str:
        return "png" if self.format == "png" else "jpeg"

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self.format]


def looks_like_html(data: bytes) -> bool:
    """Content sniffing for error pages returned in place of an image."""
    head = data[:1024].lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if not head.startswith(b"<"):
        return False
    return any(marker in head for marker in HTML_MARKERS)


def detect_format(data: bytes) -> Optional[str]:
    for format_type, signatures in FORMAT_SIGNATURES.items():
        for signature in signatures:
            if data.startswith(signature):
                if format_type == "webp" and data[8:12] != b"WEBP":
                    continue
                return format_type
    return None


def scale_to_fit(width: float, height: float, max_width: float, max_height: float,
                 allow_upscale: bool = False) -> Tuple[float, float]:
    """
    Scale a box uniformly so it fits within ``max_width`` x ``max_height``.

    Args:
        width: Natural width
        height: Natural height
        max_width: Maximum width
        max_height: Maximum height
        allow_upscale: Whether small images may grow to fill the box

    Returns:
        (width, height) with the original aspect ratio
    """
    if width <= 0 or height <= 0:
        return max_width, max_height
    scale = min(max_width / width, max_height / height)
    if not allow_upscale:
        scale = min(scale, 1.0)
    return width * scale, height * scale


class ImageFetcher:
    """
    Fetches and normalizes images for one render call.

    Results are cached per reference so repeated logos are fetched once.
    """

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        """
        Args:
            timeout: Timeout in seconds for remote fetches (``None`` waits indefinitely)
            session: Optional requests session used for remote fetches
        """
        self.timeout = timeout
        self.session = session
        self._cache: Dict[str, Optional[FetchedImage]] = {}
        self.stats = {"fetched": 0, "transcoded": 0, "failed": 0, "cache_hits": 0}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch_bytes(self, ref: Optional[ImageRef]) -> Optional[bytes]:
        """
        Retrieve raw bytes for an image reference.

        Returns:
            Raw payload, or None when missing, empty or an HTML error page
        """
        if ref is None or (isinstance(ref, (str, bytes)) and not ref):
            return None
        try:
            return self._read(ref)
        except Exception as e:
            self.stats["failed"] += 1
            logger.warning(f"Image unavailable: {describe_ref(ref)} ({e})")
            return None

    def fetch(self, ref: Optional[ImageRef]) -> Optional[FetchedImage]:
        """
        Retrieve and normalize an image to PNG or JPEG.

        Returns:
            FetchedImage or None on any failure
        """
        if ref is None or (isinstance(ref, (str, bytes)) and not ref):
            return None

        key = _cache_key(ref)
        if key in self._cache:
            self.stats["cache_hits"] += 1
            return self._cache[key]

        image: Optional[FetchedImage] = None
        try:
            raw = self._read(ref)
            image = self.normalize(raw)
            self.stats["fetched"] += 1
        except Exception as e:
            self.stats["failed"] += 1
            logger.warning(f"Image unavailable: {describe_ref(ref)} ({e})")

        self._cache[key] = image
        return image

    def get_dimensions(self, ref: Optional[ImageRef]) -> Optional[Tuple[int, int]]:
        """Natural pixel size of the referenced image, or None."""
        image = self.fetch(ref)
        if image is None:
            return None
        return image.width, image.height

    def normalize(self, raw: bytes) -> FetchedImage:
        """
        Convert raw bytes to an embeddable image.

        Raises:
            MediaError: If the bytes cannot be decoded
        """
        try:
            with Image.open(io.BytesIO(raw)) as img:
                source_format = (img.format or "").lower()
                if source_format == "jpg":
                    source_format = "jpeg"
                width, height = img.size

                if source_format in _EMBEDDABLE_MODES and img.mode in _EMBEDDABLE_MODES[source_format] \
                        and not getattr(img, "is_animated", False):
                    img.load()
                    return FetchedImage(data=raw, format=source_format, width=width, height=height)

                # Pierwsza klatka dla formatów animowanych
                img.seek(0)
                frame = img.convert("RGBA" if _has_alpha(img) else "RGB")
                output = io.BytesIO()
                frame.save(output, format="PNG")
        except (UnidentifiedImageError, OSError, ValueError, EOFError) as e:
            raise MediaError("Cannot decode image", str(e)) from e

        self.stats["transcoded"] += 1
        logger.debug(f"Transcoded {source_format or 'unknown'} image to PNG ({width}x{height})")
        return FetchedImage(data=output.getvalue(), format="png", width=width, height=height)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------
    def _read(self, ref: ImageRef) -> bytes:
        if isinstance(ref, bytes):
            data = ref
        elif isinstance(ref, Path):
            data = self._read_file(ref)
        elif ref.startswith("data:"):
            data = self._read_data_url(ref)
        elif ref.startswith(("http://", "https://")):
            data = self._read_remote(ref)
        elif ref.startswith("file://"):
            data = self._read_file(Path(ref[len("file://"):]))
        else:
            data = self._read_file(Path(ref))

        if not data:
            raise MediaError("Empty image payload")
        if looks_like_html(data):
            raise MediaError("Payload is an HTML document, not an image")
        return data

    @staticmethod
    def _read_data_url(ref: str) -> bytes:
        header, sep, payload = ref.partition(",")
        if not sep:
            raise MediaError("Malformed data URL")
        if header.endswith(";base64"):
            try:
                return base64.b64decode(payload, validate=False)
            except (binascii.Error, ValueError) as e:
                raise MediaError("Invalid base64 payload", str(e)) from e
        return unquote_to_bytes(payload)

    def _read_remote(self, url: str) -> bytes:
        getter = self.session.get if self.session is not None else requests.get
        response = getter(url, timeout=self.timeout, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
        content_type = response.headers.get("Content-Type", "").lower()
        if "text/html" in content_type:
            raise MediaError("Server returned HTML instead of an image", url)
        return response.content

    @staticmethod
    def _read_file(path: Path) -> bytes:
        if not path.is_file():
            raise MediaError("Image file not found", str(path))
        return path.read_bytes()


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _cache_key(ref: ImageRef) -> str:
    if isinstance(ref, bytes):
        return "bytes:" + hashlib.md5(ref).hexdigest()
    return str(ref)


def describe_ref(ref: ImageRef) -> str:
    """Short printable form of a reference for log messages."""
    if isinstance(ref, bytes):
        return f"<{len(ref)} bytes>"
    text = str(ref)
    if text.startswith("data:"):
        return text[:text.find(",") + 1] + "..." if "," in text else text[:40]
    return text if len(text) <= 80 else text[:77] + "..."
