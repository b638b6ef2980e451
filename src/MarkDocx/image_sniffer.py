"""Intrinsic image size from raw header bytes, and output size resolution."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs

from .model import ImageDimensions

PNG_MAGIC = b"\x89PNG"
JPEG_SOF_MARKERS = (0xC0, 0xC2)

MAX_INTRINSIC_WIDTH = 400
DEFAULT_WIDTH = 200
FALLBACK_ASPECT = 0.75

_WXH_FRAGMENT = re.compile(r"^(\d+)x(\d+)$")
_DIGITS = re.compile(r"^\d+$")


@dataclass(frozen=True)
class SniffResult:
    format: str
    intrinsic_width: Optional[int] = None
    intrinsic_height: Optional[int] = None

    @property
    def aspect(self) -> Optional[float]:
        if self.intrinsic_width and self.intrinsic_height:
            return self.intrinsic_width / self.intrinsic_height
        return None


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _uint16_be(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 2], "big")


def _uint32_be(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 4], "big")


def _png_size(data: bytes) -> tuple[Optional[int], Optional[int]]:
    if len(data) >= 24 and data[:4] == PNG_MAGIC:
        return _uint32_be(data, 16), _uint32_be(data, 20)
    return None, None


def _jpeg_size(data: bytes) -> tuple[Optional[int], Optional[int]]:
    offset = 2
    while offset + 9 < len(data):
        if data[offset] != 0xFF:
            break
        marker = data[offset + 1]
        if marker in JPEG_SOF_MARKERS:
            return _uint16_be(data, offset + 7), _uint16_be(data, offset + 5)
        offset += 2 + _uint16_be(data, offset + 2)
    return None, None


def _gif_size(data: bytes) -> tuple[Optional[int], Optional[int]]:
    if len(data) >= 10:
        return int.from_bytes(data[6:8], "little"), int.from_bytes(data[8:10], "little")
    return None, None


_READERS = {"png": _png_size, "jpg": _jpeg_size, "gif": _gif_size}


def guess_format_from_bytes(data: bytes) -> Optional[str]:
    if data[:4] == PNG_MAGIC:
        return "png"
    if data[:2] == b"\xff\xd8":
        return "jpg"
    if data[:4] == b"GIF8":
        return "gif"
    return None


def detect_format(content_type: str = "", url: str = "", data: bytes = b"") -> str:
    """Pick ``png``/``jpg``/``gif`` from the content type, URL extension or magic bytes."""
    if re.search(r"jpeg|jpg", content_type, re.I) or re.search(r"\.jpe?g(\?|#|$)", url, re.I):
        return "jpg"
    if re.search(r"png", content_type, re.I) or re.search(r"\.png(\?|#|$)", url, re.I):
        return "png"
    if re.search(r"gif", content_type, re.I) or re.search(r"\.gif(\?|#|$)", url, re.I):
        return "gif"
    return guess_format_from_bytes(data) or "png"


def sniff(data: bytes, image_format: Optional[str] = None) -> SniffResult:
    """Read intrinsic width/height from the image header.

    When *image_format* is not given it is guessed from the magic bytes,
    defaulting to PNG. Missing or truncated headers leave the dimensions
    unset; nothing here raises.
    """
    image_format = image_format or guess_format_from_bytes(data) or "png"
    reader = _READERS.get(image_format)
    width, height = reader(data) if reader else (None, None)
    return SniffResult(format=image_format, intrinsic_width=width, intrinsic_height=height)


def parse_dimension_hint(url: str) -> tuple[str, Optional[int], Optional[int]]:
    """Split ``#WxH`` / ``#w=..&h=..`` size hints off an image URL."""
    if "#" not in url:
        return url, None, None
    base, fragment = url.split("#", 1)
    match = _WXH_FRAGMENT.match(fragment)
    if match:
        return base, int(match.group(1)), int(match.group(2))
    params = parse_qs(fragment.replace("&amp;", "&"))

    def _first(*names: str) -> Optional[int]:
        for name in names:
            values = params.get(name)
            if values and _DIGITS.match(values[0]):
                return int(values[0])
        return None

    return base, _first("w", "width"), _first("h", "height")


def resolve_dimensions(
    width_hint: Optional[int],
    height_hint: Optional[int],
    intrinsic_width: Optional[int],
    intrinsic_height: Optional[int],
) -> ImageDimensions:
    """Output size preserving the intrinsic aspect ratio where one is known.

    Hints always win when both are given; a single hint is completed from
    the aspect ratio; otherwise the intrinsic width is capped at 400 and
    with nothing known the width is 200. Height may stay unset.
    """
    aspect = intrinsic_width / intrinsic_height if intrinsic_width and intrinsic_height else None

    if width_hint and height_hint:
        return ImageDimensions(width=width_hint, height=height_hint)
    if width_hint and aspect:
        return ImageDimensions(width=width_hint, height=max(1, _round(width_hint / aspect)))
    if height_hint and aspect:
        return ImageDimensions(width=max(1, _round(height_hint * aspect)), height=height_hint)
    if intrinsic_width:
        width = min(intrinsic_width, MAX_INTRINSIC_WIDTH)
        height = max(1, _round(width / aspect)) if aspect else None
        return ImageDimensions(width=width, height=height)
    return ImageDimensions(width=DEFAULT_WIDTH)


def finalize_dimensions(dimensions: ImageDimensions) -> ImageDimensions:
    """Fill a missing height with the 4:3 fallback."""
    if dimensions.height is not None:
        return dimensions
    return ImageDimensions(width=dimensions.width, height=_round(dimensions.width * FALLBACK_ASPECT))
