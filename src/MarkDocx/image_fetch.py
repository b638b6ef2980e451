from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes

import requests

from .errors import ImageRetrievalError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_DATA_URL = re.compile(r"^data:([^;,]*)(;base64)?,(.*)$", re.IGNORECASE | re.DOTALL)


@dataclass
class FetchedImage:
    data: bytes
    content_type: str = ""


def decode_data_url(url: str) -> FetchedImage:
    """Decode ``data:[<mediatype>][;base64],<data>``."""
    match = _DATA_URL.match(url)
    if not match:
        raise ImageRetrievalError(f"Invalid data URL for image: {url[:100]}...")
    content_type, is_base64, payload = match.groups()
    try:
        if is_base64:
            data = base64.b64decode(payload, validate=False)
        else:
            data = unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as exc:
        raise ImageRetrievalError(f"Failed to decode data URL: {exc}") from exc
    if not data:
        raise ImageRetrievalError("Data URL produced empty image data")
    return FetchedImage(data=data, content_type=content_type or "")


def _download(url: str, timeout: float) -> FetchedImage:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ImageRetrievalError(f"Failed to fetch image: {exc}") from exc
    return FetchedImage(data=response.content, content_type=response.headers.get("content-type", ""))


def _read_local(src: str, asset_root: Path | None) -> FetchedImage:
    path = Path(unquote(src))
    # a NUL byte in the path raises ValueError rather than OSError
    try:
        if asset_root is not None and not path.is_absolute() and (asset_root / path).exists():
            path = asset_root / path
        return FetchedImage(data=path.read_bytes())
    except (OSError, ValueError) as exc:
        raise ImageRetrievalError(f"Failed to read image {path}: {exc}") from exc


def fetch_image(url: str, asset_root: Path | None = None, timeout: float = DEFAULT_TIMEOUT) -> FetchedImage:
    """Retrieve image bytes for *url* (fragment already removed).

    Data URLs are decoded in place, ``http(s)`` URLs are downloaded with
    requests, everything else is read from disk relative to *asset_root*.
    """
    if url.lower().startswith("data:"):
        image = decode_data_url(url)
    elif url.lower().startswith(("http://", "https://")):
        logger.debug("Downloading image %s", url)
        image = _download(url, timeout)
    else:
        image = _read_local(url, asset_root)
    if not image.data:
        raise ImageRetrievalError(f"Invalid image data: empty payload for {url[:100]}")
    return image
