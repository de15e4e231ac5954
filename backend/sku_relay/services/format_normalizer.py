"""Convert uploaded images to something the processing webhook accepts"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pillow_heif import open_heif, register_heif_opener

from sku_relay.config.upload_config import DEFAULT_HEIGHT, DEFAULT_WIDTH, JPEG_QUALITY
from sku_relay.services.exceptions import UnsupportedFormat

logger = logging.getLogger(__name__)

register_heif_opener()

JPEG_TYPES = {"image/jpeg", "image/jpg", "image/pjpeg"}
HEIC_TYPES = {"image/heic", "image/heif", "image/heic-sequence", "image/heif-sequence"}
# PNG and WebP are forwarded as-is; the webhook accepts them directly
PASSTHROUGH_TYPES = {"image/png", "image/webp"}

_EXTENSION_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}
_GENERIC_TYPES = {"", "application/octet-stream"}


@dataclass
class NormalizedImage:
    data: bytes
    content_type: str
    width: int
    height: int


def resolve_media_type(content_type: Optional[str], filename: str) -> str:
    """Lower-cased declared type; falls back to the extension for generic types."""
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in _GENERIC_TYPES:
        return _EXTENSION_TYPES.get(Path(filename or "").suffix.lower(), declared)
    return declared


def _read_dimensions(data: bytes) -> Tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.debug("Could not read image dimensions: %s", exc)
        return DEFAULT_WIDTH, DEFAULT_HEIGHT


def _read_heic_dimensions(data: bytes) -> Tuple[int, int]:
    try:
        return open_heif(data).size
    except Exception as exc:
        logger.debug("Could not read HEIC dimensions: %s", exc)
        return DEFAULT_WIDTH, DEFAULT_HEIGHT


def heic_to_jpeg(data: bytes, quality: int = JPEG_QUALITY) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        rgb = img.convert("RGB")
        out = io.BytesIO()
        rgb.save(out, format="JPEG", quality=quality)
        return out.getvalue()


def normalize_image(data: bytes, content_type: Optional[str], filename: str) -> NormalizedImage:
    """
    Normalize one upload.

    Args:
        data: Raw uploaded bytes
        content_type: Declared media type (untrusted)
        filename: Original file name, used for messages and type inference

    Returns:
        NormalizedImage with the bytes to relay, their content type and
        best-effort pixel dimensions (1920x1080 when unknown)

    Raises:
        UnsupportedFormat: the media type is not JPEG, HEIC/HEIF, PNG or WebP
    """
    media_type = resolve_media_type(content_type, filename)

    if media_type in JPEG_TYPES:
        width, height = _read_dimensions(data)
        return NormalizedImage(data=data, content_type="image/jpeg", width=width, height=height)

    if media_type in HEIC_TYPES:
        logger.info(f"Converting HEIC {filename} to JPEG (quality {JPEG_QUALITY})")
        jpeg = heic_to_jpeg(data)
        width, height = _read_heic_dimensions(data)
        return NormalizedImage(data=jpeg, content_type="image/jpeg", width=width, height=height)

    if media_type in PASSTHROUGH_TYPES:
        width, height = _read_dimensions(data)
        return NormalizedImage(data=data, content_type=media_type, width=width, height=height)

    raise UnsupportedFormat(filename, content_type)
