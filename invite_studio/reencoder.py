"""Pillow-based downscaling and recompression of images."""

import asyncio
import base64
import binascii
import math
import re
from io import BytesIO
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .errors import ReencodeError
from .models import EncodedImage, ImageFormat

MAX_EDGE = 1024

_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def decode_image_payload(value: str) -> Tuple[bytes, Optional[str]]:
    """Decode a bare base64 string or a ``data:<mime>;base64,...`` URI."""
    mime_type = None
    match = _DATA_URI.match(value.strip())
    if match:
        mime_type = match.group("mime")
        value = match.group("data")
    try:
        return base64.b64decode(value, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ReencodeError(f"Image payload is not valid base64: {e}") from e


def sniff_mime_type(data: bytes) -> str:
    try:
        with Image.open(BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as e:
        raise ReencodeError(f"Unreadable image: {e}") from e
    return Image.MIME.get(image_format, "image/png")


def format_bytes(num_bytes: Optional[int], decimals: int = 2) -> str:
    if not num_bytes:
        return "0 Bytes"
    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB", "TB"]
    i = min(int(math.floor(math.log(num_bytes, k))), len(sizes) - 1)
    value = round(num_bytes / math.pow(k, i), max(decimals, 0))
    return f"{value:g} {sizes[i]}"


def reencode(
    data: Union[bytes, str],
    quality: float,
    fmt: ImageFormat = ImageFormat.JPEG,
    max_edge: int = MAX_EDGE,
) -> EncodedImage:
    """Shrink an image to fit a ``max_edge`` box and encode it as PNG or JPEG.

    ``data`` may be raw bytes or a data URI. Aspect ratio is preserved and
    images are never upscaled. PNG output is lossless and ignores ``quality``;
    JPEG maps ``quality`` (0..1) onto Pillow's 1..100 scale.
    """
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be within [0, 1], got {quality}")
    if isinstance(data, str):
        data, _ = decode_image_payload(data)

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ReencodeError(f"Unreadable image: {e}") from e

    if max(image.size) > max_edge:
        image.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)

    buffer = BytesIO()
    if fmt is ImageFormat.PNG:
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            image = image.convert("RGBA")
        image.save(buffer, format="PNG", optimize=True)
    else:
        if image.mode != "RGB":
            image = image.convert("RGB")
        jpeg_quality = max(1, min(100, int(round(quality * 100))))
        image.save(buffer, format="JPEG", quality=jpeg_quality)

    encoded = buffer.getvalue()
    return EncodedImage(data=encoded, size=len(encoded), format=fmt)


async def reencode_async(
    data: Union[bytes, str],
    quality: float,
    fmt: ImageFormat = ImageFormat.JPEG,
    max_edge: int = MAX_EDGE,
) -> EncodedImage:
    return await asyncio.to_thread(reencode, data, quality, fmt, max_edge)
