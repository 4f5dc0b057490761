from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import TransportError


def decode_image(content: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(content))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise TransportError(f"Failed to load image data: {exc}") from exc
    return image


def encode_image(content: bytes, image_format: str) -> bytes:
    """Re-encode downloaded image bytes to ``image_format`` (PNG or JPEG)."""

    image = decode_image(content)
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = BytesIO()
    try:
        image.save(buffer, format=image_format)
    except (OSError, KeyError, ValueError) as exc:
        raise TransportError(f"Failed to encode image: {exc}") from exc
    return buffer.getvalue()
