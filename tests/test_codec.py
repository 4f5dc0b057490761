from io import BytesIO

import pytest
from PIL import Image

from stackeer.codec import decode_image, encode_image
from stackeer.errors import TransportError

from .conftest import make_image


def test_encode_converts_png_to_jpeg():
    encoded = encode_image(make_image(), "JPEG")
    assert decode_image(encoded).format == "JPEG"


def test_decode_rejects_non_image_bytes():
    with pytest.raises(TransportError, match="Failed to load image data"):
        decode_image(b"<html></html>")


def test_encode_failure_is_a_transport_error():
    buffer = BytesIO()
    Image.new("CMYK", (2, 2)).save(buffer, format="JPEG")

    with pytest.raises(TransportError, match="Failed to encode image"):
        encode_image(buffer.getvalue(), "PNG")
