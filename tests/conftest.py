"""
Shared pytest fixtures and configuration for all tests
"""
import base64
import io
import sys
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

# Add the parent directory to the path so we can import homecanvas without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from homecanvas.services.image_io import EncodedBytes, EncodedImage  # noqa: E402


def image_bytes(size, color="gray", format="PNG", mode="RGB") -> bytes:
    """Encode a solid-colour test image"""
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


def data_url(size, color="gray", format="PNG", mode="RGB") -> str:
    mime = "image/jpeg" if format.upper() == "JPEG" else f"image/{format.lower()}"
    encoded = base64.b64encode(image_bytes(size, color, format, mode)).decode()
    return f"data:{mime};base64,{encoded}"


def decode_data_url(value: str) -> Image.Image:
    _, _, payload = value.partition(",")
    return Image.open(io.BytesIO(base64.b64decode(payload)))


@pytest.fixture
def landscape_scene() -> EncodedBytes:
    """1600x900 gray living room stand-in"""
    return EncodedBytes(data=image_bytes((1600, 900), color=(128, 128, 128)), mime_type="image/png")


@pytest.fixture
def portrait_scene() -> EncodedBytes:
    return EncodedBytes(data=image_bytes((900, 1600), color=(128, 128, 128)), mime_type="image/png")


@pytest.fixture
def product_image() -> EncodedBytes:
    """Small blue product with a transparent background"""
    img = Image.new("RGBA", (300, 200), color=(0, 0, 0, 0))
    img.paste((0, 0, 255, 255), (100, 50, 200, 150))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return EncodedBytes(data=buffer.getvalue(), mime_type="image/png")


@pytest.fixture
def square_generator() -> Callable:
    """
    Build a fake external generator returning a solid square of the given side.

    The returned coroutine function records its calls in ``.calls``.
    """

    def _build(side: int, color=(0, 200, 0), format="PNG"):
        calls = []

        async def generate(product_square, marked_scene, prompt):
            calls.append((product_square, marked_scene, prompt))
            mime = "image/jpeg" if format.upper() == "JPEG" else "image/png"
            return EncodedImage(data=image_bytes((side, side), color=color, format=format), mime_type=mime)

        generate.calls = calls
        return generate

    return _build
