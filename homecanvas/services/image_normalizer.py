"""
Letterbox images into the fixed square the image model expects, and undo it.

normalize() and denormalize() both derive the content rect from
compute_letterbox(), so the crop taken from a generated square lines up
pixel for pixel with where the scene was drawn.
"""
import logging
from dataclasses import dataclass

from PIL import Image

from homecanvas.core.exceptions import UnexpectedOutputShape
from homecanvas.services.geometry import ContentRect, compute_letterbox

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = (0, 0, 0)


@dataclass
class NormalizedSquare:
    """A side x side letterboxed image and where the source landed in it"""

    buffer: Image.Image
    side: int
    content_rect: ContentRect


def normalize(image: Image.Image, side: int) -> NormalizedSquare:
    """
    Scale ``image`` into a side x side black canvas, centered, aspect ratio kept.

    Transparent pixels end up over the black background.

    Raises:
        InvalidImageError: if the image has a zero dimension
    """
    letterbox = compute_letterbox(image.width, image.height, side)
    rect = letterbox.content_rect

    canvas = Image.new("RGB", (side, side), BACKGROUND_COLOR)
    scaled = image.resize((rect.width, rect.height), Image.Resampling.LANCZOS)

    if scaled.mode == "RGBA":
        canvas.paste(scaled.convert("RGB"), (rect.x, rect.y), scaled.getchannel("A"))
    else:
        canvas.paste(scaled.convert("RGB"), (rect.x, rect.y))

    logger.debug(f"Normalized {image.width}x{image.height} into {side}px square, content rect {rect}")
    return NormalizedSquare(buffer=canvas, side=side, content_rect=rect)


def ensure_square(image: Image.Image, side: int) -> None:
    """Raise UnexpectedOutputShape unless ``image`` is exactly side x side"""
    if image.size != (side, side):
        raise UnexpectedOutputShape(expected_side=side, actual_size=image.size)


def denormalize(square: Image.Image, original_width: int, original_height: int, side: int) -> Image.Image:
    """
    Crop the content rect back out of a letterboxed square.

    The result is content_width x content_height from compute_letterbox(),
    which can differ from the original size by a pixel of rounding. It is
    not resized back.
    """
    ensure_square(square, side)
    rect = compute_letterbox(original_width, original_height, side).content_rect
    cropped = square.crop(rect.box)
    logger.debug(f"Denormalized {side}px square to {cropped.width}x{cropped.height}")
    return cropped
