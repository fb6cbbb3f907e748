"""
Draw the placement marker the image model uses as a guide.
"""
import logging

from PIL import Image, ImageDraw

from homecanvas.services.geometry import NormalizedPoint, percent_to_content_pixel
from homecanvas.services.image_normalizer import NormalizedSquare

logger = logging.getLogger(__name__)

MARKER_FILL = (255, 0, 0)
MARKER_OUTLINE = (255, 255, 255)
MIN_MARKER_RADIUS = 5.0
MARKER_RADIUS_RATIO = 0.015
OUTLINE_RATIO = 0.2


def marker_radius(side: int) -> float:
    return max(MIN_MARKER_RADIUS, side * MARKER_RADIUS_RATIO)


def stamp_marker(square: NormalizedSquare, point: NormalizedPoint) -> Image.Image:
    """
    Return a copy of the square with a red, white-outlined dot at ``point``.

    ``point`` is relative to the square's content rect, so padding is
    skipped. The input buffer is left untouched.
    """
    center_x, center_y = percent_to_content_pixel(point, square.content_rect)
    radius = marker_radius(square.side)
    outline_width = max(1, round(radius * OUTLINE_RATIO))

    marked = square.buffer.copy()
    draw = ImageDraw.Draw(marked)
    draw.ellipse(
        [center_x - radius, center_y - radius, center_x + radius, center_y + radius],
        fill=MARKER_FILL,
        outline=MARKER_OUTLINE,
        width=outline_width,
    )

    logger.info(
        f"Marker stamped at ({center_x:.1f}, {center_y:.1f}) for drop "
        f"({point.x_percent:.1f}%, {point.y_percent:.1f}%), radius {radius:.1f}px"
    )
    return marked
