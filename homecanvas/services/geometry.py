"""
Geometry helpers for letterboxing images into a fixed square.

All functions here are pure. Drop points are always expressed as
percentages of the visible content rect, never of the padded square.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from homecanvas.core.exceptions import InvalidImageError


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's rounding)"""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Dimensions:
    """Pixel size of an image"""

    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidImageError(f"Image dimensions must be positive, got {self.width}x{self.height}")

    @classmethod
    def from_size(cls, size: Tuple[int, int]) -> "Dimensions":
        return cls(width=size[0], height=size[1])

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class ContentRect:
    """Region of a padded square holding real image pixels"""

    x: int
    y: int
    width: int
    height: int

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """(left, upper, right, lower) as used by PIL crop/paste"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class Letterbox:
    """Placement of a source image inside a square canvas"""

    content_width: int
    content_height: int
    offset_x: int
    offset_y: int

    @property
    def content_rect(self) -> ContentRect:
        return ContentRect(
            x=self.offset_x,
            y=self.offset_y,
            width=self.content_width,
            height=self.content_height,
        )


@dataclass(frozen=True)
class NormalizedPoint:
    """Position inside the content rect, each axis in percent (0-100)"""

    x_percent: float
    y_percent: float

    def clamped(self) -> "NormalizedPoint":
        return NormalizedPoint(
            x_percent=min(max(self.x_percent, 0.0), 100.0),
            y_percent=min(max(self.y_percent, 0.0), 100.0),
        )

    @property
    def in_bounds(self) -> bool:
        return 0.0 <= self.x_percent <= 100.0 and 0.0 <= self.y_percent <= 100.0


# A drop region is what the caller sends when requesting a composite
DropRegion = NormalizedPoint


class ScaleMode(str, Enum):
    """How the scene image is fitted into its display container (CSS object-fit)"""

    CONTAIN = "contain"
    COVER = "cover"


def compute_letterbox(src_width: int, src_height: int, side: int) -> Letterbox:
    """
    Compute where a src_width x src_height image lands inside a side x side square.

    Landscape sources span the full width, portrait and square sources span
    the full height. Offsets are floored so that normalize and denormalize
    always agree on the same integer pixel grid.

    Raises:
        InvalidImageError: if either source dimension is not positive
    """
    if side <= 0:
        raise ValueError(f"Square side must be positive, got {side}")
    dimensions = Dimensions(src_width, src_height)
    aspect_ratio = dimensions.aspect_ratio

    if aspect_ratio > 1:  # Landscape
        content_width = side
        content_height = max(1, min(side, round_half_up(side / aspect_ratio)))
    else:  # Portrait or square
        content_height = side
        content_width = max(1, min(side, round_half_up(side * aspect_ratio)))

    return Letterbox(
        content_width=content_width,
        content_height=content_height,
        offset_x=(side - content_width) // 2,
        offset_y=(side - content_height) // 2,
    )


def percent_to_content_pixel(point: NormalizedPoint, content_rect: ContentRect) -> Tuple[float, float]:
    """Map a content-relative percentage to absolute pixels on the square. No clamping."""
    x = content_rect.x + (point.x_percent / 100.0) * content_rect.width
    y = content_rect.y + (point.y_percent / 100.0) * content_rect.height
    return x, y


def pixel_to_content_percent(px: float, py: float, content_rect: ContentRect) -> NormalizedPoint:
    """Inverse of percent_to_content_pixel"""
    return NormalizedPoint(
        x_percent=(px - content_rect.x) / content_rect.width * 100.0,
        y_percent=(py - content_rect.y) / content_rect.height * 100.0,
    )


def _rendered_size(
    container_width: float, container_height: float, image: Dimensions, mode: ScaleMode
) -> Tuple[float, float]:
    image_ratio = image.aspect_ratio
    container_ratio = container_width / container_height

    if mode == ScaleMode.COVER:
        if image_ratio > container_ratio:
            return container_height * image_ratio, container_height
        return container_width, container_width / image_ratio

    if image_ratio > container_ratio:
        return container_width, container_width / image_ratio
    return container_height * image_ratio, container_height


def display_to_image_pixel(
    display_x: float,
    display_y: float,
    container_width: float,
    container_height: float,
    image: Dimensions,
    mode: ScaleMode = ScaleMode.CONTAIN,
) -> Optional[Tuple[float, float]]:
    """
    Map a click inside a scaled display container to unscaled image pixels.

    display_x/display_y are relative to the container's top-left corner.
    The image is centered in the container and scaled per ``mode``.

    Returns:
        (x, y) in the image's natural pixel space, or None when the click
        falls outside the rendered image (the letterbox bars of ``contain``)
    """
    if container_width <= 0 or container_height <= 0:
        raise ValueError(f"Container size must be positive, got {container_width}x{container_height}")

    rendered_width, rendered_height = _rendered_size(container_width, container_height, image, mode)
    offset_x = (container_width - rendered_width) / 2
    offset_y = (container_height - rendered_height) / 2

    local_x = display_x - offset_x
    local_y = display_y - offset_y
    if local_x < 0 or local_x > rendered_width or local_y < 0 or local_y > rendered_height:
        return None

    scale = image.width / rendered_width
    return local_x * scale, local_y * scale


def display_to_content_percent(
    display_x: float,
    display_y: float,
    container_width: float,
    container_height: float,
    image: Dimensions,
    mode: ScaleMode = ScaleMode.CONTAIN,
) -> Optional[NormalizedPoint]:
    """Turn a raw click on the displayed scene into a drop point, or None if it missed the image"""
    pixel = display_to_image_pixel(display_x, display_y, container_width, container_height, image, mode)
    if pixel is None:
        return None
    full_image = ContentRect(x=0, y=0, width=image.width, height=image.height)
    return pixel_to_content_percent(pixel[0], pixel[1], full_image)
