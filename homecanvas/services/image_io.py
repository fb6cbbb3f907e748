"""
Image inputs and outputs for the composite pipeline.

Callers hand images over as one of three variants of ``ImageLike``:
encoded bytes (uploads, data URLs), a file on disk, or a remote URL.
Each variant decodes to a PIL image; downstream geometry code never
looks at which variant it came from.
"""
import asyncio
import base64
import binascii
import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set, Union

import aiohttp
from PIL import Image, ImageOps, UnidentifiedImageError

from homecanvas.core.config import settings
from homecanvas.core.exceptions import InvalidImageError, UnsupportedFormatError
from homecanvas.services.geometry import Dimensions

logger = logging.getLogger(__name__)

# Multi-picture JPEGs from phone cameras open as MPO
_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg", "image/mpo": "image/jpeg"}


def _normalize_mime(mime_type: Optional[str]) -> Optional[str]:
    if not mime_type:
        return None
    mime_type = mime_type.split(";")[0].strip().lower()
    return _MIME_ALIASES.get(mime_type, mime_type)


def supported_mime_types() -> Set[str]:
    """MIME types Pillow can decode that are also allowed by settings"""
    Image.init()
    decodable = set(Image.MIME.values())
    return {mime for mime in settings.allowed_image_types if mime in decodable}


@dataclass(frozen=True)
class EncodedImage:
    """Encoded image payload with its MIME type"""

    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class EncodedBytes:
    """Raw encoded image bytes, e.g. an upload or a decoded data URL"""

    data: bytes
    mime_type: Optional[str] = None

    async def decode(self) -> Image.Image:
        return decode_image_bytes(self.data, self.mime_type)


@dataclass(frozen=True)
class FileHandle:
    """Image file on local disk"""

    path: Union[str, Path]

    async def decode(self) -> Image.Image:
        path = Path(self.path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise InvalidImageError(f"Could not read image file {path}: {e}") from e

        mime_type, _ = mimetypes.guess_type(path.name)
        return decode_image_bytes(data, mime_type)


@dataclass(frozen=True)
class RemoteURL:
    """Image behind an http(s) URL"""

    url: str

    async def decode(self) -> Image.Image:
        timeout = aiohttp.ClientTimeout(total=settings.image_download_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.url) as response:
                    if response.status != 200:
                        raise InvalidImageError(f"Failed to download image from {self.url}: HTTP {response.status}")
                    data = await response.read()
                    content_type = response.headers.get("Content-Type")
        except asyncio.TimeoutError as e:
            raise InvalidImageError(f"Timed out downloading image from {self.url}") from e
        except aiohttp.ClientError as e:
            raise InvalidImageError(f"Network error downloading image from {self.url}: {e}") from e

        logger.info(f"Downloaded {len(data)} bytes from {self.url}")

        # Servers often label images as octet-stream; let Pillow sniff those
        mime_type = _normalize_mime(content_type)
        if mime_type and not mime_type.startswith("image/"):
            mime_type = None
        return decode_image_bytes(data, mime_type)


ImageLike = Union[EncodedBytes, FileHandle, RemoteURL]


def decode_image_bytes(data: bytes, mime_type: Optional[str] = None) -> Image.Image:
    """
    Decode image bytes into an RGB or RGBA PIL image with EXIF orientation applied.

    Raises:
        UnsupportedFormatError: declared or detected format is not decodable/allowed
        InvalidImageError: empty, oversized, corrupt or zero-sized image
    """
    allowed = supported_mime_types()
    mime_type = _normalize_mime(mime_type)
    if mime_type and mime_type not in allowed:
        raise UnsupportedFormatError(mime_type)

    if not data:
        raise InvalidImageError("Image data is empty")
    if len(data) > settings.max_file_size:
        raise InvalidImageError(f"Image is {len(data)} bytes, limit is {settings.max_file_size}")

    try:
        image = Image.open(io.BytesIO(data))
        detected_mime = _normalize_mime(Image.MIME.get(image.format or ""))
        if detected_mime not in allowed:
            raise UnsupportedFormatError(detected_mime or str(image.format))
        image.load()
    except UnidentifiedImageError as e:
        raise InvalidImageError("Image data could not be identified as an image") from e
    except Image.DecompressionBombError as e:
        raise InvalidImageError(f"Image has too many pixels: {e}") from e
    except (OSError, SyntaxError, ValueError) as e:
        raise InvalidImageError(f"Image data is corrupt: {e}") from e

    # Smartphone photos carry their rotation in EXIF
    image = ImageOps.exif_transpose(image)
    Dimensions.from_size(image.size)

    has_alpha = image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info)
    target_mode = "RGBA" if has_alpha else "RGB"
    if image.mode != target_mode:
        image = image.convert(target_mode)
    return image


def image_like_from_string(value: str) -> ImageLike:
    """
    Interpret a string from the API as an image reference.

    Accepts a data URL, an http(s) URL, or raw base64.
    """
    value = value.strip()
    if value.startswith(("http://", "https://")):
        return RemoteURL(value)

    mime_type = None
    payload = value
    if value.startswith("data:"):
        header, _, payload = value.partition(",")
        if not payload or ";base64" not in header:
            raise InvalidImageError("Invalid data URL: expected base64 encoded image data")
        mime_type = header[len("data:"):].split(";")[0] or None

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image data is not valid base64") from e
    return EncodedBytes(data=data, mime_type=mime_type)


def read_dimensions(image: Image.Image) -> Dimensions:
    return Dimensions.from_size(image.size)


def encode_image(image: Image.Image, format: str = "JPEG", quality: Optional[int] = None) -> EncodedImage:
    """Encode a PIL image; JPEG output is flattened to RGB"""
    quality = quality or settings.output_jpeg_quality
    buffer = io.BytesIO()
    if format.upper() == "JPEG":
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=quality)
    else:
        image.save(buffer, format=format)
    return EncodedImage(data=buffer.getvalue(), mime_type=Image.MIME.get(format.upper(), f"image/{format.lower()}"))
