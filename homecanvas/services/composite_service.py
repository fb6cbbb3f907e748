"""
Composite orchestration: normalize -> mark -> generate -> denormalize.

1. Decode the product and scene and record the scene's original size
2. Letterbox both into the model's square
3. Stamp the drop marker on the scene square (kept as the debug image)
4. Call the external generator with both squares and the fixed prompt
5. Crop the returned square back to the scene's aspect ratio

The service keeps no state between calls. A failure at any stage raises
a typed error and produces nothing for the caller to roll back.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from PIL import Image

from homecanvas.core.config import settings
from homecanvas.core.exceptions import (
    ExternalGenerationError,
    GenerationTimeout,
    HomeCanvasError,
    InvalidImageError,
    MissingImagePart,
    UnsupportedFormatError,
)
from homecanvas.services.geometry import NormalizedPoint
from homecanvas.services.image_io import EncodedImage, ImageLike, decode_image_bytes, encode_image, read_dimensions
from homecanvas.services.image_normalizer import denormalize, ensure_square, normalize
from homecanvas.services.marker_renderer import stamp_marker
from homecanvas.services.prompts import COMPOSITE_PROMPT

logger = logging.getLogger(__name__)

ExternalGenerateFn = Callable[[Image.Image, Image.Image, str], Awaitable[EncodedImage]]


class CompositeStage(str, Enum):
    """Stages of a single composite request"""

    IDLE = "idle"
    NORMALIZING = "normalizing"
    MARKING = "marking"
    AWAITING_EXTERNAL_GENERATION = "awaiting_external_generation"
    DENORMALIZING = "denormalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CompositeResult:
    """Result from a composite generation"""

    final_image: EncodedImage  # Scene aspect ratio, padding removed
    debug_image: EncodedImage  # Square, marked scene sent to the model
    prompt_text: str
    processing_time: float = 0.0


class CompositeService:
    """Runs the composite pipeline for one product/scene/drop request at a time"""

    def __init__(self, output_quality: Optional[int] = None):
        self.output_quality = output_quality or settings.output_jpeg_quality

    async def generate_composite(
        self,
        product: ImageLike,
        product_label: str,
        scene: ImageLike,
        scene_label: str,
        drop: NormalizedPoint,
        side: int,
        generate: ExternalGenerateFn,
        timeout: Optional[float] = None,
    ) -> CompositeResult:
        """
        Composite ``product`` into ``scene`` centered on ``drop``.

        Args:
            product: Product image reference
            product_label: Product name, used for logging
            scene: Scene image reference
            scene_label: Scene name, used for logging
            drop: Drop point in percent of the scene's visible content
            side: Square side the generator expects
            generate: External generation collaborator
            timeout: Optional deadline in seconds for the generation call

        Raises:
            InvalidImageError, UnsupportedFormatError: bad inputs
            ExternalGenerationError, GenerationTimeout: generator failed or was too slow
            MissingImagePart: generator returned nothing usable
            UnexpectedOutputShape: generator returned the wrong square size
        """
        start_time = time.time()
        stage = CompositeStage.IDLE
        logger.info(f"[Composite] Starting: product '{product_label}' into scene '{scene_label}' at {drop}")

        try:
            stage = self._enter(CompositeStage.NORMALIZING)
            scene_image = await scene.decode()
            scene_dimensions = read_dimensions(scene_image)
            product_image = await product.decode()
            logger.info(
                f"[Composite] Scene {scene_dimensions.width}x{scene_dimensions.height}, "
                f"product {product_image.width}x{product_image.height}, side {side}"
            )

            product_square = normalize(product_image, side)
            scene_square = normalize(scene_image, side)

            stage = self._enter(CompositeStage.MARKING)
            if not drop.in_bounds:
                logger.warning(f"[Composite] Drop point {drop} outside content, clamping")
                drop = drop.clamped()
            marked_scene = stamp_marker(scene_square, drop)
            debug_image = encode_image(marked_scene, quality=self.output_quality)

            stage = self._enter(CompositeStage.AWAITING_EXTERNAL_GENERATION)
            generated = await self._call_generator(generate, product_square.buffer, marked_scene, timeout)

            stage = self._enter(CompositeStage.DENORMALIZING)
            try:
                generated_image = decode_image_bytes(generated.data, generated.mime_type)
            except (InvalidImageError, UnsupportedFormatError) as e:
                raise MissingImagePart(f"Generated image could not be decoded: {e}") from e
            ensure_square(generated_image, side)
            final = denormalize(generated_image, scene_dimensions.width, scene_dimensions.height, side)
            final_image = encode_image(final, quality=self.output_quality)

        except HomeCanvasError as e:
            logger.error(f"[Composite] Failed during {stage.value}: {type(e).__name__}: {e}")
            self._enter(CompositeStage.FAILED)
            raise

        processing_time = time.time() - start_time
        self._enter(CompositeStage.DONE)
        logger.info(f"[Composite] Complete: {final.width}x{final.height} in {processing_time:.2f}s")

        return CompositeResult(
            final_image=final_image,
            debug_image=debug_image,
            prompt_text=COMPOSITE_PROMPT,
            processing_time=processing_time,
        )

    def _enter(self, stage: CompositeStage) -> CompositeStage:
        logger.debug(f"[Composite] -> {stage.value}")
        return stage

    async def _call_generator(
        self,
        generate: ExternalGenerateFn,
        product_square: Image.Image,
        marked_scene: Image.Image,
        timeout: Optional[float],
    ) -> EncodedImage:
        """Invoke the collaborator, turning every failure into a typed error"""
        try:
            if timeout is not None:
                return await asyncio.wait_for(generate(product_square, marked_scene, COMPOSITE_PROMPT), timeout=timeout)
            return await generate(product_square, marked_scene, COMPOSITE_PROMPT)
        except asyncio.TimeoutError as e:
            if timeout is not None:
                raise GenerationTimeout(timeout) from e
            raise ExternalGenerationError(f"Image generation timed out: {e}", category="network") from e
        except HomeCanvasError:
            raise
        except Exception as e:
            category = "network" if isinstance(e, (ConnectionError, OSError)) else "unknown"
            raise ExternalGenerationError(f"Image generation failed: {e}", category=category) from e


# Global service instance
composite_service = CompositeService()
