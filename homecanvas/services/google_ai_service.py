"""
Google AI Studio service: the external image generation collaborator.

Sends the normalized product square, the marked scene square and the
composite prompt to a Gemini image model and hands back the single image
it returns. Failures are reported as typed errors with the original cause
attached; nothing here retries or substitutes a fallback image.
"""
import asyncio
import base64
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from PIL import Image

from homecanvas.core.config import settings
from homecanvas.core.exceptions import ExternalGenerationError, MissingImagePart
from homecanvas.services.image_io import EncodedImage, encode_image

logger = logging.getLogger(__name__)

_SAFETY_FINISH_REASONS = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


def _categorize_error(error: Exception) -> str:
    """Bucket an SDK/transport failure so callers can decide whether to retry"""
    if isinstance(error, genai_errors.APIError):
        code = getattr(error, "code", None)
        if code == 429:
            return "quota"
        if code in (500, 502, 503, 504):
            return "unavailable"
        if code in (401, 403):
            return "authentication"
        if code == 400:
            return "invalid_request"
        return "api"

    error_str = str(error)
    if "RESOURCE_EXHAUSTED" in error_str or "429" in error_str:
        return "quota"
    if "503" in error_str or "overloaded" in error_str.lower() or "UNAVAILABLE" in error_str:
        return "unavailable"
    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return "network"
    return "unknown"


class GoogleAIStudioService:
    """Service for Gemini image generation"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Google AI Studio service"""
        self.api_key = api_key if api_key is not None else settings.google_ai_api_key
        self.model = model or settings.google_ai_image_model
        self.usage_stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_processing_time": 0.0,
            "last_reset": datetime.now(),
        }

        if self.api_key:
            self.genai_client = genai.Client(api_key=self.api_key)
            self.genai_configured = True

            if len(self.api_key) > 12:
                masked_key = f"{self.api_key[:8]}...{self.api_key[-4:]}"
                logger.info(f"Google AI API Key loaded: {masked_key}")

            logger.info(f"Google GenAI Client initialized for {self.model}")
        else:
            self.genai_configured = False
            self.genai_client = None
            logger.warning("Google AI API key not configured - image generation will not be available")

    async def generate_composite_image(
        self, product_square: Image.Image, marked_scene_square: Image.Image, prompt: str
    ) -> EncodedImage:
        """
        Ask the image model to composite the product into the marked scene.

        Args:
            product_square: Letterboxed product image
            marked_scene_square: Letterboxed scene image with the placement marker
            prompt: Fixed composite instruction prompt

        Returns:
            The first image part of the response

        Raises:
            ExternalGenerationError: configuration, transport, quota or safety failure
            MissingImagePart: the response carried no image
        """
        if not self.genai_configured:
            raise ExternalGenerationError("Google AI API key is not configured", category="configuration")

        product_part = encode_image(product_square)
        scene_part = encode_image(marked_scene_square)
        contents = [
            types.Part(inline_data=types.Blob(mime_type=product_part.mime_type, data=product_part.data)),
            types.Part(inline_data=types.Blob(mime_type=scene_part.mime_type, data=scene_part.data)),
            types.Part(text=prompt),
        ]

        def _run_generate():
            """Run the blocking generate_content call in a separate thread"""
            return self.genai_client.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE"],
                    temperature=settings.google_ai_temperature,
                ),
            )

        start_time = time.time()
        self.usage_stats["total_requests"] += 1
        logger.info(
            f"Sending composite request to {self.model} "
            f"(product {len(product_part.data)} bytes, scene {len(scene_part.data)} bytes)"
        )

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, _run_generate)
        except Exception as e:
            self.usage_stats["failed_requests"] += 1
            category = _categorize_error(e)
            logger.error(f"Composite generation failed ({category}): {e}")
            raise ExternalGenerationError(f"Image generation failed: {e}", category=category) from e

        try:
            result = self._extract_image(response)
        except (ExternalGenerationError, MissingImagePart):
            self.usage_stats["failed_requests"] += 1
            raise

        processing_time = time.time() - start_time
        self.usage_stats["successful_requests"] += 1
        self.usage_stats["total_processing_time"] += processing_time
        logger.info(f"Composite generation successful - {len(result.data)} bytes ({result.mime_type}) in {processing_time:.2f}s")
        return result

    def _response_parts(self, response: Any) -> List[Any]:
        """The SDK may return parts directly on the response or nested in candidates"""
        if getattr(response, "parts", None):
            return list(response.parts)
        candidates = getattr(response, "candidates", None)
        if candidates:
            content = getattr(candidates[0], "content", None)
            if content is not None and getattr(content, "parts", None):
                return list(content.parts)
        return []

    def _blocked_reason(self, response: Any) -> Optional[str]:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback is not None else None
        if block_reason:
            return str(getattr(block_reason, "name", block_reason))

        candidates = getattr(response, "candidates", None) or []
        for candidate in candidates:
            finish_reason = getattr(candidate, "finish_reason", None)
            name = str(getattr(finish_reason, "name", finish_reason or ""))
            if name in _SAFETY_FINISH_REASONS:
                return name
        return None

    def _extract_image(self, response: Any) -> EncodedImage:
        """Pull the first inline image out of a generate_content response"""
        for part in self._response_parts(response):
            if getattr(part, "text", None):
                logger.info(f"Gemini text response: {part.text[:200]}...")
                continue

            inline_data = getattr(part, "inline_data", None)
            if inline_data is None or not inline_data.data:
                continue

            image_data = inline_data.data
            mime_type = getattr(inline_data, "mime_type", None) or "image/png"
            if isinstance(image_data, str):
                image_data = base64.b64decode(image_data)
            elif not (image_data[:4].hex().startswith("89504e47") or image_data[:3].hex() == "ffd8ff"):
                # Some SDK versions hand back base64 text as bytes
                try:
                    image_data = base64.b64decode(image_data, validate=True)
                except ValueError:
                    logger.warning("Inline image data is neither raw PNG/JPEG nor base64, passing through")

            return EncodedImage(data=image_data, mime_type=mime_type)

        blocked = self._blocked_reason(response)
        if blocked:
            logger.error(f"Composite generation blocked by content policy: {blocked}")
            raise ExternalGenerationError(f"Image generation was blocked: {blocked}", category="safety")

        logger.error(f"Model response did not contain an image part: {type(response)}")
        raise MissingImagePart()

    async def get_usage_statistics(self) -> Dict[str, Any]:
        """Get API usage statistics"""
        return {
            **self.usage_stats,
            "success_rate": (self.usage_stats["successful_requests"] / max(self.usage_stats["total_requests"], 1) * 100),
            "average_processing_time": (
                self.usage_stats["total_processing_time"] / max(self.usage_stats["successful_requests"], 1)
            ),
        }


# Global service instance
google_ai_service = GoogleAIStudioService()
