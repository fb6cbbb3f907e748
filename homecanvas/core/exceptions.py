"""
Error taxonomy for the composite pipeline.

Input and geometry errors are raised immediately and never retried.
Errors from the external generation call carry ``retryable = True`` so the
calling layer can decide to try again; the core itself never retries.
"""
from typing import Optional, Tuple


class HomeCanvasError(Exception):
    """Base class for all composite pipeline errors"""

    retryable = False


class InvalidImageError(HomeCanvasError):
    """Zero/negative dimensions, unreadable or corrupt image data"""


class UnsupportedFormatError(HomeCanvasError):
    """MIME type the imaging backend cannot decode"""

    def __init__(self, mime_type: str, message: Optional[str] = None):
        self.mime_type = mime_type
        super().__init__(message or f"Unsupported image format: {mime_type}")


class ExternalGenerationError(HomeCanvasError):
    """The image generation collaborator reported a failure"""

    retryable = True

    def __init__(self, message: str, category: str = "unknown"):
        self.category = category
        super().__init__(message)


class GenerationTimeout(ExternalGenerationError):
    """The caller's deadline for the generation call expired"""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Image generation did not finish within {timeout_seconds:.0f}s", category="timeout")


class UnexpectedOutputShape(HomeCanvasError):
    """The generated image is not the requested square"""

    retryable = True

    def __init__(self, expected_side: int, actual_size: Tuple[int, int]):
        self.expected_side = expected_side
        self.actual_size = actual_size
        super().__init__(
            f"Expected a {expected_side}x{expected_side} image, got {actual_size[0]}x{actual_size[1]}"
        )


class MissingImagePart(HomeCanvasError):
    """The generation response carried no usable image payload"""

    retryable = True

    def __init__(self, message: str = "The AI model did not return an image. Please try again."):
        super().__init__(message)
