"""
Composite API routes: product-into-scene generation and drop point mapping
"""
from fastapi import APIRouter, HTTPException

from homecanvas.core.config import settings
from homecanvas.core.exceptions import (
    ExternalGenerationError,
    GenerationTimeout,
    HomeCanvasError,
    InvalidImageError,
    MissingImagePart,
    UnexpectedOutputShape,
    UnsupportedFormatError,
)
from homecanvas.middleware.logging_middleware import get_logger
from homecanvas.schemas.composite import (
    CompositeRequest,
    CompositeResponse,
    DropPoint,
    DropPointRequest,
    HistoryStateSchema,
)
from homecanvas.services.composite_service import composite_service
from homecanvas.services.geometry import Dimensions, NormalizedPoint, display_to_content_percent
from homecanvas.services.google_ai_service import google_ai_service
from homecanvas.services.history_service import history_registry
from homecanvas.services.image_io import image_like_from_string

logger = get_logger(__name__)
router = APIRouter(prefix="/composite", tags=["composite"])


def http_status_for(error: HomeCanvasError) -> int:
    """Map a pipeline error onto an HTTP status code"""
    if isinstance(error, GenerationTimeout):
        return 504
    if isinstance(error, (ExternalGenerationError, MissingImagePart, UnexpectedOutputShape)):
        return 502
    if isinstance(error, UnsupportedFormatError):
        return 415
    if isinstance(error, InvalidImageError):
        return 400
    return 500


def error_detail(error: HomeCanvasError) -> dict:
    return {
        "error": type(error).__name__,
        "message": str(error),
        "category": getattr(error, "category", None),
        "retryable": error.retryable,
    }


@router.post("/generate", response_model=CompositeResponse)
async def generate_composite(request: CompositeRequest):
    """
    Composite a product into a scene at the drop point.

    On success the cropped result is pushed into the session's history
    when a session_id is given. Nothing is pushed on failure.
    """
    side = request.side or settings.composite_side
    drop = NormalizedPoint(x_percent=request.drop.x_percent, y_percent=request.drop.y_percent)

    try:
        product = image_like_from_string(request.product_image)
        scene = image_like_from_string(request.scene_image)
        result = await composite_service.generate_composite(
            product=product,
            product_label=request.product_label,
            scene=scene,
            scene_label=request.scene_label,
            drop=drop,
            side=side,
            generate=google_ai_service.generate_composite_image,
            timeout=settings.generation_timeout_seconds,
        )
    except HomeCanvasError as e:
        status_code = http_status_for(e)
        logger.error(f"Composite generation failed ({status_code}): {type(e).__name__}: {e}")
        raise HTTPException(status_code=status_code, detail=error_detail(e))

    final_url = result.final_image.to_data_url()
    history = None
    if request.session_id:
        store = history_registry.get(request.session_id)
        store.push(final_url)
        history = HistoryStateSchema.from_state(request.session_id, store.state())
        logger.info(f"Pushed composite into history {request.session_id} (cursor {history.cursor})")

    return CompositeResponse(
        final_image=final_url,
        debug_image=result.debug_image.to_data_url(),
        prompt=result.prompt_text,
        processing_time=result.processing_time,
        history=history,
    )


@router.post("/drop-point", response_model=DropPoint)
async def map_drop_point(request: DropPointRequest):
    """Convert a click on the displayed scene into a content-space drop point"""
    try:
        image = Dimensions(width=request.image_width, height=request.image_height)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=error_detail(e))

    point = display_to_content_percent(
        request.display_x,
        request.display_y,
        request.container_width,
        request.container_height,
        image,
        request.scale_mode,
    )
    if point is None:
        raise HTTPException(status_code=422, detail="Drop point is outside the displayed scene image")

    point = point.clamped()
    return DropPoint(x_percent=point.x_percent, y_percent=point.y_percent)
