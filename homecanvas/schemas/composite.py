"""
Pydantic schemas for the composite and history endpoints
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from homecanvas.services.geometry import ScaleMode
from homecanvas.services.history_service import HistoryEntry, HistoryState


class DropPoint(BaseModel):
    """Drop position as a percentage of the scene's visible content"""

    x_percent: float = Field(ge=0.0, le=100.0)
    y_percent: float = Field(ge=0.0, le=100.0)


class CompositeRequest(BaseModel):
    """Request to composite a product into a scene"""

    product_image: str  # Data URL, raw base64 or http(s) URL
    product_label: str = "product"
    scene_image: str  # Data URL, raw base64 or http(s) URL
    scene_label: str = "scene"
    drop: DropPoint
    side: Optional[int] = Field(default=None, ge=64, le=4096)  # Defaults to settings.composite_side
    session_id: Optional[str] = None  # Push the result into this session's history

    class Config:
        json_schema_extra = {
            "example": {
                "product_image": "https://example.com/sofa.png",
                "product_label": "Gray three-seat sofa",
                "scene_image": "data:image/jpeg;base64,/9j/4AAQ...",
                "scene_label": "Living room",
                "drop": {"x_percent": 50.0, "y_percent": 70.0},
                "session_id": "3f1c2a",
            }
        }


class HistoryEntrySchema(BaseModel):
    entry_id: str
    artifact: str
    created_at: float

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntrySchema":
        return cls(entry_id=entry.entry_id, artifact=entry.artifact, created_at=entry.created_at)


class HistoryStateSchema(BaseModel):
    """History snapshot for one session"""

    session_id: str
    entries: List[HistoryEntrySchema] = Field(default_factory=list)
    cursor: int = -1
    current: Optional[HistoryEntrySchema] = None
    can_undo: bool = False
    can_redo: bool = False

    @classmethod
    def from_state(cls, session_id: str, state: HistoryState) -> "HistoryStateSchema":
        current = state.current
        return cls(
            session_id=session_id,
            entries=[HistoryEntrySchema.from_entry(entry) for entry in state.entries],
            cursor=state.cursor,
            current=HistoryEntrySchema.from_entry(current) if current else None,
            can_undo=state.can_undo,
            can_redo=state.can_redo,
        )


class CompositeResponse(BaseModel):
    """Composite result: cropped final image, marked debug square and prompt"""

    final_image: str  # Data URL, scene aspect ratio
    debug_image: str  # Data URL, marked square sent to the model
    prompt: str
    processing_time: float
    history: Optional[HistoryStateSchema] = None


class DropPointRequest(BaseModel):
    """A click on the displayed scene, in container (CSS) pixels"""

    display_x: float
    display_y: float
    container_width: float = Field(gt=0)
    container_height: float = Field(gt=0)
    image_width: int = Field(gt=0)  # Natural size of the scene image
    image_height: int = Field(gt=0)
    scale_mode: ScaleMode = ScaleMode.CONTAIN


class HistoryPushRequest(BaseModel):
    artifact: str  # Image reference, e.g. the uploaded scene as a data URL


class HistoryActionResponse(BaseModel):
    """Result of undo/redo: the entry moved to (None if nothing happened) and the new state"""

    entry: Optional[HistoryEntrySchema] = None
    history: HistoryStateSchema


class HistoryImportRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    cursor: Optional[int] = None  # Defaults to the last entry
