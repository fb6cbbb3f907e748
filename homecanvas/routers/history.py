"""
History API routes: per-session undo/redo over generated scenes

Only push and import create a session. Reads, undo and redo on an unknown
session answer with an empty history without allocating anything.
"""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from homecanvas.middleware.logging_middleware import get_logger
from homecanvas.schemas.composite import (
    HistoryActionResponse,
    HistoryEntrySchema,
    HistoryImportRequest,
    HistoryPushRequest,
    HistoryStateSchema,
)
from homecanvas.services.history_service import HistoryState, HistoryStore, history_registry

logger = get_logger(__name__)
router = APIRouter(prefix="/history", tags=["history"])

EMPTY_HISTORY = HistoryState(entries=(), cursor=-1)


@router.get("/{session_id}", response_model=HistoryStateSchema)
async def get_history(session_id: str):
    store = history_registry.find(session_id)
    return HistoryStateSchema.from_state(session_id, store.state() if store else EMPTY_HISTORY)


@router.post("/{session_id}", response_model=HistoryStateSchema)
async def push_history(session_id: str, request: HistoryPushRequest):
    """Push a new scene state, e.g. the initial upload"""
    store = history_registry.get(session_id)
    entry = store.push(request.artifact)
    logger.info(f"Pushed {entry.entry_id}, history now has {len(store)} entries")
    return HistoryStateSchema.from_state(session_id, store.state())


@router.post("/{session_id}/undo", response_model=HistoryActionResponse)
async def undo_history(session_id: str):
    store = history_registry.find(session_id)
    entry = store.undo() if store else None
    return HistoryActionResponse(
        entry=HistoryEntrySchema.from_entry(entry) if entry else None,
        history=HistoryStateSchema.from_state(session_id, store.state() if store else EMPTY_HISTORY),
    )


@router.post("/{session_id}/redo", response_model=HistoryActionResponse)
async def redo_history(session_id: str):
    store = history_registry.find(session_id)
    entry = store.redo() if store else None
    return HistoryActionResponse(
        entry=HistoryEntrySchema.from_entry(entry) if entry else None,
        history=HistoryStateSchema.from_state(session_id, store.state() if store else EMPTY_HISTORY),
    )


@router.delete("/{session_id}", response_model=HistoryStateSchema)
async def reset_history(session_id: str):
    """Drop the session's history and its stored state"""
    history_registry.discard(session_id)
    logger.info("History reset")
    return HistoryStateSchema.from_state(session_id, EMPTY_HISTORY)


@router.get("/{session_id}/export")
async def export_history(session_id: str) -> Dict[str, Any]:
    """Serialized history for the caller to persist wherever it likes"""
    store = history_registry.find(session_id)
    return store.serialize() if store else {"entries": [], "cursor": -1}


@router.put("/{session_id}/import", response_model=HistoryStateSchema)
async def import_history(session_id: str, request: HistoryImportRequest):
    """Replace the session history with previously exported data"""
    data: Dict[str, Any] = {"entries": request.entries}
    if request.cursor is not None:
        data["cursor"] = request.cursor

    try:
        HistoryStore.deserialize(data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid history data: {e}")

    store = history_registry.get(session_id)
    store.restore(data)
    return HistoryStateSchema.from_state(session_id, store.state())
