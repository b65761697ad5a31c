"""Stream session routes: start, end, inspect viewers and history."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List

from schemas import ConversationRecord, SessionCreate, SessionRecord, ViewerRecord
from session_store import CONVERSATION_RETENTION_LIMIT, SessionStore
from deps import get_store

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _require_session(store: SessionStore, session_id: str) -> SessionRecord:
    session = store.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=SessionRecord, status_code=status.HTTP_201_CREATED)
async def start_session(session_data: SessionCreate, store: SessionStore = Depends(get_store)):
    if session_data.session_id and store.get_session(session_data.session_id):
        raise HTTPException(status_code=409, detail="Session already exists")
    return store.create_session(session_data.stream_title, session_id=session_data.session_id)


@router.get("/{session_id}", response_model=SessionRecord)
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    return _require_session(store, session_id)


@router.post("/{session_id}/end", response_model=SessionRecord)
async def end_session(session_id: str, store: SessionStore = Depends(get_store)):
    session = store.end_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.get("/{session_id}/viewers", response_model=List[ViewerRecord])
async def list_viewers(session_id: str, store: SessionStore = Depends(get_store)):
    _require_session(store, session_id)
    return store.get_all_viewers(session_id)


@router.get("/{session_id}/conversations", response_model=List[ConversationRecord])
async def list_conversations(
    session_id: str,
    limit: int = Query(CONVERSATION_RETENTION_LIMIT),
    store: SessionStore = Depends(get_store),
):
    """Most recent first; ``limit`` is clamped to 1..CONVERSATION_RETENTION_LIMIT."""
    _require_session(store, session_id)
    return store.get_conversations(session_id, max(1, min(CONVERSATION_RETENTION_LIMIT, limit)))
