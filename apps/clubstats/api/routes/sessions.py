"""Training session route handlers."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from clubstats.api.dependencies import get_store
from clubstats.api.routes import to_http_exception
from clubstats.models.schemas import SessionRecord, StatisticsFilters, StatisticsSnapshotRecord
from clubstats.services import session_service, snapshot_service
from clubstats.services.store_service import CachedRecordStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions/active", response_model=Optional[SessionRecord])
async def get_active_session(store: CachedRecordStore = Depends(get_store)):
    """
    Get the active session, or null.

    An active session older than the maximum duration is ended by this call.
    """
    try:
        return await session_service.get_active_session(store)
    except Exception as e:
        raise to_http_exception(e, "getting active session")


@router.post("/api/sessions/active", response_model=SessionRecord)
async def start_session(store: CachedRecordStore = Depends(get_store)):
    """Start a session for today unless one is already active."""
    try:
        return await session_service.start_or_get_active_session(store)
    except Exception as e:
        raise to_http_exception(e, "starting session")


@router.post("/api/sessions/active/end", response_model=SessionRecord)
async def end_active_session(store: CachedRecordStore = Depends(get_store)):
    """End the active session and capture its statistics snapshot."""
    try:
        ended = await session_service.end_active_session(store)
    except Exception as e:
        raise to_http_exception(e, "ending session")
    if ended is None:
        raise HTTPException(status_code=404, detail="No active session")
    return ended


@router.post("/api/sessions/{session_id}/snapshot", response_model=StatisticsSnapshotRecord)
async def snapshot_session(session_id: str, store: CachedRecordStore = Depends(get_store)):
    """
    Capture (or return the existing) snapshot of an ended session.

    Used to recover sessions whose snapshot failed when they ended.
    """
    try:
        return await snapshot_service.snapshot_session(store, session_id)
    except Exception as e:
        raise to_http_exception(e, "creating snapshot")


@router.get("/api/sessions/history", response_model=List[StatisticsSnapshotRecord])
async def get_session_history(
    season: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    store: CachedRecordStore = Depends(get_store),
):
    """Snapshots of ended sessions, newest first."""
    try:
        filters = StatisticsFilters(season=season, date_from=date_from, date_to=date_to)
        return await snapshot_service.get_session_history(store, filters)
    except Exception as e:
        raise to_http_exception(e, "getting session history")
