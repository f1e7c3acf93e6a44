"""Check-in route handlers for the active session."""

import logging
from typing import List

from fastapi import APIRouter, Depends

from clubstats.api.dependencies import get_store
from clubstats.api.routes import to_http_exception
from clubstats.models.schemas import CheckInCreate, CheckInRecord, CheckInUpdate
from clubstats.services import check_in_service
from clubstats.services.store_service import CachedRecordStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/check-ins", response_model=List[CheckInRecord])
async def list_check_ins(store: CachedRecordStore = Depends(get_store)):
    """Check-ins of the active session."""
    try:
        return await check_in_service.list_active_check_ins(store)
    except Exception as e:
        raise to_http_exception(e, "listing check-ins")


@router.post("/api/check-ins", response_model=CheckInRecord)
async def create_check_in(body: CheckInCreate, store: CachedRecordStore = Depends(get_store)):
    """
    Check a player into the active session.

    Body: { player_id: string, max_rounds?: int, notes?: string (max 500) }
    Checking in twice returns the existing check-in.
    """
    try:
        return await check_in_service.add_check_in(
            store, body.player_id, max_rounds=body.max_rounds, notes=body.notes
        )
    except Exception as e:
        raise to_http_exception(e, "creating check-in")


@router.patch("/api/check-ins/{player_id}", response_model=CheckInRecord)
async def update_check_in(
    player_id: str, body: CheckInUpdate, store: CachedRecordStore = Depends(get_store)
):
    """Update max_rounds and/or notes of a player's check-in."""
    try:
        return await check_in_service.update_check_in(
            store, player_id, **body.model_dump(exclude_unset=True)
        )
    except Exception as e:
        raise to_http_exception(e, "updating check-in")


@router.delete("/api/check-ins/{player_id}")
async def delete_check_in(player_id: str, store: CachedRecordStore = Depends(get_store)):
    """Check a player out of the active session."""
    try:
        await check_in_service.remove_check_in(store, player_id)
        return {"success": True}
    except Exception as e:
        raise to_http_exception(e, "deleting check-in")
