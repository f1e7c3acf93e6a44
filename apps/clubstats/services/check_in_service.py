"""
Check-in operations for the active session.
"""

import logging
from typing import List, Optional

from clubstats.models.schemas import CheckInRecord
from clubstats.services import session_service
from clubstats.services.errors import NotFoundError, ValidationError
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.constants import CHECK_IN_NOTES_MAX_LENGTH

logger = logging.getLogger(__name__)


def validate_check_in_fields(max_rounds: Optional[int] = None, notes: Optional[str] = None) -> None:
    """
    Raises:
        ValidationError: If notes are too long or max_rounds is not positive
    """
    if notes is not None and len(notes) > CHECK_IN_NOTES_MAX_LENGTH:
        raise ValidationError(
            f"Notes must be at most {CHECK_IN_NOTES_MAX_LENGTH} characters (got {len(notes)})"
        )
    if max_rounds is not None and max_rounds < 1:
        raise ValidationError("max_rounds must be at least 1")


async def add_check_in(
    store: CachedRecordStore,
    player_id: str,
    max_rounds: Optional[int] = None,
    notes: Optional[str] = None,
) -> CheckInRecord:
    """
    Check a player into the active session.

    Checking in twice returns the existing check-in.

    Raises:
        ValidationError: If the fields are invalid or the player is inactive
        NotFoundError: If there is no active session or no such player
    """
    validate_check_in_fields(max_rounds, notes)
    active = await session_service.ensure_active_session(store)

    player = await store.get_player(player_id)
    if player is None:
        raise NotFoundError("Player", player_id)
    if not player.active:
        raise ValidationError(f"Player {player.name} is not active")

    check_in, created = await store.create_check_in(
        active.id, player_id, max_rounds=max_rounds, notes=notes
    )
    if created:
        logger.info(f"Checked in player {player_id} to session {active.id}")
    else:
        logger.debug(f"Player {player_id} already checked in to session {active.id}")
    return check_in


async def update_check_in(
    store: CachedRecordStore,
    player_id: str,
    **fields,
) -> CheckInRecord:
    """
    Change max_rounds and/or notes of a player's check-in in the active session.

    Raises:
        ValidationError: If the fields are invalid
        NotFoundError: If there is no active session or the player is not checked in
    """
    validate_check_in_fields(fields.get("max_rounds"), fields.get("notes"))
    active = await session_service.ensure_active_session(store)

    values = {k: v for k, v in fields.items() if k in ("max_rounds", "notes")}
    updated = await store.update_check_in(active.id, player_id, **values)
    if updated is None:
        raise NotFoundError("Check-in", player_id)
    return updated


async def remove_check_in(store: CachedRecordStore, player_id: str) -> None:
    """
    Check a player out of the active session.

    Raises:
        NotFoundError: If there is no active session or the player is not checked in
    """
    active = await session_service.ensure_active_session(store)
    if not await store.delete_check_in(active.id, player_id):
        raise NotFoundError("Check-in", player_id)
    logger.info(f"Checked out player {player_id} from session {active.id}")


async def list_active_check_ins(store: CachedRecordStore) -> List[CheckInRecord]:
    """Check-ins of the active session, empty if no session is active."""
    active = await session_service.get_active_session(store)
    if active is None:
        return []
    return await store.list_check_ins(active.id)
